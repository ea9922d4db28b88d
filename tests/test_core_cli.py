# Copyright 2025 DNAi inc.

# Dual-licensed under the DNAi Free License v1.1 and the
# DNAi Commercial License v1.1.
# See the LICENSE files in the project root for details.

import pytest

from conftest import USER_COMMENT, build_jpeg, build_png, itxt_chunk, jpeg_segment
from metabridge import MetaBridge
from metabridge.cli import NO_METADATA_MESSAGE, main
from metabridge.exceptions import UnsupportedFormatError
from metabridge.jpeg_parser import EXIF_HEADER, XMP_HEADER
from metabridge.metadata_node import MetadataNode
from metabridge.tiff_writer import TIFFWriter
from metabridge.xmp_writer import build_xmp_packet


@pytest.fixture
def jpeg_file(tmp_path, exif_tree, xmp_tree):
    tiff_metadata = MetadataNode('tiff')
    tiff_metadata.set_query('/ifd/exif', exif_tree)
    data = build_jpeg(
        jpeg_segment(0xE1, EXIF_HEADER + TIFFWriter().write(tiff_metadata)),
        jpeg_segment(0xE1, XMP_HEADER + build_xmp_packet(xmp_tree)),
    )
    path = tmp_path / 'harbour.jpg'
    path.write_bytes(data)
    return path


@pytest.fixture
def png_file(tmp_path, xmp_tree):
    packet = build_xmp_packet(xmp_tree).decode('utf-8')
    path = tmp_path / 'harbour.png'
    path.write_bytes(build_png(itxt_chunk('XML:com.adobe.xmp', packet)))
    return path


@pytest.fixture
def gif_file(tmp_path):
    path = tmp_path / 'blank.gif'
    path.write_bytes(b'GIF89a\x01\x00\x01\x00\x00\x00\x00;')
    return path


def test_jpeg_values(jpeg_file):
    with MetaBridge(file_path=jpeg_file) as bridge:
        assert bridge.format == 'jpg'
        assert bridge.has_metadata
        assert bridge.get_exif_comment() == 'hello'
        assert bridge.get_xmp_description() == 'A quiet harbour'


def test_jpeg_persists_to_tiff(jpeg_file):
    persisted = MetaBridge(file_path=jpeg_file).persist()

    assert persisted is not None
    assert not persisted.is_frozen, "Persisted tree is a writable copy"
    assert persisted.get_query('/ifd/exif' + USER_COMMENT) == 'hello'
    assert persisted.get_query('/ifd/xmp/dc:description/x-default') == 'A quiet harbour'


def test_png_persists_xmp_to_tiff(png_file):
    bridge = MetaBridge(file_path=png_file)
    assert bridge.get_exif_comment() == ''
    assert bridge.get_xmp_description() == 'A quiet harbour'

    persisted = bridge.persist()
    assert persisted.get_query('/ifd/xmp/dc:subject/{ulong=1}') == 'boats'


def test_file_data_takes_precedence(png_file, jpeg_file):
    bridge = MetaBridge(file_path=png_file, file_data=jpeg_file.read_bytes())
    assert bridge.format == 'jpg'


def test_image_without_metadata(gif_file):
    bridge = MetaBridge(file_path=gif_file)
    assert not bridge.has_metadata
    assert bridge.dump() == []
    assert bridge.get_exif_comment() == ''
    assert bridge.convert('tiff') is None


def test_persist_only_encodes_tiff(jpeg_file):
    with pytest.raises(UnsupportedFormatError):
        MetaBridge(file_path=jpeg_file).persist('png')


def test_needs_an_image():
    with pytest.raises(ValueError):
        MetaBridge()


def test_cli_prints_values_before_and_after_conversion(jpeg_file, capsys):
    assert main([str(jpeg_file)]) == 0

    lines = capsys.readouterr().out.splitlines()
    assert lines == [
        'Original image:',
        'EXIF comment: hello',
        'XMP description: A quiet harbour',
        'After conversion to TIFF:',
        'EXIF comment: hello',
        'XMP description: A quiet harbour',
    ]


def test_cli_reports_missing_values(png_file, capsys):
    assert main([str(png_file)]) == 0
    out = capsys.readouterr().out
    assert 'EXIF comment not found' in out
    assert 'XMP description: A quiet harbour' in out


def test_cli_without_metadata(gif_file, capsys):
    assert main([str(gif_file)]) == 0
    assert capsys.readouterr().out.strip() == NO_METADATA_MESSAGE


def test_cli_dump(png_file, capsys):
    assert main(['--dump', str(png_file)]) == 0

    lines = capsys.readouterr().out.splitlines()
    assert lines[0] == 'PNG format metadata'
    assert '/iTXt/Keyword: XML:com.adobe.xmp' in lines


def test_cli_unsupported_file(tmp_path, capsys):
    path = tmp_path / 'notes.txt'
    path.write_bytes(b'just text')

    assert main([str(path)]) == 1
    assert capsys.readouterr().err.startswith('Error:')


def test_cli_missing_file(tmp_path, capsys):
    assert main([str(tmp_path / 'missing.jpg')]) == 1
    assert 'Error:' in capsys.readouterr().err
