# Copyright 2025 DNAi inc.

# Dual-licensed under the DNAi Free License v1.1 and the
# DNAi Commercial License v1.1.
# See the LICENSE files in the project root for details.

import io
import math
import struct

import pytest

from conftest import USER_COMMENT, iptc_dataset, photoshop_irb, single_tag_tiff
from metabridge.codec import ImageCodec
from metabridge.config import ConversionConfig
from metabridge.exceptions import MetadataReadError, MetadataWriteError, UnsupportedFormatError
from metabridge.metadata_node import MetadataNode
from metabridge.tiff_parser import TIFFParser, decode_user_comment
from metabridge.tiff_structure import Rational, TIFFDataType, extract_tag_packet
from metabridge.tiff_writer import TIFFWriter


@pytest.fixture
def tiff_metadata(exif_tree, xmp_tree, iptc_tree):
    tiff = MetadataNode('tiff')
    tiff.set_query('/ifd/{ushort=270}', 'Harbour')
    tiff.set_query('/ifd/{ushort=305}', 'metabridge')
    tiff.set_query('/ifd/exif', exif_tree)
    tiff.set_query('/ifd/exif/{ushort=33434}', Rational(1, 250))
    tiff.set_query('/ifd/exif/{ushort=37377}', Rational(-3, 2))
    tiff.set_query('/ifd/gps/{ushort=1}', 'N')
    tiff.set_query('/ifd/gps/{ushort=2}', [Rational(59, 1), Rational(54, 1), Rational(0, 1)])
    tiff.set_query('/ifd/xmp', xmp_tree)
    tiff.set_query('/ifd/iptc', iptc_tree)
    return tiff


@pytest.mark.parametrize('byte_order', ['<', '>'])
def test_encode_decode(tiff_metadata, byte_order):
    codec = ImageCodec(config=ConversionConfig(tiff_byte_order=byte_order))
    frame = codec.decode(file_data=codec.encode(tiff_metadata, 'tiff'))

    metadata = frame.metadata
    assert frame.format == 'tiff'
    assert metadata.is_frozen
    assert metadata.get_query('/ifd/{ushort=270}') == 'Harbour'
    assert metadata.get_query('/ifd/exif' + USER_COMMENT) == 'hello'
    assert metadata.get_query('/ifd/exif/{ushort=36867}') == '2024:05:01 10:00:00'
    assert metadata.get_query('/ifd/exif/{ushort=33434}') == Rational(1, 250)
    assert metadata.get_query('/ifd/exif/{ushort=37377}') == Rational(-3, 2)
    assert metadata.get_query('/ifd/gps/{ushort=1}') == 'N'
    assert metadata.get_query('/ifd/gps/{ushort=2}') == [Rational(59, 1), Rational(54, 1), Rational(0, 1)]
    assert metadata.get_query('/ifd/xmp/dc:description/x-default') == 'A quiet harbour'
    assert metadata.get_query('/ifd/iptc/Keywords') == ('harbour', 'boats')


def test_image_tags_are_written_by_the_encoder(tiff_metadata):
    codec = ImageCodec()
    tiff = codec.encode(tiff_metadata, pixels=b'\x00\x40\x80\xc0', width=2, height=2)
    ifd = codec.decode(file_data=tiff).metadata.find_node('/ifd')

    assert ifd.get_query('/{ushort=256}') == 2
    assert ifd.get_query('/{ushort=257}') == 2
    assert ifd.get_query('/{ushort=282}') == Rational(96, 1)
    strip_offset = ifd.get_query('/{ushort=273}')
    assert tiff[strip_offset:strip_offset + 4] == b'\x00\x40\x80\xc0'


def test_entries_are_sorted_by_tag(tiff_metadata):
    tiff = TIFFWriter().write(tiff_metadata)
    count = struct.unpack('<H', tiff[8:10])[0]
    tags = [struct.unpack('<H', tiff[10 + i * 12:12 + i * 12])[0] for i in range(count)]
    assert tags == sorted(tags)
    assert 700 in tags and 33723 in tags and 34665 in tags and 34853 in tags


def test_raw_xmp_bytes_are_written_verbatim():
    tiff_metadata = MetadataNode('tiff')
    tiff_metadata.set_query('/ifd/xmp', b'<raw/>')
    tiff = TIFFWriter().write(tiff_metadata)
    assert extract_tag_packet(tiff, 700) == b'<raw/>'


def test_metadata_is_optional():
    frame = ImageCodec().decode(file_data=TIFFWriter().write(None))
    assert list(frame.metadata.find_node('/ifd'))[0] == '/{ushort=256}'
    assert frame.metadata.find_node('/ifd/exif') is None


def test_pixel_count_must_match():
    with pytest.raises(MetadataWriteError):
        TIFFWriter().write(None, pixels=b'\x00\x00', width=1, height=1)


def test_only_tiff_is_encoded(tiff_metadata):
    with pytest.raises(UnsupportedFormatError):
        ImageCodec().encode(tiff_metadata, 'png')


def test_encode_to_stream(tiff_metadata):
    codec = ImageCodec()
    with io.BytesIO() as stream:
        codec.encode_to(stream, tiff_metadata, 'tiff')
        assert stream.getvalue() == codec.encode(tiff_metadata, 'tiff')


def test_user_comment_encodings():
    assert decode_user_comment(b'ASCII\x00\x00\x00plain') == 'plain'
    assert decode_user_comment(b'UNICODE\x00' + 'Zoë'.encode('utf-16-le')) == 'Zoë'
    assert decode_user_comment(b'UNICODE\x00' + 'Zoë'.encode('utf-16-be'), little_endian=False) == 'Zoë'
    assert decode_user_comment(b'JIS\x00\x00\x00\x00\x00text') is None

    tiff_metadata = MetadataNode('tiff')
    tiff_metadata.set_query('/ifd/exif' + USER_COMMENT, 'Zoë')
    decoded = ImageCodec().decode(file_data=TIFFWriter().write(tiff_metadata)).metadata
    assert decoded.get_query('/ifd/exif' + USER_COMMENT) == 'Zoë'


def test_photoshop_tag_is_decoded():
    irb = photoshop_irb(iptc_dataset(120, b'From Photoshop'))[len(b'Photoshop 3.0\x00'):]
    tiff = single_tag_tiff(34377, TIFFDataType.UNDEFINED, irb)
    metadata = TIFFParser(tiff).read()
    assert metadata.get_query('/ifd/irb/8bimiptc/iptc/Caption') == 'From Photoshop'


def test_unparseable_xmp_is_kept_as_bytes():
    tiff = single_tag_tiff(700, TIFFDataType.UNDEFINED, b'<broken')
    assert TIFFParser(tiff).read().get_query('/ifd/xmp') == b'<broken'


def test_jpeg_xr_header():
    tiff = bytearray(single_tag_tiff(270, TIFFDataType.ASCII, b'JPEG XR\x00'))
    tiff[2:4] = struct.pack('<H', 0x01BC)
    frame = ImageCodec().decode(file_data=bytes(tiff))
    assert frame.format == 'wmphoto'
    assert frame.metadata.get_query('/ifd/{ushort=270}') == 'JPEG XR'


def test_ifd_loops_are_not_followed():
    # EXIF pointer back to IFD0
    tiff = single_tag_tiff(34665, TIFFDataType.LONG, struct.pack('<I', 8), count=1)
    metadata = TIFFParser(tiff).read()
    assert metadata.find_node('/ifd/exif') is None


@pytest.mark.parametrize('data', [b'', b'II', b'XX*\x00\x08\x00\x00\x00', b'II+\x00\x08\x00\x00\x00'])
def test_invalid_headers(data):
    with pytest.raises(MetadataReadError):
        TIFFParser(data).read()


def test_floating_point_tags_are_written_as_doubles():
    tiff_metadata = MetadataNode('tiff')
    tiff_metadata.set_query('/ifd/exif/{ushort=37377}', float('nan'))
    tiff_metadata.set_query('/ifd/exif/{ushort=37378}', float('-inf'))
    tiff_metadata.set_query('/ifd/exif/{ushort=50000}', [0.5, 2.25])

    codec = ImageCodec()
    exif = codec.decode(file_data=codec.encode(tiff_metadata, 'tiff')).metadata.find_node('/ifd/exif')

    assert math.isnan(exif.get_query('/{ushort=37377}'))
    assert exif.get_query('/{ushort=37378}') == float('-inf')
    assert exif.get_query('/{ushort=50000}') == [0.5, 2.25]
