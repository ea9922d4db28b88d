# Copyright 2025 DNAi inc.

# Dual-licensed under the DNAi Free License v1.1 and the
# DNAi Commercial License v1.1.
# See the LICENSE files in the project root for details.

"""
Shared fixtures and byte builders for the metabridge tests.

Container bytes are assembled here by hand; the tests use no sample files.

Copyright 2025 DNAi inc.
"""

import struct
import zlib

import pytest

from metabridge.metadata_node import MetadataNode
from metabridge.xmp_packet import SyntheticTIFFTranscoder

USER_COMMENT = '/{ushort=37510}'


def single_tag_tiff(tag: int, data_type: int, payload: bytes, byte_order: bytes = b'II', count: int = None) -> bytes:
    """TIFF with one IFD0 entry; count defaults to len(payload) (1-byte types)."""
    endian = '<' if byte_order == b'II' else '>'
    header = byte_order + struct.pack(f'{endian}HI', 42, 8)
    data_offset = 8 + 2 + 12 + 4
    if len(payload) <= 4:
        value_field = payload.ljust(4, b'\x00')
        data = b''
    else:
        value_field = struct.pack(f'{endian}I', data_offset)
        data = payload
    ifd = struct.pack(f'{endian}HHHI', 1, tag, data_type, len(payload) if count is None else count) + value_field + struct.pack(f'{endian}I', 0)
    return header + ifd + data


def jpeg_segment(marker: int, payload: bytes) -> bytes:
    return bytes([0xFF, marker]) + struct.pack('>H', len(payload) + 2) + payload


def build_jpeg(*segments: bytes) -> bytes:
    """SOI + segments + a minimal scan + EOI."""
    scan = jpeg_segment(0xDA, b'\x01\x01\x00\x00\x3f\x00') + b'\x00\x00'
    return b'\xff\xd8' + b''.join(segments) + scan + b'\xff\xd9'


def photoshop_irb(iptc_data: bytes) -> bytes:
    """Photoshop 3.0 resource block holding one IPTC-NAA record."""
    resource = b'8BIM' + struct.pack('>H', 0x0404) + b'\x00\x00' + struct.pack('>I', len(iptc_data)) + iptc_data
    if len(iptc_data) % 2:
        resource += b'\x00'
    return b'Photoshop 3.0\x00' + resource


def iptc_dataset(dataset: int, value: bytes, record: int = 2) -> bytes:
    return bytes([0x1C, record, dataset]) + struct.pack('>H', len(value)) + value


def png_chunk(chunk_type: bytes, data: bytes) -> bytes:
    crc = zlib.crc32(chunk_type + data) & 0xFFFFFFFF
    return struct.pack('>I', len(data)) + chunk_type + data + struct.pack('>I', crc)


def itxt_chunk(keyword: str, text: str, compressed: bool = False) -> bytes:
    body = text.encode('utf-8')
    if compressed:
        body = zlib.compress(body)
    data = keyword.encode('latin-1') + b'\x00' + bytes([1 if compressed else 0, 0]) + b'\x00' + b'\x00' + body
    return png_chunk(b'iTXt', data)


def build_png(*chunks: bytes) -> bytes:
    ihdr = png_chunk(b'IHDR', struct.pack('>IIBBBBB', 1, 1, 8, 0, 0, 0, 0))
    idat = png_chunk(b'IDAT', zlib.compress(b'\x00\xff'))
    return b'\x89PNG\r\n\x1a\n' + ihdr + b''.join(chunks) + idat + png_chunk(b'IEND', b'')


@pytest.fixture
def transcoder():
    return SyntheticTIFFTranscoder()


@pytest.fixture
def exif_tree():
    exif = MetadataNode('exif')
    exif.set_query(USER_COMMENT, 'hello')
    exif.set_query('/{ushort=36867}', '2024:05:01 10:00:00')
    return exif


@pytest.fixture
def xmp_tree():
    xmp = MetadataNode('xmp')
    description = MetadataNode('xmpalt')
    description.set_query('/x-default', 'A quiet harbour')
    xmp.set_query('/dc:description', description)
    subject = MetadataNode('xmpbag')
    subject.set_query('/{ulong=0}', 'harbour')
    subject.set_query('/{ulong=1}', 'boats')
    xmp.set_query('/dc:subject', subject)
    xmp.set_query('/xmp:CreatorTool', 'metabridge tests')
    return xmp


@pytest.fixture
def iptc_tree():
    iptc = MetadataNode('iptc')
    iptc.set_query('/Caption', 'Harbour at dusk')
    iptc.set_query('/Keywords', ('harbour', 'boats'))
    return iptc


@pytest.fixture
def jpeg_metadata(exif_tree, xmp_tree, iptc_tree):
    jpeg = MetadataNode('jpg')
    jpeg.set_query('/app1/ifd/exif', exif_tree)
    jpeg.set_query('/xmp', xmp_tree)
    jpeg.set_query('/app13/irb/8bimiptc/iptc', iptc_tree)
    return jpeg
