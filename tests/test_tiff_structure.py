# Copyright 2025 DNAi inc.

# Dual-licensed under the DNAi Free License v1.1 and the
# DNAi Commercial License v1.1.
# See the LICENSE files in the project root for details.

import io
import struct

import pytest

from conftest import single_tag_tiff
from metabridge.tiff_structure import (
    IFDEntry,
    Rational,
    TIFFDataType,
    extract_tag_packet,
    extract_xmp_packet,
)

PACKET = b'<x:xmpmeta xmlns:x="adobe:ns:meta/"></x:xmpmeta>'


@pytest.mark.parametrize('byte_order', [b'II', b'MM'])
def test_extracts_out_of_line_packet(byte_order):
    tiff = single_tag_tiff(700, TIFFDataType.UNDEFINED, PACKET, byte_order)
    assert extract_xmp_packet(tiff) == PACKET


def test_extracts_byte_typed_tag():
    tiff = single_tag_tiff(700, TIFFDataType.BYTE, PACKET)
    assert extract_tag_packet(tiff, 700) == PACKET


def test_reads_from_stream():
    tiff = single_tag_tiff(700, TIFFDataType.UNDEFINED, PACKET)
    assert extract_tag_packet(io.BytesIO(tiff), 700) == PACKET


def test_inline_value_of_four_bytes_or_less():
    tiff = single_tag_tiff(700, TIFFDataType.UNDEFINED, b'abc')
    assert extract_tag_packet(tiff, 700) == b'abc', "Short values live in the offset field"


def test_missing_tag_is_none():
    tiff = single_tag_tiff(270, TIFFDataType.UNDEFINED, PACKET)
    assert extract_tag_packet(tiff, 700) is None


def test_wrong_type_is_skipped():
    tiff = single_tag_tiff(700, TIFFDataType.ASCII, PACKET)
    assert extract_tag_packet(tiff, 700) is None


def test_accepted_types_can_be_widened():
    tiff = single_tag_tiff(270, TIFFDataType.ASCII, b'caption\x00')
    assert extract_tag_packet(tiff, 270, accepted_types=[TIFFDataType.ASCII]) == b'caption\x00'


def test_wrong_signature_is_none():
    tiff = bytearray(single_tag_tiff(700, TIFFDataType.UNDEFINED, PACKET))
    tiff[2:4] = struct.pack('<H', 43)
    assert extract_tag_packet(bytes(tiff), 700) is None


def test_unknown_marker_reads_big_endian():
    tiff = single_tag_tiff(700, TIFFDataType.UNDEFINED, PACKET, byte_order=b'XX')
    assert extract_tag_packet(tiff, 700) == PACKET, "Any marker other than II is big-endian"


def test_unknown_marker_with_short_buffer_is_none():
    # Header and entry count, but the buffer ends inside the first entry
    buffer = b'ZZ' + struct.pack('>HI', 42, 8) + struct.pack('>H', 1) + b'\x02\xbc\x00'
    assert extract_tag_packet(buffer, 700) is None


@pytest.mark.parametrize('buffer', [b'', b'I', b'II*\x00', b'II*\x00\x08\x00\x00\x00'])
def test_truncated_buffers_are_none(buffer):
    assert extract_tag_packet(buffer, 700) is None


def test_value_past_end_is_none():
    tiff = single_tag_tiff(700, TIFFDataType.UNDEFINED, PACKET)
    assert extract_tag_packet(tiff[:-5], 700) is None


def test_ifd_entry_sizes():
    entry = IFDEntry(282, TIFFDataType.RATIONAL, 2, 0)
    assert entry.value_size() == 16
    assert IFDEntry(1, 99, 1, 0).value_size() is None
    assert IFDEntry(1, 7, 4, 0x64636261).inline_bytes(little_endian=True) == b'abcd'


def test_rational_value():
    assert float(Rational(1, 4)) == 0.25
    assert float(Rational(1, 0)) == 0.0
    assert str(Rational(96, 1)) == '96/1'
