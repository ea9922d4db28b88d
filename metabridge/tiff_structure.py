# Copyright 2025 DNAi inc.

# Dual-licensed under the DNAi Free License v1.1 and the
# DNAi Commercial License v1.1.
# See the LICENSE files in the project root for details.

"""
Minimal TIFF/IFD scanner

This module walks the first Image File Directory of a TIFF-structured
buffer to pull the raw bytes of one tag. It is a best-effort extractor,
not a TIFF validator: any truncation gives up and reports absence.

Copyright 2025 DNAi inc.
"""

import logging
import struct
from enum import IntEnum
from typing import BinaryIO, Iterable, NamedTuple, Optional, Union

from metabridge.binary_cursor import BinaryCursor
from metabridge.exceptions import TruncatedInputError

logger = logging.getLogger(__name__)

LITTLE_ENDIAN_BYTE_ORDER = 0x4949  # "II"
TIFF_SIGNATURE = 42
XMP_TAG = 700


class TIFFDataType(IntEnum):
    """TIFF 6.0 field types"""
    BYTE = 1
    ASCII = 2
    SHORT = 3
    LONG = 4
    RATIONAL = 5
    SBYTE = 6
    UNDEFINED = 7
    SSHORT = 8
    SLONG = 9
    SRATIONAL = 10
    FLOAT = 11
    DOUBLE = 12


# Field sizes in bytes
TYPE_SIZES = {
    TIFFDataType.BYTE: 1,
    TIFFDataType.ASCII: 1,
    TIFFDataType.SHORT: 2,
    TIFFDataType.LONG: 4,
    TIFFDataType.RATIONAL: 8,
    TIFFDataType.SBYTE: 1,
    TIFFDataType.UNDEFINED: 1,
    TIFFDataType.SSHORT: 2,
    TIFFDataType.SLONG: 4,
    TIFFDataType.SRATIONAL: 8,
    TIFFDataType.FLOAT: 4,
    TIFFDataType.DOUBLE: 8,
}

PACKET_TYPES = (TIFFDataType.BYTE, TIFFDataType.UNDEFINED)


class Rational(NamedTuple):
    """RATIONAL / SRATIONAL field value."""
    numerator: int
    denominator: int

    def __float__(self) -> float:
        return self.numerator / self.denominator if self.denominator else 0.0

    def __str__(self) -> str:
        return f"{self.numerator}/{self.denominator}"


class IFDEntry(NamedTuple):
    """One 12-byte IFD entry."""
    tag: int
    type: int
    count: int
    value_offset: int

    @classmethod
    def read(cls, cursor: BinaryCursor, little_endian: bool) -> 'IFDEntry':
        """Read an entry at the cursor position (tag, type, count, offset)."""
        tag = cursor.read_u16(little_endian)
        data_type = cursor.read_u16(little_endian)
        count = cursor.read_u32(little_endian)
        value_offset = cursor.read_u32(little_endian)
        return cls(tag, data_type, count, value_offset)

    def value_size(self) -> Optional[int]:
        """Total value size in bytes, or None for an unknown field type."""
        try:
            return TYPE_SIZES[TIFFDataType(self.type)] * self.count
        except ValueError:
            return None

    def inline_bytes(self, little_endian: bool) -> bytes:
        """The raw 4-byte value field, as stored in the file."""
        endian = '<' if little_endian else '>'
        return struct.pack(f'{endian}I', self.value_offset)


def extract_tag_packet(
    source: Union[bytes, bytearray, BinaryIO],
    tag_id: int,
    accepted_types: Iterable[int] = PACKET_TYPES
) -> Optional[bytes]:
    """
    Extract the raw bytes of a tag from the first IFD of a TIFF buffer.

    Any byte-order marker other than "II" is read as big-endian; "MM" is
    not checked for.

    BYTE and UNDEFINED values of four bytes or less are read from the
    entry's value field itself, not by seeking to it as an offset.

    Args:
        source: TIFF bytes or a seekable binary stream
        tag_id: Numeric tag to look for
        accepted_types: Field types the tag may have

    Returns:
        The tag's bytes, or None if the buffer is not a TIFF we recognize,
        the tag is missing, or the buffer is truncated
    """
    accepted = {int(t) for t in accepted_types}
    cursor = BinaryCursor(source)

    try:
        cursor.seek(0)
        byte_order = cursor.read_u16(little_endian=False)
        little_endian = byte_order == LITTLE_ENDIAN_BYTE_ORDER

        signature = cursor.read_u16(little_endian)
        if signature != TIFF_SIGNATURE:
            logger.debug(f"Not a TIFF buffer (signature {signature})")
            return None

        ifd_offset = cursor.read_u32(little_endian)
        cursor.seek(ifd_offset)

        entry_count = cursor.read_u16(little_endian)
        for _ in range(entry_count):
            entry = IFDEntry.read(cursor, little_endian)
            if entry.tag == tag_id and entry.type in accepted:
                # BYTE/UNDEFINED values of up to 4 bytes live in the offset field
                if entry.count <= 4:
                    return entry.inline_bytes(little_endian)[:entry.count]
                cursor.seek(entry.value_offset)
                return cursor.read_bytes(entry.count)
    except TruncatedInputError as e:
        logger.debug(f"TIFF scan for tag {tag_id} gave up: {e}")
        return None

    return None


def extract_xmp_packet(source: Union[bytes, bytearray, BinaryIO]) -> Optional[bytes]:
    """Extract the XMP packet (tag 700) from a TIFF buffer."""
    return extract_tag_packet(source, XMP_TAG)
