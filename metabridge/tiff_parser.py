# Copyright 2025 DNAi inc.

# Dual-licensed under the DNAi Free License v1.1 and the
# DNAi Commercial License v1.1.
# See the LICENSE files in the project root for details.

"""
TIFF metadata decoder

This module decodes the metadata of TIFF-structured buffers (TIFF files,
JPEG XR files and the EXIF payload of JPEG APP1 segments) into a metadata
tree. IFD0 scalars are stored at "/ifd/{ushort=N}" and the sub-IFDs and
embedded blocks below it:

    34665 EXIF IFD          -> /ifd/exif   (40965 Interop IFD -> /ifd/exif/interop)
    34853 GPS IFD           -> /ifd/gps
    700   XMP packet        -> /ifd/xmp
    33723 IPTC-NAA          -> /ifd/iptc
    34377 Photoshop IRB     -> /ifd/irb/8bimiptc/iptc

Copyright 2025 DNAi inc.
"""

import logging
import struct
from typing import Any, List, Optional, Set

from metabridge.binary_cursor import BinaryCursor
from metabridge.exceptions import MetadataReadError, TruncatedInputError
from metabridge.iptc_parser import extract_iptc_from_photoshop, parse_iptc_data
from metabridge.metadata_node import MetadataNode
from metabridge.tiff_structure import (
    LITTLE_ENDIAN_BYTE_ORDER,
    TIFF_SIGNATURE,
    IFDEntry,
    Rational,
    TIFFDataType,
)
from metabridge.xmp_parser import parse_xmp_packet

logger = logging.getLogger(__name__)

JPEG_XR_SIGNATURE = 0x01BC

EXIF_IFD_POINTER = 34665
GPS_IFD_POINTER = 34853
INTEROP_IFD_POINTER = 40965
XMP_TAG = 700
IPTC_TAG = 33723
PHOTOSHOP_TAG = 34377
USER_COMMENT_TAG = 37510

# Character code prefixes of the EXIF UserComment field
USER_COMMENT_ASCII = b'ASCII\x00\x00\x00'
USER_COMMENT_UNICODE = b'UNICODE\x00'
USER_COMMENT_UNDEFINED = b'\x00' * 8

MAX_IFD_ENTRIES = 4096


def tag_key(tag_id: int) -> str:
    """Query segment of a numeric TIFF tag."""
    return f'/{{ushort={tag_id}}}'


def decode_user_comment(raw: bytes, little_endian: bool = True) -> Optional[str]:
    """
    Decode an EXIF UserComment value.

    Args:
        raw: Field bytes, starting with the 8-byte character code
        little_endian: Byte order of UTF-16 text

    Returns:
        Comment text, or None for an unsupported character code
    """
    header = raw[:8]
    body = raw[8:]
    if header == USER_COMMENT_ASCII:
        return body.decode('ascii', errors='replace').rstrip('\x00')
    if header == USER_COMMENT_UNICODE:
        if body[:2] == b'\xff\xfe':
            return body[2:].decode('utf-16-le', errors='replace').rstrip('\x00')
        if body[:2] == b'\xfe\xff':
            return body[2:].decode('utf-16-be', errors='replace').rstrip('\x00')
        encoding = 'utf-16-le' if little_endian else 'utf-16-be'
        return body.decode(encoding, errors='replace').rstrip('\x00')
    if header == USER_COMMENT_UNDEFINED:
        return body.decode('utf-8', errors='replace').rstrip('\x00')
    return None


class TIFFParser:
    """
    Decoder for TIFF-structured metadata.

    Malformed sub-IFDs and embedded blocks are skipped; only an unreadable
    header is an error.
    """

    def __init__(self, file_data: bytes, container_format: Optional[str] = None):
        """
        Initialize TIFF parser.

        Args:
            file_data: TIFF-structured bytes
            container_format: Format code of the result; detected from the
                header when None ("tiff" or "wmphoto")
        """
        if file_data is None:
            raise ValueError("file_data must not be None")
        self.file_data = bytes(file_data)
        self.container_format = container_format
        self.little_endian = True
        self._visited: Set[int] = set()

    def read(self) -> MetadataNode:
        """
        Decode the buffer.

        Returns:
            Metadata tree with the IFD0 subtree at "/ifd"

        Raises:
            MetadataReadError: If the buffer has no TIFF header
        """
        cursor = BinaryCursor(self.file_data)
        try:
            byte_order = cursor.read_u16(little_endian=False)
            if byte_order not in (LITTLE_ENDIAN_BYTE_ORDER, 0x4D4D):
                raise MetadataReadError(f"Invalid TIFF byte order: {byte_order:#06x}")
            self.little_endian = byte_order == LITTLE_ENDIAN_BYTE_ORDER

            signature = cursor.read_u16(self.little_endian)
            if signature == TIFF_SIGNATURE:
                detected = 'tiff'
            elif signature == JPEG_XR_SIGNATURE and self.little_endian:
                detected = 'wmphoto'
            else:
                raise MetadataReadError(f"Invalid TIFF signature: {signature}")

            ifd0_offset = cursor.read_u32(self.little_endian)
        except TruncatedInputError as e:
            raise MetadataReadError(f"Truncated TIFF header: {e}")

        metadata = MetadataNode(self.container_format or detected)
        ifd0 = self.read_ifd(ifd0_offset, 'ifd')
        if ifd0 is not None and len(ifd0):
            metadata.set_query('/ifd', ifd0)
        return metadata

    def read_ifd(self, offset: int, node_format: str) -> Optional[MetadataNode]:
        """
        Decode one IFD and the blocks it points to.

        Args:
            offset: IFD offset from the start of the buffer
            node_format: Format of the resulting node ("ifd", "exif", ...)

        Returns:
            IFD subtree, or None if the offset is invalid or already visited
        """
        if offset in self._visited or offset <= 0 or offset + 2 > len(self.file_data):
            logger.debug(f"Skipping {node_format} IFD at offset {offset}")
            return None
        self._visited.add(offset)

        cursor = BinaryCursor(self.file_data)
        node = MetadataNode(node_format)
        try:
            cursor.seek(offset)
            entry_count = cursor.read_u16(self.little_endian)
            if entry_count > MAX_IFD_ENTRIES:
                logger.debug(f"Implausible entry count {entry_count} in {node_format} IFD")
                return None
            entries = [IFDEntry.read(cursor, self.little_endian) for _ in range(entry_count)]
        except TruncatedInputError as e:
            logger.debug(f"Truncated {node_format} IFD: {e}")
            return None

        for entry in entries:
            self._read_entry(entry, node)
        return node

    def _read_entry(self, entry: IFDEntry, node: MetadataNode) -> None:
        if entry.tag == EXIF_IFD_POINTER and node.format == 'ifd':
            self._read_sub_ifd(entry, node, '/exif', 'exif')
        elif entry.tag == GPS_IFD_POINTER and node.format == 'ifd':
            self._read_sub_ifd(entry, node, '/gps', 'gps')
        elif entry.tag == INTEROP_IFD_POINTER and node.format == 'exif':
            self._read_sub_ifd(entry, node, '/interop', 'interop')
        elif entry.tag == XMP_TAG:
            self._read_xmp(entry, node)
        elif entry.tag == IPTC_TAG:
            self._read_iptc(entry, node)
        elif entry.tag == PHOTOSHOP_TAG:
            self._read_photoshop(entry, node)
        else:
            value = self._read_value(entry)
            if value is not None:
                node.set_query(tag_key(entry.tag), value)

    def _read_sub_ifd(self, entry: IFDEntry, node: MetadataNode, query: str, node_format: str) -> None:
        sub_ifd_offset = self._read_value(entry)
        if isinstance(sub_ifd_offset, list):
            sub_ifd_offset = sub_ifd_offset[0] if sub_ifd_offset else None
        if not isinstance(sub_ifd_offset, int):
            return
        sub_ifd = self.read_ifd(sub_ifd_offset, node_format)
        if sub_ifd is not None:
            node.set_query(query, sub_ifd)

    def _read_xmp(self, entry: IFDEntry, node: MetadataNode) -> None:
        packet = self._read_raw(entry)
        if not packet:
            return
        try:
            node.set_query('/xmp', parse_xmp_packet(packet))
        except MetadataReadError as e:
            logger.debug(f"Keeping unparseable XMP packet as bytes: {e}")
            node.set_query('/xmp', packet)

    def _read_iptc(self, entry: IFDEntry, node: MetadataNode) -> None:
        iptc_data = self._read_raw(entry)
        if not iptc_data:
            return
        iptc = parse_iptc_data(iptc_data)
        if len(iptc):
            node.set_query('/iptc', iptc)

    def _read_photoshop(self, entry: IFDEntry, node: MetadataNode) -> None:
        resource_data = self._read_raw(entry)
        if not resource_data:
            return
        iptc_data = extract_iptc_from_photoshop(resource_data)
        if not iptc_data:
            logger.debug("Photoshop resources carry no IPTC block")
            return
        iptc = parse_iptc_data(iptc_data)
        if len(iptc):
            node.set_query('/irb/8bimiptc/iptc', iptc)

    def _read_raw(self, entry: IFDEntry) -> Optional[bytes]:
        """Return the value bytes of an entry, or None if out of bounds."""
        size = entry.value_size()
        if size is None:
            return None
        if size <= 4:
            return entry.inline_bytes(self.little_endian)[:size]
        if entry.value_offset + size > len(self.file_data):
            logger.debug(f"Value of tag {entry.tag} is out of bounds")
            return None
        return self.file_data[entry.value_offset:entry.value_offset + size]

    def _read_value(self, entry: IFDEntry) -> Any:
        """
        Decode the value of an entry.

        Single values are returned as scalars, multiple values as lists;
        BYTE and UNDEFINED arrays stay bytes.
        """
        data = self._read_raw(entry)
        if data is None:
            return None

        endian = '<' if self.little_endian else '>'
        count = entry.count
        data_type = TIFFDataType(entry.type)

        if data_type == TIFFDataType.ASCII:
            null_pos = data.find(b'\x00')
            string_data = data[:null_pos] if null_pos >= 0 else data
            try:
                return string_data.decode('utf-8')
            except UnicodeDecodeError:
                return string_data.decode('latin-1')

        if data_type == TIFFDataType.UNDEFINED:
            if entry.tag == USER_COMMENT_TAG:
                comment = decode_user_comment(data, self.little_endian)
                if comment is not None:
                    return comment
            return data

        if data_type == TIFFDataType.BYTE:
            return data[0] if count == 1 else data

        if data_type in (TIFFDataType.RATIONAL, TIFFDataType.SRATIONAL):
            code = 'I' if data_type == TIFFDataType.RATIONAL else 'i'
            values: List[Any] = [
                Rational(*struct.unpack(f'{endian}{code}{code}', data[i * 8:(i + 1) * 8]))
                for i in range(count)
            ]
        else:
            code = {
                TIFFDataType.SBYTE: 'b',
                TIFFDataType.SHORT: 'H',
                TIFFDataType.SSHORT: 'h',
                TIFFDataType.LONG: 'I',
                TIFFDataType.SLONG: 'i',
                TIFFDataType.FLOAT: 'f',
                TIFFDataType.DOUBLE: 'd',
            }[data_type]
            values = list(struct.unpack(f'{endian}{count}{code}', data))

        if count == 1:
            return values[0]
        return values
