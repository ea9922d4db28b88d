# Copyright 2025 DNAi inc.

# Dual-licensed under the DNAi Free License v1.1 and the
# DNAi Commercial License v1.1.
# See the LICENSE files in the project root for details.

"""
TIFF encoder

This module writes a single-strip, uncompressed Gray8 TIFF carrying the
metadata of a "tiff" metadata tree. It is what the XMP packet round-trip
and the persistence check encode to; pixel data beyond a tiny placeholder
image is out of its scope.

File layout:

    header | IFD0 + values | pixel strip | EXIF IFD + values | GPS IFD + values

Copyright 2025 DNAi inc.
"""

import logging
import re
import struct
from typing import Any, Dict, List, NamedTuple, Optional, Tuple

from metabridge.config import ConversionConfig, resolve_config
from metabridge.exceptions import MetadataWriteError
from metabridge.iptc_writer import IPTCWriter
from metabridge.metadata_node import MetadataNode, segment_name
from metabridge.tiff_parser import (
    EXIF_IFD_POINTER,
    GPS_IFD_POINTER,
    IPTC_TAG,
    PHOTOSHOP_TAG,
    USER_COMMENT_ASCII,
    USER_COMMENT_TAG,
    USER_COMMENT_UNICODE,
)
from metabridge.tiff_structure import TIFF_SIGNATURE, Rational, TIFFDataType
from metabridge.xmp_writer import XMPWriter

logger = logging.getLogger(__name__)

IMAGE_WIDTH = 256
IMAGE_LENGTH = 257
BITS_PER_SAMPLE = 258
COMPRESSION = 259
PHOTOMETRIC_INTERPRETATION = 262
STRIP_OFFSETS = 273
SAMPLES_PER_PIXEL = 277
ROWS_PER_STRIP = 278
STRIP_BYTE_COUNTS = 279
X_RESOLUTION = 282
Y_RESOLUTION = 283
RESOLUTION_UNIT = 296

# Tags the writer owns; values of these found in the tree are not copied
RESERVED_TAGS = {
    IMAGE_WIDTH, IMAGE_LENGTH, BITS_PER_SAMPLE, COMPRESSION,
    PHOTOMETRIC_INTERPRETATION, STRIP_OFFSETS, SAMPLES_PER_PIXEL,
    ROWS_PER_STRIP, STRIP_BYTE_COUNTS, X_RESOLUTION, Y_RESOLUTION,
    RESOLUTION_UNIT, EXIF_IFD_POINTER, GPS_IFD_POINTER, IPTC_TAG,
    PHOTOSHOP_TAG,
}

_TAG_SEGMENT_RE = re.compile(r'\{ushort=(\d+)\}$')


class _Entry(NamedTuple):
    tag: int
    type: int
    count: int
    data: bytes


def _tag_id(segment: str) -> Optional[int]:
    match = _TAG_SEGMENT_RE.match(segment_name(segment))
    if match is None:
        return None
    tag_id = int(match.group(1))
    return tag_id if tag_id <= 0xFFFF else None


def _pad(data: bytearray) -> None:
    # IFDs and values start on word boundaries
    if len(data) % 2:
        data.append(0)


class TIFFWriter:
    """
    Writes metadata trees as single-strip Gray8 TIFF files.
    """

    def __init__(self, config: Optional[ConversionConfig] = None):
        """
        Initialize TIFF writer.

        Args:
            config: Conversion configuration (byte order, XMP tag, resolution)
        """
        self.config = resolve_config(config)
        self.endian = self.config.tiff_byte_order
        self.xmp_writer = XMPWriter()
        self.iptc_writer = IPTCWriter()

    def write(
        self,
        metadata: Optional[MetadataNode],
        pixels: Optional[bytes] = None,
        width: Optional[int] = None,
        height: Optional[int] = None
    ) -> bytes:
        """
        Encode a TIFF file.

        Args:
            metadata: "tiff" metadata tree (IFD0 subtree at "/ifd"), or None
                to write the image without metadata
            pixels: Gray8 pixel bytes, one per pixel
            width: Image width
            height: Image height

        Returns:
            Complete TIFF file as bytes

        Raises:
            MetadataWriteError: If the image parameters are inconsistent
        """
        pixels = self.config.synthetic_pixels if pixels is None else bytes(pixels)
        width = self.config.synthetic_width if width is None else width
        height = self.config.synthetic_height if height is None else height
        if width <= 0 or height <= 0 or len(pixels) != width * height:
            raise MetadataWriteError(
                f"Expected {width}x{height} Gray8 pixels, got {len(pixels)} bytes"
            )

        ifd = metadata.find_node('/ifd') if metadata is not None else None

        exif_entries = self._build_sub_ifd(ifd, '/exif')
        gps_entries = self._build_sub_ifd(ifd, '/gps')

        ifd0 = self._build_image_entries(width, height, len(pixels))
        if ifd is not None:
            ifd0.update(self._build_metadata_entries(ifd))
        if exif_entries:
            ifd0[EXIF_IFD_POINTER] = self._long_entry(EXIF_IFD_POINTER, 0)
        if gps_entries:
            ifd0[GPS_IFD_POINTER] = self._long_entry(GPS_IFD_POINTER, 0)

        # Pointer values are inline LONGs, so sizes are known before offsets
        ifd0_offset = 8
        pixel_offset = ifd0_offset + self._ifd_size(ifd0.values())
        exif_offset = pixel_offset + len(pixels) + (len(pixels) % 2)
        gps_offset = exif_offset + (self._ifd_size(exif_entries) if exif_entries else 0)

        ifd0[STRIP_OFFSETS] = self._long_entry(STRIP_OFFSETS, pixel_offset)
        if exif_entries:
            ifd0[EXIF_IFD_POINTER] = self._long_entry(EXIF_IFD_POINTER, exif_offset)
        if gps_entries:
            ifd0[GPS_IFD_POINTER] = self._long_entry(GPS_IFD_POINTER, gps_offset)

        tiff = bytearray(b'II' if self.endian == '<' else b'MM')
        tiff.extend(struct.pack(f'{self.endian}H', TIFF_SIGNATURE))
        tiff.extend(struct.pack(f'{self.endian}I', ifd0_offset))
        tiff.extend(self._write_ifd(list(ifd0.values()), ifd0_offset))
        tiff.extend(pixels)
        _pad(tiff)
        if exif_entries:
            tiff.extend(self._write_ifd(exif_entries, exif_offset))
        if gps_entries:
            tiff.extend(self._write_ifd(gps_entries, gps_offset))

        return bytes(tiff)

    def _build_image_entries(self, width: int, height: int, strip_size: int) -> Dict[int, _Entry]:
        resolution = Rational(self.config.synthetic_dpi, 1)
        image_tags = [
            (IMAGE_WIDTH, width),
            (IMAGE_LENGTH, height),
            (BITS_PER_SAMPLE, 8),
            (COMPRESSION, 1),
            (PHOTOMETRIC_INTERPRETATION, 1),
            (SAMPLES_PER_PIXEL, 1),
            (ROWS_PER_STRIP, height),
            (STRIP_BYTE_COUNTS, strip_size),
            (X_RESOLUTION, resolution),
            (Y_RESOLUTION, resolution),
            (RESOLUTION_UNIT, 2),
        ]
        entries = {}
        for tag_id, value in image_tags:
            tag_type, encoded_value, count = self._encode_tag_value(value)
            entries[tag_id] = _Entry(tag_id, tag_type, count, encoded_value)
        entries[STRIP_OFFSETS] = self._long_entry(STRIP_OFFSETS, 0)
        return entries

    def _build_metadata_entries(self, ifd: MetadataNode) -> Dict[int, _Entry]:
        """IFD0 entries for the scalars and embedded blocks of an IFD0 subtree."""
        entries = {}

        for tag_id, value in self._scalar_tags(ifd):
            if tag_id in RESERVED_TAGS or tag_id == self.config.xmp_tag_id:
                continue
            entry = self._entry(tag_id, value)
            if entry is not None:
                entries[tag_id] = entry

        xmp = ifd.get_query('/xmp')
        if xmp is not None:
            packet = self._xmp_packet(xmp)
            if packet:
                entries[self.config.xmp_tag_id] = _Entry(
                    self.config.xmp_tag_id, TIFFDataType.UNDEFINED, len(packet), packet
                )

        iptc = ifd.find_node('/iptc')
        if iptc is None:
            iptc = ifd.find_node('/irb/8bimiptc/iptc')
        if iptc is not None:
            iptc_data = self.iptc_writer.build_iptc_data(iptc)
            if iptc_data:
                entries[IPTC_TAG] = _Entry(IPTC_TAG, TIFFDataType.UNDEFINED, len(iptc_data), iptc_data)

        return entries

    def _build_sub_ifd(self, ifd: Optional[MetadataNode], query: str) -> List[_Entry]:
        sub_ifd = ifd.find_node(query) if ifd is not None else None
        if sub_ifd is None:
            return []
        entries = []
        for tag_id, value in self._scalar_tags(sub_ifd):
            entry = self._entry(tag_id, value)
            if entry is not None:
                entries.append(entry)
        return entries

    def _scalar_tags(self, node: MetadataNode) -> List[Tuple[int, Any]]:
        tags = []
        for segment, value in node.items():
            tag_id = _tag_id(segment)
            if tag_id is None or isinstance(value, MetadataNode):
                logger.debug(f"Not writing {node.format} entry {segment}")
                continue
            tags.append((tag_id, value))
        return tags

    def _xmp_packet(self, xmp: Any) -> Optional[bytes]:
        if isinstance(xmp, MetadataNode):
            return self.xmp_writer.build_xmp_packet(xmp)
        if isinstance(xmp, (bytes, bytearray)):
            return bytes(xmp)
        if isinstance(xmp, str):
            return xmp.encode('utf-8')
        logger.debug(f"Unsupported XMP value type: {type(xmp).__name__}")
        return None

    def _entry(self, tag_id: int, value: Any) -> Optional[_Entry]:
        if tag_id == USER_COMMENT_TAG and isinstance(value, str):
            encoded_value = self._encode_user_comment(value)
            return _Entry(tag_id, TIFFDataType.UNDEFINED, len(encoded_value), encoded_value)
        tag_type, encoded_value, count = self._encode_tag_value(value)
        if tag_type is None:
            logger.debug(f"Cannot encode value of tag {tag_id}: {value!r}")
            return None
        return _Entry(tag_id, tag_type, count, encoded_value)

    def _long_entry(self, tag_id: int, value: int) -> _Entry:
        return _Entry(tag_id, TIFFDataType.LONG, 1, struct.pack(f'{self.endian}I', value))

    def _encode_user_comment(self, comment: str) -> bytes:
        try:
            return USER_COMMENT_ASCII + comment.encode('ascii')
        except UnicodeEncodeError:
            encoding = 'utf-16-le' if self.endian == '<' else 'utf-16-be'
            return USER_COMMENT_UNICODE + comment.encode(encoding)

    def _encode_tag_value(self, value: Any) -> Tuple[Optional[int], bytes, int]:
        """
        Encode a tag value to binary format.

        Args:
            value: Tag value (str, bytes, int, float, Rational or a list of those)

        Returns:
            Tuple of (tag_type, encoded_bytes, count); tag_type is None for
            values that cannot be encoded
        """
        endian = self.endian

        if isinstance(value, Rational):
            if value.numerator >= 0 and value.denominator >= 0:
                return TIFFDataType.RATIONAL, struct.pack(f'{endian}II', *value), 1
            return TIFFDataType.SRATIONAL, struct.pack(f'{endian}ii', *value), 1

        if isinstance(value, str):
            try:
                encoded = value.encode('ascii') + b'\x00'
            except UnicodeEncodeError:
                encoded = value.encode('utf-8') + b'\x00'
            return TIFFDataType.ASCII, encoded, len(encoded)

        if isinstance(value, (bytes, bytearray)):
            return TIFFDataType.UNDEFINED, bytes(value), len(value)

        if isinstance(value, int):
            if 0 <= value <= 0xFFFF:
                return TIFFDataType.SHORT, struct.pack(f'{endian}H', value), 1
            if 0 <= value <= 0xFFFFFFFF:
                return TIFFDataType.LONG, struct.pack(f'{endian}I', value), 1
            if -0x80000000 <= value < 0:
                return TIFFDataType.SLONG, struct.pack(f'{endian}i', value), 1
            return None, b'', 0

        if isinstance(value, float):
            # Decoded FLOAT and DOUBLE tags; NaN and infinities pack as IEEE values
            return TIFFDataType.DOUBLE, struct.pack(f'{endian}d', value), 1

        if isinstance(value, (list, tuple)):
            if not value:
                return None, b'', 0
            if all(isinstance(v, Rational) for v in value):
                if all(v.numerator >= 0 and v.denominator >= 0 for v in value):
                    code, tag_type = 'II', TIFFDataType.RATIONAL
                else:
                    code, tag_type = 'ii', TIFFDataType.SRATIONAL
                encoded = b''.join(struct.pack(f'{endian}{code}', *v) for v in value)
                return tag_type, encoded, len(value)
            if all(isinstance(v, int) for v in value):
                if all(0 <= v <= 0xFFFF for v in value):
                    return TIFFDataType.SHORT, struct.pack(f'{endian}{len(value)}H', *value), len(value)
                if all(0 <= v <= 0xFFFFFFFF for v in value):
                    return TIFFDataType.LONG, struct.pack(f'{endian}{len(value)}I', *value), len(value)
                return None, b'', 0
            if all(isinstance(v, float) for v in value):
                return TIFFDataType.DOUBLE, struct.pack(f'{endian}{len(value)}d', *value), len(value)
            if all(isinstance(v, str) for v in value):
                # Array of strings - join with null separator
                encoded = b'\x00'.join(v.encode('utf-8') for v in value) + b'\x00'
                return TIFFDataType.ASCII, encoded, len(encoded)

        return None, b'', 0

    @staticmethod
    def _ifd_size(entries) -> int:
        entries = list(entries)
        size = 2 + len(entries) * 12 + 4
        for entry in entries:
            if len(entry.data) > 4:
                size += len(entry.data) + (len(entry.data) % 2)
        return size

    def _write_ifd(self, entries: List[_Entry], ifd_offset: int) -> bytes:
        """
        Write an IFD followed by its out-of-line values.

        Args:
            entries: IFD entries (sorted by tag here)
            ifd_offset: Absolute offset the IFD will be written at

        Returns:
            IFD bytes
        """
        entries = sorted(entries, key=lambda e: e.tag)
        data_offset = ifd_offset + 2 + len(entries) * 12 + 4

        ifd = bytearray(struct.pack(f'{self.endian}H', len(entries)))
        data = bytearray()
        for entry in entries:
            ifd.extend(struct.pack(f'{self.endian}HHI', entry.tag, int(entry.type), entry.count))
            if len(entry.data) <= 4:
                ifd.extend(entry.data.ljust(4, b'\x00'))
            else:
                ifd.extend(struct.pack(f'{self.endian}I', data_offset + len(data)))
                data.extend(entry.data)
                _pad(data)

        # Offset to next IFD (0 = no more IFDs)
        ifd.extend(struct.pack(f'{self.endian}I', 0))
        return bytes(ifd + data)
