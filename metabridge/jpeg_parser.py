# Copyright 2025 DNAi inc.

# Dual-licensed under the DNAi Free License v1.1 and the
# DNAi Commercial License v1.1.
# See the LICENSE files in the project root for details.

"""
JPEG metadata decoder

This module walks the marker segments of a JPEG file up to the first
scan and decodes the metadata-bearing ones:

    APP1 "Exif\\0\\0"                        -> /app1/ifd
    APP1 "http://ns.adobe.com/xap/1.0/\\0"   -> /xmp
    APP13 "Photoshop 3.0\\0" (IPTC in 8BIM)  -> /app13/irb/8bimiptc/iptc
    COM                                     -> /com/TextEntry

Copyright 2025 DNAi inc.
"""

import logging
import struct

from metabridge.exceptions import MetadataReadError
from metabridge.iptc_parser import extract_iptc_from_photoshop, parse_iptc_data
from metabridge.metadata_node import MetadataNode
from metabridge.tiff_parser import TIFFParser
from metabridge.xmp_parser import parse_xmp_packet

logger = logging.getLogger(__name__)

JPEG_SOI = b'\xff\xd8'
EXIF_HEADER = b'Exif\x00\x00'
XMP_HEADER = b'http://ns.adobe.com/xap/1.0/\x00'
PHOTOSHOP_HEADER = b'Photoshop 3.0\x00'

APP1_MARKER = 0xE1
APP13_MARKER = 0xED
COM_MARKER = 0xFE
SOS_MARKER = 0xDA
EOI_MARKER = 0xD9

# Markers without a length field
STANDALONE_MARKERS = {0x01, 0xD0, 0xD1, 0xD2, 0xD3, 0xD4, 0xD5, 0xD6, 0xD7, 0xD8}


class JPEGParser:
    """
    Decoder for JPEG metadata segments.
    """

    def __init__(self, file_data: bytes):
        """
        Initialize JPEG parser.

        Args:
            file_data: JPEG file bytes
        """
        if file_data is None:
            raise ValueError("file_data must not be None")
        self.file_data = bytes(file_data)

    def read(self) -> MetadataNode:
        """
        Decode the metadata segments.

        Returns:
            "jpg" metadata tree

        Raises:
            MetadataReadError: If the data does not start with a JPEG SOI marker
        """
        data = self.file_data
        if not data.startswith(JPEG_SOI):
            raise MetadataReadError("Not a JPEG file (missing SOI marker)")

        metadata = MetadataNode('jpg')
        offset = 2

        while offset + 2 <= len(data):
            if data[offset] != 0xFF:
                logger.debug(f"Lost JPEG marker sync at offset {offset}")
                break

            marker = data[offset + 1]
            if marker == 0xFF:
                # Fill byte
                offset += 1
                continue
            if marker in STANDALONE_MARKERS:
                offset += 2
                continue
            if marker in (SOS_MARKER, EOI_MARKER):
                break

            if offset + 4 > len(data):
                break
            length = struct.unpack('>H', data[offset + 2:offset + 4])[0]
            segment_end = offset + 2 + length
            if length < 2 or segment_end > len(data):
                logger.debug(f"Truncated JPEG segment {marker:#04x}")
                break

            payload = data[offset + 4:segment_end]
            if marker == APP1_MARKER:
                self._read_app1(payload, metadata)
            elif marker == APP13_MARKER:
                self._read_app13(payload, metadata)
            elif marker == COM_MARKER:
                self._read_comment(payload, metadata)

            offset = segment_end

        return metadata

    def _read_app1(self, payload: bytes, metadata: MetadataNode) -> None:
        if payload.startswith(EXIF_HEADER):
            if metadata.contains_query('/app1'):
                return
            try:
                exif_tree = TIFFParser(payload[len(EXIF_HEADER):], container_format='app1').read()
            except MetadataReadError as e:
                logger.debug(f"Skipping unreadable EXIF segment: {e}")
                return
            ifd = exif_tree.find_node('/ifd')
            metadata.set_query('/app1', MetadataNode('app1'))
            if ifd is not None:
                metadata.set_query('/app1/ifd', ifd)
        elif payload.startswith(XMP_HEADER):
            if metadata.contains_query('/xmp'):
                return
            packet = payload[len(XMP_HEADER):]
            try:
                metadata.set_query('/xmp', parse_xmp_packet(packet))
            except MetadataReadError as e:
                logger.debug(f"Keeping unparseable XMP packet as bytes: {e}")
                metadata.set_query('/xmp', packet)

    def _read_app13(self, payload: bytes, metadata: MetadataNode) -> None:
        if not payload.startswith(PHOTOSHOP_HEADER) or metadata.contains_query('/app13'):
            return
        iptc_data = extract_iptc_from_photoshop(payload[len(PHOTOSHOP_HEADER):])
        if not iptc_data:
            logger.debug("APP13 segment carries no IPTC block")
            return
        iptc = parse_iptc_data(iptc_data)
        if len(iptc):
            metadata.set_query('/app13/irb/8bimiptc/iptc', iptc)

    @staticmethod
    def _read_comment(payload: bytes, metadata: MetadataNode) -> None:
        if metadata.contains_query('/com'):
            return
        metadata.set_query('/com', MetadataNode('com'))
        metadata.set_query('/com/TextEntry', payload.rstrip(b'\x00').decode('utf-8', errors='replace'))
