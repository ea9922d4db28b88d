# Copyright 2025 DNAi inc.

# Dual-licensed under the DNAi Free License v1.1 and the
# DNAi Commercial License v1.1.
# See the LICENSE files in the project root for details.

"""
metabridge - Pure Python image metadata conversion

Locates EXIF, XMP and IPTC metadata in decoded image metadata trees,
re-homes it under the query paths another container format expects, and
extracts raw XMP packets through a minimal TIFF round-trip.

All container parsing is done by directly reading binary file structures.

Copyright 2025 DNAi inc.
"""

__version__ = "0.1.0"
__author__ = "DNAi inc."

from metabridge.codec import DecodedFrame, ImageCodec
from metabridge.config import ConversionConfig
from metabridge.container_formats import ContainerFormat
from metabridge.converter import MetadataConverter, convert_metadata
from metabridge.core import MetaBridge
from metabridge.exceptions import (
    MetaBridgeError,
    MetadataReadError,
    MetadataWriteError,
    QueryNotSupportedError,
    TruncatedInputError,
    UnsupportedFormatError,
)
from metabridge.locators import locate_exif, locate_iptc, locate_xmp
from metabridge.metadata_node import MetadataNode, copy_sub_ifd
from metabridge.tiff_structure import extract_tag_packet, extract_xmp_packet
from metabridge.xmp_packet import SyntheticTIFFTranscoder, XMPPacketTranscoder

__all__ = [
    "MetaBridge",
    "MetadataNode",
    "copy_sub_ifd",
    "MetadataConverter",
    "convert_metadata",
    "ContainerFormat",
    "ConversionConfig",
    "ImageCodec",
    "DecodedFrame",
    "locate_exif",
    "locate_iptc",
    "locate_xmp",
    "extract_tag_packet",
    "extract_xmp_packet",
    "XMPPacketTranscoder",
    "SyntheticTIFFTranscoder",
    "MetaBridgeError",
    "TruncatedInputError",
    "QueryNotSupportedError",
    "MetadataReadError",
    "MetadataWriteError",
    "UnsupportedFormatError",
]
