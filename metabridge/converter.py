# Copyright 2025 DNAi inc.

# Dual-licensed under the DNAi Free License v1.1 and the
# DNAi Commercial License v1.1.
# See the LICENSE files in the project root for details.

"""
Cross-format metadata converter

Re-homes the EXIF, XMP and IPTC blocks of a decoded metadata tree under
the query paths a different container expects. The source tree is never
modified; every conversion builds a new tree.

Copyright 2025 DNAi inc.
"""

import logging
from typing import Optional

from metabridge.config import ConversionConfig, resolve_config
from metabridge.container_formats import (
    BLOCK_FORMATS,
    DESTINATION_LAYOUTS,
    PNG_TEXT_CHUNK,
    ContainerFormat,
)
from metabridge.locators import locate_exif, locate_iptc, locate_xmp, read_format
from metabridge.metadata_node import MetadataNode, copy_sub_ifd
from metabridge.xmp_packet import SyntheticTIFFTranscoder, XMPPacketTranscoder

logger = logging.getLogger(__name__)


class MetadataConverter:
    """
    Converts metadata trees between container formats.

    Supported destinations are TIFF, JPEG, JPEG XR (wmphoto) and PNG.
    PNG keeps only XMP, flattened to an iTXt text chunk.
    """

    def __init__(
        self,
        transcoder: Optional[XMPPacketTranscoder] = None,
        config: Optional[ConversionConfig] = None
    ):
        """
        Initialize the converter.

        Args:
            transcoder: XMP subtree <-> packet transcoder
                        (default: synthetic TIFF round-trip)
            config: Conversion configuration
        """
        self.config = resolve_config(config)
        self.transcoder = transcoder if transcoder is not None else SyntheticTIFFTranscoder(config=self.config)

    def convert(
        self,
        metadata: MetadataNode,
        source_format: str,
        destination_format: str
    ) -> Optional[MetadataNode]:
        """
        Convert metadata to the conventions of a destination container.

        Args:
            metadata: Decoded metadata tree (not modified)
            source_format: Codec format code of metadata ("" if unknown)
            destination_format: Format code of the destination container

        Returns:
            metadata itself when both formats are equal, a new tree, or None
            when there is no EXIF, XMP or IPTC to carry over

        Raises:
            ValueError: If metadata or a format is None
        """
        if metadata is None:
            raise ValueError("metadata must not be None")
        if source_format is None or destination_format is None:
            raise ValueError("source_format and destination_format must not be None")

        if source_format == destination_format:
            return metadata

        destination = ContainerFormat.from_code(destination_format)
        if destination not in DESTINATION_LAYOUTS:
            logger.warning(f"Cannot convert metadata for '{destination_format}' containers")
            return None

        if destination is ContainerFormat.PNG:
            return self._convert_to_png(metadata, source_format)

        exif = locate_exif(metadata, source_format)
        xmp = locate_xmp(metadata, source_format, self.transcoder, self.config)
        iptc = locate_iptc(metadata, source_format)

        if exif is None and xmp is None and iptc is None:
            logger.debug(f"No metadata to carry from '{source_format}' to '{destination_format}'")
            return None

        layout = DESTINATION_LAYOUTS[destination]
        converted = MetadataNode(destination.value)

        for kind, block, prefix in (
            ('exif', exif, layout.exif),
            ('xmp', xmp, layout.xmp),
            ('iptc', iptc, layout.iptc),
        ):
            if block is None:
                continue
            converted.set_query(prefix, MetadataNode(BLOCK_FORMATS[kind]))
            copy_sub_ifd(converted, block, prefix)

        return converted

    def convert_for_destination(self, metadata: MetadataNode, destination_format: str) -> Optional[MetadataNode]:
        """
        Convert metadata for a destination, reading the source format from the tree.

        Args:
            metadata: Decoded metadata tree
            destination_format: Format code of the destination container

        Returns:
            Converted tree, metadata itself, or None
        """
        if metadata is None:
            raise ValueError("metadata must not be None")
        return self.convert(metadata, read_format(metadata), destination_format)

    def _convert_to_png(self, metadata: MetadataNode, source_format: str) -> Optional[MetadataNode]:
        if locate_exif(metadata, source_format) is not None or locate_iptc(metadata, source_format) is not None:
            logger.warning("PNG cannot store EXIF or IPTC metadata; dropping them")

        xmp = locate_xmp(metadata, source_format, self.transcoder, self.config)
        if xmp is None:
            return None

        packet = self.transcoder.extract_packet(xmp)
        if packet is None:
            logger.debug("Could not extract an XMP packet for PNG")
            return None

        png_metadata = MetadataNode(ContainerFormat.PNG.value)
        png_metadata.set_query(PNG_TEXT_CHUNK, MetadataNode('iTXt'))
        png_metadata.set_query(f'{PNG_TEXT_CHUNK}/Keyword', self.config.png_xmp_keyword)
        png_metadata.set_query(f'{PNG_TEXT_CHUNK}/TextEntry', packet.decode('utf-8', errors='replace'))

        return png_metadata


def convert_metadata(
    metadata: MetadataNode,
    source_format: str,
    destination_format: str,
    config: Optional[ConversionConfig] = None
) -> Optional[MetadataNode]:
    """Convert metadata with a default MetadataConverter."""
    return MetadataConverter(config=config).convert(metadata, source_format, destination_format)
