# Copyright 2025 DNAi inc.

# Dual-licensed under the DNAi Free License v1.1 and the
# DNAi Commercial License v1.1.
# See the LICENSE files in the project root for details.

"""
XMP subtree <-> packet transcoding

Some containers (PNG) store XMP only as an opaque UTF-8 packet rather than
a structured subtree. The tree API cannot hand out a flat packet directly,
so the default transcoder takes a detour through a throwaway 1x1 TIFF:
the subtree is written as the TIFF's XMP tag and the packet is then read
back with the minimal IFD scanner. That gives exactly the bytes a real
TIFF-based XMP packet would have.

XMPPacketTranscoder is the seam for replacing the detour with direct
packet synthesis.

Copyright 2025 DNAi inc.
"""

import io
import logging
from abc import ABC, abstractmethod
from typing import Optional, Union

from metabridge.codec import ImageCodec
from metabridge.config import ConversionConfig, resolve_config
from metabridge.container_formats import ContainerFormat
from metabridge.exceptions import MetaBridgeError
from metabridge.metadata_node import MetadataNode, copy_sub_ifd
from metabridge.tiff_structure import extract_tag_packet

logger = logging.getLogger(__name__)

SYNTHETIC_XMP_QUERY = '/ifd/xmp'


class XMPPacketTranscoder(ABC):
    """Converts between an XMP subtree and its raw packet bytes."""

    @abstractmethod
    def extract_packet(self, xmp: MetadataNode) -> Optional[bytes]:
        """Return the raw packet for an XMP subtree, or None."""

    @abstractmethod
    def load_packet(self, packet: bytes) -> Optional[MetadataNode]:
        """Return the XMP subtree for a raw packet, or None."""


def build_synthetic_xmp_tree(xmp: Union[MetadataNode, bytes, bytearray]) -> MetadataNode:
    """
    Build a throwaway TIFF metadata tree carrying XMP at /ifd/xmp.

    Args:
        xmp: XMP subtree (deep-copied) or raw packet bytes (kept verbatim)

    Returns:
        New "tiff" metadata tree
    """
    tiff_metadata = MetadataNode(ContainerFormat.TIFF.value)
    tiff_metadata.set_query(SYNTHETIC_XMP_QUERY, MetadataNode('xmp'))

    if isinstance(xmp, MetadataNode):
        copy_sub_ifd(tiff_metadata, xmp, SYNTHETIC_XMP_QUERY)
    else:
        tiff_metadata.set_query(SYNTHETIC_XMP_QUERY, bytes(xmp))

    return tiff_metadata


class SyntheticTIFFTranscoder(XMPPacketTranscoder):
    """
    Transcoder using a synthetic single-pixel TIFF round-trip.
    """

    def __init__(self, codec: Optional[ImageCodec] = None, config: Optional[ConversionConfig] = None):
        """
        Initialize the transcoder.

        Args:
            codec: Codec used to write (and read back) the synthetic TIFF
            config: Conversion configuration
        """
        self.config = resolve_config(config)
        self.codec = codec if codec is not None else ImageCodec(config=self.config)

    def _encode_synthetic(self, tiff_metadata: MetadataNode, stream: io.BytesIO) -> None:
        self.codec.encode_to(
            stream,
            tiff_metadata,
            ContainerFormat.TIFF.value,
            pixels=self.config.synthetic_pixels,
            width=self.config.synthetic_width,
            height=self.config.synthetic_height,
        )

    def extract_packet(self, xmp: Union[MetadataNode, bytes]) -> Optional[bytes]:
        """
        Serialize an XMP subtree to its raw packet.

        Args:
            xmp: XMP subtree, or packet bytes to pass through the synthetic TIFF

        Returns:
            Packet bytes, or None if the synthetic TIFF could not be written
            or did not carry an XMP tag
        """
        if xmp is None:
            raise ValueError("xmp must not be None")

        tiff_metadata = build_synthetic_xmp_tree(xmp)

        with io.BytesIO() as stream:
            try:
                self._encode_synthetic(tiff_metadata, stream)
            except MetaBridgeError as e:
                logger.debug(f"Synthetic TIFF encoding failed: {e}")
                return None
            packet = extract_tag_packet(stream, self.config.xmp_tag_id)

        if packet is None:
            logger.debug("Synthetic TIFF carries no XMP packet")
        return packet

    def load_packet(self, packet: bytes) -> Optional[MetadataNode]:
        """
        Parse a raw XMP packet into a subtree.

        Args:
            packet: UTF-8 XMP packet bytes

        Returns:
            XMP subtree, or None if the packet could not be loaded
        """
        if packet is None:
            raise ValueError("packet must not be None")

        tiff_metadata = build_synthetic_xmp_tree(packet)

        with io.BytesIO() as stream:
            try:
                self._encode_synthetic(tiff_metadata, stream)
                frame = self.codec.decode(file_data=stream.getvalue())
            except MetaBridgeError as e:
                logger.debug(f"Synthetic TIFF round-trip failed: {e}")
                return None

        if frame.metadata is None:
            return None
        return frame.metadata.find_node(SYNTHETIC_XMP_QUERY)
