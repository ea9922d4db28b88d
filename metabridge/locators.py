# Copyright 2025 DNAi inc.

# Dual-licensed under the DNAi Free License v1.1 and the
# DNAi Commercial License v1.1.
# See the LICENSE files in the project root for details.

"""
Metadata block locators

Find the EXIF, XMP and IPTC subtrees of a decoded metadata tree, whichever
container produced it. Every locator returns the subtree or None; an
unsupported query is treated the same as a missing one.

Copyright 2025 DNAi inc.
"""

import logging
from typing import TYPE_CHECKING, Any, Optional

from metabridge.config import ConversionConfig, resolve_config
from metabridge.container_formats import ContainerFormat, PNG_TEXT_CHUNK, source_locations
from metabridge.exceptions import QueryNotSupportedError
from metabridge.metadata_node import MetadataNode

if TYPE_CHECKING:
    from metabridge.xmp_packet import XMPPacketTranscoder

logger = logging.getLogger(__name__)


def read_format(metadata: Any) -> str:
    """
    Return the container format a tree reports.

    Some codecs do not implement the format property; they are treated as
    reporting no format.
    """
    try:
        return getattr(metadata, 'format') or ''
    except (AttributeError, NotImplementedError, QueryNotSupportedError):
        return ''


def _query_node(metadata: MetadataNode, query: str) -> Optional[MetadataNode]:
    try:
        value = metadata.get_query(query)
    except QueryNotSupportedError as e:
        logger.debug(f"Query {query} not supported: {e}")
        return None
    return value if isinstance(value, MetadataNode) else None


def _locate(metadata: MetadataNode, format_code: str, kind: str) -> Optional[MetadataNode]:
    for query in source_locations(format_code, kind):
        node = _query_node(metadata, query)
        if node is not None:
            return node
    logger.debug(f"No {kind.upper()} block in '{format_code or 'unspecified'}' metadata")
    return None


def locate_exif(metadata: MetadataNode, format_code: str) -> Optional[MetadataNode]:
    """
    Locate the EXIF subtree.

    GIF and PNG files do not contain EXIF metadata.
    """
    return _locate(metadata, format_code, 'exif')


def locate_iptc(metadata: MetadataNode, format_code: str) -> Optional[MetadataNode]:
    """
    Locate the IPTC subtree.

    GIF and PNG files do not contain IPTC metadata. TIFF-like containers
    may keep it in the Photoshop resource block instead of its own tag.
    """
    return _locate(metadata, format_code, 'iptc')


def locate_xmp(
    metadata: MetadataNode,
    format_code: str,
    transcoder: Optional['XMPPacketTranscoder'] = None,
    config: Optional[ConversionConfig] = None
) -> Optional[MetadataNode]:
    """
    Locate the XMP subtree.

    GIF files do not contain frame level XMP. PNG stores XMP as UTF-8 text
    in an iTXt chunk; that text is turned back into a subtree with the
    transcoder.

    Args:
        metadata: Decoded metadata tree
        format_code: Codec format code of the tree
        transcoder: Packet transcoder for PNG text (default: synthetic TIFF)
        config: Conversion configuration

    Returns:
        XMP subtree or None
    """
    if ContainerFormat.from_code(format_code) is ContainerFormat.PNG:
        return _locate_png_xmp(metadata, transcoder, resolve_config(config))
    return _locate(metadata, format_code, 'xmp')


def _locate_png_xmp(
    metadata: MetadataNode,
    transcoder: Optional['XMPPacketTranscoder'],
    config: ConversionConfig
) -> Optional[MetadataNode]:
    text_chunk = _query_node(metadata, PNG_TEXT_CHUNK)
    if text_chunk is None:
        logger.debug("PNG metadata has no iTXt chunk")
        return None

    keyword = text_chunk.get_query('/Keyword')
    if isinstance(keyword, (list, tuple)):
        keyword = ''.join(keyword)
    if keyword != config.png_xmp_keyword:
        logger.debug(f"iTXt chunk keyword {keyword!r} is not XMP")
        return None

    data = text_chunk.get_query('/TextEntry')
    if not isinstance(data, str) or not data:
        return None

    if transcoder is None:
        from metabridge.xmp_packet import SyntheticTIFFTranscoder
        transcoder = SyntheticTIFFTranscoder(config=config)
    return transcoder.load_packet(data.encode('utf-8'))
