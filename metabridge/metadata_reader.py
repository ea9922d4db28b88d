# Copyright 2025 DNAi inc.

# Dual-licensed under the DNAi Free License v1.1 and the
# DNAi Commercial License v1.1.
# See the LICENSE files in the project root for details.

"""
Metadata queries

Helpers reading individual values out of decoded metadata trees, whatever
container they came from.

Copyright 2025 DNAi inc.
"""

import logging
from typing import Any, List, Optional

from metabridge.config import ConversionConfig, resolve_config
from metabridge.exceptions import QueryNotSupportedError
from metabridge.locators import locate_exif, locate_xmp, read_format
from metabridge.metadata_node import MetadataNode
from metabridge.tiff_parser import decode_user_comment
from metabridge.xmp_packet import XMPPacketTranscoder

logger = logging.getLogger(__name__)


def format_value(value: Any) -> str:
    """Render a scalar for display."""
    if isinstance(value, (bytes, bytearray)):
        if len(value) > 32:
            return f"(Binary data {len(value)} bytes)"
        return bytes(value).hex(' ')
    if isinstance(value, list):
        return ', '.join(format_value(v) for v in value)
    return str(value)


def dump_metadata(metadata: MetadataNode) -> List[str]:
    """
    List every scalar of a tree as "path: value", depth first.

    Args:
        metadata: Metadata tree

    Returns:
        One line per scalar, in tree order
    """
    if metadata is None:
        raise ValueError("metadata must not be None")
    return [f"{path}: {format_value(value)}" for path, value in metadata.walk()]


def _query_text(node: MetadataNode, query: str) -> Any:
    try:
        return node.get_query(query)
    except QueryNotSupportedError as e:
        logger.debug(f"Query {query} not supported: {e}")
        return None


def get_exif_comment(metadata: MetadataNode, config: Optional[ConversionConfig] = None) -> str:
    """
    Read the EXIF user comment.

    Args:
        metadata: Decoded metadata tree
        config: Conversion configuration (comment query)

    Returns:
        Comment text, or '' if there is none
    """
    if metadata is None:
        raise ValueError("metadata must not be None")
    config = resolve_config(config)

    exif = locate_exif(metadata, read_format(metadata))
    if exif is None:
        return ''

    value = _query_text(exif, config.exif_comment_query)
    if isinstance(value, (bytes, bytearray)):
        value = decode_user_comment(bytes(value))
    if not isinstance(value, str):
        return ''
    return value


def get_xmp_description(
    metadata: MetadataNode,
    transcoder: Optional[XMPPacketTranscoder] = None,
    config: Optional[ConversionConfig] = None
) -> str:
    """
    Read the default-language XMP description (dc:description).

    Args:
        metadata: Decoded metadata tree
        transcoder: Packet transcoder for PNG text chunks
        config: Conversion configuration (description query)

    Returns:
        Description text, or '' if there is none
    """
    if metadata is None:
        raise ValueError("metadata must not be None")
    config = resolve_config(config)

    xmp = locate_xmp(metadata, read_format(metadata), transcoder, config)
    if xmp is None:
        return ''

    value = _query_text(xmp, config.xmp_description_query)
    if not isinstance(value, str):
        return ''
    return value
