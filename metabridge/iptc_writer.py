# Copyright 2025 DNAi inc.

# Dual-licensed under the DNAi Free License v1.1 and the
# DNAi Commercial License v1.1.
# See the LICENSE files in the project root for details.

"""
IPTC metadata writer

This module serializes an IPTC metadata subtree into an IPTC-IIM block.

Copyright 2025 DNAi inc.
"""

import logging
import re
import struct
from typing import Any, Optional, Tuple

from metabridge.iptc_parser import APPLICATION_RECORD, IPTC_MARKER, IPTC_TAG_NAMES
from metabridge.metadata_node import MetadataNode, segment_name

logger = logging.getLogger(__name__)

_RAW_KEY_RE = re.compile(r'\{str=(\d+):(\d+)\}$')


class IPTCWriter:
    """
    Writes IPTC subtrees as IPTC-IIM data blocks.
    """

    def __init__(self):
        """Initialize IPTC writer."""
        # Reverse lookup from dataset names to Record 2 dataset numbers
        self.tag_names_to_dataset = {name: dataset for dataset, name in IPTC_TAG_NAMES.items()}

    def build_iptc_data(self, iptc: MetadataNode) -> bytes:
        """
        Build an IPTC-IIM block from an "iptc" metadata node.

        Entries that are not datasets (nested nodes, unknown names) are
        skipped.

        Args:
            iptc: IPTC subtree

        Returns:
            IPTC data block as bytes
        """
        iptc_data = bytearray()

        for segment, value in iptc.items():
            location = self._dataset_for(segment)
            if location is None or isinstance(value, MetadataNode):
                logger.debug(f"Skipping IPTC entry {segment}")
                continue
            record, dataset = location

            values = value if isinstance(value, (list, tuple)) else [value]
            for val in values:
                data_bytes = self._encode_value(val)
                if len(data_bytes) > 0x7FFF:
                    logger.warning(f"IPTC dataset {segment} is too long; skipping")
                    continue
                iptc_data.append(IPTC_MARKER)
                iptc_data.append(record)
                iptc_data.append(dataset)
                iptc_data.extend(struct.pack('>H', len(data_bytes)))
                iptc_data.extend(data_bytes)

        return bytes(iptc_data)

    def _dataset_for(self, segment: str) -> Optional[Tuple[int, int]]:
        name = segment_name(segment)
        if name in self.tag_names_to_dataset:
            return APPLICATION_RECORD, self.tag_names_to_dataset[name]
        match = _RAW_KEY_RE.match(name)
        if match:
            record, dataset = int(match.group(1)), int(match.group(2))
            if record <= 255 and dataset <= 255:
                return record, dataset
        return None

    @staticmethod
    def _encode_value(value: Any) -> bytes:
        if isinstance(value, (bytes, bytearray)):
            return bytes(value)
        if isinstance(value, int) and not isinstance(value, bool):
            return struct.pack('>H', value & 0xFFFF)
        return str(value).encode('utf-8', errors='replace')


def build_iptc_data(iptc: MetadataNode) -> bytes:
    """Serialize an "iptc" metadata node to an IPTC-IIM block."""
    return IPTCWriter().build_iptc_data(iptc)
