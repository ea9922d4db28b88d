# Copyright 2025 DNAi inc.

# Dual-licensed under the DNAi Free License v1.1 and the
# DNAi Commercial License v1.1.
# See the LICENSE files in the project root for details.

"""
IPTC (International Press Telecommunications Council) metadata parser

This module parses IPTC-IIM data blocks into metadata subtrees, and digs
the IPTC block out of Photoshop image resource blocks (8BIM records) as
found in JPEG APP13 segments and the TIFF Photoshop tag.

Copyright 2025 DNAi inc.
"""

import logging
import struct
from typing import Dict, Optional

from metabridge.metadata_node import MetadataNode

logger = logging.getLogger(__name__)

# Record 2 (Application Record) dataset names
IPTC_TAG_NAMES: Dict[int, str] = {
    0: "RecordVersion",
    4: "ObjectAttributeReference",
    5: "ObjectName",
    7: "EditStatus",
    10: "Urgency",
    12: "SubjectReference",
    15: "Category",
    20: "SupplementalCategories",
    22: "FixtureIdentifier",
    25: "Keywords",
    26: "ContentLocationCode",
    27: "ContentLocationName",
    30: "ReleaseDate",
    35: "ReleaseTime",
    37: "ExpirationDate",
    38: "ExpirationTime",
    40: "SpecialInstructions",
    55: "DateCreated",
    60: "TimeCreated",
    62: "DigitalCreationDate",
    63: "DigitalCreationTime",
    65: "OriginatingProgram",
    70: "ProgramVersion",
    80: "By-line",
    85: "By-lineTitle",
    90: "City",
    92: "Sub-location",
    95: "Province-State",
    100: "Country-PrimaryLocationCode",
    101: "Country-PrimaryLocationName",
    103: "OriginalTransmissionReference",
    105: "Headline",
    110: "Credit",
    115: "Source",
    116: "CopyrightNotice",
    118: "Contact",
    120: "Caption",
    122: "Writer-Editor",
    135: "LanguageIdentifier",
}

# Datasets allowed to occur more than once
REPEATABLE_DATASETS = {4, 12, 20, 25, 26, 27, 80, 85, 118, 122}

APPLICATION_RECORD = 2
IPTC_MARKER = 0x1C
PHOTOSHOP_SIGNATURE = b'8BIM'
IPTC_RESOURCE_ID = 0x0404


def dataset_key(record: int, dataset: int) -> str:
    """Query segment of an IPTC dataset."""
    if record == APPLICATION_RECORD and dataset in IPTC_TAG_NAMES:
        return f'/{IPTC_TAG_NAMES[dataset]}'
    return f'/{{str={record}:{dataset}}}'


class IPTCParser:
    """
    Parser for IPTC-IIM data blocks.

    IPTC data is stored as a series of datasets, each containing:
    - 1 byte: Tag marker (0x1C)
    - 1 byte: Record number
    - 1 byte: Dataset number
    - 2 bytes: Data length (big-endian)
    - N bytes: Data
    """

    def __init__(self, iptc_data: bytes):
        """
        Initialize IPTC parser.

        Args:
            iptc_data: Raw IPTC-IIM bytes
        """
        if iptc_data is None:
            raise ValueError("iptc_data must not be None")
        self.iptc_data = bytes(iptc_data)

    def read(self) -> MetadataNode:
        """
        Parse the data block.

        Repeated datasets are collected into tuples. Parsing stops quietly
        at the first malformed dataset.

        Returns:
            "iptc" metadata node
        """
        iptc = MetadataNode('iptc')
        data = self.iptc_data
        offset = 0

        while offset + 5 <= len(data):
            if data[offset] != IPTC_MARKER:
                # Padding at the end of the block
                break

            record = data[offset + 1]
            dataset = data[offset + 2]
            data_length = struct.unpack('>H', data[offset + 3:offset + 5])[0]
            if data_length & 0x8000:
                logger.debug("Extended IPTC dataset length is not supported")
                break

            value_start = offset + 5
            value_end = value_start + data_length
            if value_end > len(data):
                logger.debug(f"Truncated IPTC dataset {record}:{dataset}")
                break

            value = self._decode_value(record, dataset, data[value_start:value_end])
            key = dataset_key(record, dataset)
            existing = iptc.get_query(key)
            if existing is None:
                iptc.set_query(key, value)
            elif isinstance(existing, tuple):
                iptc.set_query(key, existing + (value,))
            else:
                iptc.set_query(key, (existing, value))

            offset = value_end

        return iptc

    @staticmethod
    def _decode_value(record: int, dataset: int, raw: bytes):
        if record == APPLICATION_RECORD and dataset == 0 and len(raw) == 2:
            return struct.unpack('>H', raw)[0]
        if record == APPLICATION_RECORD:
            return raw.decode('utf-8', errors='replace').rstrip('\x00')
        return raw


def parse_iptc_data(iptc_data: bytes) -> MetadataNode:
    """Parse an IPTC-IIM block into an "iptc" metadata node."""
    return IPTCParser(iptc_data).read()


def extract_iptc_from_photoshop(resource_data: bytes) -> Optional[bytes]:
    """
    Extract the IPTC-IIM block from Photoshop image resources.

    Args:
        resource_data: Sequence of 8BIM resource records

    Returns:
        IPTC bytes of the first IPTC-NAA resource (0x0404), or None
    """
    offset = 0
    while offset + 12 <= len(resource_data):
        if resource_data[offset:offset + 4] != PHOTOSHOP_SIGNATURE:
            return None

        resource_id = struct.unpack('>H', resource_data[offset + 4:offset + 6])[0]

        # Resource name is a Pascal string padded to even length
        name_len = resource_data[offset + 6]
        name_end = offset + 7 + name_len
        if (name_len + 1) % 2:
            name_end += 1

        if name_end + 4 > len(resource_data):
            return None
        data_length = struct.unpack('>I', resource_data[name_end:name_end + 4])[0]
        data_start = name_end + 4
        data_end = data_start + data_length
        if data_end > len(resource_data):
            return None

        if resource_id == IPTC_RESOURCE_ID:
            return resource_data[data_start:data_end]

        # Resource data is padded to even length
        offset = data_end + (data_length % 2)

    return None
