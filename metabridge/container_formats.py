# Copyright 2025 DNAi inc.

# Dual-licensed under the DNAi Free License v1.1 and the
# DNAi Commercial License v1.1.
# See the LICENSE files in the project root for details.

"""
Container format identifiers and metadata path tables

Each container keeps EXIF, XMP and IPTC at its own conventional query
paths. The tables here are the single source for both directions:
where to look in a decoded tree and where to write in a converted one.

Copyright 2025 DNAi inc.
"""

from enum import Enum
from typing import Dict, NamedTuple, Optional, Tuple


class ContainerFormat(str, Enum):
    """Container formats, by the short code image codecs report."""
    TIFF = 'tiff'
    JPEG = 'jpg'
    PNG = 'png'
    GIF = 'gif'
    WMPHOTO = 'wmphoto'

    @classmethod
    def from_code(cls, code: Optional[str]) -> Optional['ContainerFormat']:
        """Return the format for a codec code, or None if unknown or empty."""
        if not code:
            return None
        try:
            return cls(code.lower())
        except ValueError:
            return None


class MetadataLayout(NamedTuple):
    """Query prefixes of the three metadata blocks in one container."""
    exif: Optional[str]
    xmp: Optional[str]
    iptc: Optional[str]


# Where a converted tree stores each block. PNG has no EXIF/IPTC slot and
# stores XMP as a flat text chunk, handled separately by the converter.
DESTINATION_LAYOUTS: Dict[ContainerFormat, MetadataLayout] = {
    ContainerFormat.TIFF: MetadataLayout('/ifd/exif', '/ifd/xmp', '/ifd/iptc'),
    ContainerFormat.JPEG: MetadataLayout('/app1/ifd/exif', '/xmp', '/app13/irb/8bimiptc/iptc'),
    ContainerFormat.WMPHOTO: MetadataLayout('/ifd/exif', '/ifd/xmp', '/ifd/iptc'),
    ContainerFormat.PNG: MetadataLayout(None, None, None),
}

# Where a decoded tree is searched, in order. Formats not listed here
# (TIFF, JPEG XR, RAW, unknown) use SOURCE_DEFAULT.
SOURCE_LOCATIONS: Dict[ContainerFormat, Dict[str, Tuple[str, ...]]] = {
    ContainerFormat.GIF: {'exif': (), 'xmp': (), 'iptc': ()},
    ContainerFormat.PNG: {'exif': (), 'xmp': (), 'iptc': ()},
    ContainerFormat.JPEG: {
        'exif': ('/app1/ifd/exif',),
        'xmp': ('/xmp',),
        'iptc': ('/app13/irb/8bimiptc/iptc',),
    },
}

SOURCE_DEFAULT: Dict[str, Tuple[str, ...]] = {
    'exif': ('/ifd/exif',),
    # Some codecs store the XMP data outside of the IFD block
    'xmp': ('/ifd/xmp', '/xmp'),
    'iptc': ('/ifd/iptc', '/ifd/irb/8bimiptc/iptc'),
}

# Node formats used for the placeholders of each block
BLOCK_FORMATS = {'exif': 'exif', 'xmp': 'xmp', 'iptc': 'iptc'}

PNG_TEXT_CHUNK = '/iTXt'


def source_locations(format_code: str, kind: str) -> Tuple[str, ...]:
    """
    Return the query paths to try for one metadata block.

    Args:
        format_code: Codec format code of the source tree ("" if unknown)
        kind: 'exif', 'xmp' or 'iptc'

    Returns:
        Query paths in lookup order; empty if the container never has it
    """
    container = ContainerFormat.from_code(format_code)
    table = SOURCE_LOCATIONS.get(container, SOURCE_DEFAULT)
    return table[kind]
