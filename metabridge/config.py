# Copyright 2025 DNAi inc.

# Dual-licensed under the DNAi Free License v1.1 and the
# DNAi Commercial License v1.1.
# See the LICENSE files in the project root for details.

"""
Conversion configuration

Copyright 2025 DNAi inc.
"""

from typing import Optional


class ConversionConfig:
    """
    Configuration shared by the converter, the XMP transcoder and the codec.

    The defaults reproduce the conventions image codecs use for EXIF, XMP
    and IPTC. Components accept an optional config and fall back to these
    values.
    """

    def __init__(
        self,
        xmp_tag_id: int = 700,
        png_xmp_keyword: str = 'XML:com.adobe.xmp',
        synthetic_pixels: bytes = b'\xff',
        synthetic_width: int = 1,
        synthetic_height: int = 1,
        synthetic_dpi: int = 96,
        tiff_byte_order: str = '<',
        exif_comment_query: str = '/{ushort=37510}',
        xmp_description_query: str = '/dc:description/x-default',
    ):
        """
        Initialize configuration.

        Args:
            xmp_tag_id: TIFF tag holding the XMP packet
            png_xmp_keyword: iTXt keyword identifying an XMP packet
            synthetic_pixels: Gray8 pixel data of the synthetic TIFF
            synthetic_width: Width of the synthetic TIFF
            synthetic_height: Height of the synthetic TIFF
            synthetic_dpi: Resolution written to TIFF files
            tiff_byte_order: '<' (II) or '>' (MM) for written TIFF files
            exif_comment_query: Query of the user comment inside the EXIF subtree
            xmp_description_query: Query of the description inside the XMP subtree
        """
        if tiff_byte_order not in ('<', '>'):
            raise ValueError(f"tiff_byte_order must be '<' or '>', got {tiff_byte_order!r}")
        if len(synthetic_pixels) != synthetic_width * synthetic_height:
            raise ValueError("synthetic_pixels must hold one Gray8 byte per pixel")

        self.xmp_tag_id = xmp_tag_id
        self.png_xmp_keyword = png_xmp_keyword
        self.synthetic_pixels = synthetic_pixels
        self.synthetic_width = synthetic_width
        self.synthetic_height = synthetic_height
        self.synthetic_dpi = synthetic_dpi
        self.tiff_byte_order = tiff_byte_order
        self.exif_comment_query = exif_comment_query
        self.xmp_description_query = xmp_description_query


def resolve_config(config: Optional[ConversionConfig]) -> ConversionConfig:
    """Return config, or a new default configuration when None."""
    return config if config is not None else ConversionConfig()
