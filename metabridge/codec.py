# Copyright 2025 DNAi inc.

# Dual-licensed under the DNAi Free License v1.1 and the
# DNAi Commercial License v1.1.
# See the LICENSE files in the project root for details.

"""
Image codec facade

ImageCodec decodes the metadata of TIFF, JPEG XR, JPEG, PNG and GIF files
into frozen metadata trees and encodes metadata trees into TIFF files.

Copyright 2025 DNAi inc.
"""

import logging
from pathlib import Path
from typing import BinaryIO, NamedTuple, Optional, Union

from metabridge.config import ConversionConfig, resolve_config
from metabridge.container_formats import ContainerFormat
from metabridge.exceptions import MetadataReadError, UnsupportedFormatError
from metabridge.format_detector import FormatDetector
from metabridge.jpeg_parser import JPEGParser
from metabridge.metadata_node import MetadataNode
from metabridge.png_parser import PNGParser
from metabridge.tiff_parser import TIFFParser
from metabridge.tiff_writer import TIFFWriter

logger = logging.getLogger(__name__)


class DecodedFrame(NamedTuple):
    """Metadata of a decoded image and the format code of its container."""
    metadata: Optional[MetadataNode]
    format: str


class ImageCodec:
    """
    Decodes and encodes image metadata.

    Decoded trees are frozen; clone() them before modifying.
    """

    def __init__(self, config: Optional[ConversionConfig] = None):
        self.config = resolve_config(config)

    def decode(
        self,
        file_path: Optional[Union[str, Path]] = None,
        file_data: Optional[bytes] = None
    ) -> DecodedFrame:
        """
        Decode the metadata of an image.

        Args:
            file_path: Path to image file
            file_data: Image file data as bytes

        Returns:
            DecodedFrame; its metadata is None if the image carries none

        Raises:
            ValueError: If neither file_path nor file_data is given
            MetadataReadError: If the file cannot be read or parsed
            UnsupportedFormatError: If the container format is not recognized
        """
        if file_path is None and file_data is None:
            raise ValueError("Either file_path or file_data must be provided")

        if file_data is None:
            try:
                with open(file_path, 'rb') as f:
                    file_data = f.read()
            except OSError as e:
                raise MetadataReadError(f"Failed to read file: {e}")

        format_code = FormatDetector.detect_format(
            file_path=str(file_path) if file_path is not None else None,
            file_data=file_data
        )
        container = ContainerFormat.from_code(format_code)
        if container is None:
            raise UnsupportedFormatError("Unsupported or unrecognized image format")

        if container in (ContainerFormat.TIFF, ContainerFormat.WMPHOTO):
            metadata = TIFFParser(file_data, container_format=container.value).read()
        elif container is ContainerFormat.JPEG:
            metadata = JPEGParser(file_data).read()
        elif container is ContainerFormat.PNG:
            metadata = PNGParser(file_data).read()
        else:
            if not file_data.startswith((b'GIF87a', b'GIF89a')):
                raise MetadataReadError("Not a GIF file (invalid signature)")
            # GIF frames carry no EXIF, XMP or IPTC
            metadata = MetadataNode(container.value)

        if not len(metadata):
            logger.debug(f"'{container.value}' image carries no metadata")
            return DecodedFrame(None, container.value)
        return DecodedFrame(metadata.freeze(), container.value)

    def encode(
        self,
        metadata: Optional[MetadataNode],
        container: str = 'tiff',
        pixels: Optional[bytes] = None,
        width: Optional[int] = None,
        height: Optional[int] = None
    ) -> bytes:
        """
        Encode an image carrying metadata.

        Args:
            metadata: Metadata tree laid out for the container, or None
            container: Format code of the container to write
            pixels: Gray8 pixel bytes (default: the configured placeholder)
            width: Image width
            height: Image height

        Returns:
            Encoded file bytes

        Raises:
            UnsupportedFormatError: If the container cannot be written
            MetadataWriteError: If encoding fails
        """
        if ContainerFormat.from_code(container) is not ContainerFormat.TIFF:
            raise UnsupportedFormatError(f"Cannot encode '{container}' images")
        if metadata is not None and metadata.format not in ('', ContainerFormat.TIFF.value):
            logger.debug(f"Encoding '{metadata.format}' metadata as TIFF; only /ifd is written")
        return TIFFWriter(self.config).write(metadata, pixels, width, height)

    def encode_to(
        self,
        stream: BinaryIO,
        metadata: Optional[MetadataNode],
        container: str = 'tiff',
        pixels: Optional[bytes] = None,
        width: Optional[int] = None,
        height: Optional[int] = None
    ) -> None:
        """Encode an image into a writable binary stream."""
        stream.write(self.encode(metadata, container, pixels=pixels, width=width, height=height))
