# Copyright 2025 DNAi inc.

# Dual-licensed under the DNAi Free License v1.1 and the
# DNAi Commercial License v1.1.
# See the LICENSE files in the project root for details.

"""
Core MetaBridge class

This module provides the main API: decode an image's metadata, read the
common values out of it, convert it for another container and check that
the converted metadata survives being written to disk and read back.

Copyright 2025 DNAi inc.
"""

import logging
import os
import tempfile
from pathlib import Path
from typing import List, Optional, Union

from metabridge.codec import ImageCodec
from metabridge.config import ConversionConfig, resolve_config
from metabridge.container_formats import ContainerFormat
from metabridge.converter import MetadataConverter
from metabridge.metadata_node import MetadataNode
from metabridge.metadata_reader import dump_metadata, get_exif_comment, get_xmp_description

logger = logging.getLogger(__name__)


class MetaBridge:
    """
    Main class for reading and converting image metadata.

    Example:
        >>> with MetaBridge('photo.jpg') as bridge:
        ...     print(bridge.get_exif_comment())
        ...     persisted = bridge.persist()
    """

    def __init__(
        self,
        file_path: Optional[Union[str, Path]] = None,
        file_data: Optional[bytes] = None,
        config: Optional[ConversionConfig] = None,
        codec: Optional[ImageCodec] = None
    ):
        """
        Decode the metadata of an image.

        Args:
            file_path: Path to the image file
            file_data: Image file data as bytes (takes precedence over reading file_path)
            config: Conversion configuration
            codec: Image codec (default: ImageCodec with config)

        Raises:
            ValueError: If neither file_path nor file_data is given
            MetadataReadError: If the image cannot be read
            UnsupportedFormatError: If the container format is not recognized
        """
        if file_path is None and file_data is None:
            raise ValueError("Either file_path or file_data must be provided")

        self.file_path = Path(file_path) if file_path is not None else None
        self.config = resolve_config(config)
        self.codec = codec if codec is not None else ImageCodec(config=self.config)
        self.converter = MetadataConverter(config=self.config)

        frame = self.codec.decode(file_path=self.file_path, file_data=file_data)
        self.metadata: Optional[MetadataNode] = frame.metadata
        self.format: str = frame.format
        logger.debug(f"Decoded '{self.format}' image {self.file_path or '<bytes>'}")

    def __enter__(self):
        """Context manager entry."""
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        """Context manager exit."""
        pass

    @property
    def has_metadata(self) -> bool:
        return self.metadata is not None

    def dump(self) -> List[str]:
        """Return every metadata value as a "path: value" line."""
        if self.metadata is None:
            return []
        return dump_metadata(self.metadata)

    def get_exif_comment(self) -> str:
        """Return the EXIF user comment, or ''."""
        if self.metadata is None:
            return ''
        return get_exif_comment(self.metadata, self.config)

    def get_xmp_description(self) -> str:
        """Return the default-language XMP description, or ''."""
        if self.metadata is None:
            return ''
        return get_xmp_description(self.metadata, self.converter.transcoder, self.config)

    def convert(self, destination_format: str) -> Optional[MetadataNode]:
        """
        Convert the metadata for another container.

        Args:
            destination_format: Format code of the destination container

        Returns:
            Converted tree, or None when there is nothing to carry over
        """
        if self.metadata is None:
            return None
        return self.converter.convert(self.metadata, self.format, destination_format)

    def persist(self, destination_format: str = ContainerFormat.TIFF.value) -> Optional[MetadataNode]:
        """
        Convert the metadata, write it to a temporary image and read it back.

        Args:
            destination_format: Container to write (only TIFF can be encoded)

        Returns:
            Unfrozen copy of the metadata decoded from the written file, or
            None if it carries none

        Raises:
            UnsupportedFormatError: If the destination cannot be encoded
            MetadataWriteError: If encoding fails
        """
        converted = self.convert(destination_format)

        fd, temp_path = tempfile.mkstemp(suffix=f'.{destination_format}')
        try:
            with os.fdopen(fd, 'wb') as f:
                self.codec.encode_to(f, converted, destination_format)
            frame = self.codec.decode(file_path=temp_path)
        finally:
            os.remove(temp_path)

        if frame.metadata is None:
            return None
        return frame.metadata.clone()
