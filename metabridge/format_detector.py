# Copyright 2025 DNAi inc.

# Dual-licensed under the DNAi Free License v1.1 and the
# DNAi Commercial License v1.1.
# See the LICENSE files in the project root for details.

"""
File format detector

This module maps image files to container format codes from their
signatures and extensions.

Copyright 2025 DNAi inc.
"""

from pathlib import Path
from typing import Dict, Optional


class FormatDetector:
    """
    Detects container formats from file signatures and extensions.

    Signatures win over extensions; the extension is only consulted when
    no signature matches.
    """

    # Format signatures (magic numbers)
    FORMAT_SIGNATURES: Dict[bytes, str] = {
        b'\xff\xd8\xff': 'jpg',
        b'II*\x00': 'tiff',
        b'MM\x00*': 'tiff',
        b'II\xbc\x01': 'wmphoto',
        b'\x89PNG\r\n\x1a\n': 'png',
        b'GIF87a': 'gif',
        b'GIF89a': 'gif',
    }

    # Extension to format mapping
    EXTENSION_FORMATS: Dict[str, str] = {
        '.jpg': 'jpg', '.jpeg': 'jpg', '.jpe': 'jpg',
        '.tif': 'tiff', '.tiff': 'tiff',
        '.png': 'png',
        '.gif': 'gif',
        '.jxr': 'wmphoto', '.wdp': 'wmphoto', '.hdp': 'wmphoto',
    }

    @classmethod
    def detect_format(cls, file_path: Optional[str] = None, file_data: Optional[bytes] = None) -> Optional[str]:
        """
        Detect the container format from file data and/or path.

        Args:
            file_path: Path to file
            file_data: File data (first few bytes are enough)

        Returns:
            Format code or None if not detected
        """
        if file_data:
            for signature, format_code in cls.FORMAT_SIGNATURES.items():
                if file_data.startswith(signature):
                    return format_code

        if file_path:
            ext = Path(file_path).suffix.lower()
            if ext in cls.EXTENSION_FORMATS:
                return cls.EXTENSION_FORMATS[ext]

        return None

    @classmethod
    def is_supported_format(cls, format_code: str) -> bool:
        """Check if metadata can be decoded from a format."""
        return format_code in set(cls.FORMAT_SIGNATURES.values())
