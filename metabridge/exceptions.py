# Copyright 2025 DNAi inc.

# Dual-licensed under the DNAi Free License v1.1 and the
# DNAi Commercial License v1.1.
# See the LICENSE files in the project root for details.

"""
Exception classes for metabridge

This module defines the exceptions raised inside the metabridge library.
Most of them never reach the caller: data-driven problems (short buffers,
unsupported query paths) are converted to "not present" by the layer that
catches them.

Copyright 2025 DNAi inc.
"""


class MetaBridgeError(Exception):
    """
    Base exception for all metabridge errors.

    The CLI catches this class to report a failed conversion.
    """
    def __init__(self, message: str = ""):
        """
        Args:
            message: Error message, also kept on .message
        """
        self.message = message
        super().__init__(message)


class TruncatedInputError(MetaBridgeError):
    """
    Raised when a binary read needs more bytes than the source holds.

    The TIFF scanner converts this into an absent result.
    """
    pass


class QueryNotSupportedError(MetaBridgeError):
    """
    Raised when a metadata query path cannot be evaluated.

    This exception is raised when:
    - The path is empty or does not start with '/'
    - A segment has unbalanced braces or brackets
    - The path walks through a scalar value instead of a subtree
    """
    pass


class MetadataReadError(MetaBridgeError):
    """
    Raised when metadata cannot be read from a container.

    This exception is raised when:
    - The container header is invalid or corrupted
    - A metadata block cannot be parsed
    - The file cannot be opened
    """
    pass


class MetadataWriteError(MetaBridgeError):
    """
    Raised when metadata cannot be written.

    This exception is raised when:
    - A frozen (decoded) metadata tree is modified
    - The encoder cannot serialize a value
    - The output stream cannot be written
    """
    pass


class UnsupportedFormatError(MetaBridgeError):
    """
    Raised when a container format is not supported by the codec.
    """
    pass
