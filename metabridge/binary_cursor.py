# Copyright 2025 DNAi inc.

# Dual-licensed under the DNAi Free License v1.1 and the
# DNAi Commercial License v1.1.
# See the LICENSE files in the project root for details.

"""
Endian-aware binary read cursor

Copyright 2025 DNAi inc.
"""

import io
import struct
from typing import BinaryIO, Union

from metabridge.exceptions import TruncatedInputError


class BinaryCursor:
    """
    Read cursor over an externally supplied byte source.

    The cursor never buffers more than a single read needs. The position is
    owned by the caller and moved with seek().
    """

    def __init__(self, source: Union[bytes, bytearray, memoryview, BinaryIO]):
        """
        Initialize the cursor.

        Args:
            source: Bytes-like object or a readable, seekable binary stream
        """
        if isinstance(source, (bytes, bytearray, memoryview)):
            self.stream = io.BytesIO(bytes(source))
        else:
            self.stream = source

    def seek(self, offset: int) -> None:
        """Move the cursor to an absolute offset."""
        self.stream.seek(offset, io.SEEK_SET)

    def tell(self) -> int:
        """Return the absolute cursor position."""
        return self.stream.tell()

    def read_bytes(self, count: int) -> bytes:
        """
        Read exactly count bytes.

        Short reads from the underlying stream are retried until count bytes
        arrived or the stream reports end of data.

        Args:
            count: Number of bytes to read

        Returns:
            The bytes read

        Raises:
            TruncatedInputError: If the source ends before count bytes
        """
        chunks = bytearray()
        remaining = count
        while remaining > 0:
            chunk = self.stream.read(remaining)
            if not chunk:
                raise TruncatedInputError(
                    f"Expected {count} bytes, only {len(chunks)} available"
                )
            chunks.extend(chunk)
            remaining -= len(chunk)
        return bytes(chunks)

    def read_u16(self, little_endian: bool) -> int:
        """Read an unsigned 16-bit integer."""
        endian = '<' if little_endian else '>'
        return struct.unpack(f'{endian}H', self.read_bytes(2))[0]

    def read_u32(self, little_endian: bool) -> int:
        """Read an unsigned 32-bit integer."""
        endian = '<' if little_endian else '>'
        return struct.unpack(f'{endian}I', self.read_bytes(4))[0]
