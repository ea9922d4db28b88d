# Copyright 2025 DNAi inc.

# Dual-licensed under the DNAi Free License v1.1 and the
# DNAi Commercial License v1.1.
# See the LICENSE files in the project root for details.

"""
PNG metadata decoder

This module decodes the textual chunks of a PNG file. The first iTXt chunk
is stored at "/iTXt" and later ones at "/[1]iTXt", "/[2]iTXt", ...; tEXt
chunks follow the same scheme. XMP lives in an iTXt chunk with the keyword
"XML:com.adobe.xmp" and stays an opaque text entry here.

Copyright 2025 DNAi inc.
"""

import logging
import struct
import zlib
from typing import Dict

from metabridge.exceptions import MetadataReadError
from metabridge.metadata_node import MetadataNode

logger = logging.getLogger(__name__)

PNG_SIGNATURE = b'\x89PNG\r\n\x1a\n'


def chunk_key(chunk_type: str, index: int) -> str:
    """Query segment of the index-th chunk of a type."""
    return f'/{chunk_type}' if index == 0 else f'/[{index}]{chunk_type}'


class PNGParser:
    """
    Decoder for PNG text chunks.
    """

    def __init__(self, file_data: bytes):
        if file_data is None:
            raise ValueError("file_data must not be None")
        self.file_data = bytes(file_data)

    def read(self) -> MetadataNode:
        """
        Decode the text chunks.

        Returns:
            "png" metadata tree

        Raises:
            MetadataReadError: If the data does not start with the PNG signature
        """
        data = self.file_data
        if not data.startswith(PNG_SIGNATURE):
            raise MetadataReadError("Not a PNG file (invalid signature)")

        metadata = MetadataNode('png')
        counts: Dict[str, int] = {}
        offset = len(PNG_SIGNATURE)

        while offset + 8 <= len(data):
            chunk_length = struct.unpack('>I', data[offset:offset + 4])[0]
            chunk_type = data[offset + 4:offset + 8]
            chunk_start = offset + 8
            chunk_end = chunk_start + chunk_length
            if chunk_end + 4 > len(data):
                logger.debug(f"Truncated PNG chunk {chunk_type!r}")
                break

            chunk_data = data[chunk_start:chunk_end]
            if chunk_type == b'iTXt':
                chunk = self._read_itxt(chunk_data)
            elif chunk_type == b'tEXt':
                chunk = self._read_text(chunk_data)
            elif chunk_type == b'IEND':
                break
            else:
                chunk = None

            if chunk is not None:
                name = chunk_type.decode('ascii')
                index = counts.get(name, 0)
                counts[name] = index + 1
                metadata.set_query(chunk_key(name, index), chunk)

            # Skip data and CRC
            offset = chunk_end + 4

        return metadata

    @staticmethod
    def _read_itxt(chunk_data: bytes):
        """
        Decode an iTXt chunk.

        Layout: keyword\\0 compression-flag compression-method
        language-tag\\0 translated-keyword\\0 text
        """
        keyword_end = chunk_data.find(b'\x00')
        if keyword_end == -1 or keyword_end + 3 > len(chunk_data):
            logger.debug("Malformed iTXt chunk")
            return None

        compression_flag = chunk_data[keyword_end + 1]
        compression_method = chunk_data[keyword_end + 2]

        lang_start = keyword_end + 3
        lang_end = chunk_data.find(b'\x00', lang_start)
        if lang_end == -1:
            return None
        trans_keyword_end = chunk_data.find(b'\x00', lang_end + 1)
        if trans_keyword_end == -1:
            return None

        text_data = chunk_data[trans_keyword_end + 1:]
        if compression_flag == 1:
            if compression_method != 0:
                logger.debug(f"Unknown iTXt compression method {compression_method}")
                return None
            try:
                text_data = zlib.decompress(text_data)
            except zlib.error as e:
                logger.debug(f"Cannot decompress iTXt chunk: {e}")
                return None

        chunk = MetadataNode('iTXt')
        chunk.set_query('/Keyword', chunk_data[:keyword_end].decode('latin-1'))
        chunk.set_query('/CompressionFlag', compression_flag)
        chunk.set_query('/LanguageTag', chunk_data[lang_start:lang_end].decode('latin-1'))
        chunk.set_query(
            '/TranslatedKeyword',
            chunk_data[lang_end + 1:trans_keyword_end].decode('utf-8', errors='replace')
        )
        chunk.set_query('/TextEntry', text_data.decode('utf-8', errors='replace'))
        return chunk

    @staticmethod
    def _read_text(chunk_data: bytes):
        keyword_end = chunk_data.find(b'\x00')
        if keyword_end == -1:
            return None
        chunk = MetadataNode('tEXt')
        chunk.set_query('/Keyword', chunk_data[:keyword_end].decode('latin-1'))
        chunk.set_query('/TextEntry', chunk_data[keyword_end + 1:].decode('latin-1'))
        return chunk
