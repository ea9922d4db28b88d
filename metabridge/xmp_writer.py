# Copyright 2025 DNAi inc.

# Dual-licensed under the DNAi Free License v1.1 and the
# DNAi Commercial License v1.1.
# See the LICENSE files in the project root for details.

"""
XMP packet writer

This module serializes an XMP metadata subtree (as produced by XMPParser)
back into an XMP packet wrapped in xpacket processing instructions.

Copyright 2025 DNAi inc.
"""

import logging
import re
import xml.etree.ElementTree as ET
from typing import Any, Dict, Tuple
from xml.dom import minidom

from metabridge.metadata_node import MetadataNode, segment_name
from metabridge.xmp_parser import (
    ALT_FORMAT,
    BAG_FORMAT,
    NAMESPACES,
    RDF_NS,
    SEQ_FORMAT,
    XML_NS,
)

logger = logging.getLogger(__name__)

XPACKET_START = b'<?xpacket begin="\xef\xbb\xbf" id="W5M0MpCehiHzreSzNTczkc9d"?>\n'
XPACKET_END = b'\n<?xpacket end="w"?>'

_RESERVED_PREFIX_RE = re.compile(r'ns\d+$')


class XMPWriter:
    """
    Writes XMP metadata subtrees as XMP packets.

    Prefixes resolve through the namespaces declared on the subtree first,
    then the well-known table.
    """

    def __init__(self):
        self._namespaces: Dict[str, str] = {}

    def build_xmp_packet(self, xmp: MetadataNode) -> bytes:
        """
        Build an XMP packet from an XMP subtree.

        Args:
            xmp: "xmp" metadata node

        Returns:
            XMP packet as bytes (UTF-8)
        """
        self._namespaces = xmp.namespaces
        xml_str = self._create_xmp_xml(xmp)
        return XPACKET_START + xml_str.encode('utf-8') + XPACKET_END

    def _create_xmp_xml(self, xmp: MetadataNode) -> str:
        for prefix, uri in NAMESPACES.items():
            ET.register_namespace(prefix, uri)

        xmpmeta = ET.Element('{adobe:ns:meta/}xmpmeta')
        rdf = ET.SubElement(xmpmeta, f'{{{RDF_NS}}}RDF')
        description = ET.SubElement(rdf, f'{{{RDF_NS}}}Description')
        description.set(f'{{{RDF_NS}}}about', '')

        for segment, value in xmp.items():
            self._add_property(description, segment, value)

        xml_str = ET.tostring(xmpmeta, encoding='unicode', method='xml')

        # Pretty print
        pretty_xml = minidom.parseString(xml_str).toprettyxml(indent='  ')

        # XMP packets don't need the XML declaration when wrapped in xpacket
        if pretty_xml.startswith('<?xml'):
            decl_end = pretty_xml.find('?>')
            if decl_end != -1:
                pretty_xml = pretty_xml[decl_end + 2:].lstrip('\n\r\t ')

        return pretty_xml.rstrip()

    def _qualified_name(self, segment: str) -> Tuple[str, str]:
        """
        Resolve "/prefix:local" to ("{uri}local", prefix).

        Raises:
            ValueError: If the segment is not a prefixed property name
        """
        name = segment_name(segment)
        if ':' not in name or name.startswith('{'):
            raise ValueError(f"Not an XMP property segment: {segment}")
        prefix, local = name.split(':', 1)
        uri = self._namespaces.get(prefix) or NAMESPACES.get(prefix)
        if uri is None:
            uri = f'http://ns.adobe.com/{prefix}/1.0/'
            logger.debug(f"No namespace declared for XMP prefix {prefix}, using {uri}")
        if NAMESPACES.get(prefix) != uri and not _RESERVED_PREFIX_RE.match(prefix):
            ET.register_namespace(prefix, uri)
        return f'{{{uri}}}{local}', prefix

    def _add_property(self, parent: ET.Element, segment: str, value: Any) -> None:
        try:
            qualified_name, _ = self._qualified_name(segment)
        except ValueError as e:
            logger.debug(f"Skipping XMP entry: {e}")
            return

        element = ET.SubElement(parent, qualified_name)
        self._fill_value(element, value)

    def _fill_value(self, element: ET.Element, value: Any) -> None:
        if not isinstance(value, MetadataNode):
            element.text = self._text(value)
            return

        if value.format == ALT_FORMAT:
            alt = ET.SubElement(element, f'{{{RDF_NS}}}Alt')
            for segment, item in value.items():
                li = ET.SubElement(alt, f'{{{RDF_NS}}}li')
                lang = segment_name(segment)
                li.set(f'{{{XML_NS}}}lang', 'x-default' if lang.startswith('{') else lang)
                self._fill_value(li, item)
        elif value.format in (BAG_FORMAT, SEQ_FORMAT):
            container = ET.SubElement(element, f'{{{RDF_NS}}}{"Bag" if value.format == BAG_FORMAT else "Seq"}')
            for _, item in value.items():
                li = ET.SubElement(container, f'{{{RDF_NS}}}li')
                self._fill_value(li, item)
        else:
            # Structure
            element.set(f'{{{RDF_NS}}}parseType', 'Resource')
            for segment, item in value.items():
                self._add_property(element, segment, item)

    @staticmethod
    def _text(value: Any) -> str:
        if isinstance(value, (bytes, bytearray)):
            return bytes(value).decode('utf-8', errors='replace')
        if isinstance(value, (list, tuple)):
            return ' '.join(str(v) for v in value)
        return str(value)


def build_xmp_packet(xmp: MetadataNode) -> bytes:
    """Serialize an "xmp" metadata node to an XMP packet."""
    return XMPWriter().build_xmp_packet(xmp)
