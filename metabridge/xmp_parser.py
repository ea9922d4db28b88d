# Copyright 2025 DNAi inc.

# Dual-licensed under the DNAi Free License v1.1 and the
# DNAi Commercial License v1.1.
# See the LICENSE files in the project root for details.

"""
XMP (Extensible Metadata Platform) packet parser

This module parses an XMP packet into a metadata subtree. Properties are
stored at "/prefix:name"; language alternatives, bags and sequences become
nested nodes so that "/dc:description/x-default" addresses the default
description and "/dc:subject/{ulong=0}" the first keyword.

Copyright 2025 DNAi inc.
"""

import io
import logging
import re
import xml.etree.ElementTree as ET
from typing import Any, Dict, Optional

from metabridge.exceptions import MetadataReadError
from metabridge.metadata_node import MetadataNode

logger = logging.getLogger(__name__)

RDF_NS = 'http://www.w3.org/1999/02/22-rdf-syntax-ns#'
XML_NS = 'http://www.w3.org/XML/1998/namespace'

# Well-known XMP namespaces, used when a packet does not declare a prefix
NAMESPACES = {
    'rdf': RDF_NS,
    'x': 'adobe:ns:meta/',
    'xmp': 'http://ns.adobe.com/xap/1.0/',
    'xmpMM': 'http://ns.adobe.com/xap/1.0/mm/',
    'xmpRights': 'http://ns.adobe.com/xap/1.0/rights/',
    'xmpDM': 'http://ns.adobe.com/xmp/1.0/DynamicMedia/',
    'stEvt': 'http://ns.adobe.com/xap/1.0/sType/ResourceEvent#',
    'stRef': 'http://ns.adobe.com/xap/1.0/sType/ResourceRef#',
    'photoshop': 'http://ns.adobe.com/photoshop/1.0/',
    'crs': 'http://ns.adobe.com/camera-raw-settings/1.0/',
    'lr': 'http://ns.adobe.com/lightroom/1.0/',
    'dc': 'http://purl.org/dc/elements/1.1/',
    'exif': 'http://ns.adobe.com/exif/1.0/',
    'exifEX': 'http://cipa.jp/exif/1.0/',
    'tiff': 'http://ns.adobe.com/tiff/1.0/',
    'aux': 'http://ns.adobe.com/exif/1.0/aux/',
    'Iptc4xmpCore': 'http://iptc.org/std/Iptc4xmpCore/1.0/xmlns/',
    'Iptc4xmpExt': 'http://iptc.org/std/Iptc4xmpExt/2008-02-29/',
    'plus': 'http://ns.useplus.org/ldf/xmp/1.0/',
    'MicrosoftPhoto': 'http://ns.microsoft.com/photo/1.0/',
}

# Node formats of the structured value kinds
ALT_FORMAT = 'xmpalt'
BAG_FORMAT = 'xmpbag'
SEQ_FORMAT = 'xmpseq'
STRUCT_FORMAT = 'xmpstruct'

_CONTAINER_FORMATS = {
    f'{{{RDF_NS}}}Alt': ALT_FORMAT,
    f'{{{RDF_NS}}}Bag': BAG_FORMAT,
    f'{{{RDF_NS}}}Seq': SEQ_FORMAT,
}

_XPACKET_RE = re.compile(r'<\?xpacket[^>]*\?>', re.IGNORECASE)


def array_key(index: int) -> str:
    """Query segment of an array item."""
    return f'/{{ulong={index}}}'


class XMPParser:
    """
    Parser for XMP packets.

    Namespace prefixes are taken from the packet's own declarations, so a
    property written as dc:title is stored at "/dc:title". The URI of every
    prefix in use is declared on the returned node for the writer.
    """

    def __init__(self, packet: bytes):
        """
        Initialize XMP parser.

        Args:
            packet: XMP packet bytes (UTF-8, with or without xpacket wrapper)
        """
        if packet is None:
            raise ValueError("packet must not be None")
        self.packet = packet
        self._prefixes: Dict[str, str] = {uri: prefix for prefix, uri in NAMESPACES.items()}
        self._declared_uris = set()
        self._dynamic_ns_counter = 0
        self._used_namespaces: Dict[str, str] = {}

    def read(self) -> MetadataNode:
        """
        Parse the packet.

        Returns:
            "xmp" metadata node

        Raises:
            MetadataReadError: If the packet is not well-formed XMP
        """
        if isinstance(self.packet, (bytes, bytearray)):
            try:
                xmp_str = bytes(self.packet).decode('utf-8')
            except UnicodeDecodeError:
                logger.debug("XMP packet is not UTF-8, decoding as Latin-1")
                xmp_str = bytes(self.packet).decode('latin-1', errors='ignore')
        else:
            xmp_str = str(self.packet)

        # Remove xpacket wrappers to keep XML well-formed
        xmp_str = _XPACKET_RE.sub('', xmp_str).strip().lstrip('\ufeff')
        if not xmp_str:
            raise MetadataReadError("Empty XMP packet")

        try:
            root = self._parse_xml(xmp_str)
        except ET.ParseError as e:
            raise MetadataReadError(f"Failed to parse XMP packet: {e}")

        rdf = root if root.tag == f'{{{RDF_NS}}}RDF' else root.find(f'.//{{{RDF_NS}}}RDF')
        if rdf is None:
            raise MetadataReadError("XMP packet has no rdf:RDF element")

        xmp = MetadataNode('xmp')
        for description in rdf.findall(f'{{{RDF_NS}}}Description'):
            self._read_properties(description, xmp)
        for prefix, uri in self._used_namespaces.items():
            xmp.declare_namespace(prefix, uri)
        return xmp

    def _parse_xml(self, xmp_str: str) -> ET.Element:
        parser = ET.iterparse(io.BytesIO(xmp_str.encode('utf-8')), events=('start-ns',))
        for _, (prefix, uri) in parser:
            # Declared prefixes win over the defaults; the first declaration of a URI is kept
            if prefix and uri not in self._declared_uris:
                self._prefixes[uri] = prefix
                self._declared_uris.add(uri)
        return parser.root

    def _key(self, qualified_name: str) -> Optional[str]:
        """Convert "{uri}local" to "/prefix:local"."""
        if not qualified_name.startswith('{'):
            return f'/{qualified_name}'
        uri, local = qualified_name[1:].split('}', 1)
        if uri in (RDF_NS, XML_NS):
            return None
        prefix = self._prefixes.get(uri)
        if prefix is None:
            prefix = f'xmpns{self._dynamic_ns_counter}'
            self._dynamic_ns_counter += 1
            self._prefixes[uri] = prefix
            logger.debug(f"Undeclared XMP namespace {uri} mapped to {prefix}")
        self._used_namespaces[prefix] = uri
        return f'/{prefix}:{local}'

    def _read_properties(self, element: ET.Element, node: MetadataNode) -> None:
        """Store the attribute and element properties of a description or struct."""
        for attr_name, attr_value in element.attrib.items():
            key = self._key(attr_name)
            if key is not None:
                node.set_query(key, attr_value)

        for child in element:
            key = self._key(child.tag)
            if key is None:
                continue
            node.set_query(key, self._read_value(child))

    def _read_value(self, element: ET.Element) -> Any:
        resource = element.get(f'{{{RDF_NS}}}resource')
        if resource is not None:
            return resource

        if element.get(f'{{{RDF_NS}}}parseType') == 'Resource':
            struct = MetadataNode(STRUCT_FORMAT)
            self._read_properties(element, struct)
            return struct

        children = list(element)
        if children:
            first = children[0]
            container_format = _CONTAINER_FORMATS.get(first.tag)
            if container_format is not None:
                return self._read_container(first, container_format)
            if first.tag == f'{{{RDF_NS}}}Description':
                struct = MetadataNode(STRUCT_FORMAT)
                self._read_properties(first, struct)
                return struct
            struct = MetadataNode(STRUCT_FORMAT)
            self._read_properties(element, struct)
            return struct

        # Qualified shorthand: <ns:prop ns:field="v"/>
        if any(self._key(name) for name in element.attrib):
            struct = MetadataNode(STRUCT_FORMAT)
            self._read_properties(element, struct)
            return struct

        return (element.text or '').strip()

    def _read_container(self, container: ET.Element, container_format: str) -> MetadataNode:
        node = MetadataNode(container_format)
        items = container.findall(f'{{{RDF_NS}}}li')
        for index, item in enumerate(items):
            if container_format == ALT_FORMAT:
                lang = item.get(f'{{{XML_NS}}}lang')
                key = f'/{lang}' if lang else array_key(index)
            else:
                key = array_key(index)
            node.set_query(key, self._read_value(item))
        return node


def parse_xmp_packet(packet: bytes) -> MetadataNode:
    """Parse an XMP packet into an "xmp" metadata node."""
    return XMPParser(packet).read()
