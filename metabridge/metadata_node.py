# Copyright 2025 DNAi inc.

# Dual-licensed under the DNAi Free License v1.1 and the
# DNAi Commercial License v1.1.
# See the LICENSE files in the project root for details.

"""
Hierarchical metadata tree

A MetadataNode is the decoded form of an image's embedded metadata: an
ordered mapping of path segments ("/ifd", "/{ushort=37510}",
"/dc:description") to scalars or nested nodes. Values are addressed with
query paths built by concatenating segments, e.g. "/ifd/exif/{ushort=37510}".

Copyright 2025 DNAi inc.
"""

from typing import Any, Dict, Iterator, List, Optional, Tuple

from metabridge.exceptions import MetadataWriteError, QueryNotSupportedError

_OPENERS = {'{': '}', '[': ']'}


def split_query(query: str) -> List[str]:
    """
    Split a query path into its segments.

    A '/' inside braces or brackets belongs to the current segment, so
    "/{str=a/b}/x" yields ["/{str=a/b}", "/x"].

    Args:
        query: Query path

    Returns:
        List of segments, each starting with '/'

    Raises:
        QueryNotSupportedError: If the path is malformed
    """
    if not isinstance(query, str) or not query.startswith('/'):
        raise QueryNotSupportedError(f"Invalid query path: {query!r}")

    segments = []
    current = ''
    closing = None
    for char in query:
        if closing is not None:
            current += char
            if char == closing:
                closing = None
            continue
        if char == '/':
            if current:
                segments.append(current)
            current = '/'
            continue
        if char in _OPENERS:
            closing = _OPENERS[char]
        current += char

    if closing is not None:
        raise QueryNotSupportedError(f"Unbalanced query path: {query!r}")
    if current:
        segments.append(current)
    if any(segment == '/' for segment in segments):
        raise QueryNotSupportedError(f"Empty segment in query path: {query!r}")
    return segments


def segment_name(segment: str) -> str:
    """Return a segment without its leading '/' and any "[n]" index prefix."""
    name = segment[1:]
    if name.startswith('[') and ']' in name:
        name = name[name.index(']') + 1:]
    return name


class MetadataNode:
    """
    Ordered metadata tree node.

    Children are kept in insertion order; that order is preserved by clone()
    and by every copy the converter makes, since encoders may depend on it.
    """

    def __init__(self, format: str = ''):
        """
        Initialize an empty node.

        Args:
            format: Container dialect of this node ("tiff", "exif", "xmp", ...)
        """
        self._format = format or ''
        self._entries: Dict[str, Any] = {}
        self._frozen = False
        self._namespaces: Dict[str, str] = {}

    @property
    def format(self) -> str:
        return self._format

    @property
    def is_frozen(self) -> bool:
        return self._frozen

    @property
    def namespaces(self) -> Dict[str, str]:
        """Namespace URIs declared for the prefixes used below this node."""
        return dict(self._namespaces)

    def declare_namespace(self, prefix: str, uri: str) -> None:
        """
        Bind a namespace prefix to its URI for this subtree.

        Raises:
            MetadataWriteError: If the node is frozen
        """
        self._check_writable()
        self._namespaces[prefix] = uri

    def __iter__(self) -> Iterator[str]:
        return iter(list(self._entries))

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, query: str) -> bool:
        return self.contains_query(query)

    def __repr__(self) -> str:
        return f"MetadataNode(format={self._format!r}, entries={list(self._entries)})"

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, MetadataNode):
            return NotImplemented
        return (
            self._format == other._format
            and list(self._entries.items()) == list(other._entries.items())
        )

    __hash__ = None

    def items(self) -> Iterator[Tuple[str, Any]]:
        """Iterate over (segment, value) pairs at this level."""
        return iter(list(self._entries.items()))

    def get_query(self, query: str) -> Any:
        """
        Evaluate a query path.

        Args:
            query: Query path, e.g. "/app1/ifd/exif"

        Returns:
            Scalar value, MetadataNode, or None if nothing is stored there

        Raises:
            QueryNotSupportedError: If the path is malformed or walks
                through a scalar value
        """
        node = self
        segments = split_query(query)
        for index, segment in enumerate(segments):
            if segment not in node._entries:
                return None
            value = node._entries[segment]
            if index == len(segments) - 1:
                return value
            if not isinstance(value, MetadataNode):
                raise QueryNotSupportedError(
                    f"Query {query!r} passes through a scalar at {segment!r}"
                )
            node = value
        return None

    def contains_query(self, query: str) -> bool:
        """Return True if something is stored at the query path."""
        try:
            return self.get_query(query) is not None
        except QueryNotSupportedError:
            return False

    def set_query(self, query: str, value: Any) -> None:
        """
        Store a value at a query path.

        Missing intermediate nodes are created with the segment name as their
        format. A MetadataNode value is stored as a private deep copy.

        Args:
            query: Query path
            value: Scalar or MetadataNode

        Raises:
            MetadataWriteError: If the tree is frozen
            QueryNotSupportedError: If the path is malformed or an
                intermediate segment holds a scalar
        """
        if value is None:
            raise ValueError("value must not be None; use remove_query()")

        segments = split_query(query)
        node = self
        for segment in segments[:-1]:
            node._check_writable()
            child = node._entries.get(segment)
            if child is None:
                child = MetadataNode(segment_name(segment))
                node._entries[segment] = child
            elif not isinstance(child, MetadataNode):
                raise QueryNotSupportedError(
                    f"Query {query!r} passes through a scalar at {segment!r}"
                )
            node = child

        node._check_writable()
        if isinstance(value, MetadataNode):
            value = value.clone()
        elif isinstance(value, list):
            value = list(value)
        node._entries[segments[-1]] = value

    def remove_query(self, query: str) -> bool:
        """
        Remove the value at a query path.

        Returns:
            True if a value was removed
        """
        segments = split_query(query)
        parent = self.get_query(''.join(segments[:-1])) if len(segments) > 1 else self
        if not isinstance(parent, MetadataNode) or segments[-1] not in parent._entries:
            return False
        parent._check_writable()
        del parent._entries[segments[-1]]
        return True

    def clone(self) -> 'MetadataNode':
        """Return an unfrozen deep copy preserving entry order."""
        copy = MetadataNode(self._format)
        copy._namespaces = dict(self._namespaces)
        for segment, value in self._entries.items():
            if isinstance(value, MetadataNode):
                value = value.clone()
            elif isinstance(value, list):
                value = list(value)
            copy._entries[segment] = value
        return copy

    def freeze(self) -> 'MetadataNode':
        """Mark this node and all of its children read-only."""
        self._frozen = True
        for value in self._entries.values():
            if isinstance(value, MetadataNode):
                value.freeze()
        return self

    def walk(self, prefix: str = '') -> Iterator[Tuple[str, Any]]:
        """
        Depth-first iteration over all scalar values.

        Yields:
            (full query path, scalar value) in insertion order
        """
        for segment, value in self._entries.items():
            if isinstance(value, MetadataNode):
                yield from value.walk(prefix + segment)
            else:
                yield prefix + segment, value

    def find_node(self, query: str) -> Optional['MetadataNode']:
        """Return the subtree at a query path, or None if absent or scalar."""
        try:
            value = self.get_query(query)
        except QueryNotSupportedError:
            return None
        return value if isinstance(value, MetadataNode) else None

    def _check_writable(self) -> None:
        if self._frozen:
            raise MetadataWriteError(
                f"Cannot modify frozen '{self._format}' metadata; clone() it first"
            )


def copy_sub_ifd(parent: MetadataNode, ifd: MetadataNode, query: str) -> None:
    """
    Deep-copy a subtree into parent below query.

    An empty placeholder of the subtree's format is created at query first
    if nothing is there; entries are then copied depth first so the copy
    keeps the source's order at every level. Namespace declarations are
    copied along with the entries.

    Args:
        parent: Tree being built
        ifd: Subtree to copy (left untouched)
        query: Destination query path in parent
    """
    if not parent.contains_query(query):
        parent.set_query(query, MetadataNode(ifd.format))

    target = parent.find_node(query)
    if target is not None:
        for prefix, uri in ifd.namespaces.items():
            target.declare_namespace(prefix, uri)

    for tag in ifd:
        value = ifd.get_query(tag)

        if isinstance(value, MetadataNode):
            copy_sub_ifd(parent, value, query + tag)
        else:
            parent.set_query(query + tag, value)
