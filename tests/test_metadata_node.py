# Copyright 2025 DNAi inc.

# Dual-licensed under the DNAi Free License v1.1 and the
# DNAi Commercial License v1.1.
# See the LICENSE files in the project root for details.

import pytest

from metabridge.exceptions import MetadataWriteError, QueryNotSupportedError
from metabridge.metadata_node import MetadataNode, copy_sub_ifd, segment_name, split_query


def test_split_query_keeps_braces_together():
    assert split_query('/ifd/{str=a/b}/[1]iTXt') == ['/ifd', '/{str=a/b}', '/[1]iTXt']


@pytest.mark.parametrize('query', ['', 'ifd', '/ifd//exif', '/{ushort=1', '/[1iTXt'])
def test_split_query_rejects_malformed_paths(query):
    with pytest.raises(QueryNotSupportedError):
        split_query(query)


def test_segment_name():
    assert segment_name('/[2]iTXt') == 'iTXt'
    assert segment_name('/dc:title') == 'dc:title'


def test_set_and_get_nested_query():
    tree = MetadataNode('tiff')
    tree.set_query('/ifd/exif/{ushort=37510}', 'hello')
    assert tree.get_query('/ifd/exif/{ushort=37510}') == 'hello'
    assert tree.get_query('/ifd/exif').format == 'exif', "Intermediate nodes take the segment name"
    assert tree.contains_query('/ifd/exif')
    assert '/ifd/gps' not in tree
    assert tree.get_query('/ifd/gps') is None


def test_query_through_scalar():
    tree = MetadataNode('png')
    tree.set_query('/iTXt/Keyword', 'XML:com.adobe.xmp')
    with pytest.raises(QueryNotSupportedError):
        tree.get_query('/iTXt/Keyword/more')
    assert not tree.contains_query('/iTXt/Keyword/more')
    assert tree.find_node('/iTXt/Keyword') is None
    with pytest.raises(QueryNotSupportedError):
        tree.set_query('/iTXt/Keyword/more', 'x')


def test_set_none_is_rejected():
    with pytest.raises(ValueError):
        MetadataNode().set_query('/a', None)


def test_insertion_order_is_kept():
    tree = MetadataNode('exif')
    for name in ('/c', '/a', '/b'):
        tree.set_query(name, name)
    assert list(tree) == ['/c', '/a', '/b']
    tree.set_query('/a', 'replaced')
    assert list(tree) == ['/c', '/a', '/b'], "Replacing a value keeps its position"


def test_assigned_nodes_are_copied():
    child = MetadataNode('xmp')
    child.set_query('/dc:title', 'one')
    tree = MetadataNode('tiff')
    tree.set_query('/ifd/xmp', child)
    child.set_query('/dc:title', 'two')
    assert tree.get_query('/ifd/xmp/dc:title') == 'one', "Trees must not share children"


def test_remove_query():
    tree = MetadataNode('jpg')
    tree.set_query('/app1/ifd/{ushort=271}', 'Maker')
    assert tree.remove_query('/app1/ifd/{ushort=271}')
    assert not tree.remove_query('/app1/ifd/{ushort=271}')
    assert len(tree.get_query('/app1/ifd')) == 0


def test_freeze_rejects_writes():
    tree = MetadataNode('tiff')
    tree.set_query('/ifd/exif/{ushort=37510}', 'hello')
    tree.freeze()
    assert tree.is_frozen and tree.find_node('/ifd/exif').is_frozen
    with pytest.raises(MetadataWriteError):
        tree.set_query('/ifd/exif/{ushort=37510}', 'changed')
    with pytest.raises(MetadataWriteError):
        tree.remove_query('/ifd/exif/{ushort=37510}')


def test_clone_is_unfrozen_and_equal():
    tree = MetadataNode('tiff')
    tree.set_query('/ifd/{ushort=270}', 'caption')
    tree.set_query('/ifd/{ushort=258}', [8, 8, 8])
    tree.freeze()
    copy = tree.clone()
    assert copy == tree
    assert not copy.is_frozen
    copy.set_query('/ifd/{ushort=270}', 'changed')
    assert tree.get_query('/ifd/{ushort=270}') == 'caption'


def test_walk_is_depth_first():
    tree = MetadataNode('jpg')
    tree.set_query('/a', 1)
    tree.set_query('/b/c', 2)
    tree.set_query('/b/d', 3)
    tree.set_query('/e', 4)
    assert list(tree.walk()) == [('/a', 1), ('/b/c', 2), ('/b/d', 3), ('/e', 4)]


def test_copy_sub_ifd_preserves_nested_order():
    source = MetadataNode('exif')
    source.set_query('/a', 'first')
    nested = MetadataNode('interop')
    nested.set_query('/z', 'z')
    nested.set_query('/y', 'y')
    source.set_query('/b', nested)
    source.set_query('/c', 'last')

    target = MetadataNode('tiff')
    copy_sub_ifd(target, source, '/ifd/exif')

    copied = target.find_node('/ifd/exif')
    assert list(copied) == ['/a', '/b', '/c']
    assert list(copied.find_node('/b')) == ['/z', '/y']
    assert copied.find_node('/b').format == 'interop'
    assert list(source) == ['/a', '/b', '/c'], "The source subtree is left untouched"


def test_copy_sub_ifd_keeps_existing_placeholder():
    target = MetadataNode('tiff')
    target.set_query('/ifd/exif', MetadataNode('exif'))
    target.set_query('/ifd/exif/{ushort=1}', 'kept')
    source = MetadataNode('other')
    source.set_query('/{ushort=2}', 'added')
    copy_sub_ifd(target, source, '/ifd/exif')
    assert target.find_node('/ifd/exif').format == 'exif'
    assert list(target.find_node('/ifd/exif')) == ['/{ushort=1}', '/{ushort=2}']


def test_namespaces_follow_copies():
    xmp = MetadataNode('xmp')
    xmp.set_query('/GPano:ProjectionType', 'equirectangular')
    xmp.declare_namespace('GPano', 'http://ns.google.com/photos/1.0/panorama/')
    xmp.freeze()

    with pytest.raises(MetadataWriteError):
        xmp.declare_namespace('acme', 'http://example.com/acme/')
    assert xmp.clone().namespaces == {'GPano': 'http://ns.google.com/photos/1.0/panorama/'}

    tree = MetadataNode('tiff')
    tree.set_query('/ifd/xmp', MetadataNode('xmp'))
    copy_sub_ifd(tree, xmp, '/ifd/xmp')
    assert tree.find_node('/ifd/xmp').namespaces == xmp.namespaces, "Placeholder gains the declarations"

    xmp.namespaces['GPano'] = 'changed'
    assert xmp.namespaces['GPano'] == 'http://ns.google.com/photos/1.0/panorama/'
