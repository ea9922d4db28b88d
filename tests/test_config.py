# Copyright 2025 DNAi inc.

# Dual-licensed under the DNAi Free License v1.1 and the
# DNAi Commercial License v1.1.
# See the LICENSE files in the project root for details.

import pytest

from metabridge.codec import ImageCodec
from metabridge.config import ConversionConfig, resolve_config
from metabridge.converter import MetadataConverter


def test_components_do_not_share_default_config():
    first = MetadataConverter()
    first.config.png_xmp_keyword = 'Changed'

    assert MetadataConverter().config.png_xmp_keyword == 'XML:com.adobe.xmp'
    assert ImageCodec().config.png_xmp_keyword == 'XML:com.adobe.xmp'


def test_given_config_is_used_as_is():
    config = ConversionConfig(tiff_byte_order='>')
    assert resolve_config(config) is config
    assert resolve_config(None) is not resolve_config(None)


@pytest.mark.parametrize('kwargs', [
    {'tiff_byte_order': '!'},
    {'synthetic_pixels': b'\x00\x00'},
])
def test_invalid_config(kwargs):
    with pytest.raises(ValueError):
        ConversionConfig(**kwargs)
