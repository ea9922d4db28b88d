# Copyright 2025 DNAi inc.

# Dual-licensed under the DNAi Free License v1.1 and the
# DNAi Commercial License v1.1.
# See the LICENSE files in the project root for details.

"""
Command-line interface for metabridge

Prints the EXIF comment and XMP description of an image before and after
its metadata is converted to TIFF and written to disk, or dumps every
metadata value with --dump.

Copyright 2025 DNAi inc.
"""

import argparse
import logging
import sys
from typing import List, Optional

from metabridge.core import MetaBridge
from metabridge.exceptions import MetaBridgeError
from metabridge.metadata_node import MetadataNode
from metabridge.metadata_reader import get_exif_comment, get_xmp_description

NO_METADATA_MESSAGE = "The image does not contain any metadata."


def print_values(exif_comment: str, xmp_description: str) -> None:
    """Print the EXIF comment and XMP description, or that they are missing."""
    if exif_comment:
        print(f"EXIF comment: {exif_comment}")
    else:
        print("EXIF comment not found")

    if xmp_description:
        print(f"XMP description: {xmp_description}")
    else:
        print("XMP description not found")


def print_dump(bridge: MetaBridge) -> None:
    """Print the container format followed by every metadata value."""
    print(f"{bridge.format.upper() if bridge.format else 'Unspecified'} format metadata")
    for line in bridge.dump():
        print(line)


def print_persisted(bridge: MetaBridge, persisted: Optional[MetadataNode]) -> None:
    if persisted is None:
        print_values('', '')
        return
    print_values(
        get_exif_comment(persisted, bridge.config),
        get_xmp_description(persisted, bridge.converter.transcoder, bridge.config)
    )


def main(argv: Optional[List[str]] = None) -> int:
    """Main CLI entry point."""
    parser = argparse.ArgumentParser(
        prog='metabridge',
        description="metabridge - Convert image metadata between container formats",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Show the EXIF comment and XMP description, before and after conversion to TIFF
  metabridge image.jpg

  # Dump all metadata
  metabridge --dump image.png
        """
    )
    parser.add_argument('image', help='Image file to process')
    parser.add_argument('-d', '--dump', action='store_true', help='Print every metadata value')
    parser.add_argument('-v', '--verbose', action='store_true', help='Enable debug logging')
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format='%(levelname)s %(name)s: %(message)s'
    )

    try:
        with MetaBridge(file_path=args.image) as bridge:
            if not bridge.has_metadata:
                print(NO_METADATA_MESSAGE)
                return 0

            if args.dump:
                print_dump(bridge)
                return 0

            print("Original image:")
            print_values(bridge.get_exif_comment(), bridge.get_xmp_description())

            persisted = bridge.persist()
            print("After conversion to TIFF:")
            print_persisted(bridge, persisted)
    except MetaBridgeError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    return 0


if __name__ == '__main__':
    sys.exit(main())
