"""Command-line interface for cfi."""

import argparse
import sys

from cfi import __version__
from cfi.core.context import Context
from cfi.core.output import Output
from cfi.scripts import check_fileset_inodes, load_inode_data


COMMANDS = {
    "check": check_fileset_inodes.run,
    "deliver": load_inode_data.run,
}


def create_parser() -> argparse.ArgumentParser:
    """Create the argument parser."""
    parser = argparse.ArgumentParser(
        prog="cfi",
        description="Keep GPFS fileset inode limits ahead of usage",
    )
    parser.add_argument(
        "--version",
        action="version",
        version=f"cfi {__version__}",
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")
    # Options after the command belong to the script's own parser.
    subparsers.add_parser(
        "check",
        help="Raise inode limits and spool usage (cluster manager only)",
        add_help=False,
    )
    subparsers.add_parser(
        "deliver",
        help="Deliver spooled usage datapoints",
        add_help=False,
    )
    return parser


def main(argv: list[str] | None = None) -> int:
    """Main entry point."""
    parser = create_parser()
    args, rest = parser.parse_known_args(argv)

    if args.command is None:
        parser.print_help()
        return 0

    return COMMANDS[args.command](rest, Output(), Context())


def check_main() -> int:
    """check-fileset-inodes console script."""
    return check_fileset_inodes.run(sys.argv[1:], Output(), Context())


def deliver_main() -> int:
    """load-inode-data console script."""
    return load_inode_data.run(sys.argv[1:], Output(), Context())


if __name__ == "__main__":
    sys.exit(main())
