"""Subcommand dispatcher for clipsplice.

Usage:
    clipsplice render --script edit.yaml --output trimmed-video.webm
    clipsplice info   source.mp4
"""

import argparse
import sys


def main(args=None):
    parser = argparse.ArgumentParser(
        prog="clipsplice",
        description="Segment-based video trimming, overlays and export.",
    )
    subparsers = parser.add_subparsers(dest="command")

    # Register subcommands. Each delegates to its own module's main().
    subparsers.add_parser("render", help="Replay a YAML edit script and export")
    subparsers.add_parser("info", help="Show duration, size and fps of a source")

    # Parse only the subcommand name, pass the rest to the subcommand's parser.
    parsed, remaining = parser.parse_known_args(args)

    if parsed.command is None:
        parser.print_help()
        sys.exit(1)

    if parsed.command == "render":
        from .render_cli import main as render_main
        render_main(remaining)
    elif parsed.command == "info":
        from .info_cli import main as info_main
        info_main(remaining)


if __name__ == "__main__":
    main()
