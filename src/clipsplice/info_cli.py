"""CLI for inspecting a source before editing.

Usage:
    clipsplice info source.mp4
    clipsplice info music.mp3 --audio
"""

import argparse

from .media import MediaSource
from .segments import Track
from .timefmt import format_time, format_time_precise


def describe(path: str, track: Track = Track.VIDEO) -> list[str]:
    """Summary lines for one source file."""
    source = MediaSource.from_path(path, track)
    try:
        lines = [
            f"Source:   {path}",
            f"Duration: {format_time(source.duration)} ({format_time_precise(source.duration)})",
        ]
        if track is Track.VIDEO:
            w, h = source.dimensions()
            lines.append(f"Size:     {w}x{h}")
            lines.append(f"FPS:      {source.fps:g}")
        lines.append(f"Audio:    {'yes' if source.has_audio else 'no'}")
    finally:
        source.close()
    return lines


def main(args=None):
    parser = argparse.ArgumentParser(
        description="Print duration, size and frame rate of a media file.",
    )
    parser.add_argument("source", help="Path to video (or audio with --audio)")
    parser.add_argument(
        "--audio", action="store_true",
        help="Load the file as an audio-only source",
    )
    parsed = parser.parse_args(args)

    track = Track.AUDIO if parsed.audio else Track.VIDEO
    for line in describe(parsed.source, track):
        print(line)


if __name__ == "__main__":
    main()
