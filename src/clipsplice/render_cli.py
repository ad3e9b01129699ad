"""CLI for rendering an edit script.

Builds a fresh editing session, loads the script's sources, replays its
commands and exports the requested range.

Usage:
    # Render with default settings (webm / vp9)
    clipsplice render --script edit.yaml --output trimmed-video.webm

    # Render into a directory under the configured download name
    clipsplice render --script edit.yaml --output renders/ --config settings.yaml

    # Validate only (no rendering)
    clipsplice render --script edit.yaml --validate
"""

import argparse
import asyncio
import logging
import time
from pathlib import Path

from .commands import EditCommands
from .config import load_settings
from .export import ExportResult
from .media import MediaSource
from .script import apply_commands, load_edit_script, validate_script_sources
from .segments import Track
from .session import EditSession
from .timefmt import format_time_precise


def render(
    script_path: str,
    output_path: str,
    settings_path: str | None = None,
) -> ExportResult:
    """Load script and settings, replay the edits, export to output_path.

    Args:
        script_path: Path to YAML edit script.
        output_path: Output file, or an existing directory (the artifact
            is written there under the configured filename).
        settings_path: Optional settings YAML.

    Returns:
        The ExportResult that was written.
    """
    settings = load_settings(settings_path)
    script = load_edit_script(script_path)
    validate_script_sources(script)

    session = EditSession(settings)
    edit = EditCommands(session)
    try:
        edit.upload(Track.VIDEO, MediaSource.from_path(script["video"], Track.VIDEO))
        if script["audio"]:
            edit.upload(Track.AUDIO, MediaSource.from_path(script["audio"], Track.AUDIO))

        apply_commands(script["commands"], edit)
        segs = session.segments.segments(Track.VIDEO)
        print(f"Replayed {len(script['commands'])} commands: {len(segs)} video segment(s), "
              f"{len(session.overlays)} overlay(s)")

        start = script["export"]["start"]
        end = script["export"]["end"]
        if end is None:
            end = session.segments.duration(Track.VIDEO)
        w, h = session.canvas_size()
        label = f"[{format_time_precise(start)} - {format_time_precise(end)}]"

        print(f"  START  {label} {w}x{h} {settings.export.codec}", flush=True)
        t0 = time.monotonic()
        result = asyncio.run(edit.export_range(start, end))
        elapsed = time.monotonic() - t0
        print(
            f"  DONE   {label} — {result.frame_count} frames, "
            f"{result.duration:.1f}s video, {elapsed:.1f}s wall",
            flush=True,
        )
    finally:
        session.close()

    out = Path(output_path)
    if out.is_dir():
        out = result.write_to(out)
    else:
        out.parent.mkdir(parents=True, exist_ok=True)
        out.write_bytes(result.data)
    print(f"Writing to: {out}")
    print(f"\nDone: {out} ({len(result.data)} bytes, {result.mime_type})")
    return result


# ── CLI entry point ───────────────────────────────────────────────


def main(args=None):
    parser = argparse.ArgumentParser(
        description="Replay a YAML edit script and export the result.",
    )
    parser.add_argument(
        "--script", required=True,
        help="Path to YAML edit script",
    )
    parser.add_argument(
        "--output",
        help="Output file path, or directory for the configured filename",
    )
    parser.add_argument(
        "--config", default=None,
        help="Path to settings YAML (export and editor defaults)",
    )
    parser.add_argument(
        "--validate", action="store_true",
        help="Validate script and settings only — check paths, don't render",
    )
    parser.add_argument(
        "--verbose", action="store_true",
        help="Log decode and encoder details",
    )
    args = parser.parse_args(args)

    if args.verbose:
        logging.basicConfig(level=logging.DEBUG, format="%(levelname)s %(name)s: %(message)s")

    if args.validate:
        load_settings(args.config)
        script = load_edit_script(args.script)
        validate_script_sources(script)
        print(f"Script valid: {len(script['commands'])} commands")
        for i, (op, params) in enumerate(script["commands"]):
            detail = ", ".join(f"{k}={getattr(v, 'value', v)}" for k, v in params.items())
            print(f"  {i}: {op}" + (f" ({detail})" if detail else ""))
        print("All paths verified.")
        return

    if not args.output:
        parser.error("--output is required (unless using --validate)")

    render(args.script, args.output, settings_path=args.config)


if __name__ == "__main__":
    main()
