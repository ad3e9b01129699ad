"""Edit script loader — replay a list of editing gestures from YAML.

An edit script is a recorded sequence of commands, not a project file:
it is read and replayed against a fresh session, never written back.
Sources use the same ${var} path resolution as the settings loader.

Edit script schema:
  paths:
    media: "/data/uploads"
  video: "${media}/clip.mp4"      # required
  audio: "${media}/music.mp3"     # optional
  commands:
    - split: {track: video, at: 4}
    - trim: {track: video, segment: segment-2, start: "00:05", end: 9.5}
    - drag_trim: {track: video, segment: segment-2, edge: start, fraction: 0.5}
    - remove: {track: video, segment: segment-1}
    - reorder: {track: video, from: segment-3, to: segment-2}
    - seek: 1.0
    - overlay: {text: "Hi", x: 10, y: 20, style: {color: "#FF0000", fontSize: 24}}
    - move_overlay: {overlay: overlay-1, dx: 5, dy: -3}
    - remove_overlay: {overlay: overlay-1}
    - zoom: 1.25
    - undo
  export:
    start: 4
    end: 10                       # optional; defaults to the source end
"""

from pathlib import Path

import yaml

from .common import resolve_path_vars
from .segments import Track
from .timefmt import parse_time


VALID_TRACKS = {t.value for t in Track}

# op -> (required fields, optional fields)
COMMAND_FIELDS = {
    "split": ({"track", "at"}, set()),
    "trim": ({"track", "segment", "start", "end"}, set()),
    "drag_trim": ({"track", "segment", "edge", "fraction"}, set()),
    "remove": ({"track", "segment"}, set()),
    "reorder": ({"track", "from", "to"}, set()),
    "overlay": ({"text", "x", "y"}, {"style"}),
    "move_overlay": ({"overlay", "dx", "dy"}, set()),
    "remove_overlay": ({"overlay"}, set()),
}

# Commands whose argument is a single scalar rather than a mapping.
SCALAR_COMMANDS = {"seek", "zoom"}
BARE_COMMANDS = {"undo"}

TIME_FIELDS = {"at", "start", "end"}
NUMBER_FIELDS = {"fraction", "x", "y", "dx", "dy"}


def load_edit_script(script_path: str | Path) -> dict:
    """Load, validate, and normalize an edit script.

    Processing pipeline:
      1. Parse YAML.
      2. Resolve ${path} variables in the video/audio sources.
      3. Validate and normalize each command.
      4. Validate the export range.

    Returns:
        {"video": str, "audio": str | None,
         "commands": [(op, args), ...], "export": {"start", "end"}}

    Raises:
        ValueError: Missing/invalid fields, naming the command index.
    """
    with open(script_path) as f:
        raw = yaml.safe_load(f)

    if not isinstance(raw, dict):
        raise ValueError("Edit script: top level must be a mapping")
    if "video" not in raw:
        raise ValueError("Edit script: missing required 'video' field")

    paths = raw.get("paths", {})
    video = resolve_path_vars(str(raw["video"]), paths)
    audio = raw.get("audio")
    if audio is not None:
        audio = resolve_path_vars(str(audio), paths)

    commands = [
        _parse_command(i, entry) for i, entry in enumerate(raw.get("commands") or [])
    ]

    export = raw.get("export") or {}
    if not isinstance(export, dict):
        raise ValueError("Edit script: 'export' must be a mapping")
    start = parse_time(export.get("start", 0))
    end = parse_time(export["end"]) if export.get("end") is not None else None
    if end is not None and start >= end:
        raise ValueError(f"Edit script: export start ({start}) must be < end ({end})")

    return {
        "video": video,
        "audio": audio,
        "commands": commands,
        "export": {"start": start, "end": end},
    }


def _parse_command(i: int, entry) -> tuple[str, dict]:
    if isinstance(entry, str):
        if entry in BARE_COMMANDS:
            return entry, {}
        raise ValueError(f"Command {i}: unknown command '{entry}'")
    if not isinstance(entry, dict) or len(entry) != 1:
        raise ValueError(f"Command {i}: expected a single-key mapping, got {entry!r}")

    op, args = next(iter(entry.items()))
    if op in BARE_COMMANDS:
        return op, {}
    if op in SCALAR_COMMANDS:
        if op == "seek":
            return op, {"time": parse_time(args)}
        if not isinstance(args, (int, float)) or args <= 0:
            raise ValueError(f"Command {i} (zoom): factor must be > 0, got {args!r}")
        return op, {"factor": float(args)}
    if op not in COMMAND_FIELDS:
        raise ValueError(
            f"Command {i}: unknown command '{op}'. "
            f"Valid: {sorted(set(COMMAND_FIELDS) | SCALAR_COMMANDS | BARE_COMMANDS)}"
        )
    if not isinstance(args, dict):
        raise ValueError(f"Command {i} ({op}): arguments must be a mapping")

    required, optional = COMMAND_FIELDS[op]
    for key in sorted(required):
        if key not in args:
            raise ValueError(f"Command {i} ({op}): missing required field '{key}'")
    unknown = set(args) - required - optional
    if unknown:
        raise ValueError(f"Command {i} ({op}): unknown field(s) {sorted(unknown)}")

    out = {}
    for key, value in args.items():
        if key == "track":
            if value not in VALID_TRACKS:
                raise ValueError(
                    f"Command {i} ({op}): invalid track '{value}'. Valid: {sorted(VALID_TRACKS)}"
                )
            out[key] = Track(value)
        elif key in TIME_FIELDS:
            try:
                out[key] = parse_time(value)
            except ValueError as e:
                raise ValueError(f"Command {i} ({op}): {e}") from None
        elif key in NUMBER_FIELDS:
            if not isinstance(value, (int, float)) or isinstance(value, bool):
                raise ValueError(f"Command {i} ({op}): '{key}' must be a number, got {value!r}")
            out[key] = float(value)
        elif key == "style":
            if value is not None and not isinstance(value, dict):
                raise ValueError(f"Command {i} ({op}): 'style' must be a mapping")
            out[key] = value or {}
        else:
            out[key] = str(value)
    return op, out


def apply_commands(commands, edit) -> None:
    """Replay normalized commands through an EditCommands instance."""
    for op, args in commands:
        if op == "split":
            edit.split(args["track"], args["at"])
        elif op == "trim":
            edit.trim(args["track"], args["segment"], args["start"], args["end"])
        elif op == "drag_trim":
            edit.drag_trim(args["track"], args["segment"], args["edge"], args["fraction"])
        elif op == "remove":
            edit.remove(args["track"], args["segment"])
        elif op == "reorder":
            edit.reorder(args["track"], args["from"], args["to"])
        elif op == "overlay":
            edit.add_overlay(args["text"], args.get("style"), args["x"], args["y"])
        elif op == "move_overlay":
            edit.update_overlay_position(args["overlay"], args["dx"], args["dy"])
        elif op == "remove_overlay":
            edit.remove_overlay(args["overlay"])
        elif op == "seek":
            edit.seek(args["time"])
        elif op == "zoom":
            edit.set_zoom(args["factor"])
        elif op == "undo":
            edit.undo()


def validate_script_sources(script: dict) -> None:
    """Check that the script's media files exist on disk.

    Raises:
        FileNotFoundError: Lists all missing files.
    """
    missing = [p for p in (script["video"], script["audio"]) if p and not Path(p).exists()]
    if missing:
        msg = f"Missing {len(missing)} source file(s):\n"
        for p in missing:
            msg += f"  - {p}\n"
        raise FileNotFoundError(msg)
