"""Settings loader — export and editor defaults from YAML.

Every field has a default, so an empty or missing file is valid. A
settings file only overrides what it names.

Settings schema:
  export:
    codec: libvpx-vp9            # any ffmpeg video encoder
    container: webm              # webm | mp4 | mkv | mov
    filename: trimmed-video.webm # download name for the artifact
    fps: null                    # null = source frame rate
    resolution: null             # [w, h]; null = source size
    sharpen: false
    decode_timeout: 10.0         # seconds before a decode counts as stalled
    ffmpeg_params: ["-b:v", "0", "-crf", "32"]
  editor:
    min_trim_gap: 0.1            # smallest segment a trim may leave
    overlay_duration: 5.0
    default_font_size: 16
    default_color: "#FFFFFF"
    thumbnail_height: 90
    waveform_points: 400
"""

from dataclasses import dataclass, field
from pathlib import Path

import yaml

from .common import resolve_color


VALID_CONTAINERS = {"webm", "mp4", "mkv", "mov"}

MIME_TYPES = {
    "webm": "video/webm",
    "mp4": "video/mp4",
    "mkv": "video/x-matroska",
    "mov": "video/quicktime",
}

# Encoder arguments used when a settings file names a codec but no params.
CODEC_DEFAULT_PARAMS = {
    "libvpx-vp9": ["-b:v", "0", "-crf", "32", "-deadline", "realtime", "-cpu-used", "8"],
    "libvpx": ["-b:v", "1M", "-deadline", "realtime"],
    "libx264": ["-crf", "20", "-preset", "medium"],
}


@dataclass
class ExportSettings:
    codec: str = "libvpx-vp9"
    container: str = "webm"
    filename: str = "trimmed-video.webm"
    fps: float | None = None
    resolution: tuple[int, int] | None = None
    sharpen: bool = False
    decode_timeout: float = 10.0
    ffmpeg_params: list[str] = field(
        default_factory=lambda: list(CODEC_DEFAULT_PARAMS["libvpx-vp9"])
    )

    @property
    def mime_type(self) -> str:
        return MIME_TYPES.get(self.container, "application/octet-stream")


@dataclass
class EditorSettings:
    min_trim_gap: float = 0.1
    overlay_duration: float = 5.0
    default_font_size: int = 16
    default_color: tuple[int, int, int] = (255, 255, 255)
    thumbnail_height: int = 90
    waveform_points: int = 400


@dataclass
class Settings:
    export: ExportSettings = field(default_factory=ExportSettings)
    editor: EditorSettings = field(default_factory=EditorSettings)


# ── Loading ───────────────────────────────────────────────────────


def load_settings(settings_path: str | Path | None = None) -> Settings:
    """Load, validate, and normalize a settings file.

    Processing pipeline:
      1. Parse YAML (None path = all defaults).
      2. Validate and apply export overrides.
      3. Validate and apply editor overrides.

    Raises:
        ValueError: Unknown key or invalid value, naming the field.
        FileNotFoundError: Missing settings file.
    """
    if settings_path is None:
        return Settings()

    with open(settings_path) as f:
        raw = yaml.safe_load(f) or {}

    if not isinstance(raw, dict):
        raise ValueError("Settings: top level must be a mapping")
    unknown = set(raw) - {"export", "editor"}
    if unknown:
        raise ValueError(f"Settings: unknown section(s) {sorted(unknown)}")

    return Settings(
        export=parse_export_settings(raw.get("export") or {}),
        editor=parse_editor_settings(raw.get("editor") or {}),
    )


def parse_export_settings(raw: dict) -> ExportSettings:
    """Build ExportSettings from a mapping, validating each field."""
    settings = ExportSettings()
    unknown = set(raw) - set(ExportSettings.__dataclass_fields__)
    if unknown:
        raise ValueError(f"Settings: unknown export field(s) {sorted(unknown)}")

    if "container" in raw:
        container = str(raw["container"]).lower()
        if container not in VALID_CONTAINERS:
            raise ValueError(
                f"Settings: invalid export.container '{raw['container']}'. "
                f"Valid: {sorted(VALID_CONTAINERS)}"
            )
        settings.container = container
        if "filename" not in raw:
            settings.filename = f"trimmed-video.{container}"

    if "codec" in raw:
        codec = raw["codec"]
        if not isinstance(codec, str) or not codec.strip():
            raise ValueError("Settings: export.codec must be a non-empty string")
        settings.codec = codec
        if "ffmpeg_params" not in raw:
            settings.ffmpeg_params = list(CODEC_DEFAULT_PARAMS.get(codec, []))

    if "filename" in raw:
        name = raw["filename"]
        if not isinstance(name, str) or not name.strip() or "/" in name:
            raise ValueError(
                f"Settings: export.filename must be a bare file name, got {name!r}"
            )
        settings.filename = name

    if raw.get("fps") is not None:
        fps = raw["fps"]
        if not isinstance(fps, (int, float)) or fps <= 0:
            raise ValueError(f"Settings: export.fps must be > 0, got {fps!r}")
        settings.fps = float(fps)

    if raw.get("resolution") is not None:
        res = raw["resolution"]
        if (
            not isinstance(res, (list, tuple)) or len(res) != 2
            or not all(isinstance(v, int) and v >= 2 for v in res)
        ):
            raise ValueError(
                f"Settings: export.resolution must be [width, height] >= 2, got {res!r}"
            )
        settings.resolution = (res[0], res[1])

    if "sharpen" in raw:
        if not isinstance(raw["sharpen"], bool):
            raise ValueError("Settings: export.sharpen must be true or false")
        settings.sharpen = raw["sharpen"]

    if "decode_timeout" in raw:
        timeout = raw["decode_timeout"]
        if not isinstance(timeout, (int, float)) or timeout <= 0:
            raise ValueError(
                f"Settings: export.decode_timeout must be > 0, got {timeout!r}"
            )
        settings.decode_timeout = float(timeout)

    if "ffmpeg_params" in raw:
        params = raw["ffmpeg_params"] or []
        if not isinstance(params, list):
            raise ValueError("Settings: export.ffmpeg_params must be a list")
        settings.ffmpeg_params = [str(p) for p in params]

    return settings


def parse_editor_settings(raw: dict) -> EditorSettings:
    """Build EditorSettings from a mapping, validating each field."""
    settings = EditorSettings()
    unknown = set(raw) - set(EditorSettings.__dataclass_fields__)
    if unknown:
        raise ValueError(f"Settings: unknown editor field(s) {sorted(unknown)}")

    for key in ("min_trim_gap", "overlay_duration"):
        if key in raw:
            value = raw[key]
            if not isinstance(value, (int, float)) or value <= 0:
                raise ValueError(f"Settings: editor.{key} must be > 0, got {value!r}")
            setattr(settings, key, float(value))

    for key in ("default_font_size", "thumbnail_height", "waveform_points"):
        if key in raw:
            value = raw[key]
            if not isinstance(value, int) or isinstance(value, bool) or value <= 0:
                raise ValueError(
                    f"Settings: editor.{key} must be a positive integer, got {value!r}"
                )
            setattr(settings, key, value)

    if "default_color" in raw:
        settings.default_color = resolve_color(raw["default_color"])

    return settings
