"""clipsplice.common — shared helpers for overlays, config and scripts.

Contains: color parsing, path variable resolution, font loading and
text measurement.
"""

import re
from pathlib import Path

from PIL import Image, ImageColor, ImageDraw, ImageFont


# ── Font paths ─────────────────────────────────────────────────────
# Inter preferred, DejaVu Sans as fallback.

FONT_PATHS = [
    Path.home() / ".local/share/fonts/Inter.ttc",
    Path("/usr/share/fonts/truetype/dejavu/DejaVuSans.ttf"),
]


# ── Color utilities ────────────────────────────────────────────────

def parse_hex_color(hex_str: str) -> tuple[int, int, int]:
    """Convert '#RRGGBB' or 'RRGGBB' string to (R, G, B) tuple."""
    hex_str = hex_str.lstrip("#")
    if len(hex_str) != 6:
        raise ValueError(f"Invalid hex color: '{hex_str}'")
    return (int(hex_str[0:2], 16), int(hex_str[2:4], 16), int(hex_str[4:6], 16))


def resolve_color(value) -> tuple[int, int, int]:
    """Resolve an overlay color — '#RRGGBB', bare hex, CSS name or RGB list.

    Raises ValueError for anything Pillow cannot interpret.
    """
    if isinstance(value, (list, tuple)):
        if len(value) < 3:
            raise ValueError(f"Unknown color: {value!r}")
        return (int(value[0]), int(value[1]), int(value[2]))
    text = str(value).strip()
    if len(text) == 6 and all(c in "0123456789abcdefABCDEF" for c in text):
        return parse_hex_color(text)
    try:
        rgb = ImageColor.getrgb(text)
    except ValueError:
        raise ValueError(f"Unknown color: '{value}'") from None
    return rgb[:3]


# ── Path utilities ─────────────────────────────────────────────────

def resolve_path_vars(text: str, paths: dict[str, str]) -> str:
    """Replace ${name} variables in a string using the paths dict."""
    def _replace(match):
        key = match.group(1)
        if key not in paths:
            raise ValueError(f"Unknown path variable: ${{{key}}}")
        return paths[key]
    return re.sub(r"\$\{(\w+)\}", _replace, text)


# ── Font loading ───────────────────────────────────────────────────

_FONT_CACHE: dict[int, ImageFont.FreeTypeFont | ImageFont.ImageFont] = {}


def load_font(size: int) -> ImageFont.FreeTypeFont | ImageFont.ImageFont:
    """Load Inter (or fallback) at the given size.

    Fonts are cached per size; the compositor asks for the same handful of
    sizes on every frame.
    """
    if size in _FONT_CACHE:
        return _FONT_CACHE[size]
    font = None
    for font_path in FONT_PATHS:
        if font_path.exists():
            try:
                font = ImageFont.truetype(str(font_path), size=size, index=0)
                break
            except (OSError, IndexError):
                continue
    if font is None:
        # Last resort: Pillow default font, scaled where Pillow supports it.
        try:
            font = ImageFont.load_default(size=size)
        except TypeError:
            font = ImageFont.load_default()
    _FONT_CACHE[size] = font
    return font


def measure_text(text: str, font) -> tuple[int, int]:
    """Return the (width, height) of `text` rendered in `font`."""
    draw = ImageDraw.Draw(Image.new("RGBA", (1, 1)))
    bbox = draw.textbbox((0, 0), text, font=font)
    return bbox[2] - bbox[0], bbox[3] - bbox[1]
