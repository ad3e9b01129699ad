"""Text overlays — the overlay store and per-frame overlay rendering.

Overlays are timed against the absolute source timeline, not against
segment-local time, so trimming or reordering segments never moves them.
Each overlay is active during [start_time, end_time) and is drawn at its
stored (x, y) top-left anchor; drags move it freely, off-canvas included.

Rendering renders each overlay to an RGBA text patch with Pillow and
alpha-blends it onto the frame, later overlays on top.
"""

from dataclasses import dataclass, replace

import numpy as np
from PIL import Image, ImageDraw

from .common import load_font, measure_text, resolve_color


# ── Constants ────────────────────────────────────────────────────

DEFAULT_OVERLAY_DURATION = 5.0   # seconds an overlay stays on screen
DEFAULT_FONT_SIZE = 16           # matches the text editor's default "16px"
DEFAULT_COLOR = (255, 255, 255)
FONT_BOLD_BUMP = 2               # bold renders as a slightly larger face


@dataclass
class Overlay:
    """A positioned, time-bounded text annotation."""

    id: str
    text: str
    x: float
    y: float
    color: tuple[int, int, int]
    font_size: int
    start_time: float
    end_time: float
    bold: bool = False

    def is_active(self, t: float) -> bool:
        return self.start_time <= t < self.end_time


# ── Style parsing ────────────────────────────────────────────────


def parse_font_size(value, default: int = DEFAULT_FONT_SIZE) -> int:
    """Accept 20, 20.0 or "20px". Anything unusable falls back to default."""
    if value is None:
        return default
    if isinstance(value, str):
        value = value.strip().lower().removesuffix("px")
    try:
        size = int(round(float(value)))
    except (TypeError, ValueError):
        return default
    return size if size > 0 else default


def parse_style(
    style: dict | None,
    default_color: tuple[int, int, int] = DEFAULT_COLOR,
    default_font_size: int = DEFAULT_FONT_SIZE,
) -> dict:
    """Reduce a text style dict to the fields the renderer uses.

    Recognized keys: color, fontSize (or font_size), fontWeight (or
    font_weight). Others are ignored.

    Raises:
        ValueError: Unparseable color.
    """
    style = style or {}
    color_ref = style.get("color")
    color = resolve_color(color_ref) if color_ref else default_color
    size = parse_font_size(
        style.get("fontSize", style.get("font_size")), default_font_size,
    )
    weight = str(style.get("fontWeight", style.get("font_weight", "normal")))
    return {"color": color, "font_size": size, "bold": weight == "bold"}


# ── Store ────────────────────────────────────────────────────────


class OverlayStore:
    """Overlays in insertion order; insertion order is also draw order."""

    def __init__(self, overlay_duration: float = DEFAULT_OVERLAY_DURATION):
        self.overlay_duration = overlay_duration
        self._overlays: list[Overlay] = []
        self._next_id = 1

    def add(
        self,
        text: str,
        style: dict | None,
        x: float,
        y: float,
        current_time: float,
        default_color: tuple[int, int, int] = DEFAULT_COLOR,
        default_font_size: int = DEFAULT_FONT_SIZE,
    ) -> Overlay:
        """Create an overlay visible for overlay_duration from current_time."""
        parsed = parse_style(style, default_color, default_font_size)
        overlay = Overlay(
            id=f"overlay-{self._next_id}",
            text=str(text),
            x=float(x),
            y=float(y),
            color=parsed["color"],
            font_size=parsed["font_size"],
            start_time=float(current_time),
            end_time=float(current_time) + self.overlay_duration,
            bold=parsed["bold"],
        )
        self._next_id += 1
        self._overlays.append(overlay)
        return replace(overlay)

    def update_position(self, overlay_id: str, dx: float, dy: float) -> bool:
        overlay = self._find(overlay_id)
        if overlay is None:
            return False
        overlay.x += dx
        overlay.y += dy
        return True

    def remove(self, overlay_id: str) -> bool:
        overlay = self._find(overlay_id)
        if overlay is None:
            return False
        self._overlays.remove(overlay)
        return True

    def get(self, overlay_id: str) -> Overlay | None:
        overlay = self._find(overlay_id)
        return replace(overlay) if overlay is not None else None

    def overlays(self) -> list[Overlay]:
        return [replace(o) for o in self._overlays]

    def active_at(self, t: float) -> list[Overlay]:
        return [replace(o) for o in self._overlays if o.is_active(t)]

    def snapshot(self) -> tuple[Overlay, ...]:
        return tuple(replace(o) for o in self._overlays)

    def restore(self, snapshot: tuple[Overlay, ...]) -> None:
        self._overlays = [replace(o) for o in snapshot]

    def __len__(self) -> int:
        return len(self._overlays)

    def _find(self, overlay_id: str) -> Overlay | None:
        for overlay in self._overlays:
            if overlay.id == overlay_id:
                return overlay
        return None


# ── Patch rendering ──────────────────────────────────────────────


def render_text_patch(
    text: str,
    font_size: int,
    color: tuple[int, int, int],
    bold: bool = False,
) -> np.ndarray:
    """Render text in `color` on a fully transparent background.

    Returns:
        numpy array of shape (h, w, 4), dtype uint8 (RGBA). The text's
        bounding box offset is folded in, so drawing the patch at (x, y)
        matches drawing the text itself at (x, y).
    """
    fs = font_size + FONT_BOLD_BUMP if bold else font_size
    font = load_font(fs)

    draw_tmp = ImageDraw.Draw(Image.new("RGBA", (1, 1)))
    bbox = draw_tmp.textbbox((0, 0), text, font=font)
    patch_w = max(1, bbox[2])
    patch_h = max(1, bbox[3])

    img = Image.new("RGBA", (patch_w, patch_h), (0, 0, 0, 0))
    draw = ImageDraw.Draw(img)
    draw.text((0, 0), text, fill=(*color, 255), font=font)
    return np.array(img)


def text_size(overlay: Overlay) -> tuple[int, int]:
    """Rendered (width, height) of an overlay's text, for hit-testing."""
    fs = overlay.font_size + FONT_BOLD_BUMP if overlay.bold else overlay.font_size
    return measure_text(overlay.text, load_font(fs))


# ── Frame-level overlay application ─────────────────────────────


def blend_patch(frame: np.ndarray, patch: np.ndarray, x: int, y: int) -> None:
    """Alpha-blend an RGBA patch onto an RGBA frame in place.

    The patch is clipped against the frame edges; a patch entirely
    off-canvas leaves the frame unchanged. Frame alpha stays as it was.
    """
    frame_h, frame_w = frame.shape[:2]
    patch_h, patch_w = patch.shape[:2]

    x0, y0 = max(0, x), max(0, y)
    x1, y1 = min(frame_w, x + patch_w), min(frame_h, y + patch_h)
    if x0 >= x1 or y0 >= y1:
        return

    src = patch[y0 - y:y1 - y, x0 - x:x1 - x]
    alpha = src[:, :, 3:4].astype(np.float32) / 255.0
    rgb = src[:, :, :3].astype(np.float32)
    dest = frame[y0:y1, x0:x1, :3].astype(np.float32)
    blended = dest * (1 - alpha) + rgb * alpha
    frame[y0:y1, x0:x1, :3] = np.rint(blended).astype(np.uint8)


def apply_overlays_to_frame(frame: np.ndarray, overlays: list[Overlay]) -> np.ndarray:
    """Draw overlays onto a copy of an RGBA frame, in list order.

    Positions are rounded to the nearest pixel.
    """
    result = frame.copy()
    for overlay in overlays:
        patch = render_text_patch(
            overlay.text, overlay.font_size, overlay.color, bold=overlay.bold,
        )
        blend_patch(result, patch, int(round(overlay.x)), int(round(overlay.y)))
    return result
