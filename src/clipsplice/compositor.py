"""Frame compositor — one RGBA output frame per timeline time.

composite_frame is a pure function of (t, source frame, segments,
overlays, canvas size, zoom, sharpen): it never mutates its inputs and
returns byte-identical output for identical input, which is what makes
exports reproducible.

Pipeline per frame:
  1. Pick the active video segment: the first in display order whose
     [start, end) contains t. No match means no video content; the
     canvas stays opaque black.
  2. Scale the decoded source frame to the canvas, then by the zoom
     factor about the canvas center (zoom > 1 crops, zoom < 1 leaves a
     black border).
  3. Draw every overlay active at t, in insertion order.
  4. Optionally run a 3x3 sharpening convolution over RGB.
"""

import numpy as np
from PIL import Image

from .overlays import Overlay, apply_overlays_to_frame
from .segments import Segment, active_segment


# ── Constants ────────────────────────────────────────────────────

SHARPEN_KERNEL = np.array(
    [[-1, -1, -1],
     [-1, 9, -1],
     [-1, -1, -1]],
    dtype=np.int32,
)

BLANK_RGBA = (0, 0, 0, 255)


# ── Helpers ──────────────────────────────────────────────────────


def blank_canvas(canvas_size: tuple[int, int]) -> np.ndarray:
    """Opaque black RGBA canvas of (width, height)."""
    w, h = canvas_size
    canvas = np.empty((h, w, 4), dtype=np.uint8)
    canvas[:] = BLANK_RGBA
    return canvas


def _to_rgb(frame: np.ndarray) -> np.ndarray:
    """Normalize a decoded frame to (h, w, 3) uint8."""
    if frame.dtype != np.uint8:
        frame = np.clip(frame, 0, 255).astype(np.uint8)
    if frame.ndim == 2:
        return np.stack([frame] * 3, axis=-1)
    if frame.shape[2] == 4:
        return frame[:, :, :3]
    return frame


def draw_source_frame(
    canvas: np.ndarray,
    frame: np.ndarray,
    zoom: float = 1.0,
) -> None:
    """Scale `frame` onto `canvas` in place, zoomed about the canvas center.

    The frame is stretched to the canvas size (the canvas normally shares
    the source aspect ratio), then the zoom factor scales it around the
    center. Zooming in resamples only the visible window of the source, so
    the work per frame stays bounded by the canvas size for any factor.
    Zooming out letterboxes the shrunken frame on the existing background.
    """
    canvas_h, canvas_w = canvas.shape[:2]
    img = Image.fromarray(np.ascontiguousarray(_to_rgb(frame)))

    if zoom > 1.0:
        src_w, src_h = img.size
        half_w = src_w / (2 * zoom)
        half_h = src_h / (2 * zoom)
        box = (src_w / 2 - half_w, src_h / 2 - half_h,
               src_w / 2 + half_w, src_h / 2 + half_h)
        img = img.resize((canvas_w, canvas_h), resample=Image.BILINEAR, box=box)
        canvas[:, :, :3] = np.asarray(img)
        canvas[:, :, 3] = 255
        return

    scaled_w = max(1, int(round(canvas_w * zoom)))
    scaled_h = max(1, int(round(canvas_h * zoom)))
    if img.size != (scaled_w, scaled_h):
        img = img.resize((scaled_w, scaled_h), resample=Image.BILINEAR)
    scaled = np.asarray(img)

    # Top-left of the scaled frame relative to the canvas.
    x0 = (canvas_w - scaled_w) // 2
    y0 = (canvas_h - scaled_h) // 2
    canvas[y0:y0 + scaled_h, x0:x0 + scaled_w, :3] = scaled
    canvas[y0:y0 + scaled_h, x0:x0 + scaled_w, 3] = 255


def sharpen_frame(frame: np.ndarray, kernel: np.ndarray = SHARPEN_KERNEL) -> np.ndarray:
    """Convolve RGB with a 3x3 kernel normalized by its sum.

    Alpha is copied through unchanged and the outermost 1-pixel ring is
    left unfiltered. Frames smaller than 3x3 are returned as a copy.
    """
    result = frame.copy()
    h, w = frame.shape[:2]
    if h < 3 or w < 3:
        return result

    total = int(kernel.sum()) or 1
    rgb = frame[:, :, :3].astype(np.int32)
    acc = np.zeros((h - 2, w - 2, 3), dtype=np.int32)
    for dy in range(3):
        for dx in range(3):
            weight = int(kernel[dy, dx])
            if weight:
                acc += weight * rgb[dy:dy + h - 2, dx:dx + w - 2]
    acc //= total
    result[1:-1, 1:-1, :3] = np.clip(acc, 0, 255).astype(np.uint8)
    return result


# ── Compositing ──────────────────────────────────────────────────


def composite_frame(
    t: float,
    source_frame: np.ndarray | None,
    segments: list[Segment] | tuple[Segment, ...],
    overlays: list[Overlay] | tuple[Overlay, ...],
    canvas_size: tuple[int, int],
    zoom: float = 1.0,
    sharpen: bool = False,
) -> np.ndarray:
    """Composite the output frame at timeline time `t`.

    Args:
        t: Absolute source time in seconds.
        source_frame: Decoded source frame at `t` (h, w, 3|4), or None
            when nothing was decoded.
        segments: Video segments in display order.
        overlays: All overlays in insertion order; inactive ones are skipped.
        canvas_size: Output (width, height).
        zoom: Scale about the canvas center, > 0.
        sharpen: Apply the sharpening kernel after overlays.

    Returns:
        numpy array of shape (height, width, 4), dtype uint8 (RGBA).
    """
    canvas = blank_canvas(canvas_size)

    if source_frame is not None and active_segment(segments, t) is not None:
        draw_source_frame(canvas, source_frame, zoom)

    active = [o for o in overlays if o.is_active(t)]
    if active:
        canvas = apply_overlays_to_frame(canvas, active)

    if sharpen:
        canvas = sharpen_frame(canvas)
    return canvas
