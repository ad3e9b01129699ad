"""Thumbnail and waveform previews, cached per segment id.

Entries are computed lazily by refresh(): a video segment gets a
thumbnail of the frame at its start, an audio segment gets an RMS
waveform over its range. An entry goes stale when its segment's start
moves (or, for waveforms, its end), and is dropped without recomputation
when the segment is removed.

refresh() decodes through its own handle, claimed for the whole pass, so
it never shares a decode cursor with preview playback or an export.
"""

import asyncio
import logging
from dataclasses import dataclass

import numpy as np
from PIL import Image, ImageDraw

from .segments import Segment, Track

logger = logging.getLogger(__name__)

# Colors follow the editor's waveform canvas.
WAVEFORM_BG = (74, 85, 104)
WAVEFORM_FG = (66, 153, 225)
WAVEFORM_BAR_WIDTH = 2


@dataclass
class Thumbnail:
    segment_id: str
    start: float
    image: Image.Image


@dataclass
class Waveform:
    segment_id: str
    start: float
    end: float
    envelope: list[float]
    image: Image.Image


# ── Rendering helpers ─────────────────────────────────────────────


def make_thumbnail(frame: np.ndarray, height: int) -> Image.Image:
    """Scale a decoded frame to `height`, preserving aspect ratio."""
    image = Image.fromarray(np.ascontiguousarray(frame)).convert("RGB")
    aspect = image.width / image.height if image.height else 1.0
    new_w = max(1, int(height * aspect))
    return image.resize((new_w, height))


def compute_envelope(samples: np.ndarray | None, points: int) -> list[float]:
    """RMS envelope of `samples` in `points` buckets, normalized to [0, 1].

    The curve is lifted with a 0.85 power so quiet passages stay visible.
    Empty input gives an empty list.
    """
    if samples is None or samples.size == 0:
        return []
    n = samples.shape[0]
    points = min(points, n)
    edges = np.linspace(0, n, points + 1).astype(int)
    rms_vals = []
    for i in range(points):
        s, e = edges[i], edges[i + 1]
        if e <= s:
            rms_vals.append(0.0)
            continue
        seg = samples[s:e]
        rms_vals.append(float(np.sqrt(np.mean(seg * seg))))
    rms = np.array(rms_vals, dtype=float)
    peak = float(rms.max()) if rms.size else 1.0
    if peak <= 0:
        peak = 1.0
    return ((rms / peak) ** 0.85).tolist()


def render_waveform(envelope: list[float], height: int) -> Image.Image:
    """Draw an envelope as centered vertical bars."""
    width = max(1, len(envelope) * WAVEFORM_BAR_WIDTH)
    img = Image.new("RGB", (width, height), WAVEFORM_BG)
    draw = ImageDraw.Draw(img)
    mid = height / 2
    for i, level in enumerate(envelope):
        half = max(0.5, level * mid)
        x = i * WAVEFORM_BAR_WIDTH
        draw.rectangle(
            [(x, int(mid - half)), (x + WAVEFORM_BAR_WIDTH - 1, int(mid + half))],
            fill=WAVEFORM_FG,
        )
    return img


# ── Cache ─────────────────────────────────────────────────────────


class PreviewCache:
    def __init__(self, thumbnail_height: int = 90, waveform_points: int = 400):
        self.thumbnail_height = thumbnail_height
        self.waveform_points = waveform_points
        self._entries: dict[str, Thumbnail | Waveform] = {}

    def get(self, segment_id: str) -> Thumbnail | Waveform | None:
        return self._entries.get(segment_id)

    def invalidate(self, segment_id: str) -> None:
        """Drop an entry. It is rebuilt only if the segment comes back."""
        self._entries.pop(segment_id, None)

    def clear(self) -> None:
        self._entries.clear()

    def __contains__(self, segment_id: str) -> bool:
        return segment_id in self._entries

    def __len__(self) -> int:
        return len(self._entries)

    def stale(self, track: Track, segments: list[Segment]) -> list[Segment]:
        """Segments on `track` whose entry is missing or out of date."""
        out = []
        for seg in segments:
            entry = self._entries.get(seg.id)
            if entry is None or entry.start != seg.start:
                out.append(seg)
            elif track is Track.AUDIO and entry.end != seg.end:
                out.append(seg)
        return out

    async def refresh(self, session) -> int:
        """Compute every stale entry for the session. Returns how many."""
        live = {s.id for t in Track for s in session.segments.segments(t)}
        for segment_id in list(self._entries):
            if segment_id not in live:
                self.invalidate(segment_id)

        built = 0
        video = session.source(Track.VIDEO)
        if video is not None:
            stale = self.stale(Track.VIDEO, session.segments.segments(Track.VIDEO))
            if stale:
                built += await self._refresh_thumbnails(video, stale)

        audio = session.source(Track.AUDIO)
        if audio is not None:
            stale = self.stale(Track.AUDIO, session.segments.segments(Track.AUDIO))
            for seg in stale:
                samples = await asyncio.to_thread(audio.audio_samples, seg.start, seg.end)
                envelope = compute_envelope(samples, self.waveform_points)
                self._entries[seg.id] = Waveform(
                    seg.id, seg.start, seg.end, envelope,
                    render_waveform(envelope, self.thumbnail_height),
                )
                built += 1
        if built:
            logger.debug("Built %d preview entries", built)
        return built

    async def _refresh_thumbnails(self, source, stale: list[Segment]) -> int:
        built = 0
        handle = source.open_handle()
        try:
            with handle.claim("previews"):
                for seg in stale:
                    frame = await handle.seek(seg.start)
                    if frame is None:
                        continue
                    self._entries[seg.id] = Thumbnail(
                        seg.id, seg.start, make_thumbnail(frame, self.thumbnail_height),
                    )
                    built += 1
        finally:
            handle.close()
        return built
