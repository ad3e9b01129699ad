"""Command layer — discrete editing gestures applied to an EditSession.

Every command validates first, then pushes a history snapshot, then
mutates. A rejected command raises before the snapshot, so state and
history are both untouched. Commands that address an unknown id are
store no-ops and push nothing.

Trim clamping mirrors the timeline drag handles: a start handle can come
no closer than min_trim_gap to the end, an end handle no closer than
min_trim_gap to the start, and neither can leave the source.
"""

import logging
import math

from .errors import InvalidRange, SourceUnavailable
from .export import ExportPipeline, ExportResult
from .media import MediaSource
from .overlays import Overlay, parse_style
from .segments import Segment, Track
from .session import EditSession
from .timefmt import fraction_to_time

logger = logging.getLogger(__name__)

VALID_EDGES = {"start", "end"}


def _finite(*values) -> bool:
    return all(isinstance(v, (int, float)) and math.isfinite(v) for v in values)


class EditCommands:
    """Gesture surface consumed from the presentation layer."""

    def __init__(self, session: EditSession, pipeline: ExportPipeline | None = None):
        self.session = session
        self.pipeline = pipeline or ExportPipeline(session)

    # ── Sources ────────────────────────────────────────────────────

    def upload(self, track: Track, source: MediaSource) -> Segment | None:
        """Load a source onto `track`, seeding its initial segment.

        History is cleared: earlier snapshots describe a different source.
        Returns the initial segment, or None for a zero-length source.
        """
        track = Track(track)
        self.session.set_source(track, source)
        self.session.history.clear()
        segs = self.session.segments.segments(track)
        return segs[0] if segs else None

    # ── Segment commands ───────────────────────────────────────────

    def split(self, track: Track, at_time: float | None) -> Segment | None:
        """Split `track` at `at_time`; returns the new tail segment.

        Raises:
            SourceUnavailable: No source on the track.
            InvalidRange: at_time not strictly inside (0, duration).
        """
        track = self._require_source(track)
        if at_time is None:
            return None
        duration = self.session.segments.duration(track)
        if not _finite(at_time) or not 0 < at_time < duration:
            raise InvalidRange(
                f"Split point {at_time!r} outside (0, {duration:g}) on {track.value}"
            )
        self._push_history()
        tail = self.session.segments.split_at(track, at_time)
        logger.debug("split %s at %.3f -> %s", track.value, at_time, tail.id if tail else None)
        return tail

    def trim(
        self, track: Track, segment_id: str, new_start: float, new_end: float,
    ) -> Segment | None:
        """Set a segment's bounds, clamped to the source and the minimum gap.

        Returns the updated segment, or None for an unknown id.

        Raises:
            SourceUnavailable: No source on the track.
            InvalidRange: Non-finite bounds, or a source shorter than the gap.
        """
        track = self._require_source(track)
        start, end = self._clamp_trim(track, new_start, new_end)
        store = self.session.segments
        if store.get(track, segment_id) is None:
            return None
        self._push_history()
        store.trim(track, segment_id, start, end)
        self._invalidate_if_moved(track, segment_id)
        return store.get(track, segment_id)

    def drag_trim(
        self, track: Track, segment_id: str, edge: str, fraction: float,
    ) -> Segment | None:
        """Drag one edge of a segment to a pointer position on the timeline.

        `fraction` is the pointer offset across the timeline width
        (0.0 = left edge, 1.0 = right edge). Only the dragged edge moves:
        a start handle stops min_trim_gap before the end, an end handle
        stops min_trim_gap after the start.
        """
        track = self._require_source(track)
        if edge not in VALID_EDGES:
            raise ValueError(f"Unknown trim edge '{edge}'. Valid: {sorted(VALID_EDGES)}")
        if not _finite(fraction):
            raise InvalidRange(f"Pointer position must be finite, got {fraction!r}")
        store = self.session.segments
        seg = store.get(track, segment_id)
        if seg is None:
            return None
        gap = self.session.settings.editor.min_trim_gap
        duration = store.duration(track)
        t = fraction_to_time(fraction, duration)
        if edge == "start":
            start, end = max(0.0, min(t, seg.end - gap)), seg.end
        else:
            start, end = seg.start, min(duration, max(t, seg.start + gap))
        self._push_history()
        store.trim(track, segment_id, start, end)
        self._invalidate_if_moved(track, segment_id)
        return store.get(track, segment_id)

    def remove(self, track: Track, segment_id: str) -> bool:
        track = self._require_source(track)
        if self.session.segments.get(track, segment_id) is None:
            return False
        self._push_history()
        self.session.segments.remove(track, segment_id)
        self.session.previews.invalidate(segment_id)
        return True

    def reorder(self, track: Track, from_id: str, to_id: str) -> bool:
        track = self._require_source(track)
        store = self.session.segments
        if from_id == to_id or store.get(track, from_id) is None or store.get(track, to_id) is None:
            return False
        self._push_history()
        return store.reorder(track, from_id, to_id)

    # ── Overlay commands ───────────────────────────────────────────

    def add_overlay(self, text: str, style: dict | None, x: float, y: float) -> Overlay:
        """Add a text overlay at the playhead.

        Raises:
            InvalidRange: Non-finite position.
            ValueError: Unparseable style color.
        """
        if not _finite(x, y):
            raise InvalidRange(f"Overlay position must be finite, got ({x!r}, {y!r})")
        editor = self.session.settings.editor
        # Parse the style before touching history so a bad color is atomic.
        parse_style(style, editor.default_color, editor.default_font_size)
        self._push_history()
        return self.session.overlays.add(
            text, style, x, y, self.session.playhead,
            default_color=editor.default_color,
            default_font_size=editor.default_font_size,
        )

    def update_overlay_position(self, overlay_id: str, dx: float, dy: float) -> Overlay | None:
        if not _finite(dx, dy):
            raise InvalidRange(f"Drag delta must be finite, got ({dx!r}, {dy!r})")
        overlays = self.session.overlays
        if overlays.get(overlay_id) is None:
            return None
        self._push_history()
        overlays.update_position(overlay_id, dx, dy)
        return overlays.get(overlay_id)

    def remove_overlay(self, overlay_id: str) -> bool:
        if self.session.overlays.get(overlay_id) is None:
            return False
        self._push_history()
        return self.session.overlays.remove(overlay_id)

    # ── History and view ───────────────────────────────────────────

    def undo(self) -> bool:
        """Restore the latest snapshot. False when there is nothing to undo."""
        snapshot = self.session.history.pop()
        if snapshot is None:
            return False
        self.session.restore(snapshot)
        return True

    def set_zoom(self, factor: float) -> None:
        if not _finite(factor) or factor <= 0:
            raise InvalidRange(f"Zoom factor must be > 0, got {factor!r}")
        self.session.zoom = float(factor)

    def seek(self, time: float) -> float:
        """Move the playhead, clamped to the video source. Returns the new time."""
        if not _finite(time):
            raise InvalidRange(f"Seek time must be finite, got {time!r}")
        duration = self.session.segments.duration(Track.VIDEO)
        if self.session.source(Track.VIDEO) is not None:
            time = min(time, duration)
        self.session.playhead = max(0.0, float(time))
        return self.session.playhead

    async def export_range(self, start: float, end: float) -> ExportResult:
        return await self.pipeline.export_range(start, end)

    def cancel_export(self) -> None:
        self.pipeline.cancel()

    # ── Internal ───────────────────────────────────────────────────

    def _require_source(self, track) -> Track:
        track = Track(track)
        if self.session.source(track) is None:
            raise SourceUnavailable(f"No {track.value} source loaded")
        return track

    def _clamp_trim(self, track: Track, new_start, new_end) -> tuple[float, float]:
        if not _finite(new_start, new_end):
            raise InvalidRange(f"Trim bounds must be finite, got [{new_start!r}, {new_end!r})")
        gap = self.session.settings.editor.min_trim_gap
        duration = self.session.segments.duration(track)
        if duration < gap:
            raise InvalidRange(
                f"{track.value} source ({duration:g}s) is shorter than the minimum segment ({gap:g}s)"
            )
        start = max(0.0, min(float(new_start), float(new_end) - gap))
        end = min(duration, max(float(new_end), start + gap))
        # An end dragged past the source pulls the start back with it.
        start = min(start, end - gap)
        return start, end

    def _push_history(self) -> None:
        self.session.history.push(self.session.snapshot())

    def _invalidate_if_moved(self, track: Track, segment_id: str) -> None:
        seg = self.session.segments.get(track, segment_id)
        entry = self.session.previews.get(segment_id)
        if seg is None or entry is None:
            return
        if entry.start != seg.start or getattr(entry, "end", seg.end) != seg.end:
            self.session.previews.invalidate(segment_id)
