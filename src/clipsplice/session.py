"""EditSession — all state of one editing session, passed by reference.

The session owns the segment store, overlay store, undo history, preview
cache, the loaded sources and the view state (zoom, playhead). The command
layer mutates it; the export pipeline reads it. It is created once per
editing session and discarded afterwards; nothing is persisted.
"""

import logging

import numpy as np

from .compositor import composite_frame
from .config import Settings
from .history import History, Snapshot
from .media import DecodeHandle, MediaSource
from .overlays import OverlayStore
from .previews import PreviewCache
from .segments import SegmentStore, Track

logger = logging.getLogger(__name__)


def _even(value: int) -> int:
    # yuv420p needs even dimensions.
    return max(2, value - value % 2)


class EditSession:
    def __init__(self, settings: Settings | None = None):
        self.settings = settings or Settings()
        self.segments = SegmentStore()
        self.overlays = OverlayStore(self.settings.editor.overlay_duration)
        self.history = History()
        self.previews = PreviewCache(
            thumbnail_height=self.settings.editor.thumbnail_height,
            waveform_points=self.settings.editor.waveform_points,
        )
        self.zoom = 1.0
        self.playhead = 0.0
        self._sources: dict[Track, MediaSource] = {}
        self._preview_handle: DecodeHandle | None = None

    # ── Sources ────────────────────────────────────────────────────

    def source(self, track: Track) -> MediaSource | None:
        return self._sources.get(track)

    def set_source(self, track: Track, source: MediaSource) -> None:
        """Attach a source and reset the track to its initial segment."""
        old = self._sources.get(track)
        if old is not None and old is not source:
            if track is Track.VIDEO:
                self._close_preview_handle()
            old.close()
        self._sources[track] = source
        for seg in self.segments.segments(track):
            self.previews.invalidate(seg.id)
        self.segments.add_initial_segment(track, source.duration)
        logger.info(
            "Session %s source set: %.2fs, %d segment(s)",
            track.value, source.duration, len(self.segments.segments(track)),
        )

    # ── Snapshots ──────────────────────────────────────────────────

    def snapshot(self) -> Snapshot:
        video, audio = self.segments.snapshot()
        return Snapshot(video=video, audio=audio, overlays=self.overlays.snapshot())

    def restore(self, snapshot: Snapshot) -> None:
        self.segments.restore((snapshot.video, snapshot.audio))
        self.overlays.restore(snapshot.overlays)

    # ── Rendering ──────────────────────────────────────────────────

    def canvas_size(self) -> tuple[int, int]:
        """Output (width, height): configured resolution or the source size."""
        if self.settings.export.resolution is not None:
            return self.settings.export.resolution
        source = self.source(Track.VIDEO)
        if source is None or source.size == (0, 0):
            return (2, 2)
        w, h = source.size
        return (_even(w), _even(h))

    async def preview_frame(self, t: float | None = None) -> np.ndarray | None:
        """Composite the live-preview frame at `t` (default: the playhead).

        Uses the session's own preview handle, never the one an export
        decodes through. None when no video source is loaded.
        """
        source = self.source(Track.VIDEO)
        if source is None:
            return None
        t = self.playhead if t is None else t
        if self._preview_handle is None:
            self._preview_handle = source.open_handle()
        with self._preview_handle.claim("preview"):
            frame = await self._preview_handle.seek(t)
        return composite_frame(
            t, frame,
            self.segments.segments(Track.VIDEO),
            self.overlays.overlays(),
            self.canvas_size(),
            zoom=self.zoom,
            sharpen=self.settings.export.sharpen,
        )

    def close(self) -> None:
        self._close_preview_handle()
        for source in self._sources.values():
            source.close()
        self._sources.clear()

    def _close_preview_handle(self) -> None:
        if self._preview_handle is not None:
            self._preview_handle.close()
            self._preview_handle = None
