"""Decodable media sources and independent decode handles.

A MediaSource wraps one moviepy clip (loaded from a path, or handed over
in memory) and reports its duration, dimensions and frame rate. Anything
that needs frames opens its own DecodeHandle: export, live preview and
the thumbnail cache never share a decode cursor.

Decoding itself is blocking moviepy work. Handles push it to a worker
thread, so seek() and advance() are the explicit suspension points of the
export loop. A handle stays busy until its worker returns, even when the
caller has stopped waiting.
"""

import asyncio
import logging
import threading
from contextlib import contextmanager
from pathlib import Path

import numpy as np
from moviepy import AudioClip, AudioFileClip, VideoFileClip

from .segments import Track
from .timefmt import frame_index_at, frame_time

logger = logging.getLogger(__name__)

DEFAULT_FPS = 24.0        # used when a clip carries no frame rate
WAVEFORM_SAMPLE_FPS = 200  # audio samples per second for previews


class DecodeHandle:
    """A single decode cursor over a clip, aligned to the clip's frame grid.

    The cursor only ever moves through seek() and advance(), one request
    at a time. claim() marks the handle as owned by one consumer for a
    whole decode-and-seek sequence.
    """

    def __init__(self, clip, fps: float, duration: float, owns_clip: bool = False):
        self._clip = clip
        self.fps = fps
        self.duration = duration
        self._owns_clip = owns_clip
        self._index: int | None = None
        self._frame: np.ndarray | None = None
        self._busy = False
        self._owner: str | None = None
        self._closed = False
        self._close_pending = False
        self._lock = threading.Lock()

    @property
    def position(self) -> float | None:
        """Timestamp of the current decoded frame, None before the first seek."""
        if self._index is None:
            return None
        return frame_time(self._index, self.fps)

    @property
    def owner(self) -> str | None:
        return self._owner

    def current_frame(self) -> np.ndarray | None:
        return self._frame

    @contextmanager
    def claim(self, owner: str):
        """Hold the decode cursor for `owner` until the block exits.

        Raises:
            RuntimeError: Another consumer already holds this handle.
        """
        if self._owner is not None:
            raise RuntimeError(
                f"Decode handle already claimed by '{self._owner}', "
                f"refusing '{owner}'"
            )
        self._owner = owner
        try:
            yield self
        finally:
            self._owner = None

    async def seek(self, t: float) -> np.ndarray | None:
        """Decode the first frame at or after `t`.

        Returns None (and leaves the cursor past the end) when `t` is
        beyond the last frame.
        """
        return await self._decode_index(frame_index_at(t, self.fps))

    async def advance(self) -> np.ndarray | None:
        """Decode the next frame on the grid; None at end of source."""
        if self._index is None:
            return await self._decode_index(0)
        return await self._decode_index(self._index + 1)

    def close(self) -> None:
        """Release the clip.

        A decode still running in its worker thread (one abandoned after a
        timeout, say) keeps the clip open; the worker closes it on exit.
        """
        with self._lock:
            if self._closed:
                return
            self._closed = True
            self._frame = None
            if self._busy:
                self._close_pending = True
                return
        self._release()

    def _release(self) -> None:
        if self._owns_clip:
            self._clip.close()

    def _decode_in_worker(self, t: float) -> np.ndarray:
        try:
            return self._clip.get_frame(t)
        finally:
            with self._lock:
                self._busy = False
                release = self._close_pending
                self._close_pending = False
            if release:
                self._release()

    async def _decode_index(self, index: int) -> np.ndarray | None:
        with self._lock:
            if self._closed:
                raise RuntimeError("Decode handle is closed")
            if self._busy:
                raise RuntimeError("Concurrent decode request on one handle")
            self._index = index
            t = frame_time(index, self.fps)
            if t >= self.duration:
                self._frame = None
                return None
            self._busy = True
        # _busy is cleared by the worker itself. Shielded so a caller that
        # stops waiting can neither free the cursor nor drop the queued job.
        loop = asyncio.get_running_loop()
        frame = await asyncio.shield(loop.run_in_executor(None, self._decode_in_worker, t))
        self._frame = frame
        return frame


class MediaSource:
    """One decodable source for a track.

    Duration, dimensions and frame rate are read once at load time and
    never change.
    """

    def __init__(self, clip, track: Track = Track.VIDEO, path: str | None = None):
        self._clip = clip
        self.track = track
        self.path = path
        self.duration = float(getattr(clip, "duration", None) or 0.0)
        if track is Track.VIDEO:
            self.fps = float(getattr(clip, "fps", None) or DEFAULT_FPS)
            w, h = getattr(clip, "size", (0, 0))
            self.size = (int(w), int(h))
        else:
            self.fps = 0.0
            self.size = (0, 0)

    # ── Constructors ───────────────────────────────────────────────

    @classmethod
    def from_path(cls, path: str | Path, track: Track = Track.VIDEO) -> "MediaSource":
        """Load a media file with moviepy.

        Raises:
            FileNotFoundError: Path does not exist.
        """
        p = Path(path)
        if not p.exists():
            raise FileNotFoundError(f"Source media not found: {path}")
        clip = VideoFileClip(str(p)) if track is Track.VIDEO else AudioFileClip(str(p))
        logger.info("Loaded %s source %s (%.2fs)", track.value, p.name, clip.duration)
        return cls(clip, track, path=str(p))

    @classmethod
    def from_clip(cls, clip, track: Track = Track.VIDEO) -> "MediaSource":
        """Wrap an in-memory moviepy clip."""
        return cls(clip, track)

    # ── Access ─────────────────────────────────────────────────────

    @property
    def clip(self):
        return self._clip

    @property
    def has_audio(self) -> bool:
        return self._audio_clip() is not None

    def dimensions(self) -> tuple[int, int]:
        return self.size

    def open_handle(self, fps: float | None = None) -> DecodeHandle:
        """Open an independent decode cursor over this source.

        The cursor steps on a grid of `fps` frames per second, the source
        frame rate by default.

        File-backed sources get a fresh reader so cursors never interfere.
        In-memory clips get a shallow copy; their frames are computed on
        demand and carry no cursor state of their own.
        """
        if self.track is not Track.VIDEO:
            raise RuntimeError("Audio sources have no frames to decode")
        if self.path is not None:
            clip = VideoFileClip(self.path, audio=False)
            return DecodeHandle(clip, fps or self.fps, self.duration, owns_clip=True)
        return DecodeHandle(self._clip.copy(), fps or self.fps, self.duration)

    def audio_samples(
        self, start: float, end: float, fps: int = WAVEFORM_SAMPLE_FPS,
    ) -> np.ndarray | None:
        """Mono samples of [start, end) at `fps`, or None without audio."""
        audio = self._audio_clip()
        if audio is None:
            return None
        end = min(end, self.duration)
        if end <= start:
            return np.zeros(0, dtype=float)
        raw = audio.subclipped(start, end).to_soundarray(fps=fps)
        if raw is None:
            return np.zeros(0, dtype=float)
        raw = np.asarray(raw, dtype=float)
        if raw.ndim == 2:
            raw = raw.mean(axis=1)
        return raw

    def close(self) -> None:
        self._clip.close()

    def _audio_clip(self):
        if isinstance(self._clip, AudioClip):
            return self._clip
        return getattr(self._clip, "audio", None)
