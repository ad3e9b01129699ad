"""Export pipeline — drive the compositor across a time range into ffmpeg.

State machine:
  IDLE -> PRIMING -> RENDERING -> FINALIZING -> IDLE

  PRIMING     open a private decode handle, seek to the range start and
              wait for the first decoded frame.
  RENDERING   read the decode position; once it reaches the range end,
              move on. Otherwise composite the frame, push it to the
              encoder and wait for the next decoded frame. Cadence follows
              decode availability, so output frame rate is the source
              frame rate, not wall-clock time.
  FINALIZING  flush the encoder and collect its output into one byte
              stream.

Every decode wait is bounded by the configured timeout (DecodeStall on
expiry). cancel() stops the run at the next suspension point; the
encoder is aborted and no artifact is produced. Nothing is retried.
"""

import asyncio
import logging
import math
import time
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Callable

import numpy as np

from .compositor import composite_frame
from .config import ExportSettings
from .encoder import FFmpegEncoder
from .errors import (
    DecodeStall,
    EncoderError,
    EncoderInitFailure,
    ExportCancelled,
    InvalidRange,
    SourceUnavailable,
)
from .segments import Track

logger = logging.getLogger(__name__)

EncoderFactory = Callable[[ExportSettings, tuple[int, int], float], FFmpegEncoder]


class ExportState(str, Enum):
    IDLE = "idle"
    PRIMING = "priming"
    RENDERING = "rendering"
    FINALIZING = "finalizing"


@dataclass
class ExportResult:
    data: bytes
    filename: str
    mime_type: str
    frame_count: int
    fps: float
    start: float
    end: float

    @property
    def duration(self) -> float:
        return self.frame_count / self.fps if self.fps else 0.0

    def write_to(self, directory: str | Path) -> Path:
        """Save the artifact under its download name in `directory`."""
        out_dir = Path(directory)
        out_dir.mkdir(parents=True, exist_ok=True)
        path = out_dir / self.filename
        path.write_bytes(self.data)
        return path


class ExportPipeline:
    """Renders one range at a time from an EditSession.

    The encoder factory is injectable; by default every run gets a fresh
    FFmpegEncoder.
    """

    def __init__(self, session, encoder_factory: EncoderFactory = FFmpegEncoder):
        self.session = session
        self._encoder_factory = encoder_factory
        self._state = ExportState.IDLE
        self._cancel_requested = False
        self.on_state_change: Callable[[ExportState], None] | None = None
        self.on_progress: Callable[[float], None] | None = None

    @property
    def state(self) -> ExportState:
        return self._state

    def cancel(self) -> None:
        """Request cancellation. Takes effect at the next suspension point."""
        if self._state is not ExportState.IDLE:
            logger.info("Export cancellation requested in %s", self._state.value)
            self._cancel_requested = True

    async def export_range(self, start: float, end: float) -> ExportResult:
        """Render [start, end) of the video track into an encoded artifact.

        Raises:
            SourceUnavailable: No video source loaded. State stays IDLE.
            InvalidRange: Empty or negative range after clamping `end` to
                the source duration. State stays IDLE.
            RuntimeError: Another export is already running.
            EncoderInitFailure: The encoder could not start.
            EncoderError: The encoder failed mid-stream or on flush.
            DecodeStall: A seek or frame decode timed out.
            ExportCancelled: cancel() was called during the run.
        """
        if self._state is not ExportState.IDLE:
            raise RuntimeError(f"Export already running ({self._state.value})")
        source = self.session.source(Track.VIDEO)
        if source is None:
            raise SourceUnavailable("No video source loaded; nothing to export")
        if not (math.isfinite(start) and math.isfinite(end)):
            raise InvalidRange(f"Export range must be finite, got [{start}, {end})")
        end = min(end, source.duration)
        if start < 0 or start >= end:
            raise InvalidRange(f"Export range [{start}, {end}) is empty")

        settings = self.session.settings.export
        fps = settings.fps or source.fps
        canvas = self.session.canvas_size()
        zoom = self.session.zoom
        # Edits made while the export runs must not leak into the artifact.
        segments = self.session.segments.snapshot()[0]
        overlays = self.session.overlays.snapshot()

        self._cancel_requested = False
        handle = source.open_handle(fps)
        encoder = None
        frames = 0
        t0 = time.monotonic()
        try:
            with handle.claim("export"):
                self._set_state(ExportState.PRIMING)
                frame = await self._await_decode(handle.seek(start), "seek")
                self._check_cancelled()

                encoder = self._encoder_factory(settings, canvas, fps)
                try:
                    encoder.start()
                except EncoderInitFailure:
                    encoder = None
                    raise
                except (OSError, EncoderError) as e:
                    encoder = None
                    raise EncoderInitFailure(str(e)) from e

                self._set_state(ExportState.RENDERING)
                last_t = None
                while frame is not None:
                    t = handle.position
                    if t >= end:
                        break
                    if last_t is not None and t <= last_t:
                        raise RuntimeError(f"Decode clock went backwards: {t} <= {last_t}")
                    rgba = composite_frame(
                        t, frame, segments, overlays, canvas,
                        zoom=zoom, sharpen=settings.sharpen,
                    )
                    await encoder.write(rgba)
                    frames += 1
                    last_t = t
                    if self.on_progress is not None:
                        self.on_progress(min(1.0, (t - start) / (end - start)))
                    frame = await self._await_decode(handle.advance(), "frame")
                    self._check_cancelled()

                self._set_state(ExportState.FINALIZING)
                data = await encoder.finish()
                encoder = None
                self._check_cancelled()
        except BaseException:
            if encoder is not None:
                encoder.abort()
            raise
        finally:
            handle.close()
            self._cancel_requested = False
            self._set_state(ExportState.IDLE)

        logger.info(
            "Exported [%.3f, %.3f): %d frames at %g fps, %d bytes in %.1fs",
            start, end, frames, fps, len(data), time.monotonic() - t0,
        )
        return ExportResult(
            data=data,
            filename=settings.filename,
            mime_type=settings.mime_type,
            frame_count=frames,
            fps=fps,
            start=start,
            end=end,
        )

    # ── Internal ───────────────────────────────────────────────────

    async def _await_decode(self, decode, what: str) -> np.ndarray | None:
        timeout = self.session.settings.export.decode_timeout
        try:
            return await asyncio.wait_for(decode, timeout)
        except asyncio.TimeoutError:
            raise DecodeStall(f"Decode {what} did not complete within {timeout:g}s") from None

    def _check_cancelled(self) -> None:
        if self._cancel_requested:
            raise ExportCancelled("Export cancelled; partial output discarded")

    def _set_state(self, state: ExportState) -> None:
        if state is self._state:
            return
        logger.debug("Export state %s -> %s", self._state.value, state.value)
        self._state = state
        if self.on_state_change is not None:
            self.on_state_change(state)
