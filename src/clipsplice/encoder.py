"""ffmpeg encoder fed with raw RGBA frames over a pipe.

The encoder writes into a private temporary directory and hands the
finished container back as bytes. abort() kills ffmpeg and deletes the
partial output, so a cancelled or failed export leaves nothing behind.
"""

import asyncio
import logging
import shutil
import subprocess
import tempfile
from pathlib import Path

import imageio_ffmpeg
import numpy as np

from .config import ExportSettings
from .errors import EncoderError, EncoderInitFailure

logger = logging.getLogger(__name__)

_FFMPEG = imageio_ffmpeg.get_ffmpeg_exe()


class FFmpegEncoder:
    """Encode (h, w, 4) uint8 frames at a fixed size and frame rate."""

    def __init__(self, settings: ExportSettings, size: tuple[int, int], fps: float):
        self.settings = settings
        self.size = size
        self.fps = fps
        self.frames_written = 0
        self._proc: subprocess.Popen | None = None
        self._work_dir: Path | None = None
        self._log = None

    @property
    def output_path(self) -> Path | None:
        if self._work_dir is None:
            return None
        return self._work_dir / f"output.{self.settings.container}"

    def command(self) -> list[str]:
        w, h = self.size
        return [
            _FFMPEG, "-y",
            "-loglevel", "error",
            "-f", "rawvideo",
            "-pix_fmt", "rgba",
            "-s", f"{w}x{h}",
            "-r", f"{self.fps:g}",
            "-i", "-",
            "-an",
            "-c:v", self.settings.codec,
            *self.settings.ffmpeg_params,
            "-pix_fmt", "yuv420p",
            str(self.output_path),
        ]

    def start(self) -> None:
        """Spawn ffmpeg.

        Raises:
            EncoderInitFailure: ffmpeg could not be launched or exited at once.
        """
        self._work_dir = Path(tempfile.mkdtemp(prefix="clipsplice-"))
        self._log = open(self._work_dir / "ffmpeg.log", "w+b")
        try:
            self._proc = subprocess.Popen(
                self.command(),
                stdin=subprocess.PIPE,
                stdout=subprocess.DEVNULL,
                stderr=self._log,
            )
        except OSError as e:
            self._cleanup()
            raise EncoderInitFailure(f"Could not start ffmpeg: {e}") from e
        if self._proc.poll() is not None:
            detail = self._stderr_tail()
            self._cleanup()
            raise EncoderInitFailure(f"ffmpeg exited during startup: {detail}")
        logger.debug("Encoder started: %s", " ".join(self.command()))

    async def write(self, frame: np.ndarray) -> None:
        """Push one RGBA frame.

        The pipe write runs in a worker thread, so an encoder applying
        backpressure stalls this coroutine rather than the event loop.

        Raises:
            EncoderInitFailure: ffmpeg rejected its configuration before
                accepting a single frame (e.g. unknown codec).
            EncoderError: ffmpeg died mid-stream.
        """
        if self._proc is None or self._proc.stdin is None:
            raise EncoderError("Encoder is not running")
        w, h = self.size
        if frame.shape != (h, w, 4):
            raise EncoderError(f"Frame shape {frame.shape} does not match {(h, w, 4)}")
        proc = self._proc
        data = np.ascontiguousarray(frame, dtype=np.uint8).tobytes()
        try:
            await asyncio.to_thread(proc.stdin.write, data)
        except (BrokenPipeError, OSError) as e:
            await asyncio.to_thread(proc.wait)
            detail = self._stderr_tail()
            if self.frames_written == 0:
                raise EncoderInitFailure(f"ffmpeg refused input: {detail}") from e
            raise EncoderError(f"ffmpeg failed after {self.frames_written} frames: {detail}") from e
        self.frames_written += 1

    async def finish(self) -> bytes:
        """Flush ffmpeg and return the encoded container bytes.

        If the flush is interrupted (task cancellation included), ffmpeg
        is killed and reaped before the work directory is removed.
        """
        if self._proc is None:
            raise EncoderError("Encoder is not running")
        proc = self._proc
        try:
            try:
                proc.stdin.close()
            except (BrokenPipeError, OSError):
                pass
            returncode = await asyncio.to_thread(proc.wait)
            if returncode != 0:
                detail = self._stderr_tail()
                if self.frames_written == 0:
                    raise EncoderInitFailure(f"ffmpeg exited with {returncode}: {detail}")
                raise EncoderError(f"ffmpeg exited with {returncode}: {detail}")
            data = self.output_path.read_bytes()
        except BaseException:
            _reap(proc)
            raise
        finally:
            self._cleanup()
        logger.debug("Encoder flushed %d frames, %d bytes", self.frames_written, len(data))
        return data

    def abort(self) -> None:
        """Kill ffmpeg and discard any partial output. Safe to call twice."""
        if self._proc is not None:
            _reap(self._proc)
        self._cleanup()

    def _stderr_tail(self, limit: int = 2000) -> str:
        if self._log is None:
            return ""
        self._log.flush()
        self._log.seek(0)
        text = self._log.read().decode("utf-8", errors="replace").strip()
        return text[-limit:] or "no output"

    def _cleanup(self) -> None:
        if self._proc is not None and self._proc.stdin is not None:
            try:
                self._proc.stdin.close()
            except (BrokenPipeError, OSError):
                pass
        self._proc = None
        if self._log is not None:
            self._log.close()
            self._log = None
        if self._work_dir is not None:
            shutil.rmtree(self._work_dir, ignore_errors=True)
            self._work_dir = None


def _reap(proc: subprocess.Popen) -> None:
    """Kill `proc` if it is still running and wait for it to exit."""
    if proc.poll() is None:
        proc.kill()
    proc.wait()
