"""Shared test fixtures for clipsplice tests."""

import subprocess

import numpy as np
import pytest
import imageio_ffmpeg
from moviepy import AudioClip, VideoClip

from clipsplice.commands import EditCommands
from clipsplice.media import MediaSource
from clipsplice.segments import Track
from clipsplice.session import EditSession

_FFMPEG = imageio_ffmpeg.get_ffmpeg_exe()

CLIP_SIZE = (64, 48)
CLIP_FPS = 10
CLIP_DURATION = 10.0


def frame_value(t: float, fps: float = CLIP_FPS) -> int:
    """Pixel value the counter clip carries at time t (2 per frame index)."""
    return (int(round(t * fps)) * 2) % 256


def make_counter_clip(
    size=CLIP_SIZE, duration=CLIP_DURATION, fps=CLIP_FPS,
) -> VideoClip:
    """In-memory clip whose every pixel encodes the frame index.

    Lets tests tell exactly which source frame was composited.
    """
    w, h = size

    def frame_function(t):
        return np.full((h, w, 3), frame_value(t, fps), dtype=np.uint8)

    return VideoClip(frame_function, duration=duration).with_fps(fps)


def make_tone_clip(duration=CLIP_DURATION) -> AudioClip:
    """Mono 440 Hz tone whose loudness rises linearly over the clip."""
    def frame_function(t):
        return (np.asarray(t) / duration) * np.sin(2 * np.pi * 440 * np.asarray(t))

    return AudioClip(frame_function, duration=duration, fps=8000)


@pytest.fixture
def counter_source():
    return MediaSource.from_clip(make_counter_clip())


@pytest.fixture
def tone_source():
    return MediaSource.from_clip(make_tone_clip(), Track.AUDIO)


@pytest.fixture
def session():
    s = EditSession()
    yield s
    s.close()


@pytest.fixture
def edit(session, counter_source):
    """EditCommands over a session with the 10s counter clip uploaded."""
    commands = EditCommands(session)
    commands.upload(Track.VIDEO, counter_source)
    return commands


@pytest.fixture
def source_video(tmp_path):
    """Create a 10-second test video (320x240, 10fps) with audio using ffmpeg."""
    out = tmp_path / "source.mp4"
    subprocess.run(
        [
            _FFMPEG, "-y",
            "-f", "lavfi", "-i", "testsrc=s=320x240:d=10:r=10",
            "-f", "lavfi", "-i", "sine=frequency=440:sample_rate=44100:duration=10",
            "-shortest",
            "-c:v", "libx264", "-crf", "28", "-pix_fmt", "yuv420p",
            "-c:a", "aac", "-b:a", "32k",
            str(out),
        ],
        check=True,
        capture_output=True,
    )
    return out
