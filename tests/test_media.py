"""Tests for media sources and decode handles."""

import asyncio
import threading

import numpy as np
import pytest

from clipsplice.media import DecodeHandle, MediaSource
from clipsplice.segments import Track

from conftest import frame_value, make_counter_clip


class TestMediaSource:
    def test_in_memory_properties(self, counter_source):
        assert counter_source.duration == 10.0
        assert counter_source.fps == 10.0
        assert counter_source.dimensions() == (64, 48)
        assert not counter_source.has_audio

    def test_audio_source(self, tone_source):
        assert tone_source.track is Track.AUDIO
        assert tone_source.size == (0, 0)
        assert tone_source.has_audio

    def test_missing_file_raises(self, tmp_path):
        with pytest.raises(FileNotFoundError, match="not found"):
            MediaSource.from_path(tmp_path / "nope.mp4")

    def test_from_path(self, source_video):
        source = MediaSource.from_path(source_video)
        try:
            assert source.duration == pytest.approx(10.0, abs=0.2)
            assert source.size == (320, 240)
            assert source.has_audio
        finally:
            source.close()

    def test_audio_samples_mono(self, tone_source):
        samples = tone_source.audio_samples(1.0, 2.0, fps=100)
        assert samples.ndim == 1
        assert 90 <= samples.shape[0] <= 110

    def test_audio_samples_empty_range(self, tone_source):
        assert tone_source.audio_samples(5.0, 5.0).size == 0

    def test_audio_samples_without_audio(self, counter_source):
        assert counter_source.audio_samples(0, 1) is None

    def test_audio_source_has_no_handle(self, tone_source):
        with pytest.raises(RuntimeError, match="no frames"):
            tone_source.open_handle()


class TestDecodeHandle:
    def test_seek_lands_on_grid(self, counter_source):
        handle = counter_source.open_handle()
        frame = asyncio.run(handle.seek(2.0))
        assert handle.position == 2.0
        assert frame[0, 0, 0] == frame_value(2.0)

    def test_seek_between_frames_rounds_up(self, counter_source):
        handle = counter_source.open_handle()
        asyncio.run(handle.seek(0.25))
        assert handle.position == pytest.approx(0.3)

    def test_advance_steps_one_frame(self, counter_source):
        handle = counter_source.open_handle()

        async def run():
            await handle.seek(1.0)
            return await handle.advance()

        frame = asyncio.run(run())
        assert handle.position == pytest.approx(1.1)
        assert frame[0, 0, 0] == frame_value(1.1)

    def test_custom_grid(self, counter_source):
        handle = counter_source.open_handle(fps=4)

        async def run():
            await handle.seek(1.0)
            await handle.advance()

        asyncio.run(run())
        assert handle.position == 1.25

    def test_end_of_source(self, counter_source):
        handle = counter_source.open_handle()
        assert asyncio.run(handle.seek(10.0)) is None
        assert handle.current_frame() is None

    def test_position_none_before_seek(self, counter_source):
        assert counter_source.open_handle().position is None

    def test_handles_are_independent(self, counter_source):
        a = counter_source.open_handle()
        b = counter_source.open_handle()

        async def run():
            await a.seek(1.0)
            await b.seek(7.0)
            await a.advance()

        asyncio.run(run())
        assert a.position == pytest.approx(1.1)
        assert b.position == 7.0

    def test_claim_is_exclusive(self, counter_source):
        handle = counter_source.open_handle()
        with handle.claim("export"):
            assert handle.owner == "export"
            with pytest.raises(RuntimeError, match="already claimed by 'export'"):
                with handle.claim("preview"):
                    pass
        assert handle.owner is None

    def test_closed_handle_rejects_decode(self, counter_source):
        handle = counter_source.open_handle()
        handle.close()
        with pytest.raises(RuntimeError, match="closed"):
            asyncio.run(handle.seek(0))

    def test_file_backed_handle(self, source_video):
        source = MediaSource.from_path(source_video)
        handle = source.open_handle()
        try:
            frame = asyncio.run(handle.seek(4.0))
            assert frame.shape == (240, 320, 3)
            assert handle.position == 4.0
        finally:
            handle.close()
            source.close()

    def test_frames_differ_over_time(self):
        source = MediaSource.from_clip(make_counter_clip())
        handle = source.open_handle()

        async def run():
            first = await handle.seek(0.0)
            second = await handle.advance()
            return first, second

        first, second = asyncio.run(run())
        assert not np.array_equal(first, second)


class _StalledClip:
    """Clip whose get_frame hangs until released; records close timing."""

    def __init__(self):
        self.release = threading.Event()
        self.closed = threading.Event()
        self.decoding = False
        self.closed_mid_decode = None

    def get_frame(self, t):
        self.decoding = True
        self.release.wait(5)
        self.decoding = False
        return np.zeros((4, 4, 3), dtype=np.uint8)

    def close(self):
        self.closed_mid_decode = self.decoding
        self.closed.set()


class TestAbandonedDecode:
    def test_close_waits_for_running_decode(self):
        clip = _StalledClip()
        handle = DecodeHandle(clip, fps=10, duration=5.0, owns_clip=True)

        async def run():
            with pytest.raises(asyncio.TimeoutError):
                await asyncio.wait_for(handle.seek(1.0), 0.05)
            handle.close()
            assert not clip.closed.is_set()
            clip.release.set()

        asyncio.run(run())
        assert clip.closed.wait(5)
        assert clip.closed_mid_decode is False

    def test_busy_until_worker_returns(self):
        clip = _StalledClip()
        handle = DecodeHandle(clip, fps=10, duration=5.0)

        async def run():
            with pytest.raises(asyncio.TimeoutError):
                await asyncio.wait_for(handle.seek(1.0), 0.05)
            with pytest.raises(RuntimeError, match="Concurrent decode"):
                await handle.advance()
            clip.release.set()

        asyncio.run(run())
