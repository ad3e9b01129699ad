#!/usr/bin/env python3
"""Generate a synthetic source for the clipsplice demo edit script.

Creates examples/demo-media/counter.mp4: a 10-second clip whose
background changes color every second and which prints the current
second in the middle of the frame, so splits, removals and reorders are
obvious in the exported video. A tone track is attached so the waveform
previews have something to draw.

Usage:
    python examples/generate_demo_source.py
    # Then render:
    clipsplice render --script examples/demo-edit.yaml \
        --output examples/demo-renders/ --config examples/demo-settings.yaml
"""

import numpy as np
from moviepy import AudioClip, VideoClip
from pathlib import Path
from PIL import Image, ImageDraw

from clipsplice.common import load_font

OUTPUT_DIR = Path(__file__).resolve().parent / "demo-media"
SIZE = (320, 240)
FPS = 24
DURATION = 10.0

# One background per second; the counter makes the source time readable.
COLORS = [
    (180, 60, 60),   # red
    (60, 60, 180),   # blue
    (60, 160, 60),   # green
    (200, 130, 40),  # orange
    (130, 60, 180),  # purple
    (40, 170, 170),  # cyan
    (200, 200, 50),  # yellow
    (200, 80, 130),  # pink
    (50, 130, 130),  # teal
    (100, 110, 130), # slate
]


def _make_frame(t: float) -> np.ndarray:
    second = min(int(t), len(COLORS) - 1)
    img = Image.new("RGB", SIZE, COLORS[second])
    draw = ImageDraw.Draw(img)
    font = load_font(64)
    label = f"{second}"
    bbox = draw.textbbox((0, 0), label, font=font)
    tw, th = bbox[2] - bbox[0], bbox[3] - bbox[1]
    draw.text(((SIZE[0] - tw) / 2, (SIZE[1] - th) / 2), label, fill=(255, 255, 255), font=font)
    return np.array(img)


def _make_tone(t):
    # 440 Hz tone whose loudness ramps up each second.
    t = np.asarray(t, dtype=float)
    envelope = (t % 1.0)
    return (0.5 * envelope * np.sin(2 * np.pi * 440 * t)).reshape(-1, 1)


def main():
    OUTPUT_DIR.mkdir(parents=True, exist_ok=True)
    out = OUTPUT_DIR / "counter.mp4"
    if out.exists():
        print(f"  skip {out.name} (exists)")
        return

    clip = VideoClip(_make_frame, duration=DURATION)
    audio = AudioClip(_make_tone, duration=DURATION, fps=44100)
    clip = clip.with_audio(audio)
    clip.write_videofile(str(out), fps=FPS, codec="libx264", audio_codec="aac", logger=None)
    print(f"  wrote {out.name} ({DURATION:g}s)")

    print(f"\nDone. Source in {OUTPUT_DIR}")


if __name__ == "__main__":
    main()
