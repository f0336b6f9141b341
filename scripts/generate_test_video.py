#!/usr/bin/env python3
"""Generate synthetic clips for manual vidsplice runs.

Produces two videos encoded with identical parameters, so they can be stitched
with stream copy:
  base.mp4    10s, 440 Hz tone over a moving test pattern
  target.mp4   4s, 880 Hz tone over solid red

Usage: generate_test_video.py [OUTPUT_DIR]   (default: tests/fixtures/media)
"""

import subprocess
import sys
from pathlib import Path

# Shared encoding parameters; concat stream copy needs these to match.
SIZE = "640x360"
RATE = 30
ENCODE_ARGS = [
    "-c:v", "libx264", "-pix_fmt", "yuv420p", "-r", str(RATE),
    "-c:a", "aac", "-ar", "44100", "-ac", "2",
    "-shortest",
]


def _generate(output: Path, video_src: str, tone_hz: int, duration: float) -> None:
    cmd = [
        "ffmpeg", "-y",
        "-f", "lavfi", "-i", f"{video_src}:s={SIZE}:r={RATE}:d={duration}",
        "-f", "lavfi", "-i", f"sine=f={tone_hz}:d={duration}",
        *ENCODE_ARGS,
        str(output),
    ]
    subprocess.run(cmd, check=True)
    print(f"Generated: {output}")


def generate_test_videos(output_dir: Path) -> tuple[Path, Path]:
    output_dir.mkdir(parents=True, exist_ok=True)
    base = output_dir / "base.mp4"
    target = output_dir / "target.mp4"
    _generate(base, "testsrc", 440, 10)
    _generate(target, "color=c=red", 880, 4)
    return base, target


if __name__ == "__main__":
    out = Path(sys.argv[1]) if len(sys.argv) > 1 else Path("tests/fixtures/media")
    generate_test_videos(out)
