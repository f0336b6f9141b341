"""FFmpeg/ffprobe subprocess helpers."""

import json
import logging
import shutil
import subprocess
from dataclasses import dataclass
from pathlib import Path
from typing import Iterator

from vidsplice.errors import FFmpegNotFoundError

logger = logging.getLogger(__name__)

FFMPEG = "ffmpeg"
FFPROBE = "ffprobe"

# Common prefix: overwrite outputs, keep stderr short, report progress on stdout.
_BASE_ARGS = ["-y", "-hide_banner", "-v", "error", "-nostats", "-progress", "pipe:1"]


@dataclass
class ProbeResult:
    """Metadata extracted from a media file via ffprobe."""

    duration: float
    width: int
    height: int
    fps: float
    codec_video: str
    codec_audio: str | None = None


def check_ffmpeg(ffmpeg: str = FFMPEG, ffprobe: str = FFPROBE) -> None:
    """Raise FFmpegNotFoundError if ffmpeg/ffprobe are not on PATH."""
    for cmd in (ffmpeg, ffprobe):
        if shutil.which(cmd) is None:
            raise FFmpegNotFoundError(f"{cmd} not found on PATH")


def probe(input_path: Path, ffprobe: str = FFPROBE) -> ProbeResult:
    """Extract media metadata via ffprobe."""
    cmd = [
        ffprobe,
        "-v", "quiet",
        "-print_format", "json",
        "-show_format",
        "-show_streams",
        str(input_path),
    ]
    result = subprocess.run(cmd, capture_output=True, text=True, check=True)
    data = json.loads(result.stdout)

    video_stream = next(
        (s for s in data["streams"] if s["codec_type"] == "video"), None
    )
    audio_stream = next(
        (s for s in data["streams"] if s["codec_type"] == "audio"), None
    )

    if video_stream is None:
        raise ValueError(f"No video stream found in {input_path}")

    # Parse fps from r_frame_rate (e.g. "30/1")
    num, den = video_stream["r_frame_rate"].split("/")
    fps = int(num) / int(den) if int(den) else 0.0

    return ProbeResult(
        duration=float(data["format"]["duration"]),
        width=int(video_stream["width"]),
        height=int(video_stream["height"]),
        fps=fps,
        codec_video=video_stream["codec_name"],
        codec_audio=audio_stream["codec_name"] if audio_stream else None,
    )


def probe_bytes(data: bytes, work_dir: Path, ffprobe: str = FFPROBE) -> ProbeResult:
    """Probe an in-memory clip by spilling it to *work_dir* first."""
    work_dir.mkdir(parents=True, exist_ok=True)
    tmp = work_dir / "probe.tmp"
    tmp.write_bytes(data)
    try:
        return probe(tmp, ffprobe=ffprobe)
    finally:
        tmp.unlink(missing_ok=True)


def format_seconds(value: float) -> str:
    """Seconds as written on an ffmpeg command line (millisecond precision)."""
    return f"{value:.3f}"


def build_trim_command(
    input_path: Path,
    output_path: Path,
    start: float,
    end: float,
    ffmpeg: str = FFMPEG,
) -> list[str]:
    """Stream-copy the [start, end) range of *input_path*."""
    return [
        ffmpeg, *_BASE_ARGS,
        "-ss", format_seconds(start),
        "-i", str(input_path),
        "-t", format_seconds(end - start),
        "-c", "copy",
        "-avoid_negative_ts", "make_zero",
        str(output_path),
    ]


def write_concat_list(paths: list[Path], list_path: Path) -> Path:
    """Write an ffmpeg concat-demuxer list file."""
    lines = []
    for p in paths:
        escaped = str(Path(p).resolve()).replace("'", r"'\''")
        lines.append(f"file '{escaped}'")
    list_path.write_text("\n".join(lines) + "\n", encoding="utf-8")
    return list_path


def build_concat_command(
    list_path: Path,
    output_path: Path,
    ffmpeg: str = FFMPEG,
) -> list[str]:
    """Stream-copy concatenation of every file named in *list_path*.

    All inputs must share codec and container parameters; nothing is
    re-encoded.
    """
    return [
        ffmpeg, *_BASE_ARGS,
        "-f", "concat",
        "-safe", "0",
        "-i", str(list_path),
        "-c", "copy",
        str(output_path),
    ]


def build_transcode_command(
    input_path: Path,
    output_path: Path,
    crf: int,
    resolution: str,
    vcodec: str = "libx264",
    preset: str = "ultrafast",
    ffmpeg: str = FFMPEG,
) -> list[str]:
    return [
        ffmpeg, *_BASE_ARGS,
        "-i", str(input_path),
        "-vcodec", vcodec,
        "-crf", str(crf),
        "-preset", preset,
        "-s", resolution,
        str(output_path),
    ]


def parse_progress_time(line: str) -> float | None:
    """Return the output time in seconds from one ``-progress`` line.

    Only ``out_time_us`` / ``out_time_ms`` lines carry a usable value (both are
    microseconds). Anything else, including ``N/A``, yields None.
    """
    key, sep, value = line.strip().partition("=")
    if not sep or key not in ("out_time_us", "out_time_ms"):
        return None
    try:
        micros = int(value)
    except ValueError:
        return None
    if micros < 0:
        return None
    return micros / 1_000_000


def progress_fraction(out_time: float, expected_duration: float | None) -> float | None:
    """Fraction complete, or None when the expected duration is unknown."""
    if not expected_duration or expected_duration <= 0:
        return None
    return min(max(out_time / expected_duration, 0.0), 1.0)


def run_with_progress(cmd: list[str], log_path: Path) -> Iterator[float]:
    """Run ffmpeg and yield output timestamps (seconds) as they are reported.

    stderr goes to *log_path*. Raises ``subprocess.CalledProcessError`` with the
    tail of the log as ``stderr`` if ffmpeg exits non-zero.
    """
    logger.debug("Running: %s", " ".join(cmd))
    with open(log_path, "w", encoding="utf-8") as log, subprocess.Popen(
        cmd,
        stdout=subprocess.PIPE,
        stderr=log,
        stdin=subprocess.DEVNULL,
        text=True,
    ) as proc:
        for line in proc.stdout:
            out_time = parse_progress_time(line)
            if out_time is not None:
                yield out_time
        returncode = proc.wait()

    if returncode != 0:
        stderr = Path(log_path).read_text(encoding="utf-8", errors="replace")
        raise subprocess.CalledProcessError(returncode, cmd, stderr=stderr[-500:])
