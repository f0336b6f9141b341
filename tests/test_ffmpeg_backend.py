"""Tests for the ffmpeg-backed media engine (subprocess mocked)."""

import subprocess
from pathlib import Path
from unittest.mock import patch

import pytest

from vidsplice.backends.base import ProgressEvent, StepFailed, StepSucceeded
from vidsplice.backends.ffmpeg import FFmpegBackend
from vidsplice.errors import ArtifactNotFoundError, EngineLoadError, FFmpegNotFoundError
from vidsplice.models import QualityLevel
from vidsplice.pipelines.compress import build_compress_pipeline
from vidsplice.pipelines.stitch import build_stitch_pipeline


@pytest.fixture
def engine(tmp_path):
    backend = FFmpegBackend(work_dir=tmp_path)
    with patch("vidsplice.backends.ffmpeg.ffutil.check_ffmpeg"):
        backend.load()
    yield backend
    backend.close()


def _fake_run(times=(1.0, 5.0, 10.0)):
    """Stand-in for run_with_progress that writes the output file."""
    calls = []

    def run(cmd, log_path):
        calls.append(cmd)
        Path(cmd[-1]).write_bytes(b"OUT")
        yield from times

    return run, calls


class TestLoad:
    def test_missing_ffmpeg(self, tmp_path):
        backend = FFmpegBackend(work_dir=tmp_path)
        with patch("vidsplice.ffutil.shutil.which", return_value=None):
            with pytest.raises(FFmpegNotFoundError):
                backend.load()
        assert not backend.loaded

    def test_load_is_idempotent(self, engine):
        work_dir = engine.work_dir
        engine.load()
        assert engine.work_dir == work_dir

    def test_use_before_load(self, tmp_path):
        with pytest.raises(EngineLoadError):
            FFmpegBackend(work_dir=tmp_path).write_artifact("base.mp4", b"x")

    def test_close_removes_work_dir(self, tmp_path):
        backend = FFmpegBackend(work_dir=tmp_path)
        with patch("vidsplice.backends.ffmpeg.ffutil.check_ffmpeg"):
            backend.load()
        work_dir = backend.work_dir
        backend.close()
        assert not work_dir.exists()
        assert not backend.loaded


class TestArtifacts:
    def test_write_read_remove(self, engine):
        engine.write_artifact("base.mp4", b"data")
        assert engine.read_artifact("base.mp4") == b"data"
        engine.remove_artifact("base.mp4")
        with pytest.raises(ArtifactNotFoundError):
            engine.read_artifact("base.mp4")

    def test_rejects_paths(self, engine):
        with pytest.raises(ValueError):
            engine.write_artifact("../escape.mp4", b"x")


class TestExecute:
    def test_transcode_progress(self, engine):
        engine.write_artifact("base.mp4", b"BASE")
        step = build_compress_pipeline(QualityLevel.HIGH, "640x360", base_duration=10.0)[0]
        run, calls = _fake_run()

        with patch("vidsplice.backends.ffmpeg.ffutil.run_with_progress", side_effect=run):
            events = list(engine.execute(step))

        assert events == [
            ProgressEvent(fraction=0.1, engine_time=1.0),
            ProgressEvent(fraction=0.5, engine_time=5.0),
            ProgressEvent(fraction=1.0, engine_time=10.0),
            StepSucceeded(output="compressed.mp4"),
        ]
        cmd = calls[0]
        assert cmd[cmd.index("-crf") + 1] == "28"
        assert cmd[cmd.index("-s") + 1] == "640x360"
        assert engine.read_artifact("compressed.mp4") == b"OUT"

    def test_unknown_duration_emits_no_progress(self, engine):
        engine.write_artifact("base.mp4", b"BASE")
        step = build_compress_pipeline(QualityLevel.LOW, "1280x720")[0]
        run, _ = _fake_run()

        with patch("vidsplice.backends.ffmpeg.ffutil.run_with_progress", side_effect=run):
            events = list(engine.execute(step))

        assert events == [StepSucceeded(output="compressed.mp4")]

    def test_zero_length_trim_skips_ffmpeg(self, engine):
        engine.write_artifact("base.mp4", b"BASE")
        part1 = build_stitch_pipeline(10.0, 0.0)[0]

        with patch("vidsplice.backends.ffmpeg.ffutil.run_with_progress") as mock_run:
            events = list(engine.execute(part1))

        mock_run.assert_not_called()
        assert events == [StepSucceeded(output="part1.mp4")]
        assert engine.read_artifact("part1.mp4") == b""

    def test_sub_millisecond_trim_skips_ffmpeg(self, engine):
        engine.write_artifact("base.mp4", b"BASE")
        part2 = build_stitch_pipeline(10.0, 9.9996)[1]

        with patch("vidsplice.backends.ffmpeg.ffutil.run_with_progress") as mock_run:
            events = list(engine.execute(part2))

        mock_run.assert_not_called()
        assert events == [StepSucceeded(output="part2.mp4")]
        assert engine.read_artifact("part2.mp4") == b""

    def test_concat_skips_empty_segments(self, engine):
        engine.write_artifact("part1.mp4", b"")
        engine.write_artifact("target.mp4", b"T")
        engine.write_artifact("part2.mp4", b"P2")
        concat = build_stitch_pipeline(10.0, 0.0)[2]
        listed = []

        def run(cmd, log_path):
            list_path = Path(cmd[cmd.index("-i") + 1])
            listed.extend(list_path.read_text().splitlines())
            Path(cmd[-1]).write_bytes(b"OUT")
            yield from ()

        with patch("vidsplice.backends.ffmpeg.ffutil.run_with_progress", side_effect=run):
            events = list(engine.execute(concat))

        assert events == [StepSucceeded(output="stitched.mp4")]
        assert len(listed) == 2
        assert listed[0].endswith("target.mp4'")
        assert not (engine.work_dir / "stitched.mp4.concat.txt").exists()

    def test_missing_input(self, engine):
        step = build_compress_pipeline(QualityLevel.LOW, "1280x720")[0]
        events = list(engine.execute(step))
        assert events == [StepFailed(message="Artifact not found: base.mp4")]

    def test_ffmpeg_failure(self, engine):
        engine.write_artifact("part1.mp4", b"P1")
        engine.write_artifact("target.mp4", b"T")
        engine.write_artifact("part2.mp4", b"P2")
        concat = build_stitch_pipeline(10.0, 5.0)[2]

        def run(cmd, log_path):
            yield 1.0
            raise subprocess.CalledProcessError(1, cmd, stderr="codec parameters differ")

        with patch("vidsplice.backends.ffmpeg.ffutil.run_with_progress", side_effect=run):
            events = list(engine.execute(concat))

        assert isinstance(events[-1], StepFailed)
        assert "codec parameters differ" in events[-1].message
        assert len([e for e in events if isinstance(e, (StepSucceeded, StepFailed))]) == 1

    def test_no_output_file(self, engine):
        engine.write_artifact("base.mp4", b"BASE")
        step = build_compress_pipeline(QualityLevel.LOW, "1280x720")[0]

        with patch("vidsplice.backends.ffmpeg.ffutil.run_with_progress", return_value=iter(())):
            events = list(engine.execute(step))

        assert isinstance(events[-1], StepFailed)
