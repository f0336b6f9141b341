"""Media engine backed by the ffmpeg executable."""

import logging
import os
import shutil
import subprocess
import tempfile
from pathlib import Path
from typing import Iterator

from vidsplice import ffutil
from vidsplice.backends.base import (
    EngineEvent,
    MediaBackend,
    ProgressEvent,
    StepFailed,
    StepSucceeded,
)
from vidsplice.errors import ArtifactNotFoundError, EngineLoadError
from vidsplice.models import PipelineStep, StepKind

logger = logging.getLogger(__name__)


def _trim_is_empty(start: float, end: float) -> bool:
    return float(ffutil.format_seconds(end - start)) <= 0


class FFmpegBackend(MediaBackend):
    """Runs pipeline steps as ffmpeg subprocesses over a private directory.

    Artifact names map one-to-one onto files in the working directory, which
    is created by :meth:`load` and removed by :meth:`close`.
    """

    def __init__(
        self,
        work_dir: Path | None = None,
        ffmpeg: str | None = None,
        ffprobe: str | None = None,
    ) -> None:
        self.ffmpeg = ffmpeg or os.environ.get("VIDSPLICE_FFMPEG", ffutil.FFMPEG)
        self.ffprobe = ffprobe or os.environ.get("VIDSPLICE_FFPROBE", ffutil.FFPROBE)
        self._parent_dir = work_dir
        self.work_dir: Path | None = None
        self._owns_dir = False

    @property
    def loaded(self) -> bool:
        return self.work_dir is not None

    def load(self) -> None:
        if self.loaded:
            return
        ffutil.check_ffmpeg(self.ffmpeg, self.ffprobe)
        try:
            if self._parent_dir is not None:
                self._parent_dir.mkdir(parents=True, exist_ok=True)
            self.work_dir = Path(
                tempfile.mkdtemp(prefix="vidsplice_engine_", dir=self._parent_dir)
            )
        except OSError as e:
            raise EngineLoadError(f"Cannot create engine working directory: {e}") from e
        self._owns_dir = True
        logger.info("ffmpeg engine ready in %s", self.work_dir)

    def close(self) -> None:
        if self.work_dir is not None and self._owns_dir:
            shutil.rmtree(self.work_dir, ignore_errors=True)
        self.work_dir = None

    def _path(self, name: str) -> Path:
        if not self.loaded:
            raise EngineLoadError("Engine used before load()")
        if Path(name).name != name:
            raise ValueError(f"Artifact names must be plain file names: {name!r}")
        return self.work_dir / name

    def write_artifact(self, name: str, data: bytes) -> None:
        self._path(name).write_bytes(data)

    def read_artifact(self, name: str) -> bytes:
        path = self._path(name)
        if not path.exists():
            raise ArtifactNotFoundError(name)
        return path.read_bytes()

    def remove_artifact(self, name: str) -> None:
        self._path(name).unlink(missing_ok=True)
        self._path(f"{name}.log").unlink(missing_ok=True)

    def execute(self, step: PipelineStep) -> Iterator[EngineEvent]:
        output = self._path(step.output)

        # Trims that are empty at command-line precision never reach ffmpeg.
        if step.kind == StepKind.TRIM and _trim_is_empty(step.params["start"], step.params["end"]):
            output.write_bytes(b"")
            yield StepSucceeded(output=step.output)
            return

        try:
            cmd = self._command(step, output)
        except ArtifactNotFoundError as e:
            yield StepFailed(message=str(e))
            return

        log_path = self._path(f"{step.output}.log")
        try:
            for out_time in ffutil.run_with_progress(cmd, log_path):
                fraction = ffutil.progress_fraction(out_time, step.expected_duration)
                if fraction is not None:
                    yield ProgressEvent(fraction=fraction, engine_time=out_time)
        except subprocess.CalledProcessError as e:
            stderr = (e.stderr or "").strip()
            yield StepFailed(
                message=f"ffmpeg failed: {stderr}" if stderr else f"ffmpeg exited with status {e.returncode}"
            )
            return
        except OSError as e:
            yield StepFailed(message=f"Could not run ffmpeg: {e}")
            return
        finally:
            self._path(f"{step.output}.concat.txt").unlink(missing_ok=True)

        if not output.exists():
            yield StepFailed(message=f"ffmpeg produced no output for {step.output}")
            return
        yield StepSucceeded(output=step.output)

    def _command(self, step: PipelineStep, output: Path) -> list[str]:
        inputs = [self._path(name) for name in step.inputs]
        for name, path in zip(step.inputs, inputs):
            if not path.exists():
                raise ArtifactNotFoundError(name)

        if step.kind == StepKind.TRIM:
            return ffutil.build_trim_command(
                inputs[0], output,
                start=step.params["start"],
                end=step.params["end"],
                ffmpeg=self.ffmpeg,
            )
        if step.kind == StepKind.CONCAT:
            # Skip the empty placeholders written for zero-length trims.
            segments = [p for p in inputs if p.stat().st_size > 0]
            list_path = ffutil.write_concat_list(
                segments, self._path(f"{step.output}.concat.txt")
            )
            return ffutil.build_concat_command(list_path, output, ffmpeg=self.ffmpeg)
        if step.kind == StepKind.TRANSCODE:
            return ffutil.build_transcode_command(
                inputs[0], output,
                crf=step.params["crf"],
                resolution=step.params["resolution"],
                vcodec=step.params.get("vcodec", "libx264"),
                preset=step.params.get("preset", "ultrafast"),
                ffmpeg=self.ffmpeg,
            )
        raise ValueError(f"Unsupported step kind: {step.kind}")
