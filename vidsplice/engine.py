"""Orchestrator — turns a stitch/compress request into engine operations."""

import contextlib
import logging
import threading
import time
import uuid
from dataclasses import dataclass
from pathlib import Path
from typing import Callable

from vidsplice import ffutil
from vidsplice.artifacts import ArtifactStore
from vidsplice.backends.base import MediaBackend, ProgressEvent, StepFailed, StepSucceeded
from vidsplice.errors import (
    EngineLoadError,
    InvalidInputError,
    JobBusyError,
    StepFailedError,
    VidspliceError,
)
from vidsplice.manifest import Manifest
from vidsplice.models import (
    RESOLUTIONS,
    ArtifactRole,
    ErrorInfo,
    ErrorKind,
    Job,
    JobKind,
    JobResult,
    JobSnapshot,
    JobState,
    MediaHandle,
    PipelineStep,
    Progress,
    QualityLevel,
    TranscodeSpec,
)
from vidsplice.pipelines import compress, stitch
from vidsplice.progress import ProgressTracker, format_eta
from vidsplice.timecode import is_ready

logger = logging.getLogger(__name__)

Observer = Callable[[JobSnapshot], None]

_IDLE_SNAPSHOT = JobSnapshot(
    job_id=None,
    kind=None,
    state=JobState.IDLE,
    step_index=0,
    step_count=0,
    percent=0,
    eta_seconds=None,
    eta_display=format_eta(None),
)


class Orchestrator:
    """Runs one stitch or compress job at a time against a media backend.

    Lifecycle: IDLE -> BUILDING -> RUNNING (one step at a time) -> FINALIZING
    -> SUCCEEDED | FAILED. Observers registered with :meth:`subscribe` get a
    :class:`JobSnapshot` after every state or progress change.

    A new submission is rejected with :class:`JobBusyError` while a job is in
    flight. :meth:`reset` abandons the current job; its in-flight step is
    allowed to finish but everything it reports afterwards is discarded.
    """

    def __init__(
        self,
        backend: MediaBackend,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.backend = backend
        self.store = ArtifactStore()
        self._tracker = ProgressTracker(clock)
        self._lock = threading.RLock()
        # Held while a job talks to the backend; serializes stale and fresh jobs.
        self._engine_lock = threading.Lock()
        self._observers: list[Observer] = []
        self._generation = 0
        self._job: Job | None = None
        self._thread: threading.Thread | None = None

    # -- observation -------------------------------------------------------

    @property
    def job(self) -> Job | None:
        return self._job

    @property
    def state(self) -> JobState:
        with self._lock:
            return self._job.state if self._job else JobState.IDLE

    @property
    def result(self) -> JobResult | None:
        with self._lock:
            return self._job.result if self._job else None

    def snapshot(self) -> JobSnapshot:
        with self._lock:
            job = self._job
            if job is None:
                return _IDLE_SNAPSHOT
            return JobSnapshot(
                job_id=job.id,
                kind=job.kind,
                state=job.state,
                step_index=job.step_index,
                step_count=len(job.steps),
                percent=job.progress.percent,
                eta_seconds=job.progress.eta_seconds,
                eta_display=job.progress.eta_display,
                error=job.error,
                result_filename=job.result.filename if job.result else None,
                result_size=job.result.size if job.result else None,
            )

    def subscribe(self, observer: Observer) -> Callable[[], None]:
        """Register *observer*; returns a function that unregisters it."""
        with self._lock:
            self._observers.append(observer)

        def unsubscribe() -> None:
            with self._lock:
                if observer in self._observers:
                    self._observers.remove(observer)

        return unsubscribe

    def _notify(self) -> None:
        snap = self.snapshot()
        with self._lock:
            observers = list(self._observers)
        for observer in observers:
            try:
                observer(snap)
            except Exception:
                logger.exception("Job observer %r failed", observer)

    # -- submission ----------------------------------------------------------

    def submit(
        self,
        kind: JobKind | str,
        spec: TranscodeSpec,
        base: MediaHandle | None,
        target: MediaHandle | None = None,
    ) -> Job:
        """Validate the request and build its pipeline without running it.

        Returns the new job in RUNNING (pipeline built, step 0 pending) or in
        FAILED with an ``invalid_input`` error.
        """
        try:
            kind = JobKind(kind)
        except ValueError:
            raise InvalidInputError(f"Unknown job kind {kind!r}") from None

        with self._lock:
            current = self._job
            if current is not None and current.state not in (
                JobState.IDLE, JobState.SUCCEEDED, JobState.FAILED,
            ):
                raise JobBusyError(current.id, current.state.value)
            if current is not None:
                self._discard_current()

            self._generation += 1
            job = Job(
                id=uuid.uuid4().hex[:12],
                kind=kind,
                spec=spec,
                generation=self._generation,
            )
            self._job = job
            job.state = JobState.BUILDING

        self._notify()
        logger.info("Job %s: building %s pipeline", job.id, job.kind.value)

        try:
            steps = self._build(job.kind, spec, base, target)
        except InvalidInputError as e:
            logger.warning("Job %s rejected: %s", job.id, e)
            self._fail(job, e.to_info())
            return job

        with self._lock:
            job.steps = steps
            job.step_index = 0
            job.state = JobState.RUNNING
        self._notify()
        return job

    def run(
        self,
        kind: JobKind | str,
        spec: TranscodeSpec,
        base: MediaHandle | None,
        target: MediaHandle | None = None,
    ) -> Job:
        """Submit and execute a job on the calling thread."""
        job = self.submit(kind, spec, base, target)
        if job.state == JobState.RUNNING:
            self._execute(job, base, target)
        return job

    def start(
        self,
        kind: JobKind | str,
        spec: TranscodeSpec,
        base: MediaHandle | None,
        target: MediaHandle | None = None,
    ) -> Job:
        """Submit a job and execute it on a background thread."""
        job = self.submit(kind, spec, base, target)
        if job.state == JobState.RUNNING:
            thread = threading.Thread(
                target=self._execute,
                args=(job, base, target),
                name=f"vidsplice-job-{job.id}",
                daemon=True,
            )
            self._thread = thread
            thread.start()
        return job

    def wait(self, timeout: float | None = None) -> JobSnapshot:
        """Block until the background job (if any) finishes."""
        thread = self._thread
        if thread is not None:
            thread.join(timeout)
        return self.snapshot()

    def reset(self) -> None:
        """Abandon the current job and return to IDLE, releasing its artifacts."""
        with self._lock:
            if self._job is None:
                return
            logger.info("Job %s: reset from %s", self._job.id, self._job.state.value)
            self._discard_current()
        self._notify()

    def _discard_current(self) -> None:
        # Caller holds self._lock.
        self._generation += 1
        self._job = None
        self.store.release_all()
        self._tracker.start_step()

    # -- pipeline construction ----------------------------------------------

    def _build(
        self,
        kind: JobKind,
        spec: TranscodeSpec,
        base: MediaHandle | None,
        target: MediaHandle | None,
    ) -> list[PipelineStep]:
        if base is None or not base.data:
            raise InvalidInputError("A base video is required")

        if kind == JobKind.STITCH:
            if target is None or not target.data:
                raise InvalidInputError("A target video is required for stitching")
            if not is_ready(base.duration):
                raise InvalidInputError("Base video duration is not known yet")
            if spec.cut_timestamp is None:
                raise InvalidInputError("A cut timestamp is required for stitching")
            return stitch.build_stitch_pipeline(
                base.duration,
                spec.cut_timestamp,
                target_duration=target.duration if is_ready(target.duration) else None,
            )

        if spec.resolution not in RESOLUTIONS:
            raise InvalidInputError(f"Unsupported resolution {spec.resolution!r}")
        return compress.build_compress_pipeline(
            spec.quality,
            spec.resolution,
            base_duration=base.duration if is_ready(base.duration) else None,
        )

    # -- execution -------------------------------------------------------------

    def _is_stale(self, job: Job) -> bool:
        return job.generation != self._generation

    def _execute(
        self,
        job: Job,
        base: MediaHandle,
        target: MediaHandle | None,
    ) -> None:
        with self._engine_lock:
            written: list[str] = []
            try:
                self._run_steps(job, base, target, written)
            except VidspliceError as e:
                logger.error("Job %s failed: %s", job.id, e)
                self._fail(job, e.to_info())
            except Exception as e:
                logger.exception("Job %s failed unexpectedly", job.id)
                self._fail(job, ErrorInfo(kind=ErrorKind.STEP_FAILURE, message=str(e)))
            finally:
                for name in written:
                    try:
                        self.backend.remove_artifact(name)
                    except OSError as e:
                        logger.warning("Could not remove engine artifact %s: %s", name, e)

    def _run_steps(
        self,
        job: Job,
        base: MediaHandle,
        target: MediaHandle | None,
        written: list[str],
    ) -> None:
        if not self.backend.loaded:
            logger.info("Loading media engine")
            self.backend.load()

        inputs = [(stitch.BASE_NAME, base)]
        if job.kind == JobKind.STITCH:
            inputs.append((stitch.TARGET_NAME, target))
        for name, handle in inputs:
            with self._lock:
                if self._is_stale(job):
                    return
                self.store.register(name, handle.data, ArtifactRole.INPUT)
            written.append(name)
            self.backend.write_artifact(name, handle.data)

        last = len(job.steps) - 1
        for index, step in enumerate(job.steps):
            with self._lock:
                if self._is_stale(job):
                    return
                for name in step.inputs:
                    self.store.resolve(name)
                job.step_index = index
                job.progress = self._tracker.start_step()
            self._notify()
            logger.info(
                "Job %s: step %d/%d %s %s -> %s",
                job.id, index + 1, len(job.steps), step.kind.value,
                ", ".join(step.inputs), step.output,
            )

            written.append(step.output)
            outcome = self._run_step(job, step)
            if outcome is None:
                return
            if isinstance(outcome, StepFailed):
                raise StepFailedError(index, step.kind.value, outcome.message)

            data = self.backend.read_artifact(step.output)
            with self._lock:
                if self._is_stale(job):
                    return
                job.progress = self._tracker.complete_step()
                if index < last:
                    self.store.register(step.output, data, ArtifactRole.INTERMEDIATE)
                else:
                    job.state = JobState.FINALIZING
            self._notify()

            if index == last:
                self._finalize(job, step.output, data)

    def _run_step(self, job: Job, step: PipelineStep) -> StepSucceeded | StepFailed | None:
        """Drive one step's event stream; None if the job went stale meanwhile."""
        outcome: StepSucceeded | StepFailed | None = None
        with contextlib.closing(self.backend.execute(step)) as events:
            for event in events:
                if self._is_stale(job):
                    logger.info("Job %s: discarding events from abandoned step", job.id)
                    return None
                if isinstance(event, ProgressEvent):
                    with self._lock:
                        job.progress = self._tracker.update(event.fraction)
                    self._notify()
                elif isinstance(event, (StepSucceeded, StepFailed)):
                    outcome = event
                    break
        if self._is_stale(job):
            return None
        if outcome is None:
            return StepFailed(message="engine ended the step without reporting an outcome")
        return outcome

    def _finalize(self, job: Job, output_name: str, data: bytes) -> None:
        with self._lock:
            if self._is_stale(job):
                return
            self.store.register(output_name, data, ArtifactRole.OUTPUT)
            self.store.release_all(keep=[output_name])
            job.result = JobResult(filename=output_name, data=data)
            job.state = JobState.SUCCEEDED
        logger.info("Job %s: succeeded, %s (%d bytes)", job.id, output_name, len(data))
        self._notify()

    def _fail(self, job: Job, error: ErrorInfo) -> None:
        with self._lock:
            if self._is_stale(job):
                return
            job.state = JobState.FAILED
            job.error = error
            job.result = None
            job.progress = Progress()
            self.store.release_all()
        self._notify()


@dataclass
class EngineResult:
    output_path: Path
    job_id: str
    kind: JobKind
    size: int = 0
    duration_original: float = 0.0
    duration_final: float = 0.0


def load_media(path: Path, ffprobe: str = ffutil.FFPROBE) -> MediaHandle:
    """Read a clip from disk and probe its duration."""
    path = Path(path)
    if not path.is_file():
        raise InvalidInputError(f"Input file not found: {path}")
    duration = ffutil.probe(path, ffprobe=ffprobe).duration
    return MediaHandle(name=path.name, data=path.read_bytes(), duration=duration)


def process(
    manifest: Manifest,
    on_progress: Callable[[JobSnapshot], None] | None = None,
    backend: MediaBackend | None = None,
) -> EngineResult:
    """Execute the job described by *manifest* and write its output file.

    Args:
        manifest: Validated job manifest.
        on_progress: Optional observer called with every job snapshot.
        backend: Media engine to use; defaults to a fresh FFmpegBackend.

    Raises:
        VidspliceError: the job failed; the exception carries its ErrorKind.
    """
    owns_backend = backend is None
    if backend is None:
        from vidsplice.backends.ffmpeg import FFmpegBackend
        backend = FFmpegBackend()

    try:
        base = load_media(manifest.base)
        target = load_media(manifest.target) if manifest.target else None

        spec = TranscodeSpec(
            cut_timestamp=manifest.resolve_cut(base.duration),
            quality=QualityLevel.parse(manifest.quality),
            resolution=manifest.resolution,
        )

        orchestrator = Orchestrator(backend)
        if on_progress:
            orchestrator.subscribe(on_progress)
        job = orchestrator.run(manifest.kind, spec, base, target)

        if job.state != JobState.SUCCEEDED:
            raise _error_from_info(job.error)

        output_path = manifest.output_path()
        output_path.parent.mkdir(parents=True, exist_ok=True)
        output_path.write_bytes(job.result.data)
        final_probe = ffutil.probe(output_path)
    finally:
        if owns_backend:
            backend.close()

    return EngineResult(
        output_path=output_path,
        job_id=job.id,
        kind=job.kind,
        size=job.result.size,
        duration_original=base.duration or 0.0,
        duration_final=final_probe.duration,
    )


_ERRORS_BY_KIND = {
    ErrorKind.INVALID_INPUT: InvalidInputError,
    ErrorKind.ENGINE_LOAD_FAILURE: EngineLoadError,
}


def _error_from_info(info: ErrorInfo | None) -> VidspliceError:
    """Rebuild an exception from a failed job's ErrorInfo."""
    if info is None:
        return VidspliceError("Job did not finish")
    cls = _ERRORS_BY_KIND.get(info.kind)
    if cls is not None:
        return cls(info.message)
    err = VidspliceError(info.message)
    err.kind = info.kind
    return err
