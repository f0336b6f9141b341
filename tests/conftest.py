"""Shared test fixtures."""

from pathlib import Path
from typing import Callable, Iterator

import pytest

from vidsplice.backends.base import (
    EngineEvent,
    MediaBackend,
    ProgressEvent,
    StepFailed,
    StepSucceeded,
)
from vidsplice.engine import Orchestrator
from vidsplice.errors import ArtifactNotFoundError
from vidsplice.models import MediaHandle, PipelineStep

FIXTURES_DIR = Path(__file__).parent / "fixtures"


class FakeBackend(MediaBackend):
    """In-memory engine: each step's output is its inputs joined with a tag."""

    def __init__(
        self,
        fail_outputs: tuple[str, ...] = (),
        fractions: tuple[float, ...] = (0.25, 0.5, 1.0),
        load_error: Exception | None = None,
        on_execute: Callable[[PipelineStep], None] | None = None,
    ) -> None:
        self.fail_outputs = fail_outputs
        self.fractions = fractions
        self.load_error = load_error
        self.on_execute = on_execute
        self.files: dict[str, bytes] = {}
        self.executed: list[PipelineStep] = []
        self.removed: list[str] = []
        self.load_calls = 0
        self._loaded = False

    @property
    def loaded(self) -> bool:
        return self._loaded

    def load(self) -> None:
        self.load_calls += 1
        if self.load_error is not None:
            raise self.load_error
        self._loaded = True

    def write_artifact(self, name: str, data: bytes) -> None:
        self.files[name] = bytes(data)

    def read_artifact(self, name: str) -> bytes:
        if name not in self.files:
            raise ArtifactNotFoundError(name)
        return self.files[name]

    def remove_artifact(self, name: str) -> None:
        self.removed.append(name)
        self.files.pop(name, None)

    def execute(self, step: PipelineStep) -> Iterator[EngineEvent]:
        self.executed.append(step)
        for fraction in self.fractions:
            yield ProgressEvent(fraction=fraction, engine_time=fraction)
        if step.output in self.fail_outputs:
            yield StepFailed(message=f"cannot produce {step.output}")
            return
        self.files[step.output] = b"|".join(self.files[n] for n in step.inputs) + b"#" + step.kind.value.encode()
        if self.on_execute is not None:
            self.on_execute(step)
        yield StepSucceeded(output=step.output)


class FakeClock:
    """Monotonic clock advancing by a fixed tick per call."""

    def __init__(self, tick: float = 1.0) -> None:
        self.now = 0.0
        self.tick = tick

    def __call__(self) -> float:
        value = self.now
        self.now += self.tick
        return value


@pytest.fixture
def sample_manifest_path() -> Path:
    return FIXTURES_DIR / "sample_manifest.json"


@pytest.fixture
def backend() -> FakeBackend:
    return FakeBackend()


@pytest.fixture
def orchestrator(backend: FakeBackend) -> Orchestrator:
    return Orchestrator(backend)


@pytest.fixture
def base_clip() -> MediaHandle:
    return MediaHandle(name="holiday.mp4", data=b"BASE", duration=10.0)


@pytest.fixture
def target_clip() -> MediaHandle:
    return MediaHandle(name="insert.mp4", data=b"TARGET", duration=4.0)
