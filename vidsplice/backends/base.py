"""Media engine adapter contract and the events it emits."""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Iterator, Union

from vidsplice.models import PipelineStep


@dataclass(frozen=True)
class ProgressEvent:
    """Partial progress of the running step.

    ``fraction`` is in [0, 1]; ``engine_time`` is the output timestamp the
    engine has reached, in seconds.
    """

    fraction: float
    engine_time: float = 0.0


@dataclass(frozen=True)
class StepSucceeded:
    output: str


@dataclass(frozen=True)
class StepFailed:
    message: str


EngineEvent = Union[ProgressEvent, StepSucceeded, StepFailed]


class MediaBackend(ABC):
    """Capability set the orchestrator needs from a codec/mux engine.

    ``execute`` yields zero or more :class:`ProgressEvent` followed by exactly
    one :class:`StepSucceeded` or :class:`StepFailed`.
    """

    @property
    @abstractmethod
    def loaded(self) -> bool: ...

    @abstractmethod
    def load(self) -> None:
        """Initialize the engine. Safe to call more than once."""

    @abstractmethod
    def write_artifact(self, name: str, data: bytes) -> None: ...

    @abstractmethod
    def read_artifact(self, name: str) -> bytes: ...

    @abstractmethod
    def remove_artifact(self, name: str) -> None: ...

    @abstractmethod
    def execute(self, step: PipelineStep) -> Iterator[EngineEvent]: ...
