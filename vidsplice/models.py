"""Shared data types used across vidsplice."""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class ArtifactRole(str, Enum):
    INPUT = "input"
    INTERMEDIATE = "intermediate"
    OUTPUT = "output"


class StepKind(str, Enum):
    TRIM = "trim"
    CONCAT = "concat"
    TRANSCODE = "transcode"


class JobKind(str, Enum):
    STITCH = "stitch"
    COMPRESS = "compress"


class JobState(str, Enum):
    IDLE = "idle"
    BUILDING = "building"
    RUNNING = "running"
    FINALIZING = "finalizing"
    SUCCEEDED = "succeeded"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (JobState.SUCCEEDED, JobState.FAILED)


class ErrorKind(str, Enum):
    INVALID_INPUT = "invalid_input"
    ENGINE_LOAD_FAILURE = "engine_load_failure"
    STEP_FAILURE = "step_failure"
    NOT_FOUND = "not_found"
    DUPLICATE_NAME = "duplicate_name"


class QualityLevel(int, Enum):
    """x264 CRF bound to each quality label.

    The labels are inverted relative to the numbers: a higher CRF compresses
    harder, so HIGH carries the smallest value.
    """

    HIGH = 28
    MEDIUM = 30
    LOW = 32

    @property
    def label(self) -> str:
        return self.name.capitalize()

    @classmethod
    def parse(cls, value: "str | int | QualityLevel") -> "QualityLevel":
        """Accept a label ("high", "High") or a CRF number (28, "28")."""
        if isinstance(value, QualityLevel):
            return value
        if isinstance(value, int) and not isinstance(value, bool):
            return cls(value)
        text = str(value).strip()
        if text.isdigit():
            return cls(int(text))
        try:
            return cls[text.upper()]
        except KeyError:
            raise ValueError(f"Unknown quality level: {value!r}") from None


DEFAULT_QUALITY = QualityLevel.LOW

# Ordered smallest to largest; value -> display name.
RESOLUTIONS: dict[str, str] = {
    "640x360": "360p (640x360)",
    "854x480": "480p (854x480)",
    "1280x720": "720p (1280x720)",
    "1920x1080": "1080p (1920x1080)",
    "2560x1440": "1440p (2560x1440)",
    "3840x2160": "4K (3840x2160)",
}

DEFAULT_RESOLUTION = "1280x720"

MIME_MP4 = "video/mp4"


@dataclass
class MediaHandle:
    """A user-supplied input clip: raw bytes plus its duration once known."""

    name: str
    data: bytes
    duration: float | None = None


@dataclass
class Artifact:
    """A named binary blob in a job's artifact namespace."""

    name: str
    data: bytes
    role: ArtifactRole

    @property
    def size(self) -> int:
        return len(self.data)


@dataclass(frozen=True)
class TranscodeSpec:
    """User-chosen job parameters. Frozen once a job starts."""

    cut_timestamp: float | None = None
    quality: QualityLevel = DEFAULT_QUALITY
    resolution: str = DEFAULT_RESOLUTION


@dataclass(frozen=True)
class PipelineStep:
    """One operation submitted to the media engine."""

    kind: StepKind
    inputs: tuple[str, ...]
    output: str
    params: dict[str, Any] = field(default_factory=dict)
    expected_duration: float | None = None


@dataclass(frozen=True)
class ErrorInfo:
    kind: ErrorKind
    message: str

    def to_dict(self) -> dict:
        return {"kind": self.kind.value, "message": self.message}


@dataclass
class Progress:
    """Percent complete and estimated seconds remaining for the current step."""

    percent: int = 0
    eta_seconds: float | None = None

    @property
    def eta_display(self) -> str:
        from vidsplice.progress import format_eta
        return format_eta(self.eta_seconds)


@dataclass
class JobResult:
    """The final output of a job, ready to hand to a download."""

    filename: str
    data: bytes
    mime_type: str = MIME_MP4

    @property
    def size(self) -> int:
        return len(self.data)


@dataclass
class Job:
    """The unit of work driven by the orchestrator."""

    id: str
    kind: JobKind
    spec: TranscodeSpec
    generation: int
    steps: list[PipelineStep] = field(default_factory=list)
    state: JobState = JobState.IDLE
    step_index: int = 0
    progress: Progress = field(default_factory=Progress)
    result: JobResult | None = None
    error: ErrorInfo | None = None


@dataclass(frozen=True)
class JobSnapshot:
    """Immutable view of a Job handed to observers and the web API."""

    job_id: str | None
    kind: JobKind | None
    state: JobState
    step_index: int
    step_count: int
    percent: int
    eta_seconds: float | None
    eta_display: str
    error: ErrorInfo | None = None
    result_filename: str | None = None
    result_size: int | None = None

    def to_dict(self) -> dict:
        return {
            "job_id": self.job_id,
            "kind": self.kind.value if self.kind else None,
            "state": self.state.value,
            "step_index": self.step_index,
            "step_count": self.step_count,
            "percent": self.percent,
            "eta_seconds": self.eta_seconds,
            "eta": self.eta_display,
            "error": self.error.to_dict() if self.error else None,
            "result": (
                {"filename": self.result_filename, "size": self.result_size}
                if self.result_filename
                else None
            ),
        }
