"""Exception types raised by vidsplice.

Each job-fatal error carries the ``ErrorKind`` it is reported as once the job
lands in its ``FAILED`` state.
"""

from vidsplice.models import ErrorInfo, ErrorKind


class VidspliceError(Exception):
    """Base class for all vidsplice failures."""

    kind: ErrorKind = ErrorKind.STEP_FAILURE

    def to_info(self) -> ErrorInfo:
        return ErrorInfo(kind=self.kind, message=str(self))


class InvalidInputError(VidspliceError, ValueError):
    """Missing input file, unknown preset or out-of-range timestamp."""

    kind = ErrorKind.INVALID_INPUT


class EngineLoadError(VidspliceError, RuntimeError):
    """The media engine could not be initialized."""

    kind = ErrorKind.ENGINE_LOAD_FAILURE


class FFmpegNotFoundError(EngineLoadError):
    pass


class StepFailedError(VidspliceError, RuntimeError):
    """A pipeline step reported failure."""

    kind = ErrorKind.STEP_FAILURE

    def __init__(self, step_index: int, step_kind: str, detail: str):
        self.step_index = step_index
        self.step_kind = step_kind
        self.detail = detail
        super().__init__(f"Step {step_index + 1} ({step_kind}) failed: {detail}")


class ArtifactNotFoundError(VidspliceError, KeyError):
    kind = ErrorKind.NOT_FOUND

    def __init__(self, name: str):
        self.name = name
        super().__init__(f"Artifact not found: {name}")

    def __str__(self) -> str:
        return self.args[0]


class DuplicateNameError(VidspliceError, ValueError):
    kind = ErrorKind.DUPLICATE_NAME

    def __init__(self, name: str):
        self.name = name
        super().__init__(f"Artifact name already registered: {name}")


class JobBusyError(VidspliceError):
    """Raised when a job is submitted while another one is in flight.

    Not a job failure: the running job is left untouched.
    """

    def __init__(self, job_id: str, state: str):
        self.job_id = job_id
        self.state = state
        super().__init__(f"Job {job_id} is already {state}")
