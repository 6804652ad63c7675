"""Exception hierarchy for the synthesis pipeline."""

from typing import Optional, Sequence

STDERR_TAIL_LINES = 20


def tail(text: str, lines: int = STDERR_TAIL_LINES) -> str:
    """Return the last `lines` lines of a process output."""
    return "\n".join(text.strip().splitlines()[-lines:])


class SublmnlError(RuntimeError):
    """Base class for all pipeline errors."""


class InvalidTransitionError(SublmnlError):
    """Raised on an illegal job state or stage status transition."""


class ValidationError(SublmnlError, ValueError):
    """Raised when a synthesis request is rejected before any external call."""

    def __init__(self, field: str, message: str) -> None:
        super().__init__(f"{field}: {message}")
        self.field = field
        self.message = message


class StorageError(SublmnlError):
    """Raised when a job's working directory cannot be created or reclaimed."""

    def __init__(self, path, detail: str) -> None:
        super().__init__(f"{path}: {detail}")
        self.path = path
        self.detail = detail


class SynthesisError(SublmnlError):
    """Raised when the speech provider fails for one affirmation."""

    def __init__(self, index: int, text: str, detail: str) -> None:
        super().__init__(f"Affermazione #{index} ('{text}'): {detail}")
        self.index = index
        self.text = text
        self.detail = detail


class ExecutionError(SublmnlError):
    """Raised when an external program fails to spawn, times out or exits non-zero.

    `exit_code` is None when the process never produced one.
    """

    def __init__(
        self,
        program: str,
        args: Sequence[str],
        exit_code: Optional[int],
        stderr_tail: str = "",
        detail: Optional[str] = None,
    ) -> None:
        if detail is None:
            detail = f"exit code {exit_code}"
        message = f"{program} fallito ({detail})"
        if stderr_tail:
            message += f": {stderr_tail}"
        super().__init__(message)
        self.program = program
        self.argv = list(args)
        self.exit_code = exit_code
        self.stderr_tail = stderr_tail
        self.detail = detail


class TranscodeError(ExecutionError):
    """An ExecutionError attributed to one transcode sub-stage."""

    def __init__(self, stage: str, cause: ExecutionError) -> None:
        super().__init__(
            cause.program,
            cause.argv,
            cause.exit_code,
            cause.stderr_tail,
            detail=f"stage {stage}: {cause.detail}",
        )
        self.stage = stage


class PipelineError(SublmnlError):
    """The single structured error a failed job surfaces to its caller."""

    def __init__(self, job_id: str, stage, cause: Exception) -> None:
        stage_name = getattr(stage, "value", stage)
        super().__init__(f"Job {job_id} fallito in {stage_name}: {cause}")
        self.job_id = job_id
        self.stage = stage
        self.cause = cause

    @property
    def is_upstream(self) -> bool:
        """True when an external service or program failed, not local storage."""
        return isinstance(self.cause, (SynthesisError, ExecutionError))
