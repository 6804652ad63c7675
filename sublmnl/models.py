"""Data models for the sublmnl synthesis pipeline."""

import enum
import tempfile
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Optional

from sublmnl.errors import InvalidTransitionError


DEFAULT_LANGUAGE = "en-US"
DEFAULT_VOLUME = 0.3
DEFAULT_TEMPO = 1.5


class PipelineState(str, enum.Enum):
    """States of a synthesis job, in execution order."""
    VALIDATING = "validating"
    SYNTHESIZING = "synthesizing"
    CONCATENATING = "concatenating"
    TEMPO_SHIFTING = "tempo_shifting"
    VOLUME_ADJUSTING = "volume_adjusting"
    LOOPING = "looping"
    MIXING = "mixing"
    COMPLETED = "completed"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (PipelineState.COMPLETED, PipelineState.FAILED)


# Each non-terminal state advances to exactly one successor, or to FAILED.
TRANSITIONS: dict[PipelineState, PipelineState] = {
    PipelineState.VALIDATING: PipelineState.SYNTHESIZING,
    PipelineState.SYNTHESIZING: PipelineState.CONCATENATING,
    PipelineState.CONCATENATING: PipelineState.TEMPO_SHIFTING,
    PipelineState.TEMPO_SHIFTING: PipelineState.VOLUME_ADJUSTING,
    PipelineState.VOLUME_ADJUSTING: PipelineState.LOOPING,
    PipelineState.LOOPING: PipelineState.MIXING,
    PipelineState.MIXING: PipelineState.COMPLETED,
}


class StageStatus(str, enum.Enum):
    PENDING = "pending"
    RUNNING = "running"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


class CleanupPolicy(str, enum.Enum):
    """When a job's working directory is reclaimed."""
    ALWAYS = "always"
    ON_SUCCESS = "on_success"
    NEVER = "never"


@dataclass(frozen=True)
class VoiceParams:
    """Voice settings handed to a speech provider.

    `speed` is a playback multiplier (1.0 = natural), `pitch` is the
    UI-scale offset in [-10, 10].
    """
    voice: str
    language: str = DEFAULT_LANGUAGE
    pitch: float = 0.0
    speed: float = 1.0


@dataclass(frozen=True)
class SynthesisRequest:
    """Everything the caller supplies for one subliminal track."""
    affirmations: tuple[str, ...]
    voice_id: str
    music_track_id: str
    language: str = DEFAULT_LANGUAGE
    pitch: float = 0.0
    speed: float = 0.0
    volume: float = DEFAULT_VOLUME
    name: Optional[str] = None

    def __post_init__(self):
        # Accept any sequence but store an immutable tuple
        if not isinstance(self.affirmations, tuple):
            object.__setattr__(self, "affirmations", tuple(self.affirmations))

    @property
    def speed_multiplier(self) -> float:
        return 1.0 + self.speed


@dataclass(frozen=True)
class MusicTrack:
    """A background track from the music catalog."""
    id: str
    name: str
    path: Path
    duration: Optional[float] = None

    def with_duration(self, duration: float) -> "MusicTrack":
        return replace(self, duration=duration)


@dataclass(frozen=True)
class AffirmationFragment:
    """Synthesized speech for a single affirmation."""
    index: int
    text: str
    path: Path


@dataclass
class PipelineStage:
    """One independently failable step of a job."""
    name: str
    inputs: list[Path] = field(default_factory=list)
    output: Optional[Path] = None
    status: StageStatus = StageStatus.PENDING
    error: Optional[str] = None

    def start(self) -> None:
        self._move(StageStatus.PENDING, StageStatus.RUNNING)

    def succeed(self) -> None:
        self._move(StageStatus.RUNNING, StageStatus.SUCCEEDED)

    def fail(self, detail: str) -> None:
        self._move(StageStatus.RUNNING, StageStatus.FAILED)
        self.error = detail

    def _move(self, expected: StageStatus, new: StageStatus) -> None:
        if self.status != expected:
            raise InvalidTransitionError(
                f"Stage '{self.name}': transizione {self.status.value} → {new.value} non valida"
            )
        self.status = new


@dataclass(frozen=True)
class JobResult:
    """Outcome of a successful job."""
    job_id: str
    final_path: Path
    music_duration: float
    fragment_count: int


@dataclass
class PipelineConfig:
    """Tunables for a pipeline run."""
    tempo: float = DEFAULT_TEMPO
    max_workers: int = 4
    tts_timeout: float = 60.0
    command_timeout: float = 600.0
    tts_retries: int = 0
    cleanup: CleanupPolicy = CleanupPolicy.ALWAYS
    work_root: Path = field(default_factory=lambda: Path(tempfile.gettempdir()) / "sublmnl")
    output_format: str = "mp3"


@dataclass
class Job:
    """Aggregate root for one synthesis request."""
    job_id: str
    request: SynthesisRequest
    state: PipelineState = PipelineState.VALIDATING
    fragments: list[AffirmationFragment] = field(default_factory=list)
    stages: list[PipelineStage] = field(default_factory=list)
    result: Optional[JobResult] = None
    failed_stage: Optional[PipelineState] = None
    error: Optional[str] = None

    def advance(self, new_state: PipelineState) -> None:
        """Move to the successor state; anything else is rejected."""
        if TRANSITIONS.get(self.state) != new_state:
            raise InvalidTransitionError(
                f"Job {self.job_id}: transizione {self.state.value} → {new_state.value} non valida"
            )
        self.state = new_state

    def fail(self, error: Exception) -> None:
        if self.state.is_terminal:
            raise InvalidTransitionError(
                f"Job {self.job_id}: già in stato terminale {self.state.value}"
            )
        self.failed_stage = self.state
        self.error = str(error)
        self.state = PipelineState.FAILED

    def stage(self, name: str) -> Optional[PipelineStage]:
        for stage in self.stages:
            if stage.name == name:
                return stage
        return None
