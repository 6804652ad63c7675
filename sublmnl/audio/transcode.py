"""Transcode chain - the five ffmpeg sub-stages that turn speech fragments into the final mix.

Every sub-stage is a thin wrapper over CommandExecutor:

1. concatenate    fragments (index order) → one speech track
2. tempo_shift    speed the speech track up by a fixed multiplier
3. adjust_volume  scale it by the requested linear gain
4. loop           repeat it until it matches the music duration
5. mix            sum looped speech and music into the final file
"""

import logging
import math
from pathlib import Path
from typing import Optional, Sequence

from sublmnl.audio.executor import CommandExecutor
from sublmnl.errors import ExecutionError, TranscodeError

logger = logging.getLogger(__name__)

CONCATENATE = "concatenate"
TEMPO_SHIFT = "tempo_shift"
VOLUME = "volume"
LOOP = "loop"
MIX = "mix"

STAGE_ORDER = (CONCATENATE, TEMPO_SHIFT, VOLUME, LOOP, MIX)

# Output file stem for each sub-stage inside the job directory
STAGE_OUTPUTS = {
    CONCATENATE: "combined_affirmations",
    TEMPO_SHIFT: "speedup_affirmations",
    VOLUME: "volume_adjusted_affirmations",
    LOOP: "looped_affirmations",
    MIX: "final_audio",
}

# Range a single ffmpeg atempo filter accepts
ATEMPO_MIN = 0.5
ATEMPO_MAX = 2.0


def atempo_filter(multiplier: float) -> str:
    """Build an atempo filter graph for any positive multiplier.

    Values outside [0.5, 2.0] are split into a chain of atempo filters whose
    product is the requested multiplier.
    """
    if not math.isfinite(multiplier) or multiplier <= 0:
        raise ValueError(f"Moltiplicatore tempo non valido: {multiplier}")

    factors = []
    remaining = multiplier
    while remaining > ATEMPO_MAX:
        factors.append(ATEMPO_MAX)
        remaining /= ATEMPO_MAX
    while remaining < ATEMPO_MIN:
        factors.append(ATEMPO_MIN)
        remaining /= ATEMPO_MIN
    factors.append(remaining)
    return ",".join(f"atempo={_fmt(f)}" for f in factors)


def volume_filter(volume: float) -> str:
    """Linear gain filter; the gain is the requested volume itself."""
    if volume < 0:
        raise ValueError(f"Volume non valido: {volume}")
    return f"volume={_fmt(volume)}"


def _fmt(value: float) -> str:
    return f"{value:.6f}".rstrip("0").rstrip(".") or "0"


def _concat_list_entry(path: Path) -> str:
    safe_path = str(path).replace("'", "'\\''")
    return f"file '{safe_path}'\n"


class Transcoder:
    """Runs the transcode sub-stages through a CommandExecutor."""

    def __init__(
        self,
        executor: CommandExecutor,
        ffmpeg: str = "ffmpeg",
        timeout: Optional[float] = None,
    ):
        self.executor = executor
        self.ffmpeg = ffmpeg
        self.timeout = timeout

    def concatenate(self, fragments: Sequence[Path], output: Path) -> Path:
        """Join fragments, in the given order, into one speech track."""
        if not fragments:
            self._fail(CONCATENATE, [], "nessun frammento da concatenare")
        self._require_inputs(CONCATENATE, fragments)

        concat_path = output.parent / "concat.txt"
        with open(concat_path, "w") as f:
            for fragment in fragments:
                f.write(_concat_list_entry(fragment))

        return self._run(CONCATENATE, output, [
            "-y",
            "-f", "concat", "-safe", "0", "-i", str(concat_path),
            "-c", "copy",
            str(output),
        ])

    def tempo_shift(self, source: Path, output: Path, multiplier: float) -> Path:
        self._require_inputs(TEMPO_SHIFT, [source])
        return self._run(TEMPO_SHIFT, output, [
            "-y",
            "-i", str(source),
            "-filter:a", atempo_filter(multiplier),
            str(output),
        ])

    def adjust_volume(self, source: Path, output: Path, volume: float) -> Path:
        self._require_inputs(VOLUME, [source])
        return self._run(VOLUME, output, [
            "-y",
            "-i", str(source),
            "-filter:a", volume_filter(volume),
            str(output),
        ])

    def loop_to_duration(self, source: Path, output: Path, duration: float) -> Path:
        """Loop the source indefinitely and cut it at `duration` seconds."""
        if not math.isfinite(duration) or duration <= 0:
            self._fail(LOOP, [], f"durata di destinazione non valida: {duration}")
        self._require_inputs(LOOP, [source])
        return self._run(LOOP, output, [
            "-y",
            "-stream_loop", "-1",
            "-i", str(source),
            "-c", "copy",
            "-t", _fmt(duration),
            str(output),
        ])

    def mix(self, music: Path, speech: Path, output: Path) -> Path:
        """Sum music and speech; the output lasts as long as the longer input."""
        self._require_inputs(MIX, [music, speech])
        return self._run(MIX, output, [
            "-y",
            "-i", str(music),
            "-i", str(speech),
            "-filter_complex", "[0:a][1:a]amix=inputs=2:duration=longest",
            str(output),
        ])

    def _run(self, stage: str, output: Path, args: list[str]) -> Path:
        logger.debug("Stage %s → %s", stage, output.name)
        try:
            self.executor.run(self.ffmpeg, args, timeout=self.timeout)
        except ExecutionError as e:
            raise TranscodeError(stage, e) from e
        if not output.exists():
            self._fail(stage, args, f"output non creato: {output}")
        return output

    def _require_inputs(self, stage: str, inputs: Sequence[Path]) -> None:
        missing = [str(p) for p in inputs if not Path(p).exists()]
        if missing:
            self._fail(stage, [], f"input mancanti: {', '.join(missing)}")

    def _fail(self, stage: str, args: list[str], detail: str) -> None:
        raise TranscodeError(stage, ExecutionError(self.ffmpeg, args, None, detail=detail))
