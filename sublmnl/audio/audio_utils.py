"""Audio utility functions - duration probing, format helpers, and ffmpeg paths."""

import json
import math
from pathlib import Path
from typing import Optional

import static_ffmpeg

from sublmnl.audio.executor import CommandExecutor


def get_ffmpeg_paths() -> tuple[str, str]:
    """Return (ffmpeg_path, ffprobe_path) using the bundled static-ffmpeg binaries.

    Downloads binaries on first use if not already present.
    """
    ffmpeg_path, ffprobe_path = static_ffmpeg.run.get_or_fetch_platform_executables_else_raise()
    return ffmpeg_path, ffprobe_path


def get_ffmpeg() -> str:
    """Return the path to the ffmpeg executable."""
    ffmpeg, _ = get_ffmpeg_paths()
    return ffmpeg


def get_ffprobe() -> str:
    """Return the path to the ffprobe executable."""
    _, ffprobe = get_ffmpeg_paths()
    return ffprobe


def check_ffmpeg() -> None:
    """Verify that ffmpeg and ffprobe are available (downloads if needed)."""
    try:
        get_ffmpeg_paths()
    except Exception as e:
        raise RuntimeError(
            f"Impossibile ottenere ffmpeg: {e}\n"
            f"Prova a reinstallare: pip install --force-reinstall static-ffmpeg"
        ) from e


def probe_duration(
    audio_path: Path,
    executor: CommandExecutor,
    ffprobe: Optional[str] = None,
    timeout: Optional[float] = None,
) -> float:
    """Get audio file duration in seconds using ffprobe."""
    result = executor.run(
        ffprobe or get_ffprobe(),
        [
            "-v", "quiet",
            "-print_format", "json",
            "-show_format",
            str(audio_path),
        ],
        timeout=timeout,
    )
    data = json.loads(result.stdout)
    return float(data["format"]["duration"])


def format_duration(seconds: Optional[float]) -> str:
    """Format seconds as m:ss."""
    if not seconds or math.isnan(seconds):
        return "0:00"
    minutes = int(seconds // 60)
    remaining = int(seconds % 60)
    return f"{minutes}:{remaining:02d}"
