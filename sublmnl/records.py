"""Audio record handed to the persistence layer once a job is published."""

from typing import Optional

from sublmnl.audio.audio_utils import format_duration
from sublmnl.catalog import Voice
from sublmnl.models import JobResult, MusicTrack, SynthesisRequest


def build_audio_record(
    request: SynthesisRequest,
    track: MusicTrack,
    voice: Voice,
    result: JobResult,
    audio_url: Optional[str] = None,
) -> dict:
    """Describe a finished track the way the audio library stores it."""
    return {
        "id": result.job_id,
        "name": request.name or f"{track.name} Affirmations",
        "affirmations": list(request.affirmations),
        "musicTrack": {
            "id": track.id,
            "name": track.name,
            "path": str(track.path),
            "duration": result.music_duration,
            "durationLabel": format_duration(result.music_duration),
        },
        "voiceType": voice.id,
        "voiceLanguage": request.language,
        "voicePitch": request.pitch,
        "voiceSpeed": request.speed,
        "volume": request.volume,
        "fragmentCount": result.fragment_count,
        "audioUrl": audio_url or result.final_path.as_posix(),
    }
