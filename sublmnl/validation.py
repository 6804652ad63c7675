"""Synthesis request validation.

Runs before any job directory exists or any external service is called.
"""

import math
import re

from sublmnl.catalog import MusicCatalog, Voice, VoiceCatalog
from sublmnl.errors import ValidationError
from sublmnl.models import MusicTrack, PipelineConfig, SynthesisRequest

MIN_PITCH, MAX_PITCH = -10.0, 10.0
MIN_SPEED, MAX_SPEED = -0.5, 1.0

_LANGUAGE_RE = re.compile(r"^[A-Za-z]{2,3}(-[A-Za-z0-9]{2,8})*$")


def validate_request(
    request: SynthesisRequest,
    voices: VoiceCatalog,
    music: MusicCatalog,
) -> tuple[Voice, MusicTrack]:
    """Check a request and resolve its voice and music track.

    Raises:
        ValidationError: On the first invalid field.
    """
    if not request.affirmations:
        raise ValidationError("affirmations", "serve almeno un'affermazione")
    for i, text in enumerate(request.affirmations):
        if not isinstance(text, str) or not text.strip():
            raise ValidationError("affirmations", f"l'affermazione #{i} è vuota")

    if not 0.0 <= request.volume <= 1.0:
        raise ValidationError("volume", f"deve essere tra 0 e 1, ricevuto {request.volume}")
    if not MIN_PITCH <= request.pitch <= MAX_PITCH:
        raise ValidationError("pitch", f"deve essere tra {MIN_PITCH:g} e {MAX_PITCH:g}")
    if not MIN_SPEED <= request.speed <= MAX_SPEED:
        raise ValidationError("speed", f"deve essere tra {MIN_SPEED:g} e {MAX_SPEED:g}")
    if not _LANGUAGE_RE.match(request.language or ""):
        raise ValidationError("language", f"tag lingua non valido: '{request.language}'")

    voice = voices.get(request.voice_id)
    if voice is None:
        raise ValidationError("voice_id", f"voce sconosciuta: '{request.voice_id}'")

    track = music.get(request.music_track_id)
    if track is None:
        raise ValidationError("music_track_id", f"traccia sconosciuta: '{request.music_track_id}'")
    if track.duration is not None and not _positive(track.duration):
        raise ValidationError("music_track_id", f"durata traccia non valida: {track.duration}")

    return voice, track


def validate_config(config: PipelineConfig) -> None:
    if not _positive(config.tempo):
        raise ValidationError("tempo", f"deve essere positivo, ricevuto {config.tempo}")
    if config.max_workers < 1:
        raise ValidationError("max_workers", "serve almeno un worker")
    if config.tts_retries < 0:
        raise ValidationError("tts_retries", "non può essere negativo")


def _positive(value: float) -> bool:
    return math.isfinite(value) and value > 0
