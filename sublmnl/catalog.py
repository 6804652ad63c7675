"""Voice and music catalogs.

Both are small in-process registries: voices map the identifiers users pick
to a speech engine voice, music tracks map ids to files on disk with a
duration that is probed once and then cached.
"""

import json
import logging
import threading
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Iterable, Optional

from sublmnl.models import MusicTrack

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Voice:
    """A user-selectable voice backed by a speech engine voice."""
    id: str
    engine: str
    provider_voice: str
    language: str
    gender: str = ""
    label: str = ""

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "engine": self.engine,
            "language": self.language,
            "gender": self.gender,
            "label": self.label or self.id.capitalize(),
        }


BUILTIN_VOICES = (
    Voice("aria", "edge", "en-US-AriaNeural", "en-US", "Female"),
    Voice("jenny", "edge", "en-US-JennyNeural", "en-US", "Female"),
    Voice("guy", "edge", "en-US-GuyNeural", "en-US", "Male"),
    Voice("sonia", "edge", "en-GB-SoniaNeural", "en-GB", "Female"),
    Voice("ryan", "edge", "en-GB-RyanNeural", "en-GB", "Male"),
    Voice("isabella", "edge", "it-IT-IsabellaNeural", "it-IT", "Female"),
    Voice("elvira", "edge", "es-ES-ElviraNeural", "es-ES", "Female"),
    Voice("denise", "edge", "fr-FR-DeniseNeural", "fr-FR", "Female"),
    Voice("katja", "edge", "de-DE-KatjaNeural", "de-DE", "Female"),
    # ElevenLabs premade voices (multilingual model)
    Voice("rachel", "elevenlabs", "21m00Tcm4TlvDq8ikWAM", "en", "Female"),
    Voice("adam", "elevenlabs", "pNInz6obpgDQGcFmaJgB", "en", "Male"),
    Voice("bella", "elevenlabs", "EXAVITQu4vr4xnSDxMaL", "en", "Female"),
    # OpenAI voices under the names the app shows
    Voice("breeze", "openai", "alloy", "en"),
    Voice("cove", "openai", "echo", "en"),
    Voice("ember", "openai", "fable", "en"),
    Voice("juniper", "openai", "onyx", "en"),
    Voice("arbor", "openai", "nova", "en"),
    Voice("maple", "openai", "shimmer", "en"),
    Voice("sol", "openai", "coral", "en"),
    Voice("spruce", "openai", "verse", "en"),
    Voice("vale", "openai", "ballad", "en"),
)


class VoiceCatalog:
    """Known voices, keyed by id."""

    def __init__(self, voices: Iterable[Voice] = BUILTIN_VOICES):
        self._voices = {v.id: v for v in voices}

    def get(self, voice_id: str) -> Optional[Voice]:
        return self._voices.get(voice_id)

    def register(self, voice: Voice) -> None:
        self._voices[voice.id] = voice

    def list(self, language: Optional[str] = None) -> list[Voice]:
        voices = list(self._voices.values())
        if language:
            prefix = language.split("-")[0].lower()
            voices = [v for v in voices if v.language.lower().startswith(prefix)]
        return voices


class MusicCatalog:
    """Background tracks, keyed by id.

    Tracks are immutable; once a duration is probed the cached entry is
    replaced by a copy that carries it, so later jobs skip the probe.
    """

    def __init__(self, tracks: Iterable[MusicTrack] = ()):
        self._tracks: dict[str, MusicTrack] = {t.id: t for t in tracks}
        self._lock = threading.Lock()

    @classmethod
    def from_json(cls, path: Path) -> "MusicCatalog":
        """Load tracks from a JSON list of {id, name, path, duration?}.

        Relative track paths are resolved against the JSON file's directory.
        """
        path = Path(path)
        entries = json.loads(path.read_text(encoding="utf-8"))
        tracks = []
        for entry in entries:
            track_path = Path(entry["path"])
            if not track_path.is_absolute():
                track_path = path.parent / track_path
            tracks.append(MusicTrack(
                id=str(entry["id"]),
                name=entry.get("name") or str(entry["id"]),
                path=track_path,
                duration=entry.get("duration"),
            ))
        logger.info("Catalogo musica caricato: %d tracce da %s", len(tracks), path)
        return cls(tracks)

    def add(self, track: MusicTrack) -> None:
        with self._lock:
            self._tracks[track.id] = track

    def get(self, track_id: str) -> Optional[MusicTrack]:
        with self._lock:
            return self._tracks.get(track_id)

    def list(self) -> list[MusicTrack]:
        with self._lock:
            return list(self._tracks.values())

    def with_duration(self, track_id: str, probe: Callable[[Path], float]) -> MusicTrack:
        """Return the track with a known duration, probing it at most once."""
        track = self.get(track_id)
        if track is None:
            raise KeyError(track_id)
        if track.duration is not None:
            return track

        duration = probe(track.path)
        logger.info("Durata traccia '%s': %.1fs", track.name, duration)
        track = track.with_duration(duration)
        self.add(track)
        return track
