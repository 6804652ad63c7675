"""ElevenLabs engine - hosted neural TTS over HTTPS."""

import json
import logging
import os
import urllib.request
from pathlib import Path
from typing import Optional

from sublmnl.models import VoiceParams
from sublmnl.tts.base import SpeechProvider
from sublmnl.tts import register_engine

logger = logging.getLogger(__name__)

API_BASE = "https://api.elevenlabs.io/v1"
API_KEY_ENV = "ELEVENLABS_API_KEY"
MODEL_ID = "eleven_multilingual_v2"

# Speed range accepted by the API
MIN_SPEED = 0.7
MAX_SPEED = 1.2

VOICE_SETTINGS = {
    "stability": 0.5,
    "similarity_boost": 0.5,
    "style": 0.0,
    "use_speaker_boost": True,
}

# Timeout for requests that are not given one explicitly (seconds)
REQUEST_TIMEOUT = 30


@register_engine("elevenlabs")
class ElevenLabsEngine(SpeechProvider):
    """Speech provider using the ElevenLabs text-to-speech API.

    The API key is read from the ELEVENLABS_API_KEY environment variable.
    Pitch is not supported by the API and is ignored.
    """

    def __init__(self, api_key: Optional[str] = None):
        self.api_key = api_key

    def initialize(self) -> None:
        if not self.api_key:
            self.api_key = os.environ.get(API_KEY_ENV)
        if not self.api_key:
            raise RuntimeError(
                f"Chiave API ElevenLabs mancante. Imposta la variabile {API_KEY_ENV}"
            )

    def synthesize(
        self,
        text: str,
        output_path: Path,
        voice: VoiceParams,
        timeout: Optional[float] = None,
    ) -> None:
        if voice.pitch:
            logger.debug("ElevenLabs non supporta il pitch, ignorato (%s)", voice.pitch)

        body = {
            "text": text,
            "model_id": MODEL_ID,
            "voice_settings": {**VOICE_SETTINGS, "speed": self._clamp_speed(voice.speed)},
        }
        req = urllib.request.Request(
            f"{API_BASE}/text-to-speech/{voice.voice}",
            data=json.dumps(body).encode("utf-8"),
            headers=self._headers({"Content-Type": "application/json", "Accept": "audio/mpeg"}),
            method="POST",
        )
        with urllib.request.urlopen(req, timeout=timeout or REQUEST_TIMEOUT) as resp:
            data = resp.read()

        if not data:
            raise RuntimeError("ElevenLabs ha restituito un audio vuoto")
        output_path.write_bytes(data)

    def list_voices(self, language: Optional[str] = None) -> list[dict]:
        req = urllib.request.Request(f"{API_BASE}/voices", headers=self._headers())
        with urllib.request.urlopen(req, timeout=REQUEST_TIMEOUT) as resp:
            payload = json.loads(resp.read())

        result = []
        for v in payload.get("voices", []):
            labels = v.get("labels") or {}
            lang = labels.get("language", "")
            if language and lang and not language.lower().startswith(lang.lower()):
                continue
            result.append({
                "name": v["voice_id"],
                "language": lang,
                "gender": labels.get("gender", ""),
                "label": v.get("name", ""),
            })
        return result

    @property
    def name(self) -> str:
        return "ElevenLabs"

    @property
    def output_format(self) -> str:
        return "mp3"

    def _headers(self, extra: Optional[dict] = None) -> dict:
        headers = {"xi-api-key": self.api_key or "", "User-Agent": "sublmnl/0.1"}
        headers.update(extra or {})
        return headers

    @staticmethod
    def _clamp_speed(speed: float) -> float:
        return max(MIN_SPEED, min(MAX_SPEED, speed))
