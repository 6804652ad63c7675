"""OpenAI engine - hosted TTS through the audio speech endpoint."""

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

API_BASE = "https://api.openai.com/v1"
API_KEY_ENV = "OPENAI_API_KEY"
MODEL_ID = "gpt-4o-mini-tts"

# Voices exposed by the speech endpoint
API_VOICES = ("alloy", "ash", "ballad", "coral", "echo", "fable", "nova", "onyx", "sage", "shimmer", "verse")

# Speed range accepted by the API
MIN_SPEED = 0.25
MAX_SPEED = 4.0

REQUEST_TIMEOUT = 30


@register_engine("openai")
class OpenAIEngine(SpeechProvider):
    """Speech provider using the OpenAI text-to-speech API.

    The API key is read from the OPENAI_API_KEY environment variable.
    Pitch is not supported and is ignored; the language follows the text.
    """

    def __init__(self, api_key: Optional[str] = None):
        self.api_key = api_key

    def initialize(self) -> None:
        if not self.api_key:
            self.api_key = os.environ.get(API_KEY_ENV)
        if not self.api_key:
            raise RuntimeError(
                f"Chiave API OpenAI mancante. Imposta la variabile {API_KEY_ENV}"
            )

    def synthesize(
        self,
        text: str,
        output_path: Path,
        voice: VoiceParams,
        timeout: Optional[float] = None,
    ) -> None:
        if voice.pitch:
            logger.debug("OpenAI non supporta il pitch, ignorato (%s)", voice.pitch)

        body = {
            "model": MODEL_ID,
            "voice": voice.voice,
            "input": text,
            "response_format": self.output_format,
            "speed": max(MIN_SPEED, min(MAX_SPEED, voice.speed)),
        }
        req = urllib.request.Request(
            f"{API_BASE}/audio/speech",
            data=json.dumps(body).encode("utf-8"),
            headers={
                "Authorization": f"Bearer {self.api_key}",
                "Content-Type": "application/json",
                "User-Agent": "sublmnl/0.1",
            },
            method="POST",
        )
        with urllib.request.urlopen(req, timeout=timeout or REQUEST_TIMEOUT) as resp:
            data = resp.read()

        if not data:
            raise RuntimeError("OpenAI ha restituito un audio vuoto")
        output_path.write_bytes(data)

    def list_voices(self, language: Optional[str] = None) -> list[dict]:
        # Every voice speaks every supported language
        return [
            {"name": v, "language": "", "gender": "", "label": v.capitalize()}
            for v in API_VOICES
        ]

    @property
    def name(self) -> str:
        return "OpenAI"

    @property
    def output_format(self) -> str:
        return "mp3"
