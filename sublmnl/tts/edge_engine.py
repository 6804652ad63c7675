"""Edge TTS engine - free online neural TTS via Microsoft Edge."""

import asyncio
import logging
from pathlib import Path
from threading import Thread
from typing import Optional

from sublmnl.models import VoiceParams
from sublmnl.tts.base import SpeechProvider
from sublmnl.tts import register_engine

logger = logging.getLogger(__name__)

# Default voices per language
DEFAULT_VOICES = {
    "en": "en-US-AriaNeural",
    "it": "it-IT-IsabellaNeural",
    "es": "es-ES-ElviraNeural",
    "fr": "fr-FR-DeniseNeural",
    "de": "de-DE-KatjaNeural",
}

# Hz of pitch shift per unit of the UI pitch scale [-10, 10]
HZ_PER_PITCH_UNIT = 5


def _run_async(coro):
    """Run an async coroutine safely, even if an event loop is already running.

    When called from a sync context (CLI, worker threads), uses asyncio.run().
    When called from within an existing event loop (e.g. FastAPI/uvicorn),
    runs the coroutine in a fresh event loop on a separate thread.
    """
    try:
        asyncio.get_running_loop()
    except RuntimeError:
        # No event loop running; safe to use asyncio.run()
        return asyncio.run(coro)

    # An event loop is already running; spin up a new one in a thread
    result = None
    exception = None

    def _target():
        nonlocal result, exception
        try:
            result = asyncio.run(coro)
        except Exception as e:
            exception = e

    t = Thread(target=_target)
    t.start()
    t.join()

    if exception:
        raise exception
    return result


@register_engine("edge")
class EdgeTTSEngine(SpeechProvider):
    """Speech provider using Microsoft Edge's free online neural voices."""

    def initialize(self) -> None:
        import edge_tts  # noqa: F401

    def synthesize(
        self,
        text: str,
        output_path: Path,
        voice: VoiceParams,
        timeout: Optional[float] = None,
    ) -> None:
        _run_async(self._synthesize_async(text, output_path, voice, timeout))

    async def _synthesize_async(
        self,
        text: str,
        output_path: Path,
        voice: VoiceParams,
        timeout: Optional[float],
    ) -> None:
        import edge_tts

        short_name = voice.voice or self.default_voice(voice.language)
        communicate = edge_tts.Communicate(
            text,
            short_name,
            rate=self._speed_to_rate(voice.speed),
            pitch=self._pitch_to_hz(voice.pitch),
        )
        await asyncio.wait_for(communicate.save(str(output_path)), timeout=timeout)

    def list_voices(self, language: Optional[str] = None) -> list[dict]:
        return _run_async(self._list_voices_async(language))

    async def _list_voices_async(self, language: Optional[str] = None) -> list[dict]:
        import edge_tts

        voices = await edge_tts.list_voices()
        result = []
        for v in voices:
            locale = v.get("Locale", "")
            if language and not locale.lower().startswith(language.lower()):
                continue
            result.append({
                "name": v["ShortName"],
                "language": locale,
                "gender": v.get("Gender", ""),
            })
        return result

    @property
    def name(self) -> str:
        return "Edge TTS"

    @property
    def output_format(self) -> str:
        return "mp3"

    @staticmethod
    def default_voice(language: str) -> str:
        return DEFAULT_VOICES.get(language.split("-")[0].lower(), DEFAULT_VOICES["en"])

    @staticmethod
    def _speed_to_rate(speed: float) -> str:
        """Convert speed multiplier (e.g. 1.2) to Edge TTS rate string (e.g. '+20%')."""
        percent = round((speed - 1.0) * 100)
        if percent >= 0:
            return f"+{percent}%"
        return f"{percent}%"

    @staticmethod
    def _pitch_to_hz(pitch: float) -> str:
        """Convert UI pitch (e.g. 2) to Edge TTS pitch string (e.g. '+10Hz')."""
        hz = round(pitch * HZ_PER_PITCH_UNIT)
        if hz >= 0:
            return f"+{hz}Hz"
        return f"{hz}Hz"
