"""Abstract base class for speech providers."""

from abc import ABC, abstractmethod
from pathlib import Path
from typing import Optional

from sublmnl.models import VoiceParams


class SpeechProvider(ABC):
    """Abstract base class that all speech providers must implement."""

    @abstractmethod
    def initialize(self) -> None:
        """Check that the provider can be used (dependencies, credentials).

        Raises:
            RuntimeError: If the provider is unusable.
        """
        ...

    @abstractmethod
    def synthesize(
        self,
        text: str,
        output_path: Path,
        voice: VoiceParams,
        timeout: Optional[float] = None,
    ) -> None:
        """Synthesize text to an audio file.

        Args:
            text: A single affirmation.
            output_path: Where to write the audio payload.
            voice: Provider voice, language, pitch and speed multiplier.
            timeout: Seconds allowed for the whole request.

        Raises:
            Exception: Any failure; the caller converts it into a SynthesisError.
        """
        ...

    @abstractmethod
    def list_voices(self, language: Optional[str] = None) -> list[dict]:
        """Return available provider voices, optionally filtered by language.

        Each dict contains at least 'name' and 'language' keys.
        """
        ...

    @property
    @abstractmethod
    def name(self) -> str:
        """Human-readable engine name."""
        ...

    @property
    @abstractmethod
    def output_format(self) -> str:
        """Audio format produced natively, e.g. 'mp3'."""
        ...
