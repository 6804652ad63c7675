"""Speech synthesis stage - one audio fragment per affirmation."""

import logging
from concurrent.futures import ThreadPoolExecutor, as_completed
from pathlib import Path
from typing import Callable, Optional, Sequence

from sublmnl.errors import SynthesisError
from sublmnl.models import AffirmationFragment, VoiceParams
from sublmnl.storage import ArtifactStore
from sublmnl.tts.base import SpeechProvider

logger = logging.getLogger(__name__)

FragmentCallback = Callable[[AffirmationFragment], None]


class SpeechSynthesisStage:
    """Turns affirmations into fragment files through a speech provider.

    Requests are independent, so up to `max_workers` run at once. The
    returned fragments are always ordered by affirmation index.
    """

    def __init__(
        self,
        provider: SpeechProvider,
        max_workers: int = 4,
        timeout: Optional[float] = None,
        retries: int = 0,
    ):
        self.provider = provider
        self.max_workers = max_workers
        self.timeout = timeout
        self.retries = retries

    def synthesize(
        self,
        index: int,
        text: str,
        voice: VoiceParams,
        output_path: Path,
    ) -> AffirmationFragment:
        attempts = self.retries + 1
        for attempt in range(1, attempts + 1):
            try:
                self.provider.synthesize(text, output_path, voice, timeout=self.timeout)
            except Exception as e:
                if attempt < attempts:
                    logger.warning(
                        "Sintesi #%d fallita (tentativo %d/%d): %s",
                        index, attempt, attempts, e,
                    )
                    continue
                raise SynthesisError(index, text, f"{type(e).__name__}: {e}") from e
            break

        if not output_path.exists() or output_path.stat().st_size == 0:
            raise SynthesisError(index, text, "il provider ha restituito un audio vuoto")

        logger.debug("Frammento #%d sintetizzato: %s", index, output_path.name)
        return AffirmationFragment(index=index, text=text, path=output_path)

    def synthesize_all(
        self,
        affirmations: Sequence[str],
        voice: VoiceParams,
        store: ArtifactStore,
        on_fragment: Optional[FragmentCallback] = None,
    ) -> list[AffirmationFragment]:
        """Synthesize every affirmation; any failure aborts the whole batch."""
        ext = self.provider.output_format
        fragments: list[Optional[AffirmationFragment]] = [None] * len(affirmations)

        pool = ThreadPoolExecutor(
            max_workers=min(self.max_workers, len(affirmations)) or 1,
            thread_name_prefix="tts",
        )
        try:
            futures = [
                pool.submit(self.synthesize, i, text, voice, store.fragment_path(i, ext))
                for i, text in enumerate(affirmations)
            ]
            for future in as_completed(futures):
                fragment = future.result()
                fragments[fragment.index] = fragment
                if on_fragment:
                    on_fragment(fragment)
        finally:
            # On failure, requests not yet started are dropped
            pool.shutdown(wait=True, cancel_futures=True)

        return list(fragments)
