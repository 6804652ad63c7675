"""Progress reporting for the synthesis pipeline."""

from tqdm import tqdm


class ProgressReporter:
    """Wraps tqdm for step-level progress reporting (fragments, then stages)."""

    def __init__(self, total_steps: int):
        self._bar = tqdm(
            total=total_steps,
            desc="Generazione",
            unit="passo",
            bar_format="{l_bar}{bar}| {n_fmt}/{total_fmt} passi [{elapsed}<{remaining}]",
        )

    def update(self, current: int, total: int, label: str) -> None:
        """Update progress after a fragment or stage completes."""
        self._bar.set_postfix_str(label, refresh=False)
        self._bar.update(current - self._bar.n)

    def close(self) -> None:
        self._bar.close()
