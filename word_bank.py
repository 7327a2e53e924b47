"""Fixed vocabulary of practice words."""

from __future__ import annotations

import random
from typing import Iterable, Optional

DEFAULT_WORDS = (
    "hello",
    "world",
    "pronunciation",
    "experience",
    "technology",
    "communication",
    "opportunity",
    "development",
    "environment",
    "understanding",
)


class WordBank:
    def __init__(
        self,
        words: Iterable[str] = DEFAULT_WORDS,
        rng: Optional[random.Random] = None,
    ) -> None:
        self._words = tuple(w.strip().lower() for w in words)
        if not self._words:
            raise ValueError("word bank needs at least one word")
        self._rng = rng or random.Random()

    @property
    def words(self) -> tuple[str, ...]:
        return self._words

    def pick_random_word(self) -> str:
        """Uniform choice with replacement."""
        return self._rng.choice(self._words)

    def __contains__(self, word: object) -> bool:
        return word in self._words

    def __len__(self) -> int:
        return len(self._words)
