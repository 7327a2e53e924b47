"""Lexical pronunciation scoring based on Levenshtein distance.

The score only looks at the recognized text, never at the audio: an attempt
is as good as the recognizer's transcript is close to the target word.
"""

from __future__ import annotations

import math

from models import FeedbackCategory, ScoreResult

EXCELLENT_THRESHOLD = 90
GOOD_THRESHOLD = 70


def levenshtein_distance(a: str, b: str) -> int:
    """Minimum number of single-character edits turning ``a`` into ``b``."""
    rows = len(b) + 1
    cols = len(a) + 1
    table = [[0] * cols for _ in range(rows)]
    for i in range(cols):
        table[0][i] = i
    for j in range(rows):
        table[j][0] = j

    for j in range(1, rows):
        for i in range(1, cols):
            cost = 0 if a[i - 1] == b[j - 1] else 1
            table[j][i] = min(
                table[j][i - 1] + 1,
                table[j - 1][i] + 1,
                table[j - 1][i - 1] + cost,
            )
    return table[-1][-1]


def normalized_similarity(distance: int, len_a: int, len_b: int) -> float:
    """1.0 for identical strings, 0.0 when every character had to change."""
    longest = max(len_a, len_b)
    if longest == 0:
        return 1.0
    return 1.0 - distance / longest


def round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def feedback_for_score(
    score: int,
    excellent: int = EXCELLENT_THRESHOLD,
    good: int = GOOD_THRESHOLD,
) -> FeedbackCategory:
    if score >= excellent:
        return FeedbackCategory.EXCELLENT
    if score >= good:
        return FeedbackCategory.GOOD
    return FeedbackCategory.NEEDS_WORK


class SimilarityScorer:
    def __init__(
        self,
        excellent_threshold: int = EXCELLENT_THRESHOLD,
        good_threshold: int = GOOD_THRESHOLD,
    ) -> None:
        if not 0 <= good_threshold <= excellent_threshold <= 100:
            raise ValueError("thresholds must satisfy 0 <= good <= excellent <= 100")
        self._excellent = excellent_threshold
        self._good = good_threshold

    def score(self, target: str, attempt: str) -> ScoreResult:
        distance = levenshtein_distance(target, attempt)
        ratio = normalized_similarity(distance, len(target), len(attempt))
        value = min(100, max(0, round_half_up(ratio * 100)))
        return ScoreResult(
            score=value,
            feedback=feedback_for_score(value, self._excellent, self._good),
            distance=distance,
            similarity=ratio,
        )
