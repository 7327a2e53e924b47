"""Core data models for the trainer."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Optional


class CaptureStatus(str, Enum):
    IDLE = "IDLE"
    LISTENING = "LISTENING"


class FeedbackCategory(str, Enum):
    EXCELLENT = "EXCELLENT"
    GOOD = "GOOD"
    NEEDS_WORK = "NEEDS_WORK"

    @property
    def message(self) -> str:
        return FEEDBACK_MESSAGES[self]


FEEDBACK_MESSAGES = {
    FeedbackCategory.EXCELLENT: "Excellent pronunciation!",
    FeedbackCategory.GOOD: "Good job! Keep practicing.",
    FeedbackCategory.NEEDS_WORK: "Try again. Focus on each sound.",
}


class RecognitionKind(str, Enum):
    PARTIAL = "partial"
    FINAL = "final"
    ERROR = "error"


class CaptureEventKind(str, Enum):
    PARTIAL = "partial"
    RESULT = "result"
    ERROR = "error"


@dataclass
class AudioFrame:
    pcm16_bytes: bytes
    sample_rate: int = 16000
    channels: int = 1
    timestamp_ms: int = 0


@dataclass
class RecognitionEvent:
    kind: str
    text: str = ""
    code: str = ""
    message: str = ""
    retryable: bool = False


@dataclass(frozen=True)
class CaptureEvent:
    kind: CaptureEventKind
    attempt_id: int
    text: str = ""
    code: str = ""
    message: str = ""


@dataclass(frozen=True)
class ScoreResult:
    score: int
    feedback: FeedbackCategory
    distance: int
    similarity: float


@dataclass(frozen=True)
class SessionState:
    """Snapshot of one practice session as seen by the presentation layer."""

    current_word: str
    transcript: Optional[str] = None
    score: Optional[int] = None
    feedback: Optional[FeedbackCategory] = None
    capture_status: CaptureStatus = CaptureStatus.IDLE

    @property
    def is_listening(self) -> bool:
        return self.capture_status == CaptureStatus.LISTENING

    @property
    def has_result(self) -> bool:
        return self.score is not None
