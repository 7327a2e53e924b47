"""Protocol interfaces used by the capture session and the controller."""

from __future__ import annotations

from queue import Queue
from typing import Callable, Protocol

from models import AudioFrame, CaptureEvent, CaptureStatus, RecognitionEvent, ScoreResult


class Recorder(Protocol):
    def start(self, audio_queue: Queue[AudioFrame | None]) -> None: ...

    def stop(self) -> None: ...


class RecognizerAdapter(Protocol):
    def start(
        self,
        audio_queue: Queue[AudioFrame | None],
        on_event: Callable[[RecognitionEvent], None],
    ) -> None: ...

    def stop(self) -> None: ...


class CaptureSession(Protocol):
    @property
    def status(self) -> CaptureStatus: ...

    @property
    def attempt_id(self) -> int: ...

    def start(self) -> bool: ...

    def stop(self) -> None: ...

    def close(self) -> None: ...

    def set_listener(self, on_event: Callable[[CaptureEvent], None]) -> None: ...


class Announcer(Protocol):
    def speak(self, word: str) -> None: ...

    def close(self) -> None: ...


class Scorer(Protocol):
    def score(self, target: str, attempt: str) -> ScoreResult: ...


class WordSource(Protocol):
    def pick_random_word(self) -> str: ...
