"""Practice session orchestration."""

from __future__ import annotations

import dataclasses
import logging
import threading
from typing import Callable, Optional

from interfaces import Announcer, CaptureSession, Scorer, WordSource
from models import CaptureEvent, CaptureEventKind, CaptureStatus, ScoreResult, SessionState

logger = logging.getLogger(__name__)

StateCallback = Callable[[SessionState], None]
PartialCallback = Callable[[str], None]
ErrorCallback = Callable[[str, str], None]


class PracticeSessionController:
    def __init__(
        self,
        word_bank: WordSource,
        capture: CaptureSession,
        scorer: Scorer,
        announcer: Announcer,
        on_state_change: Optional[StateCallback] = None,
        on_partial: Optional[PartialCallback] = None,
        on_error: Optional[ErrorCallback] = None,
    ) -> None:
        self._word_bank = word_bank
        self._capture = capture
        self._scorer = scorer
        self._announcer = announcer
        self._on_state_change = on_state_change
        self._on_partial = on_partial
        self._on_error = on_error

        self._lock = threading.RLock()
        self._round_attempt: Optional[int] = None
        self._last_result: Optional[ScoreResult] = None
        self._state = SessionState(current_word=word_bank.pick_random_word())
        self._capture.set_listener(self._handle_capture_event)

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def last_result(self) -> Optional[ScoreResult]:
        return self._last_result

    def start_new_round(self) -> None:
        with self._lock:
            if self._state.capture_status == CaptureStatus.LISTENING:
                self._capture.stop()
            self._round_attempt = None
            self._last_result = None
            word = self._word_bank.pick_random_word()
            logger.info("New round: %s", word)
            self._publish(SessionState(current_word=word, capture_status=self._capture.status))

    def toggle_capture(self) -> None:
        with self._lock:
            if self._state.capture_status == CaptureStatus.LISTENING:
                self._capture.stop()
                self._publish(dataclasses.replace(self._state, capture_status=self._capture.status))
                return

            if not self._capture.start():
                self._publish(dataclasses.replace(self._state, capture_status=self._capture.status))
                return
            self._round_attempt = self._capture.attempt_id
            self._last_result = None
            self._publish(
                dataclasses.replace(
                    self._state,
                    transcript=None,
                    score=None,
                    feedback=None,
                    capture_status=CaptureStatus.LISTENING,
                )
            )

    def announce_current_word(self) -> None:
        self._announcer.speak(self._state.current_word)

    def close(self) -> None:
        with self._lock:
            self._round_attempt = None
            self._capture.close()
            self._announcer.close()
            self._publish(dataclasses.replace(self._state, capture_status=CaptureStatus.IDLE))

    def _handle_capture_event(self, event: CaptureEvent) -> None:
        with self._lock:
            if event.kind == CaptureEventKind.ERROR:
                if event.attempt_id != self._capture.attempt_id:
                    logger.debug("Ignoring error %s from superseded attempt %d", event.code, event.attempt_id)
                    return
                logger.info("Capture error %s: %s", event.code, event.message)
                if event.attempt_id == self._round_attempt:
                    self._round_attempt = None
                self._publish(dataclasses.replace(self._state, capture_status=self._capture.status))
                if self._on_error:
                    self._on_error(event.code, event.message)
                return

            if event.attempt_id != self._round_attempt:
                logger.debug("Ignoring %s for attempt %d outside this round", event.kind.value, event.attempt_id)
                return

            if event.kind == CaptureEventKind.PARTIAL:
                if self._on_partial:
                    self._on_partial(event.text)
                return

            result = self._scorer.score(self._state.current_word, event.text)
            self._last_result = result
            self._round_attempt = None
            logger.info(
                "Scored %r against %r: %d (%s)",
                event.text,
                self._state.current_word,
                result.score,
                result.feedback.value,
            )
            self._publish(
                dataclasses.replace(
                    self._state,
                    transcript=event.text,
                    score=result.score,
                    feedback=result.feedback,
                    capture_status=self._capture.status,
                )
            )

    def _publish(self, state: SessionState) -> None:
        if state == self._state:
            return
        self._state = state
        if self._on_state_change:
            self._on_state_change(state)
