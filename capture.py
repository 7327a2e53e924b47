"""Single-attempt speech capture state machine."""

from __future__ import annotations

import functools
import logging
import threading
from queue import Queue
from typing import Callable, Optional

from errors import (
    ASR_PROTOCOL_ERROR,
    AUDIO_DEVICE_ERROR,
    CAPABILITY_UNAVAILABLE,
    PERMISSION_DENIED,
    CapabilityUnavailable,
    message_for,
)
from interfaces import Recorder, RecognizerAdapter
from models import (
    AudioFrame,
    CaptureEvent,
    CaptureEventKind,
    CaptureStatus,
    RecognitionEvent,
    RecognitionKind,
)

logger = logging.getLogger(__name__)

CaptureCallback = Callable[[CaptureEvent], None]


def microphone_error_code(exc: Exception) -> str:
    """PortAudio reports denied access and busy devices only in the message."""
    low = str(exc).lower()
    if isinstance(exc, PermissionError) or "permission" in low or "not authorized" in low:
        return PERMISSION_DENIED
    return AUDIO_DEVICE_ERROR


class SpeechCaptureSession:
    """Drives one recognition attempt at a time: IDLE -> LISTENING -> IDLE.

    Every ``start()`` gets a fresh attempt id.  Engine events are bound to the
    attempt that created them, and only the first result or error of the
    current attempt is forwarded; anything else is dropped.  ``stop()`` ends
    the utterance but lets the engine resolve what was already captured.
    """

    def __init__(
        self,
        recorder: Recorder,
        recognizer: RecognizerAdapter,
        available: bool = True,
        locale: str = "en-US",
        queue_maxsize: int = 200,
        on_event: Optional[CaptureCallback] = None,
    ) -> None:
        self._recorder = recorder
        self._recognizer = recognizer
        self._available = available
        self.locale = locale
        self._queue_maxsize = queue_maxsize
        self._on_event = on_event

        self._lock = threading.RLock()
        self._status = CaptureStatus.IDLE
        self._attempt_id = 0
        self._resolved = True
        self._closed = False

    @property
    def status(self) -> CaptureStatus:
        return self._status

    @property
    def attempt_id(self) -> int:
        return self._attempt_id

    @property
    def available(self) -> bool:
        return self._available

    def set_listener(self, on_event: CaptureCallback) -> None:
        self._on_event = on_event

    def start(self) -> bool:
        with self._lock:
            if self._status == CaptureStatus.LISTENING:
                return False
            if self._closed:
                logger.debug("start() ignored on closed capture session")
                return False

            self._attempt_id += 1
            attempt_id = self._attempt_id
            if not self._available:
                logger.warning("Speech recognition unavailable, capture not started")
                self._emit(
                    CaptureEvent(
                        kind=CaptureEventKind.ERROR,
                        attempt_id=attempt_id,
                        code=CAPABILITY_UNAVAILABLE,
                        message=message_for(CAPABILITY_UNAVAILABLE),
                    )
                )
                return False

            # A previous attempt's recognizer may still be draining after stop().
            self._safe_stop_recognizer()
            audio_queue: Queue[AudioFrame | None] = Queue(maxsize=self._queue_maxsize)
            self._resolved = False
            self._status = CaptureStatus.LISTENING
            try:
                self._recognizer.start(
                    audio_queue,
                    functools.partial(self._handle_recognition_event, attempt_id),
                )
            except Exception as exc:
                self._abort(attempt_id, ASR_PROTOCOL_ERROR, f"recognizer start failed: {exc}")
                return False
            try:
                self._recorder.start(audio_queue)
            except CapabilityUnavailable as exc:
                self._abort(attempt_id, CAPABILITY_UNAVAILABLE, str(exc))
                return False
            except Exception as exc:
                self._abort(attempt_id, microphone_error_code(exc), f"microphone start failed: {exc}")
                return False
            logger.info("Listening (attempt %d, locale %s)", attempt_id, self.locale)
            return True

    def stop(self) -> None:
        with self._lock:
            if self._status != CaptureStatus.LISTENING:
                return
            self._status = CaptureStatus.IDLE
            self._safe_stop_recorder()
            logger.info("Capture stopped (attempt %d), awaiting engine resolution", self._attempt_id)

    def close(self) -> None:
        """Release the microphone and engine; nothing is delivered afterwards."""
        with self._lock:
            if self._closed:
                return
            self._closed = True
            self._resolved = True
            self._status = CaptureStatus.IDLE
            self._safe_stop_recorder()
            self._safe_stop_recognizer()

    def _abort(self, attempt_id: int, code: str, message: str) -> None:
        logger.error("Capture attempt %d failed to start: %s", attempt_id, message)
        self._resolved = True
        self._status = CaptureStatus.IDLE
        self._safe_stop_recorder()
        self._safe_stop_recognizer()
        self._emit(
            CaptureEvent(
                kind=CaptureEventKind.ERROR,
                attempt_id=attempt_id,
                code=code,
                message=message,
            )
        )

    def _handle_recognition_event(self, attempt_id: int, event: RecognitionEvent) -> None:
        # Called on the engine's thread; the listener runs outside our lock.
        with self._lock:
            outgoing = self._resolve(attempt_id, event)
        if outgoing is not None:
            self._emit(outgoing)

    def _resolve(self, attempt_id: int, event: RecognitionEvent) -> Optional[CaptureEvent]:
        if attempt_id != self._attempt_id or self._resolved:
            logger.debug("Dropping %s event from stale attempt %d", event.kind, attempt_id)
            return None

        text = event.text.strip().lower()
        if event.kind == RecognitionKind.PARTIAL.value:
            if self._status != CaptureStatus.LISTENING:
                return None
            return CaptureEvent(kind=CaptureEventKind.PARTIAL, attempt_id=attempt_id, text=text)

        self._resolved = True
        self._status = CaptureStatus.IDLE
        self._safe_stop_recorder()
        if event.kind == RecognitionKind.FINAL.value:
            return CaptureEvent(kind=CaptureEventKind.RESULT, attempt_id=attempt_id, text=text)

        code = event.code or ASR_PROTOCOL_ERROR
        logger.info("Recognition error on attempt %d: %s %s", attempt_id, code, event.message)
        return CaptureEvent(
            kind=CaptureEventKind.ERROR,
            attempt_id=attempt_id,
            code=code,
            message=event.message or message_for(code),
        )

    def _emit(self, event: CaptureEvent) -> None:
        if self._on_event:
            self._on_event(event)

    def _safe_stop_recorder(self) -> None:
        try:
            self._recorder.stop()
        except Exception:
            logger.exception("Failed to stop recorder")

    def _safe_stop_recognizer(self) -> None:
        try:
            self._recognizer.stop()
        except Exception:
            logger.exception("Failed to stop recognizer")
