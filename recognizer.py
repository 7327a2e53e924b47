"""Speech recognizer adapter using DashScope qwen3-asr-flash.

One utterance per ``start()``: PCM frames are collected from the audio queue
until the recorder's ``None`` sentinel, wrapped as a base64 WAV, and sent to
the model with ``stream=True``.  Partial transcripts flow through
``on_event`` as they arrive, followed by exactly one final or error event.
An utterance without any audio resolves as ``NO_SPEECH``.
"""

from __future__ import annotations

import base64
import io
import logging
import os
import threading
import wave
from queue import Empty, Queue
from typing import Callable, Optional

from errors import (
    ASR_PROTOCOL_ERROR,
    AUTH_FAILED,
    CAPABILITY_UNAVAILABLE,
    NETWORK_ERROR,
    NO_SPEECH,
    PERMISSION_DENIED,
)
from models import AudioFrame, RecognitionEvent, RecognitionKind

logger = logging.getLogger(__name__)

try:
    import dashscope
except Exception:  # pragma: no cover
    dashscope = None  # type: ignore


def _pcm_to_wav_base64(
    pcm: bytes,
    sample_rate: int = 16000,
    channels: int = 1,
    sample_width: int = 2,
) -> str:
    """Convert raw PCM bytes to a base64-encoded WAV string."""
    buf = io.BytesIO()
    with wave.open(buf, "wb") as wf:
        wf.setnchannels(channels)
        wf.setsampwidth(sample_width)
        wf.setframerate(sample_rate)
        wf.writeframes(pcm)
    return base64.b64encode(buf.getvalue()).decode("ascii")


def language_for_locale(locale: str) -> str:
    """``en-US`` -> ``en``; the model takes bare language codes."""
    return locale.replace("_", "-").split("-")[0].lower() or "en"


# First match wins; anything unrecognised is a retryable protocol error.
_ERROR_MARKERS = (
    (AUTH_FAILED, False, ("401", "auth", "api key")),
    (PERMISSION_DENIED, False, ("403", "permission")),
    (NETWORK_ERROR, True, ("timeout", "network", "connection")),
)


def transcript_of(chunk: object) -> str:
    """Text of the first content item in a ``result_format="message"`` chunk."""
    if not isinstance(chunk, dict):
        return ""
    choices = (chunk.get("output") or {}).get("choices") or [{}]
    content = (choices[0].get("message") or {}).get("content") or [{}]
    first = content[0]
    return str(first.get("text") or "") if isinstance(first, dict) else ""


def chunk_failure(chunk: object) -> Optional[str]:
    """Streamed responses report server-side failures in-band via ``status_code``."""
    if not isinstance(chunk, dict):
        return None
    status = chunk.get("status_code")
    if status is None or status == 200:
        return None
    return f"{status} {chunk.get('code') or ''}: {chunk.get('message') or ''}"


def recognition_error(message: str) -> RecognitionEvent:
    low = message.lower()
    code, retryable = ASR_PROTOCOL_ERROR, True
    for candidate, can_retry, markers in _ERROR_MARKERS:
        if any(marker in low for marker in markers):
            code, retryable = candidate, can_retry
            break
    logger.warning("Recognition failed (%s): %s", code, message)
    return RecognitionEvent(
        kind=RecognitionKind.ERROR.value,
        code=code,
        message=message,
        retryable=retryable,
    )


class DashscopeRecognizerAdapter:
    def __init__(
        self,
        api_key: str,
        model: str = "qwen3-asr-flash",
        locale: str = "en-US",
        request_timeout_s: float = 10.0,
    ) -> None:
        self._api_key = api_key
        self._model = model
        self._language = language_for_locale(locale)
        self._request_timeout_s = request_timeout_s
        self._thread: Optional[threading.Thread] = None
        self._stop_event = threading.Event()

    def start(
        self,
        audio_queue: Queue[AudioFrame | None],
        on_event: Callable[[RecognitionEvent], None],
    ) -> None:
        if self._thread and self._thread.is_alive() and not self._stop_event.is_set():
            return
        # A previous worker may still be draining; it keeps its own stop event.
        self._stop_event = threading.Event()
        self._thread = threading.Thread(
            target=self._worker,
            args=(audio_queue, on_event, self._stop_event),
            daemon=True,
        )
        self._thread.start()

    def stop(self) -> None:
        self._stop_event.set()
        if self._thread and self._thread.is_alive():
            self._thread.join(timeout=0.5)

    # ------------------------------------------------------------------
    # Internal
    # ------------------------------------------------------------------

    def _worker(
        self,
        audio_queue: Queue[AudioFrame | None],
        on_event: Callable[[RecognitionEvent], None],
        stop_event: threading.Event,
    ) -> None:
        """Consume audio frames until the sentinel, then recognise."""
        pcm = bytearray()
        sample_rate = 16000
        channels = 1

        while not stop_event.is_set():
            try:
                frame = audio_queue.get(timeout=0.2)
            except Empty:
                continue
            if frame is None:
                break
            pcm.extend(frame.pcm16_bytes)
            sample_rate = frame.sample_rate
            channels = frame.channels

        if stop_event.is_set():
            return

        if not pcm:
            on_event(
                RecognitionEvent(
                    kind=RecognitionKind.ERROR.value,
                    code=NO_SPEECH,
                    message="no speech captured",
                    retryable=True,
                )
            )
            return

        wav_b64 = _pcm_to_wav_base64(bytes(pcm), sample_rate, channels)
        self._recognize_stream(wav_b64, on_event, stop_event)

    def _recognize_stream(
        self,
        wav_base64: str,
        on_event: Callable[[RecognitionEvent], None],
        stop_event: threading.Event,
    ) -> None:
        """Send audio to dashscope and stream partial/final results."""
        if dashscope is None:
            on_event(
                RecognitionEvent(
                    kind=RecognitionKind.ERROR.value,
                    code=CAPABILITY_UNAVAILABLE,
                    message="dashscope is not installed",
                )
            )
            return

        api_key = self._api_key or os.getenv("DASHSCOPE_API_KEY", "")
        if not api_key:
            on_event(
                RecognitionEvent(
                    kind=RecognitionKind.ERROR.value,
                    code=AUTH_FAILED,
                    message="No API key configured",
                )
            )
            return

        try:
            response = dashscope.MultiModalConversation.call(
                api_key=api_key,
                model=self._model,
                messages=[
                    {"role": "system", "content": [{"text": ""}]},
                    {"role": "user", "content": [{"audio": wav_base64}]},
                ],
                result_format="message",
                asr_options={"language": self._language, "enable_itn": False},
                stream=True,
                timeout=self._request_timeout_s,
            )
        except Exception as exc:
            on_event(recognition_error(str(exc)))
            return

        latest_text = ""
        try:
            for chunk in response:
                if stop_event.is_set():
                    return
                failure = chunk_failure(chunk)
                if failure:
                    on_event(recognition_error(failure))
                    return
                text = transcript_of(chunk)
                if text:
                    latest_text = text
                    on_event(RecognitionEvent(kind=RecognitionKind.PARTIAL.value, text=text))
        except Exception as exc:
            on_event(recognition_error(str(exc)))
            return

        if stop_event.is_set():
            return
        on_event(RecognitionEvent(kind=RecognitionKind.FINAL.value, text=latest_text))

