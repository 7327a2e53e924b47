"""Microphone recorder adapter with single-utterance endpointing.

Frames are only forwarded once speech has started (with a short pre-roll),
and the utterance is closed with a ``None`` sentinel after trailing silence,
when no speech shows up in time, or when the utterance runs too long.
"""

from __future__ import annotations

import logging
import threading
import time
from collections import deque
from queue import Full, Queue
from typing import Any

from errors import CapabilityUnavailable
from models import AudioFrame

logger = logging.getLogger(__name__)

try:
    import numpy as np
except Exception:  # pragma: no cover
    np = None  # type: ignore

try:
    import sounddevice as sd
except Exception:  # pragma: no cover
    sd = None  # type: ignore


def frame_rms(indata: Any) -> float:
    samples = np.asarray(indata, dtype=np.float64)
    if samples.size == 0:
        return 0.0
    return float(np.sqrt(np.mean(np.square(samples))))


class SoundDeviceRecorder:
    def __init__(
        self,
        sample_rate: int = 16000,
        channels: int = 1,
        chunk_ms: int = 100,
        speech_threshold: float = 500.0,
        end_silence_ms: int = 800,
        no_speech_timeout_ms: int = 5000,
        max_utterance_ms: int = 8000,
        preroll_chunks: int = 3,
    ) -> None:
        self.sample_rate = sample_rate
        self.channels = channels
        self.chunk_ms = chunk_ms
        self.speech_threshold = speech_threshold
        self.end_silence_ms = end_silence_ms
        self.no_speech_timeout_ms = no_speech_timeout_ms
        self.max_utterance_ms = max_utterance_ms
        self._stream: Any = None
        self._running = False
        self._lock = threading.Lock()
        self.dropped_chunks = 0
        self._audio_queue: Queue[AudioFrame | None] | None = None
        self._preroll: deque[AudioFrame] = deque(maxlen=preroll_chunks)
        self._speech_started = False
        self._utterance_done = False
        self._elapsed_ms = 0
        self._silence_ms = 0

    def start(self, audio_queue: Queue[AudioFrame | None]) -> None:
        with self._lock:
            if self._running:
                return
            if sd is None or np is None:
                raise CapabilityUnavailable("sounddevice/numpy is not installed")
            self._audio_queue = audio_queue
            self._reset_endpointing()
            blocksize = int(self.sample_rate * (self.chunk_ms / 1000.0))
            self._stream = sd.InputStream(
                samplerate=self.sample_rate,
                channels=self.channels,
                dtype="int16",
                blocksize=blocksize,
                callback=self._on_audio,
            )
            self._stream.start()
            self._running = True
            logger.debug("Microphone stream opened at %d Hz", self.sample_rate)

    def stop(self) -> None:
        with self._lock:
            if not self._running:
                return
            self._running = False
            if self._stream is not None:
                self._stream.stop()
                self._stream.close()
                self._stream = None
            self._finish_utterance()
            logger.debug("Microphone stream closed")

    def _reset_endpointing(self) -> None:
        self._preroll.clear()
        self._speech_started = False
        self._utterance_done = False
        self._elapsed_ms = 0
        self._silence_ms = 0

    def _on_audio(self, indata: Any, frames: int, time_info: Any, status: Any) -> None:
        if not self._running or self._utterance_done or self._audio_queue is None:
            return
        frame = AudioFrame(
            pcm16_bytes=np.asarray(indata, dtype=np.int16).tobytes(),
            sample_rate=self.sample_rate,
            channels=self.channels,
            timestamp_ms=int(time.time() * 1000),
        )
        chunk_ms = int(frames * 1000 / self.sample_rate)
        self._elapsed_ms += chunk_ms
        loud = frame_rms(indata) >= self.speech_threshold

        if not self._speech_started:
            if loud:
                self._speech_started = True
                while self._preroll:
                    self._put(self._preroll.popleft())
                self._put(frame)
            else:
                self._preroll.append(frame)
                if self._elapsed_ms >= self.no_speech_timeout_ms:
                    logger.debug("No speech within %d ms", self.no_speech_timeout_ms)
                    self._finish_utterance()
            return

        self._put(frame)
        self._silence_ms = 0 if loud else self._silence_ms + chunk_ms
        if self._silence_ms >= self.end_silence_ms or self._elapsed_ms >= self.max_utterance_ms:
            self._finish_utterance()

    def _put(self, frame: AudioFrame) -> None:
        try:
            self._audio_queue.put_nowait(frame)  # type: ignore[union-attr]
        except Full:
            self.dropped_chunks += 1

    def _finish_utterance(self) -> None:
        if self._utterance_done or self._audio_queue is None:
            return
        self._utterance_done = True
        try:
            self._audio_queue.put_nowait(None)
        except Full:
            logger.warning("Audio queue full, end-of-utterance sentinel dropped")
