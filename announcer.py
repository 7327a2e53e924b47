"""Text-to-speech announcer based on pyttsx3."""

from __future__ import annotations

import logging
import threading
from queue import Queue
from typing import Any, Optional

logger = logging.getLogger(__name__)

try:
    import pyttsx3
except Exception:  # pragma: no cover
    pyttsx3 = None  # type: ignore


def _voice_matches(voice: Any, locale: str) -> bool:
    wanted = locale.replace("-", "_").lower()
    language = wanted.split("_")[0]
    for lang in getattr(voice, "languages", None) or []:
        if isinstance(lang, bytes):
            lang = lang.decode("utf-8", errors="ignore")
        tag = str(lang).strip("\x05\x00").replace("-", "_").lower()
        if tag == wanted or tag.startswith(language):
            return True
    ident = f"{getattr(voice, 'id', '')} {getattr(voice, 'name', '')}".lower()
    return wanted in ident.replace("-", "_")


class SpeechAnnouncer:
    """Speaks words aloud on a worker thread that owns the pyttsx3 engine.

    ``speak`` only enqueues; it never blocks and never raises.
    """

    def __init__(
        self,
        available: bool = True,
        locale: str = "en-US",
        rate: int = 150,
        volume: float = 0.9,
    ) -> None:
        self._available = available and pyttsx3 is not None
        self.locale = locale
        self.rate = rate
        self.volume = volume
        self._queue: Queue[str | None] = Queue()
        self._thread: Optional[threading.Thread] = None
        self._lock = threading.Lock()

    @property
    def available(self) -> bool:
        return self._available

    def speak(self, word: str) -> None:
        if not self._available:
            logger.info("Speech synthesis unavailable, not speaking %r", word)
            return
        if not word:
            return
        with self._lock:
            if self._thread is None or not self._thread.is_alive():
                self._thread = threading.Thread(target=self._worker, daemon=True)
                self._thread.start()
            self._queue.put(word)

    def close(self) -> None:
        with self._lock:
            thread = self._thread
            self._thread = None
        if thread is not None and thread.is_alive():
            self._queue.put(None)
            thread.join(timeout=1.0)

    def _worker(self) -> None:
        try:
            engine = self._create_engine()
        except Exception:
            logger.exception("Could not initialise speech synthesis, disabling it")
            self._available = False
            return

        while True:
            word = self._queue.get()
            if word is None:
                break
            try:
                engine.say(word)
                engine.runAndWait()
            except Exception:
                logger.exception("Speech synthesis failed for %r", word)

    def _create_engine(self) -> Any:
        engine = pyttsx3.init()
        engine.setProperty("rate", self.rate)
        engine.setProperty("volume", self.volume)
        for voice in engine.getProperty("voices") or []:
            if _voice_matches(voice, self.locale):
                engine.setProperty("voice", voice.id)
                break
        else:
            logger.debug("No %s voice found, using engine default", self.locale)
        return engine
