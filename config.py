"""Simple JSON-based config store."""

from __future__ import annotations

import json
import logging
import os
from pathlib import Path

logger = logging.getLogger(__name__)

DEFAULT_LOCALE = "en-US"
DEFAULT_SPEECH_RATE = 150


class JsonConfigStore:
    def __init__(self, path: Path | None = None) -> None:
        self._path = path or Path.home() / ".config" / "pronunciation_trainer" / "config.json"
        self._path.parent.mkdir(parents=True, exist_ok=True)

    def get_api_key(self) -> str:
        data = self._read_all()
        return str(data.get("api_key", "")) or os.getenv("DASHSCOPE_API_KEY", "")

    def set_api_key(self, key: str) -> None:
        self._update(api_key=key)

    def get_locale(self) -> str:
        data = self._read_all()
        return str(data.get("locale", DEFAULT_LOCALE)) or DEFAULT_LOCALE

    def set_locale(self, locale: str) -> None:
        self._update(locale=locale)

    def get_speech_rate(self) -> int:
        data = self._read_all()
        try:
            return int(data.get("speech_rate", DEFAULT_SPEECH_RATE))
        except (TypeError, ValueError):
            return DEFAULT_SPEECH_RATE

    def set_speech_rate(self, rate: int) -> None:
        self._update(speech_rate=int(rate))

    def _update(self, **values: object) -> None:
        data = self._read_all()
        data.update(values)
        self._write_all(data)

    def _read_all(self) -> dict:
        if not self._path.exists():
            return {}
        try:
            data = json.loads(self._path.read_text(encoding="utf-8"))
        except (json.JSONDecodeError, OSError) as exc:
            logger.warning("Ignoring unreadable config %s: %s", self._path, exc)
            return {}
        return data if isinstance(data, dict) else {}

    def _write_all(self, data: dict) -> None:
        self._path.write_text(json.dumps(data, ensure_ascii=False, indent=2), encoding="utf-8")
