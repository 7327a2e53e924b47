"""Application entrypoint."""

from __future__ import annotations

import logging
import os
import sys

from announcer import SpeechAnnouncer
from capabilities import detect_capabilities
from capture import SpeechCaptureSession
from config import JsonConfigStore
from errors import message_for
from models import SessionState
from practice_window import PracticeWindow
from recognizer import DashscopeRecognizerAdapter
from recorder import SoundDeviceRecorder
from scorer import SimilarityScorer
from session_controller import PracticeSessionController
from word_bank import WordBank

try:
    from PySide6.QtCore import QObject, Signal
    from PySide6.QtWidgets import QApplication, QInputDialog, QMessageBox
except Exception as exc:  # pragma: no cover
    raise SystemExit(f"PySide6 is required to run the desktop app: {exc}")

logger = logging.getLogger(__name__)


class UIBridge(QObject):
    state_signal = Signal(object)
    partial_signal = Signal(str)
    error_signal = Signal(str, str)  # code, message


class App:
    def __init__(self) -> None:
        self.app = QApplication(sys.argv)
        self.config_store = JsonConfigStore()
        self.window = PracticeWindow()
        self.ui = UIBridge()
        self.ui.state_signal.connect(self.window.render)
        self.ui.partial_signal.connect(self.window.show_partial)
        self.ui.error_signal.connect(self._on_error_ui)

        api_key = self.config_store.get_api_key() or self._prompt_api_key()
        locale = self.config_store.get_locale()
        self.capabilities = detect_capabilities(api_key)

        self.controller = PracticeSessionController(
            word_bank=WordBank(),
            capture=SpeechCaptureSession(
                recorder=SoundDeviceRecorder(),
                recognizer=DashscopeRecognizerAdapter(api_key=api_key, locale=locale),
                available=self.capabilities.recognition,
                locale=locale,
            ),
            scorer=SimilarityScorer(),
            announcer=SpeechAnnouncer(
                available=self.capabilities.synthesis,
                locale=locale,
                rate=self.config_store.get_speech_rate(),
            ),
            on_state_change=self._on_state_change,
            on_partial=self._on_partial,
            on_error=self._on_error,
        )

        self.window.speak_requested.connect(self.controller.announce_current_word)
        self.window.capture_toggled.connect(self.controller.toggle_capture)
        self.window.next_word_requested.connect(self.controller.start_new_round)
        self.window.set_capabilities(self.capabilities.recognition, self.capabilities.synthesis)
        self.window.render(self.controller.state)
        self.app.aboutToQuit.connect(self.controller.close)

    def _prompt_api_key(self) -> str:
        value, ok = QInputDialog.getText(None, "API Key", "DashScope API Key (leave empty to skip)")
        if not ok or not value:
            return ""
        self.config_store.set_api_key(value)
        QMessageBox.information(None, "Saved", "API Key saved.")
        return value

    # ------------------------------------------------------------------
    # Callbacks (may run on worker threads -> emit signals for UI thread)
    # ------------------------------------------------------------------

    def _on_state_change(self, state: SessionState) -> None:
        self.ui.state_signal.emit(state)

    def _on_partial(self, text: str) -> None:
        self.ui.partial_signal.emit(text)

    def _on_error(self, code: str, message: str) -> None:
        self.ui.error_signal.emit(code, message)

    def _on_error_ui(self, code: str, message: str) -> None:
        self.window.show_status(f"⚠️ {message_for(code)}")
        logger.debug("Error detail %s: %s", code, message)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def run(self) -> int:
        self.window.show()
        if not self.capabilities.recognition:
            self.window.show_status("; ".join(self.capabilities.reasons), hide_after_ms=0)
        return self.app.exec()


def main() -> int:
    logging.basicConfig(
        level=os.getenv("PRONUNCIATION_TRAINER_LOG_LEVEL", "INFO").upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    app = App()
    return app.run()


if __name__ == "__main__":
    raise SystemExit(main())
