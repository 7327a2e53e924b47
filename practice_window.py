"""Main practice window: target word, controls, and the last result."""

from __future__ import annotations

import colorsys
from typing import Optional

from models import SessionState

try:
    from PySide6.QtCore import Qt, QTimer, Signal
    from PySide6.QtWidgets import QHBoxLayout, QLabel, QPushButton, QVBoxLayout, QWidget
except Exception:  # pragma: no cover
    Qt = None  # type: ignore
    QTimer = None  # type: ignore
    Signal = lambda *args: None  # type: ignore  # noqa: E731
    QHBoxLayout = object  # type: ignore
    QLabel = object  # type: ignore
    QPushButton = object  # type: ignore
    QVBoxLayout = object  # type: ignore
    QWidget = object  # type: ignore


LISTENING_TEXT = "Listening..."


def score_color(score: int) -> str:
    """Red-to-green hue for a 0-100 score."""
    hue = max(0, min(100, score)) / 360.0
    r, g, b = colorsys.hls_to_rgb(hue, 0.4, 1.0)
    return f"#{round(r * 255):02x}{round(g * 255):02x}{round(b * 255):02x}"


class PracticeWindow(QWidget):
    speak_requested = Signal()
    capture_toggled = Signal()
    next_word_requested = Signal()

    def __init__(self) -> None:
        if Qt is None:
            raise RuntimeError("PySide6 is not installed")
        super().__init__()
        self.setWindowTitle("Pronunciation Trainer")
        self.setMinimumWidth(420)

        self._word_label = QLabel("")
        self._word_label.setAlignment(Qt.AlignCenter)
        self._word_label.setStyleSheet("font-size: 36px; font-weight: bold; color: #2563eb;")

        self._speak_button = QPushButton("🔊 Listen")
        self._speak_button.clicked.connect(self.speak_requested.emit)
        self._mic_button = QPushButton("🎙️ Speak")
        self._mic_button.clicked.connect(self.capture_toggled.emit)
        self._next_button = QPushButton("Next word")
        self._next_button.clicked.connect(self.next_word_requested.emit)

        self._transcript_label = QLabel("")
        self._transcript_label.setAlignment(Qt.AlignCenter)
        self._score_label = QLabel("")
        self._score_label.setAlignment(Qt.AlignCenter)
        self._feedback_label = QLabel("")
        self._feedback_label.setAlignment(Qt.AlignCenter)
        self._status_label = QLabel("")
        self._status_label.setAlignment(Qt.AlignCenter)
        self._status_label.setStyleSheet("color: #b45309;")

        buttons = QHBoxLayout()
        buttons.addWidget(self._speak_button)
        buttons.addWidget(self._mic_button)

        layout = QVBoxLayout()
        layout.addWidget(QLabel("Pronounce this word:"))
        layout.addWidget(self._word_label)
        layout.addLayout(buttons)
        layout.addWidget(self._transcript_label)
        layout.addWidget(self._score_label)
        layout.addWidget(self._feedback_label)
        layout.addWidget(self._status_label)
        layout.addWidget(self._next_button)
        self.setLayout(layout)

        self._status_timer: Optional[QTimer] = None

    def render(self, state: SessionState) -> None:
        self._word_label.setText(state.current_word)
        listening = state.is_listening
        self._mic_button.setText("⏹ Stop" if listening else "🎙️ Speak")
        self._mic_button.setStyleSheet("background: #ef4444; color: white;" if listening else "")
        if listening:
            self.show_status(LISTENING_TEXT, hide_after_ms=0)
        elif self._status_label.text() == LISTENING_TEXT:
            self._cancel_status_timer()
            self._status_label.setText("")

        self._transcript_label.setText(
            f"You said: {state.transcript}" if state.transcript is not None else ""
        )
        if state.has_result and state.feedback is not None:
            self._score_label.setText(f"{state.score}%")
            self._score_label.setStyleSheet(
                f"font-size: 28px; font-weight: bold; color: {score_color(state.score)};"
            )
            self._feedback_label.setText(state.feedback.message)
        else:
            self._score_label.setText("")
            self._feedback_label.setText("")

    def show_partial(self, text: str) -> None:
        self._transcript_label.setText(f"… {text}")

    def show_status(self, text: str, hide_after_ms: int = 2500) -> None:
        self._cancel_status_timer()
        self._status_label.setText(text)
        if hide_after_ms > 0 and QTimer is not None:
            self._status_timer = QTimer()
            self._status_timer.setSingleShot(True)
            self._status_timer.timeout.connect(lambda: self._status_label.setText(""))
            self._status_timer.start(hide_after_ms)

    def set_capabilities(self, recognition: bool, synthesis: bool) -> None:
        self._mic_button.setEnabled(recognition)
        self._speak_button.setEnabled(synthesis)
        if not recognition:
            self._mic_button.setToolTip("Speech recognition is not available")
        if not synthesis:
            self._speak_button.setToolTip("Speech synthesis is not available")

    def _cancel_status_timer(self) -> None:
        if self._status_timer is not None:
            self._status_timer.stop()
            self._status_timer = None
