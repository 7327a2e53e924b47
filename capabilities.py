"""One-shot detection of the host's speech capabilities."""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field

import announcer
import recognizer
import recorder

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Capabilities:
    recognition: bool
    synthesis: bool
    reasons: tuple[str, ...] = field(default=())


def detect_capabilities(api_key: str = "") -> Capabilities:
    reasons: list[str] = []

    if recorder.sd is None:
        reasons.append("sounddevice is not installed")
    if recorder.np is None:
        reasons.append("numpy is not installed")
    if recognizer.dashscope is None:
        reasons.append("dashscope is not installed")
    if not (api_key or os.getenv("DASHSCOPE_API_KEY", "")):
        reasons.append("no DashScope API key configured")
    recognition = not reasons

    synthesis = announcer.pyttsx3 is not None
    if not synthesis:
        reasons.append("pyttsx3 is not installed")

    for reason in reasons:
        logger.warning("Capability check: %s", reason)
    return Capabilities(recognition=recognition, synthesis=synthesis, reasons=tuple(reasons))
