"""Shared error codes and user-facing messages."""

from __future__ import annotations

CAPABILITY_UNAVAILABLE = "CAPABILITY_UNAVAILABLE"
NO_SPEECH = "NO_SPEECH"
PERMISSION_DENIED = "PERMISSION_DENIED"
NETWORK_ERROR = "NETWORK_ERROR"
AUTH_FAILED = "AUTH_FAILED"
ASR_PROTOCOL_ERROR = "ASR_PROTOCOL_ERROR"
AUDIO_DEVICE_ERROR = "AUDIO_DEVICE_ERROR"

ERROR_MESSAGES = {
    CAPABILITY_UNAVAILABLE: "Speech recognition is not available on this system.",
    NO_SPEECH: "No speech was detected, please try again.",
    PERMISSION_DENIED: "Microphone permission is required in system settings.",
    NETWORK_ERROR: "Network failed, please retry.",
    AUTH_FAILED: "API key is invalid.",
    ASR_PROTOCOL_ERROR: "Recognition response format is invalid.",
    AUDIO_DEVICE_ERROR: "Microphone could not be opened, check that it is connected and free.",
}


class CapabilityUnavailable(RuntimeError):
    """A host speech capability (recognition or synthesis) is missing."""


def message_for(code: str) -> str:
    return ERROR_MESSAGES.get(code, code)
