"""Tests for DashscopeRecognizerAdapter."""

from __future__ import annotations

import base64
import time
from queue import Queue
from unittest.mock import MagicMock, patch

from errors import (
    ASR_PROTOCOL_ERROR,
    AUTH_FAILED,
    CAPABILITY_UNAVAILABLE,
    NETWORK_ERROR,
    NO_SPEECH,
    PERMISSION_DENIED,
)
from models import AudioFrame, RecognitionEvent, RecognitionKind
from recognizer import (
    DashscopeRecognizerAdapter,
    _pcm_to_wav_base64,
    chunk_failure,
    language_for_locale,
    transcript_of,
)


# ---------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------

def _make_frame(n_samples: int = 1600) -> AudioFrame:
    return AudioFrame(
        pcm16_bytes=b"\x00\x00" * n_samples,
        sample_rate=16000,
        channels=1,
        timestamp_ms=0,
    )


def _utterance_queue() -> Queue[AudioFrame | None]:
    q: Queue[AudioFrame | None] = Queue()
    q.put(_make_frame())
    q.put(None)
    return q


def _wait_for_events(events: list, *, timeout: float = 3.0) -> None:
    deadline = time.time() + timeout
    while time.time() < deadline:
        if any(e.kind in (RecognitionKind.FINAL.value, RecognitionKind.ERROR.value) for e in events):
            return
        time.sleep(0.05)


def _run(adapter: DashscopeRecognizerAdapter, q: Queue) -> list[RecognitionEvent]:
    events: list[RecognitionEvent] = []
    adapter.start(q, events.append)
    _wait_for_events(events)
    adapter.stop()
    return events


def _chunk(text: str) -> dict:
    return {"output": {"choices": [{"message": {"content": [{"text": text}]}}]}}


# ---------------------------------------------------------------
# Helpers under test
# ---------------------------------------------------------------

def test_pcm_to_wav_base64_produces_wav() -> None:
    result = _pcm_to_wav_base64(b"\x00\x00" * 1600, sample_rate=16000, channels=1)
    decoded = base64.b64decode(result)
    assert decoded[:4] == b"RIFF"


def test_language_for_locale() -> None:
    assert language_for_locale("en-US") == "en"
    assert language_for_locale("en_GB") == "en"
    assert language_for_locale("") == "en"


def test_transcript_of_tolerates_sparse_chunks() -> None:
    assert transcript_of(_chunk("hi")) == "hi"
    assert transcript_of({"output": {"choices": []}}) == ""
    assert transcript_of({"output": None}) == ""
    assert transcript_of({"output": {"choices": [{"message": {"content": []}}]}}) == ""
    assert transcript_of("not a chunk") == ""


def test_chunk_failure_only_for_non_200_status() -> None:
    assert chunk_failure(_chunk("hi")) is None
    assert chunk_failure({**_chunk("hi"), "status_code": 200}) is None
    failure = chunk_failure({"status_code": 401, "code": "InvalidApiKey", "message": "Invalid API-key provided."})
    assert failure is not None
    assert failure.startswith("401 InvalidApiKey")


# ---------------------------------------------------------------
# Outcomes
# ---------------------------------------------------------------

def test_empty_utterance_emits_no_speech() -> None:
    q: Queue[AudioFrame | None] = Queue()
    q.put(None)

    events = _run(DashscopeRecognizerAdapter(api_key="test-key"), q)

    assert len(events) == 1
    assert events[0].kind == RecognitionKind.ERROR.value
    assert events[0].code == NO_SPEECH


@patch("recognizer.dashscope", MagicMock())
@patch.dict("os.environ", {"DASHSCOPE_API_KEY": ""}, clear=False)
def test_missing_api_key_emits_error() -> None:
    events = _run(DashscopeRecognizerAdapter(api_key=""), _utterance_queue())

    error = next(e for e in events if e.kind == RecognitionKind.ERROR.value)
    assert error.code == AUTH_FAILED


@patch("recognizer.dashscope")
def test_successful_streaming_emits_partials_and_final(mock_ds: MagicMock) -> None:
    mock_ds.MultiModalConversation.call.return_value = iter(
        [_chunk("Hel"), _chunk("Hello"), _chunk("Hello")]
    )

    events = _run(DashscopeRecognizerAdapter(api_key="test-key", locale="en-US"), _utterance_queue())

    partials = [e for e in events if e.kind == RecognitionKind.PARTIAL.value]
    finals = [e for e in events if e.kind == RecognitionKind.FINAL.value]
    assert [p.text for p in partials] == ["Hel", "Hello", "Hello"]
    assert len(finals) == 1
    assert finals[0].text == "Hello"

    kwargs = mock_ds.MultiModalConversation.call.call_args.kwargs
    assert kwargs["asr_options"]["language"] == "en"
    assert kwargs["stream"] is True


@patch("recognizer.dashscope")
def test_network_error_maps_correctly(mock_ds: MagicMock) -> None:
    mock_ds.MultiModalConversation.call.side_effect = ConnectionError("network timeout")

    events = _run(DashscopeRecognizerAdapter(api_key="test-key"), _utterance_queue())

    errors = [e for e in events if e.kind == RecognitionKind.ERROR.value]
    assert len(errors) == 1
    assert errors[0].code == NETWORK_ERROR
    assert errors[0].retryable is True


@patch("recognizer.dashscope")
def test_auth_error_maps_correctly(mock_ds: MagicMock) -> None:
    mock_ds.MultiModalConversation.call.side_effect = Exception("401 Unauthorized: invalid api key")

    events = _run(DashscopeRecognizerAdapter(api_key="bad-key"), _utterance_queue())

    errors = [e for e in events if e.kind == RecognitionKind.ERROR.value]
    assert len(errors) == 1
    assert errors[0].code == AUTH_FAILED
    assert errors[0].retryable is False


@patch("recognizer.dashscope")
def test_permission_error_maps_correctly(mock_ds: MagicMock) -> None:
    mock_ds.MultiModalConversation.call.side_effect = Exception("403 permission denied")

    events = _run(DashscopeRecognizerAdapter(api_key="test-key"), _utterance_queue())

    assert [e.code for e in events] == [PERMISSION_DENIED]


@patch("recognizer.dashscope")
def test_failed_stream_chunk_is_reported_once(mock_ds: MagicMock) -> None:
    mock_ds.MultiModalConversation.call.return_value = iter(
        [
            _chunk("Hel"),
            {"status_code": 401, "code": "InvalidApiKey", "message": "Invalid API-key provided."},
            _chunk("Hello"),
        ]
    )

    events = _run(DashscopeRecognizerAdapter(api_key="bad-key"), _utterance_queue())

    assert [e.kind for e in events] == [RecognitionKind.PARTIAL.value, RecognitionKind.ERROR.value]
    assert events[-1].code == AUTH_FAILED
    assert events[-1].retryable is False


@patch("recognizer.dashscope")
def test_unknown_failure_is_retryable_protocol_error(mock_ds: MagicMock) -> None:
    mock_ds.MultiModalConversation.call.side_effect = ValueError("unexpected payload shape")

    events = _run(DashscopeRecognizerAdapter(api_key="test-key"), _utterance_queue())

    assert [e.code for e in events] == [ASR_PROTOCOL_ERROR]
    assert events[0].retryable is True


@patch("recognizer.dashscope", None)
def test_dashscope_not_installed_emits_error() -> None:
    events = _run(DashscopeRecognizerAdapter(api_key="test-key"), _utterance_queue())

    errors = [e for e in events if e.kind == RecognitionKind.ERROR.value]
    assert len(errors) == 1
    assert errors[0].code == CAPABILITY_UNAVAILABLE


# ---------------------------------------------------------------
# Cancellation
# ---------------------------------------------------------------

@patch("recognizer.dashscope")
def test_stop_during_streaming_cancels_gracefully(mock_ds: MagicMock) -> None:
    def slow_response():
        yield _chunk("hello")
        time.sleep(1.0)
        yield _chunk("hello world")

    mock_ds.MultiModalConversation.call.return_value = slow_response()

    adapter = DashscopeRecognizerAdapter(api_key="test-key")
    events: list[RecognitionEvent] = []
    adapter.start(_utterance_queue(), events.append)
    time.sleep(0.3)
    adapter.stop()
    time.sleep(1.2)

    finals = [e for e in events if e.kind == RecognitionKind.FINAL.value]
    assert finals == []


def test_restart_after_stop_uses_fresh_worker() -> None:
    adapter = DashscopeRecognizerAdapter(api_key="test-key")
    pending: Queue[AudioFrame | None] = Queue()
    first: list[RecognitionEvent] = []
    adapter.start(pending, first.append)
    adapter.stop()

    q: Queue[AudioFrame | None] = Queue()
    q.put(None)
    second = _run(adapter, q)

    assert first == []
    assert [e.code for e in second] == [NO_SPEECH]
