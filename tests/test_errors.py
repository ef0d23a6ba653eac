from __future__ import annotations

import pytest

from errors import (
    AI_FUNCTION_FAILED,
    ASR_PROTOCOL_ERROR,
    AUTH_FAILED,
    CAPTURE_ABORTED,
    NETWORK_ERROR,
    AiTransformFailure,
    CaptureAbort,
    PipelineError,
    TranscriptionFailure,
    classify_exception,
)


@pytest.mark.parametrize(
    ("exc", "code"),
    [
        (RuntimeError("HTTP 401 Unauthorized"), AUTH_FAILED),
        (RuntimeError("Invalid API key provided"), AUTH_FAILED),
        (ConnectionError("reset by peer"), NETWORK_ERROR),
        (TimeoutError(), NETWORK_ERROR),
        (RuntimeError("Read timeout"), NETWORK_ERROR),
        (ValueError("unexpected payload"), ASR_PROTOCOL_ERROR),
    ],
)
def test_classify_exception(exc: Exception, code: str) -> None:
    assert classify_exception(exc) == code


def test_default_message_comes_from_code() -> None:
    error = CaptureAbort()

    assert error.code == CAPTURE_ABORTED
    assert error.message == "Nothing was recorded."
    assert error.user_message == "Nothing was recorded."


def test_user_message_prefixes_summary() -> None:
    error = AiTransformFailure("rate limited")

    assert error.code == AI_FUNCTION_FAILED
    assert error.user_message == "AI function failed, pasted the unprocessed text. rate limited"


def test_explicit_code_overrides_class_code() -> None:
    error = TranscriptionFailure("bad key", code=AUTH_FAILED)

    assert error.code == AUTH_FAILED
    assert error.fatal is True
    assert TranscriptionFailure.code != AUTH_FAILED
    assert PipelineError().fatal is False
