"""Shared error codes, user-facing messages and pipeline exceptions."""

from __future__ import annotations

NETWORK_ERROR = "NETWORK_ERROR"
AUTH_FAILED = "AUTH_FAILED"
NO_ACTIVE_TARGET = "NO_ACTIVE_TARGET"
ASR_PROTOCOL_ERROR = "ASR_PROTOCOL_ERROR"
CAPTURE_ABORTED = "CAPTURE_ABORTED"
TRANSCRIPTION_FAILED = "TRANSCRIPTION_FAILED"
AI_FUNCTION_FAILED = "AI_FUNCTION_FAILED"
HISTORY_SAVE_FAILED = "HISTORY_SAVE_FAILED"

ERROR_MESSAGES = {
    NETWORK_ERROR: "Network failed, please retry.",
    AUTH_FAILED: "API key is invalid.",
    NO_ACTIVE_TARGET: "No active input target, result kept in clipboard.",
    ASR_PROTOCOL_ERROR: "ASR response format is invalid.",
    CAPTURE_ABORTED: "Nothing was recorded.",
    TRANSCRIPTION_FAILED: "Transcription failed.",
    AI_FUNCTION_FAILED: "AI function failed, pasted the unprocessed text.",
    HISTORY_SAVE_FAILED: "Could not save the dictation to history.",
}


class PipelineError(Exception):
    code = ASR_PROTOCOL_ERROR
    fatal = False

    def __init__(self, message: str = "", code: str | None = None) -> None:
        super().__init__(message or ERROR_MESSAGES.get(code or self.code, ""))
        if code:
            self.code = code

    @property
    def message(self) -> str:
        return str(self)

    @property
    def user_message(self) -> str:
        summary = ERROR_MESSAGES.get(self.code, "")
        if not summary or summary == self.message:
            return self.message
        return f"{summary} {self.message}"


class CaptureAbort(PipelineError):
    code = CAPTURE_ABORTED


class TranscriptionFailure(PipelineError):
    code = TRANSCRIPTION_FAILED
    fatal = True


class AiTransformFailure(PipelineError):
    code = AI_FUNCTION_FAILED


class PasteFailure(PipelineError):
    code = NO_ACTIVE_TARGET


class PersistenceFailure(PipelineError):
    code = HISTORY_SAVE_FAILED


def classify_exception(exc: BaseException) -> str:
    """Map an SDK/network exception to a standard error code."""
    low = str(exc).lower()
    if "401" in low or "auth" in low or "api key" in low:
        return AUTH_FAILED
    if isinstance(exc, (ConnectionError, TimeoutError)):
        return NETWORK_ERROR
    if "timeout" in low or "network" in low or "connection" in low:
        return NETWORK_ERROR
    return ASR_PROTOCOL_ERROR
