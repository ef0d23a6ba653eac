"""Speech-to-text adapter using DashScope qwen3-asr-flash.

The capture side stores each finished recording under a session handle.
``transcribe`` looks the PCM up, wraps it as a base64 WAV data URI and
streams the recognition result back, keeping the last full text.
Vocabulary terms go into the system message, which qwen3-asr-flash reads
as recognition context.
"""

from __future__ import annotations

import base64
import io
import logging
import os
import wave
from typing import Optional, Sequence

from errors import ASR_PROTOCOL_ERROR, AUTH_FAILED, TranscriptionFailure, classify_exception
from models import TranscriptionResult
from recorder import SessionAudioStore

try:
    import dashscope
except Exception:  # pragma: no cover
    dashscope = None  # type: ignore

logger = logging.getLogger(__name__)


def _pcm_to_wav_base64(
    pcm: bytes,
    sample_rate: int = 16000,
    channels: int = 1,
    sample_width: int = 2,
) -> str:
    """Convert raw PCM bytes to a base64-encoded WAV string."""
    buf = io.BytesIO()
    with wave.open(buf, "wb") as wf:
        wf.setnchannels(channels)
        wf.setsampwidth(sample_width)
        wf.setframerate(sample_rate)
        wf.writeframes(pcm)
    return base64.b64encode(buf.getvalue()).decode("ascii")


class DashscopeTranscriber:
    def __init__(
        self,
        audio_store: SessionAudioStore,
        default_model: str = "qwen3-asr-flash",
        request_timeout_s: float = 30.0,
    ) -> None:
        self._audio_store = audio_store
        self._default_model = default_model
        self._request_timeout_s = request_timeout_s

    def transcribe(
        self,
        session_handle: str,
        model_id: str,
        language: Optional[str] = None,
        api_key: Optional[str] = None,
        vocabulary: Sequence[str] = (),
    ) -> TranscriptionResult:
        audio = self._audio_store.get(session_handle)
        if audio is None:
            raise TranscriptionFailure(
                f"No audio for session {session_handle}", code=ASR_PROTOCOL_ERROR
            )

        bytes_per_second = audio.sample_rate * audio.channels * 2
        duration_ms = int(len(audio.pcm16_bytes) * 1000 / bytes_per_second) if bytes_per_second else 0
        if not audio.pcm16_bytes:
            return TranscriptionResult(text="", language=language, duration_ms=0)

        if dashscope is None:
            raise TranscriptionFailure("dashscope is not installed")

        key = api_key or os.getenv("DASHSCOPE_API_KEY", "")
        if not key:
            raise TranscriptionFailure("No API key configured", code=AUTH_FAILED)

        wav_b64 = _pcm_to_wav_base64(audio.pcm16_bytes, audio.sample_rate, audio.channels)
        asr_options: dict[str, object] = {"enable_itn": False}
        if language:
            asr_options["language"] = language

        try:
            response = dashscope.MultiModalConversation.call(
                api_key=key,
                model=model_id or self._default_model,
                messages=[
                    {"role": "system", "content": [{"text": ", ".join(vocabulary)}]},
                    {"role": "user", "content": [{"audio": f"data:audio/wav;base64,{wav_b64}"}]},
                ],
                result_format="message",
                asr_options=asr_options,
                stream=True,
                timeout=self._request_timeout_s,
            )
            text = ""
            for chunk in response:
                latest = self._extract_text(chunk)
                if latest:
                    text = latest
        except Exception as exc:
            raise TranscriptionFailure(str(exc), code=classify_exception(exc)) from exc

        self._audio_store.discard(session_handle)
        logger.debug("Transcribed session %s (%d ms audio)", session_handle, duration_ms)
        return TranscriptionResult(text=text, language=language, duration_ms=duration_ms)

    def _extract_text(self, chunk: object) -> str:
        """Pull text from a dashscope streaming chunk dict."""
        if not isinstance(chunk, dict):
            return ""
        output = chunk.get("output") or {}
        choices = output.get("choices", []) if isinstance(output, dict) else []
        if not choices:
            return ""
        message = choices[0].get("message", {})
        content = message.get("content", [])
        if not content:
            return ""
        value = content[0]
        if isinstance(value, dict):
            return str(value.get("text", ""))
        return ""
