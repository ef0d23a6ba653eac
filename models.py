"""Core data models for the dictation pipeline."""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, Optional


class CycleState(str, Enum):
    IDLE = "IDLE"
    WILL_START = "WILL_START"
    RECORDING = "RECORDING"
    TRANSCRIBING = "TRANSCRIBING"
    AI_PROCESSING = "AI_PROCESSING"
    COMPLETE = "COMPLETE"


class PipelineStatus(str, Enum):
    """Values broadcast on the ``pipeline-state`` channel."""

    TRANSCRIBING = "transcribing"
    AI_PROCESSING = "ai-processing"
    COMPLETE = "complete"


class Signal(str, Enum):
    WILL_START = "will-start"
    CAPTURE_STARTED = "capture-started"
    CAPTURE_STOPPED = "capture-stopped"
    RAW_AUDIO_LEVEL = "raw-audio-level"


@dataclass
class AudioFrame:
    pcm16_bytes: bytes
    sample_rate: int = 16000
    channels: int = 1
    timestamp_ms: int = 0


@dataclass
class RecordingCycle:
    generation: int
    session_handle: Optional[str] = None
    state: CycleState = CycleState.WILL_START
    started_at: float = field(default_factory=time.time)
    duration_ms: int = 0


@dataclass(frozen=True)
class CaptureStopped:
    session_handle: str = ""
    duration_ms: int = 0
    sample_count: int = 0


@dataclass(frozen=True)
class Segment:
    start_ms: int
    end_ms: int
    text: str


@dataclass(frozen=True)
class TranscriptionResult:
    text: str
    language: Optional[str] = None
    segments: tuple[Segment, ...] = ()
    duration_ms: int = 0


@dataclass(frozen=True)
class Rule:
    id: str
    apply: Callable[[str], str]
    name: str = ""


@dataclass(frozen=True)
class AiFunctionInvocation:
    function_id: str
    provider_id: str
    api_key: str = ""
    model: str = ""
    base_url: Optional[str] = None


@dataclass(frozen=True)
class HistoryRecord:
    session_handle: str
    raw_transcript: str
    model_id: str
    duration_ms: int
    final_text: Optional[str] = None
    language: Optional[str] = None
    ai_function_id: Optional[str] = None


@dataclass(frozen=True)
class TransformOutcome:
    """Result of running the rule chain and the optional AI step."""

    final_text: str
    rules_text: str
    ai_text: Optional[str] = None
    ai_error: Optional[Exception] = None
    ai_skipped: bool = False


@dataclass
class CycleOutcome:
    generation: int
    raw_text: Optional[str] = None
    final_text: Optional[str] = None
    hallucination: bool = False
    pasted: bool = False
    persisted: bool = False
    superseded: bool = False
    error_code: str = ""


@dataclass
class PasteResult:
    success: bool
    reason: str
    clipboard_restored: bool
