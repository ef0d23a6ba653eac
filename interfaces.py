"""Protocol interfaces used by PipelineOrchestrator."""

from __future__ import annotations

from typing import Callable, Optional, Protocol, Sequence

from models import HistoryRecord, PasteResult, Rule, TranscriptionResult

SignalSink = Callable[[str, object], None]


class Transcriber(Protocol):
    def transcribe(
        self,
        session_handle: str,
        model_id: str,
        language: Optional[str] = None,
        api_key: Optional[str] = None,
        vocabulary: Sequence[str] = (),
    ) -> TranscriptionResult: ...


class RuleSource(Protocol):
    def resolve(self, rule_ids: Sequence[str]) -> list[Rule]: ...


class AiFunctionRunner(Protocol):
    def invoke_ai_function(
        self,
        text: str,
        function_id: str,
        provider_id: str,
        api_key: str,
        model: str,
        base_url: Optional[str] = None,
    ) -> str: ...


class PasteService(Protocol):
    def paste_text(self, text: str) -> PasteResult: ...


class HistoryStore(Protocol):
    def persist(self, record: HistoryRecord) -> None: ...


class Indicator(Protocol):
    def set_visible(self, visible: bool) -> None: ...
