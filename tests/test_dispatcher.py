from __future__ import annotations

import threading
from concurrent.futures import Future
from typing import Any

from config import PipelineSettings
from dispatcher import SignalDispatcher
from models import CaptureStopped, PasteResult, TranscriptionResult
from pipeline import PipelineOrchestrator
from rules import RuleRegistry
from transform_chain import TransformChainRunner


class RecordingHandler:
    def __init__(self) -> None:
        self.seen: list[tuple[str, Any]] = []
        self.threads: set[str] = set()

    def handle(self, name: str, payload: Any = None) -> Any:
        self.threads.add(threading.current_thread().name)
        if name == "explode":
            raise RuntimeError("handler bug")
        self.seen.append((name, payload))
        return len(self.seen)


def test_signals_are_handled_in_post_order_on_one_thread() -> None:
    handler = RecordingHandler()
    dispatcher = SignalDispatcher(handler)
    dispatcher.start()
    try:
        for i in range(50):
            dispatcher.post("raw-audio-level", i / 50)
        assert dispatcher.drain(timeout=2)
    finally:
        dispatcher.stop()

    assert [payload for _, payload in handler.seen] == [i / 50 for i in range(50)]
    assert handler.threads == {"signal-dispatcher"}


def test_handler_errors_do_not_stop_delivery() -> None:
    handler = RecordingHandler()
    results: list[tuple[str, Any]] = []
    dispatcher = SignalDispatcher(handler, on_handled=lambda n, r: results.append((n, r)))
    dispatcher.start()
    try:
        dispatcher.post("explode")
        dispatcher.post("will-start")
        assert dispatcher.drain(timeout=2)
    finally:
        dispatcher.stop()

    assert handler.seen == [("will-start", None)]
    assert results == [("will-start", 1)]
    assert not dispatcher.running


class _GatedTranscriber:
    def __init__(self) -> None:
        self.gate = threading.Event()

    def transcribe(self, session_handle, model_id, language=None, api_key=None, vocabulary=()):  # noqa: ANN001
        assert self.gate.wait(timeout=2.0)
        return TranscriptionResult(text=f"text for {session_handle}")


class _Paste:
    def __init__(self) -> None:
        self.calls: list[str] = []

    def paste_text(self, text: str) -> PasteResult:
        self.calls.append(text)
        return PasteResult(success=True, reason="ok", clipboard_restored=True)


class _History:
    def __init__(self) -> None:
        self.records = []

    def persist(self, record) -> None:  # noqa: ANN001
        self.records.append(record)


def test_rapid_retrigger_through_dispatcher_pastes_only_latest() -> None:
    transcriber = _GatedTranscriber()
    paste = _Paste()
    history = _History()
    orchestrator = PipelineOrchestrator(
        transcriber=transcriber,
        rule_source=RuleRegistry(),
        transform_runner=TransformChainRunner(),
        paste_service=paste,
        history_store=history,
        indicator=None,
        settings_provider=PipelineSettings,
        complete_delay_s=0.0,
    )
    futures: list[Future] = []
    dispatcher = SignalDispatcher(
        orchestrator,
        on_handled=lambda name, result: futures.append(result) if name == "capture-stopped" else None,
    )
    dispatcher.start()
    try:
        dispatcher.post("will-start")
        dispatcher.post("capture-started")
        dispatcher.post("capture-stopped", CaptureStopped(session_handle="a", duration_ms=500))
        dispatcher.post("will-start")
        dispatcher.post("capture-started")
        dispatcher.post("capture-stopped", CaptureStopped(session_handle="b", duration_ms=700))
        assert dispatcher.drain(timeout=2)
        transcriber.gate.set()
        outcomes = [f.result(timeout=2) for f in futures]
    finally:
        dispatcher.stop()
        orchestrator.shutdown()

    assert paste.calls == ["text for b"]
    assert outcomes[0].superseded is True
    assert sorted(r.session_handle for r in history.records) == ["a", "b"]
