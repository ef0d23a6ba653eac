"""State-machine based orchestration of recording cycles.

A cycle runs record -> transcribe -> rules -> AI function -> paste -> save.
Recording can be re-triggered before the previous cycle's tail has
finished, so each tail runs on its own thread and every effect that must not
happen for a superseded cycle (paste, result/status updates, hiding the
indicator) re-checks the cycle's generation right before it happens.  Saving
to history is the exception: the speech was real, so it is always saved.
"""

from __future__ import annotations

import logging
import threading
import time
from concurrent.futures import Executor, Future
from typing import Any, Callable, Mapping, Optional

from config import PipelineSettings
from errors import (
    CaptureAbort,
    PasteFailure,
    PersistenceFailure,
    PipelineError,
    TranscriptionFailure,
    classify_exception,
)
from generation import CycleGenerationTracker
from hallucination import is_hallucination
from interfaces import HistoryStore, Indicator, PasteService, RuleSource, Transcriber
from level_meter import LevelSmoother
from logging_setup import log_preview, timed_operation
from models import (
    CaptureStopped,
    CycleOutcome,
    CycleState,
    HistoryRecord,
    PasteResult,
    PipelineStatus,
    RecordingCycle,
    Signal,
    TranscriptionResult,
)
from transform_chain import TransformChainRunner

logger = logging.getLogger(__name__)

StateCallback = Callable[[CycleState, CycleState], None]
StatusCallback = Callable[[PipelineStatus], None]
ErrorCallback = Callable[[str, str], None]
LevelCallback = Callable[[float], None]
DurationCallback = Callable[[int], None]
ResultCallback = Callable[[Optional[str]], None]
SettingsProvider = Callable[[], PipelineSettings]


class DurationTimer:
    """Reports elapsed milliseconds every ``interval_s`` from a daemon thread.

    Each tick carries the generation the timer was started for, so a tick
    from an old timer thread can be told apart from the live one.
    """

    def __init__(
        self,
        on_tick: Callable[[int, int], None],
        interval_s: float = 0.1,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._on_tick = on_tick
        self._interval_s = interval_s
        self._clock = clock
        self._stop_event: Optional[threading.Event] = None

    @property
    def running(self) -> bool:
        return self._stop_event is not None and not self._stop_event.is_set()

    def start(self, generation: int) -> None:
        self.stop()
        stop_event = threading.Event()
        self._stop_event = stop_event
        started = self._clock()

        def _run() -> None:
            while not stop_event.wait(self._interval_s):
                self._on_tick(generation, int((self._clock() - started) * 1000))

        threading.Thread(target=_run, name="duration-timer", daemon=True).start()

    def stop(self) -> None:
        if self._stop_event is not None:
            self._stop_event.set()
            self._stop_event = None


def capture_stopped_from_payload(payload: Any) -> CaptureStopped:
    if isinstance(payload, CaptureStopped):
        return payload
    if isinstance(payload, Mapping):
        return CaptureStopped(
            session_handle=str(
                payload.get("session_handle") or payload.get("sessionId") or ""
            ),
            duration_ms=int(payload.get("duration_ms", payload.get("durationMs", 0)) or 0),
            sample_count=int(payload.get("sample_count", payload.get("sampleCount", 0)) or 0),
        )
    raise TypeError(f"unsupported capture-stopped payload: {payload!r}")


class PipelineOrchestrator:
    def __init__(
        self,
        transcriber: Transcriber,
        rule_source: RuleSource,
        transform_runner: TransformChainRunner,
        paste_service: PasteService,
        history_store: HistoryStore,
        indicator: Optional[Indicator],
        settings_provider: SettingsProvider,
        tracker: Optional[CycleGenerationTracker] = None,
        executor: Optional[Executor] = None,
        complete_delay_s: float = 0.1,
        timer_interval_s: float = 0.1,
        on_state_change: Optional[StateCallback] = None,
        on_status: Optional[StatusCallback] = None,
        on_error: Optional[ErrorCallback] = None,
        on_level: Optional[LevelCallback] = None,
        on_duration: Optional[DurationCallback] = None,
        on_result: Optional[ResultCallback] = None,
    ) -> None:
        self._transcriber = transcriber
        self._rule_source = rule_source
        self._transform_runner = transform_runner
        self._paste_service = paste_service
        self._history_store = history_store
        self._indicator = indicator
        self._settings_provider = settings_provider
        self._tracker = tracker or CycleGenerationTracker()
        self._executor = executor
        self._tail_threads: list[threading.Thread] = []
        self._complete_delay_s = complete_delay_s
        self._on_state_change = on_state_change
        self._on_status = on_status
        self._on_error = on_error
        self._on_level = on_level
        self._on_duration = on_duration
        self._on_result = on_result

        self._lock = threading.RLock()
        self._smoother = LevelSmoother()
        self._timer = DurationTimer(self._handle_timer_tick, interval_s=timer_interval_s)
        self._cycle: Optional[RecordingCycle] = None
        self._state = CycleState.IDLE
        self._last_result: Optional[str] = None
        self._duration_ms = 0
        self._audio_level = 0.0

    @property
    def state(self) -> CycleState:
        return self._state

    @property
    def generation(self) -> int:
        return self._tracker.current_generation()

    @property
    def current_cycle(self) -> Optional[RecordingCycle]:
        return self._cycle

    @property
    def last_result(self) -> Optional[str]:
        return self._last_result

    @property
    def duration_ms(self) -> int:
        return self._duration_ms

    @property
    def audio_level(self) -> float:
        return self._audio_level

    def is_current(self, generation: int) -> bool:
        return self._tracker.is_current(generation)

    # ------------------------------------------------------------------
    # Inbound signals
    # ------------------------------------------------------------------

    def handle(self, name: str, payload: Any = None) -> Any:
        if name == Signal.WILL_START.value:
            return self.on_will_start()
        if name == Signal.CAPTURE_STARTED.value:
            return self.on_capture_started()
        if name == Signal.CAPTURE_STOPPED.value:
            return self.on_capture_stopped(capture_stopped_from_payload(payload))
        if name == Signal.RAW_AUDIO_LEVEL.value:
            return self.on_audio_level(float(payload))
        raise ValueError(f"unknown signal: {name}")

    def on_will_start(self) -> int:
        return self._begin_cycle().generation

    def on_capture_started(self) -> None:
        with self._lock:
            cycle = self._cycle
            if cycle is None or cycle.state != CycleState.WILL_START:
                logger.warning("capture-started without will-start, beginning a new cycle")
                cycle = self._begin_cycle()
            cycle.state = CycleState.RECORDING
            cycle.started_at = time.time()
            self._transition(CycleState.RECORDING)
            self._timer.start(cycle.generation)

    def on_capture_stopped(self, stopped: CaptureStopped) -> Optional[Future]:
        with self._lock:
            self._timer.stop()
            self._audio_level = 0.0
            self._duration_ms = stopped.duration_ms
            if self._on_duration:
                self._on_duration(stopped.duration_ms)

            cycle = self._cycle
            if cycle is None or cycle.state not in (CycleState.WILL_START, CycleState.RECORDING):
                logger.warning("capture-stopped with no active recording, ignoring")
                return None

            if not stopped.session_handle:
                logger.info(
                    "[gen %d] capture aborted: %s", cycle.generation, CaptureAbort().message
                )
                self._cycle = None
                self._transition(CycleState.IDLE)
                self._safe_set_indicator(False)
                return None

            cycle.session_handle = stopped.session_handle
            cycle.duration_ms = stopped.duration_ms
            cycle.state = CycleState.TRANSCRIBING
            settings = self._settings_provider()
            self._transition(CycleState.TRANSCRIBING)
            self._emit_status(PipelineStatus.TRANSCRIBING)

        return self._spawn_tail(cycle, settings)

    def on_audio_level(self, level: float) -> float:
        with self._lock:
            smoothed = self._smoother.update(level)
            self._audio_level = smoothed
        if self._on_level:
            self._on_level(smoothed)
        return smoothed

    def shutdown(self, wait: bool = True, timeout: Optional[float] = None) -> None:
        """Stop the timer and, with ``wait``, join tails still running.

        A tail stuck in a collaborator is left behind once ``timeout``
        expires; its thread is a daemon.
        """
        self._timer.stop()
        if not wait:
            return
        with self._lock:
            threads = list(self._tail_threads)
        for thread in threads:
            thread.join(timeout)

    def _begin_cycle(self) -> RecordingCycle:
        with self._lock:
            generation = self._tracker.begin_new_cycle()
            cycle = RecordingCycle(generation=generation)
            self._cycle = cycle
            self._timer.stop()
            self._duration_ms = 0
            self._smoother.reset()
            self._audio_level = 0.0
            self._transition(CycleState.WILL_START)
            self._safe_set_indicator(True)
        logger.debug("[gen %d] recording will start", generation)
        return cycle

    # ------------------------------------------------------------------
    # Cycle tail (one thread per cycle)
    # ------------------------------------------------------------------

    def _spawn_tail(self, cycle: RecordingCycle, settings: PipelineSettings) -> Future:
        if self._executor is not None:
            return self._executor.submit(self._run_cycle_tail, cycle, settings)

        future: Future = Future()

        def _run() -> None:
            if not future.set_running_or_notify_cancel():
                return
            try:
                future.set_result(self._run_cycle_tail(cycle, settings))
            except BaseException as exc:
                future.set_exception(exc)
            finally:
                with self._lock:
                    self._tail_threads.remove(threading.current_thread())

        thread = threading.Thread(
            target=_run, name=f"cycle-{cycle.generation}", daemon=True
        )
        with self._lock:
            self._tail_threads.append(thread)
        thread.start()
        return future

    def _run_cycle_tail(self, cycle: RecordingCycle, settings: PipelineSettings) -> CycleOutcome:
        outcome = CycleOutcome(generation=cycle.generation)
        try:
            self._process(cycle, settings, outcome)
        except Exception as exc:
            logger.exception("[gen %d] pipeline failed", cycle.generation)
            self._report(cycle, PipelineError(str(exc), code=classify_exception(exc)), outcome)
        finally:
            self._complete(cycle, outcome)
        return outcome

    def _process(
        self, cycle: RecordingCycle, settings: PipelineSettings, outcome: CycleOutcome
    ) -> None:
        generation = cycle.generation
        try:
            with timed_operation("transcribe", generation=generation):
                result = self._transcriber.transcribe(
                    cycle.session_handle or "",
                    settings.model_id,
                    settings.language,
                    settings.transcription_api_key,
                    vocabulary=settings.vocabulary,
                )
        except Exception as exc:
            error = (
                exc
                if isinstance(exc, TranscriptionFailure)
                else TranscriptionFailure(str(exc))
            )
            logger.error("[gen %d] transcription failed: %s", generation, exc)
            with self._lock:
                if self.is_current(generation):
                    self._set_result(None)
            self._report(cycle, error, outcome)
            return

        outcome.raw_text = result.text
        logger.debug("[gen %d] transcript: %s", generation, log_preview(result.text))

        if is_hallucination(result.text):
            logger.info(
                "[gen %d] discarding empty or hallucinated transcript %r",
                generation,
                log_preview(result.text.strip(), 40),
            )
            outcome.hallucination = True
            outcome.final_text = ""
            with self._lock:
                if self.is_current(generation):
                    self._set_result("")
            self._persist(cycle, settings, result, "", outcome)
            return

        try:
            rules = self._rule_source.resolve(settings.rule_ids)
            transformed = self._transform_runner.run(
                result.text,
                rules,
                settings.ai_invocation(),
                on_ai_start=lambda: self._enter_ai_processing(cycle),
            )
        except Exception as exc:
            logger.exception("[gen %d] text rules failed", generation)
            self._report(cycle, PipelineError(f"Text rules failed: {exc}"), outcome)
            self._persist(cycle, settings, result, None, outcome)
            return

        if transformed.ai_error is not None:
            self._report(cycle, transformed.ai_error, outcome)

        final_text = transformed.final_text
        outcome.final_text = final_text
        with self._lock:
            if self.is_current(generation):
                self._set_result(final_text)

        self._paste(cycle, final_text, outcome)
        self._persist(cycle, settings, result, final_text, outcome)

    def _enter_ai_processing(self, cycle: RecordingCycle) -> None:
        cycle.state = CycleState.AI_PROCESSING
        with self._lock:
            if self.is_current(cycle.generation):
                self._transition(CycleState.AI_PROCESSING)
                self._emit_status(PipelineStatus.AI_PROCESSING)

    def _paste(self, cycle: RecordingCycle, text: str, outcome: CycleOutcome) -> None:
        if not text.strip():
            logger.info("[gen %d] nothing left to paste after rules", cycle.generation)
            return
        with self._lock:
            if not self.is_current(cycle.generation):
                outcome.superseded = True
                logger.info(
                    "[gen %d] superseded by gen %d, not pasting",
                    cycle.generation,
                    self.generation,
                )
                return
            try:
                result = self._paste_service.paste_text(text)
            except Exception as exc:
                result = PasteResult(success=False, reason=str(exc), clipboard_restored=False)
        if result.success:
            outcome.pasted = True
            return
        logger.warning("[gen %d] paste failed: %s", cycle.generation, result.reason)
        self._report(cycle, PasteFailure(result.reason), outcome)

    def _persist(
        self,
        cycle: RecordingCycle,
        settings: PipelineSettings,
        result: TranscriptionResult,
        final_text: Optional[str],
        outcome: CycleOutcome,
    ) -> None:
        record = HistoryRecord(
            session_handle=cycle.session_handle or "",
            raw_transcript=result.text,
            final_text=final_text,
            model_id=settings.model_id,
            language=settings.language or result.language,
            ai_function_id=settings.ai_function_id,
            duration_ms=cycle.duration_ms or result.duration_ms,
        )
        try:
            self._history_store.persist(record)
        except Exception as exc:
            error = exc if isinstance(exc, PersistenceFailure) else PersistenceFailure(str(exc))
            logger.warning("[gen %d] failed to save history: %s", cycle.generation, exc)
            self._report(cycle, error, outcome, always=True)
            return
        outcome.persisted = True

    def _complete(self, cycle: RecordingCycle, outcome: CycleOutcome) -> None:
        cycle.state = CycleState.COMPLETE
        generation = cycle.generation
        with self._lock:
            if not self.is_current(generation):
                outcome.superseded = True
                logger.info("[gen %d] superseded, leaving UI to gen %d", generation, self.generation)
                return
            self._transition(CycleState.COMPLETE)
            self._emit_status(PipelineStatus.COMPLETE)

        if self._complete_delay_s > 0:
            time.sleep(self._complete_delay_s)

        with self._lock:
            if self.is_current(generation):
                self._safe_set_indicator(False)
            else:
                outcome.superseded = True

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _report(
        self,
        cycle: RecordingCycle,
        error: PipelineError,
        outcome: CycleOutcome,
        always: bool = False,
    ) -> None:
        if not outcome.error_code or error.fatal:
            outcome.error_code = error.code
        with self._lock:
            if not always and not self.is_current(cycle.generation):
                return
            if self._on_error:
                self._on_error(error.code, error.user_message)

    def _handle_timer_tick(self, generation: int, elapsed_ms: int) -> None:
        with self._lock:
            if self._state != CycleState.RECORDING:
                return
            if not self._tracker.is_current(generation):
                return
            self._duration_ms = elapsed_ms
            if self._on_duration:
                self._on_duration(elapsed_ms)

    def _set_result(self, text: Optional[str]) -> None:
        self._last_result = text
        if self._on_result:
            self._on_result(text)

    def _emit_status(self, status: PipelineStatus) -> None:
        if self._on_status:
            self._on_status(status)

    def _safe_set_indicator(self, visible: bool) -> None:
        if self._indicator is None:
            return
        try:
            self._indicator.set_visible(visible)
        except Exception as exc:  # pragma: no cover
            logger.debug("indicator update failed: %s", exc)

    def _transition(self, to_state: CycleState) -> None:
        from_state = self._state
        if from_state == to_state:
            return
        self._state = to_state
        logger.debug("state %s -> %s (gen %d)", from_state.value, to_state.value, self.generation)
        if self._on_state_change:
            self._on_state_change(from_state, to_state)
