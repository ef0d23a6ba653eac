"""Microphone capture emitting the recording lifecycle signals."""

from __future__ import annotations

import logging
import threading
import time
import uuid
from collections import OrderedDict
from concurrent.futures import Future, ThreadPoolExecutor
from typing import Any, Callable, Optional

from interfaces import SignalSink
from models import AudioFrame, CaptureStopped, Signal

try:
    import numpy as np
except Exception:  # pragma: no cover
    np = None  # type: ignore

try:
    import sounddevice as sd
except Exception:  # pragma: no cover
    sd = None  # type: ignore

logger = logging.getLogger(__name__)


class SessionAudioStore:
    """Finished recordings keyed by session handle, oldest evicted first."""

    def __init__(self, max_sessions: int = 8) -> None:
        self._max_sessions = max_sessions
        self._sessions: OrderedDict[str, AudioFrame] = OrderedDict()
        self._lock = threading.Lock()

    def put(self, audio: AudioFrame) -> str:
        handle = uuid.uuid4().hex
        with self._lock:
            self._sessions[handle] = audio
            while len(self._sessions) > self._max_sessions:
                evicted, _ = self._sessions.popitem(last=False)
                logger.debug("Evicted audio for session %s", evicted)
        return handle

    def get(self, handle: str) -> Optional[AudioFrame]:
        with self._lock:
            return self._sessions.get(handle)

    def discard(self, handle: str) -> None:
        with self._lock:
            self._sessions.pop(handle, None)

    def __len__(self) -> int:
        return len(self._sessions)


def rms_level(samples: Any, gain: float = 4.0) -> float:
    """Instantaneous level in ``[0, 1]`` of an int16 sample block."""
    if np is None:
        return 0.0
    data = np.asarray(samples, dtype=np.float32)
    if data.size == 0:
        return 0.0
    rms = float(np.sqrt(np.mean(np.square(data / 32768.0))))
    return min(1.0, rms * gain)


class SoundDeviceRecorder:
    def __init__(
        self,
        emit: SignalSink,
        audio_store: SessionAudioStore,
        sample_rate: int = 16000,
        channels: int = 1,
        chunk_ms: int = 50,
        level_gain: float = 4.0,
    ) -> None:
        self.sample_rate = sample_rate
        self.channels = channels
        self.chunk_ms = chunk_ms
        self._emit = emit
        self._audio_store = audio_store
        self._level_gain = level_gain
        self._stream: Any = None
        self._running = False
        self._lock = threading.Lock()
        self._chunks: list[bytes] = []
        self._started_at = 0.0

    @property
    def recording(self) -> bool:
        return self._running

    def start(self) -> None:
        with self._lock:
            if self._running:
                return
            if sd is None:
                raise RuntimeError("sounddevice is not installed")
            # Sent before the device opens, which can take a few hundred ms.
            self._emit(Signal.WILL_START.value, None)
            self._chunks = []
            blocksize = int(self.sample_rate * (self.chunk_ms / 1000.0))
            try:
                self._stream = sd.InputStream(
                    samplerate=self.sample_rate,
                    channels=self.channels,
                    dtype="int16",
                    blocksize=blocksize,
                    callback=self._on_audio,
                )
                self._stream.start()
            except Exception:
                self._stream = None
                self._emit(Signal.CAPTURE_STOPPED.value, CaptureStopped())
                raise
            self._running = True
            self._started_at = time.monotonic()
        self._emit(Signal.CAPTURE_STARTED.value, None)

    def stop(self) -> Optional[CaptureStopped]:
        with self._lock:
            if not self._running:
                return None
            self._running = False
            if self._stream is not None:
                self._stream.stop()
                self._stream.close()
                self._stream = None
            duration_ms = int((time.monotonic() - self._started_at) * 1000)
            pcm = b"".join(self._chunks)
            self._chunks = []

        sample_count = len(pcm) // (2 * self.channels)
        handle = ""
        if sample_count:
            handle = self._audio_store.put(
                AudioFrame(
                    pcm16_bytes=pcm,
                    sample_rate=self.sample_rate,
                    channels=self.channels,
                    timestamp_ms=int(time.time() * 1000),
                )
            )
        stopped = CaptureStopped(
            session_handle=handle, duration_ms=duration_ms, sample_count=sample_count
        )
        logger.debug("Captured %d samples in %d ms", sample_count, duration_ms)
        self._emit(Signal.CAPTURE_STOPPED.value, stopped)
        return stopped

    def _on_audio(self, indata: Any, frames: int, time_info: Any, status: Any) -> None:
        if not self._running or np is None:
            return
        if status:
            logger.debug("Audio input status: %s", status)
        samples = np.asarray(indata, dtype=np.int16)
        self._chunks.append(samples.tobytes())
        self._emit(Signal.RAW_AUDIO_LEVEL.value, rms_level(samples, self._level_gain))


class RecorderCommands:
    """Runs recorder start and stop requests one at a time, in request order.

    Opening the input device can take a few hundred milliseconds, so the
    hotkey thread never calls the recorder directly. A stop requested while
    the device is still opening runs after the start has finished.
    """

    def __init__(
        self,
        recorder: SoundDeviceRecorder,
        on_error: Optional[Callable[[str], None]] = None,
    ) -> None:
        self._recorder = recorder
        self._on_error = on_error
        self._executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="recorder")

    def request_start(self) -> Future:
        return self._executor.submit(self._start)

    def request_stop(self) -> Future:
        return self._executor.submit(self._recorder.stop)

    def shutdown(self, wait: bool = True) -> None:
        self._executor.shutdown(wait=wait)

    def _start(self) -> bool:
        try:
            self._recorder.start()
        except Exception as exc:
            logger.exception("Failed to start recording")
            if self._on_error:
                self._on_error(f"Could not start recording: {exc}")
            return False
        return True
