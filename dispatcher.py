"""Single control thread delivering inbound signals in arrival order.

Capture callbacks, hotkey listeners and the UI all post from their own
threads.  Currency checks in the orchestrator rely on signals being
observed in the order they were emitted, so every signal goes through one
FIFO queue drained by one thread.
"""

from __future__ import annotations

import logging
import threading
from queue import Queue
from typing import Any, Callable, Optional, Protocol

logger = logging.getLogger(__name__)

_BARRIER = "__barrier__"


class SignalHandler(Protocol):
    def handle(self, name: str, payload: Any = None) -> Any: ...


class SignalDispatcher:
    def __init__(
        self,
        handler: SignalHandler,
        on_handled: Optional[Callable[[str, Any], None]] = None,
    ) -> None:
        self._handler = handler
        self._on_handled = on_handled
        self._queue: Queue[tuple[str, Any] | None] = Queue()
        self._thread: Optional[threading.Thread] = None
        self._lock = threading.Lock()

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start(self) -> None:
        with self._lock:
            if self.running:
                return
            self._thread = threading.Thread(target=self._worker, name="signal-dispatcher", daemon=True)
            self._thread.start()

    def post(self, name: str, payload: Any = None) -> None:
        self._queue.put((str(name), payload))

    def drain(self, timeout: Optional[float] = None) -> bool:
        """Block until every signal posted so far has been handled."""
        done = threading.Event()
        self._queue.put((_BARRIER, done))
        return done.wait(timeout)

    def stop(self, timeout: float = 1.0) -> None:
        with self._lock:
            thread = self._thread
            if thread is None:
                return
            self._queue.put(None)
            thread.join(timeout=timeout)
            self._thread = None

    def _worker(self) -> None:
        while True:
            item = self._queue.get()
            if item is None:
                return
            name, payload = item
            if name == _BARRIER:
                payload.set()
                continue
            try:
                result = self._handler.handle(name, payload)
            except Exception:
                logger.exception("Signal %s failed", name)
                continue
            if self._on_handled:
                self._on_handled(name, result)
