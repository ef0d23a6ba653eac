"""Recording-cycle generation counter.

Every recording cycle is identified by the integer returned from
``begin_new_cycle``.  Work belonging to a cycle compares its generation
against ``current_generation`` right before any effect that must not run
for a superseded cycle.
"""

from __future__ import annotations

import threading


class CycleGenerationTracker:
    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._generation = 0

    def begin_new_cycle(self) -> int:
        with self._lock:
            self._generation += 1
            return self._generation

    def current_generation(self) -> int:
        return self._generation

    def is_current(self, generation: int) -> bool:
        return generation == self._generation
