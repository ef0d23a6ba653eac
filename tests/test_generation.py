from __future__ import annotations

import threading

from generation import CycleGenerationTracker


def test_generations_start_at_one_and_increase() -> None:
    tracker = CycleGenerationTracker()
    assert tracker.current_generation() == 0

    first = tracker.begin_new_cycle()
    second = tracker.begin_new_cycle()

    assert (first, second) == (1, 2)
    assert tracker.is_current(second)
    assert not tracker.is_current(first)


def test_concurrent_cycles_get_distinct_generations() -> None:
    tracker = CycleGenerationTracker()
    seen: list[int] = []
    lock = threading.Lock()

    def _worker() -> None:
        for _ in range(100):
            generation = tracker.begin_new_cycle()
            with lock:
                seen.append(generation)

    threads = [threading.Thread(target=_worker) for _ in range(4)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert sorted(seen) == list(range(1, 401))
    assert tracker.current_generation() == 400
