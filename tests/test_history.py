from __future__ import annotations

import json
from pathlib import Path

import pytest

from errors import HISTORY_SAVE_FAILED, PersistenceFailure
from history import JsonlHistoryStore
from models import HistoryRecord


def _record(text: str = "hello", final: str | None = "Hello.") -> HistoryRecord:
    return HistoryRecord(
        session_handle="abc",
        raw_transcript=text,
        model_id="qwen3-asr-flash",
        duration_ms=1200,
        final_text=final,
        language="en",
        ai_function_id=None,
    )


def test_persist_appends_json_lines(tmp_path: Path) -> None:
    store = JsonlHistoryStore(tmp_path / "history.jsonl")
    store.persist(_record("first"))
    store.persist(_record("second", final=""))

    lines = (tmp_path / "history.jsonl").read_text(encoding="utf-8").splitlines()
    assert len(lines) == 2
    entry = json.loads(lines[1])
    assert entry["transcript"] == "second"
    assert entry["final_text"] == ""
    assert entry["session"] == "abc"
    assert entry["model_id"] == "qwen3-asr-flash"
    assert entry["duration_ms"] == 1200


def test_recent_returns_newest_first(tmp_path: Path) -> None:
    store = JsonlHistoryStore(tmp_path / "history.jsonl")
    for i in range(5):
        store.persist(_record(f"entry {i}"))

    assert [e["transcript"] for e in store.recent(2)] == ["entry 4", "entry 3"]


def test_recent_skips_corrupt_lines(tmp_path: Path) -> None:
    path = tmp_path / "history.jsonl"
    store = JsonlHistoryStore(path)
    store.persist(_record("good"))
    with path.open("a", encoding="utf-8") as f:
        f.write("{not json\n")

    assert [e["transcript"] for e in store.recent()] == ["good"]


def test_clear_removes_file(tmp_path: Path) -> None:
    store = JsonlHistoryStore(tmp_path / "history.jsonl")
    store.persist(_record())
    store.clear()

    assert store.recent() == []
    assert not store.path.exists()


def test_rotation_keeps_newest_half(tmp_path: Path) -> None:
    store = JsonlHistoryStore(tmp_path / "history.jsonl", max_size_mb=0)
    for i in range(4):
        store.persist(_record(f"entry {i}"))

    transcripts = [e["transcript"] for e in store.recent(10)]
    assert transcripts[0] == "entry 3"
    assert len(transcripts) < 4


def test_write_failure_raises_persistence_failure(tmp_path: Path) -> None:
    blocker = tmp_path / "not-a-dir"
    blocker.write_text("", encoding="utf-8")
    store = JsonlHistoryStore(blocker / "history.jsonl")

    with pytest.raises(PersistenceFailure) as excinfo:
        store.persist(_record())
    assert excinfo.value.code == HISTORY_SAVE_FAILED


def test_search_matches_transcript_or_final_text(tmp_path: Path) -> None:
    store = JsonlHistoryStore(tmp_path / "history.jsonl")
    store.persist(_record("book the flight", final="Book the flight."))
    store.persist(_record("um call mom", final="Call Mom."))
    store.persist(_record("send the report", final="Dear team, the REPORT is attached."))

    assert [e["transcript"] for e in store.search("report")] == ["send the report"]
    assert [e["transcript"] for e in store.search("mom")] == ["um call mom"]
    assert [e["transcript"] for e in store.search("the", limit=2)] == [
        "send the report",
        "book the flight",
    ]
    assert store.search("nothing like this") == []


def test_get_and_delete_by_id(tmp_path: Path) -> None:
    store = JsonlHistoryStore(tmp_path / "history.jsonl")
    store.persist(_record("keep me"))
    store.persist(_record("drop me"))
    drop_id = store.recent(1)[0]["id"]

    assert store.get(drop_id)["transcript"] == "drop me"
    assert store.delete(drop_id) is True
    assert store.get(drop_id) is None
    assert store.delete(drop_id) is False
    assert [e["transcript"] for e in store.recent()] == ["keep me"]


def test_lookups_on_missing_file(tmp_path: Path) -> None:
    store = JsonlHistoryStore(tmp_path / "history.jsonl")

    assert store.get("nope") is None
    assert store.search("x") == []
    assert store.delete("nope") is False
