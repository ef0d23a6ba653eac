from __future__ import annotations

import logging
from pathlib import Path

import pytest

import logging_setup
from logging_setup import format_duration, log_preview, setup_logging, timed_operation


@pytest.fixture
def clean_root(monkeypatch):  # noqa: ANN001, ANN201
    root = logging.getLogger()
    handlers = list(root.handlers)
    level = root.level
    monkeypatch.setattr(logging_setup, "_configured", False)
    yield root
    for handler in root.handlers:
        if handler not in handlers:
            handler.close()
    root.handlers = handlers
    root.setLevel(level)


def test_setup_logging_writes_to_rotating_file(clean_root, tmp_path: Path) -> None:  # noqa: ANN001
    log_file = tmp_path / "logs" / "dictation.log"
    setup_logging(log_file=log_file)
    logging.getLogger("pipeline").info("cycle complete")
    for handler in clean_root.handlers:
        handler.flush()

    assert "cycle complete" in log_file.read_text(encoding="utf-8")
    assert clean_root.level == logging.INFO


def test_setup_logging_is_idempotent(clean_root, tmp_path: Path) -> None:  # noqa: ANN001
    before = len(clean_root.handlers)
    setup_logging(debug=True, log_file=tmp_path / "app.log")
    after_first = len(clean_root.handlers)
    setup_logging(debug=False, log_file=tmp_path / "app.log")

    assert after_first == before + 2
    assert len(clean_root.handlers) == after_first
    assert clean_root.level == logging.INFO


def test_timed_operation_logs_generation(caplog) -> None:  # noqa: ANN001
    caplog.set_level(logging.INFO, logger="dictation")

    with timed_operation("transcribe", generation=7):
        pass

    assert any(r.getMessage().startswith("[gen 7] transcribe: ") for r in caplog.records)


def test_format_helpers() -> None:
    assert format_duration(250) == "250ms"
    assert format_duration(1500) == "1.50s"
    assert log_preview("short") == "short"
    assert log_preview("x" * 120, max_length=10) == "xxxxxxxxxx..."
