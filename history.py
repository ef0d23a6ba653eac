"""Dictation history stored as JSON lines.

Every finished cycle appends one JSON object, superseded cycles included.
"""

from __future__ import annotations

import json
import logging
import threading
import uuid
from datetime import datetime
from pathlib import Path
from typing import Optional

from errors import PersistenceFailure
from models import HistoryRecord

MAX_HISTORY_SIZE_MB = 10

logger = logging.getLogger(__name__)


class JsonlHistoryStore:
    def __init__(self, path: Optional[Path] = None, max_size_mb: float = MAX_HISTORY_SIZE_MB) -> None:
        if path is None:
            from config import HISTORY_FILE

            path = HISTORY_FILE
        self._path = path
        self._max_size_mb = max_size_mb
        self._lock = threading.Lock()

    @property
    def path(self) -> Path:
        return self._path

    def persist(self, record: HistoryRecord) -> None:
        entry = {
            "id": uuid.uuid4().hex,
            "timestamp": datetime.now().isoformat(),
            "session": record.session_handle,
            "transcript": record.raw_transcript,
            "final_text": record.final_text,
            "model_id": record.model_id,
            "language": record.language,
            "ai_function": record.ai_function_id,
            "duration_ms": record.duration_ms,
        }
        try:
            with self._lock:
                self._path.parent.mkdir(parents=True, exist_ok=True)
                self._rotate_if_needed()
                with self._path.open("a", encoding="utf-8") as f:
                    f.write(json.dumps(entry, ensure_ascii=False) + "\n")
        except OSError as exc:
            raise PersistenceFailure(f"Failed to save history: {exc}") from exc
        logger.debug("History entry saved for session %s", record.session_handle)

    def recent(self, count: int = 10) -> list[dict]:
        """Return the newest ``count`` entries, newest first."""
        if not self._path.exists():
            return []
        try:
            lines = self._path.read_text(encoding="utf-8").splitlines()
        except OSError as exc:
            logger.warning("Failed to read history: %s", exc)
            return []

        entries = []
        for line in reversed(lines):
            if len(entries) >= count:
                break
            line = line.strip()
            if not line:
                continue
            try:
                entries.append(json.loads(line))
            except json.JSONDecodeError:
                continue
        return entries

    def get(self, entry_id: str) -> Optional[dict]:
        for entry in self._read_entries():
            if entry.get("id") == entry_id:
                return entry
        return None

    def search(self, query: str, limit: int = 100) -> list[dict]:
        """Entries whose transcript or final text contains ``query``, newest first.

        Matching is case-insensitive.
        """
        needle = query.strip().lower()
        matches = []
        for entry in reversed(self._read_entries()):
            if len(matches) >= limit:
                break
            haystacks = (entry.get("transcript") or "", entry.get("final_text") or "")
            if any(needle in str(text).lower() for text in haystacks):
                matches.append(entry)
        return matches

    def delete(self, entry_id: str) -> bool:
        try:
            with self._lock:
                entries = self._read_entries()
                kept = [e for e in entries if e.get("id") != entry_id]
                if len(kept) == len(entries):
                    return False
                body = "".join(json.dumps(e, ensure_ascii=False) + "\n" for e in kept)
                self._path.write_text(body, encoding="utf-8")
        except OSError as exc:
            raise PersistenceFailure(f"Failed to delete history entry: {exc}") from exc
        logger.info("History entry %s deleted", entry_id)
        return True

    def clear(self) -> None:
        with self._lock:
            if self._path.exists():
                self._path.unlink()
        logger.info("History cleared")

    def _rotate_if_needed(self) -> None:
        if not self._path.exists():
            return
        size_mb = self._path.stat().st_size / (1024 * 1024)
        if size_mb < self._max_size_mb:
            return

        # Keep the newest half.
        lines = self._path.read_text(encoding="utf-8").splitlines()
        keep_count = len(lines) // 2
        if keep_count > 0:
            self._path.write_text("\n".join(lines[-keep_count:]) + "\n", encoding="utf-8")
        else:
            self._path.write_text("", encoding="utf-8")
        logger.info("History rotated: kept %d of %d entries", keep_count, len(lines))

    def _read_entries(self) -> list[dict]:
        if not self._path.exists():
            return []
        try:
            lines = self._path.read_text(encoding="utf-8").splitlines()
        except OSError as exc:
            logger.warning("Failed to read history: %s", exc)
            return []
        entries = []
        for line in lines:
            try:
                entry = json.loads(line)
            except json.JSONDecodeError:
                continue
            if isinstance(entry, dict):
                entries.append(entry)
        return entries
