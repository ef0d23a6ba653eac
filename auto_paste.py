"""Paste text into the focused application via the clipboard."""

from __future__ import annotations

import logging
import sys
import time

from errors import NO_ACTIVE_TARGET
from models import PasteResult

try:
    import pyperclip
except Exception:  # pragma: no cover
    pyperclip = None  # type: ignore

try:
    from pynput.keyboard import Controller, Key
except Exception:  # pragma: no cover
    Controller = None  # type: ignore
    Key = None  # type: ignore

logger = logging.getLogger(__name__)


def paste_modifier() -> object:
    """Modifier of the platform paste chord (cmd on macOS, ctrl elsewhere)."""
    if Key is None:
        return None
    return Key.cmd if sys.platform == "darwin" else Key.ctrl


class ClipboardPasteService:
    def __init__(self, restore_delay_s: float = 0.1, restore_clipboard: bool = True) -> None:
        self._restore_delay_s = restore_delay_s
        self._restore_clipboard = restore_clipboard

    def paste_text(self, text: str) -> PasteResult:
        if not text.strip():
            return PasteResult(success=False, reason="empty text", clipboard_restored=True)
        if pyperclip is None or Controller is None or Key is None:
            return PasteResult(
                success=False,
                reason="clipboard/keyboard dependency missing",
                clipboard_restored=False,
            )

        old_clip: str | None = None
        try:
            old_clip = pyperclip.paste()
            pyperclip.copy(text)
            modifier = paste_modifier()
            keyboard = Controller()
            with keyboard.pressed(modifier):
                keyboard.press("v")
                keyboard.release("v")
            if not self._restore_clipboard:
                return PasteResult(success=True, reason="ok", clipboard_restored=False)
            time.sleep(self._restore_delay_s)
            pyperclip.copy(old_clip)
            logger.debug("Pasted %d characters", len(text))
            return PasteResult(success=True, reason="ok", clipboard_restored=True)
        except Exception as exc:
            logger.warning("Paste failed: %s", exc)
            # Leave the text on the clipboard so the user can paste manually.
            return PasteResult(
                success=False,
                reason=f"{NO_ACTIVE_TARGET}: {exc}",
                clipboard_restored=False,
            )
