"""Global hotkey driving recording, push-to-talk or toggle."""

from __future__ import annotations

import logging
import threading
from typing import Callable, Optional

from config import PUSH_TO_TALK, TOGGLE

try:
    from pynput import keyboard
except Exception:  # pragma: no cover
    keyboard = None  # type: ignore

logger = logging.getLogger(__name__)


class RecordingHotkey:
    """Turns key press/release events into recording start/stop calls.

    In push-to-talk mode holding the key records; in toggle mode each press
    flips between recording and stopped.
    """

    def __init__(self, hotkey_name: str = "Key.alt_l", mode: str = PUSH_TO_TALK) -> None:
        if mode not in (PUSH_TO_TALK, TOGGLE):
            raise ValueError(f"unknown recording mode: {mode}")
        self._hotkey_name = hotkey_name
        self._mode = mode
        self._listener: Optional[object] = None
        self._held = False
        self._recording = False
        self._lock = threading.Lock()
        self._on_start: Callable[[], None] = lambda: None
        self._on_stop: Callable[[], None] = lambda: None

    @property
    def mode(self) -> str:
        return self._mode

    def start(self, on_start: Callable[[], None], on_stop: Callable[[], None]) -> None:
        if keyboard is None:
            raise RuntimeError("pynput is not installed")
        self._on_start = on_start
        self._on_stop = on_stop
        self._listener = keyboard.Listener(on_press=self.key_down, on_release=self.key_up)
        self._listener.start()
        logger.info("Hotkey %s active (%s)", self._hotkey_name, self._mode)

    def stop(self) -> None:
        listener = self._listener
        if listener is not None:
            listener.stop()
            self._listener = None

    def key_down(self, key: object) -> None:
        if str(key) != self._hotkey_name:
            return
        with self._lock:
            if self._held:
                return  # key repeat
            self._held = True
            if self._mode == TOGGLE and self._recording:
                self._recording = False
                action = self._on_stop
            else:
                self._recording = True
                action = self._on_start
        action()

    def key_up(self, key: object) -> None:
        if str(key) != self._hotkey_name:
            return
        with self._lock:
            if not self._held:
                return
            self._held = False
            if self._mode != PUSH_TO_TALK or not self._recording:
                return
            self._recording = False
        self._on_stop()
