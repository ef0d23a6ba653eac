"""Application entrypoint."""

from __future__ import annotations

import argparse
import logging
import sys
from typing import Optional, Sequence

from ai_functions import LlmFunctionRunner
from auto_paste import ClipboardPasteService
from config import DEFAULT_PROVIDER_CONFIGS, JsonConfigStore
from dispatcher import SignalDispatcher
from history import JsonlHistoryStore
from hotkey import RecordingHotkey
from logging_setup import setup_logging
from models import CycleState, PipelineStatus
from overlay import OverlayWindow
from pipeline import PipelineOrchestrator
from recorder import RecorderCommands, SessionAudioStore, SoundDeviceRecorder
from rules import RuleRegistry
from transcriber import DashscopeTranscriber
from transform_chain import TransformChainRunner

try:
    from PySide6.QtCore import QObject, QSize, Signal
    from PySide6.QtGui import QAction, QActionGroup, QBrush, QColor, QIcon, QPainter, QPixmap
    from PySide6.QtWidgets import QApplication, QInputDialog, QMenu, QMessageBox, QSystemTrayIcon
except Exception as exc:  # pragma: no cover
    raise SystemExit(f"PySide6 is required to run the desktop app: {exc}")

logger = logging.getLogger(__name__)


def _create_icon(color: str = "#888888", size: int = 22) -> QIcon:
    """Generate a simple circular tray icon with the given color."""
    pixmap = QPixmap(QSize(size, size))
    pixmap.fill(QColor(0, 0, 0, 0))
    painter = QPainter(pixmap)
    painter.setRenderHint(QPainter.Antialiasing, True)
    painter.setBrush(QBrush(QColor(color)))
    painter.setPen(QColor(color))
    painter.drawEllipse(2, 2, size - 4, size - 4)
    painter.end()
    return QIcon(pixmap)


ICON_IDLE = "#888888"
ICON_RECORDING = "#FF4444"
ICON_BUSY = "#3A8DFF"


class UIBridge(QObject):
    visible_signal = Signal(bool)
    level_signal = Signal(float)
    status_signal = Signal(str)
    error_signal = Signal(str)
    state_signal = Signal(str, str)


class BridgedIndicator:
    """Indicator collaborator that forwards to the Qt thread."""

    def __init__(self, bridge: UIBridge) -> None:
        self._bridge = bridge

    def set_visible(self, visible: bool) -> None:
        self._bridge.visible_signal.emit(visible)


class App:
    def __init__(self) -> None:
        self.app = QApplication(sys.argv)
        self.app.setQuitOnLastWindowClosed(False)
        self.config_store = JsonConfigStore()
        self.overlay = OverlayWindow()
        self.ui = UIBridge()
        self.ui.visible_signal.connect(self.overlay.set_visible)
        self.ui.level_signal.connect(self.overlay.set_level)
        self.ui.status_signal.connect(self.overlay.set_status)
        self.ui.error_signal.connect(self._on_error_ui)
        self.ui.state_signal.connect(self._on_state_change_ui)

        self.ai_runner = LlmFunctionRunner()
        audio_store = SessionAudioStore()
        self.orchestrator = PipelineOrchestrator(
            transcriber=DashscopeTranscriber(audio_store),
            rule_source=RuleRegistry(),
            transform_runner=TransformChainRunner(self.ai_runner),
            paste_service=ClipboardPasteService(),
            history_store=JsonlHistoryStore(),
            indicator=BridgedIndicator(self.ui),
            settings_provider=self.config_store.snapshot,
            on_state_change=self._on_state_change,
            on_status=self._on_status,
            on_error=self._on_error,
            on_level=self.ui.level_signal.emit,
        )
        self.dispatcher = SignalDispatcher(self.orchestrator)
        self.recorder = SoundDeviceRecorder(emit=self.dispatcher.post, audio_store=audio_store)
        self.recorder_commands = RecorderCommands(self.recorder, on_error=self.ui.error_signal.emit)
        self.hotkey = RecordingHotkey(
            hotkey_name=self.config_store.get_hotkey(),
            mode=self.config_store.get_recording_mode(),
        )

        self.tray = QSystemTrayIcon()
        self.tray.setIcon(_create_icon(ICON_IDLE))
        self.tray.setToolTip("Dictation — Ready")
        self._setup_menu()
        self.tray.show()

    def _setup_menu(self) -> None:
        menu = QMenu()

        stt_key_action = QAction("Set DashScope API Key", menu)
        stt_key_action.triggered.connect(lambda: self._set_api_key("dashscope"))
        menu.addAction(stt_key_action)

        llm_key_action = QAction("Set AI Provider API Key", menu)
        llm_key_action.triggered.connect(
            lambda: self._set_api_key(self.config_store.get_llm_provider())
        )
        menu.addAction(llm_key_action)

        provider_menu = menu.addMenu("AI Provider")
        provider_group = QActionGroup(provider_menu)
        current_provider = self.config_store.get_llm_provider()
        for provider in DEFAULT_PROVIDER_CONFIGS:
            action = QAction(provider, provider_menu, checkable=True)
            action.setChecked(provider == current_provider)
            action.triggered.connect(
                lambda _checked=False, pid=provider: self.config_store.set_llm_provider(pid)
            )
            provider_group.addAction(action)
            provider_menu.addAction(action)

        menu.addSeparator()
        ai_menu = menu.addMenu("AI Function")
        group = QActionGroup(ai_menu)
        selected = self.config_store.get_selected_ai_function()
        choices: list[tuple[Optional[str], str]] = [(None, "None")]
        choices += [(fn.id, fn.name) for fn in self.ai_runner.list_functions()]
        for function_id, name in choices:
            action = QAction(name, ai_menu, checkable=True)
            action.setChecked(function_id == selected)
            action.triggered.connect(
                lambda _checked=False, fid=function_id: self.config_store.set_selected_ai_function(fid)
            )
            group.addAction(action)
            ai_menu.addAction(action)

        rules_menu = menu.addMenu("Rules")
        for rule in self.config_store.get_rules():
            action = QAction(rule.name or rule.id, rules_menu, checkable=True)
            action.setChecked(rule.enabled)
            action.toggled.connect(
                lambda checked, rid=rule.id: self.config_store.set_rule_enabled(rid, checked)
            )
            rules_menu.addAction(action)

        vocabulary_action = QAction("Edit Vocabulary", menu)
        vocabulary_action.triggered.connect(self._edit_vocabulary)
        menu.addAction(vocabulary_action)

        hotkey_action = QAction("Set Hotkey", menu)
        hotkey_action.triggered.connect(self._set_hotkey)
        menu.addAction(hotkey_action)

        menu.addSeparator()
        quit_action = QAction("Quit", menu)
        quit_action.triggered.connect(self.quit)
        menu.addAction(quit_action)

        self.tray.setContextMenu(menu)

    def _set_api_key(self, provider: str) -> None:
        value, ok = QInputDialog.getText(None, "API Key", f"{provider} API Key")
        if not ok:
            return
        self.config_store.set_api_key(provider, value.strip())
        QMessageBox.information(None, "Saved", "API Key saved, used from the next recording.")

    def _edit_vocabulary(self) -> None:
        value, ok = QInputDialog.getText(
            None,
            "Vocabulary",
            "Comma-separated names and terms to help recognition",
            text=", ".join(self.config_store.get_vocabulary()),
        )
        if not ok:
            return
        self.config_store.set_vocabulary(value.split(","))

    def _set_hotkey(self) -> None:
        value, ok = QInputDialog.getText(
            None, "Hotkey", "Use pynput key format, e.g. Key.alt_l"
        )
        if not ok or not value:
            return
        self.config_store.set_hotkey(value)
        QMessageBox.information(None, "Saved", "Hotkey saved. Restart app to apply.")

    # ------------------------------------------------------------------
    # Callbacks (called from worker threads → emit signals for UI thread)
    # ------------------------------------------------------------------

    def _on_state_change(self, from_state: CycleState, to_state: CycleState) -> None:
        self.ui.state_signal.emit(from_state.value, to_state.value)

    def _on_status(self, status: PipelineStatus) -> None:
        self.ui.status_signal.emit(status.value)

    def _on_error(self, code: str, message: str) -> None:
        self.ui.error_signal.emit(message or code)

    # ------------------------------------------------------------------
    # UI thread handlers (safe for Qt)
    # ------------------------------------------------------------------

    def _on_error_ui(self, msg: str) -> None:
        self.overlay.show_error(msg)
        self.tray.showMessage("Dictation", msg, QSystemTrayIcon.Warning, 3000)

    def _on_state_change_ui(self, from_state: str, to_state: str) -> None:
        if to_state in (CycleState.WILL_START.value, CycleState.RECORDING.value):
            self.tray.setIcon(_create_icon(ICON_RECORDING))
            self.tray.setToolTip("Dictation — Recording...")
            self.overlay.set_status("recording")
        elif to_state in (CycleState.TRANSCRIBING.value, CycleState.AI_PROCESSING.value):
            self.tray.setIcon(_create_icon(ICON_BUSY))
            self.tray.setToolTip("Dictation — Processing...")
        else:
            self.tray.setIcon(_create_icon(ICON_IDLE))
            self.tray.setToolTip("Dictation — Ready")

    # ------------------------------------------------------------------
    # Hotkey handlers
    # ------------------------------------------------------------------

    def _on_record_start(self) -> None:
        self.recorder_commands.request_start()

    def _on_record_stop(self) -> None:
        self.recorder_commands.request_stop()

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def run(self) -> int:
        self.dispatcher.start()
        try:
            self.hotkey.start(on_start=self._on_record_start, on_stop=self._on_record_stop)
        except Exception as exc:
            self.overlay.show_error(f"Hotkey disabled: {exc}")
        return self.app.exec()

    def quit(self) -> None:
        self.hotkey.stop()
        self.recorder_commands.request_stop()
        self.recorder_commands.shutdown(wait=False)
        self.dispatcher.stop()
        self.orchestrator.shutdown(wait=False)
        self.app.quit()


def main(argv: Optional[Sequence[str]] = None) -> int:
    parser = argparse.ArgumentParser(description="Hotkey dictation with auto-paste")
    parser.add_argument("--debug", action="store_true", help="also log to stderr at DEBUG level")
    args = parser.parse_args(argv)
    setup_logging(debug=args.debug)
    app = App()
    return app.run()


if __name__ == "__main__":
    raise SystemExit(main())
