"""Floating recording indicator: pipeline status plus a level meter."""

from __future__ import annotations

try:
    from PySide6.QtCore import Qt, QTimer
    from PySide6.QtWidgets import QApplication, QLabel, QProgressBar, QVBoxLayout, QWidget
except Exception:  # pragma: no cover
    Qt = None  # type: ignore
    QTimer = None  # type: ignore
    QApplication = None  # type: ignore
    QLabel = object  # type: ignore
    QProgressBar = object  # type: ignore
    QVBoxLayout = object  # type: ignore
    QWidget = object  # type: ignore

STATUS_TEXT = {
    "recording": "Listening...",
    "transcribing": "Transcribing...",
    "ai-processing": "Applying AI function...",
    "complete": "Done",
}

LABEL_STYLE = "color: white; font-size: 16px; padding: 10px 16px 4px 16px;"
ERROR_STYLE = "color: #FF6B6B; font-size: 16px; padding: 10px 16px 4px 16px;"


class OverlayWindow(QWidget):
    def __init__(self) -> None:
        if Qt is None:
            raise RuntimeError("PySide6 is not installed")
        super().__init__()
        self.setWindowFlags(Qt.WindowStaysOnTopHint | Qt.FramelessWindowHint | Qt.Tool)
        self.setAttribute(Qt.WA_TranslucentBackground, True)
        self.setAttribute(Qt.WA_ShowWithoutActivating, True)
        self.setFixedWidth(320)
        self.setStyleSheet("background: rgba(0,0,0,190); border-radius: 12px;")

        self._label = QLabel("")
        self._label.setStyleSheet(LABEL_STYLE)

        self._meter = QProgressBar()
        self._meter.setRange(0, 100)
        self._meter.setTextVisible(False)
        self._meter.setFixedHeight(6)
        self._meter.setStyleSheet(
            "QProgressBar { background: rgba(255,255,255,40); border: none; margin: 0 16px 10px 16px; }"
            "QProgressBar::chunk { background: #4CD964; border-radius: 3px; }"
        )

        layout = QVBoxLayout()
        layout.setContentsMargins(0, 0, 0, 0)
        layout.addWidget(self._label)
        layout.addWidget(self._meter)
        self.setLayout(layout)

        self._hide_timer: QTimer | None = None

    def set_visible(self, visible: bool) -> None:
        self._cancel_hide_timer()
        if visible:
            self._label.setStyleSheet(LABEL_STYLE)
            self._meter.setValue(0)
            self._center_bottom()
            self.show()
        else:
            self.hide()

    def set_level(self, level: float) -> None:
        self._meter.setValue(int(max(0.0, min(1.0, level)) * 100))

    def set_status(self, status: str) -> None:
        self._label.setText(STATUS_TEXT.get(status, status))

    def show_error(self, text: str, hide_after_ms: int = 2500) -> None:
        self._label.setStyleSheet(ERROR_STYLE)
        self._label.setText(f"⚠️ {text}")
        self._center_bottom()
        self.show()
        self._cancel_hide_timer()
        if QTimer is not None:
            self._hide_timer = QTimer()
            self._hide_timer.setSingleShot(True)
            self._hide_timer.timeout.connect(self.hide)
            self._hide_timer.start(hide_after_ms)

    def _center_bottom(self) -> None:
        if QApplication is None:
            return
        screen = QApplication.primaryScreen()
        if screen is None:
            return
        geom = screen.availableGeometry()
        self.adjustSize()
        x = geom.x() + (geom.width() - self.width()) // 2
        y = geom.y() + geom.height() - self.height() - 60
        self.move(x, y)

    def _cancel_hide_timer(self) -> None:
        if self._hide_timer is not None:
            self._hide_timer.stop()
            self._hide_timer = None
