from PySide6.QtWidgets import QFrame, QLabel, QHBoxLayout, QWidget
from PySide6.QtCore import Qt, QTimer

from playdeck.core.state import Notify

# display time per kind
DURATION_MS = {"info": 3000, "success": 3000, "warn": 5000, "error": 8000}


class Toast(QFrame):
    """Short-lived message floating over the window's bottom-right corner. Click to dismiss."""

    _open: list["Toast"] = []

    def __init__(self, parent: QWidget, text: str, kind: str = "info", ms: int | None = None):
        super().__init__(parent)
        self.setWindowFlags(Qt.ToolTip)
        self.setAttribute(Qt.WA_DeleteOnClose, True)
        self.kind = kind if kind in DURATION_MS else "info"

        self.label = QLabel(text)
        self.label.setWordWrap(True)
        self.label.setMaximumWidth(360)
        layout = QHBoxLayout(self)
        layout.addWidget(self.label)

        self.setObjectName(f"toast-{self.kind}")
        self.setStyleSheet("""
        QFrame { border-radius: 10px; padding: 10px 12px; background: #111827; color: #e5e7eb; }
        QFrame#toast-success { background: #14532d; }
        QFrame#toast-warn { background: #713f12; }
        QFrame#toast-error { background: #7f1d1d; }
        """)

        QTimer.singleShot(ms if ms is not None else DURATION_MS[self.kind], self.close)

    @classmethod
    def from_notify(cls, parent: QWidget, n: Notify) -> "Toast":
        return cls(parent, n.message, n.notify_type)

    def mousePressEvent(self, event):
        self.close()

    def closeEvent(self, event):
        if self in Toast._open:
            Toast._open.remove(self)
        super().closeEvent(event)

    def show_bottom_right(self, margin: int = 16, bottom_offset: int = 0):
        """Show above `bottom_offset` px of the parent (e.g. the transport bar), stacked over older toasts."""
        p = self.parentWidget()
        if not p:
            self.show()
            return
        self.adjustSize()
        stacked = sum(t.height() + 8 for t in Toast._open if t.parentWidget() is p)
        corner = p.mapToGlobal(p.rect().bottomRight())
        self.move(
            corner.x() - self.width() - margin,
            corner.y() - bottom_offset - stacked - self.height() - margin,
        )
        Toast._open.append(self)
        self.show()
