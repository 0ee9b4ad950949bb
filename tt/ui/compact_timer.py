"""Compact running-timer widget: status dot, elapsed time, subject and controls.

The widget only ever reads TimerView objects pushed by the reconciler.  Button
presses schedule the reconciler's transitions on the running asyncio loop and
report failures in the message label.
"""

import asyncio

from PySide6.QtCore import Qt
from PySide6.QtGui import QFont, QFontDatabase, QFontMetrics
from PySide6.QtWidgets import QHBoxLayout, QLabel, QPushButton, QVBoxLayout, QWidget

from tt.common.logger import log
from tt.core.timer_state import TimerStatus

# Status dot colours
_DOT_COLORS = {
    TimerStatus.RUNNING: "#10b981",
    TimerStatus.PAUSED: "#f59e0b",
    TimerStatus.IDLE: "#d1d5db",
}

# Longest subject label before it gets elided
_MAX_NAME_W = 160


class CompactTimer(QWidget):

    def __init__(self, reconciler, parent=None):
        super().__init__(parent)
        self.setObjectName("compactTimer")
        self._reconciler = reconciler
        self._tasks = set()
        self._last_view = None

        outer = QVBoxLayout(self)
        outer.setContentsMargins(6, 4, 6, 4)
        outer.setSpacing(2)

        row = QHBoxLayout()
        row.setSpacing(8)
        outer.addLayout(row)

        # Col 0: status dot
        self.dot_lbl = QLabel("●")
        self.dot_lbl.setAlignment(Qt.AlignCenter)
        row.addWidget(self.dot_lbl)

        # Col 1: elapsed time, fixed width so the row doesn't jitter every second
        self.time_lbl = QLabel("00:00:00")
        time_font = QFontDatabase.systemFont(QFontDatabase.SystemFont.FixedFont)
        time_font.setWeight(QFont.Weight.Medium)
        self.time_lbl.setFont(time_font)
        self.time_lbl.setMinimumWidth(QFontMetrics(time_font).horizontalAdvance("000:00:00"))
        row.addWidget(self.time_lbl)

        # Col 2: subject
        self.name_lbl = QLabel("")
        self.name_lbl.setStyleSheet("color: #6b7280;")
        row.addWidget(self.name_lbl, 1)

        # Col 3: controls
        self.pause_btn = QPushButton("Pause")
        self.pause_btn.clicked.connect(lambda _=False: self._dispatch(self._reconciler.pause))
        row.addWidget(self.pause_btn)

        self.resume_btn = QPushButton("Resume")
        self.resume_btn.clicked.connect(lambda _=False: self._dispatch(self._reconciler.resume))
        row.addWidget(self.resume_btn)

        self.stop_btn = QPushButton("Stop")
        self.stop_btn.clicked.connect(lambda _=False: self._dispatch(self._reconciler.stop))
        row.addWidget(self.stop_btn)

        # Last failure, cleared on the next successful operation
        self.message_lbl = QLabel("")
        self.message_lbl.setStyleSheet("color: #dc2626;")
        self.message_lbl.setVisible(False)
        outer.addWidget(self.message_lbl)

        self._unsubscribe = reconciler.subscribe(self.render)
        self.render(reconciler.view)

    def render(self, view):
        self._last_view = view
        if view.status is TimerStatus.IDLE and view.pending is None:
            self.setVisible(False)
            return
        self.setVisible(True)

        self.dot_lbl.setStyleSheet(f"color: {_DOT_COLORS[view.status]};")
        self.time_lbl.setText(view.formatted)
        fm = QFontMetrics(self.name_lbl.font())
        self.name_lbl.setText(fm.elidedText(view.label, Qt.ElideRight, _MAX_NAME_W))
        self.name_lbl.setToolTip(view.label)

        self.pause_btn.setVisible(view.is_running)
        self.resume_btn.setVisible(view.is_paused)
        busy = view.pending is not None
        self.pause_btn.setEnabled(not busy)
        self.resume_btn.setEnabled(not busy)
        self.stop_btn.setEnabled(view.pending != "stop")

    @property
    def last_view(self):
        return self._last_view

    def show_message(self, text):
        self.message_lbl.setText(text)
        self.message_lbl.setVisible(bool(text))

    def _dispatch(self, operation):
        task = asyncio.ensure_future(operation())
        self._tasks.add(task)
        task.add_done_callback(self._on_done)

    def _on_done(self, task):
        self._tasks.discard(task)
        if task.cancelled():
            return
        error = task.exception()
        if error is not None:
            log.error("Timer operation crashed", exc_info=error)
            self.show_message("Something went wrong, see the log for details.")
            return
        result = task.result()
        if result.ok:
            self.show_message("")
        else:
            log.info(f"{result.operation} failed: {result.error}")
            self.show_message(str(result.error))

    def closeEvent(self, event):
        self._unsubscribe()
        super().closeEvent(event)
