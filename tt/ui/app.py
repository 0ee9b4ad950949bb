import asyncio
import sys
from PySide6 import QtAsyncio
from PySide6.QtCore import Qt
from PySide6.QtWidgets import QApplication, QLabel, QMainWindow, QVBoxLayout, QWidget

from tt.common.logger import log
from tt.core import config, state
from tt.core.reconciler import TimerReconciler
from tt.core.sync import RunningTimerPoller
from tt.core.timer_state import TimerStatus
from tt.net.authority import TimerAuthority
from tt.ui.compact_timer import CompactTimer
from tt.ui.ticker import QtTicker


# Small always-on-top window holding the compact timer, with a placeholder line while no timer exists.
class TimerWindow(QMainWindow):

    def __init__(self, reconciler, poller, authority):
        super().__init__()
        self.setWindowTitle("TaskTimer")
        self.setWindowFlag(Qt.WindowStaysOnTopHint, True)
        self._reconciler = reconciler
        self._poller = poller
        self._authority = authority
        self._shutdown_task = None
        self._shut_down = False

        central = QWidget()
        self.setCentralWidget(central)
        lay = QVBoxLayout(central)
        lay.setContentsMargins(4, 4, 4, 4)

        self.idle_lbl = QLabel("No running timer")
        self.idle_lbl.setAlignment(Qt.AlignCenter)
        self.idle_lbl.setStyleSheet("color: #6b7280;")
        lay.addWidget(self.idle_lbl)

        self.compact = CompactTimer(reconciler)
        lay.addWidget(self.compact)

        self._unsubscribe = reconciler.subscribe(self._on_view)
        self._on_view(reconciler.view)

    def _on_view(self, view):
        self.idle_lbl.setVisible(view.status is TimerStatus.IDLE and view.pending is None)

    async def startup(self):
        result = await self._reconciler.refresh()
        if not result.ok:
            log.warning(f"Initial running-timer refresh failed, showing cached state: {result.error!r}")
            self.compact.show_message(str(result.error))
        self._poller.start()

    async def shutdown(self):
        self._unsubscribe()
        self.compact.close()
        await self._poller.stop()
        self._reconciler.close()
        await self._authority.aclose()
        log.info("Timer window shut down")

    # The first close only schedules shutdown and keeps the window (and with it the event loop) alive. The window
    # closes for real once the poller is stopped and the HTTP client is released.
    def closeEvent(self, event):
        if self._shut_down:
            super().closeEvent(event)
            return
        event.ignore()
        if self._shutdown_task is None:
            self._shutdown_task = asyncio.ensure_future(self.shutdown())
            self._shutdown_task.add_done_callback(self._on_shutdown)

    def _on_shutdown(self, task):
        self._shutdown_task = None
        self._shut_down = True
        if not task.cancelled() and task.exception() is not None:
            log.error("Timer window shutdown failed", exc_info=task.exception())
        self.close()


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------

def main():
    app = QApplication(sys.argv)
    settings = config.load_settings()
    if not settings["employee_id"]:
        log.warning("No employee_id configured, the server will resolve the running timer from the API token")

    authority = TimerAuthority(
        settings["server_url"],
        employee_id=settings["employee_id"],
        api_token=settings["api_token"],
        timeout=settings["request_timeout_s"],
    )
    reconciler = TimerReconciler(
        authority,
        ticker=QtTicker(),
        on_absorb=state.save_cached_snapshot,
    )
    reconciler.absorb(state.load_cached_snapshot())
    poller = RunningTimerPoller(reconciler, settings["refresh_interval_s"])

    window = TimerWindow(reconciler, poller, authority)
    window.show()
    QtAsyncio.run(window.startup(), keep_running=True, quit_qapp=True)
    log.info("Event loop finished, exiting")
    sys.exit(0)
