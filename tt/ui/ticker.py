from PySide6.QtCore import Qt, QTimer

from tt.core.ticker import Ticker, TickerHandle


# Ticks off the Qt event loop with a QTimer, the same way the old window-level 1s tick did. Each start() gets its
# own QTimer so cancelling one handle can never stop another.
class QtTicker(Ticker):

    def __init__(self, interval=1.0, parent=None):
        super().__init__(interval)
        self._parent = parent

    def start(self, callback):
        timer = QTimer(self._parent)
        timer.setTimerType(Qt.TimerType.PreciseTimer)
        timer.timeout.connect(callback)
        timer.start(int(self.interval * 1000))

        def stop():
            timer.stop()
            timer.deleteLater()
        return TickerHandle(stop)
