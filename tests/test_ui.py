"""Tests for the Qt side: QtTicker and the compact timer widget.

Runs on the offscreen Qt platform, no display needed.
"""

import os
import unittest

os.environ.setdefault("QT_QPA_PLATFORM", "offscreen")

from timer_fakes import FakeAuthority, FakeClock, ManualTicker, paused, running, settle

from PySide6.QtCore import QEventLoop, QTimer
from PySide6.QtWidgets import QApplication

from tt.core.reconciler import TimerReconciler
from tt.core.sync import RunningTimerPoller
from tt.ui.app import TimerWindow
from tt.ui.compact_timer import CompactTimer
from tt.ui.ticker import QtTicker


def _app():
    return QApplication.instance() or QApplication([])


class TestQtTicker(unittest.TestCase):

    def setUp(self):
        self.app = _app()

    def spin(self, ms):
        loop = QEventLoop()
        QTimer.singleShot(ms, loop.quit)
        loop.exec()

    def test_fires_until_cancelled(self):
        fired = []
        handle = QtTicker(interval=0.01).start(lambda: fired.append(1))
        self.spin(120)
        handle.cancel()
        count = len(fired)
        self.assertGreaterEqual(count, 3)
        self.spin(60)
        self.assertEqual(len(fired), count)
        self.assertFalse(handle.active)

    def test_handles_are_independent(self):
        first, second = [], []
        ticker = QtTicker(interval=0.01)
        h1 = ticker.start(lambda: first.append(1))
        h2 = ticker.start(lambda: second.append(1))
        h1.cancel()
        self.spin(80)
        h2.cancel()
        self.assertEqual(first, [])
        self.assertGreaterEqual(len(second), 2)


class TestCompactTimer(unittest.TestCase):

    def setUp(self):
        self.app = _app()
        self.clock = FakeClock()
        self.ticker = ManualTicker()
        self.reconciler = TimerReconciler(FakeAuthority(), ticker=self.ticker, clock=self.clock)
        self.widget = CompactTimer(self.reconciler)

    def tearDown(self):
        self.widget.close()
        self.widget.deleteLater()
        self.reconciler.close()

    def test_hidden_without_timer(self):
        self.assertTrue(self.widget.isHidden())

    def test_running_timer_shows_time_and_pause(self):
        self.reconciler.absorb(running(3600))
        self.assertFalse(self.widget.isHidden())
        self.assertEqual(self.widget.time_lbl.text(), "01:00:00")
        self.assertEqual(self.widget.name_lbl.toolTip(), "VAT return")
        self.assertFalse(self.widget.pause_btn.isHidden())
        self.assertTrue(self.widget.resume_btn.isHidden())

    def test_ticks_update_label(self):
        self.reconciler.absorb(running(0))
        self.clock.advance(75)
        self.ticker.fire()
        self.assertEqual(self.widget.time_lbl.text(), "00:01:15")
        self.assertEqual(self.widget.last_view.displayed_elapsed_seconds, 75)

    def test_paused_timer_offers_resume(self):
        self.reconciler.absorb(paused(65))
        self.assertEqual(self.widget.time_lbl.text(), "00:01:05")
        self.assertTrue(self.widget.pause_btn.isHidden())
        self.assertFalse(self.widget.resume_btn.isHidden())

    def test_stop_hides_again(self):
        self.reconciler.absorb(running(0))
        self.reconciler.absorb(None)
        self.assertTrue(self.widget.isHidden())

    def test_messages(self):
        self.widget.show_message("There is already a running timer for this employee")
        self.assertFalse(self.widget.message_lbl.isHidden())
        self.widget.show_message("")
        self.assertTrue(self.widget.message_lbl.isHidden())

    def test_closing_unsubscribes(self):
        self.reconciler.absorb(running(0))
        self.widget.close()
        self.reconciler.absorb(paused(5))
        self.assertTrue(self.widget.last_view.is_running)


class TestTimerWindow(unittest.IsolatedAsyncioTestCase):

    def setUp(self):
        self.app = _app()
        self.authority = FakeAuthority()
        self.reconciler = TimerReconciler(self.authority, ticker=ManualTicker(), clock=FakeClock())
        self.poller = RunningTimerPoller(self.reconciler, interval=60)
        self.window = TimerWindow(self.reconciler, self.poller, self.authority)

    def tearDown(self):
        self.reconciler.close()
        self.window.deleteLater()

    async def test_startup_refreshes_then_polls(self):
        self.authority.queue(running(30))
        await self.window.startup()
        self.assertEqual(self.authority.calls, [("running",)])
        self.assertTrue(self.poller.running)
        self.assertTrue(self.window.idle_lbl.isHidden())
        await self.window.shutdown()
        self.assertFalse(self.poller.running)

    async def test_close_waits_for_shutdown(self):
        self.window.show()
        self.poller.start()
        self.window.close()
        # Still open until the poller and HTTP client are released
        self.assertTrue(self.window.isVisible())

        await settle()
        await settle()
        self.assertTrue(self.authority.closed)
        self.assertFalse(self.poller.running)
        self.assertFalse(self.window.isVisible())


if __name__ == "__main__":
    unittest.main()
