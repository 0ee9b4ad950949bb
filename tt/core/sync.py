import asyncio

from tt.common.logger import log


# Periodically re-reads the running timer so changes made elsewhere (another browser tab, an admin stopping the
# timer) show up here. A round is skipped while a transition is in flight, since a refresh dispatched after it would
# outrank the transition's own response.
class RunningTimerPoller:

    def __init__(self, reconciler, interval=5.0):
        self.reconciler = reconciler
        self.interval = float(interval)
        self._task = None

    @property
    def running(self):
        return self._task is not None and not self._task.done()

    def start(self):
        if self.running:
            return
        self._task = asyncio.get_running_loop().create_task(self._run())
        log.info(f"Started running-timer polling every {self.interval}s")

    async def stop(self):
        task, self._task = self._task, None
        if task is None:
            return
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass
        log.info("Stopped running-timer polling")

    async def poll_once(self):
        if self.reconciler.busy:
            log.debug("Skipping refresh, a transition is in flight")
            return None
        result = await self.reconciler.refresh()
        if not result.ok:
            log.warning(f"Running-timer refresh failed: {result.error!r}")
        return result

    async def _run(self):
        while True:
            await asyncio.sleep(self.interval)
            await self.poll_once()
