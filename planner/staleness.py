from __future__ import annotations
import logging
import threading
from typing import Callable, Optional

from planner.trip_sync import SyncResult, TripSyncCoordinator

logger = logging.getLogger(__name__)

DEFAULT_POLL_INTERVAL_SECONDS = 30.0


class StalenessWatcher:
    """
    Periodically checks whether the remote copy of a trip moved ahead of us.
    Only reports through `on_report`; it never pulls. `check_now` serves the
    focus/visibility triggers, `stop` tears the timer down.
    """

    def __init__(
        self,
        coordinator: TripSyncCoordinator,
        code: str,
        on_report: Callable[[SyncResult], None],
        interval: float = DEFAULT_POLL_INTERVAL_SECONDS,
    ):
        self.coordinator = coordinator
        self.code = code
        self.on_report = on_report
        self.interval = interval
        self.last_result: Optional[SyncResult] = None
        self._stop = threading.Event()
        self._thread: Optional[threading.Thread] = None

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def check_now(self) -> SyncResult:
        result = self.coordinator.check_remote(self.code)
        self.last_result = result
        self.on_report(result)
        return result

    def start(self) -> "StalenessWatcher":
        if self.running:
            return self
        self._stop.clear()
        self._thread = threading.Thread(target=self._run, name=f"staleness-{self.code}", daemon=True)
        self._thread.start()
        return self

    def stop(self) -> None:
        self._stop.set()
        if self._thread is not None and self._thread is not threading.current_thread():
            self._thread.join(timeout=self.interval)
        self._thread = None

    def _run(self) -> None:
        while not self._stop.wait(self.interval):
            try:
                self.check_now()
            except Exception:
                # a failing report callback must not kill the poll loop
                logger.exception("Staleness check for trip %s failed", self.code)

    def __enter__(self) -> "StalenessWatcher":
        return self.start()

    def __exit__(self, *exc) -> None:
        self.stop()
