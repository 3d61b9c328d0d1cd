from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from typing import Callable, Sequence

from lessonwatch.diff import classify
from lessonwatch.domain import BusyError, FetchError, Lesson, Snapshot
from lessonwatch.store import UNINITIALIZED, SnapshotStore

logger = logging.getLogger(__name__)

FetchSnapshot = Callable[[], Snapshot]
Notify = Callable[[Sequence[Lesson]], None]


@dataclass(frozen=True)
class CycleResult:
    fetched: int
    freed: Snapshot
    notified: bool
    bootstrap: bool
    notify_error: Exception | None = None


class RefreshOrchestrator:
    """Runs fetch -> diff -> commit -> notify cycles, one at a time.

    Both the timer and the HTTP trigger call :meth:`refresh`; a call that
    arrives while another cycle is running gets :class:`BusyError`.
    """

    def __init__(self, fetch_snapshot: FetchSnapshot, notify: Notify, store: SnapshotStore | None = None) -> None:
        self._fetch_snapshot = fetch_snapshot
        self._notify = notify
        self.store = store if store is not None else SnapshotStore()
        self._cycle_lock = threading.Lock()

    @property
    def busy(self) -> bool:
        return self._cycle_lock.locked()

    def bootstrap(self) -> CycleResult:
        """Startup cycle: fill the store; freed lessons are not mailed."""
        return self.refresh(notify_from_own_actions=False)

    def refresh(self, notify_from_own_actions: bool = False) -> CycleResult:
        if not self._cycle_lock.acquire(blocking=False):
            raise BusyError("A refresh cycle is already in progress")
        try:
            return self._run_cycle(notify_from_own_actions)
        finally:
            self._cycle_lock.release()

    def _run_cycle(self, notify_from_own_actions: bool) -> CycleResult:
        try:
            current = tuple(self._fetch_snapshot())
        except FetchError as e:
            logger.error("Fetch failed, keeping previous snapshot (%s)", e)
            raise
        except Exception as e:
            logger.error("Fetch failed, keeping previous snapshot (%s: %s)", type(e).__name__, e)
            raise FetchError(f"{type(e).__name__}: {e}") from e

        previous = self.store.get()
        bootstrap = previous is UNINITIALIZED
        freed = classify(() if bootstrap else previous, current, notify_from_own_actions)

        self.store.replace(current)

        notified = False
        notify_error: Exception | None = None
        if freed and bootstrap:
            logger.info("Initial snapshot stored, not mailing %d open lessons", len(freed))
        elif freed:
            try:
                self._notify(freed)
                notified = True
            except Exception as e:
                # The snapshot is already committed; the cycle still counts as done.
                logger.warning("Notification failed (%s: %s)", type(e).__name__, e)
                notify_error = e

        logger.info("Refresh done: fetched=%d freed=%d notified=%s", len(current), len(freed), notified)
        return CycleResult(
            fetched=len(current),
            freed=freed,
            notified=notified,
            bootstrap=bootstrap,
            notify_error=notify_error,
        )
