from __future__ import annotations

import random
import threading
from unittest.mock import Mock, patch

import pytest

from lessonwatch.domain import BusyError, FetchError
from lessonwatch.scheduler import JitteredInterval, run_forever


def test_next_delay_stays_within_jitter_bounds() -> None:
    interval = JitteredInterval(base_seconds=600, jitter_seconds=120)
    rng = random.Random(42)
    delays = [interval.next_delay(rng) for _ in range(200)]

    assert all(480 <= d <= 720 for d in delays)
    assert len(set(delays)) > 1


def test_next_delay_without_jitter_is_constant() -> None:
    assert JitteredInterval(base_seconds=30).next_delay() == 30


def test_next_delay_never_drops_below_one_second() -> None:
    assert JitteredInterval(base_seconds=0.2, jitter_seconds=0.1).next_delay(random.Random(1)) == 1.0


class _TickingEvent(threading.Event):
    """Lets `ticks` waits pass immediately, then reports the stop flag."""

    def __init__(self, ticks: int) -> None:
        super().__init__()
        self.ticks = ticks
        self.delays: list[float] = []

    def wait(self, timeout: float | None = None) -> bool:
        self.delays.append(timeout or 0.0)
        if self.ticks <= 0:
            return True
        self.ticks -= 1
        return False


@pytest.mark.parametrize("failure", [BusyError("busy"), FetchError("down"), RuntimeError("boom")])
def test_run_forever_survives_failed_cycles(failure: Exception) -> None:
    orchestrator = Mock()
    orchestrator.refresh.side_effect = [failure, None, None]
    stop = _TickingEvent(ticks=3)

    run_forever(orchestrator, JitteredInterval(600, 120), stop_event=stop, rng=random.Random(0))

    assert orchestrator.refresh.call_count == 3
    orchestrator.refresh.assert_called_with(notify_from_own_actions=False)
    assert all(480 <= d <= 720 for d in stop.delays)


def test_run_forever_stops_before_refresh_when_event_set() -> None:
    orchestrator = Mock()
    stop = _TickingEvent(ticks=0)

    with patch("lessonwatch.scheduler.logger") as log:
        run_forever(orchestrator, JitteredInterval(10), stop_event=stop)

    orchestrator.refresh.assert_not_called()
    log.info.assert_called()
