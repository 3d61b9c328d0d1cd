from __future__ import annotations

import logging
import random
import threading
from dataclasses import dataclass

from lessonwatch.domain import BusyError, FetchError
from lessonwatch.orchestrator import RefreshOrchestrator

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class JitteredInterval:
    base_seconds: float
    jitter_seconds: float = 0.0

    def next_delay(self, rng: random.Random | None = None) -> float:
        rng = rng or random
        skew = rng.uniform(-self.jitter_seconds, self.jitter_seconds) if self.jitter_seconds else 0.0
        return max(1.0, self.base_seconds + skew)


def run_forever(
    orchestrator: RefreshOrchestrator,
    interval: JitteredInterval,
    stop_event: threading.Event | None = None,
    rng: random.Random | None = None,
) -> None:
    stop_event = stop_event or threading.Event()
    logger.info("Timer started. Interval=%ss +/- %ss", interval.base_seconds, interval.jitter_seconds)

    while True:
        delay = interval.next_delay(rng)
        logger.debug("Next refresh in %.0f s", delay)
        if stop_event.wait(delay):
            break

        try:
            orchestrator.refresh(notify_from_own_actions=False)
        except BusyError:
            logger.info("Refresh already running, skipping this tick")
        except FetchError:
            # Already logged by the orchestrator; the next tick retries.
            pass
        except Exception as e:
            logger.error("Refresh failed in run_forever (%s: %s)", type(e).__name__, e)

    logger.info("Timer stopped.")


def start_timer_thread(
    orchestrator: RefreshOrchestrator,
    interval: JitteredInterval,
    stop_event: threading.Event,
) -> threading.Thread:
    thread = threading.Thread(
        target=run_forever,
        args=(orchestrator, interval, stop_event),
        name="lessonwatch-timer",
        daemon=True,
    )
    thread.start()
    return thread
