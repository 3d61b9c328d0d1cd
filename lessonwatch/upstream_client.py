from __future__ import annotations

import calendar
import datetime as dt
import logging
from typing import Any, Callable

import httpx
from tenacity import RetryCallState, retry, stop_after_attempt, wait_exponential

from lessonwatch.config import Settings
from lessonwatch.domain import FetchError, Lesson, Snapshot, dedupe_lessons

logger = logging.getLogger(__name__)

# Positions inside one raw lesson record of the "app" list.
_START = 0
_END = 1
_ID = 2
_CAPACITY = 3
_OCCUPANCY = 4
_TYPE_NAME = 7

# Both indicators carry this value when the lesson still accepts bookings.
_UNBOUNDED = -1

_QUERY_TIME_FORMAT = "%Y-%m-%d %H:%M"


def add_months(value: dt.datetime, months: int) -> dt.datetime:
    month_index = value.month - 1 + months
    year = value.year + month_index // 12
    month = month_index % 12 + 1
    day = min(value.day, calendar.monthrange(year, month)[1])
    return value.replace(year=year, month=month, day=day)


def _parse_timestamp(raw: Any) -> dt.datetime:
    if isinstance(raw, bool) or not isinstance(raw, (int, float)):
        raise ValueError(f"timestamp must be a number, got {raw!r}")
    return dt.datetime.fromtimestamp(raw, tz=dt.timezone.utc)


def parse_lesson(raw: Any, my_lesson_ids: set[Any]) -> Lesson:
    if not isinstance(raw, (list, tuple)) or len(raw) <= _TYPE_NAME:
        raise ValueError("record is not a list with all lesson fields")

    lesson_id = raw[_ID]
    if lesson_id is None or isinstance(lesson_id, (bool, list, dict)):
        raise ValueError(f"invalid lesson id {lesson_id!r}")

    start_date = _parse_timestamp(raw[_START])
    end_date = _parse_timestamp(raw[_END])
    if start_date >= end_date:
        raise ValueError("lesson starts after it ends")

    type_name = raw[_TYPE_NAME]
    if not isinstance(type_name, str) or not type_name.strip():
        raise ValueError("lesson type name is empty")

    return Lesson(
        id=lesson_id,
        start_date=start_date,
        end_date=end_date,
        type_name=type_name.strip(),
        has_space=raw[_CAPACITY] == _UNBOUNDED and raw[_OCCUPANCY] == _UNBOUNDED,
        reservation=lesson_id in my_lesson_ids,
    )


def parse_lessons(payload: Any) -> Snapshot:
    """Turn the lessons endpoint payload into a deduplicated snapshot.

    The payload is ``{"app": [raw lesson, ...], "mine": [lesson id, ...]}``.
    Broken records are skipped with a warning; a broken payload is a FetchError.
    """

    if not isinstance(payload, dict) or not isinstance(payload.get("app"), list):
        raise FetchError("Unexpected lessons payload: missing 'app' list")

    mine_raw = payload.get("mine") or []
    if not isinstance(mine_raw, list):
        raise FetchError("Unexpected lessons payload: 'mine' is not a list")
    my_lesson_ids = {i for i in mine_raw if isinstance(i, (int, str)) and not isinstance(i, bool)}

    lessons: list[Lesson] = []
    for index, raw in enumerate(payload["app"]):
        try:
            lessons.append(parse_lesson(raw, my_lesson_ids))
        except (ValueError, TypeError, OverflowError, OSError) as e:
            logger.warning("Skipping malformed lesson record #%d (%s)", index, e)

    snapshot = dedupe_lessons(lessons)
    if len(snapshot) != len(lessons):
        logger.warning("Dropped %d duplicate lesson id(s)", len(lessons) - len(snapshot))
    return snapshot


def _short_exc(retry_state: RetryCallState) -> str | None:
    if retry_state.outcome is None or not retry_state.outcome.failed:
        return None
    exc = retry_state.outcome.exception()
    if exc is None:
        return None
    msg = str(exc).strip()
    return f"{type(exc).__name__}: {msg}" if msg else type(exc).__name__


def _log_after_attempt(retry_state: RetryCallState) -> None:
    if retry_state.outcome is not None and retry_state.outcome.failed:
        reason = _short_exc(retry_state)
        logger.warning("Fetch attempt %s failed (%s)", retry_state.attempt_number, reason or "unknown error")


def _log_before_sleep(retry_state: RetryCallState) -> None:
    sleep_seconds = getattr(retry_state.next_action, "sleep", None)
    if sleep_seconds is None:
        logger.info("Waiting before fetch attempt %s", retry_state.attempt_number + 1)
        return
    logger.info("Waiting %.0f s before fetch attempt %s", sleep_seconds, retry_state.attempt_number + 1)


class UpstreamClient:
    """Authenticated access to the reservation service.

    The cookie jar of the underlying ``httpx.Client`` carries the session
    between the login and the lessons requests.
    """

    def __init__(
        self,
        settings: Settings,
        *,
        http_client: httpx.Client | None = None,
        now: Callable[[], dt.datetime] | None = None,
    ) -> None:
        self._settings = settings
        self._client = http_client or httpx.Client(timeout=settings.request_timeout_seconds)
        self._now = now or (lambda: dt.datetime.now(dt.timezone.utc))
        self._logged_in = False

    def __call__(self) -> Snapshot:
        return self.fetch_snapshot()

    def close(self) -> None:
        self._client.close()

    def log_in(self) -> None:
        settings = self._settings
        logger.info("Logging in: %s", settings.login_url)

        # The landing page hands out the session cookie the login form expects.
        r = self._client.get(settings.base_url, follow_redirects=True)
        r.raise_for_status()

        r = self._client.post(
            settings.login_url,
            data={"name": settings.login_name, "password": settings.login_password},
            follow_redirects=True,
        )
        r.raise_for_status()
        self._logged_in = True

    def _fetch_once(self) -> Snapshot:
        if not self._logged_in:
            self.log_in()

        now = self._now()
        params = {
            "afrom": now.strftime(_QUERY_TIME_FORMAT),
            "ato": add_months(now, self._settings.lookahead_months).strftime(_QUERY_TIME_FORMAT),
        }

        logger.info("Fetching lessons: %s", self._settings.lessons_url)
        try:
            r = self._client.get(self._settings.lessons_url, params=params)
            r.raise_for_status()
            payload = r.json()
            return parse_lessons(payload)
        except (httpx.HTTPError, ValueError, FetchError):
            # Most often an expired session answering with the login page.
            self._logged_in = False
            raise

    def fetch_snapshot(self) -> Snapshot:
        decorated = retry(
            stop=stop_after_attempt(self._settings.fetch_retry_attempts),
            wait=wait_exponential(multiplier=2, min=2, max=8),
            after=_log_after_attempt,
            before_sleep=_log_before_sleep,
            reraise=True,
        )(self._fetch_once)

        try:
            snapshot = decorated()
        except FetchError:
            raise
        except (httpx.HTTPError, ValueError) as e:
            raise FetchError(f"{type(e).__name__}: {e}") from e

        logger.info("Fetched %d lessons.", len(snapshot))
        return snapshot
