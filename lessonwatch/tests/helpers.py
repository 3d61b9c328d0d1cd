from __future__ import annotations

import datetime as dt

from lessonwatch.config import Settings
from lessonwatch.domain import Lesson

_BASE = dt.datetime(2025, 3, 3, 8, 0, tzinfo=dt.timezone.utc)  # Monday


def lesson(
    lesson_id: int,
    *,
    has_space: bool = True,
    reservation: bool = False,
    day: int = 0,
    hour: int = 0,
    type_name: str = "Yoga",
) -> Lesson:
    start = _BASE + dt.timedelta(days=day, hours=hour)
    return Lesson(
        id=lesson_id,
        start_date=start,
        end_date=start + dt.timedelta(hours=1),
        type_name=type_name,
        has_space=has_space,
        reservation=reservation,
    )


def settings(**overrides: object) -> Settings:
    # Test settings only; no real hosts, credentials or addresses.
    values: dict[str, object] = dict(
        base_url="https://lessons.test/",
        login_url="https://lessons.test/login",
        lessons_url="https://lessons.test/api/lessons",
        login_name="user",
        login_password="secret",
        mailgun_api_key="TEST_KEY",
        mailgun_domain="mg.test",
        mail_from="watch@mg.test",
        mail_to=("me@example.com",),
        mailgun_api_base="https://mailgun.test/v3",
        check_interval_seconds=600,
        check_jitter_seconds=120,
        fetch_retry_attempts=1,
        request_timeout_seconds=5.0,
    )
    values.update(overrides)
    return Settings(**values)  # type: ignore[arg-type]
