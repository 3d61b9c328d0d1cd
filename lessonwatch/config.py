from __future__ import annotations

import os
from dataclasses import dataclass
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from dotenv import load_dotenv


def _parse_mail_recipients(raw: str) -> tuple[str, ...]:
    # MAIL_TO supports a single address or a comma-separated list.
    # Examples:
    #   MAIL_TO=me@example.com
    #   MAIL_TO=me@example.com, partner@example.com
    parts = [p.strip() for p in raw.split(",")]
    parts = [p for p in parts if p]

    seen: set[str] = set()
    result: list[str] = []
    for p in parts:
        if "@" not in p:
            raise RuntimeError(f"Invalid MAIL_TO value: {p!r}. Expected an email address.")

        key = p.lower()
        if key in seen:
            continue
        seen.add(key)
        result.append(p)

    if not result:
        raise RuntimeError("MAIL_TO is empty. Provide at least one recipient.")

    return tuple(result)


@dataclass(frozen=True)
class Settings:
    base_url: str
    login_url: str
    lessons_url: str
    login_name: str
    login_password: str

    mailgun_api_key: str
    mailgun_domain: str
    mail_from: str
    mail_to: tuple[str, ...]

    mailgun_api_base: str = "https://api.mailgun.net/v3"
    mail_subject: str = "Freed lessons"

    # Timer: base period and +/- random skew, seconds.
    check_interval_seconds: int = 600
    check_jitter_seconds: int = 120

    http_host: str = "0.0.0.0"
    http_port: int = 5000

    # How far ahead the lessons window reaches.
    lookahead_months: int = 2

    # How many times one fetch (login + lessons request) is attempted.
    fetch_retry_attempts: int = 2
    request_timeout_seconds: float = 30.0

    # Calendar days in mails are computed in this zone.
    display_timezone: str = "UTC"


def _require(name: str) -> str:
    value = os.getenv(name)
    if not value:
        raise RuntimeError(f"Missing required environment variable: {name}")
    return value


def _int_env(name: str, default: int, *, minimum: int) -> int:
    raw = os.getenv(name, str(default))
    try:
        value = int(raw)
    except ValueError as e:
        raise RuntimeError(f"Invalid {name} value: {raw!r}. Expected an integer.") from e
    if value < minimum:
        raise RuntimeError(f"{name} must be >= {minimum}")
    return value


def load_settings(dotenv_path: str | None = None) -> Settings:
    # Prefer .env in repo root; dotenv_path allows overriding in tests.
    load_dotenv(dotenv_path=dotenv_path, override=False)

    check_interval_seconds = _int_env("CHECK_INTERVAL_SECONDS", 600, minimum=1)
    check_jitter_seconds = _int_env("CHECK_JITTER_SECONDS", 120, minimum=0)
    if check_jitter_seconds >= check_interval_seconds:
        raise RuntimeError("CHECK_JITTER_SECONDS must be smaller than CHECK_INTERVAL_SECONDS")

    http_port = _int_env("HTTP_PORT", 5000, minimum=1)
    lookahead_months = _int_env("LOOKAHEAD_MONTHS", 2, minimum=1)
    fetch_retry_attempts = _int_env("FETCH_RETRY_ATTEMPTS", 2, minimum=1)

    timeout_raw = os.getenv("REQUEST_TIMEOUT_SECONDS", "30")
    try:
        request_timeout_seconds = float(timeout_raw)
    except ValueError as e:
        raise RuntimeError(f"Invalid REQUEST_TIMEOUT_SECONDS value: {timeout_raw!r}") from e

    display_timezone = os.getenv("DISPLAY_TIMEZONE", "UTC").strip() or "UTC"
    try:
        ZoneInfo(display_timezone)
    except (ZoneInfoNotFoundError, ValueError) as e:
        raise RuntimeError(f"Unknown DISPLAY_TIMEZONE: {display_timezone!r}") from e

    return Settings(
        base_url=_require("LESSONS_BASE_URL"),
        login_url=_require("LESSONS_LOGIN_URL"),
        lessons_url=_require("LESSONS_URL"),
        login_name=_require("LOGIN_NAME"),
        login_password=_require("LOGIN_PASSWORD"),
        mailgun_api_key=_require("MAILGUN_API_KEY"),
        mailgun_domain=_require("MAILGUN_DOMAIN"),
        mail_from=_require("MAIL_FROM"),
        mail_to=_parse_mail_recipients(_require("MAIL_TO")),
        mailgun_api_base=os.getenv("MAILGUN_API_BASE", "https://api.mailgun.net/v3").rstrip("/"),
        mail_subject=os.getenv("MAIL_SUBJECT", "Freed lessons"),
        check_interval_seconds=check_interval_seconds,
        check_jitter_seconds=check_jitter_seconds,
        http_host=os.getenv("HTTP_HOST", "0.0.0.0"),
        http_port=http_port,
        lookahead_months=lookahead_months,
        fetch_retry_attempts=fetch_retry_attempts,
        request_timeout_seconds=request_timeout_seconds,
        display_timezone=display_timezone,
    )
