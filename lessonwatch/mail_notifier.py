from __future__ import annotations

import logging
from typing import Sequence

import httpx

from lessonwatch.config import Settings
from lessonwatch.domain import Lesson, NotifyError
from lessonwatch.formatting import format_freed_digest

logger = logging.getLogger(__name__)


def send_mailgun_message(
    *,
    api_base: str,
    api_key: str,
    domain: str,
    sender: str,
    recipients: Sequence[str],
    subject: str,
    text: str,
    timeout_seconds: float = 20.0,
) -> None:
    url = f"{api_base}/{domain}/messages"
    payload = {
        "from": sender,
        "to": list(recipients),
        "subject": subject,
        "text": text,
    }

    with httpx.Client(timeout=timeout_seconds) as client:
        r = client.post(url, auth=("api", api_key), data=payload)
        r.raise_for_status()
        data = r.json()
        if not data.get("id"):
            raise RuntimeError(f"Mailgun API error: {data}")


class MailgunNotifier:
    """Mails a day-grouped digest of freed lessons to the operator."""

    def __init__(self, settings: Settings) -> None:
        self._settings = settings

    def __call__(self, lessons: Sequence[Lesson]) -> None:
        self.notify(lessons)

    def notify(self, lessons: Sequence[Lesson]) -> None:
        if not lessons:
            raise ValueError("notify() needs at least one lesson")

        settings = self._settings
        body = format_freed_digest(lessons, tz=settings.display_timezone)

        logger.info("Sending email to %d recipient(s) (%d lessons)", len(settings.mail_to), len(lessons))
        try:
            send_mailgun_message(
                api_base=settings.mailgun_api_base,
                api_key=settings.mailgun_api_key,
                domain=settings.mailgun_domain,
                sender=settings.mail_from,
                recipients=settings.mail_to,
                subject=settings.mail_subject,
                text=body,
                timeout_seconds=settings.request_timeout_seconds,
            )
        except (httpx.HTTPError, ValueError, RuntimeError) as e:
            raise NotifyError(f"Failed to send email: {type(e).__name__}: {e}") from e

        logger.info("Email sent.\n%s", body)
