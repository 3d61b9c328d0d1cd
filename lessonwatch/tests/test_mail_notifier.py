from __future__ import annotations

from unittest.mock import patch

import httpx
import pytest

from lessonwatch.domain import NotifyError
from lessonwatch.mail_notifier import MailgunNotifier, send_mailgun_message
from lessonwatch.tests.helpers import lesson, settings


def test_notifier_sends_digest_to_configured_recipients() -> None:
    notifier = MailgunNotifier(settings(mail_to=("a@example.com", "b@example.com"), mail_subject="Free!"))

    with patch("lessonwatch.mail_notifier.send_mailgun_message") as send:
        notifier([lesson(1, type_name="Yoga")])

    send.assert_called_once()
    kwargs = send.call_args.kwargs
    assert kwargs["recipients"] == ("a@example.com", "b@example.com")
    assert kwargs["subject"] == "Free!"
    assert kwargs["domain"] == "mg.test"
    assert kwargs["text"].startswith("Freed lessons:\n\nMon 3.3.\n  08:00 - 09:00 Yoga")


def test_transport_failure_becomes_notify_error() -> None:
    notifier = MailgunNotifier(settings())

    with patch("lessonwatch.mail_notifier.send_mailgun_message", side_effect=httpx.ConnectError("refused")):
        with pytest.raises(NotifyError, match="ConnectError"):
            notifier.notify([lesson(1)])


def test_empty_lesson_list_is_rejected() -> None:
    with pytest.raises(ValueError):
        MailgunNotifier(settings()).notify([])


def test_send_mailgun_message_posts_form_with_basic_auth() -> None:
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, json={"id": "<1@mg.test>", "message": "Queued. Thank you."})

    real_client = httpx.Client

    def client_factory(**kwargs):
        return real_client(transport=httpx.MockTransport(handler), **kwargs)

    with patch("lessonwatch.mail_notifier.httpx.Client", side_effect=client_factory):
        send_mailgun_message(
            api_base="https://mailgun.test/v3",
            api_key="KEY",
            domain="mg.test",
            sender="watch@mg.test",
            recipients=["me@example.com"],
            subject="s",
            text="t",
        )

    request = seen[0]
    assert str(request.url) == "https://mailgun.test/v3/mg.test/messages"
    assert request.headers["authorization"].startswith("Basic ")
    assert b"to=me%40example.com" in request.content


def test_send_mailgun_message_rejects_api_error_body() -> None:
    real_client = httpx.Client

    def client_factory(**kwargs):
        transport = httpx.MockTransport(lambda request: httpx.Response(200, json={"message": "nope"}))
        return real_client(transport=transport, **kwargs)

    with patch("lessonwatch.mail_notifier.httpx.Client", side_effect=client_factory):
        with pytest.raises(RuntimeError, match="Mailgun API error"):
            send_mailgun_message(
                api_base="https://mailgun.test/v3",
                api_key="KEY",
                domain="mg.test",
                sender="watch@mg.test",
                recipients=["me@example.com"],
                subject="s",
                text="t",
            )
