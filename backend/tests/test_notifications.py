import asyncio
import json
from datetime import datetime

import httpx
import pytest
from sqlalchemy import select

from backend.app.core.config import Settings
from backend.app.db.models import EventLogRow
from backend.app.services import notifications
from backend.app.services.notifications import (
    POSSIBLY_DELIVERED,
    RESEND_URL,
    DeliveryNotifier,
    Notice,
    NoticeKind,
    deliver,
)


pytestmark = pytest.mark.asyncio


def configured(**overrides) -> Settings:
    fields = dict(
        DATABASE_URL="sqlite+aiosqlite://",
        RESEND_API_KEY="re_test",
        EMAIL_FROM_DOMAIN="example.com",
        TWILIO_ACCOUNT_SID="AC123",
        TWILIO_AUTH_TOKEN="secret",
        TWILIO_PHONE_NUMBER="+15550001111",
        NOTIFICATION_TIMEOUT_SECONDS=3.0,
    )
    fields.update(overrides)
    return Settings(**fields)


def notice(kind: NoticeKind = NoticeKind.CONFIRMED, **overrides) -> Notice:
    fields = dict(
        kind=kind,
        restaurant_id="r1",
        restaurant_name="Demo Bistro",
        subject_id="b1",
        guest_name="Anna Kovacs",
        phone="+36301234567",
        email="anna@example.com",
        party_size=2,
        starts_at=datetime(2030, 6, 5, 20, 0),
        table_name="T4",
        manage_url="https://book.example.com/booking/edit/tok",
    )
    fields.update(overrides)
    return Notice(**fields)


class FakeTwilio:
    """Stands in for ``twilio.rest.Client``; records constructor and message arguments."""

    instances: list["FakeTwilio"] = []

    def __init__(self, sid, token, http_client=None):
        self.sid = sid
        self.http_client = http_client
        self.messages = self
        self.created = []
        FakeTwilio.instances.append(self)

    def create(self, **kwargs):
        self.created.append(kwargs)


@pytest.fixture
def twilio(monkeypatch):
    FakeTwilio.instances = []
    monkeypatch.setattr(notifications, "TwilioClient", FakeTwilio)
    return FakeTwilio


@pytest.fixture
def resend():
    requests = []

    def handler(request: httpx.Request) -> httpx.Response:
        requests.append(request)
        return httpx.Response(200, json={"id": "email_1"})

    return requests, httpx.AsyncClient(transport=httpx.MockTransport(handler))


def texts(twilio) -> list[dict]:
    return [msg for client in twilio.instances for msg in client.created]


async def test_booking_notice_with_email_goes_by_email_only(twilio, resend):
    requests, http = resend
    async with http:
        await DeliveryNotifier(configured(), http).send(notice())

    assert texts(twilio) == []
    assert len(requests) == 1
    sent = requests[0]
    payload = json.loads(sent.content)
    assert str(sent.url) == RESEND_URL
    assert sent.headers["Authorization"] == "Bearer re_test"
    assert payload["from"] == "Demo Bistro <bookings@example.com>"
    assert payload["to"] == ["anna@example.com"]
    assert payload["subject"] == "Your booking at Demo Bistro is confirmed"
    assert "Table: T4" in payload["text"]
    assert "https://book.example.com/booking/edit/tok" in payload["text"]


async def test_booking_notice_without_email_goes_by_text(twilio, resend):
    requests, http = resend
    async with http:
        await DeliveryNotifier(configured(), http).send(notice(email=None))

    assert requests == []
    [message] = texts(twilio)
    assert message["to"] == "+36301234567"
    assert message["from_"] == "+15550001111"
    assert "2030-06-05 20:00" in message["body"]


@pytest.mark.parametrize("kind", [NoticeKind.WAITLIST_READY, NoticeKind.REMINDER])
async def test_waitlist_call_and_reminder_use_both_channels(twilio, resend, kind):
    requests, http = resend
    async with http:
        await DeliveryNotifier(configured(), http).send(notice(kind))

    assert len(requests) == 1
    assert len(texts(twilio)) == 1


async def test_twilio_client_gets_bounded_http_timeout(twilio, resend):
    _, http = resend
    async with http:
        await DeliveryNotifier(configured(), http).send(notice(email=None))

    [client] = twilio.instances
    assert client.sid == "AC123"
    assert client.http_client.timeout == 3.0


async def test_unconfigured_channels_are_skipped(twilio, resend):
    requests, http = resend
    settings = configured(RESEND_API_KEY=None, TWILIO_ACCOUNT_SID=None)
    async with http:
        await DeliveryNotifier(settings, http).send(notice(NoticeKind.REMINDER))

    assert requests == []
    assert twilio.instances == []


async def test_provider_error_fails_delivery_and_is_logged(twilio, sessions):
    http = httpx.AsyncClient(transport=httpx.MockTransport(lambda request: httpx.Response(500)))

    async with http:
        notifier = DeliveryNotifier(configured(), http)
        with pytest.raises(httpx.HTTPStatusError):
            await notifier.send(notice())
        delivered = await deliver(notifier, notice(), sessions, timeout=1.0)

    assert delivered is False
    async with sessions() as session:
        events = (await session.execute(select(EventLogRow))).scalars().all()
    assert [(e.kind, e.subject_id) for e in events] == [("booking_confirmed_failed", "b1")]
    assert "HTTPStatusError" in events[0].detail


async def test_timed_out_send_is_marked_possibly_delivered(sessions):
    class SlowNotifier:
        async def send(self, notice):
            await asyncio.sleep(5)

    delivered = await deliver(SlowNotifier(), notice(NoticeKind.REMINDER), sessions, timeout=0.05)

    assert delivered is False
    async with sessions() as session:
        event = (await session.execute(select(EventLogRow))).scalar_one()
    assert event.kind == "booking_reminder_failed"
    assert event.detail.startswith(POSSIBLY_DELIVERED)
