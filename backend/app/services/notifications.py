"""Outbound guest messages (email through Resend, SMS through Twilio).

Senders raise on delivery errors; deciding whether a failure matters is
left to the caller. An unconfigured channel is skipped quietly.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Protocol

import httpx
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from twilio.http.http_client import TwilioHttpClient
from twilio.rest import Client as TwilioClient

from backend.app.core.config import Settings
from backend.app.db import queries

logger = logging.getLogger(__name__)

RESEND_URL = "https://api.resend.com/emails"
# Prefix of the event detail for sends that timed out and may have gone out anyway.
POSSIBLY_DELIVERED = "possibly_delivered"


class NoticeKind(str, Enum):
    CONFIRMED = "booking_confirmed"
    CHANGED = "booking_changed"
    CANCELLED = "booking_cancelled"
    WAITLIST_READY = "waitlist_ready"
    REMINDER = "booking_reminder"


_ALWAYS_TEXT = frozenset({NoticeKind.WAITLIST_READY, NoticeKind.REMINDER})


@dataclass(frozen=True)
class Notice:
    kind: NoticeKind
    restaurant_id: str
    restaurant_name: str
    subject_id: str
    guest_name: str
    phone: str | None
    email: str | None
    party_size: int
    starts_at: datetime | None = None  # local time of the booking
    table_name: str | None = None
    special_requests: str | None = None
    manage_url: str | None = None


class Notifier(Protocol):
    async def send(self, notice: Notice) -> None: ...


_SUBJECTS = {
    NoticeKind.CONFIRMED: "Your booking at {restaurant} is confirmed",
    NoticeKind.CHANGED: "Your booking at {restaurant} was changed",
    NoticeKind.CANCELLED: "Your booking at {restaurant} was cancelled",
    NoticeKind.WAITLIST_READY: "Your table at {restaurant} is ready",
    NoticeKind.REMINDER: "Reminder: your booking at {restaurant} is tomorrow",
}


def render_subject(notice: Notice) -> str:
    return _SUBJECTS[notice.kind].format(restaurant=notice.restaurant_name)


def render_text(notice: Notice) -> str:
    if notice.kind is NoticeKind.WAITLIST_READY:
        return (
            f"Hi {notice.guest_name}, a table for {notice.party_size} is ready at "
            f"{notice.restaurant_name}. Please come to the host stand."
        )

    when = notice.starts_at.strftime("%Y-%m-%d %H:%M") if notice.starts_at else ""
    lines = [f"Hi {notice.guest_name},", f"{render_subject(notice)}: {when}, party of {notice.party_size}."]
    if notice.table_name:
        lines.append(f"Table: {notice.table_name}")
    if notice.special_requests:
        lines.append(f"Requests: {notice.special_requests}")
    if notice.manage_url and notice.kind is not NoticeKind.CANCELLED:
        lines.append(f"Change or cancel: {notice.manage_url}")
    return "\n".join(lines)


class DeliveryNotifier:
    def __init__(self, settings: Settings, http: httpx.AsyncClient | None = None) -> None:
        self._settings = settings
        self._http = http

    async def send(self, notice: Notice) -> None:
        if notice.email:
            await self._send_email(notice)
        # Waitlist calls and reminders always go by text; other booking notices only when there is no email.
        if notice.phone and (notice.kind in _ALWAYS_TEXT or not notice.email):
            await self._send_sms(notice)

    async def _send_email(self, notice: Notice) -> None:
        if not self._settings.RESEND_API_KEY:
            logger.info("Email not configured; skipping %s for %s", notice.kind.value, notice.subject_id)
            return

        payload = {
            "from": f"{notice.restaurant_name} <bookings@{self._settings.EMAIL_FROM_DOMAIN}>",
            "to": [notice.email],
            "subject": render_subject(notice),
            "text": render_text(notice),
        }
        headers = {"Authorization": f"Bearer {self._settings.RESEND_API_KEY}"}
        if self._http is not None:
            response = await self._http.post(RESEND_URL, json=payload, headers=headers)
        else:
            async with httpx.AsyncClient(timeout=self._settings.NOTIFICATION_TIMEOUT_SECONDS) as client:
                response = await client.post(RESEND_URL, json=payload, headers=headers)
        response.raise_for_status()

    async def _send_sms(self, notice: Notice) -> None:
        s = self._settings
        if not (s.TWILIO_ACCOUNT_SID and s.TWILIO_AUTH_TOKEN and s.TWILIO_PHONE_NUMBER):
            logger.info("SMS not configured; skipping %s for %s", notice.kind.value, notice.subject_id)
            return

        # The worker thread outlives a cancelled await; its own HTTP timeout bounds it.
        client = TwilioClient(
            s.TWILIO_ACCOUNT_SID,
            s.TWILIO_AUTH_TOKEN,
            http_client=TwilioHttpClient(timeout=s.NOTIFICATION_TIMEOUT_SECONDS),
        )
        # The Twilio SDK is blocking.
        await asyncio.to_thread(
            client.messages.create,
            body=render_text(notice),
            from_=s.TWILIO_PHONE_NUMBER,
            to=notice.phone,
        )


async def deliver(
    notifier: Notifier,
    notice: Notice,
    sessions: async_sessionmaker[AsyncSession],
    *,
    timeout: float,
) -> bool:
    """Send ``notice`` without letting a delivery problem fail the caller.

    Failures (including timeouts) are logged and written to the event log
    for an external retrier. Returns whether the notice went out.

    A timed-out send may still complete in the background (the Twilio SDK
    runs in a worker thread), so its event is marked as possibly delivered.
    """
    try:
        await asyncio.wait_for(notifier.send(notice), timeout=timeout)
    except Exception as exc:
        logger.warning("Notification %s for %s failed: %r", notice.kind.value, notice.subject_id, exc)
        if isinstance(exc, TimeoutError):
            detail = f"{POSSIBLY_DELIVERED}: timed out after {timeout}s"
        else:
            detail = repr(exc)
        try:
            async with sessions() as session:
                await queries.record_event(
                    session,
                    kind=f"{notice.kind.value}_failed",
                    restaurant_id=notice.restaurant_id,
                    subject_id=notice.subject_id,
                    detail=detail,
                )
                await session.commit()
        except SQLAlchemyError:
            logger.exception("Could not record failed notification for %s", notice.subject_id)
        return False
    return True
