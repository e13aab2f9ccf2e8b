"""Unit tests for message rendering and delivery."""

import smtplib
from datetime import datetime
from types import SimpleNamespace

import pytest

from travel_agency.core.config import Settings
from travel_agency.services.notification_service import (
    PAYMENT_CONFIRMATION,
    ROOM_AVAILABLE,
    TRIP_REMINDER,
    LoggingNotificationSender,
    SmtpNotificationSender,
    build_notification_sender,
    deliver,
    render_message,
)

TRIP = SimpleNamespace(
    id=7,
    title="Safari Expedition",
    destination="Nairobi",
    country="Kenya",
    start_date=datetime(2031, 3, 14, 8, 0),
    end_date=datetime(2031, 3, 24, 8, 0),
)


def test_render_room_available():
    """Test the turn message names the trip and the deadline."""
    subject, body = render_message(
        ROOM_AVAILABLE,
        trip=TRIP,
        entry=SimpleNamespace(requester_ref="alice"),
        expiration_days=3,
        expires_at=datetime(2031, 1, 4, 12, 30),
        base_url="https://agency.test",
    )

    assert subject == "Room Available: Safari Expedition - Book Now!"
    assert "held for 3 day(s)" in body
    assert "2031-01-04 12:30 UTC" in body
    assert "https://agency.test/trips/7" in body


def test_render_payment_confirmation():
    """Test the confirmation lists the amount and reference."""
    booking = SimpleNamespace(id=3, party_size=2, payment_reference="PAY-12345678")

    subject, body = render_message(PAYMENT_CONFIRMATION, trip=TRIP, booking=booking, total="2400.00", currency="EUR")

    assert subject == "Payment Confirmation - Safari Expedition"
    assert "Total amount: 2400.00 EUR" in body
    assert "PAY-12345678" in body


def test_render_trip_reminder():
    """Test the reminder counts down the days."""
    booking = SimpleNamespace(id=3, party_size=1)

    subject, body = render_message(
        TRIP_REMINDER, trip=TRIP, booking=booking, days_until_trip=2, base_url="https://agency.test"
    )

    assert subject == "Reminder: Your trip to Nairobi is in 2 day(s)!"
    assert "https://agency.test/bookings/3" in body


@pytest.mark.asyncio
async def test_deliver_swallows_sender_errors(broken_sender):
    """Test delivery failures are reported as False."""
    assert await deliver(broken_sender, "alice@example.com", "Hi", "Body") is False


@pytest.mark.asyncio
async def test_deliver_without_recipient(sender):
    """Test nothing is sent to an empty address."""
    assert await deliver(sender, None, "Hi", "Body") is False
    assert sender.messages == []


@pytest.mark.asyncio
async def test_deliver(sender):
    """Test a successful delivery."""
    assert await deliver(sender, "alice@example.com", "Hi", "Body") is True
    assert sender.messages == [("alice@example.com", "Hi", "Body")]


@pytest.mark.asyncio
async def test_smtp_sender_reports_failures(monkeypatch):
    """Test SMTP errors turn into a False result."""
    smtp_sender = SmtpNotificationSender(host="smtp.invalid", port=25, mail_from="agency@example.com")

    def refuse(recipient, subject, body):
        raise smtplib.SMTPServerDisconnected("gone")

    monkeypatch.setattr(smtp_sender, "_send_sync", refuse)

    assert await smtp_sender.send("alice@example.com", "Hi", "Body") is False


def test_smtp_message_headers():
    """Test the outgoing email carries sender and recipient headers."""
    smtp_sender = SmtpNotificationSender(host="smtp.invalid", port=25, mail_from="agency@example.com")

    message = smtp_sender._build_message("alice@example.com", "Hi", "Body")

    assert message["From"] == "agency@example.com"
    assert message["To"] == "alice@example.com"
    assert message["Subject"] == "Hi"


def test_build_notification_sender():
    """Test the backend follows the SMTP configuration."""
    assert isinstance(build_notification_sender(Settings(smtp_host="")), LoggingNotificationSender)
    assert isinstance(build_notification_sender(Settings(smtp_host="mail.example.com")), SmtpNotificationSender)
