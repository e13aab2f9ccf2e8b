"""Unit tests for background workers."""

import asyncio
from datetime import timedelta

import pytest

from travel_agency.core.config import Settings
from travel_agency.core.timeutils import utcnow
from travel_agency.models.trip import Trip
from travel_agency.workers import DiscountExpiryWorker, TripReminderWorker, WaitlistExpiryWorker
from travel_agency.workers.base import BaseWorker
from travel_agency.workers.manager import WorkerManager


class CountingWorker(BaseWorker):
    def __init__(self, fail_first: bool = False):
        super().__init__(name="Counting", interval_seconds=1)
        self.calls = 0
        self.fail_first = fail_first
        self.called = asyncio.Event()

    async def process(self) -> None:
        self.calls += 1
        self.called.set()
        if self.fail_first and self.calls == 1:
            raise RuntimeError("first run fails")


@pytest.mark.asyncio
async def test_worker_start_and_stop():
    """Test a worker runs its task and stops cleanly."""
    worker = CountingWorker()

    await worker.start()
    await asyncio.wait_for(worker.called.wait(), timeout=2)
    assert worker.is_running is True

    await worker.stop()
    assert worker.is_running is False
    assert worker.calls >= 1
    assert worker.last_run_at is not None


@pytest.mark.asyncio
async def test_worker_survives_failing_iteration():
    """Test an exception in one iteration does not end the loop."""
    worker = CountingWorker(fail_first=True)

    async def second_call():
        while worker.calls < 2:
            await asyncio.sleep(0.05)

    await worker.start()
    await asyncio.wait_for(second_call(), timeout=5)
    await worker.stop()

    assert worker.calls >= 2


@pytest.mark.asyncio
async def test_waitlist_expiry_worker(session_factory, test_session, trip_factory, waitlist_factory, sender):
    """Test one sweep reclaims an ignored turn and passes it on."""
    now = utcnow()
    trip = await trip_factory(capacity=1, available_rooms=1)
    await waitlist_factory(
        trip,
        "alice",
        joined_at=now - timedelta(days=6),
        notified=True,
        notified_at=now - timedelta(days=5),
    )
    await waitlist_factory(trip, "bob", joined_at=now - timedelta(days=4))
    worker = WaitlistExpiryWorker(session_factory=session_factory, sender=sender)

    report = await worker.process()

    assert report.expired == 1
    assert report.cascaded == 1
    assert sender.recipients() == ["bob@example.com"]


@pytest.mark.asyncio
async def test_waitlist_expiry_worker_catches_up(session_factory, trip_factory, waitlist_factory, sender):
    """Test trips with free rooms and nobody notified get a notification."""
    trip = await trip_factory(capacity=2, available_rooms=1)
    await waitlist_factory(trip, "carol")
    worker = WaitlistExpiryWorker(session_factory=session_factory, sender=sender)

    report = await worker.process()

    assert report.expired == 0
    assert sender.recipients() == ["carol@example.com"]


@pytest.mark.asyncio
async def test_discount_expiry_worker(session_factory, test_session, trip_factory):
    """Test the worker reverts run-out discounts."""
    now = utcnow()
    trip = await trip_factory(
        price_amount=500,
        old_price_amount=1000,
        is_discount_active=True,
        discount_activated_at=now - timedelta(days=1),
        discount_expires_at=now - timedelta(seconds=1),
    )
    trip_id = trip.id

    assert await DiscountExpiryWorker(session_factory=session_factory).process() == 1

    reverted = await test_session.get(Trip, trip_id, populate_existing=True)
    assert reverted.price_amount == 1000
    assert reverted.is_discount_active is False


@pytest.mark.asyncio
async def test_trip_reminder_worker(session_factory, trip_factory, booking_factory, sender):
    """Test the worker sends due reminders."""
    trip = await trip_factory(start_date=utcnow() + timedelta(days=1))
    await booking_factory(trip, "alice", paid=True, paid_at=utcnow(), payment_reference="PAY-1")

    assert await TripReminderWorker(session_factory=session_factory, sender=sender).process() == 1
    assert sender.recipients() == ["alice@example.com"]


def test_worker_manager_configuration(sender):
    """Test the manager builds every worker with the configured intervals."""
    config = Settings(
        waitlist_expiry_interval_seconds=60,
        discount_expiry_interval_seconds=120,
        trip_reminder_interval_seconds=180,
    )

    manager = WorkerManager(config=config, sender=sender)

    assert manager.get_worker_status() == {
        "waitlist_expiry": False,
        "discount_expiry": False,
        "trip_reminder": False,
    }
    assert manager.get_worker("waitlist_expiry").interval_seconds == 60
    assert manager.get_worker("discount_expiry").interval_seconds == 120
    assert manager.get_worker("trip_reminder").sender is sender
    with pytest.raises(KeyError):
        manager.get_worker("unknown")


@pytest.mark.asyncio
async def test_worker_manager_stop_all_without_start(sender):
    """Test stopping workers that never started is harmless."""
    manager = WorkerManager(config=Settings(), sender=sender)

    await manager.stop_all()

    assert not any(manager.get_worker_status().values())
