"""Property-based tests for booking system invariants."""

import asyncio
from datetime import timedelta

from hypothesis import given, settings
from hypothesis import strategies as st

import travel_agency.models  # noqa: F401 - register all models
from travel_agency.core.database import Base, build_engine, build_session_factory
from travel_agency.core.timeutils import utcnow
from travel_agency.models.trip import Trip
from travel_agency.schemas.auth import Requester
from travel_agency.services.booking_service import BookingLifecycle
from travel_agency.services.inventory_service import InventoryLedger
from travel_agency.services.waitlist_service import WaitingListQueue

# Strategies for generating test data
party_sizes = st.integers(min_value=1, max_value=6)
capacity_values = st.integers(min_value=1, max_value=30)
operations = st.lists(
    st.tuples(st.sampled_from(["book", "cancel", "edit"]), st.integers(0, 5), party_sizes),
    min_size=1,
    max_size=25,
)


async def _with_session(scenario):
    engine = build_engine("sqlite+aiosqlite:///:memory:")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    try:
        async with build_session_factory(engine)() as session:
            return await scenario(session)
    finally:
        await engine.dispose()


async def _create_trip(session, capacity: int, available: int | None = None) -> int:
    start = utcnow() + timedelta(days=60)
    trip = Trip(
        title="Property Trip",
        destination="Lisbon",
        country="Portugal",
        start_date=start,
        end_date=start + timedelta(days=5),
        capacity=capacity,
        available_rooms=capacity if available is None else available,
        price_amount=1000,
    )
    session.add(trip)
    await session.commit()
    return trip.id


@settings(max_examples=40, deadline=None)
@given(capacity=capacity_values, steps=operations)
def test_available_rooms_stay_within_capacity(capacity, steps):
    """Test any mix of bookings, edits and cancellations keeps 0 <= available <= capacity."""

    async def scenario(session):
        trip_id = await _create_trip(session, capacity)
        lifecycle = BookingLifecycle(session)
        bookings: dict[str, int] = {}

        for action, who, size in steps:
            requester = Requester(user_id=f"traveller-{who}")
            if action == "book":
                outcome = await lifecycle.create_booking(trip_id, requester, size)
                if outcome.ok:
                    bookings[requester.user_id] = outcome.booking.id
            elif requester.user_id in bookings and action == "cancel":
                outcome = await lifecycle.cancel_booking(bookings[requester.user_id], requester)
                if outcome.ok:
                    del bookings[requester.user_id]
            elif requester.user_id in bookings:
                await lifecycle.edit_booking(bookings[requester.user_id], requester, size)

            available = await InventoryLedger(session).get_available(trip_id)
            assert 0 <= available <= capacity

        held = 0
        for booking_id in bookings.values():
            booking = await lifecycle.get_booking_by_id(booking_id)
            held += booking.party_size
        assert await InventoryLedger(session).get_available(trip_id) == capacity - held

    asyncio.run(_with_session(scenario))


@settings(max_examples=30, deadline=None)
@given(requesters=st.lists(st.integers(0, 50), min_size=1, max_size=12, unique=True))
def test_turns_follow_join_order(requesters):
    """Test notifications go out strictly in join order, one turn at a time."""

    async def scenario(session):
        trip_id = await _create_trip(session, capacity=1, available=0)
        queue = WaitingListQueue(session)
        refs = [f"traveller-{r}" for r in requesters]
        for ref in refs:
            await queue.join(trip_id, ref)

        await InventoryLedger(session).release(trip_id, 1)
        await session.commit()

        notified = []
        for ref in refs:
            assert await queue.is_my_turn(trip_id, ref)
            result = await queue.notify_next(trip_id, expiration_days=3)
            notified.append(result.entry.requester_ref)
            await queue.leave(trip_id, ref)

        assert notified == refs
        assert await queue.notify_next(trip_id, expiration_days=3) is None

    asyncio.run(_with_session(scenario))
