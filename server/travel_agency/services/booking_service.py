"""Booking lifecycle: create, edit, pay and cancel bookings."""

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Optional

from sqlalchemy import func, select, update
from sqlalchemy.exc import DBAPIError, IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm.exc import StaleDataError

from ..core.config import Settings, settings as default_settings
from ..core.exceptions import (
    AlreadyCancelled,
    AlreadyPaid,
    BookingNotFound,
    BookingRejection,
    ConcurrentModification,
    DuplicateBooking,
    InvalidPartySize,
    NotYourTurn,
    PaymentDeclined,
    TooCloseToDeparture,
    TooManyUpcomingBookings,
    Unauthorized,
)
from ..core.observability import metrics_collector
from ..core.timeutils import utcnow
from ..models.booking import PENDING_PAYMENT_REFERENCE, PROCESSING_PAYMENT_REFERENCE, Booking
from ..models.trip import Trip
from ..schemas.auth import Requester
from ..schemas.booking import BookingFilter, CardDetails
from .inventory_service import InventoryLedger, is_concurrency_failure
from .notification_service import (
    PAYMENT_CONFIRMATION,
    LoggingNotificationSender,
    NotificationSender,
    deliver,
    render_message,
)
from .payment_service import PaymentProcessor, generate_reference, validate_card
from .policy_service import PolicyService
from .waitlist_service import WaitingListQueue

logger = logging.getLogger(__name__)


@dataclass
class BookingOutcome:
    """Result of a lifecycle operation: a booking or the rule it broke."""

    booking: Optional[Booking] = None
    rejection: Optional[BookingRejection] = None

    @property
    def ok(self) -> bool:
        return self.rejection is None


class BookingLifecycle:
    """
    Service for booking-related operations.

    Every operation runs in the session's transaction. Business-rule
    violations roll it back and come back as ``BookingOutcome.rejection``;
    any other error rolls back and propagates.
    """

    def __init__(
        self,
        db: AsyncSession,
        sender: Optional[NotificationSender] = None,
        config: Optional[Settings] = None,
    ):
        self.db = db
        self.config = config or default_settings
        self.sender = sender or LoggingNotificationSender()
        self.queue = WaitingListQueue(db, sender=self.sender)

    async def create_booking(self, trip_id: int, requester: Requester, party_size: int) -> BookingOutcome:
        """
        Book rooms on a trip for a requester.

        Args:
            trip_id: Trip to book
            requester: Authenticated requester
            party_size: Number of rooms

        Returns:
            BookingOutcome: Confirmed booking, or the rejection
        """
        try:
            booking = await self._create_booking(trip_id, requester, party_size)
        except BookingRejection as rejection:
            return await self._rejected("create", rejection, trip_id=trip_id, requester_ref=requester.user_id)
        except Exception:
            await self.db.rollback()
            raise
        return BookingOutcome(booking=booking)

    async def _create_booking(self, trip_id: int, requester: Requester, party_size: int) -> Booking:
        if not 1 <= party_size <= self.config.max_party_size:
            raise InvalidPartySize(party_size=party_size, max_party_size=self.config.max_party_size)

        policy = await PolicyService(self.db, self.config).load()
        ledger = InventoryLedger(self.db, actor=requester.user_id)
        trip = await ledger.get_trip(trip_id)

        now = utcnow()
        if trip.start_date <= now + timedelta(days=policy.booking_lead_days):
            raise TooCloseToDeparture(
                action="booked",
                days=policy.booking_lead_days,
                start_date=trip.start_date.isoformat(),
            )

        upcoming = await self.count_upcoming(requester.user_id, now)
        if upcoming >= self.config.max_upcoming_bookings:
            raise TooManyUpcomingBookings(limit=self.config.max_upcoming_bookings, current=upcoming)

        existing = await self.get_active_booking(trip_id, requester.user_id)
        if existing:
            raise DuplicateBooking(trip_id=trip_id, booking_id=existing.id)

        if not await self.queue.is_my_turn(trip_id, requester.user_id):
            position = await self.queue.get_position(trip_id, requester.user_id)
            raise NotYourTurn(trip_id=trip_id, position=position)

        await ledger.reserve(trip_id, party_size, reason="booking")

        booking = Booking(
            trip_id=trip_id,
            requester_ref=requester.user_id,
            contact_email=requester.email,
            party_size=party_size,
            unit_price_amount=trip.price_amount,
            total_price_amount=trip.price_amount * party_size,
        )
        self.db.add(booking)
        await self.queue.remove(trip_id, requester.user_id)

        try:
            await self._commit(trip_id)
        except IntegrityError as e:
            raise DuplicateBooking(trip_id=trip_id) from e

        metrics_collector.record_booking_created(trip_id)
        logger.info(
            "Booking created",
            extra={
                "booking_id": booking.id,
                "trip_id": trip_id,
                "requester_ref": requester.user_id,
                "party_size": party_size,
                "total_price_amount": booking.total_price_amount,
                "remaining_rooms": trip.available_rooms,
            }
        )
        return booking

    async def cancel_booking(self, booking_id: int, requester: Requester) -> BookingOutcome:
        """
        Cancel a booking, return its rooms and pass the turn on the waiting list.

        The waiting list notification runs after the cancellation is
        committed; its failures are logged and never undo the cancellation.
        """
        try:
            booking, trip = await self._cancel_booking(booking_id, requester)
        except BookingRejection as rejection:
            return await self._rejected("cancel", rejection, booking_id=booking_id, requester_ref=requester.user_id)
        except Exception:
            await self.db.rollback()
            raise

        await self._notify_waiting(trip, booking)
        return BookingOutcome(booking=booking)

    async def _cancel_booking(self, booking_id: int, requester: Requester) -> tuple[Booking, Trip]:
        policy = await PolicyService(self.db, self.config).load()
        booking = await self.get_booking_or_raise(booking_id)

        if booking.requester_ref != requester.user_id and not requester.is_admin:
            raise Unauthorized(
                "You are not authorized to cancel this booking.",
                booking_id=booking_id,
            )

        if booking.cancelled:
            raise AlreadyCancelled(booking_id)
        if booking.payment_reference == PROCESSING_PAYMENT_REFERENCE:
            # A charge for this booking is in flight
            raise ConcurrentModification(booking_id=booking_id)

        ledger = InventoryLedger(self.db, actor=requester.user_id)
        trip = await ledger.get_trip(booking.trip_id)

        now = utcnow()
        if trip.start_date <= now or trip.start_date <= now + timedelta(days=policy.cancellation_deadline_days):
            raise TooCloseToDeparture(
                action="cancelled",
                days=policy.cancellation_deadline_days,
                start_date=trip.start_date.isoformat(),
            )

        booking.cancelled = True
        booking.cancelled_at = now
        trip = await ledger.release(booking.trip_id, booking.party_size, reason="cancellation")

        await self._commit(booking.trip_id, booking_id=booking_id)

        metrics_collector.record_booking_cancelled()
        logger.info(
            "Booking cancelled",
            extra={
                "booking_id": booking_id,
                "trip_id": booking.trip_id,
                "rooms_released": booking.party_size,
                "available_rooms": trip.available_rooms,
                "cancelled_by": requester.user_id,
            }
        )
        return booking, trip

    async def edit_booking(self, booking_id: int, requester: Requester, new_party_size: int) -> BookingOutcome:
        """
        Change the number of rooms of an unpaid booking.

        Growing a booking reserves the extra rooms first; shrinking releases
        them and may pass the turn on the waiting list. The total is
        rescaled with the unit price captured at creation.
        """
        try:
            booking, trip = await self._edit_booking(booking_id, requester, new_party_size)
        except BookingRejection as rejection:
            return await self._rejected("edit", rejection, booking_id=booking_id, requester_ref=requester.user_id)
        except Exception:
            await self.db.rollback()
            raise

        if trip is not None:
            await self._notify_waiting(trip, booking)
        return BookingOutcome(booking=booking)

    async def _edit_booking(
        self, booking_id: int, requester: Requester, new_party_size: int
    ) -> tuple[Booking, Optional[Trip]]:
        if not 1 <= new_party_size <= self.config.max_party_size:
            raise InvalidPartySize(party_size=new_party_size, max_party_size=self.config.max_party_size)

        booking = await self.get_booking_or_raise(booking_id)

        if booking.requester_ref != requester.user_id:
            raise Unauthorized(
                "You are not authorized to edit this booking.",
                booking_id=booking_id,
            )
        if booking.cancelled:
            raise AlreadyCancelled(booking_id)
        if booking.paid:
            raise AlreadyPaid(booking_id)

        old_party_size = booking.party_size
        delta = new_party_size - old_party_size
        ledger = InventoryLedger(self.db, actor=requester.user_id)

        released_on = None
        if delta > 0:
            await ledger.reserve(booking.trip_id, delta, reason="edit")
        elif delta < 0:
            released_on = await ledger.release(booking.trip_id, -delta, reason="edit")

        booking.party_size = new_party_size
        booking.total_price_amount = booking.unit_price_amount * new_party_size

        await self._commit(booking.trip_id, booking_id=booking_id)

        logger.info(
            "Booking edited",
            extra={
                "booking_id": booking_id,
                "trip_id": booking.trip_id,
                "old_party_size": old_party_size,
                "new_party_size": new_party_size,
                "total_price_amount": booking.total_price_amount,
            }
        )
        return booking, released_on

    async def pay_booking(
        self,
        booking_id: int,
        requester: Requester,
        processor: PaymentProcessor,
        card: Optional[CardDetails] = None,
        payment_reference: Optional[str] = None,
    ) -> BookingOutcome:
        """
        Pay for a confirmed booking.

        The booking is claimed as paid before the processor is called, so
        overlapping requests charge it at most once. A declined or failed
        charge releases the claim.

        Args:
            booking_id: Booking to pay
            requester: Owner of the booking or an admin
            processor: Payment processor that charges the total
            card: Card details; only their format is checked
            payment_reference: Reference from an external gateway

        Returns:
            BookingOutcome: Paid booking, or the rejection
        """
        try:
            booking, trip = await self._pay_booking(booking_id, requester, processor, card, payment_reference)
        except BookingRejection as rejection:
            return await self._rejected("pay", rejection, booking_id=booking_id, requester_ref=requester.user_id)
        except Exception:
            await self.db.rollback()
            raise

        subject, body = render_message(
            PAYMENT_CONFIRMATION,
            trip=trip,
            booking=booking,
            total=f"{booking.total_price_amount / 100:.2f}",
            currency=self.config.currency,
        )
        await deliver(self.sender, booking.contact_email, subject, body)
        return BookingOutcome(booking=booking)

    async def _pay_booking(
        self,
        booking_id: int,
        requester: Requester,
        processor: PaymentProcessor,
        card: Optional[CardDetails],
        payment_reference: Optional[str],
    ) -> tuple[Booking, Trip]:
        booking = await self.get_booking_or_raise(booking_id)

        if booking.requester_ref != requester.user_id and not requester.is_admin:
            raise Unauthorized(
                "You are not authorized to pay for this booking.",
                booking_id=booking_id,
            )
        if booking.cancelled:
            raise AlreadyCancelled(booking_id)
        if booking.paid:
            raise AlreadyPaid(booking_id)

        now = utcnow()
        other_upcoming = await self.count_upcoming(booking.requester_ref, now, exclude_booking_id=booking_id)
        if other_upcoming >= self.config.max_upcoming_bookings:
            raise TooManyUpcomingBookings(limit=self.config.max_upcoming_bookings, current=other_upcoming)

        if card is not None:
            validate_card(card)

        trip_id = booking.trip_id
        amount = booking.total_price_amount

        # The charge is made only by the request that wins the claim
        await self._claim_payment(booking_id, booking.version, now)
        try:
            result = await processor.charge(amount, reference=payment_reference)
        except Exception:
            await self._release_payment_claim(booking_id)
            raise

        if not result.succeeded:
            await self._release_payment_claim(booking_id)
            logger.warning(
                "Payment declined",
                extra={"booking_id": booking_id, "reason": result.reason},
            )
            raise PaymentDeclined(booking_id=booking_id, reason=result.reason)

        reference = result.reference or generate_reference("PAY")
        await self.db.execute(
            update(Booking)
            .where(Booking.id == booking_id, Booking.payment_reference == PROCESSING_PAYMENT_REFERENCE)
            .values(payment_reference=reference, version=Booking.version + 1)
            .execution_options(synchronize_session=False)
        )
        await self.db.commit()

        booking = await self.get_booking_or_raise(booking_id)
        trip = await self.db.get(Trip, trip_id)

        metrics_collector.record_booking_paid()
        logger.info(
            "Booking paid",
            extra={
                "booking_id": booking_id,
                "trip_id": trip_id,
                "total_price_amount": amount,
                "payment_reference": reference,
            }
        )
        return booking, trip

    async def _claim_payment(self, booking_id: int, version: int, now: datetime) -> None:
        """
        Mark an unpaid booking as paid before it is charged.

        The update only matches the version that was checked, so a concurrent
        payment, edit or cancellation makes the claim fail and nothing is
        charged.

        Raises:
            AlreadyPaid: If another request paid the booking first
            AlreadyCancelled: If the booking was cancelled meanwhile
            ConcurrentModification: If the booking changed in any other way
        """
        claim = (
            update(Booking)
            .where(
                Booking.id == booking_id,
                Booking.version == version,
                Booking.paid.is_(False),
                Booking.cancelled.is_(False),
            )
            .values(
                paid=True,
                paid_at=now,
                payment_reference=PROCESSING_PAYMENT_REFERENCE,
                version=Booking.version + 1,
            )
            .execution_options(synchronize_session=False)
        )
        try:
            result = await self.db.execute(claim)
            claimed = result.rowcount > 0
            if claimed:
                await self.db.commit()
        except DBAPIError as e:
            if not is_concurrency_failure(e):
                raise
            claimed = False

        if claimed:
            return

        await self.db.rollback()
        current = await self.get_booking_by_id(booking_id)
        logger.warning(
            "Payment claim lost to a concurrent request",
            extra={"booking_id": booking_id},
        )
        if current is not None and current.cancelled:
            raise AlreadyCancelled(booking_id)
        if current is not None and current.paid:
            raise AlreadyPaid(booking_id)
        raise ConcurrentModification(booking_id=booking_id)

    async def _release_payment_claim(self, booking_id: int) -> None:
        await self.db.execute(
            update(Booking)
            .where(Booking.id == booking_id, Booking.payment_reference == PROCESSING_PAYMENT_REFERENCE)
            .values(
                paid=False,
                paid_at=None,
                payment_reference=PENDING_PAYMENT_REFERENCE,
                version=Booking.version + 1,
            )
            .execution_options(synchronize_session=False)
        )
        await self.db.commit()

    async def get_booking(self, booking_id: int, requester: Requester) -> Booking:
        """
        Get a booking visible to the requester.

        Raises:
            BookingNotFound: If the booking does not exist
            Unauthorized: If the requester is neither the owner nor an admin
        """
        booking = await self.get_booking_or_raise(booking_id)
        if booking.requester_ref != requester.user_id and not requester.is_admin:
            raise Unauthorized(
                "You are not authorized to view this booking.",
                booking_id=booking_id,
            )
        return booking

    async def list_bookings(
        self, requester: Requester, booking_filter: BookingFilter = BookingFilter.ALL
    ) -> list[Booking]:
        """List the requester's bookings, newest first."""
        now = utcnow()
        stmt = (
            select(Booking)
            .join(Trip, Booking.trip_id == Trip.id)
            .where(Booking.requester_ref == requester.user_id)
        )

        if booking_filter == BookingFilter.UPCOMING:
            stmt = stmt.where(Trip.start_date > now, Booking.cancelled.is_(False))
        elif booking_filter == BookingFilter.PAST:
            stmt = stmt.where(Trip.start_date <= now)

        stmt = stmt.order_by(Booking.created_at.desc(), Booking.id.desc())
        result = await self.db.execute(stmt)
        return list(result.scalars())

    async def count_upcoming(self, requester_ref: str, now: datetime, exclude_booking_id: Optional[int] = None) -> int:
        """Count non-cancelled bookings of a requester for trips that have not started."""
        stmt = (
            select(func.count(Booking.id))
            .join(Trip, Booking.trip_id == Trip.id)
            .where(
                Booking.requester_ref == requester_ref,
                Booking.cancelled.is_(False),
                Trip.start_date > now,
            )
        )
        if exclude_booking_id is not None:
            stmt = stmt.where(Booking.id != exclude_booking_id)
        result = await self.db.execute(stmt)
        return result.scalar() or 0

    async def get_active_booking(self, trip_id: int, requester_ref: str) -> Optional[Booking]:
        """Get the requester's non-cancelled booking for a trip."""
        stmt = select(Booking).where(
            Booking.trip_id == trip_id,
            Booking.requester_ref == requester_ref,
            Booking.cancelled.is_(False),
        )
        result = await self.db.execute(stmt)
        return result.scalars().first()

    async def get_booking_by_id(self, booking_id: int) -> Optional[Booking]:
        """Get booking by ID."""
        stmt = select(Booking).where(Booking.id == booking_id).execution_options(populate_existing=True)
        result = await self.db.execute(stmt)
        return result.scalar_one_or_none()

    async def get_booking_or_raise(self, booking_id: int) -> Booking:
        """Get booking by ID or raise BookingNotFound."""
        booking = await self.get_booking_by_id(booking_id)
        if not booking:
            logger.warning("Booking not found", extra={"booking_id": booking_id})
            raise BookingNotFound(booking_id)
        return booking

    async def _commit(self, trip_id: int, booking_id: Optional[int] = None) -> None:
        try:
            await self.db.commit()
        except (StaleDataError, DBAPIError) as e:
            if is_concurrency_failure(e):
                logger.warning(
                    "Commit lost to a concurrent transaction",
                    extra={"trip_id": trip_id, "booking_id": booking_id, "error": str(e)},
                )
                raise ConcurrentModification(trip_id=trip_id, booking_id=booking_id) from e
            raise

    async def _rejected(self, operation: str, rejection: BookingRejection, **context) -> BookingOutcome:
        await self.db.rollback()
        metrics_collector.record_rejection(operation, rejection.code)
        logger.info(
            "Booking operation rejected",
            extra={"operation": operation, "code": rejection.code, "detail": str(rejection), **context},
        )
        return BookingOutcome(rejection=rejection)

    async def _notify_waiting(self, trip: Trip, booking: Booking) -> None:
        trip_id = trip.id
        if trip.available_rooms > 0:
            try:
                await self.queue.notify_next(trip_id)
            except Exception as e:
                await self.db.rollback()
                logger.error(
                    "Waiting list notification failed after rooms were released",
                    extra={"trip_id": trip_id, "booking_id": booking_id, "error": str(e)},
                    exc_info=True,
                )
        # A lost claim or a failure above rolls back and expires the booking
        await self.db.refresh(booking)
