"""Application Services - Business use cases"""
import logging
import re
from dataclasses import dataclass
from uuid import UUID
from datetime import date, datetime, timedelta, timezone
from typing import Callable, List, Optional

from domain.entities import Reservation, ReservationStats
from domain.enums import Location, PaymentEventType
from domain.exceptions import (
    CapacityExceededError, RepositoryError, ReservationValidationError
)
from domain.payments import PaymentGateway
from domain.repositories import ReservationRepository
from domain.value_objects import DateRange, Money, PaymentEvent, Vehicle

logger = logging.getLogger(__name__)

EMAIL_PATTERN = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class CreatedReservation:
    reservation: Reservation
    payment_url: str


@dataclass(frozen=True)
class ReservationOverview:
    reservations: List[Reservation]
    stats: ReservationStats


class AvailabilityService:
    """Read-only capacity checks for capacity-limited locations"""

    def __init__(
        self,
        repository: ReservationRepository,
        pending_hold: timedelta = timedelta(0),
        clock: Callable[[], datetime] = _utcnow
    ):
        self.repository = repository
        self.pending_hold = pending_hold
        self._clock = clock

    def hold_cutoff(self) -> Optional[datetime]:
        """Pending reservations created at or after this moment still hold a space"""
        if self.pending_hold <= timedelta(0):
            return None
        return self._clock() - self.pending_hold

    async def has_capacity(
        self,
        location: Location,
        start_date: date,
        end_date: date,
        exclude_id: Optional[UUID] = None
    ) -> bool:
        """Whether one more reservation fits at location during [start_date, end_date)"""
        capacity = location.capacity
        if capacity is None:
            return True

        occupied = await self.repository.count_occupying(
            location, start_date, end_date,
            exclude_id=exclude_id,
            hold_since=self.hold_cutoff()
        )
        return occupied < capacity

    async def admit(self, reservation: Reservation) -> bool:
        """Store reservation if its location still has room, atomically"""
        capacity = reservation.location.capacity
        if capacity is None:
            await self.repository.save(reservation)
            return True
        return await self.repository.save_within_capacity(
            reservation, capacity, hold_since=self.hold_cutoff()
        )


class ReservationService:
    """Service for the reservation lifecycle: pending on request, completed on payment"""

    def __init__(
        self,
        repository: ReservationRepository,
        availability_service: AvailabilityService,
        payment_gateway: PaymentGateway,
        nightly_rate: Money,
        today: Callable[[], date] = date.today
    ):
        self.repository = repository
        self.availability_service = availability_service
        self.payment_gateway = payment_gateway
        self.nightly_rate = nightly_rate
        self._today = today

    async def create_reservation(
        self,
        full_name: Optional[str],
        email: Optional[str],
        start_date: Optional[str],
        end_date: Optional[str],
        location: Optional[str],
        license_plate: Optional[str] = None,
        no_license_plate: bool = False
    ) -> CreatedReservation:
        """Validate, store as pending, then open a hosted checkout for it"""
        plate = (license_plate or "").strip()
        required = [full_name, email, start_date, end_date, location]
        if any(not (value or "").strip() for value in required) or (not plate and not no_license_plate):
            raise ReservationValidationError("Missing required fields")

        if not Location.is_valid(location.strip()):
            raise ReservationValidationError("Invalid location")
        location = Location(location.strip())

        if not EMAIL_PATTERN.match(email.strip()):
            raise ReservationValidationError("Invalid email address")

        try:
            start = date.fromisoformat(start_date.strip())
            end = date.fromisoformat(end_date.strip())
        except ValueError:
            raise ReservationValidationError("Invalid date format, expected YYYY-MM-DD")

        if start < self._today():
            raise ReservationValidationError("Start date cannot be in the past")
        if end <= start:
            raise ReservationValidationError("End date must be after start date")

        reservation = Reservation.create(
            full_name=full_name,
            email=email,
            date_range=DateRange(start_date=start, end_date=end),
            vehicle=Vehicle(
                license_plate=None if no_license_plate else plate,
                no_license_plate=no_license_plate
            ),
            location=location,
            nightly_rate=self.nightly_rate
        )

        if not await self.availability_service.admit(reservation):
            logger.info(
                "Capacity exceeded at %s for %s..%s",
                location.value, start.isoformat(), end.isoformat()
            )
            raise CapacityExceededError(
                f"No parking spaces available for the selected dates at {location.display_name}"
            )

        try:
            session = await self.payment_gateway.create_checkout_session(reservation)
        except BaseException:
            # Nothing can pay for this row; free its slot
            await self._discard(reservation)
            raise

        reservation = await self.repository.attach_checkout_session(
            reservation.reservation_id, session.session_id
        ) or reservation

        logger.info(
            "Reservation %s created: location=%s nights=%d price=%d session=%s",
            reservation.reservation_id, location.value, reservation.get_nights(),
            reservation.total_price.amount, session.session_id
        )
        return CreatedReservation(reservation=reservation, payment_url=session.url)

    async def confirm_reservation(self, payment_reference: str) -> List[Reservation]:
        """Complete pending reservations paid under payment_reference.

        Replays and unknown references transition nothing and are not errors.
        """
        completed = await self.repository.complete_pending(payment_reference)

        if completed:
            for reservation in completed:
                logger.info(
                    "Reservation %s completed: location=%s price=%d",
                    reservation.reservation_id, reservation.location.value,
                    reservation.total_price.amount
                )
        else:
            logger.warning("No pending reservation found for payment reference %s", payment_reference)

        return completed

    async def handle_payment_event(self, event: PaymentEvent) -> List[Reservation]:
        """Apply a verified provider event; returns reservations it completed"""
        if event.event_type != PaymentEventType.CHECKOUT_SESSION_COMPLETED.value:
            logger.info("Unhandled webhook event type %s", event.event_type)
            return []

        if not event.payment_reference:
            logger.warning(
                "Checkout session %s completed without a payment reference", event.session_id
            )
            return []

        logger.info(
            "Processing checkout.session.completed for session %s", event.session_id
        )
        return await self.confirm_reservation(event.payment_reference)

    async def get_reservation(self, reservation_id: UUID) -> Optional[Reservation]:
        """Get reservation by ID"""
        return await self.repository.find_by_id(reservation_id)

    async def get_admin_overview(self) -> ReservationOverview:
        """All reservations, newest first, with aggregate counts"""
        reservations = await self.repository.find_all()
        stats = ReservationStats.from_reservations(reservations, currency=self.nightly_rate.currency)

        logger.info(
            "Admin reservations accessed: total=%d completed=%d pending=%d",
            stats.total, stats.completed, stats.pending
        )
        return ReservationOverview(reservations=reservations, stats=stats)

    async def _discard(self, reservation: Reservation) -> None:
        """Delete a pending reservation whose checkout never started.

        A storage failure here is logged and dropped so the checkout
        error stays the one the caller sees.
        """
        try:
            await self.repository.delete(reservation.reservation_id)
        except RepositoryError:
            logger.exception(
                "Could not discard pending reservation %s; it holds its space until the hold expires",
                reservation.reservation_id
            )
            return
        logger.error(
            "Discarded pending reservation %s after checkout failure",
            reservation.reservation_id
        )
