"""Domain Entities - Aggregates"""
import secrets
from pydantic import BaseModel, Field
from uuid import UUID, uuid4
from datetime import datetime, date, timezone
from typing import Optional, List, Dict

from domain.enums import ReservationStatus, Location
from domain.value_objects import DateRange, Money, Vehicle


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Reservation(BaseModel):
    """Reservation Aggregate Root Entity"""

    # Identity
    reservation_id: UUID = Field(default_factory=uuid4)

    # Holder
    full_name: str
    email: str

    # Value Objects
    date_range: DateRange
    vehicle: Vehicle
    total_price: Money

    location: Location

    # Payment references
    payment_reference: str
    checkout_session_id: Optional[str] = None

    status: ReservationStatus = ReservationStatus.PENDING

    # Metadata
    created_at: datetime = Field(default_factory=_utcnow)
    modified_at: datetime = Field(default_factory=_utcnow)
    version: int = 1

    class Config:
        from_attributes = True

    # ==================== FACTORY METHOD ====================
    @staticmethod
    def create(
        full_name: str,
        email: str,
        date_range: DateRange,
        vehicle: Vehicle,
        location: Location,
        nightly_rate: Money,
    ) -> "Reservation":
        """Create a pending reservation priced by the night"""
        total_price = Money(
            amount=date_range.nights() * nightly_rate.amount,
            currency=nightly_rate.currency
        )

        return Reservation(
            full_name=full_name.strip(),
            email=email.strip(),
            date_range=date_range,
            vehicle=vehicle,
            location=location,
            total_price=total_price,
            payment_reference=Reservation._generate_payment_reference(),
            status=ReservationStatus.PENDING
        )

    # ==================== STATE TRANSITION METHODS ====================
    def complete(self) -> None:
        """Mark reservation as paid"""
        if self.status != ReservationStatus.PENDING:
            raise ValueError(
                f"Cannot complete reservation with status {self.status.value}"
            )

        self.status = ReservationStatus.COMPLETED
        self.modified_at = _utcnow()
        self.version += 1

    def attach_checkout_session(self, session_id: str) -> None:
        self.checkout_session_id = session_id
        self.modified_at = _utcnow()
        self.version += 1

    # ==================== QUERY METHODS ====================
    @property
    def start_date(self) -> date:
        return self.date_range.start_date

    @property
    def end_date(self) -> date:
        return self.date_range.end_date

    def get_nights(self) -> int:
        return self.date_range.nights()

    def is_pending(self) -> bool:
        return self.status == ReservationStatus.PENDING

    def is_completed(self) -> bool:
        return self.status == ReservationStatus.COMPLETED

    def occupies(
        self,
        location: Location,
        start_date: date,
        end_date: date,
        hold_since: Optional[datetime] = None
    ) -> bool:
        """Whether this reservation takes a space at location during [start_date, end_date).

        Completed reservations always do. Pending ones only while they are
        younger than hold_since; with no hold, never.
        """
        if self.location != location:
            return False
        if not self.date_range.overlaps(start_date, end_date):
            return False
        if self.is_completed():
            return True
        return hold_since is not None and self.created_at >= hold_since

    def checkout_metadata(self) -> Dict[str, str]:
        """Everything needed to rebuild this reservation from the provider side"""
        return {
            "reservation_id": str(self.reservation_id),
            "payment_reference": self.payment_reference,
            "name": self.full_name,
            "email": self.email,
            "location": self.location.value,
            "start_date": self.start_date.isoformat(),
            "end_date": self.end_date.isoformat(),
            "license_plate": self.vehicle.license_plate or "",
            "no_license_plate": "true" if self.vehicle.no_license_plate else "false",
            "nights": str(self.get_nights()),
            "total_price": str(self.total_price.amount),
        }

    # ==================== PRIVATE METHODS ====================
    @staticmethod
    def _generate_payment_reference() -> str:
        return f"pr_{secrets.token_hex(12)}"


class ReservationStats(BaseModel):
    """Aggregate counts for the admin overview"""
    total: int = 0
    completed: int = 0
    pending: int = 0
    revenue: int = 0
    currency: str = "nok"
    location_counts: Dict[str, int] = {}

    @staticmethod
    def from_reservations(reservations: List[Reservation], currency: str = "nok") -> "ReservationStats":
        completed = [r for r in reservations if r.is_completed()]
        location_counts = {location.value: 0 for location in Location}
        for reservation in reservations:
            location_counts[reservation.location.value] += 1

        return ReservationStats(
            total=len(reservations),
            completed=len(completed),
            pending=sum(1 for r in reservations if r.is_pending()),
            revenue=sum(r.total_price.amount for r in completed),
            currency=currency,
            location_counts=location_counts
        )
