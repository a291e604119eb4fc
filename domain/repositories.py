"""Domain Repository Interfaces"""
from abc import ABC, abstractmethod
from typing import Optional, List
from uuid import UUID
from datetime import date, datetime

from domain.entities import Reservation
from domain.enums import Location


class ReservationRepository(ABC):
    """Repository interface for Reservation Aggregate"""

    @abstractmethod
    async def save(self, reservation: Reservation) -> Reservation:
        """Insert or replace reservation"""
        pass

    @abstractmethod
    async def save_within_capacity(
        self,
        reservation: Reservation,
        capacity: int,
        hold_since: Optional[datetime] = None
    ) -> bool:
        """Insert reservation only if fewer than capacity reservations occupy its dates.

        The count and the insert happen as one atomic step per location.
        Returns False without inserting when the location is full.
        """
        pass

    @abstractmethod
    async def count_occupying(
        self,
        location: Location,
        start_date: date,
        end_date: date,
        exclude_id: Optional[UUID] = None,
        hold_since: Optional[datetime] = None
    ) -> int:
        """Count reservations taking a space at location during [start_date, end_date)"""
        pass

    @abstractmethod
    async def find_by_id(self, reservation_id: UUID) -> Optional[Reservation]:
        """Find reservation by ID"""
        pass

    @abstractmethod
    async def find_by_payment_reference(self, payment_reference: str) -> Optional[Reservation]:
        """Find reservation by payment reference"""
        pass

    @abstractmethod
    async def find_all(self) -> List[Reservation]:
        """Find all reservations, newest first"""
        pass

    @abstractmethod
    async def attach_checkout_session(self, reservation_id: UUID, session_id: str) -> Optional[Reservation]:
        """Record the provider's checkout session id"""
        pass

    @abstractmethod
    async def complete_pending(self, payment_reference: str) -> List[Reservation]:
        """Flip pending reservations with this reference to completed.

        Conditional on status = pending, so replays match nothing.
        Returns only the reservations this call transitioned.
        """
        pass

    @abstractmethod
    async def delete(self, reservation_id: UUID) -> bool:
        """Delete reservation"""
        pass
