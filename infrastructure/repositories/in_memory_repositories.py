"""In-Memory Repository Implementations"""
import asyncio
from typing import Optional, List, Dict
from uuid import UUID
from datetime import date, datetime

from domain.repositories import ReservationRepository
from domain.entities import Reservation
from domain.enums import Location, ReservationStatus


class InMemoryReservationRepository(ReservationRepository):
    """In-memory implementation of ReservationRepository"""

    def __init__(self):
        self._storage: Dict[UUID, Reservation] = {}
        self._lock = asyncio.Lock()

    async def save(self, reservation: Reservation) -> Reservation:
        """Save reservation to memory"""
        async with self._lock:
            self._ensure_unique_reference(reservation)
            self._storage[reservation.reservation_id] = reservation
        return reservation

    async def save_within_capacity(
        self,
        reservation: Reservation,
        capacity: int,
        hold_since: Optional[datetime] = None
    ) -> bool:
        async with self._lock:
            occupied = self._count(
                reservation.location,
                reservation.start_date,
                reservation.end_date,
                None,
                hold_since
            )
            if occupied >= capacity:
                return False
            self._ensure_unique_reference(reservation)
            self._storage[reservation.reservation_id] = reservation
            return True

    async def count_occupying(
        self,
        location: Location,
        start_date: date,
        end_date: date,
        exclude_id: Optional[UUID] = None,
        hold_since: Optional[datetime] = None
    ) -> int:
        return self._count(location, start_date, end_date, exclude_id, hold_since)

    async def find_by_id(self, reservation_id: UUID) -> Optional[Reservation]:
        """Find reservation by ID"""
        return self._storage.get(reservation_id)

    async def find_by_payment_reference(self, payment_reference: str) -> Optional[Reservation]:
        for reservation in self._storage.values():
            if reservation.payment_reference == payment_reference:
                return reservation
        return None

    async def find_all(self) -> List[Reservation]:
        """Find all reservations, newest first"""
        return sorted(self._storage.values(), key=lambda r: r.created_at, reverse=True)

    async def attach_checkout_session(self, reservation_id: UUID, session_id: str) -> Optional[Reservation]:
        async with self._lock:
            reservation = self._storage.get(reservation_id)
            if reservation is None:
                return None
            reservation.attach_checkout_session(session_id)
            return reservation

    async def complete_pending(self, payment_reference: str) -> List[Reservation]:
        async with self._lock:
            transitioned = []
            for reservation in self._storage.values():
                if (reservation.payment_reference == payment_reference
                        and reservation.status == ReservationStatus.PENDING):
                    reservation.complete()
                    transitioned.append(reservation)
            return transitioned

    async def delete(self, reservation_id: UUID) -> bool:
        """Delete reservation"""
        async with self._lock:
            if reservation_id in self._storage:
                del self._storage[reservation_id]
                return True
            return False

    def _count(
        self,
        location: Location,
        start_date: date,
        end_date: date,
        exclude_id: Optional[UUID],
        hold_since: Optional[datetime]
    ) -> int:
        return sum(
            1 for r in self._storage.values()
            if r.reservation_id != exclude_id
            and r.occupies(location, start_date, end_date, hold_since)
        )

    def _ensure_unique_reference(self, reservation: Reservation) -> None:
        for other in self._storage.values():
            if (other.reservation_id != reservation.reservation_id
                    and other.payment_reference == reservation.payment_reference):
                raise ValueError("Payment reference already in use")
