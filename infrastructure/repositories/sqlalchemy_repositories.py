"""SQLAlchemy Repository Implementations"""
import asyncio
import zlib
from contextlib import asynccontextmanager
from datetime import date, datetime, timezone
from typing import Optional, List, Dict
from uuid import UUID

from sqlalchemy import select, update, delete, func, or_, and_
from sqlalchemy.exc import SQLAlchemyError

from domain.entities import Reservation
from domain.enums import Location, ReservationStatus
from domain.exceptions import RepositoryError
from domain.repositories import ReservationRepository
from domain.value_objects import DateRange, Money, Vehicle
from infrastructure.database import ReservationRecord, get_session


def _as_utc(value: datetime) -> datetime:
    # SQLite hands back naive datetimes; everything is stored in UTC
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def _to_record(reservation: Reservation) -> ReservationRecord:
    return ReservationRecord(
        id=str(reservation.reservation_id),
        full_name=reservation.full_name,
        email=reservation.email,
        start_date=reservation.start_date,
        end_date=reservation.end_date,
        license_plate=reservation.vehicle.license_plate,
        no_license_plate=reservation.vehicle.no_license_plate,
        location=reservation.location.value,
        total_price=reservation.total_price.amount,
        currency=reservation.total_price.currency,
        payment_reference=reservation.payment_reference,
        checkout_session_id=reservation.checkout_session_id,
        status=reservation.status.value,
        created_at=reservation.created_at,
        modified_at=reservation.modified_at,
        version=reservation.version,
    )


def _to_entity(record: ReservationRecord) -> Reservation:
    return Reservation(
        reservation_id=UUID(record.id),
        full_name=record.full_name,
        email=record.email,
        date_range=DateRange(start_date=record.start_date, end_date=record.end_date),
        vehicle=Vehicle(
            license_plate=record.license_plate,
            no_license_plate=record.no_license_plate
        ),
        location=Location(record.location),
        total_price=Money(amount=record.total_price, currency=record.currency),
        payment_reference=record.payment_reference,
        checkout_session_id=record.checkout_session_id,
        status=ReservationStatus(record.status),
        created_at=_as_utc(record.created_at),
        modified_at=_as_utc(record.modified_at),
        version=record.version,
    )


def _advisory_key(location: Location) -> int:
    return zlib.crc32(f"reservations:{location.value}".encode("utf-8"))


class SqlAlchemyReservationRepository(ReservationRepository):
    """Relational implementation of ReservationRepository (async SQLAlchemy)"""

    def __init__(self, engine):
        self._engine = engine
        self._session_factory = get_session(engine)
        self._location_locks: Dict[str, asyncio.Lock] = {}

    @asynccontextmanager
    async def _transaction(self):
        try:
            async with self._session_factory() as session:
                async with session.begin():
                    yield session
        except SQLAlchemyError as e:
            raise RepositoryError(f"Reservation store failure: {e.__class__.__name__}") from e

    def _location_lock(self, location: Location) -> asyncio.Lock:
        return self._location_locks.setdefault(location.value, asyncio.Lock())

    async def save(self, reservation: Reservation) -> Reservation:
        async with self._transaction() as session:
            await session.merge(_to_record(reservation))
        return reservation

    async def save_within_capacity(
        self,
        reservation: Reservation,
        capacity: int,
        hold_since: Optional[datetime] = None
    ) -> bool:
        # The process-local lock serializes this instance; the advisory lock
        # serializes instances sharing one PostgreSQL database.
        async with self._location_lock(reservation.location):
            async with self._transaction() as session:
                if self._engine.dialect.name == "postgresql":
                    await session.execute(
                        select(func.pg_advisory_xact_lock(_advisory_key(reservation.location)))
                    )

                occupied = await self._count(
                    session,
                    reservation.location,
                    reservation.start_date,
                    reservation.end_date,
                    None,
                    hold_since
                )
                if occupied >= capacity:
                    return False

                session.add(_to_record(reservation))
        return True

    async def count_occupying(
        self,
        location: Location,
        start_date: date,
        end_date: date,
        exclude_id: Optional[UUID] = None,
        hold_since: Optional[datetime] = None
    ) -> int:
        async with self._transaction() as session:
            return await self._count(session, location, start_date, end_date, exclude_id, hold_since)

    async def find_by_id(self, reservation_id: UUID) -> Optional[Reservation]:
        async with self._transaction() as session:
            record = await session.get(ReservationRecord, str(reservation_id))
            return _to_entity(record) if record else None

    async def find_by_payment_reference(self, payment_reference: str) -> Optional[Reservation]:
        async with self._transaction() as session:
            res = await session.execute(
                select(ReservationRecord).where(ReservationRecord.payment_reference == payment_reference)
            )
            record = res.scalar_one_or_none()
            return _to_entity(record) if record else None

    async def find_all(self) -> List[Reservation]:
        async with self._transaction() as session:
            res = await session.execute(
                select(ReservationRecord).order_by(ReservationRecord.created_at.desc())
            )
            return [_to_entity(record) for record in res.scalars().all()]

    async def attach_checkout_session(self, reservation_id: UUID, session_id: str) -> Optional[Reservation]:
        async with self._transaction() as session:
            await session.execute(
                update(ReservationRecord)
                .where(ReservationRecord.id == str(reservation_id))
                .values(
                    checkout_session_id=session_id,
                    modified_at=datetime.now(timezone.utc),
                    version=ReservationRecord.version + 1,
                )
                .execution_options(synchronize_session=False)
            )
            record = await session.get(ReservationRecord, str(reservation_id))
            return _to_entity(record) if record else None

    async def complete_pending(self, payment_reference: str) -> List[Reservation]:
        async with self._transaction() as session:
            res = await session.execute(
                update(ReservationRecord)
                .where(
                    ReservationRecord.payment_reference == payment_reference,
                    ReservationRecord.status == ReservationStatus.PENDING.value,
                )
                .values(
                    status=ReservationStatus.COMPLETED.value,
                    modified_at=datetime.now(timezone.utc),
                    version=ReservationRecord.version + 1,
                )
                .returning(ReservationRecord.id)
                .execution_options(synchronize_session=False)
            )
            ids = [row[0] for row in res.all()]
            if not ids:
                return []

            records = await session.execute(
                select(ReservationRecord).where(ReservationRecord.id.in_(ids))
            )
            return [_to_entity(record) for record in records.scalars().all()]

    async def delete(self, reservation_id: UUID) -> bool:
        async with self._transaction() as session:
            res = await session.execute(
                delete(ReservationRecord).where(ReservationRecord.id == str(reservation_id))
            )
            return res.rowcount > 0

    async def _count(
        self,
        session,
        location: Location,
        start_date: date,
        end_date: date,
        exclude_id: Optional[UUID],
        hold_since: Optional[datetime]
    ) -> int:
        occupying = ReservationRecord.status == ReservationStatus.COMPLETED.value
        if hold_since is not None:
            occupying = or_(
                occupying,
                and_(
                    ReservationRecord.status == ReservationStatus.PENDING.value,
                    ReservationRecord.created_at >= hold_since,
                ),
            )

        stmt = (
            select(func.count())
            .select_from(ReservationRecord)
            .where(
                ReservationRecord.location == location.value,
                ReservationRecord.start_date < end_date,
                ReservationRecord.end_date > start_date,
                occupying,
            )
        )
        if exclude_id is not None:
            stmt = stmt.where(ReservationRecord.id != str(exclude_id))

        res = await session.execute(stmt)
        return res.scalar_one()
