from sqlalchemy import Column, String, Integer, Date, DateTime, Boolean, Index
from sqlalchemy.ext.asyncio import create_async_engine, async_sessionmaker
from sqlalchemy.orm import declarative_base


def get_engine(database_url: str):
    return create_async_engine(database_url, echo=False, future=True)


Base = declarative_base()


def get_session(engine):
    return async_sessionmaker(
        bind=engine,
        expire_on_commit=False
    )


async def init_models(engine) -> None:
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


class ReservationRecord(Base):
    __tablename__ = "reservations"

    id = Column(String(36), primary_key=True)

    full_name = Column(String, nullable=False)
    email = Column(String, nullable=False)

    start_date = Column(Date, nullable=False)
    end_date = Column(Date, nullable=False)

    license_plate = Column(String, nullable=True)
    no_license_plate = Column(Boolean, nullable=False, default=False)

    location = Column(String, nullable=False, index=True)

    total_price = Column(Integer, nullable=False)  # minor units
    currency = Column(String(3), nullable=False)

    payment_reference = Column(String, nullable=False, unique=True, index=True)
    checkout_session_id = Column(String, nullable=True, unique=True)

    status = Column(String, nullable=False, index=True)  # pending/completed

    created_at = Column(DateTime(timezone=True), nullable=False, index=True)
    modified_at = Column(DateTime(timezone=True), nullable=False)
    version = Column(Integer, nullable=False, default=1)

    __table_args__ = (
        Index("ix_reservations_location_dates", "location", "start_date", "end_date"),
    )
