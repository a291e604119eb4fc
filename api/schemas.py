"""API Schemas - Request and Response DTOs"""
from pydantic import BaseModel, Field
from datetime import date, datetime
from uuid import UUID
from typing import Dict, List, Optional


# ============================================================================
# RESERVATION SCHEMAS
# ============================================================================

class CreateReservationRequest(BaseModel):
    """Create reservation request DTO.

    Field presence and formats are checked by the service so that
    rejections carry a readable reason and keep a fixed order.
    """
    full_name: Optional[str] = Field(None, alias="fullName")
    email: Optional[str] = None
    start_date: Optional[str] = Field(None, alias="startDate")
    end_date: Optional[str] = Field(None, alias="endDate")
    location: Optional[str] = None
    license_plate: Optional[str] = Field(None, alias="licensePlate")
    no_license_plate: bool = Field(False, alias="noLicensePlate")

    class Config:
        populate_by_name = True


class CreateReservationResponse(BaseModel):
    """Where to send the payer next"""
    reservation_id: UUID
    session_id: Optional[str] = None
    url: str
    status: str
    nights: int
    total_price: int
    currency: str


class ReservationStatusResponse(BaseModel):
    """Public view of one reservation, without contact or vehicle details"""
    reservation_id: UUID
    status: str
    location: str
    location_name: str
    start_date: date
    end_date: date
    nights: int
    total_price: int
    currency: str


class AdminReservationResponse(BaseModel):
    """Reservation as listed to admins; licence plate is masked"""
    reservation_id: UUID
    full_name: str
    email: str
    start_date: date
    end_date: date
    license_plate: Optional[str] = None
    no_license_plate: bool
    location: str
    total_price: int
    currency: str
    payment_reference: str
    checkout_session_id: Optional[str] = None
    status: str
    created_at: datetime


class ReservationStatsResponse(BaseModel):
    total: int
    completed: int
    pending: int
    revenue: int
    currency: str
    location_counts: Dict[str, int]


class AdminOverviewResponse(BaseModel):
    reservations: List[AdminReservationResponse]
    stats: ReservationStatsResponse


# ============================================================================
# LOCATION & AVAILABILITY SCHEMAS
# ============================================================================

class LocationResponse(BaseModel):
    key: str
    name: str
    capacity: Optional[int] = None
    nightly_rate: int
    currency: str


class AvailabilityResponse(BaseModel):
    location: str
    start_date: date
    end_date: date
    available: bool


# ============================================================================
# WEBHOOK SCHEMAS
# ============================================================================

class WebhookAcknowledgement(BaseModel):
    received: bool = True


# ============================================================================
# AUTH SCHEMAS
# ============================================================================

class Token(BaseModel):
    access_token: str
    token_type: str


class TokenData(BaseModel):
    username: Optional[str] = None
