"""Domain Value Objects"""
from pydantic import BaseModel, Field, validator
from datetime import date
from typing import Optional


class DateRange(BaseModel):
    """Half-open calendar range [start_date, end_date)"""
    start_date: date
    end_date: date

    @validator('end_date')
    def end_after_start(cls, v, values):
        if 'start_date' in values and v <= values['start_date']:
            raise ValueError('End date must be after start date')
        return v

    def nights(self) -> int:
        """Number of nights, never less than one"""
        return max(1, (self.end_date - self.start_date).days)

    def overlaps(self, start_date: date, end_date: date) -> bool:
        """Strict half-open overlap; touching boundaries do not overlap"""
        return self.start_date < end_date and start_date < self.end_date

    class Config:
        frozen = True


class Money(BaseModel):
    """Amount in minor currency units (øre for NOK)"""
    amount: int = Field(ge=0)
    currency: str = "nok"

    class Config:
        frozen = True


class Vehicle(BaseModel):
    """Licence plate, or the explicit flag that the plate is not known yet"""
    license_plate: Optional[str] = None
    no_license_plate: bool = False

    @validator('license_plate')
    def normalize_plate(cls, v):
        if v is None:
            return None
        v = v.strip().upper()
        return v or None

    def masked_plate(self) -> Optional[str]:
        if not self.license_plate:
            return None
        return f"****{self.license_plate[-4:]}"

    class Config:
        frozen = True


class CheckoutSession(BaseModel):
    """Hosted checkout session returned by the payment provider"""
    session_id: str
    url: str

    class Config:
        frozen = True


class PaymentEvent(BaseModel):
    """Verified notification from the payment provider"""
    event_id: Optional[str] = None
    event_type: str
    session_id: Optional[str] = None
    payment_reference: Optional[str] = None

    class Config:
        frozen = True
