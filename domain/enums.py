"""Domain Enums"""
from enum import Enum


class ReservationStatus(str, Enum):
    PENDING = "pending"
    COMPLETED = "completed"


class Location(str, Enum):
    JENS_ZETLITZ_GATE = "jens-zetlitz-gate"
    SAUDAGATA = "saudagata"
    TORBJORN_HORNKLOVES_GATE = "torbjorn-hornkloves-gate"

    @property
    def display_name(self) -> str:
        return LOCATION_NAMES[self]

    @property
    def capacity(self):
        """Maximum overlapping reservations, or None when unlimited"""
        return LOCATION_CAPACITY.get(self)

    @classmethod
    def is_valid(cls, key: str) -> bool:
        return key in cls._value2member_map_


class PaymentEventType(str, Enum):
    CHECKOUT_SESSION_COMPLETED = "checkout.session.completed"


LOCATION_NAMES = {
    Location.JENS_ZETLITZ_GATE: "Jens Zetlitz gate",
    Location.SAUDAGATA: "Saudagata",
    Location.TORBJORN_HORNKLOVES_GATE: "Torbjørn Hornkløves gate",
}

LOCATION_CAPACITY = {
    Location.SAUDAGATA: 2,
}
