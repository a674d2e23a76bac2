"""Value Objects del dominio de reservaciones."""

from app.domain.value_objects.actor import Actor, ActorRole
from app.domain.value_objects.booking_number import BookingNumber
from app.domain.value_objects.documents import CustomerContact, Receipt, Refund
from app.domain.value_objects.money import Money
from app.domain.value_objects.schedule import (
    ReservationKind,
    RideSchedule,
    Schedule,
    TourSchedule,
)

__all__ = [
    "Actor",
    "ActorRole",
    "BookingNumber",
    "CustomerContact",
    "Money",
    "Receipt",
    "Refund",
    "ReservationKind",
    "RideSchedule",
    "Schedule",
    "TourSchedule",
]
