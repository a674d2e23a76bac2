"""Entidades del dominio de reservaciones."""

from app.domain.entities.reservation import (
    ALLOWED_TRANSITIONS,
    PaymentOutcome,
    PaymentStatus,
    Reservation,
    ReservationStatus,
    is_allowed_transition,
)

__all__ = [
    "ALLOWED_TRANSITIONS",
    "PaymentOutcome",
    "PaymentStatus",
    "Reservation",
    "ReservationStatus",
    "is_allowed_transition",
]
