"""
Capa de Dominio - Ciclo de vida de reservaciones de viajes y tours.

Esta capa contiene la lógica de negocio pura, sin dependencias de frameworks.
Incluye entidades, value objects y excepciones de dominio.

Estructura:
- entities/: Entidades del dominio (Reservation) y la tabla de transiciones
- value_objects/: Objetos de valor inmutables (Money, Schedule, Actor, Receipt, etc.)
- errors.py: Excepciones específicas del dominio
"""

from app.domain.entities import (
    PaymentOutcome,
    PaymentStatus,
    Reservation,
    ReservationStatus,
)
from app.domain.errors import (
    ActorNotAllowedError,
    AlreadyClaimedError,
    AlreadyFinalError,
    ConcurrentModificationError,
    DomainError,
    InvalidMoneyError,
    InvalidReservationStatusError,
    NotAssignedError,
    PaymentGatewayError,
    ReceiptGenerationError,
    ReceiptNotReadyError,
    ReservationNotFoundError,
    StaleSessionError,
    ValidationError,
)
from app.domain.value_objects import (
    Actor,
    ActorRole,
    BookingNumber,
    CustomerContact,
    Money,
    Receipt,
    Refund,
    ReservationKind,
    RideSchedule,
    TourSchedule,
)

__all__ = [
    # Entities
    "Reservation",
    "ReservationStatus",
    "PaymentStatus",
    "PaymentOutcome",
    # Value Objects
    "Actor",
    "ActorRole",
    "BookingNumber",
    "CustomerContact",
    "Money",
    "Receipt",
    "Refund",
    "ReservationKind",
    "RideSchedule",
    "TourSchedule",
    # Errors
    "DomainError",
    "ReservationNotFoundError",
    "AlreadyFinalError",
    "AlreadyClaimedError",
    "NotAssignedError",
    "StaleSessionError",
    "ConcurrentModificationError",
    "InvalidReservationStatusError",
    "ActorNotAllowedError",
    "PaymentGatewayError",
    "ReceiptNotReadyError",
    "ReceiptGenerationError",
    "ValidationError",
    "InvalidMoneyError",
]
