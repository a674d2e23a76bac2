"""Interfaces (Puertos) de la capa de aplicación."""

from app.application.interfaces.clock import Clock, FakeClock, SystemClock
from app.application.interfaces.document_store import DocumentStore
from app.application.interfaces.payment_gateway import (
    CheckoutSession,
    PaymentGateway,
    SessionVerification,
    WebhookPaymentEvent,
)
from app.application.interfaces.reservation_repo import (
    MUTABLE_FIELDS,
    ReservationGuard,
    ReservationRepo,
)
from app.application.interfaces.uuid_generator import (
    FakeUUIDGenerator,
    RealUUIDGenerator,
    UUIDGenerator,
)

__all__ = [
    # Repositories
    "ReservationRepo",
    "ReservationGuard",
    "MUTABLE_FIELDS",
    "DocumentStore",
    # Gateways
    "PaymentGateway",
    "CheckoutSession",
    "SessionVerification",
    "WebhookPaymentEvent",
    # Utilities
    "Clock",
    "SystemClock",
    "FakeClock",
    "UUIDGenerator",
    "RealUUIDGenerator",
    "FakeUUIDGenerator",
]
