"""
Capa de Aplicación - Ciclo de vida de reservaciones.

Esta capa contiene los servicios, casos de uso e interfaces (puertos).
Orquesta las reglas del dominio y define los contratos con la infraestructura.

Estructura:
- services/: Máquina de estados, asignación de conductores y emisión de recibos
- use_cases/: Webhook de pagos y workers de reconciliación
- interfaces/: Puertos (contratos para adaptadores)
"""

from app.application.interfaces import (
    CheckoutSession,
    Clock,
    DocumentStore,
    FakeClock,
    FakeUUIDGenerator,
    PaymentGateway,
    RealUUIDGenerator,
    ReservationGuard,
    ReservationRepo,
    SessionVerification,
    SystemClock,
    UUIDGenerator,
)

__all__ = [
    # Interfaces - Repositories
    "ReservationRepo",
    "ReservationGuard",
    "DocumentStore",
    # Interfaces - Gateways
    "PaymentGateway",
    "CheckoutSession",
    "SessionVerification",
    # Interfaces - Utilities
    "Clock",
    "SystemClock",
    "FakeClock",
    "UUIDGenerator",
    "RealUUIDGenerator",
    "FakeUUIDGenerator",
]
