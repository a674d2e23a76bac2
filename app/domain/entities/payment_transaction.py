"""Entidad PaymentTransaction - una sesión de cobro en el libro de pagos."""

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from enum import Enum

from app.domain.value_objects.money import Money
from app.domain.value_objects.schedule import ReservationKind


class TransactionStatus(str, Enum):
    """Estados de una transacción de pago."""

    PENDING = "pending"
    COMPLETED = "completed"
    FAILED = "failed"
    REFUNDED = "refunded"
    CANCELLED = "cancelled"


@dataclass
class PaymentTransaction:
    """
    Registro de una sesión de checkout y su resultado.

    Hay una transacción por sesión (``session_id`` es único). La reservación
    sigue siendo la fuente de verdad del estado de pago; la transacción guarda
    el historial: sesiones reemplazadas, fallidas, cobradas y reembolsadas.
    """

    id: str
    reservation_id: str
    owner_id: str
    kind: ReservationKind
    session_id: str
    amount: Money
    status: TransactionStatus = TransactionStatus.PENDING
    payment_intent_id: str | None = None

    refund_id: str | None = None
    refund_amount: Decimal | None = None
    refund_reason: str | None = None

    created_at: datetime | None = None
    completed_at: datetime | None = None
    failed_at: datetime | None = None
    refunded_at: datetime | None = None
    cancelled_at: datetime | None = None
