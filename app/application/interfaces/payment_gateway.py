"""Interface PaymentGateway - Puerto hacia el procesador de pagos externo."""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any

from app.domain.entities.reservation import PaymentOutcome
from app.domain.value_objects.money import Money


@dataclass
class CheckoutSession:
    session_id: str
    redirect_url: str
    expires_at: int | None = None


@dataclass
class SessionVerification:
    session_id: str
    outcome: PaymentOutcome
    payment_intent_id: str | None = None
    raw_status: str | None = None


@dataclass
class WebhookPaymentEvent:
    """Evento de webhook ya traducido a un resultado de sesión."""

    event_id: str | None
    event_type: str
    session_id: str | None
    outcome: PaymentOutcome | None
    payment_intent_id: str | None = None
    metadata: dict[str, Any] = field(default_factory=dict)


class PaymentGateway(ABC):
    @abstractmethod
    async def create_session(
        self,
        amount: Money,
        metadata: dict[str, str],
        idempotency_key: str | None = None,
        description: str | None = None,
    ) -> CheckoutSession:
        """Abre una sesión de checkout por ``amount``."""
        raise NotImplementedError

    @abstractmethod
    async def verify_session(self, session_id: str) -> SessionVerification:
        """Consulta el resultado actual de una sesión de checkout."""
        raise NotImplementedError

    @abstractmethod
    async def refund(
        self,
        payment_intent_id: str,
        amount: Money,
        reason: str | None = None,
        idempotency_key: str | None = None,
    ) -> str:
        """Reembolsa un pago capturado. Retorna el ID del reembolso."""
        raise NotImplementedError

    @abstractmethod
    async def parse_webhook_event(
        self,
        payload: bytes,
        signature_header: str | None,
        webhook_secret: str | None,
    ) -> dict[str, Any]:
        """Verifica y decodifica el cuerpo de un webhook. Lanza ValueError si es inválido."""
        raise NotImplementedError
