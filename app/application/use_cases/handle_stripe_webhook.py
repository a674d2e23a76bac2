import logging
from dataclasses import dataclass

from fastapi import HTTPException, status

from app.api.schemas.reservations import StripeWebhookEnvelope
from app.application.interfaces.payment_gateway import PaymentGateway, WebhookPaymentEvent
from app.application.interfaces.reservation_repo import ReservationRepo
from app.application.services.lifecycle_manager import ReservationLifecycleManager
from app.application.services.retry import retry_on_conflict
from app.domain.entities.reservation import PaymentOutcome
from app.domain.errors import AlreadyFinalError, StaleSessionError

SESSION_EVENT_OUTCOMES: dict[str, PaymentOutcome] = {
    "checkout.session.async_payment_succeeded": PaymentOutcome.PAID,
    "checkout.session.async_payment_failed": PaymentOutcome.FAILED,
    "checkout.session.expired": PaymentOutcome.FAILED,
}


@dataclass
class WebhookResult:
    status: str
    event_type: str
    reservation_id: str | None = None


def translate_event(event: StripeWebhookEnvelope) -> WebhookPaymentEvent:
    """Traduce un evento de Stripe a un resultado de sesión de checkout."""
    data_obj = event.data.get("object", {}) if isinstance(event.data, dict) else {}
    outcome: PaymentOutcome | None = None
    if event.type == "checkout.session.completed":
        # Los métodos asíncronos completan el checkout sin pago todavía.
        if data_obj.get("payment_status") in ("paid", "no_payment_required"):
            outcome = PaymentOutcome.PAID
        else:
            outcome = PaymentOutcome.PENDING
    else:
        outcome = SESSION_EVENT_OUTCOMES.get(event.type)

    return WebhookPaymentEvent(
        event_id=event.id,
        event_type=event.type,
        session_id=data_obj.get("id") if outcome is not None else None,
        outcome=outcome,
        payment_intent_id=data_obj.get("payment_intent"),
        metadata=data_obj.get("metadata") or {},
    )


class HandleStripeWebhookUseCase:
    def __init__(
        self,
        lifecycle_manager: ReservationLifecycleManager,
        reservation_repo: ReservationRepo,
        payment_gateway: PaymentGateway,
        stripe_webhook_secret: str | None,
    ) -> None:
        self._lifecycle_manager = lifecycle_manager
        self._reservation_repo = reservation_repo
        self._payment_gateway = payment_gateway
        self._stripe_webhook_secret = stripe_webhook_secret
        self._logger = logging.getLogger(__name__)

    async def execute(self, raw_body: bytes, signature: str | None) -> WebhookResult:
        if not raw_body:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST, detail="Empty webhook body"
            )
        try:
            event_dict = await self._payment_gateway.parse_webhook_event(
                payload=raw_body,
                signature_header=signature,
                webhook_secret=self._stripe_webhook_secret,
            )
            event = StripeWebhookEnvelope.model_validate(event_dict)
        except ValueError as exc:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc

        payment_event = translate_event(event)
        if payment_event.outcome is None or not payment_event.session_id:
            self._logger.info(
                "Stripe webhook ignored",
                extra={"stripe_event_id": event.id, "event_type": event.type},
            )
            return WebhookResult(status="ignored", event_type=event.type)

        reservation_id = await self._resolve_reservation_id(payment_event)
        if reservation_id is None:
            self._logger.warning(
                "Stripe webhook for unknown session",
                extra={"stripe_event_id": event.id, "session_id": payment_event.session_id},
            )
            return WebhookResult(status="ignored", event_type=event.type)

        async def _record():
            return await self._lifecycle_manager.record_payment_outcome(
                reservation_id,
                payment_event.session_id,
                payment_event.outcome,
                payment_intent_id=payment_event.payment_intent_id,
            )

        try:
            await retry_on_conflict(_record)
        except StaleSessionError:
            return WebhookResult(status="stale", event_type=event.type, reservation_id=reservation_id)
        except AlreadyFinalError as exc:
            self._logger.info(
                "Stripe webhook for final reservation acknowledged",
                extra={"stripe_event_id": event.id, "reservation_id": reservation_id, "error": exc.message},
            )
            return WebhookResult(status="final", event_type=event.type, reservation_id=reservation_id)

        self._logger.info(
            "Stripe webhook processed",
            extra={
                "stripe_event_id": event.id,
                "event_type": event.type,
                "session_id": payment_event.session_id,
                "reservation_id": reservation_id,
                "outcome": payment_event.outcome.value,
            },
        )
        return WebhookResult(status="processed", event_type=event.type, reservation_id=reservation_id)

    async def _resolve_reservation_id(self, payment_event: WebhookPaymentEvent) -> str | None:
        reservation_id = payment_event.metadata.get("reservation_id")
        if reservation_id and await self._reservation_repo.get(reservation_id) is not None:
            return reservation_id
        reservation = await self._reservation_repo.get_by_session(payment_event.session_id)
        return reservation.id if reservation else None
