import asyncio
import json
import logging
from typing import Any

import stripe
from pybreaker import CircuitBreaker

from app.application.interfaces.payment_gateway import (
    CheckoutSession,
    PaymentGateway,
    SessionVerification,
)
from app.config import get_settings
from app.domain.entities.reservation import PaymentOutcome
from app.domain.errors import PaymentGatewayError
from app.domain.value_objects.money import Money
from app.infrastructure.circuit_breaker import CircuitBreakerError, stripe_breaker

logger = logging.getLogger(__name__)

PAID_SESSION_STATUSES = ("paid", "no_payment_required")


def session_outcome(status: str | None, payment_status: str | None) -> PaymentOutcome:
    """Mapea el estado de una Checkout Session de Stripe a un resultado de pago."""
    if payment_status in PAID_SESSION_STATUSES:
        return PaymentOutcome.PAID
    if status == "expired":
        return PaymentOutcome.FAILED
    # "open", o "complete" con un método asíncrono aún en proceso
    return PaymentOutcome.PENDING


class StripeGatewayReal(PaymentGateway):
    def __init__(
        self,
        api_key: str | None = None,
        success_url: str | None = None,
        cancel_url: str | None = None,
        breaker: CircuitBreaker | None = None,
    ) -> None:
        settings = get_settings()
        stripe.api_key = api_key or settings.stripe_api_key
        self._success_url = success_url or settings.checkout_success_url
        self._cancel_url = cancel_url or settings.checkout_cancel_url
        self._breaker = breaker or stripe_breaker

        # The SDK is synchronous; calls run in a worker thread with a bounded timeout.
        stripe.max_network_retries = 2
        stripe.default_http_client = stripe.RequestsClient(timeout=10.0)

    async def _call(self, operation: str, func, **kwargs: Any):
        """Run a Stripe SDK call behind the circuit breaker, off the event loop."""
        try:
            return await asyncio.to_thread(self._breaker.call, func, **kwargs)
        except CircuitBreakerError as e:
            logger.error(
                "Stripe circuit breaker is open - service unavailable",
                extra={"operation": operation, "circuit_state": str(e)},
            )
            raise PaymentGatewayError(operation, "circuit breaker open") from e
        except stripe.StripeError as e:
            logger.error(
                "Stripe API error",
                exc_info=e,
                extra={"operation": operation},
            )
            raise PaymentGatewayError(operation, getattr(e, "user_message", None) or str(e)) from e

    async def create_session(
        self,
        amount: Money,
        metadata: dict[str, str],
        idempotency_key: str | None = None,
        description: str | None = None,
    ) -> CheckoutSession:
        kwargs: dict[str, Any] = {
            "mode": "payment",
            "line_items": [
                {
                    "price_data": {
                        "currency": amount.currency_code.lower(),
                        "product_data": {"name": description or "Reservation"},
                        "unit_amount": amount.to_cents(),
                    },
                    "quantity": 1,
                }
            ],
            "metadata": metadata,
            "payment_intent_data": {"metadata": metadata},
            "success_url": self._success_url,
            "cancel_url": self._cancel_url,
        }
        if idempotency_key:
            kwargs["idempotency_key"] = idempotency_key
        session = await self._call("create_session", stripe.checkout.Session.create, **kwargs)
        logger.info(
            "Stripe checkout session created",
            extra={"session_id": session.id, "reservation_id": metadata.get("reservation_id")},
        )
        return CheckoutSession(
            session_id=session.id,
            redirect_url=session.url,
            expires_at=getattr(session, "expires_at", None),
        )

    async def verify_session(self, session_id: str) -> SessionVerification:
        session = await self._call(
            "verify_session", stripe.checkout.Session.retrieve, id=session_id
        )
        payment_intent = getattr(session, "payment_intent", None)
        if payment_intent is not None and not isinstance(payment_intent, str):
            payment_intent = payment_intent.id
        return SessionVerification(
            session_id=session_id,
            outcome=session_outcome(
                getattr(session, "status", None), getattr(session, "payment_status", None)
            ),
            payment_intent_id=payment_intent,
            raw_status=getattr(session, "status", None),
        )

    async def refund(
        self,
        payment_intent_id: str,
        amount: Money,
        reason: str | None = None,
        idempotency_key: str | None = None,
    ) -> str:
        kwargs: dict[str, Any] = {
            "payment_intent": payment_intent_id,
            "amount": amount.to_cents(),
            "reason": "requested_by_customer",
            "metadata": {"reason": reason or ""},
        }
        if idempotency_key:
            kwargs["idempotency_key"] = idempotency_key
        refund = await self._call("refund", stripe.Refund.create, **kwargs)
        return refund.id

    async def parse_webhook_event(
        self,
        payload: bytes,
        signature_header: str | None,
        webhook_secret: str | None,
    ) -> dict:
        if webhook_secret:
            if not signature_header:
                raise ValueError("Missing Stripe-Signature header")
            try:
                event = stripe.Webhook.construct_event(
                    payload=payload.decode(),
                    sig_header=signature_header,
                    secret=webhook_secret,
                )
            except stripe.SignatureVerificationError as exc:
                raise ValueError("Invalid Stripe signature") from exc
            except Exception as exc:  # noqa: BLE001
                raise ValueError("Invalid Stripe webhook payload") from exc
        else:
            try:
                event = stripe.Event.construct_from(
                    json.loads(payload.decode() or "{}"), stripe.api_key
                )
            except Exception as exc:  # noqa: BLE001
                raise ValueError("Invalid webhook payload") from exc

        return event.to_dict() if hasattr(event, "to_dict") else dict(event)
