import json
from decimal import Decimal
from uuid import uuid4

from app.application.interfaces.payment_gateway import (
    CheckoutSession,
    PaymentGateway,
    SessionVerification,
)
from app.domain.entities.reservation import PaymentOutcome
from app.domain.errors import PaymentGatewayError
from app.domain.value_objects.money import Money


class StubStripeGateway(PaymentGateway):
    """
    Gateway de pagos simulado.

    Las sesiones quedan abiertas (``pending``) hasta que una prueba fija su
    resultado con ``set_outcome``. Respeta las llaves de idempotencia igual que Stripe.
    """

    def __init__(self, checkout_base_url: str = "https://checkout.stripe.test/pay") -> None:
        self._checkout_base_url = checkout_base_url
        self.sessions: dict[str, dict] = {}
        self.refunds: dict[str, dict] = {}
        self._idempotent_results: dict[str, object] = {}
        self.fail_next: int = 0

    def set_outcome(
        self,
        session_id: str,
        outcome: PaymentOutcome | str,
        payment_intent_id: str | None = None,
    ) -> None:
        session = self.sessions[session_id]
        session["outcome"] = PaymentOutcome(outcome)
        if payment_intent_id or session["outcome"] == PaymentOutcome.PAID:
            session["payment_intent_id"] = payment_intent_id or f"pi_{uuid4().hex[:14]}"

    def _maybe_fail(self, operation: str) -> None:
        if self.fail_next > 0:
            self.fail_next -= 1
            raise PaymentGatewayError(operation, "simulated outage")

    async def create_session(
        self,
        amount: Money,
        metadata: dict[str, str],
        idempotency_key: str | None = None,
        description: str | None = None,
    ) -> CheckoutSession:
        if idempotency_key and idempotency_key in self._idempotent_results:
            return self._idempotent_results[idempotency_key]
        self._maybe_fail("create_session")
        session_id = f"cs_test_{uuid4().hex[:24]}"
        self.sessions[session_id] = {
            "amount": amount,
            "metadata": dict(metadata),
            "description": description,
            "outcome": PaymentOutcome.PENDING,
            "payment_intent_id": None,
        }
        session = CheckoutSession(
            session_id=session_id,
            redirect_url=f"{self._checkout_base_url}/{session_id}",
        )
        if idempotency_key:
            self._idempotent_results[idempotency_key] = session
        return session

    async def verify_session(self, session_id: str) -> SessionVerification:
        self._maybe_fail("verify_session")
        session = self.sessions.get(session_id)
        if session is None:
            raise PaymentGatewayError("verify_session", f"No such checkout session: {session_id}")
        return SessionVerification(
            session_id=session_id,
            outcome=session["outcome"],
            payment_intent_id=session["payment_intent_id"],
            raw_status=session["outcome"].value,
        )

    async def refund(
        self,
        payment_intent_id: str,
        amount: Money,
        reason: str | None = None,
        idempotency_key: str | None = None,
    ) -> str:
        if idempotency_key and idempotency_key in self._idempotent_results:
            return self._idempotent_results[idempotency_key]
        self._maybe_fail("refund")
        refund_id = f"re_{uuid4().hex[:14]}"
        self.refunds[refund_id] = {
            "payment_intent_id": payment_intent_id,
            "amount": Decimal(amount.amount),
            "reason": reason,
        }
        if idempotency_key:
            self._idempotent_results[idempotency_key] = refund_id
        return refund_id

    async def parse_webhook_event(
        self,
        payload: bytes,
        signature_header: str | None,
        webhook_secret: str | None,
    ) -> dict:
        if not payload:
            raise ValueError("Empty webhook payload")
        try:
            return json.loads(payload.decode() or "{}")
        except json.JSONDecodeError as exc:
            raise ValueError("Invalid webhook payload") from exc
