"""Tests del caso de uso HandleStripeWebhook y de la traducción de eventos."""

import json

import pytest
from fastapi import HTTPException

from app.api.schemas.reservations import StripeWebhookEnvelope
from app.application.use_cases.handle_stripe_webhook import translate_event
from app.domain.entities.reservation import PaymentOutcome, PaymentStatus, ReservationStatus
from app.infrastructure.gateways.stripe_gateway_real import session_outcome


def _event(event_type: str, session_id: str, reservation_id: str | None = None, **obj) -> dict:
    data_obj = {"id": session_id, "object": "checkout.session", **obj}
    if reservation_id:
        data_obj["metadata"] = {"reservation_id": reservation_id}
    return {"id": f"evt_{event_type}", "type": event_type, "data": {"object": data_obj}}


def _body(event: dict) -> bytes:
    return json.dumps(event).encode()


class TestTranslateEvent:
    @pytest.mark.parametrize(
        "event_type,payment_status,expected",
        [
            ("checkout.session.completed", "paid", PaymentOutcome.PAID),
            ("checkout.session.completed", "no_payment_required", PaymentOutcome.PAID),
            ("checkout.session.completed", "unpaid", PaymentOutcome.PENDING),
            ("checkout.session.async_payment_succeeded", "paid", PaymentOutcome.PAID),
            ("checkout.session.async_payment_failed", "unpaid", PaymentOutcome.FAILED),
            ("checkout.session.expired", "unpaid", PaymentOutcome.FAILED),
        ],
    )
    def test_mapeo_de_eventos(self, event_type, payment_status, expected):
        envelope = StripeWebhookEnvelope.model_validate(
            _event(event_type, "cs_1", "res-1", payment_status=payment_status, payment_intent="pi_1")
        )
        translated = translate_event(envelope)
        assert translated.outcome == expected
        assert translated.session_id == "cs_1"
        assert translated.payment_intent_id == "pi_1"
        assert translated.metadata == {"reservation_id": "res-1"}

    def test_evento_desconocido(self):
        envelope = StripeWebhookEnvelope.model_validate(_event("customer.created", "cus_1"))
        translated = translate_event(envelope)
        assert translated.outcome is None
        assert translated.session_id is None


class TestSessionOutcome:
    @pytest.mark.parametrize(
        "status,payment_status,expected",
        [
            ("complete", "paid", PaymentOutcome.PAID),
            ("complete", "no_payment_required", PaymentOutcome.PAID),
            ("complete", "unpaid", PaymentOutcome.PENDING),
            ("open", "unpaid", PaymentOutcome.PENDING),
            ("expired", "unpaid", PaymentOutcome.FAILED),
        ],
    )
    def test_estado_de_sesion(self, status, payment_status, expected):
        assert session_outcome(status, payment_status) == expected


class TestHandleStripeWebhook:
    @pytest.mark.asyncio
    async def test_completed_confirma_la_reservacion(self, flow, services, lifecycle):
        reservation, session_id = await flow.with_session()
        event = _event(
            "checkout.session.completed", session_id, reservation.id,
            payment_status="paid", payment_intent="pi_hook",
        )
        result = await services["handle_webhook"].execute(_body(event), signature=None)

        assert result.status == "processed"
        assert result.reservation_id == reservation.id
        current = await lifecycle.get_reservation(reservation.id)
        assert current.status == ReservationStatus.CONFIRMED
        assert current.payment_intent_id == "pi_hook"
        assert current.receipt is not None

    @pytest.mark.asyncio
    async def test_entrega_duplicada(self, flow, services, document_store):
        reservation, session_id = await flow.with_session()
        event = _event("checkout.session.completed", session_id, reservation.id, payment_status="paid")
        handler = services["handle_webhook"]

        first = await handler.execute(_body(event), signature=None)
        second = await handler.execute(_body(event), signature=None)
        assert first.status == second.status == "processed"
        assert len(document_store.documents) == 1

    @pytest.mark.asyncio
    async def test_resuelve_por_sesion_sin_metadata(self, flow, services, lifecycle):
        reservation, session_id = await flow.with_session()
        event = _event("checkout.session.expired", session_id)
        result = await services["handle_webhook"].execute(_body(event), signature=None)

        assert result.status == "processed"
        current = await lifecycle.get_reservation(reservation.id)
        assert current.payment_status == PaymentStatus.FAILED

    @pytest.mark.asyncio
    async def test_sesion_obsoleta_se_reconoce(self, flow, services, lifecycle, customer):
        reservation, old_session = await flow.with_session()
        await lifecycle.open_payment_session(reservation.id, customer)
        event = _event("checkout.session.completed", old_session, reservation.id, payment_status="paid")

        result = await services["handle_webhook"].execute(_body(event), signature=None)
        assert result.status == "stale"
        current = await lifecycle.get_reservation(reservation.id)
        assert current.status == ReservationStatus.PENDING

    @pytest.mark.asyncio
    async def test_reservacion_cancelada(self, flow, services, lifecycle, customer):
        reservation, session_id = await flow.with_session()
        await lifecycle.cancel(reservation.id, customer)
        event = _event("checkout.session.completed", session_id, reservation.id, payment_status="paid")

        result = await services["handle_webhook"].execute(_body(event), signature=None)
        assert result.status == "final"

    @pytest.mark.asyncio
    async def test_sesion_desconocida_se_ignora(self, services):
        event = _event("checkout.session.completed", "cs_unknown", payment_status="paid")
        result = await services["handle_webhook"].execute(_body(event), signature=None)
        assert result.status == "ignored"
        assert result.reservation_id is None

    @pytest.mark.asyncio
    async def test_evento_no_relevante(self, services):
        result = await services["handle_webhook"].execute(
            _body({"id": "evt_1", "type": "charge.refunded", "data": {"object": {}}}),
            signature=None,
        )
        assert result.status == "ignored"

    @pytest.mark.asyncio
    async def test_cuerpo_vacio(self, services):
        with pytest.raises(HTTPException) as exc_info:
            await services["handle_webhook"].execute(b"", signature=None)
        assert exc_info.value.status_code == 400

    @pytest.mark.asyncio
    async def test_cuerpo_invalido(self, services):
        with pytest.raises(HTTPException) as exc_info:
            await services["handle_webhook"].execute(b"{not json", signature=None)
        assert exc_info.value.status_code == 400
