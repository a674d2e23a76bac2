"""Tests del emisor de recibos y del renderizado en PDF."""

import asyncio

import pytest

from app.application.services.receipt_issuer import ReceiptIssuer, receipt_key
from app.application.services.receipt_renderer import ReceiptRenderer, ReceiptSnapshot
from app.domain.entities.reservation import ReservationStatus
from app.domain.errors import (
    ActorNotAllowedError,
    AlreadyFinalError,
    ReceiptGenerationError,
    ReceiptNotReadyError,
    ReservationNotFoundError,
)
from app.infrastructure.in_memory.document_store import InMemoryDocumentStore
from tests.factories import FIXED_NOW, tour_schedule


class TestReceiptIssuer:
    @pytest.mark.asyncio
    async def test_emision_es_idempotente(self, flow, issuer, document_store):
        reservation = await flow.confirmed()
        first = reservation.receipt

        again = await issuer.issue(reservation.id)
        assert again.receipt == first
        assert again.lock_version == reservation.lock_version
        assert list(document_store.documents) == [f"memory://{receipt_key(reservation.id)}"]

    @pytest.mark.asyncio
    async def test_no_pagada_no_emite(self, flow, issuer):
        reservation = await flow.pending()
        with pytest.raises(ReceiptNotReadyError):
            await issuer.issue(reservation.id)

    @pytest.mark.asyncio
    async def test_reservacion_inexistente(self, issuer):
        with pytest.raises(ReservationNotFoundError):
            await issuer.issue("missing")

    @pytest.mark.asyncio
    async def test_fallo_de_almacenamiento_y_reintento(
        self, flow, issuer, lifecycle, document_store
    ):
        reservation, session_id = await flow.with_session()
        document_store.fail_next = 1
        confirmed = await lifecycle.record_payment_outcome(reservation.id, session_id, "paid", "pi_1")
        assert confirmed.receipt is None

        document_store.fail_next = 1
        with pytest.raises(ReceiptGenerationError):
            await issuer.issue(reservation.id)

        issued = await issuer.issue(reservation.id)
        assert issued.receipt is not None
        assert len(document_store.documents) == 1

    @pytest.mark.asyncio
    async def test_cancelada_sin_recibo_no_emite(self, flow, issuer, lifecycle, document_store, customer):
        reservation, session_id = await flow.with_session()
        document_store.fail_next = 1
        await lifecycle.record_payment_outcome(reservation.id, session_id, "paid", "pi_1")
        await lifecycle.cancel(reservation.id, customer)

        with pytest.raises(AlreadyFinalError):
            await issuer.issue(reservation.id)

        current = await lifecycle.get_reservation(reservation.id)
        assert current.receipt is None
        assert document_store.documents == {}

    @pytest.mark.asyncio
    async def test_cancelacion_durante_la_emision(
        self, flow, lifecycle, reservation_repo, clock, document_store, customer
    ):
        reservation, session_id = await flow.with_session()
        document_store.fail_next = 1
        await lifecycle.record_payment_outcome(reservation.id, session_id, "paid", "pi_1")

        class CancelOnStore(InMemoryDocumentStore):
            async def store(self, key, data, content_type):
                await lifecycle.cancel(reservation.id, customer)
                return await super().store(key, data, content_type)

        racing = ReceiptIssuer(reservation_repo, CancelOnStore(), ReceiptRenderer(), clock)
        with pytest.raises(AlreadyFinalError):
            await racing.issue(reservation.id)

        current = await lifecycle.get_reservation(reservation.id)
        assert current.status == ReservationStatus.CANCELLED
        assert current.receipt is None

    @pytest.mark.asyncio
    async def test_emisiones_concurrentes_registran_un_recibo(self, flow, issuer, lifecycle, document_store):
        reservation, session_id = await flow.with_session()
        document_store.fail_next = 1
        await lifecycle.record_payment_outcome(reservation.id, session_id, "paid", "pi_1")

        results = await asyncio.gather(*(issuer.issue(reservation.id) for _ in range(5)))
        receipts = {r.receipt for r in results}
        assert len(receipts) == 1
        assert None not in receipts

    @pytest.mark.asyncio
    async def test_lee_documento(self, flow, issuer):
        reservation = await flow.confirmed()
        stored, data = await issuer.read_document(reservation.id)
        assert stored.id == reservation.id
        assert data.startswith(b"%PDF-1.4")
        assert data.rstrip().endswith(b"%%EOF")

    @pytest.mark.asyncio
    async def test_lee_documento_sin_recibo(self, flow, issuer):
        reservation = await flow.pending()
        with pytest.raises(ReceiptNotReadyError):
            await issuer.read_document(reservation.id)

    @pytest.mark.asyncio
    async def test_documento_solo_para_dueno_u_operador(
        self, flow, issuer, customer, other_customer, operator, driver_a
    ):
        reservation = await flow.confirmed()
        for actor in (customer, operator):
            stored, _ = await issuer.read_document(reservation.id, actor)
            assert stored.id == reservation.id
        for actor in (other_customer, driver_a):
            with pytest.raises(ActorNotAllowedError):
                await issuer.read_document(reservation.id, actor)


class TestReceiptRenderer:
    @pytest.mark.asyncio
    async def test_lineas_incluyen_datos_del_tour(self, flow):
        reservation = await flow.confirmed(schedule=tour_schedule())
        snapshot = ReceiptSnapshot.from_reservation(reservation, FIXED_NOW)
        lines = ReceiptRenderer(title="Receipt", footer="Thanks").render_lines(snapshot)

        assert lines[0] == "Receipt"
        assert "Receipt #: RCPT-TEST0001" in lines
        assert "Tour: Old City Walk" in lines
        assert "Amount paid: 1500.00 PKR" in lines
        assert f"Payment reference: {reservation.payment_intent_id}" in lines
        assert lines[-1] == "Thanks"

    @pytest.mark.asyncio
    async def test_pdf_escapa_parentesis(self, flow):
        reservation = await flow.confirmed()
        snapshot = ReceiptSnapshot.from_reservation(reservation, FIXED_NOW)
        pdf = ReceiptRenderer(title="Receipt (copy)").render(snapshot)
        assert b"(Receipt \\(copy\\)) Tj" in pdf
