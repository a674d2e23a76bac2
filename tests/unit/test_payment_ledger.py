"""Tests del libro de transacciones de pago y de las estadísticas de cobro."""

from decimal import Decimal

import pytest

from app.domain.entities.payment_transaction import TransactionStatus
from app.domain.errors import (
    ActorNotAllowedError,
    TransactionNotFoundError,
    ValidationError,
)
from tests.factories import tour_schedule


class TestLedgerRecording:
    @pytest.mark.asyncio
    async def test_sesion_abierta_registra_pendiente(self, flow, transaction_repo):
        reservation, session_id = await flow.with_session()

        transaction = await transaction_repo.get_by_session(session_id)
        assert transaction.status == TransactionStatus.PENDING
        assert transaction.reservation_id == reservation.id
        assert transaction.owner_id == reservation.owner_id
        assert transaction.amount == reservation.amount
        assert transaction.id == "TXN-TEST0001"

    @pytest.mark.asyncio
    async def test_nueva_sesion_cancela_la_anterior(self, flow, lifecycle, customer, transaction_repo):
        reservation, old_session = await flow.with_session()
        new_session = await lifecycle.open_payment_session(reservation.id, customer)

        old = await transaction_repo.get_by_session(old_session)
        new = await transaction_repo.get_by_session(new_session.session_id)
        assert old.status == TransactionStatus.CANCELLED
        assert old.cancelled_at is not None
        assert new.status == TransactionStatus.PENDING

    @pytest.mark.asyncio
    async def test_pago_completa_y_callback_repetido_no_duplica(
        self, flow, lifecycle, transaction_repo
    ):
        confirmed = await flow.confirmed()
        session_id = confirmed.payment_session_id
        await lifecycle.record_payment_outcome(
            confirmed.id, session_id, "paid", confirmed.payment_intent_id
        )

        transactions = await transaction_repo.list_by_reservation(confirmed.id)
        assert len(transactions) == 1
        assert transactions[0].status == TransactionStatus.COMPLETED
        assert transactions[0].payment_intent_id == confirmed.payment_intent_id
        assert transactions[0].completed_at == confirmed.confirmed_at

    @pytest.mark.asyncio
    async def test_fallo_y_reintento(self, flow, lifecycle, customer, transaction_repo):
        reservation, first_session = await flow.with_session()
        await lifecycle.record_payment_outcome(reservation.id, first_session, "failed")
        retry = await lifecycle.open_payment_session(reservation.id, customer)
        await lifecycle.record_payment_outcome(reservation.id, retry.session_id, "paid", "pi_2")

        statuses = [t.status for t in await transaction_repo.list_by_reservation(reservation.id)]
        assert statuses == [TransactionStatus.FAILED, TransactionStatus.COMPLETED]

    @pytest.mark.asyncio
    async def test_reembolso_marca_la_transaccion_cobrada(
        self, flow, lifecycle, operator, transaction_repo
    ):
        confirmed = await flow.confirmed()
        refunded = await lifecycle.refund(confirmed.id, operator, reason="duplicate")

        transaction = await transaction_repo.get_by_session(confirmed.payment_session_id)
        assert transaction.status == TransactionStatus.REFUNDED
        assert transaction.refund_id == refunded.refund.refund_id
        assert transaction.refund_amount == confirmed.amount.amount
        assert transaction.refund_reason == "duplicate"

    @pytest.mark.asyncio
    async def test_cancelar_con_sesion_abierta(self, flow, lifecycle, customer, transaction_repo):
        reservation, session_id = await flow.with_session()
        await lifecycle.cancel(reservation.id, customer)

        transaction = await transaction_repo.get_by_session(session_id)
        assert transaction.status == TransactionStatus.CANCELLED

    @pytest.mark.asyncio
    async def test_cancelar_pagada_conserva_completada(
        self, flow, lifecycle, customer, transaction_repo
    ):
        confirmed = await flow.confirmed()
        await lifecycle.cancel(confirmed.id, customer)

        transaction = await transaction_repo.get_by_session(confirmed.payment_session_id)
        assert transaction.status == TransactionStatus.COMPLETED

    @pytest.mark.asyncio
    async def test_callback_repetido_repara_el_libro(self, flow, lifecycle, transaction_repo):
        """Si el registro se perdió tras confirmar, la reentrega lo reconstruye."""
        confirmed = await flow.confirmed()
        transaction_repo.transactions.clear()

        await lifecycle.record_payment_outcome(
            confirmed.id, confirmed.payment_session_id, "paid", confirmed.payment_intent_id
        )

        transaction = await transaction_repo.get_by_session(confirmed.payment_session_id)
        assert transaction.status == TransactionStatus.COMPLETED


class TestLedgerQueries:
    @pytest.mark.asyncio
    async def test_historial_del_cliente(self, flow, ledger, clock, customer, other_customer, operator):
        first = await flow.confirmed()
        clock.advance(minutes=5)
        second, _ = await flow.with_session()

        owned = await ledger.list_for_owner(customer.actor_id, customer)
        assert [t.reservation_id for t in owned] == [second.id, first.id]
        assert len(await ledger.list_for_owner(customer.actor_id, operator)) == 2
        with pytest.raises(ActorNotAllowedError):
            await ledger.list_for_owner(customer.actor_id, other_customer)

    @pytest.mark.asyncio
    async def test_detalle_de_pago(self, flow, ledger, customer, other_customer, driver_a):
        reservation = await flow.assigned()

        details, transactions = await ledger.reservation_payment(reservation.id, customer)
        assert details.payment_status.value == "paid"
        assert [t.status for t in transactions] == [TransactionStatus.COMPLETED]

        for actor in (other_customer, driver_a):
            with pytest.raises(ActorNotAllowedError):
                await ledger.reservation_payment(reservation.id, actor)

    @pytest.mark.asyncio
    async def test_busqueda_paginada_solo_operador(self, flow, ledger, customer, operator):
        for _ in range(3):
            await flow.with_session()
        await flow.confirmed()

        page = await ledger.search(operator, page=1, limit=3)
        assert page.total == 4
        assert page.pages == 2
        assert len(page.items) == 3

        pending = await ledger.search(operator, status="pending")
        assert pending.total == 3
        completed = await ledger.search(operator, status=TransactionStatus.COMPLETED)
        assert completed.total == 1
        assert (await ledger.search(operator, owner_id="nobody")).total == 0

        with pytest.raises(ActorNotAllowedError):
            await ledger.search(customer)
        with pytest.raises(ValidationError):
            await ledger.search(operator, page=0)
        with pytest.raises(ValidationError):
            await ledger.search(operator, limit=500)

    @pytest.mark.asyncio
    async def test_transaccion_por_id(self, flow, ledger, customer, other_customer, operator):
        _, session_id = await flow.with_session()
        transaction = (await ledger.list_for_owner(customer.actor_id, customer))[0]

        assert (await ledger.get_transaction(transaction.id, operator)).session_id == session_id
        assert (await ledger.get_transaction(transaction.id, customer)).id == transaction.id
        with pytest.raises(ActorNotAllowedError):
            await ledger.get_transaction(transaction.id, other_customer)
        with pytest.raises(TransactionNotFoundError):
            await ledger.get_transaction("TXN-MISSING", operator)


class TestStatistics:
    @pytest.mark.asyncio
    async def test_conteos_ingresos_y_tasa(self, flow, ledger, operator, customer):
        await flow.confirmed(amount="1500.00")
        await flow.confirmed(amount="2500.00")
        await flow.pending(schedule=tour_schedule(), amount="4000.00")

        stats = await ledger.statistics(operator)
        assert stats.total_rides == 2
        assert stats.total_tours == 1
        assert stats.paid_rides == 2
        assert stats.paid_tours == 0
        assert stats.revenue == {"PKR": Decimal("4000.00")}
        assert stats.success_rate == Decimal("66.67")

        with pytest.raises(ActorNotAllowedError):
            await ledger.statistics(customer)

    @pytest.mark.asyncio
    async def test_sin_reservaciones(self, ledger, operator):
        stats = await ledger.statistics(operator)
        assert stats.total_rides == stats.total_tours == 0
        assert stats.revenue == {}
        assert stats.success_rate == Decimal("0.00")

    @pytest.mark.asyncio
    async def test_reembolsadas_no_cuentan_como_pagadas(self, flow, ledger, lifecycle, operator):
        confirmed = await flow.confirmed()
        await flow.confirmed()
        await lifecycle.refund(confirmed.id, operator)

        stats = await ledger.statistics(operator)
        assert stats.paid_rides == 1
        assert stats.revenue == {"PKR": Decimal("1500.00")}
        assert stats.success_rate == Decimal("50.00")
