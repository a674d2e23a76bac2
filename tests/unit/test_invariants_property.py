"""
Secuencias aleatorias (con semilla) de operaciones sobre una reservación.

Después de cada paso, exitoso o no, los invariantes del agregado deben
cumplirse y ninguna reservación terminal puede volver a otro estado.
"""

import random

import pytest

from app.domain.entities.reservation import (
    TERMINAL_STATUSES,
    PaymentOutcome,
    PaymentStatus,
    ReservationStatus,
    is_allowed_transition,
)
from app.domain.errors import AlreadyFinalError, DomainError
from tests.factories import DRIVER_A, DRIVER_B

SEEDS = list(range(12))
STEPS = 25


@pytest.mark.slow
class TestRandomSequences:
    @pytest.mark.asyncio
    @pytest.mark.parametrize("seed", SEEDS)
    async def test_invariantes_se_mantienen(
        self, seed, flow, lifecycle, assignment, issuer, gateway, document_store,
        customer, operator, driver_a, driver_b,
    ):
        rng = random.Random(seed)
        reservation = await flow.pending()
        sessions: list[str] = []

        async def open_session():
            session = await lifecycle.open_payment_session(reservation.id, customer)
            sessions.append(session.session_id)

        async def record(outcome):
            if not sessions:
                return
            session_id = rng.choice(sessions)
            await lifecycle.record_payment_outcome(
                reservation.id, session_id, outcome, payment_intent_id=f"pi_{seed}"
            )

        async def flaky_record_paid():
            document_store.fail_next = 1
            await record(PaymentOutcome.PAID)

        actions = [
            open_session,
            lambda: record(PaymentOutcome.PAID),
            lambda: record(PaymentOutcome.FAILED),
            lambda: record(PaymentOutcome.PENDING),
            flaky_record_paid,
            lambda: assignment.claim(reservation.id, DRIVER_A, actor=driver_a),
            lambda: assignment.claim(reservation.id, DRIVER_B, actor=driver_b),
            lambda: lifecycle.complete(reservation.id, driver_a),
            lambda: lifecycle.cancel(reservation.id, rng.choice([customer, driver_a, operator])),
            lambda: lifecycle.refund(reservation.id, operator),
            lambda: issuer.issue(reservation.id),
        ]

        previous = await lifecycle.get_reservation(reservation.id)
        for _ in range(STEPS):
            action = rng.choice(actions)
            error = None
            try:
                await action()
            except DomainError as exc:
                error = exc

            if previous.status == ReservationStatus.CANCELLED and error is not None:
                assert isinstance(error, AlreadyFinalError), repr(error)

            current = await lifecycle.get_reservation(reservation.id)
            current.check_invariants()
            assert is_allowed_transition(previous.status, current.status)
            assert current.lock_version >= previous.lock_version
            if previous.status in TERMINAL_STATUSES:
                assert current.status == previous.status
            if previous.receipt is not None and current.payment_status == PaymentStatus.PAID:
                assert current.receipt == previous.receipt
            previous = current
