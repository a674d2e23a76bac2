"""
Pytest configuration and shared fixtures.

Este módulo provee fixtures reutilizables para:
- Reloj y generador de IDs deterministas
- Adaptadores in-memory (repositorio, gateway de pagos, almacén de documentos)
- Grafo de servicios armado igual que en la aplicación
- Helpers para llevar una reservación a un estado dado
"""

from decimal import Decimal

import pytest

from app.api.dependencies import build_use_cases
from app.application.interfaces.clock import FakeClock
from app.application.interfaces.uuid_generator import FakeUUIDGenerator
from app.config import Settings
from app.domain.entities.reservation import PaymentOutcome, Reservation
from app.domain.value_objects.actor import Actor, ActorRole
from app.domain.value_objects.money import Money
from app.infrastructure.circuit_breaker import stripe_breaker
from app.infrastructure.in_memory.document_store import InMemoryDocumentStore
from app.infrastructure.in_memory.payment_transaction_repo import InMemoryPaymentTransactionRepo
from app.infrastructure.in_memory.reservation_repo import InMemoryReservationRepo
from app.infrastructure.in_memory.stripe_gateway import StubStripeGateway
from tests.factories import (
    CUSTOMER_ID,
    DRIVER_A,
    DRIVER_B,
    FIXED_NOW,
    OTHER_CUSTOMER_ID,
    contact,
    ride_schedule,
)

# ============================================================================
# ACTORES
# ============================================================================


@pytest.fixture
def customer() -> Actor:
    return Actor(role=ActorRole.CUSTOMER, actor_id=CUSTOMER_ID)


@pytest.fixture
def other_customer() -> Actor:
    return Actor(role=ActorRole.CUSTOMER, actor_id=OTHER_CUSTOMER_ID)


@pytest.fixture
def operator() -> Actor:
    return Actor(role=ActorRole.OPERATOR, actor_id="ops-1")


@pytest.fixture
def driver_a() -> Actor:
    return Actor(role=ActorRole.DRIVER, actor_id=DRIVER_A)


@pytest.fixture
def driver_b() -> Actor:
    return Actor(role=ActorRole.DRIVER, actor_id=DRIVER_B)


# ============================================================================
# ADAPTADORES Y SERVICIOS
# ============================================================================


@pytest.fixture(autouse=True)
def reset_stripe_breaker():
    """El circuit breaker es global al proceso; cada test arranca cerrado."""
    stripe_breaker.close()
    yield
    stripe_breaker.close()


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock(FIXED_NOW)


@pytest.fixture
def uuid_generator() -> FakeUUIDGenerator:
    return FakeUUIDGenerator()


@pytest.fixture
def reservation_repo(clock) -> InMemoryReservationRepo:
    return InMemoryReservationRepo(clock=clock)


@pytest.fixture
def gateway() -> StubStripeGateway:
    return StubStripeGateway()


@pytest.fixture
def document_store() -> InMemoryDocumentStore:
    return InMemoryDocumentStore()


@pytest.fixture
def transaction_repo(clock) -> InMemoryPaymentTransactionRepo:
    return InMemoryPaymentTransactionRepo(clock=clock)


@pytest.fixture
def settings() -> Settings:
    return Settings(use_in_memory=True, stripe_webhook_secret=None, receipts_dir=None)


@pytest.fixture
def services(
    settings, reservation_repo, gateway, document_store, transaction_repo, clock, uuid_generator
) -> dict:
    return build_use_cases(
        settings,
        reservation_repo=reservation_repo,
        payment_gateway=gateway,
        document_store=document_store,
        transaction_repo=transaction_repo,
        clock=clock,
        uuid_generator=uuid_generator,
    )


@pytest.fixture
def lifecycle(services):
    return services["lifecycle"]


@pytest.fixture
def ledger(services):
    return services["payment_ledger"]


@pytest.fixture
def assignment(services):
    return services["driver_assignment"]


@pytest.fixture
def issuer(services):
    return services["receipt_issuer"]


# ============================================================================
# HELPERS DE FLUJO
# ============================================================================


class ReservationFlow:
    """Lleva una reservación nueva hasta el estado pedido por el test."""

    def __init__(self, lifecycle, assignment, gateway, customer: Actor) -> None:
        self.lifecycle = lifecycle
        self.assignment = assignment
        self.gateway = gateway
        self.customer = customer

    async def pending(self, schedule=None, amount: str = "1500.00") -> Reservation:
        schedule = schedule or ride_schedule()
        return await self.lifecycle.create_reservation(
            owner_id=self.customer.actor_id,
            kind=schedule.kind,
            schedule=schedule,
            amount=Money(Decimal(amount), "PKR"),
            contact=contact(),
        )

    async def with_session(self, **kwargs) -> tuple[Reservation, str]:
        reservation = await self.pending(**kwargs)
        session = await self.lifecycle.open_payment_session(reservation.id, self.customer)
        return await self.lifecycle.get_reservation(reservation.id), session.session_id

    async def confirmed(self, **kwargs) -> Reservation:
        reservation, session_id = await self.with_session(**kwargs)
        self.gateway.set_outcome(session_id, PaymentOutcome.PAID)
        intent = self.gateway.sessions[session_id]["payment_intent_id"]
        return await self.lifecycle.record_payment_outcome(
            reservation.id, session_id, PaymentOutcome.PAID, payment_intent_id=intent
        )

    async def assigned(self, driver_id: str = DRIVER_A, **kwargs) -> Reservation:
        reservation = await self.confirmed(**kwargs)
        return await self.assignment.claim(reservation.id, driver_id)


@pytest.fixture
def flow(lifecycle, assignment, gateway, customer) -> ReservationFlow:
    return ReservationFlow(lifecycle, assignment, gateway, customer)
