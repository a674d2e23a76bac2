from collections.abc import AsyncIterator
from functools import lru_cache

from fastapi import Depends, Header
from sqlalchemy.ext.asyncio import AsyncSession

from app.application.interfaces.clock import Clock, SystemClock
from app.application.interfaces.document_store import DocumentStore
from app.application.interfaces.payment_gateway import PaymentGateway
from app.application.interfaces.payment_transaction_repo import PaymentTransactionRepo
from app.application.interfaces.reservation_repo import ReservationRepo
from app.application.interfaces.uuid_generator import RealUUIDGenerator, UUIDGenerator
from app.application.services.driver_assignment import DriverAssignmentService
from app.application.services.lifecycle_manager import ReservationLifecycleManager
from app.application.services.payment_ledger import PaymentLedger
from app.application.services.receipt_issuer import ReceiptIssuer
from app.application.services.receipt_renderer import ReceiptRenderer
from app.application.use_cases.handle_stripe_webhook import HandleStripeWebhookUseCase
from app.application.use_cases.reconcile_pending_payments import ReconcilePendingPaymentsUseCase
from app.application.use_cases.reissue_missing_receipts import ReissueMissingReceiptsUseCase
from app.config import Settings, get_settings
from app.domain.entities.reservation import ReservationStatus
from app.domain.errors import ValidationError
from app.domain.value_objects.actor import Actor, ActorRole
from app.infrastructure.db.mysql_engine import build_engine, build_sessionmaker
from app.infrastructure.db.repositories.payment_transaction_repo_sql import PaymentTransactionRepoSQL
from app.infrastructure.db.repositories.reservation_repo_sql import ReservationRepoSQL
from app.infrastructure.gateways.stripe_gateway_real import StripeGatewayReal
from app.infrastructure.in_memory.document_store import InMemoryDocumentStore
from app.infrastructure.in_memory.payment_transaction_repo import InMemoryPaymentTransactionRepo
from app.infrastructure.in_memory.reservation_repo import InMemoryReservationRepo
from app.infrastructure.in_memory.stripe_gateway import StubStripeGateway
from app.infrastructure.storage.local_document_store import LocalDocumentStore


def build_use_cases(
    settings: Settings,
    reservation_repo: ReservationRepo,
    payment_gateway: PaymentGateway,
    document_store: DocumentStore,
    transaction_repo: PaymentTransactionRepo,
    clock: Clock | None = None,
    uuid_generator: UUIDGenerator | None = None,
) -> dict:
    """Arma el grafo de servicios sobre los adaptadores dados."""
    clock = clock or SystemClock()
    uuid_generator = uuid_generator or RealUUIDGenerator()
    receipt_issuer = ReceiptIssuer(
        reservation_repo=reservation_repo,
        document_store=document_store,
        renderer=ReceiptRenderer(title=settings.receipt_title, footer=settings.receipt_footer),
        clock=clock,
    )
    payment_ledger = PaymentLedger(
        transaction_repo=transaction_repo,
        reservation_repo=reservation_repo,
        clock=clock,
        uuid_generator=uuid_generator,
    )
    lifecycle = ReservationLifecycleManager(
        reservation_repo=reservation_repo,
        payment_gateway=payment_gateway,
        receipt_issuer=receipt_issuer,
        payment_ledger=payment_ledger,
        clock=clock,
        uuid_generator=uuid_generator,
    )
    return {
        "reservation_repo": reservation_repo,
        "payment_gateway": payment_gateway,
        "document_store": document_store,
        "transaction_repo": transaction_repo,
        "lifecycle": lifecycle,
        "payment_ledger": payment_ledger,
        "driver_assignment": DriverAssignmentService(reservation_repo=reservation_repo),
        "receipt_issuer": receipt_issuer,
        "handle_webhook": HandleStripeWebhookUseCase(
            lifecycle_manager=lifecycle,
            reservation_repo=reservation_repo,
            payment_gateway=payment_gateway,
            stripe_webhook_secret=settings.stripe_webhook_secret,
        ),
        "reconcile_payments": ReconcilePendingPaymentsUseCase(
            reservation_repo=reservation_repo,
            lifecycle_manager=lifecycle,
            batch_size=settings.reconcile_batch_size,
        ),
        "reissue_receipts": ReissueMissingReceiptsUseCase(
            reservation_repo=reservation_repo,
            receipt_issuer=receipt_issuer,
            batch_size=settings.reconcile_batch_size,
        ),
    }


def _document_store(settings: Settings) -> DocumentStore:
    if settings.receipts_dir:
        return LocalDocumentStore(settings.receipts_dir)
    return InMemoryDocumentStore()


@lru_cache(maxsize=1)
def _in_memory_bundle() -> dict:
    settings = get_settings()
    return build_use_cases(
        settings,
        reservation_repo=InMemoryReservationRepo(),
        payment_gateway=StubStripeGateway(),
        document_store=_document_store(settings),
        transaction_repo=InMemoryPaymentTransactionRepo(),
    )


@lru_cache(maxsize=1)
def sql_resources():
    settings = get_settings()
    engine = build_engine(settings)
    return engine, build_sessionmaker(engine)


@lru_cache(maxsize=1)
def _sql_bundle() -> dict:
    settings = get_settings()
    _, session_maker = sql_resources()
    return build_use_cases(
        settings,
        reservation_repo=ReservationRepoSQL(session_maker),
        payment_gateway=StripeGatewayReal(api_key=settings.stripe_api_key),
        document_store=_document_store(settings),
        transaction_repo=PaymentTransactionRepoSQL(session_maker),
    )


def get_use_cases(settings: Settings = Depends(get_settings)) -> dict:
    if settings.use_in_memory:
        return _in_memory_bundle()
    return _sql_bundle()


async def get_session(settings: Settings = Depends(get_settings)) -> AsyncIterator[AsyncSession | None]:
    if settings.use_in_memory:
        yield None
        return
    _, session_maker = sql_resources()
    async with session_maker() as session:
        yield session


def get_actor(
    actor_id: str | None = Header(default=None, alias="X-Actor-Id"),
    actor_role: str | None = Header(default=None, alias="X-Actor-Role"),
) -> Actor:
    """Identidad del llamador (la autenticación ocurre antes de este servicio)."""
    if not actor_id or not actor_role:
        raise ValidationError("X-Actor-Id", "los headers X-Actor-Id y X-Actor-Role son requeridos")
    try:
        role = ActorRole(actor_role.lower())
    except ValueError as exc:
        raise ValidationError("X-Actor-Role", f"rol desconocido '{actor_role}'") from exc
    if role == ActorRole.SYSTEM:
        raise ValidationError("X-Actor-Role", "el rol 'system' es interno")
    return Actor(role=role, actor_id=actor_id)


def get_expected_status(
    if_match_status: str | None = Header(default=None, alias="If-Match-Status"),
) -> ReservationStatus | None:
    if not if_match_status:
        return None
    try:
        return ReservationStatus(if_match_status.lower())
    except ValueError as exc:
        raise ValidationError("If-Match-Status", f"estado desconocido '{if_match_status}'") from exc
