"""
PaymentLedger - historial de transacciones de pago y estadísticas de cobro.

La reservación es la fuente de verdad del estado de pago. El libro se actualiza
después de cada escritura condicional exitosa y todas sus operaciones son
idempotentes, así que un callback repetido completa lo que haya quedado atrás.
"""

import logging
from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal
from math import ceil
from typing import Sequence

from app.application.interfaces.clock import Clock
from app.application.interfaces.payment_transaction_repo import PaymentTransactionRepo
from app.application.interfaces.reservation_repo import ReservationRepo
from app.application.interfaces.uuid_generator import UUIDGenerator
from app.domain.entities.payment_transaction import PaymentTransaction, TransactionStatus
from app.domain.entities.reservation import PaymentStatus, Reservation
from app.domain.errors import (
    ActorNotAllowedError,
    ReservationNotFoundError,
    TransactionNotFoundError,
    ValidationError,
)
from app.domain.value_objects.actor import Actor, ActorRole
from app.domain.value_objects.schedule import ReservationKind

logger = logging.getLogger(__name__)

MAX_PAGE_SIZE = 100


@dataclass(frozen=True)
class TransactionPage:
    items: Sequence[PaymentTransaction]
    total: int
    page: int
    pages: int


@dataclass(frozen=True)
class PaymentStatistics:
    total_rides: int
    total_tours: int
    paid_rides: int
    paid_tours: int
    revenue: dict[str, Decimal]
    success_rate: Decimal


class PaymentLedger:
    def __init__(
        self,
        transaction_repo: PaymentTransactionRepo,
        reservation_repo: ReservationRepo,
        clock: Clock,
        uuid_generator: UUIDGenerator,
    ) -> None:
        self._transaction_repo = transaction_repo
        self._reservation_repo = reservation_repo
        self._clock = clock
        self._uuid_generator = uuid_generator

    # === Registro ===

    async def session_opened(
        self, reservation: Reservation, previous_session_id: str | None = None
    ) -> PaymentTransaction:
        """Registra la sesión vigente; la sesión pendiente que reemplaza queda cancelada."""
        if previous_session_id and previous_session_id != reservation.payment_session_id:
            await self._transaction_repo.mark(
                previous_session_id,
                TransactionStatus.CANCELLED,
                (TransactionStatus.PENDING,),
                cancelled_at=self._clock.now(),
            )
        return await self._ensure(reservation, reservation.payment_session_id)

    async def payment_completed(
        self, reservation: Reservation, session_id: str, payment_intent_id: str | None = None
    ) -> PaymentTransaction | None:
        await self._ensure(reservation, session_id)
        fields = {"completed_at": reservation.confirmed_at or self._clock.now()}
        if payment_intent_id or reservation.payment_intent_id:
            fields["payment_intent_id"] = payment_intent_id or reservation.payment_intent_id
        return await self._transaction_repo.mark(
            session_id,
            TransactionStatus.COMPLETED,
            (TransactionStatus.PENDING, TransactionStatus.FAILED),
            **fields,
        )

    async def payment_failed(
        self, reservation: Reservation, session_id: str
    ) -> PaymentTransaction | None:
        await self._ensure(reservation, session_id)
        return await self._transaction_repo.mark(
            session_id,
            TransactionStatus.FAILED,
            (TransactionStatus.PENDING,),
            failed_at=self._clock.now(),
        )

    async def refunded(self, reservation: Reservation) -> PaymentTransaction | None:
        """Marca como reembolsada la transacción de la sesión que cobró."""
        refund = reservation.refund
        session_id = reservation.payment_session_id
        if refund is None or session_id is None:
            return None
        await self._ensure(reservation, session_id)
        return await self._transaction_repo.mark(
            session_id,
            TransactionStatus.REFUNDED,
            (TransactionStatus.PENDING, TransactionStatus.FAILED, TransactionStatus.COMPLETED),
            refund_id=refund.refund_id,
            refund_amount=refund.amount,
            refund_reason=refund.reason,
            refunded_at=refund.refunded_at,
        )

    async def session_cancelled(self, session_id: str) -> PaymentTransaction | None:
        return await self._transaction_repo.mark(
            session_id,
            TransactionStatus.CANCELLED,
            (TransactionStatus.PENDING,),
            cancelled_at=self._clock.now(),
        )

    async def _ensure(self, reservation: Reservation, session_id: str) -> PaymentTransaction:
        existing = await self._transaction_repo.get_by_session(session_id)
        if existing is not None:
            return existing
        transaction = await self._transaction_repo.add(
            PaymentTransaction(
                id=self._uuid_generator.generate_transaction_id(),
                reservation_id=reservation.id,
                owner_id=reservation.owner_id,
                kind=reservation.kind,
                session_id=session_id,
                amount=reservation.amount,
                created_at=self._clock.now(),
            )
        )
        logger.info(
            "Payment transaction recorded",
            extra={
                "reservation_id": reservation.id,
                "transaction_id": transaction.id,
                "session_id": session_id,
            },
        )
        return transaction

    # === Consultas ===

    async def reservation_payment(
        self, reservation_id: str, actor: Actor
    ) -> tuple[Reservation, Sequence[PaymentTransaction]]:
        """Estado de pago de la reservación y el historial de sus sesiones."""
        reservation = await self._reservation_repo.get(reservation_id)
        if reservation is None:
            raise ReservationNotFoundError(reservation_id)
        if not self._may_see_payments(reservation.owner_id, actor):
            raise ActorNotAllowedError(str(actor), "consultar pagos")
        transactions = await self._transaction_repo.list_by_reservation(reservation_id)
        return reservation, transactions

    async def list_for_owner(
        self, owner_id: str, actor: Actor, limit: int = 50
    ) -> Sequence[PaymentTransaction]:
        if not self._may_see_payments(owner_id, actor):
            raise ActorNotAllowedError(str(actor), "consultar pagos de otro cliente")
        return await self._transaction_repo.list_by_owner(owner_id, limit=limit)

    async def get_transaction(self, transaction_id: str, actor: Actor) -> PaymentTransaction:
        transaction = await self._transaction_repo.get(transaction_id)
        if transaction is None:
            raise TransactionNotFoundError(transaction_id)
        if not self._may_see_payments(transaction.owner_id, actor):
            raise ActorNotAllowedError(str(actor), "consultar la transacción")
        return transaction

    async def search(
        self,
        actor: Actor,
        status: TransactionStatus | str | None = None,
        owner_id: str | None = None,
        page: int = 1,
        limit: int = 20,
    ) -> TransactionPage:
        if not actor.is_operator:
            raise ActorNotAllowedError(str(actor), "listar transacciones")
        if page < 1:
            raise ValidationError("page", "debe ser al menos 1")
        if not 1 <= limit <= MAX_PAGE_SIZE:
            raise ValidationError("limit", f"debe estar entre 1 y {MAX_PAGE_SIZE}")

        items, total = await self._transaction_repo.search(
            status=TransactionStatus(status) if status else None,
            owner_id=owner_id,
            offset=(page - 1) * limit,
            limit=limit,
        )
        return TransactionPage(items=items, total=total, page=page, pages=ceil(total / limit))

    async def statistics(self, actor: Actor) -> PaymentStatistics:
        """
        Conteos por tipo de reservación e ingresos de las reservaciones pagadas.

        ``success_rate`` es el porcentaje de reservaciones en ``paid`` sobre el
        total, con dos decimales. Los ingresos se agrupan por moneda.
        """
        if not actor.is_operator:
            raise ActorNotAllowedError(str(actor), "consultar estadísticas")

        totals = {kind: 0 for kind in ReservationKind}
        paid = {kind: 0 for kind in ReservationKind}
        revenue: dict[str, Decimal] = {}
        for row in await self._reservation_repo.payment_summary():
            totals[row.kind] += row.count
            if row.payment_status == PaymentStatus.PAID:
                paid[row.kind] += row.count
                revenue[row.currency_code] = (
                    revenue.get(row.currency_code, Decimal("0")) + row.total_amount
                )

        total = sum(totals.values())
        success_rate = Decimal("0.00")
        if total:
            success_rate = (Decimal(sum(paid.values())) * 100 / total).quantize(
                Decimal("0.01"), rounding=ROUND_HALF_UP
            )
        return PaymentStatistics(
            total_rides=totals[ReservationKind.RIDE],
            total_tours=totals[ReservationKind.TOUR],
            paid_rides=paid[ReservationKind.RIDE],
            paid_tours=paid[ReservationKind.TOUR],
            revenue=revenue,
            success_rate=success_rate,
        )

    @staticmethod
    def _may_see_payments(owner_id: str, actor: Actor) -> bool:
        if actor.is_operator:
            return True
        return actor.role == ActorRole.CUSTOMER and actor.actor_id == owner_id
