from datetime import datetime
from decimal import Decimal
from typing import Any, Iterable, Mapping, Sequence

from sqlalchemy import func, insert, select, update
from sqlalchemy.exc import IntegrityError

from app.application.interfaces.clock import Clock, SystemClock
from app.application.interfaces.payment_transaction_repo import (
    PaymentTransactionRepo,
    validate_mark_fields,
)
from app.domain.entities.payment_transaction import PaymentTransaction, TransactionStatus
from app.domain.value_objects.money import Money
from app.domain.value_objects.schedule import ReservationKind
from app.infrastructure.db.mysql_engine import session_scope
from app.infrastructure.db.repositories.reservation_repo_sql import (
    _from_db_datetime,
    _to_db_datetime,
)
from app.infrastructure.db.retry import retry_on_deadlock
from app.infrastructure.db.tables import payment_transactions


def _map_transaction(row: Mapping[str, Any]) -> PaymentTransaction:
    refund_amount = row["refund_amount"]
    return PaymentTransaction(
        id=row["id"],
        reservation_id=row["reservation_id"],
        owner_id=row["owner_id"],
        kind=ReservationKind(row["kind"]),
        session_id=row["session_id"],
        amount=Money(amount=Decimal(str(row["amount"])), currency_code=row["currency_code"]),
        status=TransactionStatus(row["status"]),
        payment_intent_id=row["payment_intent_id"],
        refund_id=row["refund_id"],
        refund_amount=Decimal(str(refund_amount)) if refund_amount is not None else None,
        refund_reason=row["refund_reason"],
        created_at=_from_db_datetime(row["created_at"]),
        completed_at=_from_db_datetime(row["completed_at"]),
        failed_at=_from_db_datetime(row["failed_at"]),
        refunded_at=_from_db_datetime(row["refunded_at"]),
        cancelled_at=_from_db_datetime(row["cancelled_at"]),
    )


def _mark_values(fields: dict[str, Any]) -> dict[str, Any]:
    return {
        key: _to_db_datetime(value) if isinstance(value, datetime) else value
        for key, value in fields.items()
    }


class PaymentTransactionRepoSQL(PaymentTransactionRepo):
    """
    Libro de transacciones en SQL. La unicidad de ``session_id`` la garantiza
    la tabla: un insert duplicado se resuelve leyendo la fila existente.
    """

    def __init__(self, session_maker, clock: Clock | None = None) -> None:
        self._session_maker = session_maker
        self._clock = clock or SystemClock()

    async def add(self, transaction: PaymentTransaction) -> PaymentTransaction:
        values = {
            "id": transaction.id,
            "reservation_id": transaction.reservation_id,
            "owner_id": transaction.owner_id,
            "kind": transaction.kind.value,
            "session_id": transaction.session_id,
            "payment_intent_id": transaction.payment_intent_id,
            "currency_code": transaction.amount.currency_code,
            "amount": transaction.amount.amount,
            "status": transaction.status.value,
            "created_at": _to_db_datetime(transaction.created_at or self._clock.now()),
        }
        try:
            async with session_scope(self._session_maker) as session:
                await session.execute(insert(payment_transactions).values(values))
        except IntegrityError:
            # Sesión ya registrada: idempotente
            existing = await self.get_by_session(transaction.session_id)
            if existing is None:
                raise
            return existing
        stored = await self.get(transaction.id)
        if stored is None:
            raise ValueError(f"Transaction {transaction.id} not found after insert")
        return stored

    async def mark(
        self,
        session_id: str,
        status: TransactionStatus,
        from_statuses: Iterable[TransactionStatus],
        **fields: Any,
    ) -> PaymentTransaction | None:
        validate_mark_fields(fields)
        allowed = [TransactionStatus(s).value for s in from_statuses]
        stmt = (
            update(payment_transactions)
            .where(
                payment_transactions.c.session_id == session_id,
                payment_transactions.c.status.in_(allowed),
            )
            .values(status=status.value, **_mark_values(fields))
        )

        async def _apply() -> None:
            async with session_scope(self._session_maker) as session:
                await session.execute(stmt)

        await retry_on_deadlock(_apply)
        return await self.get_by_session(session_id)

    async def get(self, transaction_id: str) -> PaymentTransaction | None:
        return await self._fetch_one(payment_transactions.c.id == transaction_id)

    async def get_by_session(self, session_id: str) -> PaymentTransaction | None:
        return await self._fetch_one(payment_transactions.c.session_id == session_id)

    async def list_by_reservation(self, reservation_id: str) -> Sequence[PaymentTransaction]:
        stmt = (
            select(payment_transactions)
            .where(payment_transactions.c.reservation_id == reservation_id)
            .order_by(payment_transactions.c.created_at, payment_transactions.c.id)
        )
        return await self._fetch_many(stmt)

    async def list_by_owner(self, owner_id: str, limit: int = 50) -> Sequence[PaymentTransaction]:
        stmt = (
            select(payment_transactions)
            .where(payment_transactions.c.owner_id == owner_id)
            .order_by(payment_transactions.c.created_at.desc(), payment_transactions.c.id.desc())
            .limit(limit)
        )
        return await self._fetch_many(stmt)

    async def search(
        self,
        status: TransactionStatus | None = None,
        owner_id: str | None = None,
        offset: int = 0,
        limit: int = 20,
    ) -> tuple[Sequence[PaymentTransaction], int]:
        criteria = []
        if status is not None:
            criteria.append(payment_transactions.c.status == TransactionStatus(status).value)
        if owner_id is not None:
            criteria.append(payment_transactions.c.owner_id == owner_id)

        page_stmt = (
            select(payment_transactions)
            .where(*criteria)
            .order_by(payment_transactions.c.created_at.desc(), payment_transactions.c.id.desc())
            .offset(offset)
            .limit(limit)
        )
        count_stmt = select(func.count()).select_from(payment_transactions).where(*criteria)
        async with session_scope(self._session_maker) as session:
            rows = (await session.execute(page_stmt)).mappings().all()
            total = (await session.execute(count_stmt)).scalar_one()
        return [_map_transaction(row) for row in rows], total

    async def _fetch_one(self, *criteria) -> PaymentTransaction | None:
        async with session_scope(self._session_maker) as session:
            result = await session.execute(select(payment_transactions).where(*criteria).limit(1))
            row = result.mappings().first()
        return _map_transaction(row) if row else None

    async def _fetch_many(self, stmt) -> list[PaymentTransaction]:
        async with session_scope(self._session_maker) as session:
            rows = (await session.execute(stmt)).mappings().all()
        return [_map_transaction(row) for row in rows]
