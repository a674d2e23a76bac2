from dataclasses import replace
from typing import Any, Iterable, Sequence

from app.application.interfaces.clock import Clock, SystemClock
from app.application.interfaces.payment_transaction_repo import (
    PaymentTransactionRepo,
    validate_mark_fields,
)
from app.domain.entities.payment_transaction import PaymentTransaction, TransactionStatus


class InMemoryPaymentTransactionRepo(PaymentTransactionRepo):
    def __init__(self, clock: Clock | None = None) -> None:
        self.transactions: dict[str, PaymentTransaction] = {}
        self._clock = clock or SystemClock()

    async def add(self, transaction: PaymentTransaction) -> PaymentTransaction:
        existing = self._find_session(transaction.session_id)
        if existing is not None:
            return replace(existing)
        if transaction.id in self.transactions:
            raise ValueError("Transaction id already exists")
        stored = replace(transaction, created_at=transaction.created_at or self._clock.now())
        self.transactions[stored.id] = stored
        return replace(stored)

    async def mark(
        self,
        session_id: str,
        status: TransactionStatus,
        from_statuses: Iterable[TransactionStatus],
        **fields: Any,
    ) -> PaymentTransaction | None:
        validate_mark_fields(fields)
        stored = self._find_session(session_id)
        if stored is None:
            return None
        if stored.status not in set(from_statuses):
            return replace(stored)
        updated = replace(stored, status=status, **fields)
        self.transactions[updated.id] = updated
        return replace(updated)

    async def get(self, transaction_id: str) -> PaymentTransaction | None:
        stored = self.transactions.get(transaction_id)
        return replace(stored) if stored else None

    async def get_by_session(self, session_id: str) -> PaymentTransaction | None:
        stored = self._find_session(session_id)
        return replace(stored) if stored else None

    async def list_by_reservation(self, reservation_id: str) -> Sequence[PaymentTransaction]:
        items = [t for t in self.transactions.values() if t.reservation_id == reservation_id]
        return list(reversed(self._newest_first(items)))

    async def list_by_owner(self, owner_id: str, limit: int = 50) -> Sequence[PaymentTransaction]:
        items = [t for t in self.transactions.values() if t.owner_id == owner_id]
        return self._newest_first(items)[:limit]

    async def search(
        self,
        status: TransactionStatus | None = None,
        owner_id: str | None = None,
        offset: int = 0,
        limit: int = 20,
    ) -> tuple[Sequence[PaymentTransaction], int]:
        items = [
            t
            for t in self.transactions.values()
            if (status is None or t.status == status)
            and (owner_id is None or t.owner_id == owner_id)
        ]
        ordered = self._newest_first(items)
        return ordered[offset:offset + limit], len(ordered)

    def _find_session(self, session_id: str) -> PaymentTransaction | None:
        for stored in self.transactions.values():
            if stored.session_id == session_id:
                return stored
        return None

    @staticmethod
    def _newest_first(items) -> list[PaymentTransaction]:
        return [
            replace(t)
            for t in sorted(items, key=lambda t: (t.created_at, t.id), reverse=True)
        ]
