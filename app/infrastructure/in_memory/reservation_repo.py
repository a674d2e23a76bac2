from dataclasses import replace
from decimal import Decimal
from typing import Any, Sequence

from app.application.interfaces.clock import Clock, SystemClock
from app.application.interfaces.reservation_repo import (
    PaymentSummaryRow,
    ReservationGuard,
    ReservationRepo,
    validate_changes,
)
from app.domain.entities.reservation import PaymentStatus, Reservation, ReservationStatus
from app.domain.errors import ConcurrentModificationError, ReservationNotFoundError


class InMemoryReservationRepo(ReservationRepo):
    """
    Repositorio en memoria.

    La comparación y la escritura en ``update_conditional`` no ceden el event loop
    entre sí, por lo que son atómicas frente a otras corrutinas del mismo proceso.
    """

    def __init__(self, clock: Clock | None = None) -> None:
        self.reservations: dict[str, Reservation] = {}
        self._clock = clock or SystemClock()

    async def create(self, reservation: Reservation) -> Reservation:
        if reservation.id in self.reservations:
            raise ValueError("Reservation id already exists")
        now = self._clock.now()
        stored = replace(
            reservation,
            created_at=reservation.created_at or now,
            updated_at=reservation.updated_at or now,
        )
        self.reservations[stored.id] = stored
        return replace(stored)

    async def get(self, reservation_id: str) -> Reservation | None:
        stored = self.reservations.get(reservation_id)
        return replace(stored) if stored else None

    async def get_by_session(self, session_id: str) -> Reservation | None:
        for stored in self.reservations.values():
            if stored.payment_session_id == session_id:
                return replace(stored)
        return None

    async def list_by_owner(self, owner_id: str) -> Sequence[Reservation]:
        return self._sorted(r for r in self.reservations.values() if r.owner_id == owner_id)

    async def list_by_driver(self, driver_id: str) -> Sequence[Reservation]:
        return self._sorted(
            r for r in self.reservations.values() if r.assigned_driver_id == driver_id
        )

    async def list_awaiting_payment(self, limit: int = 50) -> Sequence[Reservation]:
        awaiting = self._sorted(
            r
            for r in self.reservations.values()
            if r.status == ReservationStatus.PENDING
            and r.payment_session_id is not None
            and r.payment_status == PaymentStatus.PENDING
        )
        return awaiting[:limit]

    async def list_missing_receipts(self, limit: int = 50) -> Sequence[Reservation]:
        missing = self._sorted(
            r
            for r in self.reservations.values()
            if r.payment_status == PaymentStatus.PAID
            and r.receipt is None
            and r.status != ReservationStatus.CANCELLED
        )
        return missing[:limit]

    async def payment_summary(self) -> Sequence[PaymentSummaryRow]:
        groups: dict[tuple, list[Decimal]] = {}
        for r in self.reservations.values():
            key = (r.kind, r.payment_status, r.amount.currency_code)
            groups.setdefault(key, []).append(r.amount.amount)
        return [
            PaymentSummaryRow(
                kind=kind,
                payment_status=payment_status,
                currency_code=currency_code,
                count=len(amounts),
                total_amount=sum(amounts, Decimal("0")),
            )
            for (kind, payment_status, currency_code), amounts in groups.items()
        ]

    async def update_conditional(
        self,
        reservation_id: str,
        guard: ReservationGuard,
        changes: dict[str, Any],
    ) -> Reservation:
        validate_changes(changes)
        stored = self.reservations.get(reservation_id)
        if stored is None:
            raise ReservationNotFoundError(reservation_id)
        if not guard.matches(stored):
            raise ConcurrentModificationError(
                reservation_id, guard.status.value, stored.status.value
            )
        updated = replace(
            stored,
            **changes,
            lock_version=stored.lock_version + 1,
            updated_at=self._clock.now(),
        )
        self.reservations[reservation_id] = updated
        return replace(updated)

    @staticmethod
    def _sorted(items) -> list[Reservation]:
        return [
            replace(r)
            for r in sorted(items, key=lambda r: (r.created_at, r.id))
        ]
