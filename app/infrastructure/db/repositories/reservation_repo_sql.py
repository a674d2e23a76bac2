from datetime import datetime, timezone
from decimal import Decimal
from typing import Any, Mapping, Sequence

from sqlalchemy import func, insert, select, update

from app.application.interfaces.clock import Clock, SystemClock
from app.application.interfaces.reservation_repo import (
    PaymentSummaryRow,
    ReservationGuard,
    ReservationRepo,
    validate_changes,
)
from app.domain.entities.reservation import PaymentStatus, Reservation, ReservationStatus
from app.domain.errors import ConcurrentModificationError, ReservationNotFoundError
from app.domain.value_objects.booking_number import BookingNumber
from app.domain.value_objects.documents import CustomerContact, Receipt, Refund
from app.domain.value_objects.money import Money
from app.domain.value_objects.schedule import ReservationKind, schedule_from_dict, schedule_to_dict
from app.infrastructure.db.mysql_engine import session_scope
from app.infrastructure.db.retry import retry_on_deadlock
from app.infrastructure.db.tables import reservations


def _to_db_datetime(value: datetime | None) -> datetime | None:
    """DATETIME columns hold naive UTC."""
    if value is None:
        return None
    if value.tzinfo is not None:
        value = value.astimezone(timezone.utc).replace(tzinfo=None)
    return value


def _from_db_datetime(value: datetime | None) -> datetime | None:
    if value is None:
        return None
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value


def _change_values(changes: dict[str, Any]) -> dict[str, Any]:
    values: dict[str, Any] = {}
    for key, value in changes.items():
        if key == "schedule":
            values["schedule"] = schedule_to_dict(value)
        elif key in ("status", "payment_status"):
            values[key] = value.value if value is not None else None
        elif key == "receipt":
            values["receipt_document_ref"] = value.document_ref if value else None
            values["receipt_number"] = value.receipt_number if value else None
            values["receipt_issued_at"] = _to_db_datetime(value.issued_at) if value else None
        elif key == "refund":
            values["refund_id"] = value.refund_id if value else None
            values["refund_amount"] = value.amount if value else None
            values["refund_reason"] = value.reason if value else None
            values["refunded_at"] = _to_db_datetime(value.refunded_at) if value else None
        elif isinstance(value, datetime):
            values[key] = _to_db_datetime(value)
        else:
            values[key] = value
    return values


def _row_to_entity(row: Mapping[str, Any]) -> Reservation:
    receipt = None
    if row["receipt_document_ref"]:
        receipt = Receipt(
            document_ref=row["receipt_document_ref"],
            receipt_number=row["receipt_number"],
            issued_at=_from_db_datetime(row["receipt_issued_at"]),
        )
    refund = None
    if row["refund_id"]:
        refund = Refund(
            refund_id=row["refund_id"],
            amount=Decimal(str(row["refund_amount"])),
            reason=row["refund_reason"],
            refunded_at=_from_db_datetime(row["refunded_at"]),
        )
    return Reservation(
        id=row["id"],
        booking_number=BookingNumber(row["booking_number"]),
        owner_id=row["owner_id"],
        kind=ReservationKind(row["kind"]),
        schedule=schedule_from_dict(row["schedule"]),
        amount=Money(amount=Decimal(str(row["amount"])), currency_code=row["currency_code"]),
        contact=CustomerContact(
            full_name=row["contact_full_name"],
            phone=row["contact_phone"],
            email=row["contact_email"],
        ),
        status=ReservationStatus(row["status"]),
        payment_status=PaymentStatus(row["payment_status"]),
        payment_session_id=row["payment_session_id"],
        payment_intent_id=row["payment_intent_id"],
        assigned_driver_id=row["assigned_driver_id"],
        receipt=receipt,
        refund=refund,
        confirmed_at=_from_db_datetime(row["confirmed_at"]),
        completed_at=_from_db_datetime(row["completed_at"]),
        cancelled_at=_from_db_datetime(row["cancelled_at"]),
        cancel_reason=row["cancel_reason"],
        lock_version=row["lock_version"],
        created_at=_from_db_datetime(row["created_at"]),
        updated_at=_from_db_datetime(row["updated_at"]),
    )


class ReservationRepoSQL(ReservationRepo):
    """
    Repositorio SQL. Cada operación abre su propia transacción corta; la escritura
    condicional es un único ``UPDATE ... WHERE`` cuyo rowcount decide el resultado.
    """

    def __init__(self, session_maker, clock: Clock | None = None) -> None:
        self._session_maker = session_maker
        self._clock = clock or SystemClock()

    async def create(self, reservation: Reservation) -> Reservation:
        now = self._clock.now()
        created_at = reservation.created_at or now
        updated_at = reservation.updated_at or now
        values = {
            "id": reservation.id,
            "booking_number": str(reservation.booking_number),
            "owner_id": reservation.owner_id,
            "kind": reservation.kind.value,
            "schedule": schedule_to_dict(reservation.schedule),
            "currency_code": reservation.amount.currency_code,
            "amount": reservation.amount.amount,
            "contact_full_name": reservation.contact.full_name,
            "contact_phone": reservation.contact.phone,
            "contact_email": reservation.contact.email,
            "lock_version": reservation.lock_version,
            "created_at": _to_db_datetime(created_at),
            "updated_at": _to_db_datetime(updated_at),
            **_change_values(
                {
                    "status": reservation.status,
                    "payment_status": reservation.payment_status,
                    "payment_session_id": reservation.payment_session_id,
                    "payment_intent_id": reservation.payment_intent_id,
                    "assigned_driver_id": reservation.assigned_driver_id,
                    "receipt": reservation.receipt,
                    "refund": reservation.refund,
                    "confirmed_at": reservation.confirmed_at,
                    "completed_at": reservation.completed_at,
                    "cancelled_at": reservation.cancelled_at,
                    "cancel_reason": reservation.cancel_reason,
                }
            ),
        }
        async with session_scope(self._session_maker) as session:
            await session.execute(insert(reservations).values(values))
        stored = await self.get(reservation.id)
        if stored is None:
            raise ReservationNotFoundError(reservation.id)
        return stored

    async def get(self, reservation_id: str) -> Reservation | None:
        return await self._fetch_one(reservations.c.id == reservation_id)

    async def get_by_session(self, session_id: str) -> Reservation | None:
        return await self._fetch_one(reservations.c.payment_session_id == session_id)

    async def list_by_owner(self, owner_id: str) -> Sequence[Reservation]:
        return await self._fetch_many(reservations.c.owner_id == owner_id)

    async def list_by_driver(self, driver_id: str) -> Sequence[Reservation]:
        return await self._fetch_many(reservations.c.assigned_driver_id == driver_id)

    async def list_awaiting_payment(self, limit: int = 50) -> Sequence[Reservation]:
        return await self._fetch_many(
            reservations.c.status == ReservationStatus.PENDING.value,
            reservations.c.payment_status == PaymentStatus.PENDING.value,
            reservations.c.payment_session_id.is_not(None),
            limit=limit,
        )

    async def list_missing_receipts(self, limit: int = 50) -> Sequence[Reservation]:
        return await self._fetch_many(
            reservations.c.payment_status == PaymentStatus.PAID.value,
            reservations.c.receipt_document_ref.is_(None),
            reservations.c.status != ReservationStatus.CANCELLED.value,
            limit=limit,
        )

    async def payment_summary(self) -> Sequence[PaymentSummaryRow]:
        stmt = select(
            reservations.c.kind,
            reservations.c.payment_status,
            reservations.c.currency_code,
            func.count().label("count"),
            func.sum(reservations.c.amount).label("total_amount"),
        ).group_by(
            reservations.c.kind,
            reservations.c.payment_status,
            reservations.c.currency_code,
        )
        async with session_scope(self._session_maker) as session:
            rows = (await session.execute(stmt)).mappings().all()
        return [
            PaymentSummaryRow(
                kind=ReservationKind(row["kind"]),
                payment_status=PaymentStatus(row["payment_status"]),
                currency_code=row["currency_code"],
                count=row["count"],
                total_amount=Decimal(str(row["total_amount"] or 0)),
            )
            for row in rows
        ]

    async def update_conditional(
        self,
        reservation_id: str,
        guard: ReservationGuard,
        changes: dict[str, Any],
    ) -> Reservation:
        validate_changes(changes)

        async def _apply() -> Reservation:
            return await self._update_conditional(reservation_id, guard, changes)

        return await retry_on_deadlock(_apply)

    async def _update_conditional(
        self,
        reservation_id: str,
        guard: ReservationGuard,
        changes: dict[str, Any],
    ) -> Reservation:
        where_clause = [
            reservations.c.id == reservation_id,
            reservations.c.status == guard.status.value,
        ]
        if guard.payment_status is not None:
            where_clause.append(reservations.c.payment_status == guard.payment_status.value)
        if guard.check_session:
            if guard.payment_session_id is None:
                where_clause.append(reservations.c.payment_session_id.is_(None))
            else:
                where_clause.append(reservations.c.payment_session_id == guard.payment_session_id)
        if guard.receipt_must_be_empty:
            where_clause.append(reservations.c.receipt_document_ref.is_(None))
        if guard.driver_must_be_empty:
            where_clause.append(reservations.c.assigned_driver_id.is_(None))

        stmt = (
            update(reservations)
            .where(*where_clause)
            .values(
                **_change_values(changes),
                lock_version=reservations.c.lock_version + 1,
                updated_at=_to_db_datetime(self._clock.now()),
            )
        )
        async with session_scope(self._session_maker) as session:
            result = await session.execute(stmt)
            row = (
                await session.execute(select(reservations).where(reservations.c.id == reservation_id))
            ).mappings().first()
            if row is None:
                raise ReservationNotFoundError(reservation_id)
            if result.rowcount == 0:
                raise ConcurrentModificationError(reservation_id, guard.status.value, row["status"])
            return _row_to_entity(row)

    async def _fetch_one(self, *criteria) -> Reservation | None:
        async with session_scope(self._session_maker) as session:
            result = await session.execute(select(reservations).where(*criteria).limit(1))
            row = result.mappings().first()
        return _row_to_entity(row) if row else None

    async def _fetch_many(self, *criteria, limit: int | None = None) -> list[Reservation]:
        stmt = (
            select(reservations)
            .where(*criteria)
            .order_by(reservations.c.created_at, reservations.c.id)
        )
        if limit is not None:
            stmt = stmt.limit(limit)
        async with session_scope(self._session_maker) as session:
            result = await session.execute(stmt)
            rows = result.mappings().all()
        return [_row_to_entity(row) for row in rows]
