"""
ReservationLifecycleManager - máquina de estados de la reservación.

Cada mutación es exactamente una escritura condicional sobre el repositorio;
no hay locks adicionales. Los errores de precondición se propagan al llamador,
que decide si releer y reintentar. El libro de pagos se actualiza después
de la escritura de la reservación.
"""

import logging
from typing import Any, Sequence

from app.application.interfaces.clock import Clock
from app.application.interfaces.payment_gateway import CheckoutSession, PaymentGateway
from app.application.interfaces.reservation_repo import ReservationGuard, ReservationRepo
from app.application.interfaces.uuid_generator import UUIDGenerator
from app.application.services.payment_ledger import PaymentLedger
from app.application.services.receipt_issuer import ReceiptIssuer
from app.application.services.retry import retry_on_conflict
from app.domain.entities.reservation import (
    FINAL_PAYMENT_STATUSES,
    PaymentOutcome,
    PaymentStatus,
    Reservation,
    ReservationStatus,
)
from app.domain.errors import (
    ActorNotAllowedError,
    AlreadyFinalError,
    ConcurrentModificationError,
    InvalidMoneyError,
    InvalidReservationStatusError,
    NotAssignedError,
    PaymentGatewayError,
    ReceiptGenerationError,
    ReceiptNotReadyError,
    ReservationNotFoundError,
    StaleSessionError,
    ValidationError,
)
from app.domain.value_objects.actor import Actor, ActorRole
from app.domain.value_objects.documents import CustomerContact, Refund
from app.domain.value_objects.money import Money
from app.domain.value_objects.schedule import ReservationKind, Schedule

logger = logging.getLogger(__name__)

CUSTOMER_CANCELLABLE = frozenset({ReservationStatus.PENDING, ReservationStatus.CONFIRMED})
REFUNDABLE = frozenset({ReservationStatus.CONFIRMED, ReservationStatus.ASSIGNED})


class ReservationLifecycleManager:
    def __init__(
        self,
        reservation_repo: ReservationRepo,
        payment_gateway: PaymentGateway,
        receipt_issuer: ReceiptIssuer,
        payment_ledger: PaymentLedger,
        clock: Clock,
        uuid_generator: UUIDGenerator,
    ) -> None:
        self._reservation_repo = reservation_repo
        self._payment_gateway = payment_gateway
        self._receipt_issuer = receipt_issuer
        self._payment_ledger = payment_ledger
        self._clock = clock
        self._uuid_generator = uuid_generator

    # === Consultas ===

    async def get_reservation(self, reservation_id: str, actor: Actor | None = None) -> Reservation:
        """
        Lee la reservación. Con ``actor``, sólo el dueño, el conductor asignado
        o un operador pueden verla.
        """
        reservation = await self._reservation_repo.get(reservation_id)
        if reservation is None:
            raise ReservationNotFoundError(reservation_id)
        if actor is not None and not reservation.is_visible_to(actor):
            raise ActorNotAllowedError(str(actor), "consultar")
        return reservation

    async def list_for_owner(
        self, owner_id: str, actor: Actor | None = None
    ) -> Sequence[Reservation]:
        if actor is not None and not actor.is_operator:
            if actor.role != ActorRole.CUSTOMER or actor.actor_id != owner_id:
                raise ActorNotAllowedError(str(actor), "listar reservaciones de otro cliente")
        return await self._reservation_repo.list_by_owner(owner_id)

    async def list_for_driver(
        self, driver_id: str, actor: Actor | None = None
    ) -> Sequence[Reservation]:
        if actor is not None and not actor.is_operator:
            if actor.role != ActorRole.DRIVER or actor.actor_id != driver_id:
                raise ActorNotAllowedError(str(actor), "listar reservaciones de otro conductor")
        return await self._reservation_repo.list_by_driver(driver_id)

    # === Creación ===

    async def create_reservation(
        self,
        owner_id: str,
        kind: ReservationKind | str,
        schedule: Schedule,
        amount: Money,
        contact: CustomerContact,
    ) -> Reservation:
        """
        Crea una reservación en ``pending/pending``.

        Raises:
            ValidationError: owner vacío o agenda de otro tipo.
            InvalidMoneyError: monto no positivo.
        """
        kind = ReservationKind(kind)
        if not owner_id or not owner_id.strip():
            raise ValidationError("owner_id", "es requerido")
        if schedule.kind != kind:
            raise ValidationError(
                "schedule", f"agenda '{schedule.kind.value}' no corresponde a '{kind.value}'"
            )
        if amount.is_zero():
            raise InvalidMoneyError("amount debe ser mayor que cero")

        now = self._clock.now()
        reservation = Reservation(
            id=self._uuid_generator.generate_uuid(),
            booking_number=self._uuid_generator.generate_booking_number(),
            owner_id=owner_id,
            kind=kind,
            schedule=schedule,
            amount=amount,
            contact=contact,
            created_at=now,
            updated_at=now,
        )
        created = await self._reservation_repo.create(reservation)
        logger.info(
            "Reservation created",
            extra={
                "reservation_id": created.id,
                "booking_number": str(created.booking_number),
                "kind": kind.value,
                "owner_id": owner_id,
            },
        )
        return created

    async def update_schedule(
        self,
        reservation_id: str,
        actor: Actor,
        schedule: Schedule,
        expected_status: ReservationStatus | None = None,
    ) -> Reservation:
        reservation = await self._load(reservation_id, expected_status)
        if reservation.is_terminal:
            raise AlreadyFinalError(reservation_id, reservation.status.value, "reprogramar")
        if not (actor.is_operator or self._is_owner(reservation, actor)):
            raise ActorNotAllowedError(str(actor), "reprogramar")
        if reservation.status != ReservationStatus.PENDING:
            raise InvalidReservationStatusError(
                reservation.status.value, ReservationStatus.PENDING.value, "reprogramar"
            )
        if schedule.kind != reservation.kind:
            raise ValidationError(
                "schedule",
                f"agenda '{schedule.kind.value}' no corresponde a '{reservation.kind.value}'",
            )
        return await self._write(
            reservation,
            ReservationGuard(status=ReservationStatus.PENDING),
            {"schedule": schedule},
            event="Reservation rescheduled",
        )

    # === Pago ===

    async def open_payment_session(
        self,
        reservation_id: str,
        actor: Actor,
        expected_status: ReservationStatus | None = None,
    ) -> CheckoutSession:
        """
        Abre una nueva sesión de checkout y la vuelve la sesión vigente.

        La sesión anterior, si existía, queda reemplazada: sus callbacks se
        rechazan como obsoletos.
        """
        reservation = await self._load(reservation_id, expected_status)
        if reservation.payment_status in FINAL_PAYMENT_STATUSES:
            raise AlreadyFinalError(
                reservation_id, reservation.payment_status.value, "pagar"
            )
        if reservation.status != ReservationStatus.PENDING:
            raise AlreadyFinalError(reservation_id, reservation.status.value, "pagar")
        if not (actor.is_operator or self._is_owner(reservation, actor)):
            raise ActorNotAllowedError(str(actor), "pagar")

        session = await self._payment_gateway.create_session(
            amount=reservation.amount,
            metadata={
                "reservation_id": reservation.id,
                "booking_number": str(reservation.booking_number),
                "owner_id": reservation.owner_id,
            },
            idempotency_key=f"{reservation.id}:{reservation.lock_version}",
            description=f"{reservation.kind.value.title()} {reservation.booking_number}",
        )
        updated = await self._write(
            reservation,
            ReservationGuard(
                status=ReservationStatus.PENDING,
                payment_status=reservation.payment_status,
                payment_session_id=reservation.payment_session_id,
                check_session=True,
            ),
            {"payment_session_id": session.session_id, "payment_status": PaymentStatus.PENDING},
            event="Payment session opened",
            session_id=session.session_id,
            previous_session_id=reservation.payment_session_id,
        )
        await self._payment_ledger.session_opened(
            updated, previous_session_id=reservation.payment_session_id
        )
        return session

    async def record_payment_outcome(
        self,
        reservation_id: str,
        session_id: str,
        outcome: PaymentOutcome | str,
        payment_intent_id: str | None = None,
    ) -> Reservation:
        """
        Reconcilia el resultado de una sesión de pago.

        Idempotente bajo entrega at-least-once: repetir un ``paid`` ya registrado
        con la misma sesión es un no-op exitoso que no emite un segundo recibo.

        Raises:
            ReservationNotFoundError: La reservación no existe.
            AlreadyFinalError: Reservación cancelada (con cualquier sesión), o pago
                ya pagado/reembolsado.
            StaleSessionError: ``session_id`` no es la sesión vigente.
            ConcurrentModificationError: Otra escritura ganó la carrera.
        """
        outcome = PaymentOutcome(outcome)
        reservation = await self._load(reservation_id)
        log_extra = {
            "reservation_id": reservation_id,
            "session_id": session_id,
            "outcome": outcome.value,
        }

        if reservation.status == ReservationStatus.CANCELLED:
            raise AlreadyFinalError(reservation_id, reservation.status.value, "registrar pago")

        if reservation.payment_session_id != session_id:
            logger.warning(
                "Stale payment callback rejected",
                extra={**log_extra, "current_session_id": reservation.payment_session_id},
            )
            raise StaleSessionError(reservation_id, session_id, reservation.payment_session_id)

        if reservation.payment_status == PaymentStatus.PAID and outcome == PaymentOutcome.PAID:
            logger.info("Duplicate payment outcome ignored", extra=log_extra)
            await self._payment_ledger.payment_completed(reservation, session_id, payment_intent_id)
            if reservation.receipt is None:
                return await self._issue_receipt(reservation)
            return reservation

        if reservation.payment_status in FINAL_PAYMENT_STATUSES:
            raise AlreadyFinalError(
                reservation_id, reservation.payment_status.value, "registrar pago"
            )

        if reservation.payment_status == PaymentStatus.FAILED and outcome == PaymentOutcome.FAILED:
            logger.info("Duplicate payment outcome ignored", extra=log_extra)
            await self._payment_ledger.payment_failed(reservation, session_id)
            return reservation

        if outcome == PaymentOutcome.PENDING:
            logger.info("Payment still pending", extra=log_extra)
            return reservation

        if reservation.status != ReservationStatus.PENDING:
            raise InvalidReservationStatusError(
                reservation.status.value, ReservationStatus.PENDING.value, "registrar pago"
            )

        guard = ReservationGuard(
            status=ReservationStatus.PENDING,
            payment_status=reservation.payment_status,
            payment_session_id=session_id,
            check_session=True,
        )
        if outcome == PaymentOutcome.PAID:
            confirmed = await self._write(
                reservation,
                guard,
                {
                    "status": ReservationStatus.CONFIRMED,
                    "payment_status": PaymentStatus.PAID,
                    "payment_intent_id": payment_intent_id or reservation.payment_intent_id,
                    "confirmed_at": self._clock.now(),
                },
                event="Payment confirmed",
                session_id=session_id,
            )
            await self._payment_ledger.payment_completed(confirmed, session_id, payment_intent_id)
            return await self._issue_receipt(confirmed)

        failed = await self._write(
            reservation,
            guard,
            {"payment_status": PaymentStatus.FAILED},
            event="Payment failed",
            level=logging.WARNING,
            session_id=session_id,
        )
        await self._payment_ledger.payment_failed(failed, session_id)
        return failed

    async def reconcile_session(self, session_id: str) -> Reservation:
        """Consulta el gateway por la sesión y registra su resultado (ruta de polling)."""
        reservation = await self._reservation_repo.get_by_session(session_id)
        if reservation is None:
            raise ReservationNotFoundError(session_id)
        verification = await self._payment_gateway.verify_session(session_id)
        return await self.record_payment_outcome(
            reservation.id,
            session_id,
            verification.outcome,
            payment_intent_id=verification.payment_intent_id,
        )

    async def refund(
        self,
        reservation_id: str,
        actor: Actor,
        reason: str | None = None,
        expected_status: ReservationStatus | None = None,
    ) -> Reservation:
        """
        Reembolsa el pago y cancela la reservación en una sola escritura.

        El recibo deja de estar vigente; el registro del cobro queda en ``refund``.
        """
        reservation = await self._load(reservation_id, expected_status)
        if reservation.is_terminal or reservation.payment_status == PaymentStatus.REFUNDED:
            raise AlreadyFinalError(reservation_id, reservation.status.value, "reembolsar")
        if not actor.is_operator:
            raise ActorNotAllowedError(str(actor), "reembolsar")
        if reservation.payment_status != PaymentStatus.PAID or reservation.status not in REFUNDABLE:
            raise InvalidReservationStatusError(
                reservation.payment_status.value, PaymentStatus.PAID.value, "reembolsar"
            )
        if not reservation.payment_intent_id:
            raise PaymentGatewayError("refund", "la reservación no tiene referencia de pago")

        refund_id = await self._payment_gateway.refund(
            payment_intent_id=reservation.payment_intent_id,
            amount=reservation.amount,
            reason=reason,
            idempotency_key=f"refund:{reservation.id}",
        )
        logger.info(
            "Gateway refund created",
            extra={"reservation_id": reservation_id, "refund_id": refund_id},
        )
        refund = Refund(
            refund_id=refund_id,
            amount=reservation.amount.amount,
            reason=reason,
            refunded_at=self._clock.now(),
        )
        try:
            refunded = await self._write(
                reservation,
                ReservationGuard(status=reservation.status, payment_status=PaymentStatus.PAID),
                self._refund_changes(reservation, refund, reason),
                event="Reservation refunded",
                refund_id=refund_id,
            )
        except ConcurrentModificationError as exc:
            # El dinero ya se devolvió en el gateway: el registro debe alcanzarlo.
            logger.error(
                "Refund issued but reservation write was rejected",
                extra={
                    "reservation_id": reservation_id,
                    "refund_id": refund_id,
                    "amount": str(refund.amount),
                    "error": exc.message,
                },
            )
            refunded = await retry_on_conflict(
                lambda: self._record_refund(reservation_id, refund, reason)
            )
        await self._payment_ledger.refunded(refunded)
        return refunded

    async def _record_refund(
        self, reservation_id: str, refund: Refund, reason: str | None
    ) -> Reservation:
        """
        Registra un reembolso ya emitido sobre el estado actual de la reservación.

        Si otra escritura la llevó a ``completed`` o ``cancelled``, el estado se
        conserva y sólo cambian los campos de pago.
        """
        current = await self.get_reservation(reservation_id)
        if current.payment_status == PaymentStatus.REFUNDED:
            return current
        if current.payment_status != PaymentStatus.PAID:
            raise InvalidReservationStatusError(
                current.payment_status.value, PaymentStatus.PAID.value, "registrar reembolso"
            )
        return await self._write(
            current,
            ReservationGuard(status=current.status, payment_status=PaymentStatus.PAID),
            self._refund_changes(current, refund, reason),
            event="Refund recorded after conflict",
            level=logging.WARNING,
            refund_id=refund.refund_id,
        )

    @staticmethod
    def _refund_changes(
        reservation: Reservation, refund: Refund, reason: str | None
    ) -> dict[str, Any]:
        changes: dict[str, Any] = {
            "payment_status": PaymentStatus.REFUNDED,
            "receipt": None,
            "refund": refund,
        }
        if reservation.status in REFUNDABLE:
            changes.update(
                status=ReservationStatus.CANCELLED,
                assigned_driver_id=None,
                cancelled_at=refund.refunded_at,
                cancel_reason=reason or "refunded",
            )
        return changes

    # === Ciclo de vida ===

    async def cancel(
        self,
        reservation_id: str,
        actor: Actor,
        reason: str | None = None,
        expected_status: ReservationStatus | None = None,
    ) -> Reservation:
        """
        Cancela la reservación y libera al conductor asignado.

        Operador: siempre. Cliente (dueño): desde ``pending``/``confirmed``.
        Conductor (asignado): sólo desde ``assigned``.
        """
        reservation = await self._load(reservation_id, expected_status)
        if reservation.is_terminal:
            raise AlreadyFinalError(reservation_id, reservation.status.value, "cancelar")
        if not self._may_cancel(reservation, actor):
            raise ActorNotAllowedError(str(actor), "cancelar")

        cancelled = await self._write(
            reservation,
            ReservationGuard(status=reservation.status),
            {
                "status": ReservationStatus.CANCELLED,
                "assigned_driver_id": None,
                "cancelled_at": self._clock.now(),
                "cancel_reason": reason,
            },
            event="Reservation cancelled",
            actor=str(actor),
            released_driver_id=reservation.assigned_driver_id,
        )
        if reservation.payment_session_id and reservation.payment_status == PaymentStatus.PENDING:
            await self._payment_ledger.session_cancelled(reservation.payment_session_id)
        return cancelled

    async def complete(
        self,
        reservation_id: str,
        actor: Actor,
        expected_status: ReservationStatus | None = None,
    ) -> Reservation:
        reservation = await self._load(reservation_id, expected_status)
        if reservation.is_terminal:
            raise AlreadyFinalError(reservation_id, reservation.status.value, "completar")
        if reservation.status != ReservationStatus.ASSIGNED:
            raise NotAssignedError(reservation_id, str(actor))
        is_bound_driver = actor.role == ActorRole.DRIVER and reservation.is_bound_to(actor.actor_id)
        if not (actor.is_operator or is_bound_driver):
            raise NotAssignedError(reservation_id, str(actor))

        return await self._write(
            reservation,
            ReservationGuard(status=ReservationStatus.ASSIGNED),
            {"status": ReservationStatus.COMPLETED, "completed_at": self._clock.now()},
            event="Reservation completed",
            actor=str(actor),
        )

    # === Internos ===

    async def _load(
        self,
        reservation_id: str,
        expected_status: ReservationStatus | None = None,
    ) -> Reservation:
        reservation = await self.get_reservation(reservation_id)
        if expected_status is not None and reservation.status != expected_status:
            raise ConcurrentModificationError(
                reservation_id, ReservationStatus(expected_status).value, reservation.status.value
            )
        return reservation

    async def _write(
        self,
        reservation: Reservation,
        guard: ReservationGuard,
        changes: dict[str, Any],
        event: str,
        level: int = logging.INFO,
        **log_fields: Any,
    ) -> Reservation:
        updated = await self._reservation_repo.update_conditional(reservation.id, guard, changes)
        logger.log(
            level,
            event,
            extra={
                "reservation_id": updated.id,
                "from_status": reservation.status.value,
                "status": updated.status.value,
                "payment_status": updated.payment_status.value,
                "lock_version": updated.lock_version,
                **log_fields,
            },
        )
        return updated

    async def _issue_receipt(self, reservation: Reservation) -> Reservation:
        try:
            return await self._receipt_issuer.issue(reservation.id)
        except (
            ReceiptGenerationError,
            ReceiptNotReadyError,
            AlreadyFinalError,
            ConcurrentModificationError,
        ) as exc:
            # un reembolso o una cancelación pudo llegar antes que el recibo
            logger.warning(
                "Receipt left pending for retry",
                extra={"reservation_id": reservation.id, "error": exc.message},
            )
            return reservation

    @staticmethod
    def _is_owner(reservation: Reservation, actor: Actor) -> bool:
        return actor.role == ActorRole.CUSTOMER and actor.actor_id == reservation.owner_id

    def _may_cancel(self, reservation: Reservation, actor: Actor) -> bool:
        if actor.is_operator:
            return True
        if self._is_owner(reservation, actor):
            return reservation.status in CUSTOMER_CANCELLABLE
        if actor.role == ActorRole.DRIVER:
            return (
                reservation.status == ReservationStatus.ASSIGNED
                and reservation.is_bound_to(actor.actor_id)
            )
        return False
