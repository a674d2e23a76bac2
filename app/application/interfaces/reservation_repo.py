"""Interface ReservationRepo - Puerto del almacén de reservaciones."""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Sequence

from app.domain.entities.reservation import PaymentStatus, Reservation, ReservationStatus
from app.domain.value_objects.schedule import ReservationKind

# Campos que una escritura condicional puede modificar. El resto se congela al crear.
MUTABLE_FIELDS = frozenset(
    {
        "schedule",
        "status",
        "payment_status",
        "payment_session_id",
        "payment_intent_id",
        "assigned_driver_id",
        "receipt",
        "refund",
        "confirmed_at",
        "completed_at",
        "cancelled_at",
        "cancel_reason",
    }
)


@dataclass(frozen=True)
class ReservationGuard:
    """
    Condición que el registro almacenado debe cumplir para aceptar una escritura.

    ``status`` siempre se compara. El resto de las condiciones son opcionales:
    ``payment_session_id`` sólo se compara cuando ``check_session`` es True
    (permite exigir explícitamente ``None``).
    """

    status: ReservationStatus
    payment_status: PaymentStatus | None = None
    payment_session_id: str | None = None
    check_session: bool = False
    receipt_must_be_empty: bool = False
    driver_must_be_empty: bool = False

    def matches(self, reservation: Reservation) -> bool:
        if reservation.status != self.status:
            return False
        if self.payment_status is not None and reservation.payment_status != self.payment_status:
            return False
        if self.check_session and reservation.payment_session_id != self.payment_session_id:
            return False
        if self.receipt_must_be_empty and reservation.receipt is not None:
            return False
        if self.driver_must_be_empty and reservation.assigned_driver_id is not None:
            return False
        return True


@dataclass(frozen=True)
class PaymentSummaryRow:
    """Conteo y suma de montos por tipo, estado de pago y moneda."""

    kind: ReservationKind
    payment_status: PaymentStatus
    currency_code: str
    count: int
    total_amount: Decimal


def validate_changes(changes: dict[str, Any]) -> None:
    """Rechaza cambios sobre campos inmutables."""
    frozen = set(changes) - MUTABLE_FIELDS
    if frozen:
        raise ValueError(f"Campos inmutables no se pueden actualizar: {sorted(frozen)}")


class ReservationRepo(ABC):
    """
    Puerto para el almacén durable de reservaciones.

    Todas las mutaciones pasan por ``update_conditional``: una única escritura
    atómica compare-and-swap. No existe borrado físico.
    """

    @abstractmethod
    async def create(self, reservation: Reservation) -> Reservation:
        """
        Persiste una reservación nueva.

        Returns:
            Reservation con ``created_at``/``updated_at`` asignados por el almacén.
        """
        raise NotImplementedError

    @abstractmethod
    async def get(self, reservation_id: str) -> Reservation | None:
        """Obtiene una copia de la reservación, o None si no existe."""
        raise NotImplementedError

    @abstractmethod
    async def get_by_session(self, session_id: str) -> Reservation | None:
        """Obtiene la reservación cuya sesión de pago vigente es ``session_id``."""
        raise NotImplementedError

    @abstractmethod
    async def list_by_owner(self, owner_id: str) -> Sequence[Reservation]:
        raise NotImplementedError

    @abstractmethod
    async def list_by_driver(self, driver_id: str) -> Sequence[Reservation]:
        raise NotImplementedError

    @abstractmethod
    async def list_awaiting_payment(self, limit: int = 50) -> Sequence[Reservation]:
        """Reservaciones ``pending`` con sesión de pago abierta y pago no resuelto."""
        raise NotImplementedError

    @abstractmethod
    async def list_missing_receipts(self, limit: int = 50) -> Sequence[Reservation]:
        """Reservaciones pagadas, no canceladas, cuyo recibo aún no se emitió."""
        raise NotImplementedError

    @abstractmethod
    async def payment_summary(self) -> Sequence[PaymentSummaryRow]:
        raise NotImplementedError

    @abstractmethod
    async def update_conditional(
        self,
        reservation_id: str,
        guard: ReservationGuard,
        changes: dict[str, Any],
    ) -> Reservation:
        """
        Aplica ``changes`` sólo si el registro almacenado cumple ``guard``.

        Args:
            reservation_id: ID de la reservación.
            guard: Estado observado por el llamador.
            changes: Campos a modificar (ver MUTABLE_FIELDS).

        Returns:
            La reservación actualizada (``lock_version`` incrementado).

        Raises:
            ReservationNotFoundError: Si la reservación no existe.
            ConcurrentModificationError: Si el registro ya no cumple ``guard``.
        """
        raise NotImplementedError
