"""Entidad Reservation - Agregado raíz del dominio."""

from dataclasses import dataclass
from datetime import datetime
from enum import Enum

from app.domain.value_objects.actor import Actor, ActorRole
from app.domain.value_objects.booking_number import BookingNumber
from app.domain.value_objects.documents import CustomerContact, Receipt, Refund
from app.domain.value_objects.money import Money
from app.domain.value_objects.schedule import ReservationKind, Schedule


class ReservationStatus(str, Enum):
    """Estados posibles de una reservación."""

    PENDING = "pending"
    CONFIRMED = "confirmed"
    ASSIGNED = "assigned"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class PaymentStatus(str, Enum):
    """Estados de pago de una reservación."""

    PENDING = "pending"
    PAID = "paid"
    FAILED = "failed"
    REFUNDED = "refunded"


class PaymentOutcome(str, Enum):
    """Resultado reportado por el gateway para una sesión de pago."""

    PAID = "paid"
    FAILED = "failed"
    PENDING = "pending"


TERMINAL_STATUSES = frozenset({ReservationStatus.COMPLETED, ReservationStatus.CANCELLED})
FINAL_PAYMENT_STATUSES = frozenset({PaymentStatus.PAID, PaymentStatus.REFUNDED})
DRIVER_BOUND_STATUSES = frozenset({ReservationStatus.ASSIGNED, ReservationStatus.COMPLETED})

# Transiciones válidas del ciclo de vida (origen -> destinos permitidos).
ALLOWED_TRANSITIONS: dict[ReservationStatus, frozenset[ReservationStatus]] = {
    ReservationStatus.PENDING: frozenset({ReservationStatus.CONFIRMED, ReservationStatus.CANCELLED}),
    ReservationStatus.CONFIRMED: frozenset({ReservationStatus.ASSIGNED, ReservationStatus.CANCELLED}),
    ReservationStatus.ASSIGNED: frozenset({ReservationStatus.COMPLETED, ReservationStatus.CANCELLED}),
    ReservationStatus.COMPLETED: frozenset(),
    ReservationStatus.CANCELLED: frozenset(),
}


def is_allowed_transition(current: ReservationStatus, target: ReservationStatus) -> bool:
    """Indica si ``current -> target`` es una transición válida (o un no-op)."""
    return current == target or target in ALLOWED_TRANSITIONS[current]


@dataclass
class Reservation:
    """
    Entidad principal del dominio - Agregado Raíz.

    Representa la reserva de un viaje o de un tour guiado. Los campos ``owner_id``,
    ``kind``, ``amount`` y ``contact`` se congelan al crearla; el resto sólo cambia
    mediante escrituras condicionales del repositorio.
    """

    # Identificadores
    id: str
    booking_number: BookingNumber
    owner_id: str

    # Datos del servicio
    kind: ReservationKind
    schedule: Schedule
    amount: Money
    contact: CustomerContact

    # Estados
    status: ReservationStatus = ReservationStatus.PENDING
    payment_status: PaymentStatus = PaymentStatus.PENDING

    # Pago
    payment_session_id: str | None = None
    payment_intent_id: str | None = None

    # Asignación
    assigned_driver_id: str | None = None

    # Documentos
    receipt: Receipt | None = None
    refund: Refund | None = None

    # Hitos del ciclo de vida
    confirmed_at: datetime | None = None
    completed_at: datetime | None = None
    cancelled_at: datetime | None = None
    cancel_reason: str | None = None

    # Control de concurrencia
    lock_version: int = 0

    # Timestamps
    created_at: datetime | None = None
    updated_at: datetime | None = None

    # === Propiedades calculadas ===

    @property
    def is_terminal(self) -> bool:
        """Verifica si la reservación está en un estado terminal."""
        return self.status in TERMINAL_STATUSES

    # === Reglas de negocio ===

    def is_bound_to(self, driver_id: str) -> bool:
        """Verifica si ``driver_id`` es el conductor asignado."""
        return self.assigned_driver_id is not None and self.assigned_driver_id == driver_id

    def is_visible_to(self, actor: Actor) -> bool:
        """Operador, cliente dueño o conductor asignado."""
        if actor.is_operator:
            return True
        if actor.role == ActorRole.CUSTOMER:
            return actor.actor_id == self.owner_id
        if actor.role == ActorRole.DRIVER:
            return self.is_bound_to(actor.actor_id)
        return False

    def invariant_violations(self) -> list[str]:
        """
        Evalúa los invariantes del agregado.

        Returns:
            Lista de descripciones de los invariantes violados (vacía si todo es consistente).
        """
        violations: list[str] = []
        if self.assigned_driver_id is not None and self.status not in DRIVER_BOUND_STATUSES:
            violations.append(
                f"assigned_driver_id presente con estado '{self.status.value}'"
            )
        if self.receipt is not None and self.payment_status != PaymentStatus.PAID:
            violations.append(
                f"receipt presente con estado de pago '{self.payment_status.value}'"
            )
        if self.schedule.kind != self.kind:
            violations.append(
                f"agenda '{self.schedule.kind.value}' no coincide con tipo '{self.kind.value}'"
            )
        return violations

    def check_invariants(self) -> None:
        """Lanza AssertionError si algún invariante no se cumple."""
        violations = self.invariant_violations()
        if violations:
            raise AssertionError("; ".join(violations))
