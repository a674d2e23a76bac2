"""Interface PaymentTransactionRepo - Puerto del libro de transacciones de pago."""

from abc import ABC, abstractmethod
from typing import Any, Iterable, Sequence

from app.domain.entities.payment_transaction import PaymentTransaction, TransactionStatus

# Campos que ``mark`` puede modificar además de ``status``.
MARKABLE_FIELDS = frozenset(
    {
        "payment_intent_id",
        "refund_id",
        "refund_amount",
        "refund_reason",
        "completed_at",
        "failed_at",
        "refunded_at",
        "cancelled_at",
    }
)


def validate_mark_fields(fields: dict[str, Any]) -> None:
    unknown = set(fields) - MARKABLE_FIELDS
    if unknown:
        raise ValueError(f"Campos no actualizables en la transacción: {sorted(unknown)}")


class PaymentTransactionRepo(ABC):
    """
    Puerto para el historial de sesiones de cobro.

    Una transacción por sesión de checkout. ``add`` es idempotente por
    ``session_id`` y ``mark`` sólo avanza desde los estados indicados, de modo
    que repetir un callback no reescribe el historial.
    """

    @abstractmethod
    async def add(self, transaction: PaymentTransaction) -> PaymentTransaction:
        """
        Registra la transacción de una sesión nueva.

        Returns:
            La transacción almacenada; si la sesión ya existía, la existente.
        """
        raise NotImplementedError

    @abstractmethod
    async def mark(
        self,
        session_id: str,
        status: TransactionStatus,
        from_statuses: Iterable[TransactionStatus],
        **fields: Any,
    ) -> PaymentTransaction | None:
        """
        Cambia el estado de la transacción de ``session_id``.

        Sólo escribe si el estado actual está en ``from_statuses``; en otro
        caso devuelve la transacción sin cambios.

        Returns:
            La transacción resultante, o None si la sesión no está registrada.
        """
        raise NotImplementedError

    @abstractmethod
    async def get(self, transaction_id: str) -> PaymentTransaction | None:
        raise NotImplementedError

    @abstractmethod
    async def get_by_session(self, session_id: str) -> PaymentTransaction | None:
        raise NotImplementedError

    @abstractmethod
    async def list_by_reservation(self, reservation_id: str) -> Sequence[PaymentTransaction]:
        """Transacciones de la reservación, de la más antigua a la más reciente."""
        raise NotImplementedError

    @abstractmethod
    async def list_by_owner(self, owner_id: str, limit: int = 50) -> Sequence[PaymentTransaction]:
        """Transacciones del cliente, la más reciente primero."""
        raise NotImplementedError

    @abstractmethod
    async def search(
        self,
        status: TransactionStatus | None = None,
        owner_id: str | None = None,
        offset: int = 0,
        limit: int = 20,
    ) -> tuple[Sequence[PaymentTransaction], int]:
        """
        Página de transacciones filtradas, la más reciente primero.

        Returns:
            Tupla (transacciones de la página, total que cumple el filtro).
        """
        raise NotImplementedError
