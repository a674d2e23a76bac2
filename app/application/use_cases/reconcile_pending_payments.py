import logging
from dataclasses import dataclass, field

from app.application.interfaces.reservation_repo import ReservationRepo
from app.application.services.lifecycle_manager import ReservationLifecycleManager
from app.application.services.retry import retry_on_conflict
from app.domain.entities.reservation import PaymentStatus
from app.domain.errors import DomainError


@dataclass
class WorkerRunSummary:
    processed: int = 0
    succeeded: int = 0
    failed: int = 0
    errors: list[str] = field(default_factory=list)


class ReconcilePendingPaymentsUseCase:
    """Consulta el gateway por cada sesión abierta y registra su resultado."""

    def __init__(
        self,
        reservation_repo: ReservationRepo,
        lifecycle_manager: ReservationLifecycleManager,
        batch_size: int = 50,
    ) -> None:
        self._reservation_repo = reservation_repo
        self._lifecycle_manager = lifecycle_manager
        self._batch_size = batch_size
        self._logger = logging.getLogger(__name__)

    async def execute(self) -> WorkerRunSummary:
        summary = WorkerRunSummary()
        awaiting = await self._reservation_repo.list_awaiting_payment(limit=self._batch_size)
        for reservation in awaiting:
            session_id = reservation.payment_session_id
            if not session_id:
                continue
            summary.processed += 1

            async def _reconcile(session_id: str = session_id):
                return await self._lifecycle_manager.reconcile_session(session_id)

            try:
                updated = await retry_on_conflict(_reconcile)
            except DomainError as exc:
                summary.failed += 1
                summary.errors.append(f"{reservation.id}: {exc.code}")
                self._logger.warning(
                    "Payment reconciliation failed",
                    extra={"reservation_id": reservation.id, "session_id": session_id, "error": exc.message},
                )
                continue

            summary.succeeded += 1
            if updated.payment_status != PaymentStatus.PENDING:
                self._logger.info(
                    "Payment reconciled",
                    extra={
                        "reservation_id": reservation.id,
                        "session_id": session_id,
                        "payment_status": updated.payment_status.value,
                    },
                )
        return summary
