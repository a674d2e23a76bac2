import logging

from app.application.interfaces.reservation_repo import ReservationRepo
from app.application.services.receipt_issuer import ReceiptIssuer
from app.application.services.retry import retry_on_conflict
from app.application.use_cases.reconcile_pending_payments import WorkerRunSummary
from app.domain.errors import DomainError


class ReissueMissingReceiptsUseCase:
    """Reintenta la emisión de recibos que fallaron tras confirmarse el pago."""

    def __init__(
        self,
        reservation_repo: ReservationRepo,
        receipt_issuer: ReceiptIssuer,
        batch_size: int = 50,
    ) -> None:
        self._reservation_repo = reservation_repo
        self._receipt_issuer = receipt_issuer
        self._batch_size = batch_size
        self._logger = logging.getLogger(__name__)

    async def execute(self) -> WorkerRunSummary:
        summary = WorkerRunSummary()
        missing = await self._reservation_repo.list_missing_receipts(limit=self._batch_size)
        for reservation in missing:
            summary.processed += 1

            async def _issue(reservation_id: str = reservation.id):
                return await self._receipt_issuer.issue(reservation_id)

            try:
                await retry_on_conflict(_issue)
            except DomainError as exc:
                summary.failed += 1
                summary.errors.append(f"{reservation.id}: {exc.code}")
                self._logger.warning(
                    "Receipt reissue failed",
                    extra={"reservation_id": reservation.id, "error": exc.message},
                )
                continue
            summary.succeeded += 1
        if summary.processed:
            self._logger.info(
                "Receipt reissue run finished",
                extra={"processed": summary.processed, "failed": summary.failed},
            )
        return summary
