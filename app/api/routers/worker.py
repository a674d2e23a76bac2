from typing import Annotated

from fastapi import APIRouter, Depends, status

from app.api.dependencies import get_use_cases
from app.api.schemas.reservations import WorkerRunResponse

router = APIRouter()


@router.post(
    "/workers/payments/reconcile",
    response_model=WorkerRunResponse,
    status_code=status.HTTP_200_OK,
)
async def reconcile_pending_payments(
    use_cases: Annotated[dict, Depends(get_use_cases)],
) -> WorkerRunResponse:
    """Reconcilia las sesiones de pago abiertas contra Stripe."""
    summary = await use_cases["reconcile_payments"].execute()
    return WorkerRunResponse(
        processed=summary.processed,
        succeeded=summary.succeeded,
        failed=summary.failed,
        errors=summary.errors,
    )


@router.post(
    "/workers/receipts/reissue",
    response_model=WorkerRunResponse,
    status_code=status.HTTP_200_OK,
)
async def reissue_missing_receipts(
    use_cases: Annotated[dict, Depends(get_use_cases)],
) -> WorkerRunResponse:
    """Reintenta los recibos pendientes de reservaciones pagadas."""
    summary = await use_cases["reissue_receipts"].execute()
    return WorkerRunResponse(
        processed=summary.processed,
        succeeded=summary.succeeded,
        failed=summary.failed,
        errors=summary.errors,
    )
