from fastapi import APIRouter, Depends, Query, Request, status

from app.api.dependencies import get_actor, get_use_cases
from app.api.schemas.payments import (
    PaymentDetailsResponse,
    PaymentStatisticsResponse,
    TransactionListResponse,
    TransactionPageResponse,
    TransactionResponse,
)
from app.api.schemas.reservations import ReservationResponse, WebhookAckResponse
from app.application.services.payment_ledger import MAX_PAGE_SIZE
from app.domain.entities.payment_transaction import TransactionStatus
from app.domain.value_objects.actor import Actor

router = APIRouter()


@router.post("/payments/verify/{session_id}", response_model=ReservationResponse)
async def verify_payment(session_id: str, use_cases=Depends(get_use_cases)) -> ReservationResponse:
    """Ruta de polling: consulta el resultado de la sesión en Stripe y lo registra."""
    reservation = await use_cases["lifecycle"].reconcile_session(session_id)
    return ReservationResponse.from_entity(reservation)


@router.post(
    "/webhooks/stripe",
    response_model=WebhookAckResponse,
    status_code=status.HTTP_200_OK,
)
async def stripe_webhook(
    request: Request,
    use_cases=Depends(get_use_cases),
) -> WebhookAckResponse:
    raw_body = await request.body()
    signature = request.headers.get("Stripe-Signature")
    result = await use_cases["handle_webhook"].execute(raw_body=raw_body, signature=signature)
    return WebhookAckResponse(status=result.status, reservation_id=result.reservation_id)


@router.get("/reservations/{reservation_id}/payment", response_model=PaymentDetailsResponse)
async def get_payment_details(
    reservation_id: str,
    actor: Actor = Depends(get_actor),
    use_cases=Depends(get_use_cases),
) -> PaymentDetailsResponse:
    reservation, transactions = await use_cases["payment_ledger"].reservation_payment(
        reservation_id, actor
    )
    return PaymentDetailsResponse.from_entities(reservation, transactions)


@router.get("/customers/{owner_id}/transactions", response_model=TransactionListResponse)
async def list_customer_transactions(
    owner_id: str,
    limit: int = Query(default=50, ge=1, le=MAX_PAGE_SIZE),
    actor: Actor = Depends(get_actor),
    use_cases=Depends(get_use_cases),
) -> TransactionListResponse:
    items = await use_cases["payment_ledger"].list_for_owner(owner_id, actor, limit=limit)
    return TransactionListResponse.from_entities(items)


@router.get("/transactions", response_model=TransactionPageResponse)
async def list_transactions(
    status_filter: TransactionStatus | None = Query(default=None, alias="status"),
    owner_id: str | None = None,
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=20, ge=1, le=MAX_PAGE_SIZE),
    actor: Actor = Depends(get_actor),
    use_cases=Depends(get_use_cases),
) -> TransactionPageResponse:
    result = await use_cases["payment_ledger"].search(
        actor, status=status_filter, owner_id=owner_id, page=page, limit=limit
    )
    return TransactionPageResponse.from_page(result)


@router.get("/transactions/{transaction_id}", response_model=TransactionResponse)
async def get_transaction(
    transaction_id: str,
    actor: Actor = Depends(get_actor),
    use_cases=Depends(get_use_cases),
) -> TransactionResponse:
    transaction = await use_cases["payment_ledger"].get_transaction(transaction_id, actor)
    return TransactionResponse.from_entity(transaction)


@router.get("/payments/statistics", response_model=PaymentStatisticsResponse)
async def payment_statistics(
    actor: Actor = Depends(get_actor),
    use_cases=Depends(get_use_cases),
) -> PaymentStatisticsResponse:
    stats = await use_cases["payment_ledger"].statistics(actor)
    return PaymentStatisticsResponse.from_statistics(stats)
