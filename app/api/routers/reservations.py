from fastapi import APIRouter, Depends, Response, status

from app.api.dependencies import get_actor, get_expected_status, get_use_cases
from app.api.schemas.reservations import (
    CancelReservationRequest,
    ClaimReservationRequest,
    CreateReservationRequest,
    PaymentSessionResponse,
    RefundReservationRequest,
    ReservationListResponse,
    ReservationResponse,
    UpdateScheduleRequest,
)
from app.config import Settings, get_settings
from app.domain.entities.reservation import ReservationStatus
from app.domain.errors import ActorNotAllowedError, ValidationError
from app.domain.value_objects.actor import Actor, ActorRole
from app.domain.value_objects.money import Money

router = APIRouter()


@router.post(
    "/reservations",
    response_model=ReservationResponse,
    status_code=status.HTTP_201_CREATED,
)
async def create_reservation(
    payload: CreateReservationRequest,
    actor: Actor = Depends(get_actor),
    settings: Settings = Depends(get_settings),
    use_cases=Depends(get_use_cases),
) -> ReservationResponse:
    if actor.role == ActorRole.CUSTOMER:
        if payload.owner_id and payload.owner_id != actor.actor_id:
            raise ActorNotAllowedError(str(actor), "reservar a nombre de otro cliente")
        owner_id = actor.actor_id
    elif actor.is_operator:
        if not payload.owner_id:
            raise ValidationError("owner_id", "es requerido cuando reserva un operador")
        owner_id = payload.owner_id
    else:
        raise ActorNotAllowedError(str(actor), "crear reservaciones")

    schedule = payload.schedule.to_domain()
    reservation = await use_cases["lifecycle"].create_reservation(
        owner_id=owner_id,
        kind=schedule.kind,
        schedule=schedule,
        amount=Money(
            amount=payload.amount,
            currency_code=payload.currency_code or settings.currency_code,
        ),
        contact=payload.contact.to_domain(),
    )
    return ReservationResponse.from_entity(reservation)


@router.get("/reservations/{reservation_id}", response_model=ReservationResponse)
async def get_reservation(
    reservation_id: str,
    actor: Actor = Depends(get_actor),
    use_cases=Depends(get_use_cases),
) -> ReservationResponse:
    reservation = await use_cases["lifecycle"].get_reservation(reservation_id, actor)
    return ReservationResponse.from_entity(reservation)


@router.patch("/reservations/{reservation_id}/schedule", response_model=ReservationResponse)
async def update_schedule(
    reservation_id: str,
    payload: UpdateScheduleRequest,
    actor: Actor = Depends(get_actor),
    expected_status: ReservationStatus | None = Depends(get_expected_status),
    use_cases=Depends(get_use_cases),
) -> ReservationResponse:
    reservation = await use_cases["lifecycle"].update_schedule(
        reservation_id,
        actor,
        payload.schedule.to_domain(),
        expected_status=expected_status,
    )
    return ReservationResponse.from_entity(reservation)


@router.post(
    "/reservations/{reservation_id}/payment-session",
    response_model=PaymentSessionResponse,
    status_code=status.HTTP_201_CREATED,
)
async def open_payment_session(
    reservation_id: str,
    actor: Actor = Depends(get_actor),
    expected_status: ReservationStatus | None = Depends(get_expected_status),
    use_cases=Depends(get_use_cases),
) -> PaymentSessionResponse:
    session = await use_cases["lifecycle"].open_payment_session(
        reservation_id, actor, expected_status=expected_status
    )
    return PaymentSessionResponse(
        reservation_id=reservation_id,
        session_id=session.session_id,
        redirect_url=session.redirect_url,
        expires_at=session.expires_at,
    )


@router.post("/reservations/{reservation_id}/cancel", response_model=ReservationResponse)
async def cancel_reservation(
    reservation_id: str,
    payload: CancelReservationRequest | None = None,
    actor: Actor = Depends(get_actor),
    expected_status: ReservationStatus | None = Depends(get_expected_status),
    use_cases=Depends(get_use_cases),
) -> ReservationResponse:
    reservation = await use_cases["lifecycle"].cancel(
        reservation_id,
        actor,
        reason=payload.reason if payload else None,
        expected_status=expected_status,
    )
    return ReservationResponse.from_entity(reservation)


@router.post("/reservations/{reservation_id}/claim", response_model=ReservationResponse)
async def claim_reservation(
    reservation_id: str,
    payload: ClaimReservationRequest | None = None,
    actor: Actor = Depends(get_actor),
    expected_status: ReservationStatus | None = Depends(get_expected_status),
    use_cases=Depends(get_use_cases),
) -> ReservationResponse:
    driver_id = payload.driver_id if payload else None
    if not driver_id:
        if actor.role != ActorRole.DRIVER:
            raise ValidationError("driver_id", "es requerido cuando reclama un operador")
        driver_id = actor.actor_id
    reservation = await use_cases["driver_assignment"].claim(
        reservation_id, driver_id, actor=actor, expected_status=expected_status
    )
    return ReservationResponse.from_entity(reservation)


@router.post("/reservations/{reservation_id}/complete", response_model=ReservationResponse)
async def complete_reservation(
    reservation_id: str,
    actor: Actor = Depends(get_actor),
    expected_status: ReservationStatus | None = Depends(get_expected_status),
    use_cases=Depends(get_use_cases),
) -> ReservationResponse:
    reservation = await use_cases["lifecycle"].complete(
        reservation_id, actor, expected_status=expected_status
    )
    return ReservationResponse.from_entity(reservation)


@router.post("/reservations/{reservation_id}/refund", response_model=ReservationResponse)
async def refund_reservation(
    reservation_id: str,
    payload: RefundReservationRequest | None = None,
    actor: Actor = Depends(get_actor),
    expected_status: ReservationStatus | None = Depends(get_expected_status),
    use_cases=Depends(get_use_cases),
) -> ReservationResponse:
    reservation = await use_cases["lifecycle"].refund(
        reservation_id,
        actor,
        reason=payload.reason if payload else None,
        expected_status=expected_status,
    )
    return ReservationResponse.from_entity(reservation)


@router.post("/reservations/{reservation_id}/receipt", response_model=ReservationResponse)
async def issue_receipt(
    reservation_id: str,
    actor: Actor = Depends(get_actor),
    use_cases=Depends(get_use_cases),
) -> ReservationResponse:
    await use_cases["lifecycle"].get_reservation(reservation_id, actor)
    reservation = await use_cases["receipt_issuer"].issue(reservation_id)
    return ReservationResponse.from_entity(reservation)


@router.get(
    "/reservations/{reservation_id}/receipt",
    response_class=Response,
    responses={200: {"content": {"application/pdf": {}}}},
)
async def download_receipt(
    reservation_id: str,
    actor: Actor = Depends(get_actor),
    use_cases=Depends(get_use_cases),
) -> Response:
    reservation, pdf_bytes = await use_cases["receipt_issuer"].read_document(reservation_id, actor)
    filename = f"{reservation.receipt.receipt_number}.pdf"
    return Response(
        content=pdf_bytes,
        media_type="application/pdf",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


@router.get("/customers/{owner_id}/reservations", response_model=ReservationListResponse)
async def list_customer_reservations(
    owner_id: str,
    actor: Actor = Depends(get_actor),
    use_cases=Depends(get_use_cases),
) -> ReservationListResponse:
    items = await use_cases["lifecycle"].list_for_owner(owner_id, actor)
    return ReservationListResponse(
        items=[ReservationResponse.from_entity(r) for r in items], total=len(items)
    )


@router.get("/drivers/{driver_id}/reservations", response_model=ReservationListResponse)
async def list_driver_reservations(
    driver_id: str,
    actor: Actor = Depends(get_actor),
    use_cases=Depends(get_use_cases),
) -> ReservationListResponse:
    items = await use_cases["lifecycle"].list_for_driver(driver_id, actor)
    return ReservationListResponse(
        items=[ReservationResponse.from_entity(r) for r in items], total=len(items)
    )
