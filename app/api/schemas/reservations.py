from datetime import date, datetime
from decimal import Decimal
from typing import Annotated, Any, Literal, Union

from pydantic import BaseModel, ConfigDict, EmailStr, Field, condecimal, constr

from app.domain.entities.reservation import Reservation
from app.domain.value_objects.documents import CustomerContact
from app.domain.value_objects.schedule import RideSchedule, TourSchedule

Money = condecimal(max_digits=12, decimal_places=2)
NonEmpty = constr(strip_whitespace=True, min_length=1, max_length=255)


class ContactPayload(BaseModel):
    model_config = ConfigDict(extra="forbid")

    full_name: NonEmpty
    phone: constr(strip_whitespace=True, min_length=5, max_length=50)
    email: EmailStr | None = None

    def to_domain(self) -> CustomerContact:
        return CustomerContact(full_name=self.full_name, phone=self.phone, email=self.email)


class RideSchedulePayload(BaseModel):
    model_config = ConfigDict(extra="forbid")

    kind: Literal["ride"] = "ride"
    date: date
    time: NonEmpty
    passengers: int = Field(ge=1, le=50)
    car_name: NonEmpty
    pickup_location: NonEmpty
    drop_location: NonEmpty

    def to_domain(self) -> RideSchedule:
        return RideSchedule(
            date=self.date,
            time=self.time,
            passengers=self.passengers,
            car_name=self.car_name,
            pickup_location=self.pickup_location,
            drop_location=self.drop_location,
        )


class TourSchedulePayload(BaseModel):
    model_config = ConfigDict(extra="forbid")

    kind: Literal["tour"] = "tour"
    date: date
    time: NonEmpty
    passengers: int = Field(ge=1, le=50)
    tour_type: NonEmpty
    message: str | None = Field(default=None, max_length=2000)

    def to_domain(self) -> TourSchedule:
        return TourSchedule(
            date=self.date,
            time=self.time,
            passengers=self.passengers,
            tour_type=self.tour_type,
            message=self.message,
        )


SchedulePayload = Annotated[
    Union[RideSchedulePayload, TourSchedulePayload], Field(discriminator="kind")
]


class CreateReservationRequest(BaseModel):
    model_config = ConfigDict(extra="forbid")

    owner_id: str | None = None
    schedule: SchedulePayload
    amount: Money = Field(gt=0)
    currency_code: constr(strip_whitespace=True, min_length=3, max_length=3) | None = None
    contact: ContactPayload


class UpdateScheduleRequest(BaseModel):
    model_config = ConfigDict(extra="forbid")

    schedule: SchedulePayload


class CancelReservationRequest(BaseModel):
    model_config = ConfigDict(extra="forbid")

    reason: str | None = Field(default=None, max_length=500)


class RefundReservationRequest(BaseModel):
    model_config = ConfigDict(extra="forbid")

    reason: str | None = Field(default=None, max_length=500)


class ClaimReservationRequest(BaseModel):
    model_config = ConfigDict(extra="forbid")

    driver_id: str | None = None


class ReceiptSummary(BaseModel):
    receipt_number: str
    document_ref: str
    issued_at: datetime


class RefundSummary(BaseModel):
    model_config = ConfigDict(json_encoders={Decimal: lambda v: format(v, ".2f")})

    refund_id: str
    amount: Money
    reason: str | None = None
    refunded_at: datetime


class ReservationResponse(BaseModel):
    model_config = ConfigDict(json_encoders={Decimal: lambda v: format(v, ".2f")})

    id: str
    booking_number: str
    owner_id: str
    kind: str
    schedule: dict[str, Any]
    amount: Money
    currency_code: str
    contact: dict[str, Any]
    status: str
    payment_status: str
    payment_session_id: str | None = None
    assigned_driver_id: str | None = None
    receipt: ReceiptSummary | None = None
    refund: RefundSummary | None = None
    confirmed_at: datetime | None = None
    completed_at: datetime | None = None
    cancelled_at: datetime | None = None
    cancel_reason: str | None = None
    lock_version: int
    created_at: datetime | None = None
    updated_at: datetime | None = None

    @classmethod
    def from_entity(cls, reservation: Reservation) -> "ReservationResponse":
        schedule = {"kind": reservation.schedule.kind.value, **reservation.schedule.__dict__}
        receipt = None
        if reservation.receipt is not None:
            receipt = ReceiptSummary(
                receipt_number=reservation.receipt.receipt_number,
                document_ref=reservation.receipt.document_ref,
                issued_at=reservation.receipt.issued_at,
            )
        refund = None
        if reservation.refund is not None:
            refund = RefundSummary(
                refund_id=reservation.refund.refund_id,
                amount=reservation.refund.amount,
                reason=reservation.refund.reason,
                refunded_at=reservation.refund.refunded_at,
            )
        return cls(
            id=reservation.id,
            booking_number=str(reservation.booking_number),
            owner_id=reservation.owner_id,
            kind=reservation.kind.value,
            schedule=schedule,
            amount=reservation.amount.amount,
            currency_code=reservation.amount.currency_code,
            contact={
                "full_name": reservation.contact.full_name,
                "phone": reservation.contact.phone,
                "email": reservation.contact.email,
            },
            status=reservation.status.value,
            payment_status=reservation.payment_status.value,
            payment_session_id=reservation.payment_session_id,
            assigned_driver_id=reservation.assigned_driver_id,
            receipt=receipt,
            refund=refund,
            confirmed_at=reservation.confirmed_at,
            completed_at=reservation.completed_at,
            cancelled_at=reservation.cancelled_at,
            cancel_reason=reservation.cancel_reason,
            lock_version=reservation.lock_version,
            created_at=reservation.created_at,
            updated_at=reservation.updated_at,
        )


class ReservationListResponse(BaseModel):
    items: list[ReservationResponse]
    total: int


class PaymentSessionResponse(BaseModel):
    reservation_id: str
    session_id: str
    redirect_url: str
    expires_at: int | None = None


class WebhookAckResponse(BaseModel):
    received: bool = True
    status: str
    reservation_id: str | None = None


class WorkerRunResponse(BaseModel):
    processed: int
    succeeded: int
    failed: int
    errors: list[str] = Field(default_factory=list)


class StripeWebhookEnvelope(BaseModel):
    model_config = ConfigDict(extra="allow")

    id: str | None = None
    type: str
    data: dict[str, Any] = Field(default_factory=dict)
    livemode: bool | None = None
    created: int | None = None
