from datetime import datetime
from decimal import Decimal
from typing import Sequence

from pydantic import BaseModel, ConfigDict

from app.api.schemas.reservations import Money, RefundSummary
from app.application.services.payment_ledger import PaymentStatistics, TransactionPage
from app.domain.entities.payment_transaction import PaymentTransaction
from app.domain.entities.reservation import Reservation


class TransactionResponse(BaseModel):
    model_config = ConfigDict(json_encoders={Decimal: lambda v: format(v, ".2f")})

    id: str
    reservation_id: str
    owner_id: str
    kind: str
    session_id: str
    payment_intent_id: str | None = None
    amount: Money
    currency_code: str
    status: str
    refund_id: str | None = None
    refund_amount: Money | None = None
    refund_reason: str | None = None
    created_at: datetime | None = None
    completed_at: datetime | None = None
    failed_at: datetime | None = None
    refunded_at: datetime | None = None
    cancelled_at: datetime | None = None

    @classmethod
    def from_entity(cls, transaction: PaymentTransaction) -> "TransactionResponse":
        return cls(
            id=transaction.id,
            reservation_id=transaction.reservation_id,
            owner_id=transaction.owner_id,
            kind=transaction.kind.value,
            session_id=transaction.session_id,
            payment_intent_id=transaction.payment_intent_id,
            amount=transaction.amount.amount,
            currency_code=transaction.amount.currency_code,
            status=transaction.status.value,
            refund_id=transaction.refund_id,
            refund_amount=transaction.refund_amount,
            refund_reason=transaction.refund_reason,
            created_at=transaction.created_at,
            completed_at=transaction.completed_at,
            failed_at=transaction.failed_at,
            refunded_at=transaction.refunded_at,
            cancelled_at=transaction.cancelled_at,
        )


class TransactionListResponse(BaseModel):
    items: list[TransactionResponse]
    total: int

    @classmethod
    def from_entities(cls, items: Sequence[PaymentTransaction]) -> "TransactionListResponse":
        return cls(items=[TransactionResponse.from_entity(t) for t in items], total=len(items))


class TransactionPageResponse(BaseModel):
    items: list[TransactionResponse]
    total: int
    page: int
    pages: int

    @classmethod
    def from_page(cls, page: TransactionPage) -> "TransactionPageResponse":
        return cls(
            items=[TransactionResponse.from_entity(t) for t in page.items],
            total=page.total,
            page=page.page,
            pages=page.pages,
        )


class PaymentDetailsResponse(BaseModel):
    model_config = ConfigDict(json_encoders={Decimal: lambda v: format(v, ".2f")})

    reservation_id: str
    payment_status: str
    amount: Money
    currency_code: str
    payment_session_id: str | None = None
    payment_intent_id: str | None = None
    confirmed_at: datetime | None = None
    refund: RefundSummary | None = None
    transactions: list[TransactionResponse]

    @classmethod
    def from_entities(
        cls, reservation: Reservation, transactions: Sequence[PaymentTransaction]
    ) -> "PaymentDetailsResponse":
        refund = None
        if reservation.refund is not None:
            refund = RefundSummary(
                refund_id=reservation.refund.refund_id,
                amount=reservation.refund.amount,
                reason=reservation.refund.reason,
                refunded_at=reservation.refund.refunded_at,
            )
        return cls(
            reservation_id=reservation.id,
            payment_status=reservation.payment_status.value,
            amount=reservation.amount.amount,
            currency_code=reservation.amount.currency_code,
            payment_session_id=reservation.payment_session_id,
            payment_intent_id=reservation.payment_intent_id,
            confirmed_at=reservation.confirmed_at,
            refund=refund,
            transactions=[TransactionResponse.from_entity(t) for t in transactions],
        )


class PaymentStatisticsResponse(BaseModel):
    model_config = ConfigDict(json_encoders={Decimal: lambda v: format(v, ".2f")})

    total_rides: int
    total_tours: int
    paid_rides: int
    paid_tours: int
    revenue: dict[str, Decimal]
    success_rate: Decimal

    @classmethod
    def from_statistics(cls, stats: PaymentStatistics) -> "PaymentStatisticsResponse":
        return cls(
            total_rides=stats.total_rides,
            total_tours=stats.total_tours,
            paid_rides=stats.paid_rides,
            paid_tours=stats.paid_tours,
            revenue=stats.revenue,
            success_rate=stats.success_rate,
        )
