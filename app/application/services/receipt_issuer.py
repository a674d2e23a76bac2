"""Emisión idempotente de recibos para reservaciones pagadas."""

import logging

from app.application.interfaces.clock import Clock
from app.application.interfaces.document_store import DocumentStore
from app.application.interfaces.reservation_repo import ReservationGuard, ReservationRepo
from app.application.services.receipt_renderer import (
    RECEIPT_CONTENT_TYPE,
    ReceiptRenderer,
    ReceiptSnapshot,
)
from app.domain.entities.reservation import PaymentStatus, Reservation, ReservationStatus
from app.domain.errors import (
    ActorNotAllowedError,
    AlreadyFinalError,
    ConcurrentModificationError,
    ReceiptGenerationError,
    ReceiptNotReadyError,
    ReservationNotFoundError,
)
from app.domain.value_objects.actor import Actor
from app.domain.value_objects.documents import Receipt

logger = logging.getLogger(__name__)


def receipt_key(reservation_id: str) -> str:
    return f"receipts/{reservation_id}.pdf"


class ReceiptIssuer:
    """
    Produce el documento del recibo y lo registra en la reservación a lo sumo una vez.

    La clave del documento es determinista, por lo que reintentar después de un fallo
    sobrescribe el mismo documento en lugar de crear otro.
    """

    def __init__(
        self,
        reservation_repo: ReservationRepo,
        document_store: DocumentStore,
        renderer: ReceiptRenderer,
        clock: Clock,
    ) -> None:
        self._reservation_repo = reservation_repo
        self._document_store = document_store
        self._renderer = renderer
        self._clock = clock

    async def issue(self, reservation_id: str) -> Reservation:
        """
        Emite el recibo de una reservación pagada; no-op si ya existe.

        Raises:
            AlreadyFinalError: La reservación está cancelada.
            ReceiptNotReadyError: El pago no está en ``paid``.
            ReceiptGenerationError: Falló el render o el almacenamiento.
        """
        reservation = await self._reservation_repo.get(reservation_id)
        if reservation is None:
            raise ReservationNotFoundError(reservation_id)
        if reservation.status == ReservationStatus.CANCELLED:
            raise AlreadyFinalError(reservation_id, reservation.status.value, "emitir recibo")
        if reservation.receipt is not None:
            return reservation
        if reservation.payment_status != PaymentStatus.PAID:
            raise ReceiptNotReadyError(reservation_id, reservation.payment_status.value)

        issued_at = self._clock.now()
        snapshot = ReceiptSnapshot.from_reservation(reservation, issued_at)
        try:
            pdf_bytes = self._renderer.render(snapshot)
            document_ref = await self._document_store.store(
                receipt_key(reservation_id), pdf_bytes, RECEIPT_CONTENT_TYPE
            )
        except Exception as exc:
            logger.error(
                "Receipt generation failed",
                extra={"reservation_id": reservation_id, "error": str(exc)},
                exc_info=True,
            )
            raise ReceiptGenerationError(reservation_id, str(exc)) from exc

        receipt = Receipt(
            document_ref=document_ref,
            receipt_number=snapshot.receipt_number,
            issued_at=issued_at,
        )
        try:
            updated = await self._reservation_repo.update_conditional(
                reservation_id,
                ReservationGuard(
                    status=reservation.status,
                    payment_status=PaymentStatus.PAID,
                    receipt_must_be_empty=True,
                ),
                {"receipt": receipt},
            )
        except ConcurrentModificationError as exc:
            current = await self._reservation_repo.get(reservation_id)
            if current is not None and current.receipt is not None:
                logger.info(
                    "Receipt already recorded by a concurrent issuer",
                    extra={"reservation_id": reservation_id},
                )
                return current
            if current is not None and current.status == ReservationStatus.CANCELLED:
                raise AlreadyFinalError(
                    reservation_id, current.status.value, "emitir recibo"
                ) from exc
            raise

        logger.info(
            "Receipt issued",
            extra={
                "reservation_id": reservation_id,
                "receipt_number": receipt.receipt_number,
                "document_ref": document_ref,
            },
        )
        return updated

    async def read_document(
        self, reservation_id: str, actor: Actor | None = None
    ) -> tuple[Reservation, bytes]:
        """Retorna la reservación y el contenido del PDF emitido."""
        reservation = await self._reservation_repo.get(reservation_id)
        if reservation is None:
            raise ReservationNotFoundError(reservation_id)
        if actor is not None and not reservation.is_visible_to(actor):
            raise ActorNotAllowedError(str(actor), "descargar recibo")
        if reservation.receipt is None:
            raise ReceiptNotReadyError(reservation_id, reservation.payment_status.value)
        data = await self._document_store.read(reservation.receipt.document_ref)
        return reservation, data
