"""DriverAssignmentService - asignación exclusiva de conductores."""

import logging

from app.application.interfaces.reservation_repo import ReservationGuard, ReservationRepo
from app.domain.entities.reservation import Reservation, ReservationStatus
from app.domain.errors import (
    ActorNotAllowedError,
    AlreadyClaimedError,
    AlreadyFinalError,
    ConcurrentModificationError,
    InvalidReservationStatusError,
    ReservationNotFoundError,
    ValidationError,
)
from app.domain.value_objects.actor import Actor, ActorRole

logger = logging.getLogger(__name__)


class DriverAssignmentService:
    """
    Vincula un conductor a una reservación confirmada mediante una única
    escritura condicional. La liberación sólo ocurre a través de ``cancel``.
    """

    def __init__(self, reservation_repo: ReservationRepo) -> None:
        self._reservation_repo = reservation_repo

    async def claim(
        self,
        reservation_id: str,
        driver_id: str,
        actor: Actor | None = None,
        expected_status: ReservationStatus | None = None,
    ) -> Reservation:
        """
        Reclama la reservación para ``driver_id``.

        Raises:
            AlreadyClaimedError: Otro reclamo ya se aplicó (incluye al titular actual).
            AlreadyFinalError: Reservación completada o cancelada.
            InvalidReservationStatusError: Reservación aún no confirmada.
        """
        reservation = await self._reservation_repo.get(reservation_id)
        if reservation is None:
            raise ReservationNotFoundError(reservation_id)
        if expected_status is not None and reservation.status != expected_status:
            raise ConcurrentModificationError(
                reservation_id, ReservationStatus(expected_status).value, reservation.status.value
            )
        if reservation.is_terminal:
            raise AlreadyFinalError(reservation_id, reservation.status.value, "reclamar")

        if not driver_id or not driver_id.strip():
            raise ValidationError("driver_id", "es requerido")
        if actor is not None and not actor.is_operator:
            if actor.role != ActorRole.DRIVER or actor.actor_id != driver_id:
                raise ActorNotAllowedError(str(actor), "reclamar para otro conductor")

        if reservation.status == ReservationStatus.ASSIGNED:
            raise AlreadyClaimedError(reservation_id, reservation.assigned_driver_id)
        if reservation.status != ReservationStatus.CONFIRMED:
            raise InvalidReservationStatusError(
                reservation.status.value, ReservationStatus.CONFIRMED.value, "reclamar"
            )

        try:
            updated = await self._reservation_repo.update_conditional(
                reservation_id,
                ReservationGuard(status=ReservationStatus.CONFIRMED, driver_must_be_empty=True),
                {"assigned_driver_id": driver_id, "status": ReservationStatus.ASSIGNED},
            )
        except ConcurrentModificationError as exc:
            current = await self._reservation_repo.get(reservation_id)
            holder = current.assigned_driver_id if current is not None else None
            logger.info(
                "Driver claim lost",
                extra={
                    "reservation_id": reservation_id,
                    "driver_id": driver_id,
                    "holder_driver_id": holder,
                },
            )
            raise AlreadyClaimedError(reservation_id, holder) from exc

        logger.info(
            "Driver claimed reservation",
            extra={
                "reservation_id": reservation_id,
                "driver_id": driver_id,
                "lock_version": updated.lock_version,
            },
        )
        return updated
