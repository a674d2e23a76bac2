"""Value Objects de agenda: una variante por tipo de reservación."""

from dataclasses import dataclass
from datetime import date
from enum import Enum
from typing import Any, ClassVar, Union

from app.domain.errors import ValidationError


class ReservationKind(str, Enum):
    """Tipos de reservación soportados."""

    RIDE = "ride"
    TOUR = "tour"


def _validate_common(travel_date: date, time_of_day: str, passengers: int) -> None:
    if not isinstance(travel_date, date):
        raise ValidationError("date", "debe ser una fecha")
    if not time_of_day or not time_of_day.strip():
        raise ValidationError("time", "es requerido")
    if passengers < 1:
        raise ValidationError("passengers", "debe ser al menos 1")


@dataclass(frozen=True)
class RideSchedule:
    """Agenda de un viaje en vehículo (punto a punto)."""

    kind: ClassVar[ReservationKind] = ReservationKind.RIDE

    date: date
    time: str
    passengers: int
    car_name: str
    pickup_location: str
    drop_location: str

    def __post_init__(self) -> None:
        _validate_common(self.date, self.time, self.passengers)
        for field_name in ("car_name", "pickup_location", "drop_location"):
            if not getattr(self, field_name).strip():
                raise ValidationError(field_name, "es requerido")

    def summary_lines(self) -> list[str]:
        return [
            f"Vehicle: {self.car_name}",
            f"Pickup: {self.pickup_location}",
            f"Drop-off: {self.drop_location}",
        ]


@dataclass(frozen=True)
class TourSchedule:
    """Agenda de un tour guiado."""

    kind: ClassVar[ReservationKind] = ReservationKind.TOUR

    date: date
    time: str
    passengers: int
    tour_type: str
    message: str | None = None

    def __post_init__(self) -> None:
        _validate_common(self.date, self.time, self.passengers)
        if not self.tour_type.strip():
            raise ValidationError("tour_type", "es requerido")

    def summary_lines(self) -> list[str]:
        lines = [f"Tour: {self.tour_type}"]
        if self.message:
            lines.append(f"Notes: {self.message}")
        return lines


Schedule = Union[RideSchedule, TourSchedule]

_SCHEDULE_TYPES: dict[ReservationKind, type] = {
    ReservationKind.RIDE: RideSchedule,
    ReservationKind.TOUR: TourSchedule,
}


def schedule_to_dict(schedule: Schedule) -> dict[str, Any]:
    """Serializa la agenda con su discriminador ``kind``."""
    data: dict[str, Any] = {"kind": schedule.kind.value}
    for key, value in schedule.__dict__.items():
        data[key] = value.isoformat() if isinstance(value, date) else value
    return data


def schedule_from_dict(data: dict[str, Any]) -> Schedule:
    """Reconstruye la agenda a partir del discriminador ``kind``."""
    values = dict(data)
    kind = ReservationKind(values.pop("kind"))
    if isinstance(values.get("date"), str):
        values["date"] = date.fromisoformat(values["date"])
    return _SCHEDULE_TYPES[kind](**values)
