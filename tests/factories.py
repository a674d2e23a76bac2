"""Datos de prueba compartidos por los tests unitarios, de integración y de API."""

from datetime import date, datetime, timezone

from app.domain.value_objects.documents import CustomerContact
from app.domain.value_objects.schedule import RideSchedule, TourSchedule

FIXED_NOW = datetime(2026, 3, 1, 9, 0, tzinfo=timezone.utc)

CUSTOMER_ID = "customer-1"
OTHER_CUSTOMER_ID = "customer-2"
DRIVER_A = "driver-a"
DRIVER_B = "driver-b"


def ride_schedule(**overrides) -> RideSchedule:
    values = {
        "date": date(2026, 3, 10),
        "time": "10:30",
        "passengers": 2,
        "car_name": "Toyota Corolla",
        "pickup_location": "Airport Terminal 1",
        "drop_location": "Hotel Pearl",
    }
    values.update(overrides)
    return RideSchedule(**values)


def tour_schedule(**overrides) -> TourSchedule:
    values = {
        "date": date(2026, 3, 12),
        "time": "08:00",
        "passengers": 4,
        "tour_type": "Old City Walk",
        "message": "Vegetarian lunch",
    }
    values.update(overrides)
    return TourSchedule(**values)


def contact() -> CustomerContact:
    return CustomerContact(full_name="Jane Roe", phone="+15551234567", email="jane@example.com")


def ride_payload(**overrides) -> dict:
    """Payload JSON de creación de un viaje, tal como lo envía el frontend."""
    payload = {
        "schedule": {
            "kind": "ride",
            "date": "2026-03-10",
            "time": "10:30",
            "passengers": 2,
            "car_name": "Toyota Corolla",
            "pickup_location": "Airport Terminal 1",
            "drop_location": "Hotel Pearl",
        },
        "amount": "1500.00",
        "contact": {
            "full_name": "Jane Roe",
            "phone": "+15551234567",
            "email": "jane@example.com",
        },
    }
    payload.update(overrides)
    return payload
