"""Value Object BookingNumber - número legible de la reservación."""

import secrets
import string
from dataclasses import dataclass


@dataclass(frozen=True)
class BookingNumber:
    """
    Value Object inmutable con el número de reserva que ve el cliente.

    Formato: prefijo ``BK-`` + 8 caracteres alfanuméricos en mayúsculas (ej: BK-A1B2C3D4).
    El identificador interno de la reservación es un UUID opaco; este número sólo
    se usa en recibos y pantallas.
    """

    value: str

    PREFIX = "BK-"
    CODE_LENGTH = 8
    ALLOWED_CHARS = string.ascii_uppercase + string.digits

    def __post_init__(self) -> None:
        if not self.value:
            raise ValueError("booking_number no puede estar vacío")

        if len(self.value) > 50:
            raise ValueError(f"booking_number excede 50 caracteres: {len(self.value)}")

    def __str__(self) -> str:
        return self.value

    @property
    def receipt_number(self) -> str:
        """Número de recibo derivado, estable para la misma reservación."""
        return f"RCPT-{self.value.removeprefix(self.PREFIX)}"

    @classmethod
    def generate(cls) -> "BookingNumber":
        """Genera un nuevo número de reserva aleatorio."""
        code = "".join(secrets.choice(cls.ALLOWED_CHARS) for _ in range(cls.CODE_LENGTH))
        return cls(value=f"{cls.PREFIX}{code}")

    @classmethod
    def from_string(cls, value: str) -> "BookingNumber":
        """Crea un BookingNumber desde un string existente."""
        return cls(value=value.upper().strip())
