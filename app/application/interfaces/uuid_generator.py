"""Interface UUIDGenerator - Puerto para generación de identificadores únicos."""

import uuid
from abc import ABC, abstractmethod

from app.domain.value_objects.booking_number import BookingNumber


class UUIDGenerator(ABC):
    """
    Puerto para generación de identificadores únicos.

    Permite inyectar implementaciones fake para testing determinista.
    """

    @abstractmethod
    def generate_uuid(self) -> str:
        """
        Genera un UUID v4 único.

        Returns:
            String con UUID en formato estándar (xxxxxxxx-xxxx-xxxx-xxxx-xxxxxxxxxxxx).
        """
        raise NotImplementedError

    @abstractmethod
    def generate_booking_number(self) -> BookingNumber:
        """
        Genera un número de reserva legible.

        Returns:
            BookingNumber con formato BK-XXXXXXXX.
        """
        raise NotImplementedError

    @abstractmethod
    def generate_transaction_id(self) -> str:
        """Genera el ID de una transacción de pago (TXN-...)."""
        raise NotImplementedError


class RealUUIDGenerator(UUIDGenerator):
    """Implementación real que genera identificadores aleatorios."""

    def generate_uuid(self) -> str:
        """Genera un UUID v4 aleatorio."""
        return str(uuid.uuid4())

    def generate_booking_number(self) -> BookingNumber:
        return BookingNumber.generate()

    def generate_transaction_id(self) -> str:
        return f"TXN-{uuid.uuid4().hex[:16].upper()}"


class FakeUUIDGenerator(UUIDGenerator):
    """
    Implementación fake para testing.

    Genera valores predecibles para pruebas deterministas.
    """

    def __init__(self, prefix: str = "TEST"):
        self._prefix = prefix
        self._uuid_counter = 0
        self._code_counter = 0
        self._transaction_counter = 0

    def generate_uuid(self) -> str:
        """Genera un UUID predecible basado en contador."""
        self._uuid_counter += 1
        hex_value = f"{self._uuid_counter:032x}"
        return f"{hex_value[:8]}-{hex_value[8:12]}-{hex_value[12:16]}-{hex_value[16:20]}-{hex_value[20:]}"

    def generate_booking_number(self) -> BookingNumber:
        """Genera un número de reserva predecible."""
        self._code_counter += 1
        return BookingNumber(f"BK-{self._prefix}{self._code_counter:04d}".upper())

    def generate_transaction_id(self) -> str:
        self._transaction_counter += 1
        return f"TXN-{self._prefix}{self._transaction_counter:04d}".upper()

    def reset(self) -> None:
        """Reinicia todos los contadores."""
        self._uuid_counter = 0
        self._code_counter = 0
        self._transaction_counter = 0
