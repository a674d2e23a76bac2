"""Puerto de tiempo usado para sellar confirmaciones, cancelaciones y recibos."""

from abc import ABC, abstractmethod
from datetime import datetime, timedelta, timezone


class Clock(ABC):
    """Fuente de la hora actual para las marcas de la reservación."""

    @abstractmethod
    def now(self) -> datetime:
        """Hora actual, siempre timezone-aware en UTC."""
        raise NotImplementedError


class SystemClock(Clock):
    def now(self) -> datetime:
        return datetime.now(timezone.utc)


class FakeClock(Clock):
    """
    Reloj detenido para tests.

    Las marcas ``created_at``/``updated_at`` de los repositorios sólo cambian
    cuando el test llama a ``advance``.
    """

    def __init__(self, start: datetime):
        if start.tzinfo is None:
            raise ValueError("FakeClock requiere un datetime con timezone")
        self._current = start

    def now(self) -> datetime:
        return self._current

    def advance(self, minutes: int = 0, hours: int = 0) -> datetime:
        self._current += timedelta(minutes=minutes, hours=hours)
        return self._current
