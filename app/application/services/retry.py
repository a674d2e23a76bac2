"""
Reintento del lado del llamador ante escrituras condicionales rechazadas.

El llamador pasa una función que vuelve a leer la reservación y decide de nuevo;
nunca se repite una escritura a ciegas.
"""

import asyncio
import logging
from typing import Awaitable, Callable, TypeVar

from app.domain.errors import ConcurrentModificationError

logger = logging.getLogger(__name__)

T = TypeVar("T")


async def retry_on_conflict(
    func: Callable[[], Awaitable[T]],
    max_attempts: int = 3,
    base_delay: float = 0.05,
) -> T:
    """
    Ejecuta ``func`` reintentando si falla con ConcurrentModificationError.

    Usa backoff exponencial: base_delay * (2 ** attempt)

    Args:
        func: Función async sin argumentos que relee y reintenta la operación.
        max_attempts: Número máximo de intentos (default: 3).
        base_delay: Retraso base en segundos (default: 0.05).

    Raises:
        ConcurrentModificationError: Si el conflicto persiste tras todos los intentos.
        Cualquier otro error se propaga de inmediato.
    """
    for attempt in range(max_attempts):
        try:
            return await func()
        except ConcurrentModificationError as exc:
            if attempt >= max_attempts - 1:
                logger.error(
                    "Conflict persists after max retries",
                    extra={"attempts": max_attempts, "error": exc.message},
                )
                raise
            delay = base_delay * (2 ** attempt)
            logger.warning(
                "Concurrent modification detected, retrying",
                extra={
                    "attempt": attempt + 1,
                    "max_attempts": max_attempts,
                    "retry_delay": delay,
                    "error": exc.message,
                },
            )
            await asyncio.sleep(delay)
    raise RuntimeError("retry_on_conflict requires max_attempts >= 1")
