"""
Tests de los reintentos: conflictos de escritura condicional (lado del llamador)
y deadlocks de base de datos (lado del repositorio).
"""

from unittest.mock import AsyncMock, patch

import pytest
from sqlalchemy.exc import OperationalError

from app.application.services.retry import retry_on_conflict
from app.domain.errors import ConcurrentModificationError, StaleSessionError
from app.infrastructure.db.retry import is_deadlock_error, retry_on_deadlock


def _conflict() -> ConcurrentModificationError:
    return ConcurrentModificationError("res-1", "pending", "confirmed")


def _deadlock() -> OperationalError:
    return OperationalError(
        "UPDATE reservations",
        {},
        "(1213, 'Deadlock found when trying to get lock')",
        connection_invalidated=False,
    )


class TestRetryOnConflict:
    @pytest.mark.asyncio
    async def test_exito_sin_reintento(self):
        func = AsyncMock(return_value="ok")
        assert await retry_on_conflict(func) == "ok"
        assert func.call_count == 1

    @pytest.mark.asyncio
    async def test_reintenta_y_recupera(self):
        func = AsyncMock(side_effect=[_conflict(), _conflict(), "ok"])
        with patch("asyncio.sleep", new_callable=AsyncMock) as sleep:
            assert await retry_on_conflict(func, max_attempts=3, base_delay=0.1) == "ok"
        assert func.call_count == 3
        delays = [call.args[0] for call in sleep.call_args_list]
        assert delays == [0.1, 0.2]

    @pytest.mark.asyncio
    async def test_se_rinde_tras_max_intentos(self):
        func = AsyncMock(side_effect=_conflict())
        with patch("asyncio.sleep", new_callable=AsyncMock):
            with pytest.raises(ConcurrentModificationError):
                await retry_on_conflict(func, max_attempts=2)
        assert func.call_count == 2

    @pytest.mark.asyncio
    async def test_otros_errores_no_se_reintentan(self):
        func = AsyncMock(side_effect=StaleSessionError("res-1", "cs_old", "cs_new"))
        with pytest.raises(StaleSessionError):
            await retry_on_conflict(func)
        assert func.call_count == 1

    @pytest.mark.asyncio
    async def test_max_attempts_invalido(self):
        with pytest.raises(RuntimeError):
            await retry_on_conflict(AsyncMock(), max_attempts=0)


class TestDeadlockDetection:
    def test_detecta_deadlock_mysql(self):
        assert is_deadlock_error(_deadlock())

    def test_detecta_lock_wait_timeout(self):
        error = OperationalError(
            "UPDATE reservations", {}, "(1205, 'Lock wait timeout exceeded')",
            connection_invalidated=False,
        )
        assert is_deadlock_error(error)

    def test_detecta_sqlite_locked(self):
        error = OperationalError("UPDATE", {}, "database is locked", connection_invalidated=False)
        assert is_deadlock_error(error)

    def test_ignora_otros_errores(self):
        assert not is_deadlock_error(ValueError("1213"))
        assert not is_deadlock_error(
            OperationalError("SELECT", {}, "(1146, \"Table doesn't exist\")", connection_invalidated=False)
        )


class TestRetryOnDeadlock:
    @pytest.mark.asyncio
    async def test_reintenta_deadlock(self):
        func = AsyncMock(side_effect=[_deadlock(), "ok"])
        with patch("asyncio.sleep", new_callable=AsyncMock):
            assert await retry_on_deadlock(func) == "ok"
        assert func.call_count == 2

    @pytest.mark.asyncio
    async def test_conflicto_no_es_deadlock(self):
        func = AsyncMock(side_effect=_conflict())
        with pytest.raises(ConcurrentModificationError):
            await retry_on_deadlock(func)
        assert func.call_count == 1

    @pytest.mark.asyncio
    async def test_deadlock_persistente(self):
        func = AsyncMock(side_effect=_deadlock())
        with patch("asyncio.sleep", new_callable=AsyncMock):
            with pytest.raises(OperationalError):
                await retry_on_deadlock(func, max_attempts=3)
        assert func.call_count == 3
