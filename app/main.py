import logging
import uuid
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from app.api.dependencies import sql_resources
from app.api.routers.health import router as health_router
from app.api.routers.payments import router as payments_router
from app.api.routers.reservations import router as reservations_router
from app.api.routers.worker import router as worker_router
from app.config import get_settings
from app.domain.errors import (
    ActorNotAllowedError,
    AlreadyClaimedError,
    AlreadyFinalError,
    ConcurrentModificationError,
    DomainError,
    InvalidMoneyError,
    InvalidReservationStatusError,
    NotAssignedError,
    PaymentGatewayError,
    ReceiptGenerationError,
    ReceiptNotReadyError,
    ReservationNotFoundError,
    StaleSessionError,
    TransactionNotFoundError,
    ValidationError,
)
from app.infrastructure.db.mysql_engine import create_schema

settings = get_settings()

# Configure structured logging
logging.basicConfig(
    level=settings.log_level.upper(),
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)

DOMAIN_ERROR_STATUS: dict[type[DomainError], int] = {
    ReservationNotFoundError: 404,
    TransactionNotFoundError: 404,
    ActorNotAllowedError: 403,
    StaleSessionError: 409,
    AlreadyFinalError: 409,
    AlreadyClaimedError: 409,
    NotAssignedError: 409,
    ConcurrentModificationError: 409,
    InvalidReservationStatusError: 409,
    ReceiptNotReadyError: 409,
    ValidationError: 422,
    InvalidMoneyError: 422,
    ReceiptGenerationError: 502,
    PaymentGatewayError: 502,
}


def status_for(exc: DomainError) -> int:
    for error_type in type(exc).__mro__:
        if error_type in DOMAIN_ERROR_STATUS:
            return DOMAIN_ERROR_STATUS[error_type]
    return 400


@asynccontextmanager
async def lifespan(app: FastAPI):
    current = get_settings()
    engine = None
    if not current.use_in_memory:
        engine, _ = sql_resources()
        if current.create_schema_on_startup:
            # Initialize DB tables (for dev/demo purposes)
            await create_schema(engine)
    yield
    # Cleanup
    if engine is not None:
        await engine.dispose()

app = FastAPI(
    title="Reservation Lifecycle API",
    version="0.1.0",
    lifespan=lifespan
)


@app.exception_handler(DomainError)
async def domain_exception_handler(request: Request, exc: DomainError):
    """Translate precondition violations into their HTTP status."""
    status_code = status_for(exc)
    log = logger.warning if status_code >= 500 else logger.info
    log(
        "Domain error",
        extra={
            "code": exc.code,
            "path": request.url.path,
            "method": request.method,
            "error": exc.message,
        }
    )
    content = {"detail": exc.message, "code": exc.code}
    if isinstance(exc, AlreadyClaimedError) and exc.holder_driver_id:
        content["holder_driver_id"] = exc.holder_driver_id
    return JSONResponse(status_code=status_code, content=content)


# Global Exception Handler
@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    """
    Global exception handler to prevent stack trace exposure to clients.
    All unhandled exceptions are logged internally and return a generic error message.
    """
    error_id = str(uuid.uuid4())

    logger.error(
        "Unhandled exception occurred",
        exc_info=exc,
        extra={
            "error_id": error_id,
            "path": request.url.path,
            "method": request.method,
            "client_host": request.client.host if request.client else None,
        }
    )

    return JSONResponse(
        status_code=500,
        content={
            "detail": "Internal server error",
            "error_id": error_id,
            "message": "An unexpected error occurred. Please contact support with the error_id if the issue persists."
        }
    )


app.include_router(health_router, tags=["Health"])
app.include_router(reservations_router, prefix="/api/v1", tags=["Reservations"])
app.include_router(payments_router, prefix="/api/v1", tags=["Payments"])
app.include_router(worker_router, prefix="/api/v1", tags=["Worker"])
