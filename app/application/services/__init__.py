"""Servicios de la capa de aplicación."""

from app.application.services.driver_assignment import DriverAssignmentService
from app.application.services.lifecycle_manager import ReservationLifecycleManager
from app.application.services.receipt_issuer import ReceiptIssuer
from app.application.services.receipt_renderer import ReceiptRenderer, ReceiptSnapshot
from app.application.services.retry import retry_on_conflict

__all__ = [
    "ReservationLifecycleManager",
    "DriverAssignmentService",
    "ReceiptIssuer",
    "ReceiptRenderer",
    "ReceiptSnapshot",
    "retry_on_conflict",
]
