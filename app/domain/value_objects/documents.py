"""Value Objects de documentos financieros asociados a la reservación."""

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal


@dataclass(frozen=True)
class CustomerContact:
    """Datos de contacto del cliente, congelados al crear la reservación."""

    full_name: str
    phone: str
    email: str | None = None


@dataclass(frozen=True)
class Receipt:
    """Referencia al recibo emitido. Se asigna a lo sumo una vez."""

    document_ref: str
    receipt_number: str
    issued_at: datetime


@dataclass(frozen=True)
class Refund:
    """Registro del reembolso procesado por el gateway."""

    refund_id: str
    amount: Decimal
    reason: str | None
    refunded_at: datetime
