"""Renderizado del recibo en PDF a partir de un snapshot inmutable de la reservación."""

from __future__ import annotations

import io
from dataclasses import dataclass
from datetime import datetime

from app.domain.entities.reservation import Reservation
from app.domain.value_objects.documents import CustomerContact
from app.domain.value_objects.money import Money
from app.domain.value_objects.schedule import ReservationKind, Schedule

RECEIPT_CONTENT_TYPE = "application/pdf"


@dataclass(frozen=True)
class ReceiptSnapshot:
    """Datos congelados que aparecen en el recibo."""

    reservation_id: str
    booking_number: str
    receipt_number: str
    kind: ReservationKind
    schedule: Schedule
    amount: Money
    contact: CustomerContact
    payment_reference: str | None
    issued_at: datetime

    @classmethod
    def from_reservation(cls, reservation: Reservation, issued_at: datetime) -> "ReceiptSnapshot":
        return cls(
            reservation_id=reservation.id,
            booking_number=str(reservation.booking_number),
            receipt_number=reservation.booking_number.receipt_number,
            kind=reservation.kind,
            schedule=reservation.schedule,
            amount=reservation.amount,
            contact=reservation.contact,
            payment_reference=reservation.payment_intent_id or reservation.payment_session_id,
            issued_at=issued_at,
        )


def _escape_pdf_text(value: str) -> str:
    return value.replace("\\", "\\\\").replace("(", "\\(").replace(")", "\\)")


def _build_pdf(lines: list[str]) -> bytes:
    content_lines = ["BT", "/F1 12 Tf", "72 750 Td", "14 TL"]
    for line in lines:
        content_lines.append(f"({_escape_pdf_text(line)}) Tj")
        content_lines.append("T*")
    content_lines.append("ET")
    stream_bytes = "\n".join(content_lines).encode("latin-1", "replace")

    buffer = io.BytesIO()
    buffer.write(b"%PDF-1.4\n%\xe2\xe3\xcf\xd3\n")
    offsets: list[int] = []

    def _write_obj(payload: bytes) -> None:
        offsets.append(buffer.tell())
        buffer.write(f"{len(offsets)} 0 obj\n".encode("ascii"))
        buffer.write(payload)
        buffer.write(b"\nendobj\n")

    _write_obj(b"<< /Type /Catalog /Pages 2 0 R >>")
    _write_obj(b"<< /Type /Pages /Kids [3 0 R] /Count 1 >>")
    _write_obj(
        b"<< /Type /Page /Parent 2 0 R /MediaBox [0 0 612 792] "
        b"/Contents 4 0 R /Resources << /Font << /F1 5 0 R >> >> >>"
    )
    header = f"<< /Length {len(stream_bytes)} >>\nstream\n".encode("ascii")
    _write_obj(header + stream_bytes + b"\nendstream")
    _write_obj(b"<< /Type /Font /Subtype /Type1 /BaseFont /Helvetica >>")

    xref_offset = buffer.tell()
    buffer.write(f"xref\n0 {len(offsets) + 1}\n".encode("ascii"))
    buffer.write(b"0000000000 65535 f \n")
    for off in offsets:
        buffer.write(f"{off:010} 00000 n \n".encode("ascii"))
    buffer.write(b"trailer\n")
    buffer.write(f"<< /Size {len(offsets) + 1} /Root 1 0 R >>\n".encode("ascii"))
    buffer.write(b"startxref\n")
    buffer.write(f"{xref_offset}\n".encode("ascii"))
    buffer.write(b"%%EOF")
    return buffer.getvalue()


class ReceiptRenderer:
    """Genera el PDF de una página con el resumen de la reservación pagada."""

    def __init__(self, title: str = "Payment Receipt", footer: str | None = None) -> None:
        self._title = title
        self._footer = footer

    def render_lines(self, snapshot: ReceiptSnapshot) -> list[str]:
        schedule = snapshot.schedule
        kind_label = "Ride" if snapshot.kind == ReservationKind.RIDE else "Tour"
        lines = [
            self._title,
            f"Receipt #: {snapshot.receipt_number}",
            f"Booking #: {snapshot.booking_number}",
            f"Issued: {snapshot.issued_at.isoformat()}",
            " ",
            f"{kind_label} reservation",
            f"Date: {schedule.date.isoformat()} {schedule.time}",
            f"Passengers: {schedule.passengers}",
        ]
        lines.extend(schedule.summary_lines())
        lines.append(" ")
        lines.append(f"Amount paid: {snapshot.amount}")
        if snapshot.payment_reference:
            lines.append(f"Payment reference: {snapshot.payment_reference}")
        lines.append(" ")
        lines.append("Billed To")
        lines.append(snapshot.contact.full_name)
        lines.append(snapshot.contact.phone)
        if snapshot.contact.email:
            lines.append(snapshot.contact.email)
        if self._footer:
            lines.append(" ")
            lines.append(self._footer)
        return lines

    def render(self, snapshot: ReceiptSnapshot) -> bytes:
        return _build_pdf(self.render_lines(snapshot))
