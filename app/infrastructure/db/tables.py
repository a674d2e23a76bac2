from sqlalchemy import JSON, Column, DateTime, Index, Integer, MetaData, Numeric, String, Table

metadata = MetaData()

reservations = Table(
    "reservations",
    metadata,
    Column("id", String(36), primary_key=True),
    Column("booking_number", String(50), nullable=False, unique=True),
    Column("owner_id", String(64), nullable=False),
    Column("kind", String(16), nullable=False),
    Column("schedule", JSON, nullable=False),
    Column("currency_code", String(3), nullable=False),
    Column("amount", Numeric(12, 2), nullable=False),
    Column("contact_full_name", String(255), nullable=False),
    Column("contact_phone", String(50), nullable=False),
    Column("contact_email", String(255)),
    Column("status", String(32), nullable=False),
    Column("payment_status", String(32), nullable=False),
    Column("payment_session_id", String(255)),
    Column("payment_intent_id", String(255)),
    Column("assigned_driver_id", String(64)),
    Column("receipt_document_ref", String(500)),
    Column("receipt_number", String(64)),
    Column("receipt_issued_at", DateTime),
    Column("refund_id", String(255)),
    Column("refund_amount", Numeric(12, 2)),
    Column("refund_reason", String(500)),
    Column("refunded_at", DateTime),
    Column("confirmed_at", DateTime),
    Column("completed_at", DateTime),
    Column("cancelled_at", DateTime),
    Column("cancel_reason", String(500)),
    Column("lock_version", Integer, nullable=False, default=0),
    Column("created_at", DateTime, nullable=False),
    Column("updated_at", DateTime, nullable=False),
)

Index("ix_reservations_owner_id", reservations.c.owner_id)
Index("ix_reservations_assigned_driver_id", reservations.c.assigned_driver_id)
Index("ix_reservations_payment_session_id", reservations.c.payment_session_id)
Index("ix_reservations_status_payment_status", reservations.c.status, reservations.c.payment_status)

payment_transactions = Table(
    "payment_transactions",
    metadata,
    Column("id", String(64), primary_key=True),
    Column("reservation_id", String(36), nullable=False),
    Column("owner_id", String(64), nullable=False),
    Column("kind", String(16), nullable=False),
    Column("session_id", String(255), nullable=False, unique=True),
    Column("payment_intent_id", String(255)),
    Column("currency_code", String(3), nullable=False),
    Column("amount", Numeric(12, 2), nullable=False),
    Column("status", String(32), nullable=False),
    Column("refund_id", String(255)),
    Column("refund_amount", Numeric(12, 2)),
    Column("refund_reason", String(500)),
    Column("created_at", DateTime, nullable=False),
    Column("completed_at", DateTime),
    Column("failed_at", DateTime),
    Column("refunded_at", DateTime),
    Column("cancelled_at", DateTime),
)

Index("ix_payment_transactions_reservation_id", payment_transactions.c.reservation_id)
Index(
    "ix_payment_transactions_owner_created",
    payment_transactions.c.owner_id,
    payment_transactions.c.created_at,
)
Index("ix_payment_transactions_status", payment_transactions.c.status)
