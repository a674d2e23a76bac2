"""Implementaciones in-memory para testing."""

from app.infrastructure.in_memory.document_store import InMemoryDocumentStore
from app.infrastructure.in_memory.reservation_repo import InMemoryReservationRepo
from app.infrastructure.in_memory.stripe_gateway import StubStripeGateway as InMemoryStripeGateway

__all__ = [
    # Repositories
    "InMemoryReservationRepo",
    "InMemoryDocumentStore",
    # Gateways
    "InMemoryStripeGateway",
]
