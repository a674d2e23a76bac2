"""
Capa de Infraestructura - Ciclo de vida de reservaciones.

Esta capa contiene las implementaciones concretas de los puertos (interfaces).

Estructura:
- db/: Repositorio SQL, tablas y utilidades de base de datos
- gateways/: Adaptador de Stripe
- in_memory/: Implementaciones in-memory para desarrollo y testing
- storage/: Almacén de documentos en disco
"""

from app.infrastructure.db.repositories.reservation_repo_sql import ReservationRepoSQL
from app.infrastructure.gateways.stripe_gateway_real import StripeGatewayReal
from app.infrastructure.in_memory import (
    InMemoryDocumentStore,
    InMemoryReservationRepo,
    InMemoryStripeGateway,
)
from app.infrastructure.storage.local_document_store import LocalDocumentStore

__all__ = [
    # Database
    "ReservationRepoSQL",
    # Gateways
    "StripeGatewayReal",
    # Storage
    "LocalDocumentStore",
    # In-Memory Implementations
    "InMemoryReservationRepo",
    "InMemoryDocumentStore",
    "InMemoryStripeGateway",
]
