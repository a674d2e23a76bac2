from app.infrastructure.storage.local_document_store import LocalDocumentStore

__all__ = ["LocalDocumentStore"]
