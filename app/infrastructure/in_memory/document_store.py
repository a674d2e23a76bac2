from app.application.interfaces.document_store import DocumentStore


class InMemoryDocumentStore(DocumentStore):
    def __init__(self) -> None:
        self.documents: dict[str, bytes] = {}
        self.content_types: dict[str, str] = {}
        self.fail_next: int = 0

    async def store(self, key: str, data: bytes, content_type: str) -> str:
        if self.fail_next > 0:
            self.fail_next -= 1
            raise OSError("document store unavailable")
        ref = f"memory://{key}"
        self.documents[ref] = data
        self.content_types[ref] = content_type
        return ref

    async def read(self, document_ref: str) -> bytes:
        return self.documents[document_ref]
