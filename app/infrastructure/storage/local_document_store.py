"""Almacén de documentos sobre el sistema de archivos local."""

import asyncio
import os
from pathlib import Path

from app.application.interfaces.document_store import DocumentStore

LOCAL_SCHEME = "file://"


class LocalDocumentStore(DocumentStore):
    def __init__(self, root: Path | str) -> None:
        self.root = Path(root)

    def _resolve(self, key: str) -> Path:
        cleaned = key.removeprefix(LOCAL_SCHEME).lstrip("/")
        root_resolved = self.root.resolve()
        path = (self.root / cleaned).resolve()
        if not path.is_relative_to(root_resolved):
            raise ValueError("Invalid storage key")
        return path

    async def store(self, key: str, data: bytes, content_type: str) -> str:
        path = self._resolve(key)

        def _write() -> None:
            path.parent.mkdir(parents=True, exist_ok=True)
            tmp_path = path.with_suffix(path.suffix + ".tmp")
            tmp_path.write_bytes(data)
            os.replace(tmp_path, path)

        await asyncio.to_thread(_write)
        return f"{LOCAL_SCHEME}{key.lstrip('/')}"

    async def read(self, document_ref: str) -> bytes:
        path = self._resolve(document_ref)

        def _read() -> bytes:
            if not path.exists():
                raise KeyError(document_ref)
            return path.read_bytes()

        return await asyncio.to_thread(_read)
