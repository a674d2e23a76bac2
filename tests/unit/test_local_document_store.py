"""Tests del almacén de documentos en disco."""

import pytest

from app.infrastructure.storage.local_document_store import LocalDocumentStore


class TestLocalDocumentStore:
    @pytest.mark.asyncio
    async def test_guarda_y_lee(self, tmp_path):
        store = LocalDocumentStore(tmp_path)
        ref = await store.store("receipts/res-1.pdf", b"%PDF-1.4 data", "application/pdf")

        assert ref == "file://receipts/res-1.pdf"
        assert (tmp_path / "receipts" / "res-1.pdf").read_bytes() == b"%PDF-1.4 data"
        assert await store.read(ref) == b"%PDF-1.4 data"

    @pytest.mark.asyncio
    async def test_sobrescribe_la_misma_clave(self, tmp_path):
        store = LocalDocumentStore(tmp_path)
        await store.store("receipts/res-1.pdf", b"first", "application/pdf")
        ref = await store.store("receipts/res-1.pdf", b"second", "application/pdf")

        assert await store.read(ref) == b"second"
        assert not list((tmp_path / "receipts").glob("*.tmp"))

    @pytest.mark.asyncio
    async def test_documento_inexistente(self, tmp_path):
        store = LocalDocumentStore(tmp_path)
        with pytest.raises(KeyError):
            await store.read("file://receipts/missing.pdf")

    @pytest.mark.asyncio
    async def test_rechaza_rutas_fuera_de_la_raiz(self, tmp_path):
        store = LocalDocumentStore(tmp_path / "docs")
        with pytest.raises(ValueError):
            await store.store("../escape.pdf", b"x", "application/pdf")
