"""Interface DocumentStore - Puerto del almacén de documentos (recibos)."""

from abc import ABC, abstractmethod


class DocumentStore(ABC):
    """Almacén de documentos binarios direccionados por clave."""

    @abstractmethod
    async def store(self, key: str, data: bytes, content_type: str) -> str:
        """
        Guarda el documento.

        Args:
            key: Clave lógica (determinista para permitir reintentos sin duplicados).
            data: Contenido binario.
            content_type: Tipo MIME.

        Returns:
            Referencia opaca del documento guardado.
        """
        raise NotImplementedError

    @abstractmethod
    async def read(self, document_ref: str) -> bytes:
        """Lee un documento por su referencia. Lanza KeyError si no existe."""
        raise NotImplementedError
