"""Document ingestion - extract, chunk, embed and store as one compensated saga."""

import asyncio
import logging
import secrets
import time
from pathlib import Path, PurePath
from uuid import UUID

from backend.docchat.db.context import RequestContext
from backend.docchat.db.repositories import DocumentRepository, VectorStore
from backend.docchat.docs.chunker import chunk_text
from backend.docchat.docs.extractor import extract_text, resolve_media_type
from backend.docchat.errors import PersistenceError, ValidationError
from backend.docchat.llm.client import LLMClient
from backend.docchat.llm.embeddings import EmbeddingGenerator
from backend.docchat.models.documents import Document
from backend.docchat.utils.metrics import chunks_stored_total, ingestions_total

logger = logging.getLogger(__name__)


def make_storage_name(filename: str) -> str:
    """Unique on-disk name keeping the original extension."""
    suffix = PurePath(filename).suffix.lower()
    return f"{int(time.time() * 1000)}-{secrets.randbelow(10**9)}{suffix}"


class DocumentIngestor:
    """Runs the ingestion pipeline for one upload.

    Steps: validate → save file → create pending document row → extract text
    → chunk → embed every chunk → store chunks → mark document complete.

    Any failure or cancellation after the file is saved runs a compensating
    delete of the stored file, the document row and any chunks already
    written, so a document is either fully ingested or absent.
    """

    def __init__(
        self,
        *,
        documents: DocumentRepository,
        store: VectorStore,
        embeddings: EmbeddingGenerator,
        llm: LLMClient,
        upload_dir: Path,
        chunk_size: int = 1000,
        max_upload_bytes: int = 10 * 1024 * 1024,
    ) -> None:
        self._documents = documents
        self._store = store
        self._embeddings = embeddings
        self._llm = llm
        self._upload_dir = upload_dir
        self._chunk_size = chunk_size
        self.max_upload_bytes = max_upload_bytes

    async def ingest(
        self,
        ctx: RequestContext,
        *,
        data: bytes,
        filename: str,
        declared_media_type: str | None,
    ) -> Document:
        """Ingest an uploaded file.

        Args:
            ctx: Request context (owner)
            data: Raw uploaded bytes
            filename: Original filename
            declared_media_type: Content type declared by the client

        Returns:
            The ingested Document with its chunk count

        Raises:
            ValidationError: Empty upload, missing filename, or file too large
            UnsupportedMediaType: Declared type is not accepted
            ExternalServiceError: Extraction or embedding failed
            PersistenceError: Store failure
        """
        if not filename or not filename.strip():
            raise ValidationError("Filename is required")
        if not data:
            raise ValidationError("No file uploaded")
        if len(data) > self.max_upload_bytes:
            raise ValidationError(
                f"File exceeds the {self.max_upload_bytes // (1024 * 1024)} MB upload limit"
            )

        media_type = resolve_media_type(declared_media_type, filename)
        storage_path = self._upload_dir / make_storage_name(filename)
        document_id: UUID | None = None

        try:
            await asyncio.to_thread(self._write_file, storage_path, data)

            document_id = await self._documents.create_document(
                ctx,
                filename=filename,
                media_type=media_type,
                storage_path=str(storage_path),
                file_size=len(data),
            )

            text = await extract_text(data, media_type, vision=self._llm)
            chunks = chunk_text(text, self._chunk_size)
            vectors = await self._embeddings.embed(chunks)

            await self._store.store(
                document_id,
                [(ordinal, chunk, vector) for ordinal, (chunk, vector) in enumerate(zip(chunks, vectors))],
            )
            await self._documents.complete_document(
                document_id, extracted_text=text, chunk_count=len(chunks)
            )
        except BaseException as e:
            ingestions_total.labels(media_type=media_type.value, outcome="failed").inc()
            logger.error(
                f"Ingestion of {filename!r} failed ({type(e).__name__}), rolling back",
                extra={"structured": {"document_id": str(document_id), "filename": filename}},
            )
            await self._compensate(document_id, storage_path)
            raise

        ingestions_total.labels(media_type=media_type.value, outcome="succeeded").inc()
        chunks_stored_total.inc(len(chunks))
        logger.info(f"Ingested document {document_id} ({len(chunks)} chunks)")

        document = await self._documents.get_document(ctx, document_id)
        if document is None:
            raise PersistenceError(f"Document {document_id} vanished after ingestion")
        return document

    @staticmethod
    def _write_file(path: Path, data: bytes) -> None:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(data)

    async def _compensate(self, document_id: UUID | None, storage_path: Path) -> None:
        """Undo partial ingestion. Failures here are logged, never raised."""
        if document_id is not None:
            try:
                removed = await self._store.delete_document(document_id)
                await self._documents.delete_document(document_id)
                logger.info(f"Compensated ingestion of {document_id} ({removed} chunk(s) removed)")
            except PersistenceError as e:
                logger.error(f"Compensating delete for {document_id} failed: {e.detail}")

        try:
            storage_path.unlink(missing_ok=True)
        except OSError as e:
            logger.error(f"Could not remove stored upload {storage_path}: {e}")

    async def delete(self, ctx: RequestContext, document_id: UUID) -> bool:
        """Delete an owned document with its chunks and stored file.

        Returns:
            True if a document owned by the caller was deleted
        """
        document = await self._documents.get_document(ctx, document_id)
        if document is None:
            return False

        await self._store.delete_document(document_id)
        await self._documents.delete_document(document_id)

        try:
            Path(document.storage_path).unlink(missing_ok=True)
        except OSError as e:
            logger.warning(f"Could not remove stored upload {document.storage_path}: {e}")

        return True
