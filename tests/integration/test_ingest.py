"""Integration tests for document ingestion and its compensating rollback."""

import asyncio
from pathlib import Path

import pytest
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from backend.docchat.db.context import RequestContext
from backend.docchat.db.models import Document as DocumentDB
from backend.docchat.db.models import DocumentChunk as DocumentChunkDB
from backend.docchat.db.sql_repositories import SqlDocumentRepository
from backend.docchat.docs.ingest import DocumentIngestor
from backend.docchat.docs.vector_store import SqlVectorStore
from backend.docchat.errors import (
    EmbeddingServiceError,
    ExtractionError,
    UnsupportedMediaType,
    ValidationError,
)
from backend.docchat.llm.client import DeterministicStubClient
from backend.docchat.llm.embeddings import EmbeddingGenerator
from backend.docchat.llm.result import CallResult, Err
from backend.docchat.models.documents import MediaType

DIMENSIONS = 64

TEXT = "Sentence one. Sentence two. Sentence three. Sentence four."


class FailOnSecondBatchClient(DeterministicStubClient):
    """Embeds the first batch, fails the next, so chunks may be half-done."""

    def __init__(self) -> None:
        super().__init__(dimensions=DIMENSIONS)
        self.calls = 0

    async def create_embeddings(self, texts: list[str]) -> CallResult[list[list[float]]]:
        self.calls += 1
        if self.calls > 1:
            return Err(EmbeddingServiceError("quota exceeded"))
        return await super().create_embeddings(texts)


class BlockingClient(DeterministicStubClient):
    """Embedding call that never finishes until cancelled."""

    def __init__(self) -> None:
        super().__init__(dimensions=DIMENSIONS)
        self.started = asyncio.Event()

    async def create_embeddings(self, texts: list[str]) -> CallResult[list[list[float]]]:
        self.started.set()
        await asyncio.Event().wait()
        raise AssertionError("unreachable")


@pytest.fixture
def upload_dir(tmp_path: Path) -> Path:
    return tmp_path / "uploads"


def _stored_files(upload_dir: Path) -> list[Path]:
    return list(upload_dir.iterdir()) if upload_dir.exists() else []


def _ingestor(
    session: AsyncSession,
    client: DeterministicStubClient,
    upload_dir: Path,
    *,
    chunk_size: int = 1000,
    batch_size: int = 16,
    max_upload_bytes: int = 10 * 1024 * 1024,
) -> DocumentIngestor:
    return DocumentIngestor(
        documents=SqlDocumentRepository(session),
        store=SqlVectorStore(session),
        embeddings=EmbeddingGenerator(client, dimensions=DIMENSIONS, batch_size=batch_size),
        llm=client,
        upload_dir=upload_dir,
        chunk_size=chunk_size,
        max_upload_bytes=max_upload_bytes,
    )


async def _row_counts(session: AsyncSession) -> tuple[int, int]:
    documents = await session.scalar(select(func.count()).select_from(DocumentDB))
    chunks = await session.scalar(select(func.count()).select_from(DocumentChunkDB))
    return int(documents or 0), int(chunks or 0)


@pytest.mark.asyncio
async def test_ingest_text_document(session: AsyncSession, ctx: RequestContext, upload_dir: Path) -> None:
    ingestor = _ingestor(session, DeterministicStubClient(DIMENSIONS), upload_dir, chunk_size=30)

    document = await ingestor.ingest(
        ctx, data=TEXT.encode(), filename="notes.txt", declared_media_type="text/plain"
    )

    assert document.owner_id == ctx.user_id
    assert document.filename == "notes.txt"
    assert document.media_type == MediaType.text
    assert document.extracted_text == TEXT
    assert document.file_size == len(TEXT)
    assert document.chunk_count == 2
    assert Path(document.storage_path).read_bytes() == TEXT.encode()
    assert Path(document.storage_path).suffix == ".txt"

    ordinals = (
        await session.execute(
            select(DocumentChunkDB.ordinal)
            .where(DocumentChunkDB.document_id == document.id)
            .order_by(DocumentChunkDB.ordinal)
        )
    ).scalars().all()
    assert list(ordinals) == [0, 1]


@pytest.mark.asyncio
async def test_embedding_failure_leaves_nothing_behind(
    session: AsyncSession, ctx: RequestContext, upload_dir: Path
) -> None:
    """A failed ingestion removes the document row, chunks and stored file."""
    ingestor = _ingestor(session, FailOnSecondBatchClient(), upload_dir, chunk_size=15, batch_size=1)

    with pytest.raises(EmbeddingServiceError):
        await ingestor.ingest(ctx, data=TEXT.encode(), filename="notes.txt", declared_media_type="text/plain")

    assert await _row_counts(session) == (0, 0)
    assert _stored_files(upload_dir) == []


@pytest.mark.asyncio
async def test_extraction_failure_rolls_back(
    session: AsyncSession, ctx: RequestContext, upload_dir: Path
) -> None:
    ingestor = _ingestor(session, DeterministicStubClient(DIMENSIONS), upload_dir)

    with pytest.raises(ExtractionError):
        await ingestor.ingest(ctx, data=b"%PDF-broken", filename="bad.pdf", declared_media_type="application/pdf")

    assert await _row_counts(session) == (0, 0)
    assert _stored_files(upload_dir) == []


@pytest.mark.asyncio
async def test_cancellation_rolls_back(session: AsyncSession, ctx: RequestContext, upload_dir: Path) -> None:
    client = BlockingClient()
    ingestor = _ingestor(session, client, upload_dir)

    task = asyncio.create_task(
        ingestor.ingest(ctx, data=TEXT.encode(), filename="notes.txt", declared_media_type="text/plain")
    )
    await asyncio.wait_for(client.started.wait(), timeout=5)
    task.cancel()

    with pytest.raises(asyncio.CancelledError):
        await task

    assert await _row_counts(session) == (0, 0)
    assert _stored_files(upload_dir) == []


@pytest.mark.asyncio
@pytest.mark.parametrize(
    ("data", "filename", "declared", "error"),
    [
        (b"", "empty.txt", "text/plain", ValidationError),
        (b"x" * 11, "big.txt", "text/plain", ValidationError),
        (b"data", "", "text/plain", ValidationError),
        (b"GIF89a", "anim.gif", "image/gif", UnsupportedMediaType),
    ],
)
async def test_invalid_uploads_rejected_before_any_write(
    session: AsyncSession,
    ctx: RequestContext,
    upload_dir: Path,
    data: bytes,
    filename: str,
    declared: str,
    error: type[Exception],
) -> None:
    client = FailOnSecondBatchClient()
    ingestor = _ingestor(session, client, upload_dir, max_upload_bytes=10)

    with pytest.raises(error):
        await ingestor.ingest(ctx, data=data, filename=filename, declared_media_type=declared)

    assert client.calls == 0
    assert await _row_counts(session) == (0, 0)
    assert _stored_files(upload_dir) == []


@pytest.mark.asyncio
async def test_delete_removes_document_chunks_and_file(
    session: AsyncSession, ctx: RequestContext, other_ctx: RequestContext, upload_dir: Path
) -> None:
    ingestor = _ingestor(session, DeterministicStubClient(DIMENSIONS), upload_dir)
    document = await ingestor.ingest(
        ctx, data=TEXT.encode(), filename="notes.txt", declared_media_type="text/plain"
    )

    assert await ingestor.delete(other_ctx, document.id) is False
    assert await ingestor.delete(ctx, document.id) is True

    assert await _row_counts(session) == (0, 0)
    assert not Path(document.storage_path).exists()
