"""Vector store - chunk persistence and document-scoped cosine similarity search."""

import uuid
from collections.abc import Iterable, Sequence

import numpy as np
from sqlalchemy import delete, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from backend.docchat.db.models import DocumentChunk as DocumentChunkDB
from backend.docchat.db.repositories import utcnow
from backend.docchat.db.sql_repositories import translate_db_errors
from backend.docchat.models.documents import ChunkMatch


def cosine_similarity(a: Sequence[float], b: Sequence[float]) -> float:
    """Cosine of the angle between two vectors; 0.0 if either has zero norm."""
    va = np.asarray(a, dtype=float).ravel()
    vb = np.asarray(b, dtype=float).ravel()
    if va.shape != vb.shape:
        raise ValueError(f"Vector dimensions differ: {va.shape[0]} vs {vb.shape[0]}")

    denom = float(np.linalg.norm(va) * np.linalg.norm(vb))
    if denom == 0.0:
        return 0.0
    return float(np.dot(va, vb) / denom)


def rank_matches(
    query_vector: Sequence[float],
    candidates: Iterable[tuple[int, str, Sequence[float]]],
    *,
    threshold: float = 0.7,
    k: int = 5,
) -> list[ChunkMatch]:
    """Score (ordinal, text, embedding) candidates against a query vector.

    Scoring strategy:
    - Cosine similarity per candidate
    - Filter out similarity below threshold
    - Sort by similarity descending, then by ordinal (for determinism)
    - Apply k
    """
    if k <= 0:
        return []

    scored = [
        ChunkMatch(content=text, similarity=cosine_similarity(query_vector, embedding), ordinal=ordinal)
        for ordinal, text, embedding in candidates
    ]
    matches = [m for m in scored if m.similarity >= threshold]
    matches.sort(key=lambda m: (-m.similarity, m.ordinal))
    return matches[:k]


class SqlVectorStore:
    """SQL implementation of VectorStore.

    Rows are filtered by document_id in SQL, so other documents' chunks are
    never loaded; ranking happens in Python.
    """

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def store(
        self,
        document_id: uuid.UUID,
        chunks: Sequence[tuple[int, str, list[float]]],
    ) -> None:
        """Persist all chunks of a document in one transaction."""
        created_at = utcnow()

        async with translate_db_errors(self._session, "store_chunks"):
            self._session.add_all(
                [
                    DocumentChunkDB(
                        chunk_id=uuid.uuid4(),
                        document_id=document_id,
                        ordinal=ordinal,
                        content=text,
                        embedding=list(embedding),
                        created_at=created_at,
                    )
                    for ordinal, text, embedding in chunks
                ]
            )
            await self._session.commit()

    async def query(
        self,
        document_id: uuid.UUID,
        query_vector: Sequence[float],
        *,
        threshold: float = 0.7,
        k: int = 5,
    ) -> list[ChunkMatch]:
        """Return the top-k chunks of one document above threshold."""
        stmt = (
            select(DocumentChunkDB.ordinal, DocumentChunkDB.content, DocumentChunkDB.embedding)
            .where(DocumentChunkDB.document_id == document_id)
            .order_by(DocumentChunkDB.ordinal)
        )

        async with translate_db_errors(self._session, "query_chunks"):
            result = await self._session.execute(stmt)
            rows = result.all()

        return rank_matches(
            query_vector,
            ((ordinal, content, embedding) for ordinal, content, embedding in rows),
            threshold=threshold,
            k=k,
        )

    async def delete_document(self, document_id: uuid.UUID) -> int:
        """Delete every chunk of a document."""
        async with translate_db_errors(self._session, "delete_chunks"):
            result = await self._session.execute(
                delete(DocumentChunkDB).where(DocumentChunkDB.document_id == document_id)
            )
            await self._session.commit()

        return int(result.rowcount or 0)

    async def count(self, document_id: uuid.UUID) -> int:
        """Number of chunks stored for a document."""
        async with translate_db_errors(self._session, "count_chunks"):
            total = await self._session.scalar(
                select(func.count())
                .select_from(DocumentChunkDB)
                .where(DocumentChunkDB.document_id == document_id)
            )

        return int(total or 0)


class InMemoryVectorStore:
    """In-memory implementation of VectorStore."""

    def __init__(self) -> None:
        self._chunks: dict[uuid.UUID, list[tuple[int, str, list[float]]]] = {}

    async def store(
        self,
        document_id: uuid.UUID,
        chunks: Sequence[tuple[int, str, list[float]]],
    ) -> None:
        """Persist all chunks of a document."""
        existing = self._chunks.setdefault(document_id, [])
        existing.extend((ordinal, text, list(embedding)) for ordinal, text, embedding in chunks)

    async def query(
        self,
        document_id: uuid.UUID,
        query_vector: Sequence[float],
        *,
        threshold: float = 0.7,
        k: int = 5,
    ) -> list[ChunkMatch]:
        """Return the top-k chunks of one document above threshold."""
        return rank_matches(
            query_vector, self._chunks.get(document_id, []), threshold=threshold, k=k
        )

    async def delete_document(self, document_id: uuid.UUID) -> int:
        """Delete every chunk of a document."""
        return len(self._chunks.pop(document_id, []))

    async def count(self, document_id: uuid.UUID) -> int:
        """Number of chunks stored for a document."""
        return len(self._chunks.get(document_id, []))
