"""Integration tests for the SQL vector store."""

import uuid

import pytest
from sqlalchemy.ext.asyncio import AsyncSession

from backend.docchat.db.context import RequestContext
from backend.docchat.db.sql_repositories import SqlDocumentRepository
from backend.docchat.docs.vector_store import SqlVectorStore
from backend.docchat.llm.client import DeterministicStubClient
from backend.docchat.models.documents import MediaType


async def _document(session: AsyncSession, ctx: RequestContext) -> uuid.UUID:
    return await SqlDocumentRepository(session).create_document(
        ctx, filename="x.txt", media_type=MediaType.text, storage_path="/tmp/x", file_size=1
    )


@pytest.mark.asyncio
async def test_query_orders_by_similarity(session: AsyncSession, ctx: RequestContext) -> None:
    store = SqlVectorStore(session)
    document_id = await _document(session, ctx)
    await store.store(
        document_id,
        [(0, "tie later", [1.0, 0.0]), (1, "partial", [0.8, 0.6]), (2, "far", [0.0, 1.0])],
    )
    await store.store(document_id, [(3, "tie even later", [3.0, 0.0])])

    matches = await store.query(document_id, [1.0, 0.0], threshold=0.5, k=5)

    assert [m.ordinal for m in matches] == [0, 3, 1]
    assert await store.count(document_id) == 4


@pytest.mark.asyncio
async def test_query_never_returns_other_documents_chunks(
    session: AsyncSession, ctx: RequestContext
) -> None:
    """A query built from document B's text finds nothing in document A."""
    client = DeterministicStubClient(dimensions=1536)
    store = SqlVectorStore(session)
    doc_a = await _document(session, ctx)
    doc_b = await _document(session, ctx)
    text_a = "Lease agreement covers apartment three and parking."
    text_b = "Bread recipe covers dough kneading and baking."
    await store.store(doc_a, [(0, text_a, client.embed_text(text_a))])
    await store.store(doc_b, [(0, text_b, client.embed_text(text_b))])

    assert await store.query(doc_a, client.embed_text(text_b)) == []
    assert [m.content for m in await store.query(doc_b, client.embed_text(text_b))] == [text_b]


@pytest.mark.asyncio
async def test_delete_document_chunks(session: AsyncSession, ctx: RequestContext) -> None:
    store = SqlVectorStore(session)
    document_id = await _document(session, ctx)
    await store.store(document_id, [(0, "a", [1.0]), (1, "b", [1.0])])

    assert await store.delete_document(document_id) == 2
    assert await store.count(document_id) == 0
