"""Unit tests for tagged retrieval outcomes."""

import uuid
from collections.abc import Sequence

import pytest

from backend.docchat.docs.retriever import RetrievalStatus, Retriever
from backend.docchat.docs.vector_store import InMemoryVectorStore
from backend.docchat.errors import EmbeddingServiceError, PersistenceError
from backend.docchat.llm.client import DeterministicStubClient
from backend.docchat.llm.embeddings import EmbeddingGenerator
from backend.docchat.llm.result import CallResult, Err
from backend.docchat.models.documents import ChunkMatch


class BrokenEmbeddingClient(DeterministicStubClient):
    async def create_embeddings(self, texts: list[str]) -> CallResult[list[list[float]]]:
        return Err(EmbeddingServiceError("timeout"))


class BrokenStore(InMemoryVectorStore):
    async def query(
        self,
        document_id: uuid.UUID,
        query_vector: Sequence[float],
        *,
        threshold: float = 0.7,
        k: int = 5,
    ) -> list[ChunkMatch]:
        raise PersistenceError("connection reset")


async def _store_with(client: DeterministicStubClient, document_id: uuid.UUID, texts: list[str]) -> InMemoryVectorStore:
    store = InMemoryVectorStore()
    await store.store(document_id, [(i, t, client.embed_text(t)) for i, t in enumerate(texts)])
    return store


@pytest.mark.asyncio
async def test_matching_chunks_are_tagged_matched() -> None:
    client = DeterministicStubClient(dimensions=64)
    document_id = uuid.uuid4()
    store = await _store_with(
        client,
        document_id,
        ["The warranty lasts two years.", "Shipping takes five days."],
    )
    retriever = Retriever(EmbeddingGenerator(client, dimensions=64), store, threshold=0.7, k=5)

    outcome = await retriever.retrieve(document_id, "The warranty lasts two years.")

    assert outcome.status == RetrievalStatus.matched
    assert outcome.matches[0].content == "The warranty lasts two years."
    assert outcome.context.startswith("The warranty lasts two years.")


@pytest.mark.asyncio
async def test_context_joins_chunks_with_blank_line() -> None:
    client = DeterministicStubClient(dimensions=64)
    document_id = uuid.uuid4()
    store = await _store_with(client, document_id, ["alpha beta.", "alpha beta."])
    retriever = Retriever(EmbeddingGenerator(client, dimensions=64), store, threshold=0.5)

    outcome = await retriever.retrieve(document_id, "alpha beta.")

    assert outcome.context == "alpha beta.\n\nalpha beta."


@pytest.mark.asyncio
async def test_nothing_above_threshold_is_no_match() -> None:
    client = DeterministicStubClient(dimensions=1536)
    document_id = uuid.uuid4()
    store = await _store_with(client, document_id, ["Volcanoes erupt molten rock."])
    retriever = Retriever(EmbeddingGenerator(client, dimensions=1536), store)

    outcome = await retriever.retrieve(document_id, "quarterly payroll schedule")

    assert outcome.status == RetrievalStatus.no_match
    assert outcome.matches == []
    assert outcome.context == ""
    assert outcome.reason is None


@pytest.mark.asyncio
async def test_embedding_failure_is_tagged_error_not_no_match() -> None:
    document_id = uuid.uuid4()
    retriever = Retriever(
        EmbeddingGenerator(BrokenEmbeddingClient(8), dimensions=8), InMemoryVectorStore()
    )

    outcome = await retriever.retrieve(document_id, "anything")

    assert outcome.status == RetrievalStatus.error
    assert outcome.context == ""
    assert outcome.reason is not None and "timeout" in outcome.reason


@pytest.mark.asyncio
async def test_store_failure_is_tagged_error() -> None:
    client = DeterministicStubClient(8)
    retriever = Retriever(EmbeddingGenerator(client, dimensions=8), BrokenStore())

    outcome = await retriever.retrieve(uuid.uuid4(), "anything")

    assert outcome.status == RetrievalStatus.error
    assert "PersistenceError" in (outcome.reason or "")


@pytest.mark.asyncio
async def test_missing_document_is_tagged_error() -> None:
    """A chat whose document was deleted retrieves nothing, without raising."""
    client = DeterministicStubClient(8)
    retriever = Retriever(EmbeddingGenerator(client, dimensions=8), InMemoryVectorStore())

    outcome = await retriever.retrieve(None, "anything")

    assert outcome.status == RetrievalStatus.error
    assert outcome.reason == "document_missing"


@pytest.mark.asyncio
async def test_stale_vector_dimensions_are_tagged_error() -> None:
    """Chunks embedded at an older dimension fall back to empty context."""
    client = DeterministicStubClient(8)
    document_id = uuid.uuid4()
    store = await _store_with(client, document_id, ["Current chunk."])
    await store.store(document_id, [(1, "Old chunk.", [1.0, 0.0])])
    retriever = Retriever(EmbeddingGenerator(client, dimensions=8), store)

    outcome = await retriever.retrieve(document_id, "Current chunk.")

    assert outcome.status == RetrievalStatus.error
    assert outcome.context == ""
    assert "ValueError" in (outcome.reason or "")
