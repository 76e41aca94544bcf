"""Unit tests for the batched embedding generator."""

import asyncio

import pytest

from backend.docchat.errors import EmbeddingServiceError, GenerationError
from backend.docchat.llm.client import DeterministicStubClient
from backend.docchat.llm.embeddings import EmbeddingGenerator
from backend.docchat.llm.result import CallResult, Err, Ok


class ShuffledLatencyClient(DeterministicStubClient):
    """Stub whose earlier batches finish last, to expose ordering bugs."""

    def __init__(self, dimensions: int) -> None:
        super().__init__(dimensions)
        self.calls: list[list[str]] = []

    async def create_embeddings(self, texts: list[str]) -> CallResult[list[list[float]]]:
        self.calls.append(texts)
        # First batch sleeps longest
        await asyncio.sleep(0.01 * (10 - len(self.calls)))
        return await super().create_embeddings(texts)


class FailingBatchClient(DeterministicStubClient):
    """Stub that fails any batch containing a marker text."""

    async def create_embeddings(self, texts: list[str]) -> CallResult[list[list[float]]]:
        if "boom" in texts:
            return Err(EmbeddingServiceError("provider unavailable"))
        return await super().create_embeddings(texts)


class WrongDimensionClient(DeterministicStubClient):
    async def create_embeddings(self, texts: list[str]) -> CallResult[list[list[float]]]:
        return Ok([[0.1, 0.2] for _ in texts])


@pytest.mark.asyncio
async def test_vectors_align_with_input_order() -> None:
    """The i-th vector is the embedding of the i-th text regardless of completion order."""
    client = ShuffledLatencyClient(dimensions=32)
    generator = EmbeddingGenerator(client, dimensions=32, batch_size=2, concurrency=4)
    texts = [f"chunk number {i} about topic {i}" for i in range(7)]

    vectors = await generator.embed(texts)

    assert len(vectors) == 7
    assert len(client.calls) == 4  # batches of 2, 2, 2, 1
    for text, vector in zip(texts, vectors):
        assert vector == client.embed_text(text)


@pytest.mark.asyncio
async def test_every_vector_has_configured_dimension() -> None:
    generator = EmbeddingGenerator(DeterministicStubClient(16), dimensions=16, batch_size=3)

    vectors = await generator.embed(["a b c", "d e f", "g h i", "j k l"])

    assert all(len(v) == 16 for v in vectors)


@pytest.mark.asyncio
async def test_empty_input_makes_no_calls() -> None:
    client = ShuffledLatencyClient(dimensions=8)
    generator = EmbeddingGenerator(client, dimensions=8)

    assert await generator.embed([]) == []
    assert client.calls == []


@pytest.mark.asyncio
async def test_any_failed_batch_fails_whole_call() -> None:
    """A single failed batch means no partial vector set is returned."""
    generator = EmbeddingGenerator(FailingBatchClient(8), dimensions=8, batch_size=1)

    with pytest.raises(EmbeddingServiceError, match="provider unavailable"):
        await generator.embed(["fine", "boom", "also fine"])


@pytest.mark.asyncio
async def test_dimension_mismatch_is_rejected() -> None:
    generator = EmbeddingGenerator(WrongDimensionClient(8), dimensions=8)

    with pytest.raises(EmbeddingServiceError, match="dimension 2"):
        await generator.embed(["text"])


@pytest.mark.asyncio
async def test_non_embedding_error_is_wrapped() -> None:
    """Errors of other external services surface as EmbeddingServiceError."""

    class OddClient(DeterministicStubClient):
        async def create_embeddings(self, texts: list[str]) -> CallResult[list[list[float]]]:
            return Err(GenerationError("wrong service"))

    generator = EmbeddingGenerator(OddClient(8), dimensions=8)

    with pytest.raises(EmbeddingServiceError, match="wrong service"):
        await generator.embed_one("query")


@pytest.mark.asyncio
async def test_embed_one_returns_single_vector() -> None:
    client = DeterministicStubClient(8)
    generator = EmbeddingGenerator(client, dimensions=8)

    assert await generator.embed_one("hello world") == client.embed_text("hello world")


def test_invalid_batch_settings_raise() -> None:
    with pytest.raises(ValueError):
        EmbeddingGenerator(DeterministicStubClient(8), batch_size=0)
    with pytest.raises(ValueError):
        EmbeddingGenerator(DeterministicStubClient(8), concurrency=0)
