"""Embedding generator - ordinal-preserving, concurrently batched embeddings."""

import asyncio
import logging
from collections.abc import Sequence

from backend.docchat.errors import EmbeddingServiceError
from backend.docchat.llm.client import LLMClient
from backend.docchat.llm.result import Err

logger = logging.getLogger(__name__)


class EmbeddingGenerator:
    """Turns ordered texts into index-aligned fixed-dimension vectors.

    Texts are split into batches; each batch request is tagged with the
    ordinal of its first text and the batches run concurrently, bounded by a
    semaphore. Vectors are reassembled by ordinal, so the output order never
    depends on completion order. Any failed batch fails the whole call:
    callers never see a partial vector set.
    """

    def __init__(
        self,
        client: LLMClient,
        *,
        dimensions: int = 1536,
        batch_size: int = 16,
        concurrency: int = 4,
    ) -> None:
        if batch_size < 1:
            raise ValueError("batch_size must be positive")
        if concurrency < 1:
            raise ValueError("concurrency must be positive")

        self._client = client
        self.dimensions = dimensions
        self._batch_size = batch_size
        self._concurrency = concurrency

    async def embed(self, texts: Sequence[str]) -> list[list[float]]:
        """Embed texts, returning one vector per input in input order.

        Raises:
            EmbeddingServiceError: If any request fails or returns a malformed vector
        """
        if not texts:
            return []

        semaphore = asyncio.Semaphore(self._concurrency)
        batches = [
            (start, list(texts[start : start + self._batch_size]))
            for start in range(0, len(texts), self._batch_size)
        ]

        async def run_batch(start: int, batch: list[str]) -> tuple[int, list[list[float]]]:
            async with semaphore:
                result = await self._client.create_embeddings(batch)

            if isinstance(result, Err):
                if isinstance(result.error, EmbeddingServiceError):
                    raise result.error
                raise EmbeddingServiceError(result.error.detail) from result.error

            vectors = result.value
            if len(vectors) != len(batch):
                raise EmbeddingServiceError(
                    f"Batch at ordinal {start}: got {len(vectors)} vectors for {len(batch)} texts"
                )
            return start, vectors

        tasks = [asyncio.create_task(run_batch(start, batch)) for start, batch in batches]
        try:
            tagged = await asyncio.gather(*tasks)
        except BaseException:
            # Do not leave sibling requests running after the first failure
            for task in tasks:
                task.cancel()
            await asyncio.gather(*tasks, return_exceptions=True)
            raise

        slots: list[list[float] | None] = [None] * len(texts)
        for start, vectors in tagged:
            for offset, vector in enumerate(vectors):
                slots[start + offset] = vector

        ordered: list[list[float]] = []
        for ordinal, vector in enumerate(slots):
            if vector is None:
                raise EmbeddingServiceError(f"Missing embedding for ordinal {ordinal}")
            if len(vector) != self.dimensions:
                raise EmbeddingServiceError(
                    f"Embedding for ordinal {ordinal} has dimension {len(vector)}, "
                    f"expected {self.dimensions}"
                )
            ordered.append(vector)

        logger.info(f"Embedded {len(ordered)} texts in {len(batches)} batch(es)")
        return ordered

    async def embed_one(self, text: str) -> list[float]:
        """Embed a single text (query embeddings)."""
        vectors = await self.embed([text])
        return vectors[0]
