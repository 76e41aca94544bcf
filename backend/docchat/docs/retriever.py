"""Document retriever - embeds a query and searches one document's chunks."""

import logging
from enum import Enum
from uuid import UUID

from pydantic import BaseModel

from backend.docchat.db.repositories import VectorStore
from backend.docchat.errors import DocChatError
from backend.docchat.llm.embeddings import EmbeddingGenerator
from backend.docchat.models.documents import ChunkMatch
from backend.docchat.utils.metrics import retrieval_outcomes_total

logger = logging.getLogger(__name__)

CONTEXT_SEPARATOR = "\n\n"


class RetrievalStatus(str, Enum):
    """Why a retrieval produced the chunks it did."""

    matched = "matched"
    no_match = "no_match"  # search ran, nothing met the threshold
    error = "error"  # search could not run; context is empty by fallback


class RetrievalOutcome(BaseModel):
    """Tagged retrieval result, so empty-by-error is never mistaken for no-match."""

    status: RetrievalStatus
    matches: list[ChunkMatch] = []
    reason: str | None = None

    @property
    def context(self) -> str:
        """Chunk texts, most similar first, separated by blank lines."""
        return CONTEXT_SEPARATOR.join(m.content for m in self.matches)


class Retriever:
    """Similarity retrieval scoped to a single document."""

    def __init__(
        self,
        embeddings: EmbeddingGenerator,
        store: VectorStore,
        *,
        threshold: float = 0.7,
        k: int = 5,
    ) -> None:
        self._embeddings = embeddings
        self._store = store
        self.threshold = threshold
        self.k = k

    async def retrieve(self, document_id: UUID | None, query: str) -> RetrievalOutcome:
        """Retrieve the chunks of document_id most similar to query.

        Never raises for expected failures: a missing document, an embedding
        failure, a store failure or stored vectors of the wrong dimension yield
        an ``error`` outcome with a reason.

        Args:
            document_id: Document to search, or None if the chat lost its document
            query: User question

        Returns:
            RetrievalOutcome tagged matched / no_match / error
        """
        if document_id is None:
            outcome = RetrievalOutcome(status=RetrievalStatus.error, reason="document_missing")
        else:
            try:
                query_vector = await self._embeddings.embed_one(query)
                matches = await self._store.query(
                    document_id, query_vector, threshold=self.threshold, k=self.k
                )
            except DocChatError as e:
                outcome = RetrievalOutcome(
                    status=RetrievalStatus.error, reason=f"{type(e).__name__}: {e.detail}"
                )
            except ValueError as e:
                # Stored vectors whose dimensions no longer match the query
                outcome = RetrievalOutcome(
                    status=RetrievalStatus.error, reason=f"{type(e).__name__}: {e}"
                )
            else:
                status = RetrievalStatus.matched if matches else RetrievalStatus.no_match
                outcome = RetrievalOutcome(status=status, matches=matches)

        retrieval_outcomes_total.labels(outcome=outcome.status.value).inc()

        if outcome.status == RetrievalStatus.error:
            logger.warning(
                f"Retrieval failed for document {document_id}, continuing with empty context",
                extra={"structured": {"document_id": str(document_id), "reason": outcome.reason}},
            )
        else:
            logger.info(
                f"Retrieval {outcome.status.value} for document {document_id}: "
                f"{len(outcome.matches)} chunk(s)"
            )

        return outcome
