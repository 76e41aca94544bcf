"""LLM client for embeddings, vision descriptions and chat completions.

Security: Reads API key from settings only, never hardcoded.
Provides a deterministic fallback when no key is present for local runs and tests.

Every method returns a CallResult (Ok or Err) instead of raising, so callers
decide whether a failure is fatal (ingestion, generation) or recoverable
(chat retrieval).
"""

import base64
import hashlib
import logging
import math
import re
import time
from typing import Protocol

from openai import AsyncOpenAI, OpenAIError

from backend.docchat.config import Settings
from backend.docchat.errors import EmbeddingServiceError, ExtractionError, GenerationError
from backend.docchat.llm.result import CallResult, Err, Ok
from backend.docchat.utils.logging import StructuredCallLogger
from backend.docchat.utils.metrics import PrometheusCallMetrics

logger = logging.getLogger(__name__)

# role/content pairs in OpenAI chat format
ChatTurn = dict[str, str]

VISION_PROMPT = (
    "Describe this image in detail. Transcribe all visible text exactly, and describe "
    "any diagrams, charts and tables including their labels and values, so the "
    "description can be used to answer questions about the image."
)

_TOKEN = re.compile(r"[a-z0-9]+")


class LLMClient(Protocol):
    """Protocol for LLM client implementations."""

    async def create_embeddings(self, texts: list[str]) -> CallResult[list[list[float]]]:
        """Embed texts; the i-th vector belongs to the i-th text."""
        ...

    async def describe_image(self, data: bytes, media_type: str) -> CallResult[str]:
        """Describe an image's text, diagrams and tables in natural language."""
        ...

    async def complete_chat(self, messages: list[ChatTurn]) -> CallResult[str]:
        """Generate the assistant reply for an assembled prompt."""
        ...

    async def close(self) -> None:
        """Release network resources."""
        ...


class DeterministicStubClient:
    """Deterministic stub client for testing (no API key required).

    Embeddings are hashed bag-of-words vectors, so texts sharing vocabulary
    get a positive cosine similarity and unrelated texts get ~0.
    """

    def __init__(self, dimensions: int = 1536) -> None:
        self.dimensions = dimensions

    def embed_text(self, text: str) -> list[float]:
        """Hash each lowercase token into a bucket and L2-normalize."""
        vector = [0.0] * self.dimensions
        for token in _TOKEN.findall(text.lower()):
            digest = hashlib.sha256(token.encode("utf-8")).digest()
            bucket = int.from_bytes(digest[:4], "big") % self.dimensions
            vector[bucket] += 1.0

        norm = math.sqrt(sum(v * v for v in vector))
        if norm == 0.0:
            return vector
        return [v / norm for v in vector]

    async def create_embeddings(self, texts: list[str]) -> CallResult[list[list[float]]]:
        """Generate deterministic embeddings."""
        return Ok([self.embed_text(t) for t in texts])

    async def describe_image(self, data: bytes, media_type: str) -> CallResult[str]:
        """Generate a deterministic placeholder description."""
        digest = hashlib.sha256(data).hexdigest()[:12]
        return Ok(
            f"Image ({media_type}, {len(data)} bytes, sha256 {digest}). "
            "No vision model is configured, so no description is available."
        )

    async def complete_chat(self, messages: list[ChatTurn]) -> CallResult[str]:
        """Generate a deterministic stub reply."""
        question = messages[-1]["content"] if messages else ""
        prior_turns = max(len(messages) - 2, 0)
        return Ok(
            f"This is a stub response to: {question}\n\n"
            f"*Generated without an LLM ({prior_turns} prior message(s) in context).*"
        )

    async def close(self) -> None:
        """Nothing to release."""
        return None


class OpenAIClient:
    """OpenAI-backed LLM client."""

    def __init__(
        self,
        api_key: str,
        *,
        chat_model: str = "gpt-4o",
        vision_model: str = "gpt-4o",
        embedding_model: str = "text-embedding-ada-002",
        temperature: float = 0.7,
        timeout_seconds: float = 60.0,
    ):
        """Initialize OpenAI client.

        Args:
            api_key: OpenAI API key (read from settings)
            chat_model: Model used to answer chat messages
            vision_model: Vision-capable model used to describe images
            embedding_model: Embedding model for chunks and queries
            temperature: Sampling temperature for chat answers
            timeout_seconds: Per-request timeout passed to the SDK
        """
        self.client = AsyncOpenAI(api_key=api_key, timeout=timeout_seconds)
        self.chat_model = chat_model
        self.vision_model = vision_model
        self.embedding_model = embedding_model
        self.temperature = temperature
        self._log = StructuredCallLogger()
        self._metrics = PrometheusCallMetrics()

    def _record(
        self,
        service: str,
        started: float,
        *,
        items: int | None = None,
        error_reason: str | None = None,
    ) -> None:
        latency_ms = (time.perf_counter() - started) * 1000
        outcome = "success" if error_reason is None else "error"
        self._metrics.record_latency(service, outcome, latency_ms)
        if error_reason is not None:
            self._metrics.inc_error(service, error_reason)
        self._log.log_call(service, outcome, latency_ms, items=items, error_reason=error_reason)

    async def create_embeddings(self, texts: list[str]) -> CallResult[list[list[float]]]:
        """Embed texts with the embeddings API."""
        started = time.perf_counter()

        try:
            response = await self.client.embeddings.create(
                model=self.embedding_model,
                input=texts,
            )
        except OpenAIError as e:
            self._record("embedding", started, items=len(texts), error_reason=type(e).__name__)
            return Err(EmbeddingServiceError(f"Embedding request failed: {e}"))

        # The API tags each vector with the index of its input
        data = sorted(response.data, key=lambda item: item.index)
        if len(data) != len(texts):
            self._record("embedding", started, items=len(texts), error_reason="count_mismatch")
            return Err(
                EmbeddingServiceError(
                    f"Embedding response had {len(data)} vectors for {len(texts)} inputs"
                )
            )

        self._record("embedding", started, items=len(texts))
        return Ok([list(item.embedding) for item in data])

    async def describe_image(self, data: bytes, media_type: str) -> CallResult[str]:
        """Describe an image with the vision model."""
        started = time.perf_counter()
        encoded = base64.b64encode(data).decode("ascii")

        try:
            response = await self.client.chat.completions.create(
                model=self.vision_model,
                messages=[
                    {
                        "role": "user",
                        "content": [
                            {"type": "text", "text": VISION_PROMPT},
                            {
                                "type": "image_url",
                                "image_url": {"url": f"data:{media_type};base64,{encoded}"},
                            },
                        ],
                    }
                ],
            )
        except OpenAIError as e:
            self._record("vision", started, error_reason=type(e).__name__)
            return Err(ExtractionError(f"Vision request failed: {e}"))

        if not response.choices:
            self._record("vision", started, error_reason="no_choices")
            return Err(ExtractionError("Vision model returned no choices"))

        description = response.choices[0].message.content or ""

        if not description.strip():
            self._record("vision", started, error_reason="empty_response")
            return Err(ExtractionError("Vision model returned an empty description"))

        self._record("vision", started)
        return Ok(description)

    async def complete_chat(self, messages: list[ChatTurn]) -> CallResult[str]:
        """Generate a reply with the chat completions API."""
        started = time.perf_counter()

        try:
            response = await self.client.chat.completions.create(
                model=self.chat_model,
                messages=messages,  # type: ignore[arg-type]
                temperature=self.temperature,
            )
        except OpenAIError as e:
            self._record("generation", started, error_reason=type(e).__name__)
            return Err(GenerationError(f"Chat completion failed: {e}"))

        if not response.choices:
            self._record("generation", started, error_reason="no_choices")
            return Err(GenerationError("Chat completion returned no choices"))

        answer = response.choices[0].message.content or ""

        # Validation: Check for empty response
        if not answer.strip():
            self._record("generation", started, error_reason="empty_response")
            return Err(GenerationError("Chat completion returned an empty response"))

        self._record("generation", started)
        return Ok(answer)

    async def close(self) -> None:
        """Close the underlying HTTP client."""
        await self.client.close()


def build_llm_client(settings: Settings) -> LLMClient:
    """Build the appropriate LLM client based on config.

    Returns:
        OpenAIClient if API key is configured, DeterministicStubClient otherwise
    """
    api_key = settings.openai_api_key

    if api_key and api_key.get_secret_value():
        logger.info("Using OpenAI client")
        return OpenAIClient(
            api_key=api_key.get_secret_value(),
            chat_model=settings.openai_chat_model,
            vision_model=settings.openai_vision_model,
            embedding_model=settings.openai_embedding_model,
            temperature=settings.chat_temperature,
            timeout_seconds=settings.openai_timeout_seconds,
        )
    else:
        logger.warning("No OpenAI API key configured, using deterministic stub client")
        return DeterministicStubClient(dimensions=settings.embedding_dimensions)
