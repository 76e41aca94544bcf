"""Error taxonomy shared by ingestion, retrieval and chat.

Every error the service raises on purpose derives from DocChatError. The API
layer maps each class to an HTTP status (see ``status_code``) and renders the
response envelope; ``public_message`` is always safe to show, ``str(exc)`` may
carry internal detail and is only exposed in development.
"""

from uuid import UUID


class DocChatError(Exception):
    """Base class for expected service failures."""

    status_code: int = 500
    public_message: str = "Internal error"

    def __init__(self, detail: str | None = None) -> None:
        super().__init__(detail or self.public_message)
        self.detail = detail or self.public_message


class ValidationError(DocChatError):
    """Missing or malformed input, rejected before any external call."""

    status_code = 400
    public_message = "Invalid request"

    def __init__(self, detail: str | None = None) -> None:
        super().__init__(detail)
        # Validation messages describe the caller's own input, so they are public
        if detail:
            self.public_message = detail


class NotFoundError(DocChatError):
    """Referenced document or chat does not exist or is not owned by the caller."""

    status_code = 404
    public_message = "Resource not found"

    def __init__(self, resource: str, resource_id: UUID | str | None = None) -> None:
        detail = f"{resource} not found" if resource_id is None else f"{resource} {resource_id} not found"
        super().__init__(detail)
        self.resource = resource
        self.public_message = f"{resource} not found"


class UnsupportedMediaType(DocChatError):
    """Extraction cannot proceed for the declared media type."""

    status_code = 415
    public_message = "Unsupported media type"

    def __init__(self, media_type: str) -> None:
        super().__init__(f"Unsupported media type: {media_type!r}")
        self.media_type = media_type
        self.public_message = "Only PDF, TXT, DOC, DOCX, PNG and JPG files are allowed"


class ExternalServiceError(DocChatError):
    """An external model call (embedding, extraction/vision, generation) failed."""

    status_code = 502
    public_message = "External service failure"

    def __init__(self, detail: str | None = None, *, service: str = "external") -> None:
        super().__init__(detail)
        self.service = service


class EmbeddingServiceError(ExternalServiceError):
    """Embedding model call failed or returned malformed vectors."""

    public_message = "Failed to create embeddings"

    def __init__(self, detail: str | None = None) -> None:
        super().__init__(detail, service="embedding")


class ExtractionError(ExternalServiceError):
    """Text could not be extracted from the uploaded bytes."""

    public_message = "Failed to extract text from document"

    def __init__(self, detail: str | None = None) -> None:
        super().__init__(detail, service="extraction")


class GenerationError(ExternalServiceError):
    """Generative model call failed; the user turn is kept and marked failed."""

    public_message = "Failed to generate a response"

    def __init__(self, detail: str | None = None, *, failed_message_id: UUID | None = None) -> None:
        super().__init__(detail, service="generation")
        self.failed_message_id = failed_message_id


class PersistenceError(DocChatError):
    """Underlying store read/write failure. Not retried."""

    status_code = 500
    public_message = "Database operation failed"


class RateLimitedError(DocChatError):
    """Caller exceeded the message quota for the current window."""

    status_code = 429
    public_message = "Too many requests"

    def __init__(self, retry_after_seconds: int) -> None:
        super().__init__(f"Rate limited, retry after {retry_after_seconds}s")
        self.retry_after_seconds = retry_after_seconds
