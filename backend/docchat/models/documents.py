"""Document and chunk domain models."""

from datetime import datetime
from enum import Enum
from uuid import UUID

from pydantic import BaseModel, Field


class MediaType(str, Enum):
    """Media types accepted for upload."""

    text = "text/plain"
    pdf = "application/pdf"
    doc = "application/msword"
    docx = "application/vnd.openxmlformats-officedocument.wordprocessingml.document"
    png = "image/png"
    jpeg = "image/jpeg"

    @property
    def is_image(self) -> bool:
        return self in (MediaType.png, MediaType.jpeg)

    @property
    def is_word_processor(self) -> bool:
        return self in (MediaType.doc, MediaType.docx)


# Non-canonical spellings that clients commonly send
MEDIA_TYPE_ALIASES: dict[str, MediaType] = {
    "image/jpg": MediaType.jpeg,
    "image/pjpeg": MediaType.jpeg,
}


class Document(BaseModel):
    """Uploaded document with its extracted text."""

    id: UUID
    owner_id: UUID
    filename: str
    media_type: MediaType
    storage_path: str
    file_size: int = Field(..., ge=0)
    extracted_text: str
    created_at: datetime
    chunk_count: int = 0


class ChunkMatch(BaseModel):
    """Chunk returned by a similarity query."""

    content: str
    similarity: float
    ordinal: int
