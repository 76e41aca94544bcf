"""Text extractor - media-type dispatch from raw upload bytes to plain text."""

import io
import logging
import zipfile
from pathlib import PurePath

from docx import Document as DocxDocument
from docx.opc.exceptions import PackageNotFoundError
from pypdf import PdfReader
from pypdf.errors import PyPdfError

from backend.docchat.errors import ExtractionError, UnsupportedMediaType
from backend.docchat.llm.client import LLMClient
from backend.docchat.llm.result import Err
from backend.docchat.models.documents import MEDIA_TYPE_ALIASES, MediaType

logger = logging.getLogger(__name__)

_EXTENSION_TYPES: dict[str, MediaType] = {
    ".txt": MediaType.text,
    ".pdf": MediaType.pdf,
    ".doc": MediaType.doc,
    ".docx": MediaType.docx,
    ".png": MediaType.png,
    ".jpg": MediaType.jpeg,
    ".jpeg": MediaType.jpeg,
}

# Declared types that carry no information about the content
_GENERIC_TYPES = {"", "application/octet-stream", "binary/octet-stream"}


def resolve_media_type(declared: str | None, filename: str | None = None) -> MediaType:
    """Map a declared content type to a supported MediaType.

    Parameters such as "; charset=utf-8" are ignored. When the declared type
    is missing or generic, the filename extension decides.

    Raises:
        UnsupportedMediaType: If the type is not one of the accepted formats
    """
    base = (declared or "").split(";", 1)[0].strip().lower()

    if base in _GENERIC_TYPES and filename:
        suffix = PurePath(filename).suffix.lower()
        if suffix in _EXTENSION_TYPES:
            return _EXTENSION_TYPES[suffix]

    if base in MEDIA_TYPE_ALIASES:
        return MEDIA_TYPE_ALIASES[base]

    try:
        return MediaType(base)
    except ValueError:
        raise UnsupportedMediaType(declared or "") from None


def _extract_plain_text(data: bytes) -> str:
    return data.decode("utf-8", errors="replace")


def _extract_pdf(data: bytes) -> str:
    try:
        reader = PdfReader(io.BytesIO(data))
        pages = [page.extract_text() or "" for page in reader.pages]
    except (PyPdfError, ValueError, KeyError, TypeError) as e:
        raise ExtractionError(f"Could not read PDF: {e}") from e

    return "\n".join(pages)


def _extract_word(data: bytes) -> str:
    try:
        document = DocxDocument(io.BytesIO(data))
    except (PackageNotFoundError, zipfile.BadZipFile, KeyError, ValueError) as e:
        # Legacy binary .doc files are not OOXML packages
        raise ExtractionError(f"Could not read word-processor document: {e}") from e

    segments = [paragraph.text for paragraph in document.paragraphs]
    for table in document.tables:
        for row in table.rows:
            segments.append(" | ".join(cell.text for cell in row.cells))

    return "\n".join(segments)


async def _describe_image(data: bytes, media_type: MediaType, vision: LLMClient) -> str:
    result = await vision.describe_image(data, media_type.value)
    if isinstance(result, Err):
        if isinstance(result.error, ExtractionError):
            raise result.error
        raise ExtractionError(result.error.detail) from result.error
    return result.value


async def extract_text(data: bytes, media_type: MediaType, *, vision: LLMClient) -> str:
    """Convert uploaded bytes of a known media type into plain text.

    Plain text is passed through; PDF pages and word-processor paragraphs are
    joined with newlines; images are described by the vision model and the
    description stands in for the document's text.

    Args:
        data: Raw uploaded bytes
        media_type: Resolved media type
        vision: Client used for image descriptions

    Returns:
        Extracted text (never blank)

    Raises:
        ExtractionError: If parsing or the vision call fails, or no text is found
    """
    if media_type == MediaType.text:
        text = _extract_plain_text(data)
    elif media_type == MediaType.pdf:
        text = _extract_pdf(data)
    elif media_type.is_word_processor:
        text = _extract_word(data)
    elif media_type.is_image:
        text = await _describe_image(data, media_type, vision)
    else:
        raise UnsupportedMediaType(media_type.value)

    if not text.strip():
        raise ExtractionError("No extractable text found in document")

    logger.info(f"Extracted {len(text)} characters from {media_type.value}")
    return text
