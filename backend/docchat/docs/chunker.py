"""Document chunker - deterministic sentence-aligned text splitting."""

import re

# Sentence boundary: terminal punctuation followed by whitespace
_SENTENCE_BOUNDARY = re.compile(r"(?<=[.!?])\s+")

# Joins sentences inside a chunk and chunks back into text
CHUNK_SEPARATOR = " "


def split_sentences(text: str) -> list[str]:
    """Split text into sentences at '.', '!' or '?' followed by whitespace.

    Whitespace around the text is stripped; empty pieces are dropped.
    """
    stripped = text.strip()
    if not stripped:
        return []
    return [s for s in _SENTENCE_BOUNDARY.split(stripped) if s]


def chunk_text(text: str, target_size: int = 1000) -> list[str]:
    """Chunk document text into ordered, sentence-aligned segments.

    Pure function with no I/O or randomness. Sentences are accumulated
    greedily while the joined chunk (sentences separated by CHUNK_SEPARATOR)
    stays within target_size characters.

    Args:
        text: Extracted document text
        target_size: Maximum characters per chunk (default 1000)

    Returns:
        Ordered chunk texts. Position in the list is the chunk ordinal.
        - No chunk is empty
        - A single sentence longer than target_size is its own chunk
        - CHUNK_SEPARATOR.join(chunks) reproduces the text with
          inter-sentence whitespace collapsed to one space

    Raises:
        ValueError: If target_size < 1
    """
    if target_size < 1:
        raise ValueError(f"target_size must be positive, got {target_size}")

    chunks: list[str] = []
    current = ""

    for sentence in split_sentences(text):
        if not current:
            current = sentence
        elif len(current) + len(CHUNK_SEPARATOR) + len(sentence) <= target_size:
            current = f"{current}{CHUNK_SEPARATOR}{sentence}"
        else:
            chunks.append(current)
            current = sentence

    # Flush any remaining chunk
    if current:
        chunks.append(current)

    return chunks
