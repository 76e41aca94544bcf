"""Unit tests for the sentence-aligned chunker."""

import pytest

from backend.docchat.docs.chunker import CHUNK_SEPARATOR, chunk_text, split_sentences


def _sentence(i: int) -> str:
    """49-character sentence with a unique prefix."""
    prefix = f"Sentence {i:02d} "
    return prefix + "x" * (48 - len(prefix)) + "."


def test_three_short_sentences_form_one_chunk() -> None:
    """Text well under the target size stays in a single chunk."""
    text = "Sentence one. Sentence two. Sentence three."

    chunks = chunk_text(text, 1000)

    assert chunks == ["Sentence one. Sentence two. Sentence three."]


def test_fifty_sentences_split_into_three_bounded_chunks() -> None:
    """2500 characters of 50-character sentences yield 3 chunks within 1000 chars."""
    text = "".join(_sentence(i) + " " for i in range(50))
    assert len(text) == 2500

    chunks = chunk_text(text, 1000)

    assert len(chunks) == 3
    assert all(len(chunk) <= 1000 for chunk in chunks)
    assert CHUNK_SEPARATOR.join(chunks) == text.strip()


def test_reconstruction_collapses_whitespace_between_sentences() -> None:
    """Joining chunks reproduces the text up to inter-sentence whitespace."""
    text = "First point!\n\nSecond point?   Third point.\tFourth point."

    chunks = chunk_text(text, 30)

    assert CHUNK_SEPARATOR.join(chunks) == "First point! Second point? Third point. Fourth point."
    assert all(len(chunk) <= 30 for chunk in chunks)


def test_oversized_sentence_is_its_own_chunk() -> None:
    """A sentence longer than the target is kept whole rather than cut."""
    long_sentence = "A" * 120 + "."
    text = f"Short one. {long_sentence} Short two."

    chunks = chunk_text(text, 50)

    assert chunks == ["Short one.", long_sentence, "Short two."]


def test_chunking_is_deterministic() -> None:
    """Same input and size always produce the same chunks."""
    text = " ".join(_sentence(i) for i in range(30))

    assert chunk_text(text, 300) == chunk_text(text, 300)


def test_empty_and_whitespace_text_produce_no_chunks() -> None:
    assert chunk_text("", 1000) == []
    assert chunk_text("   \n\t ", 1000) == []


def test_text_without_terminal_punctuation_is_one_sentence() -> None:
    """No sentence boundary means the whole text is one sentence."""
    assert split_sentences("  no punctuation here at all  ") == ["no punctuation here at all"]


def test_no_chunk_is_empty() -> None:
    text = "One. Two. Three. Four. Five. Six."

    for size in (1, 5, 10, 1000):
        assert all(chunk for chunk in chunk_text(text, size))


def test_invalid_target_size_raises() -> None:
    with pytest.raises(ValueError, match="target_size"):
        chunk_text("Some text.", 0)
