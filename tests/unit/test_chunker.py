"""Tests for overlapping text chunking."""
import pytest

from chatme.rag.chunker import TextChunker, segment


def reassemble(chunks, overlap):
    if not chunks:
        return ""
    return chunks[0] + "".join(chunk[overlap:] for chunk in chunks[1:])


SAMPLE = (
    "Retrieval augmented generation grounds answers in stored text. "
    "Pages are split into overlapping pieces before they are embedded.\n\n"
    "Each piece keeps its source URL so answers can cite where they came from! "
    "Does the last piece survive? It should, even when it is short."
)


@pytest.mark.parametrize(
    "text,chunk_size,overlap",
    [
        (SAMPLE, 50, 10),
        (SAMPLE, 64, 0),
        (SAMPLE, 7, 6),
        ("abcdefghij", 3, 1),
        ("short", 512, 128),
    ],
)
def test_chunks_reassemble_to_original(text, chunk_size, overlap):
    chunks = segment(text, chunk_size, overlap)

    assert reassemble(chunks, overlap) == text
    assert all(0 < len(chunk) <= chunk_size for chunk in chunks)


def test_consecutive_chunks_share_overlap():
    chunks = segment(SAMPLE, 40, 12)

    for previous, current in zip(chunks, chunks[1:]):
        assert previous[-12:] == current[:12]


def test_trailing_content_is_kept():
    chunks = segment("x" * 25, 10, 2)

    assert chunks == ["x" * 10, "x" * 10, "x" * 9]


def test_text_of_size_plus_overlap_gives_two_chunks():
    text = "".join(chr(ord("a") + i % 26) for i in range(512 + 128))

    chunks = segment(text, 512, 128)

    assert len(chunks) == 2
    assert chunks[0] == text[:512]
    assert chunks[1] == text[384:]


def test_empty_text_gives_no_chunks():
    assert segment("", 10, 2) == []


def test_is_deterministic():
    assert segment(SAMPLE, 30, 5) == segment(SAMPLE, 30, 5)


def test_chunk_positions_and_indexes():
    chunker = TextChunker(chunk_size=10, chunk_overlap=3)

    chunks = chunker.chunk_text("0123456789abcdefghij")

    assert [(c.char_start, c.char_end) for c in chunks] == [(0, 10), (7, 17), (14, 20)]
    assert [c.chunk_index for c in chunks] == [0, 1, 2]


@pytest.mark.parametrize("chunk_size,overlap", [(10, 10), (10, 11), (0, 0), (10, -1)])
def test_invalid_parameters_rejected(chunk_size, overlap):
    with pytest.raises(ValueError):
        TextChunker(chunk_size=chunk_size, chunk_overlap=overlap)


def test_zero_overlap_is_allowed():
    chunker = TextChunker(chunk_size=5, chunk_overlap=0)

    assert [c.content for c in chunker.chunk_text("abcdefghij")] == ["abcde", "fghij"]


def test_boundary_mode_cuts_at_sentences_and_still_reassembles():
    chunker = TextChunker(chunk_size=70, chunk_overlap=10, respect_boundaries=True)

    chunks = [c.content for c in chunker.chunk_text(SAMPLE)]

    assert chunks[0].endswith(". ")
    assert reassemble(chunks, 10) == SAMPLE
    assert all(len(chunk) <= 70 for chunk in chunks)


def test_chunk_stats():
    chunker = TextChunker(chunk_size=10, chunk_overlap=2)

    stats = chunker.get_chunk_stats(chunker.chunk_text("x" * 25))

    assert stats["chunk_count"] == 3
    assert stats["max_chunk_size"] == 10
    assert stats["min_chunk_size"] == 9
    assert chunker.get_chunk_stats([])["chunk_count"] == 0
