"""Tests for overlapping text chunking."""
import pytest

from docqa.errors import InvalidConfiguration
from docqa.rag.chunker import TextChunker, split
from docqa.rag.loader import Page


def _sample_document() -> str:
    sentences = [
        f"Sentence number {i} talks about topic {i % 7} in some detail." for i in range(120)
    ]
    paragraphs = [" ".join(sentences[i : i + 5]) for i in range(0, len(sentences), 5)]
    return "\n\n".join(paragraphs)


@pytest.mark.parametrize("chunk_size,overlap", [(50, 0), (200, 20), (333, 100), (1000, 100)])
def test_segments_cover_text_with_exact_overlap(chunk_size, overlap):
    """Every character is covered and neighbours share exactly `overlap` chars."""
    text = _sample_document()
    segments = split(text, chunk_size, overlap, source_ref="doc")

    assert segments[0].char_start == 0
    assert segments[-1].char_end == len(text)

    for ordinal, segment in enumerate(segments):
        assert segment.ordinal == ordinal
        assert segment.source_ref == "doc"
        assert segment.text == text[segment.char_start : segment.char_end]
        assert 0 < len(segment.text) <= chunk_size

    for previous, current in zip(segments, segments[1:]):
        assert current.char_start == previous.char_end - overlap
        assert current.char_start > previous.char_start


def test_split_is_deterministic():
    text = _sample_document()
    first = split(text, 300, 50)
    second = split(text, 300, 50)
    assert first == second


def test_short_text_is_single_segment():
    segments = split("Just a short note.", 100, 10, source_ref="note.md")
    assert len(segments) == 1
    assert segments[0].text == "Just a short note."
    assert segments[0].ordinal == 0


def test_empty_text_yields_no_segments():
    assert split("", 100, 10) == []


def test_prefers_paragraph_boundary():
    first_paragraph = ("word " * 16).strip()
    text = first_paragraph + "\n\n" + "more " * 20

    segments = split(text, 100, 10)

    assert segments[0].text == first_paragraph + "\n\n"


def test_prefers_sentence_boundary():
    text = "x" * 75 + ". " + "y" * 50

    segments = split(text, 100, 0)

    assert segments[0].text == "x" * 75 + ". "
    assert segments[1].text == "y" * 50


def test_long_word_overflows_instead_of_being_cut():
    text = "a" * 110 + " tail"

    segments = split(text, 100, 0)

    assert [s.text for s in segments] == ["a" * 110, " tail"]


def test_huge_word_falls_back_to_hard_cut():
    text = "b" * 300

    segments = split(text, 100, 10)

    assert len(segments[0].text) == 100
    assert segments[-1].char_end == 300
    assert all(len(s.text) <= 125 for s in segments)
    for previous, current in zip(segments, segments[1:]):
        assert current.char_start == previous.char_end - 10


def test_final_segment_may_be_short():
    text = "alpha beta gamma delta " * 10
    segments = split(text, 60, 10)
    assert len(segments[-1].text) < 60


@pytest.mark.parametrize("chunk_size,overlap", [(0, 0), (-5, 0), (10, 10), (10, 20), (10, -1)])
def test_invalid_parameters_raise(chunk_size, overlap):
    with pytest.raises(InvalidConfiguration):
        TextChunker(chunk_size=chunk_size, chunk_overlap=overlap)


def test_split_pages_restarts_ordinals_per_page():
    chunker = TextChunker(chunk_size=40, chunk_overlap=5)
    pages = [
        Page(text="first page " * 8, source_ref="cv.pdf#page=1", page_number=1),
        Page(text="second page " * 8, source_ref="cv.pdf#page=2", page_number=2),
    ]

    segments = chunker.split_pages(pages)

    by_page = {}
    for segment in segments:
        by_page.setdefault(segment.source_ref, []).append(segment.ordinal)

    assert list(by_page) == ["cv.pdf#page=1", "cv.pdf#page=2"]
    for ordinals in by_page.values():
        assert ordinals == list(range(len(ordinals)))


def test_chunk_stats():
    chunker = TextChunker(chunk_size=50, chunk_overlap=5)
    segments = chunker.split(_sample_document())
    stats = chunker.get_chunk_stats(segments)

    assert stats["chunk_count"] == len(segments)
    assert stats["max_chunk_size"] <= 50
    assert stats["overlap"] == 5
    assert chunker.get_chunk_stats([])["chunk_count"] == 0
