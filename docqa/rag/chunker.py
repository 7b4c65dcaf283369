"""Text chunking with overlap for RAG pipeline.

Implements character-based chunking to avoid tokenizer dependencies.
Windows prefer to end on a paragraph, sentence or word boundary close to the
window edge and never cut inside a word unless the word is far longer than
the window.
"""
import re
from dataclasses import dataclass
from typing import Iterable, List
import structlog

from docqa import config
from docqa.errors import InvalidConfiguration
from docqa.rag.loader import Page

logger = structlog.get_logger()

# Sentence end followed by whitespace
SENTENCE_BREAK = re.compile(r"[.!?]\s")

# Semantic breaks are only taken in the last 30% of a window
BOUNDARY_SEARCH_RATIO = 0.7


@dataclass(frozen=True)
class Segment:
    """A contiguous span of source text, the unit of retrieval."""

    text: str
    source_ref: str
    ordinal: int
    char_start: int
    char_end: int


class TextChunker:
    """Character-based text chunker with overlap support."""

    def __init__(
        self,
        chunk_size: int = None,
        chunk_overlap: int = None,
    ):
        """Initialize the text chunker.

        Args:
            chunk_size: Size of each chunk in characters (default from config)
            chunk_overlap: Overlap between chunks in characters (default from config)

        Raises:
            InvalidConfiguration: If size is not positive or overlap is not in [0, size)
        """
        self.chunk_size = config.CHUNK_SIZE if chunk_size is None else chunk_size
        self.chunk_overlap = config.CHUNK_OVERLAP if chunk_overlap is None else chunk_overlap

        # Validate parameters
        if self.chunk_size <= 0:
            raise InvalidConfiguration(
                f"Chunk size must be positive, got {self.chunk_size}"
            )
        if self.chunk_overlap < 0 or self.chunk_overlap >= self.chunk_size:
            raise InvalidConfiguration(
                f"Overlap ({self.chunk_overlap}) must be in [0, "
                f"chunk size ({self.chunk_size}))"
            )

        logger.info(
            "chunker_initialized",
            chunk_size=self.chunk_size,
            chunk_overlap=self.chunk_overlap,
        )

    def split(self, text: str, source_ref: str = "") -> List[Segment]:
        """Split text into overlapping segments.

        Adjacent segments share exactly ``chunk_overlap`` characters and
        every character of ``text`` belongs to at least one segment.

        Args:
            text: Text to chunk
            source_ref: Identifier of the document or page the text came from

        Returns:
            Segments in source order, ``ordinal`` counting from 0
        """
        if not text:
            return []

        text_length = len(text)
        segments: List[Segment] = []
        start = 0

        while True:
            end = min(start + self.chunk_size, text_length)

            # Only move the cut when there is text after the window
            if end < text_length:
                end = self._find_break(text, start, end)

            segments.append(
                Segment(
                    text=text[start:end],
                    source_ref=source_ref,
                    ordinal=len(segments),
                    char_start=start,
                    char_end=end,
                )
            )

            if end >= text_length:
                break

            # _find_break keeps every segment longer than the overlap
            start = end - self.chunk_overlap

        logger.debug(
            "text_chunked",
            source_ref=source_ref,
            text_length=text_length,
            chunk_count=len(segments),
        )

        return segments

    def split_pages(self, pages: Iterable[Page]) -> List[Segment]:
        """Split each page on its own; ordinals restart for every page."""
        segments: List[Segment] = []
        for page in pages:
            segments.extend(self.split(page.text, source_ref=page.source_ref))

        logger.info(
            "pages_chunked",
            chunk_count=len(segments),
            avg_chunk_size=(
                sum(len(s.text) for s in segments) // len(segments) if segments else 0
            ),
        )
        return segments

    def _find_break(self, text: str, start: int, window_end: int) -> int:
        """Pick where the segment starting at ``start`` should end.

        Args:
            text: Full text being chunked
            start: Start of the current window
            window_end: Hard window edge, ``start + chunk_size``

        Returns:
            Exclusive end offset, always greater than ``start + chunk_overlap``
        """
        min_end = start + self.chunk_overlap + 1
        tail_start = max(min_end, start + int(self.chunk_size * BOUNDARY_SEARCH_RATIO))

        # Paragraph boundary (double newline)
        last_paragraph = text.rfind("\n\n", tail_start, window_end)
        if last_paragraph != -1:
            return last_paragraph + 2

        # Sentence boundary (period, !, ? followed by whitespace)
        last_sentence = None
        for match in SENTENCE_BREAK.finditer(text, tail_start, window_end):
            last_sentence = match
        if last_sentence is not None:
            return last_sentence.end()

        # Single newline
        last_newline = text.rfind("\n", tail_start, window_end)
        if last_newline != -1:
            return last_newline + 1

        # Window edge already sits between two words
        if text[window_end - 1].isspace() or text[window_end].isspace():
            return window_end

        # Last word boundary inside the window
        for pos in range(window_end - 1, min_end - 2, -1):
            if text[pos].isspace():
                return pos + 1

        # One word fills the window: let it finish if it ends soon after the edge
        overflow_limit = min(len(text), window_end + max(1, self.chunk_size // 4))
        for pos in range(window_end, overflow_limit):
            if text[pos].isspace():
                return pos
        if overflow_limit == len(text):
            return overflow_limit

        return window_end

    def get_chunk_stats(self, segments: List[Segment]) -> dict:
        """Get statistics about a set of segments.

        Args:
            segments: List of Segment objects

        Returns:
            Dictionary with chunk statistics
        """
        if not segments:
            return {
                "chunk_count": 0,
                "total_chars": 0,
                "avg_chunk_size": 0,
                "min_chunk_size": 0,
                "max_chunk_size": 0,
                "overlap": self.chunk_overlap,
            }

        chunk_sizes = [len(s.text) for s in segments]

        return {
            "chunk_count": len(segments),
            "total_chars": sum(chunk_sizes),
            "avg_chunk_size": sum(chunk_sizes) // len(segments),
            "min_chunk_size": min(chunk_sizes),
            "max_chunk_size": max(chunk_sizes),
            "overlap": self.chunk_overlap,
        }


# Convenience function
def split(
    text: str, chunk_size: int, overlap: int, source_ref: str = ""
) -> List[Segment]:
    """Split text with an explicit window size and overlap.

    Raises:
        InvalidConfiguration: If the parameters are out of range
    """
    return TextChunker(chunk_size=chunk_size, chunk_overlap=overlap).split(
        text, source_ref=source_ref
    )
