"""Pytest configuration and fixtures shared by the test suite."""
import zlib
from typing import Dict, List, Optional, Sequence

import pytest

from docqa.rag.chunker import Segment
from docqa.rag.pipeline import QueryPipeline
from docqa.rag.vector_index import IndexedEntry, VectorIndex


RESUME_SECTIONS = [
    "Experience: 5 years at Acme as engineer.",
    "Education: BS Computer Science.",
    "Skills: Go, Rust, distributed systems.",
]

RESUME_QUESTION = "What did the candidate study?"

# Keyword -> vector; the question sits closest to the education section
RESUME_VECTORS = {
    "Experience": [1.0, 0.0, 0.0],
    "Education": [0.0, 1.0, 0.0],
    "Skills": [0.0, 0.0, 1.0],
    "study": [0.1, 0.9, 0.1],
}


class StubEmbeddingGateway:
    """Deterministic embedder.

    Texts containing a known keyword get that keyword's vector; anything else
    gets a vector derived from a checksum of the text.
    """

    def __init__(self, vectors: Optional[Dict[str, List[float]]] = None, dimension: int = 3):
        self.vectors = vectors or {}
        self.dimension = dimension
        self.calls: List[str] = []
        self.events: Optional[List[str]] = None
        self.error: Optional[Exception] = None

    def _vector(self, text: str) -> List[float]:
        for keyword, vector in self.vectors.items():
            if keyword in text:
                return list(vector)
        seed = zlib.crc32(text.encode("utf-8"))
        return [((seed >> (i * 5)) % 31) / 31.0 + 0.01 for i in range(self.dimension)]

    async def embed(self, text: str) -> List[float]:
        self.calls.append(text)
        if self.events is not None:
            self.events.append("embed")
        if self.error is not None:
            raise self.error
        return self._vector(text)

    async def embed_batch(self, texts: Sequence[str]) -> List[List[float]]:
        return [await self.embed(text) for text in texts]


class StubGenerationGateway:
    """Generator that echoes the prompt back, or raises a configured error."""

    def __init__(self, reply: Optional[str] = None):
        self.reply = reply
        self.prompts: List[str] = []
        self.events: Optional[List[str]] = None
        self.error: Optional[Exception] = None

    async def generate(self, prompt: str) -> str:
        self.prompts.append(prompt)
        if self.events is not None:
            self.events.append("generate")
        if self.error is not None:
            raise self.error
        return self.reply if self.reply is not None else prompt


class RecordingIndex(VectorIndex):
    """VectorIndex that records each search in a shared event log."""

    def __init__(self, events: List[str]):
        super().__init__()
        self.events = events

    def search(self, query, k):
        self.events.append("search")
        return super().search(query, k)


def make_segment(text: str, ordinal: int = 0, source_ref: str = "doc") -> Segment:
    return Segment(
        text=text,
        source_ref=source_ref,
        ordinal=ordinal,
        char_start=0,
        char_end=len(text),
    )


@pytest.fixture
def resume_text() -> str:
    """One short resume with three paragraphs."""
    return "\n\n".join(RESUME_SECTIONS)


@pytest.fixture
def embedder() -> StubEmbeddingGateway:
    """Embedder that knows the resume vectors."""
    return StubEmbeddingGateway(vectors=RESUME_VECTORS)


@pytest.fixture
def generator() -> StubGenerationGateway:
    """Generator that echoes its prompt."""
    return StubGenerationGateway()


@pytest.fixture
def resume_index() -> VectorIndex:
    """Index built from the three resume sections."""
    index = VectorIndex()
    index.build(
        IndexedEntry(segment=make_segment(text, ordinal=i), vector=vector)
        for i, (text, vector) in enumerate(
            zip(RESUME_SECTIONS, [RESUME_VECTORS[k] for k in ("Experience", "Education", "Skills")])
        )
    )
    return index


@pytest.fixture
def pipeline(embedder, generator, resume_index) -> QueryPipeline:
    """Pipeline over the resume index retrieving one segment."""
    return QueryPipeline(embedder=embedder, generator=generator, index=resume_index, top_k=1)
