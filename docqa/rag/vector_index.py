"""In-memory vector index for exact cosine similarity search.

Handles:
- One-shot build from (segment, embedding) pairs
- Dimension validation
- Exact top-k search with deterministic tie-breaking
- Lifecycle tracking (uninitialized -> building -> ready)

The built state lives in an immutable snapshot that is published with a
single assignment, so concurrent searches never need a lock and never see a
half-built index.
"""
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple
import numpy as np
import faiss
import structlog

from docqa.errors import EmptyCorpus, IndexNotReady, InvalidConfiguration
from docqa.rag.chunker import Segment

logger = structlog.get_logger()


class IndexPhase(str, Enum):
    """Lifecycle of a VectorIndex."""

    UNINITIALIZED = "uninitialized"
    BUILDING = "building"
    READY = "ready"


@dataclass(frozen=True)
class IndexedEntry:
    """A segment together with its embedding."""

    segment: Segment
    vector: Sequence[float]


@dataclass(frozen=True)
class SearchHit:
    """A retrieved segment and its cosine similarity to the query."""

    segment: Segment
    score: float


@dataclass(frozen=True)
class _Snapshot:
    entries: Tuple[IndexedEntry, ...]
    index: faiss.Index
    ordinals: np.ndarray
    dimension: int


def _normalize(vectors: np.ndarray) -> np.ndarray:
    """L2-normalize rows; zero rows stay zero."""
    norms = np.linalg.norm(vectors, axis=1, keepdims=True)
    normalized = np.zeros_like(vectors)
    np.divide(vectors, norms, out=normalized, where=norms > 0)
    return np.ascontiguousarray(normalized, dtype=np.float32)


class VectorIndex:
    """Exact cosine-similarity index over a fixed set of segments."""

    def __init__(self):
        self._snapshot: Optional[_Snapshot] = None
        self._phase = IndexPhase.UNINITIALIZED

    @property
    def phase(self) -> IndexPhase:
        return self._phase

    @property
    def is_ready(self) -> bool:
        return self._phase is IndexPhase.READY

    @property
    def dimension(self) -> Optional[int]:
        snapshot = self._snapshot
        return snapshot.dimension if snapshot else None

    def __len__(self) -> int:
        snapshot = self._snapshot
        return len(snapshot.entries) if snapshot else 0

    def build(self, entries: Iterable[IndexedEntry]) -> None:
        """Replace the index contents with ``entries``.

        A failed build leaves the previous contents and phase untouched.

        Args:
            entries: Segments with their embedding vectors

        Raises:
            EmptyCorpus: If there are no entries
            InvalidConfiguration: If vectors are empty, non-finite or of mixed dimension
        """
        entries = tuple(entries)
        if not entries:
            raise EmptyCorpus("Cannot build an index from an empty corpus")

        previous_phase = self._phase
        if self._snapshot is None:
            self._phase = IndexPhase.BUILDING

        try:
            snapshot = self._make_snapshot(entries)
        except Exception:
            self._phase = previous_phase
            raise

        self._snapshot = snapshot
        self._phase = IndexPhase.READY

        logger.info(
            "index_built",
            entry_count=len(entries),
            dimension=snapshot.dimension,
        )

    def _make_snapshot(self, entries: Tuple[IndexedEntry, ...]) -> _Snapshot:
        dimensions = {len(entry.vector) for entry in entries}
        if len(dimensions) != 1:
            raise InvalidConfiguration(
                f"Embedding dimension mismatch: found dimensions {sorted(dimensions)}"
            )
        dimension = dimensions.pop()
        if dimension == 0:
            raise InvalidConfiguration("Embedding vectors must not be empty")

        matrix = np.asarray([entry.vector for entry in entries], dtype=np.float32)
        if not np.isfinite(matrix).all():
            raise InvalidConfiguration("Embedding vectors contain non-finite values")

        # Inner product of unit vectors is cosine similarity
        index = faiss.IndexFlatIP(dimension)
        index.add(_normalize(matrix))

        ordinals = np.array([entry.segment.ordinal for entry in entries], dtype=np.int64)

        return _Snapshot(
            entries=entries,
            index=index,
            ordinals=ordinals,
            dimension=dimension,
        )

    def search(self, query: Sequence[float], k: int) -> List[SearchHit]:
        """Return the ``k`` entries most similar to ``query``.

        Every entry is scored (exact scan). Hits are ordered by descending
        score, then ascending segment ordinal, then insertion order.

        Args:
            query: Query embedding
            k: Number of results, at least 1

        Returns:
            Up to ``k`` SearchHit objects, best first

        Raises:
            IndexNotReady: If the index has not been built
            InvalidConfiguration: If ``k`` < 1 or the query dimension differs
        """
        snapshot = self._snapshot
        if snapshot is None:
            raise IndexNotReady("Vector index has not been built yet")

        if k < 1:
            raise InvalidConfiguration(f"k must be at least 1, got {k}")

        query_vector = np.asarray([query], dtype=np.float32)
        if query_vector.ndim != 2 or query_vector.shape[1] != snapshot.dimension:
            raise InvalidConfiguration(
                f"Query dimension mismatch: expected {snapshot.dimension}, "
                f"got {query_vector.shape[-1]}"
            )
        if not np.isfinite(query_vector).all():
            raise InvalidConfiguration("Query vector contains non-finite values")

        total = snapshot.index.ntotal
        distances, ids = snapshot.index.search(_normalize(query_vector), total)

        # Back to insertion order so ties can be broken deterministically
        scores = np.empty(total, dtype=np.float32)
        scores[ids[0]] = distances[0]
        # Rounded so float32 noise between parallel vectors reads as a tie
        scores = np.round(np.clip(scores, -1.0, 1.0), 6)

        order = np.lexsort((np.arange(total), snapshot.ordinals, -scores))
        top = order[: min(k, total)]

        logger.debug(
            "vector_search_completed",
            k=k,
            results_found=len(top),
            top_score=float(scores[top[0]]),
        )

        return [
            SearchHit(segment=snapshot.entries[i].segment, score=float(scores[i]))
            for i in top
        ]

    def get_stats(self) -> Dict[str, Any]:
        """Get statistics about the index.

        Returns:
            Dictionary with index statistics
        """
        snapshot = self._snapshot
        return {
            "phase": self._phase.value,
            "entry_count": len(snapshot.entries) if snapshot else 0,
            "dimension": snapshot.dimension if snapshot else None,
            "sources": (
                sorted({e.segment.source_ref for e in snapshot.entries}) if snapshot else []
            ),
        }


# Process-wide index, built once at startup
_index_instance: Optional[VectorIndex] = None


def get_vector_index() -> VectorIndex:
    """Get the process-wide vector index.

    Returns:
        VectorIndex instance (possibly not built yet)
    """
    global _index_instance
    if _index_instance is None:
        _index_instance = VectorIndex()
    return _index_instance
