"""Ingest pipeline for building the vector index.

Orchestrates:
- Document loading
- Text chunking
- Embedding generation
- Index build
"""
from pathlib import Path
from typing import Any, Dict, List
import structlog

from docqa.errors import EmptyCorpus
from docqa.rag.chunker import TextChunker
from docqa.rag.gateways import EmbeddingGateway
from docqa.rag.loader import Page, load_pages
from docqa.rag.vector_index import IndexedEntry, VectorIndex

logger = structlog.get_logger()


class IngestPipeline:
    """Pipeline for turning a document into a ready vector index."""

    def __init__(
        self,
        embedder: EmbeddingGateway,
        index: VectorIndex,
        chunk_size: int = None,
        chunk_overlap: int = None,
    ):
        """Initialize the ingest pipeline.

        Args:
            embedder: Gateway used to embed segments
            index: Index to build
            chunk_size: Chunk size in characters (default from config)
            chunk_overlap: Chunk overlap in characters (default from config)

        Raises:
            InvalidConfiguration: If the chunking parameters are invalid
        """
        self.embedder = embedder
        self.index = index
        self.chunker = TextChunker(chunk_size=chunk_size, chunk_overlap=chunk_overlap)

        self.stats = self._empty_stats()

        logger.info(
            "ingest_pipeline_initialized",
            chunk_size=self.chunker.chunk_size,
            chunk_overlap=self.chunker.chunk_overlap,
        )

    @staticmethod
    def _empty_stats() -> Dict[str, Any]:
        return {
            "pages_loaded": 0,
            "segments_created": 0,
            "embeddings_generated": 0,
            "dimension": None,
        }

    async def ingest_pages(self, pages: List[Page]) -> Dict[str, Any]:
        """Chunk, embed and index the given pages.

        Args:
            pages: Page texts in document order

        Returns:
            Dictionary with ingestion statistics

        Raises:
            EmptyCorpus: If the pages yield no segments
            UpstreamEmbeddingError: If embedding a segment fails
            UpstreamTimeout: If an embedding call times out
        """
        self.stats = self._empty_stats()
        self.stats["pages_loaded"] = len(pages)

        segments = self.chunker.split_pages(pages)
        if not segments:
            logger.warning("no_segments_created", page_count=len(pages))
            raise EmptyCorpus("Document produced no text to index")
        self.stats["segments_created"] = len(segments)

        embeddings = await self.embedder.embed_batch([s.text for s in segments])
        self.stats["embeddings_generated"] = len(embeddings)

        self.index.build(
            IndexedEntry(segment=segment, vector=vector)
            for segment, vector in zip(segments, embeddings, strict=True)
        )
        self.stats["dimension"] = self.index.dimension

        logger.info("ingest_completed", stats=self.stats)

        return self.stats

    async def ingest_file(self, path: Path) -> Dict[str, Any]:
        """Load a document from disk and index it.

        Raises:
            FileNotFoundError: If the document doesn't exist
            InvalidConfiguration: If the document type is unsupported
            EmptyCorpus: If the document has no text
        """
        logger.info("ingesting_file", path=str(path))
        return await self.ingest_pages(load_pages(path))
