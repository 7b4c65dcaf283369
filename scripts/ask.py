#!/usr/bin/env python
"""Ask a single question about a document from the command line.

Usage:
    python scripts/ask.py pdfs/resume-1.pdf "What did the candidate study?"
    python scripts/ask.py notes.md "Who wrote this?" --top-k 5
    python scripts/ask.py notes.md "Who wrote this?" --show-sources
"""
import argparse
import asyncio
import sys
from datetime import datetime
from pathlib import Path

# Add parent directory to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

from docqa import config
from docqa.errors import DocQAError
from docqa.main import configure_logging
from docqa.rag.gateways import OllamaEmbeddingGateway, OllamaGenerationGateway
from docqa.rag.ingest import IngestPipeline
from docqa.rag.pipeline import QueryPipeline
from docqa.rag.vector_index import VectorIndex


def print_sources(hits):
    print(f"\n{'=' * 60}")
    print(f"  Sources")
    print(f"{'=' * 60}\n")
    for rank, hit in enumerate(hits, 1):
        preview = hit.segment.text.strip().replace("\n", " ")[:100]
        print(f"  {rank}. [{hit.score:.3f}] {hit.segment.source_ref} #{hit.segment.ordinal}")
        print(f"     {preview}")
    print()


async def run(args) -> int:
    start_time = datetime.now()

    index = VectorIndex()
    embedder = OllamaEmbeddingGateway()
    ingest = IngestPipeline(
        embedder,
        index,
        chunk_size=args.chunk_size,
        chunk_overlap=args.chunk_overlap,
    )
    stats = await ingest.ingest_file(args.document)

    if args.verbose:
        elapsed = (datetime.now() - start_time).total_seconds()
        print(f"  Indexed {stats['segments_created']} segments "
              f"from {stats['pages_loaded']} page(s) in {elapsed:.1f}s")

    pipeline = QueryPipeline(
        embedder=embedder,
        generator=OllamaGenerationGateway(),
        index=index,
        top_k=args.top_k,
    )
    result = await pipeline.ask(args.question)

    print(result.answer.strip())

    if args.show_sources:
        print_sources(result.hits)

    return 0


def main():
    parser = argparse.ArgumentParser(
        description="Answer a question grounded in a document",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__,
    )
    parser.add_argument("document", type=Path, help="Path to a .pdf, .md or .txt file")
    parser.add_argument("question", help="Question to ask")
    parser.add_argument("--top-k", type=int, default=config.RETRIEVAL_TOP_K,
                        help="Number of segments used as context")
    parser.add_argument("--chunk-size", type=int, default=config.CHUNK_SIZE,
                        help="Segment size in characters")
    parser.add_argument("--chunk-overlap", type=int, default=config.CHUNK_OVERLAP,
                        help="Overlap between segments in characters")
    parser.add_argument("--show-sources", action="store_true",
                        help="Print the retrieved segments")
    parser.add_argument("--verbose", "-v", action="store_true",
                        help="Show indexing progress and debug logs")

    args = parser.parse_args()

    configure_logging("DEBUG" if args.verbose else "WARNING")

    try:
        sys.exit(asyncio.run(run(args)))
    except DocQAError as e:
        print(f"\n❌ {e.category}: {e.message}\n", file=sys.stderr)
        sys.exit(1)
    except FileNotFoundError as e:
        print(f"\n❌ {e}\n", file=sys.stderr)
        sys.exit(1)
    except KeyboardInterrupt:
        print("\n\n⚠️  Interrupted by user\n")
        sys.exit(130)


if __name__ == "__main__":
    main()
