"""RAG (Retrieval-Augmented Generation) pipeline components.

This package contains modules for:
- Document loading and page extraction
- Document chunking with overlap
- Embedding and generation gateways
- In-memory vector index
- Grounded question answering
"""
