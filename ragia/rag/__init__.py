"""RAG (Retrieval-Augmented Generation) pipeline components.

This package contains modules for:
- Document discovery and text extraction
- Length-bounded chunking
- Embedding generation with dimension checks
- SQLite + FAISS vector storage
- Semantic retrieval
- Grounded answer synthesis
- Query orchestration
"""
