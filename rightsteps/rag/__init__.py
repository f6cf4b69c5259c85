"""RAG (Retrieval-Augmented Generation) pipeline components.

This package contains modules for:
- Sentence-aligned chunking with overlap
- Embedding generation
- FAISS vector storage and the index gateway over it
- Semantic retrieval
- Prompt assembly and answer generation
"""
