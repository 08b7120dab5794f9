"""RAG (Retrieval-Augmented Generation) pipeline components.

This package contains modules for:
- Web page text extraction
- Text chunking with overlap
- Vector storage (Astra Data API or local FAISS)
- Ingestion of URLs into the knowledge base
- Retrieval and grounded prompt assembly
"""
