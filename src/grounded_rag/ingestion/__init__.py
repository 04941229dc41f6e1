"""
Ingestion — normalisation, chunking, and embedding of raw documents.

This package turns caller-supplied documents (HTML or plain text) into
sentence-respecting chunks and dense vectors ready for the vector store.
"""
