"""
Retrieval — vector storage, search, ranking, and context assembly.

This package wraps the vector store behind a clean interface so that
the pipeline never needs to know which DB is backing retrieval.

Public surface
--------------
- :class:`SemanticRetriever` — query embedding + search → ranked matches.
- :class:`VectorStoreBase` — abstract backend (subclass for Qdrant, etc.).
- :class:`JsonFileVectorStore` — self-contained fallback backend.
- :class:`ChromaVectorStore` — Chroma backend.
- :func:`get_vector_store` — backend factory driven by settings.
- :func:`assemble` — context block rendering.
- :class:`RetrievalMatch`, :class:`Citation`, :class:`MetadataFilter`,
  :class:`SimilarityMetric`, :class:`StoredRecord` — data models.
"""

from grounded_rag.retrieval.base import VectorStoreBase
from grounded_rag.retrieval.context import assemble
from grounded_rag.retrieval.factory import get_vector_store
from grounded_rag.retrieval.models import (
    Chunk,
    Citation,
    Document,
    MetadataFilter,
    RetrievalMatch,
    SimilarityMetric,
    StoredRecord,
)
from grounded_rag.retrieval.retriever import SemanticRetriever

__all__ = [
    "ChromaVectorStore",
    "Chunk",
    "Citation",
    "Document",
    "JsonFileVectorStore",
    "MetadataFilter",
    "RetrievalMatch",
    "SemanticRetriever",
    "SimilarityMetric",
    "StoredRecord",
    "VectorStoreBase",
    "assemble",
    "get_vector_store",
]


def __getattr__(name: str):  # noqa: ANN001
    """Lazy-import backends to avoid pulling in chromadb / numpy at import time."""
    if name == "ChromaVectorStore":
        from grounded_rag.retrieval.chroma_store import ChromaVectorStore

        return ChromaVectorStore
    if name == "JsonFileVectorStore":
        from grounded_rag.retrieval.json_store import JsonFileVectorStore

        return JsonFileVectorStore
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
