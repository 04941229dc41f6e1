"""Vector store factory — picks a backend from settings."""

from __future__ import annotations

import logging

from grounded_rag.config import Settings, settings as default_settings
from grounded_rag.exceptions import InvalidConfigError
from grounded_rag.retrieval.base import VectorStoreBase
from grounded_rag.retrieval.models import SimilarityMetric

logger = logging.getLogger(__name__)

BACKENDS = ("json", "chroma")


def get_vector_store(settings: Settings | None = None) -> VectorStoreBase:
    """Build the vector store named by ``settings.vector_store_backend``.

    Raises
    ------
    InvalidConfigError
        For an unknown backend or metric.
    """
    settings = settings or default_settings
    backend = settings.vector_store_backend.lower()

    try:
        metric = SimilarityMetric(settings.similarity_metric.lower())
    except ValueError as exc:
        raise InvalidConfigError(
            f"Invalid similarity_metric {settings.similarity_metric!r}. "
            f"Must be one of: {', '.join(m.value for m in SimilarityMetric)}."
        ) from exc

    if backend == "json":
        from grounded_rag.retrieval.json_store import JsonFileVectorStore

        logger.info("Using JSON file vector store at %s", settings.vector_store_path)
        return JsonFileVectorStore(settings.vector_store_path, metric=metric)

    if backend == "chroma":
        from grounded_rag.retrieval.chroma_store import ChromaVectorStore

        logger.info(
            "Using Chroma vector store %s:%s/%s",
            settings.chroma_host,
            settings.chroma_port,
            settings.chroma_collection,
        )
        return ChromaVectorStore(
            settings.chroma_collection,
            host=settings.chroma_host,
            port=settings.chroma_port,
            metric=metric,
        )

    raise InvalidConfigError(
        f"Invalid vector_store_backend: {settings.vector_store_backend!r}. "
        f"Must be one of: {', '.join(BACKENDS)}."
    )
