"""Semantic retriever — query embedding + vector search → ranked matches.

This module is the **primary public interface** for retrieval.  It is
intentionally decoupled from LangChain retriever abstractions so that
non-pipeline callers (evaluation scripts, notebooks, tests) can use it
directly.

Usage::

    from grounded_rag.retrieval.retriever import SemanticRetriever

    retriever = SemanticRetriever(store, embedder)
    for match in retriever.retrieve("Are dogs mammals?", k=5):
        print(match.rank, match.score, match.content[:80])

No minimum-score threshold is applied: results always come back
best-first, however weak.  Deciding that weak matches carry no
information is the pipeline's grounding policy, not the retriever's.
"""

from __future__ import annotations

import logging
from typing import Any

from grounded_rag.exceptions import InvalidArgumentError, RAGError, StoreUnavailableError
from grounded_rag.ingestion.embedder import EmbeddingProvider
from grounded_rag.retrieval.base import VectorStoreBase
from grounded_rag.retrieval.models import MetadataFilter, RetrievalMatch

logger = logging.getLogger(__name__)


class SemanticRetriever:
    """High-level retriever over any :class:`VectorStoreBase`.

    Parameters
    ----------
    store:
        A concrete vector-store backend.
    embedder:
        Provider used for the query-direction embedding.
    default_k:
        Number of results returned when ``k`` is not given.
    """

    def __init__(
        self,
        store: VectorStoreBase,
        embedder: EmbeddingProvider,
        *,
        default_k: int = 5,
    ) -> None:
        self._store = store
        self._embedder = embedder
        self.default_k = default_k

    @property
    def store(self) -> VectorStoreBase:
        return self._store

    # -- public API -----------------------------------------------------------

    def retrieve(
        self,
        question: str,
        k: int | None = None,
        *,
        filters: list[MetadataFilter] | None = None,
    ) -> list[RetrievalMatch]:
        """Embed *question* and return the top-*k* matches, best first.

        Parameters
        ----------
        question:
            Natural-language query string.
        k:
            Number of results (defaults to ``self.default_k``).
        filters:
            Optional metadata filters forwarded to the vector store.

        Raises
        ------
        InvalidArgumentError
            When ``k <= 0``; raised before any embedding call.
        """
        k = self._check_k(k)
        embedding = self._embedder.embed_query(question)
        return self._search(embedding, k, filters)

    def search_by_embedding(
        self,
        embedding: list[float],
        *,
        k: int | None = None,
        filters: list[MetadataFilter] | None = None,
    ) -> list[RetrievalMatch]:
        """Same as :meth:`retrieve` but accepts a pre-computed embedding."""
        return self._search(embedding, self._check_k(k), filters)

    # -- LangChain compat -----------------------------------------------------

    def as_langchain_retriever(self, k: int = 5) -> Any:
        """Return a thin LangChain-compatible retriever wrapper.

        LangChain is imported only here so that the rest of the retrieval
        package has **zero** LangChain dependency.
        """
        from langchain_core.documents import Document
        from langchain_core.retrievers import BaseRetriever

        outer = self

        class _LCRetriever(BaseRetriever):
            """Adapter that satisfies LangChain's retriever protocol."""

            def _get_relevant_documents(self_inner, query: str, **kwargs: Any) -> list[Document]:  # type: ignore[override]  # noqa: N805
                matches = outer.retrieve(query, k)
                return [
                    Document(
                        page_content=m.content,
                        metadata={**m.metadata, "_citation": m.citation().model_dump()},
                    )
                    for m in matches
                ]

        return _LCRetriever()

    # -- internals ------------------------------------------------------------

    def _check_k(self, k: int | None) -> int:
        k = self.default_k if k is None else k
        if k <= 0:
            raise InvalidArgumentError(f"k must be > 0, got {k}")
        return k

    def _search(
        self,
        embedding: list[float],
        k: int,
        filters: list[MetadataFilter] | None,
    ) -> list[RetrievalMatch]:
        try:
            raw_hits = self._store.search(embedding, k=k, filters=filters)
        except RAGError:
            raise
        except Exception as exc:
            logger.error("Vector store search failed: %s", exc)
            raise StoreUnavailableError(f"Vector store search failed: {exc}") from exc
        ranked = self._rank(raw_hits)[:k]
        logger.debug("Retrieved %d/%d hits (metric=%s)", len(ranked), k, self._store.metric.value)
        return [self._to_match(hit, rank) for rank, hit in enumerate(ranked, 1)]

    def _rank(self, raw_hits: list[dict[str, Any]]) -> list[dict[str, Any]]:
        # Backends already order their hits; re-sort (stably) so the
        # result is best-first even for a backend that does not.
        return sorted(
            raw_hits,
            key=lambda h: float(h["score"]),
            reverse=self._store.metric.higher_is_better,
        )

    @staticmethod
    def _to_match(hit: dict[str, Any], rank: int) -> RetrievalMatch:
        meta = hit.get("metadata") or {}
        return RetrievalMatch(
            id=str(hit.get("id")),
            document_id=meta.get("document_id"),
            content=hit.get("content", ""),
            score=float(hit["score"]),
            rank=rank,
            metadata=meta,
        )
