"""Abstract base class for vector-store backends.

Adding a new backend (Qdrant, pgvector, Pinecone …) only requires
subclassing :class:`VectorStoreBase` and implementing the abstract
methods.  The rest of the pipeline is backend-agnostic.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Sequence
from typing import Any

from grounded_rag.retrieval.models import MetadataFilter, SimilarityMetric, StoredRecord


class VectorStoreBase(ABC):
    """Backend-agnostic vector-store interface.

    Parameters
    ----------
    collection_name:
        Logical name of the collection / index / file.
    metric:
        Scoring function.  Decides whether a higher or a lower ``score``
        means "more similar" — see :attr:`SimilarityMetric.higher_is_better`.
    """

    def __init__(
        self,
        collection_name: str,
        metric: SimilarityMetric | str = SimilarityMetric.COSINE,
    ) -> None:
        self.collection_name = collection_name
        self.metric = SimilarityMetric(metric)

    # -- required overrides ---------------------------------------------------

    @abstractmethod
    def ensure_schema(self, dimension: int, metric: SimilarityMetric | None = None) -> None:
        """Create the collection if missing; no-op when it already matches.

        Raises
        ------
        SchemaMismatchError
            When an existing collection has a different dimension or metric.
        StoreUnavailableError
            When the backend cannot be reached.
        """
        ...

    @abstractmethod
    def upsert(self, records: Sequence[StoredRecord]) -> None:
        """Write *records* in one batch.  Records with an existing id overwrite it."""
        ...

    @abstractmethod
    def search(
        self,
        query_embedding: list[float],
        *,
        k: int = 5,
        filters: list[MetadataFilter] | None = None,
    ) -> list[dict[str, Any]]:
        """Return at most *k* hits for *query_embedding*, most similar first.

        Each result dict **must** contain:

        * ``"id"`` – chunk identifier
        * ``"content"`` – the chunk text
        * ``"score"`` – native score for :attr:`metric`
        * ``"metadata"`` – payload metadata, including ``document_id``

        Parameters
        ----------
        query_embedding:
            Dense vector for the query.
        k:
            Number of results to return.
        filters:
            Optional metadata filters.
        """
        ...

    @abstractmethod
    def health_check(self) -> bool:
        """Return ``True`` when the backend is reachable and ready."""
        ...

    # -- optional overrides ---------------------------------------------------

    def delete(self, ids: list[str]) -> None:
        """Delete records by their IDs.  Optional — raises by default."""
        raise NotImplementedError(f"{type(self).__name__} does not support delete")

    def clear(self) -> None:
        """Remove every record.  Optional — raises by default."""
        raise NotImplementedError(f"{type(self).__name__} does not support clear")

    def count(self) -> int:
        """Number of stored records.  Optional — raises by default."""
        raise NotImplementedError(f"{type(self).__name__} does not support count")
