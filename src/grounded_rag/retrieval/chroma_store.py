"""Chroma implementation of the vector-store abstraction."""

from __future__ import annotations

import logging
from collections.abc import Sequence
from typing import Any

import chromadb

from grounded_rag.config import settings
from grounded_rag.exceptions import InvalidArgumentError, SchemaMismatchError, StoreUnavailableError
from grounded_rag.retrieval.base import VectorStoreBase
from grounded_rag.retrieval.models import MetadataFilter, SimilarityMetric, StoredRecord

logger = logging.getLogger(__name__)

_SPACE_KEY = "hnsw:space"


def _build_chroma_where(filters: list[MetadataFilter]) -> dict[str, Any] | None:
    """Convert a list of :class:`MetadataFilter` to Chroma ``where`` syntax."""
    if not filters:
        return None

    _OP_MAP = {
        "eq": "$eq",
        "ne": "$ne",
        "gt": "$gt",
        "gte": "$gte",
        "lt": "$lt",
        "lte": "$lte",
        "in": "$in",
        "nin": "$nin",
    }

    clauses: list[dict[str, Any]] = []
    for f in filters:
        chroma_op = _OP_MAP.get(f.operator)
        if chroma_op is None:
            raise InvalidArgumentError(f"Unsupported filter operator: {f.operator!r}")
        clauses.append({f.field: {chroma_op: f.value}})

    if len(clauses) == 1:
        return clauses[0]
    return {"$and": clauses}


def _to_score(distance: float, metric: SimilarityMetric) -> float:
    """Map a Chroma distance onto the store's native score direction."""
    if metric is SimilarityMetric.L2:
        return distance
    # cosine and ip distances are both ``1 - similarity``
    return 1.0 - distance


def _flat_metadata(metadata: dict[str, Any]) -> dict[str, Any]:
    # Chroma metadata values must be flat str/int/float/bool
    return {k: v for k, v in metadata.items() if isinstance(v, (str, int, float, bool))}


class ChromaVectorStore(VectorStoreBase):
    """Chroma-backed vector store.

    The HTTP client and collection are created on first use, so building
    the store never touches the network.

    Parameters
    ----------
    collection_name:
        Name of the Chroma collection.
    host:
        Chroma server hostname.
    port:
        Chroma server port.
    metric:
        HNSW space the collection is created with.
    """

    def __init__(
        self,
        collection_name: str = settings.chroma_collection,
        *,
        host: str = settings.chroma_host,
        port: int = settings.chroma_port,
        metric: SimilarityMetric | str = settings.similarity_metric,
    ) -> None:
        super().__init__(collection_name, metric)
        self._host = host
        self._port = port
        self._client: Any = None
        self._collection: Any = None

    # -- connection -----------------------------------------------------------

    def _get_client(self) -> Any:
        if self._client is None:
            try:
                self._client = chromadb.HttpClient(host=self._host, port=self._port)
            except Exception as exc:
                raise StoreUnavailableError(
                    f"Cannot connect to Chroma at {self._host}:{self._port}: {exc}"
                ) from exc
        return self._client

    def _get_collection(self) -> Any:
        if self._collection is None:
            client = self._get_client()
            try:
                self._collection = client.get_or_create_collection(
                    name=self.collection_name,
                    metadata={_SPACE_KEY: self.metric.value},
                )
            except Exception as exc:
                raise StoreUnavailableError(
                    f"Cannot open Chroma collection {self.collection_name!r}: {exc}"
                ) from exc
        return self._collection

    # -- VectorStoreBase overrides --------------------------------------------

    def ensure_schema(self, dimension: int, metric: SimilarityMetric | None = None) -> None:
        metric = SimilarityMetric(metric or self.metric)
        if self._collection is None:
            self.metric = metric
        collection = self._get_collection()

        space = (collection.metadata or {}).get(_SPACE_KEY, SimilarityMetric.L2.value)
        if space != metric.value:
            raise SchemaMismatchError(
                f"Collection {self.collection_name!r} uses space={space!r}, configured metric={metric.value!r}"
            )

        try:
            existing = collection.get(limit=1, include=["embeddings"])
        except Exception as exc:
            raise StoreUnavailableError(f"Chroma get failed: {exc}") from exc
        embeddings = existing.get("embeddings")
        if embeddings is not None and len(embeddings) > 0:
            stored_dim = len(embeddings[0])
            if stored_dim != dimension:
                raise SchemaMismatchError(
                    f"Collection {self.collection_name!r} holds {stored_dim}-d vectors, "
                    f"configured dimension is {dimension}"
                )
        self.metric = metric

    def upsert(self, records: Sequence[StoredRecord]) -> None:
        if not records:
            return
        collection = self._get_collection()
        try:
            collection.upsert(
                ids=[r.id for r in records],
                embeddings=[r.vector for r in records],
                documents=[r.text for r in records],
                metadatas=[_flat_metadata(r.metadata) for r in records],
            )
        except Exception as exc:
            raise StoreUnavailableError(f"Chroma upsert failed: {exc}") from exc
        logger.info("Upserted %d records into Chroma collection %s", len(records), self.collection_name)

    def search(
        self,
        query_embedding: list[float],
        *,
        k: int = 5,
        filters: list[MetadataFilter] | None = None,
    ) -> list[dict[str, Any]]:
        where = _build_chroma_where(filters) if filters else None
        collection = self._get_collection()

        try:
            results = collection.query(
                query_embeddings=[query_embedding],
                n_results=k,
                where=where,
                include=["documents", "metadatas", "distances"],
            )
        except Exception as exc:
            raise StoreUnavailableError(f"Chroma query failed: {exc}") from exc

        hits: list[dict[str, Any]] = []
        ids = (results.get("ids") or [[]])[0]
        docs = (results.get("documents") or [[]])[0]
        metas = (results.get("metadatas") or [[]])[0]
        distances = (results.get("distances") or [[]])[0]

        for doc_id, content, meta, dist in zip(ids, docs, metas, distances):
            hits.append(
                {
                    "id": doc_id,
                    "content": content or "",
                    "score": _to_score(float(dist), self.metric),
                    "metadata": meta or {},
                }
            )
        return hits

    def health_check(self) -> bool:
        try:
            self._get_client().heartbeat()
            return True
        except Exception:
            logger.warning("Chroma health-check failed", exc_info=True)
            return False

    def delete(self, ids: list[str]) -> None:
        collection = self._get_collection()
        try:
            collection.delete(ids=ids)
        except Exception as exc:
            raise StoreUnavailableError(f"Chroma delete failed: {exc}") from exc

    def clear(self) -> None:
        client = self._get_client()
        try:
            client.delete_collection(self.collection_name)
        except Exception as exc:
            raise StoreUnavailableError(f"Chroma delete_collection failed: {exc}") from exc
        self._collection = None

    def count(self) -> int:
        collection = self._get_collection()
        try:
            return collection.count()
        except Exception as exc:
            raise StoreUnavailableError(f"Chroma count failed: {exc}") from exc
