"""Self-contained vector store persisted as a single JSON file.

Used when no external vector database is configured.  File layout::

    {
      "schema": {"dimension": 384, "metric": "cosine"},
      "docs": [
        {"id": "...", "text": "...", "embedding": [...], "metadata": {...}},
        ...
      ]
    }

Search is an exact scan over every stored vector, fine for the small
corpora this backend is meant for.
"""

from __future__ import annotations

import json
import logging
import os
import threading
from collections.abc import Sequence
from pathlib import Path
from typing import Any

import numpy as np

from grounded_rag.config import settings
from grounded_rag.exceptions import SchemaMismatchError, StoreUnavailableError
from grounded_rag.retrieval.base import VectorStoreBase
from grounded_rag.retrieval.models import MetadataFilter, SimilarityMetric, StoredRecord

logger = logging.getLogger(__name__)


def score_vectors(
    matrix: np.ndarray, query: np.ndarray, metric: SimilarityMetric
) -> np.ndarray:
    """Score every row of *matrix* against *query* with *metric*."""
    if metric is SimilarityMetric.L2:
        return np.linalg.norm(matrix - query, axis=1)
    dots = matrix @ query
    if metric is SimilarityMetric.IP:
        return dots
    norms = np.linalg.norm(matrix, axis=1) * np.linalg.norm(query)
    # zero vectors score 0 instead of NaN
    return np.divide(dots, norms, out=np.zeros_like(dots), where=norms > 0)


class JsonFileVectorStore(VectorStoreBase):
    """Append-only JSON-file backend.

    Parameters
    ----------
    path:
        Location of the JSON file; created (with parent directories) on
        first use.
    metric:
        Scoring function for :meth:`search`.
    """

    def __init__(
        self,
        path: str | Path = settings.vector_store_path,
        *,
        metric: SimilarityMetric | str = settings.similarity_metric,
    ) -> None:
        self.path = Path(path)
        super().__init__(self.path.stem, metric)
        self._lock = threading.Lock()

    # -- file handling --------------------------------------------------------

    def _ensure_file(self) -> None:
        if self.path.exists():
            return
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            self._write({"docs": []})
        except OSError as exc:
            raise StoreUnavailableError(f"Cannot create vector store at {self.path}: {exc}") from exc
        logger.info("Created empty vector store at %s", self.path)

    def _load(self) -> dict[str, Any]:
        self._ensure_file()
        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as exc:
            raise StoreUnavailableError(f"Cannot read vector store {self.path}: {exc}") from exc
        if not isinstance(data, dict) or not isinstance(data.get("docs"), list):
            raise StoreUnavailableError(f"Vector store {self.path} has no 'docs' list")
        return data

    def _write(self, data: dict[str, Any]) -> None:
        tmp = self.path.with_name(self.path.name + ".tmp")
        tmp.write_text(json.dumps(data, ensure_ascii=False), encoding="utf-8")
        os.replace(tmp, self.path)

    def _save(self, data: dict[str, Any]) -> None:
        try:
            self._write(data)
        except OSError as exc:
            raise StoreUnavailableError(f"Cannot write vector store {self.path}: {exc}") from exc

    # -- VectorStoreBase overrides --------------------------------------------

    def ensure_schema(self, dimension: int, metric: SimilarityMetric | None = None) -> None:
        metric = SimilarityMetric(metric or self.metric)
        with self._lock:
            data = self._load()
            schema = data.get("schema")
            if schema is None:
                if data["docs"]:
                    existing = len(data["docs"][0].get("embedding", []))
                    if existing != dimension:
                        raise SchemaMismatchError(
                            f"{self.path} holds {existing}-d vectors, configured dimension is {dimension}"
                        )
                data["schema"] = {"dimension": dimension, "metric": metric.value}
                self._save(data)
                logger.info("Initialised schema for %s (dim=%d, metric=%s)", self.path, dimension, metric.value)
            elif schema.get("dimension") != dimension or schema.get("metric") != metric.value:
                raise SchemaMismatchError(
                    f"{self.path} was created with dimension={schema.get('dimension')} "
                    f"metric={schema.get('metric')}; configured dimension={dimension} metric={metric.value}"
                )
        self.metric = metric

    def upsert(self, records: Sequence[StoredRecord]) -> None:
        if not records:
            return
        with self._lock:
            data = self._load()
            expected = (data.get("schema") or {}).get("dimension")
            positions = {doc["id"]: i for i, doc in enumerate(data["docs"])}
            for rec in records:
                if expected is not None and len(rec.vector) != expected:
                    raise SchemaMismatchError(
                        f"Record {rec.id} has {len(rec.vector)}-d vector, store expects {expected}"
                    )
                entry = {
                    "id": rec.id,
                    "text": rec.text,
                    "embedding": rec.vector,
                    "metadata": rec.metadata,
                }
                if rec.id in positions:
                    data["docs"][positions[rec.id]] = entry
                else:
                    positions[rec.id] = len(data["docs"])
                    data["docs"].append(entry)
            self._save(data)
        logger.info("Upserted %d records into %s", len(records), self.path)

    def search(
        self,
        query_embedding: list[float],
        *,
        k: int = 5,
        filters: list[MetadataFilter] | None = None,
    ) -> list[dict[str, Any]]:
        with self._lock:
            docs = self._load()["docs"]

        if filters:
            docs = [d for d in docs if all(f.matches(d.get("metadata", {})) for f in filters)]
        if not docs or k <= 0:
            return []

        try:
            matrix = np.asarray([d["embedding"] for d in docs], dtype=float)
        except ValueError as exc:
            raise SchemaMismatchError(f"{self.path} holds vectors of mixed dimension") from exc
        query = np.asarray(query_embedding, dtype=float)
        if matrix.ndim != 2 or matrix.shape[1] != query.shape[0]:
            raise SchemaMismatchError(
                f"Query has {query.shape[0]} dimensions, stored vectors do not match"
            )

        scores = score_vectors(matrix, query, self.metric)
        keys = -scores if self.metric.higher_is_better else scores
        order = np.argsort(keys, kind="stable")[:k]

        return [
            {
                "id": docs[i]["id"],
                "content": docs[i].get("text", ""),
                "score": float(scores[i]),
                "metadata": docs[i].get("metadata", {}),
            }
            for i in order
        ]

    def health_check(self) -> bool:
        try:
            with self._lock:
                self._load()
            return True
        except StoreUnavailableError:
            logger.warning("JSON vector store health-check failed", exc_info=True)
            return False

    def delete(self, ids: list[str]) -> None:
        doomed = set(ids)
        with self._lock:
            data = self._load()
            data["docs"] = [d for d in data["docs"] if d["id"] not in doomed]
            self._save(data)

    def clear(self) -> None:
        with self._lock:
            data = self._load()
            data["docs"] = []
            self._save(data)

    def count(self) -> int:
        with self._lock:
            return len(self._load()["docs"])
