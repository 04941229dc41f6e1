"""Unit tests for vector-store backends and the backend factory."""

from __future__ import annotations

import json
from pathlib import Path
from unittest.mock import MagicMock, patch

import pytest

from grounded_rag.config import Settings
from grounded_rag.exceptions import (
    InvalidArgumentError,
    InvalidConfigError,
    SchemaMismatchError,
    StoreUnavailableError,
)
from grounded_rag.retrieval.factory import get_vector_store
from grounded_rag.retrieval.json_store import JsonFileVectorStore
from grounded_rag.retrieval.models import MetadataFilter, SimilarityMetric, StoredRecord


def _record(rid: str, vector: list[float], text: str = "", **meta) -> StoredRecord:
    return StoredRecord(
        id=rid,
        vector=vector,
        payload={"document_id": meta.get("document_id", "d"), "text": text or rid, "metadata": meta},
    )


# ── JsonFileVectorStore ─────────────────────────────────────────────────


class TestJsonFileVectorStore:
    def test_file_auto_created_on_first_use(self, tmp_path: Path) -> None:
        path = tmp_path / "nested" / "dir" / "store.json"
        store = JsonFileVectorStore(path)
        assert store.count() == 0
        assert json.loads(path.read_text()) == {"docs": []}

    def test_constructor_does_not_touch_disk(self, tmp_path: Path) -> None:
        path = tmp_path / "store.json"
        JsonFileVectorStore(path)
        assert not path.exists()

    def test_upsert_layout(self, json_store: JsonFileVectorStore) -> None:
        json_store.upsert([_record("a", [1.0, 0.0], text="alpha", chunk_index=0)])
        data = json.loads(json_store.path.read_text())
        assert data["docs"] == [
            {"id": "a", "text": "alpha", "embedding": [1.0, 0.0], "metadata": {"chunk_index": 0}}
        ]

    def test_upsert_overwrites_by_id_and_keeps_order(self, json_store: JsonFileVectorStore) -> None:
        json_store.upsert([_record("a", [1.0, 0.0]), _record("b", [0.0, 1.0])])
        json_store.upsert([_record("a", [0.5, 0.5], text="new a"), _record("c", [1.0, 1.0])])
        docs = json.loads(json_store.path.read_text())["docs"]
        assert [d["id"] for d in docs] == ["a", "b", "c"]
        assert docs[0]["text"] == "new a"

    def test_upsert_empty_is_noop(self, json_store: JsonFileVectorStore) -> None:
        json_store.upsert([])
        assert not json_store.path.exists()

    def test_cosine_search_best_first(self, json_store: JsonFileVectorStore) -> None:
        json_store.upsert(
            [
                _record("orthogonal", [0.0, 1.0]),
                _record("same", [2.0, 0.0]),
                _record("diagonal", [1.0, 1.0]),
            ]
        )
        hits = json_store.search([1.0, 0.0], k=3)
        assert [h["id"] for h in hits] == ["same", "diagonal", "orthogonal"]
        assert hits[0]["score"] == pytest.approx(1.0)
        assert hits[1]["score"] == pytest.approx(0.7071, abs=1e-3)
        scores = [h["score"] for h in hits]
        assert scores == sorted(scores, reverse=True)

    def test_l2_search_nearest_first(self, tmp_path: Path) -> None:
        store = JsonFileVectorStore(tmp_path / "s.json", metric="l2")
        store.upsert([_record("far", [10.0, 0.0]), _record("near", [1.0, 0.1]), _record("mid", [3.0, 0.0])])
        hits = store.search([1.0, 0.0], k=3)
        assert [h["id"] for h in hits] == ["near", "mid", "far"]
        scores = [h["score"] for h in hits]
        assert scores == sorted(scores)

    def test_inner_product_search(self, tmp_path: Path) -> None:
        store = JsonFileVectorStore(tmp_path / "s.json", metric="ip")
        store.upsert([_record("small", [1.0, 0.0]), _record("big", [5.0, 0.0])])
        assert [h["id"] for h in store.search([1.0, 0.0], k=2)] == ["big", "small"]

    def test_search_truncates_to_k(self, json_store: JsonFileVectorStore) -> None:
        json_store.upsert([_record(str(i), [1.0, float(i)]) for i in range(10)])
        assert len(json_store.search([1.0, 0.0], k=4)) == 4

    def test_search_empty_store(self, json_store: JsonFileVectorStore) -> None:
        assert json_store.search([1.0, 0.0], k=5) == []

    def test_zero_vector_scores_zero(self, json_store: JsonFileVectorStore) -> None:
        json_store.upsert([_record("zero", [0.0, 0.0])])
        assert json_store.search([1.0, 0.0], k=1)[0]["score"] == 0.0

    def test_search_hit_shape(self, json_store: JsonFileVectorStore) -> None:
        json_store.upsert([_record("a", [1.0, 0.0], text="alpha", document_id="doc1")])
        hit = json_store.search([1.0, 0.0], k=1)[0]
        assert hit["content"] == "alpha"
        assert hit["metadata"]["document_id"] == "doc1"

    def test_metadata_filters(self, json_store: JsonFileVectorStore) -> None:
        json_store.upsert(
            [
                _record("a", [1.0, 0.0], tenant="acme"),
                _record("b", [1.0, 0.0], tenant="globex"),
            ]
        )
        hits = json_store.search([1.0, 0.0], k=5, filters=[MetadataFilter.equals("tenant", "globex")])
        assert [h["id"] for h in hits] == ["b"]

    def test_ensure_schema_idempotent(self, json_store: JsonFileVectorStore) -> None:
        json_store.ensure_schema(2, SimilarityMetric.COSINE)
        json_store.ensure_schema(2, SimilarityMetric.COSINE)
        data = json.loads(json_store.path.read_text())
        assert data["schema"] == {"dimension": 2, "metric": "cosine"}

    def test_ensure_schema_dimension_mismatch(self, json_store: JsonFileVectorStore) -> None:
        json_store.ensure_schema(2)
        with pytest.raises(SchemaMismatchError):
            json_store.ensure_schema(3)

    def test_ensure_schema_metric_mismatch(self, json_store: JsonFileVectorStore) -> None:
        json_store.ensure_schema(2, SimilarityMetric.COSINE)
        with pytest.raises(SchemaMismatchError):
            json_store.ensure_schema(2, SimilarityMetric.L2)

    def test_ensure_schema_checks_legacy_docs(self, json_store: JsonFileVectorStore) -> None:
        json_store.path.parent.mkdir(parents=True, exist_ok=True)
        json_store.path.write_text(json.dumps({"docs": [{"id": "x", "text": "t", "embedding": [1.0, 2.0, 3.0]}]}))
        with pytest.raises(SchemaMismatchError):
            json_store.ensure_schema(2)

    def test_upsert_rejects_wrong_dimension(self, json_store: JsonFileVectorStore) -> None:
        json_store.ensure_schema(2)
        with pytest.raises(SchemaMismatchError):
            json_store.upsert([_record("a", [1.0, 0.0, 0.0])])

    def test_query_dimension_mismatch(self, json_store: JsonFileVectorStore) -> None:
        json_store.upsert([_record("a", [1.0, 0.0])])
        with pytest.raises(SchemaMismatchError):
            json_store.search([1.0, 0.0, 0.0], k=1)

    def test_corrupt_file_is_unavailable(self, json_store: JsonFileVectorStore) -> None:
        json_store.path.parent.mkdir(parents=True, exist_ok=True)
        json_store.path.write_text("{not json")
        with pytest.raises(StoreUnavailableError):
            json_store.search([1.0], k=1)
        assert json_store.health_check() is False

    def test_health_check_ok(self, json_store: JsonFileVectorStore) -> None:
        assert json_store.health_check() is True

    def test_delete_and_clear(self, json_store: JsonFileVectorStore) -> None:
        json_store.upsert([_record("a", [1.0]), _record("b", [1.0]), _record("c", [1.0])])
        json_store.delete(["b"])
        assert json_store.count() == 2
        json_store.clear()
        assert json_store.count() == 0


# ── ChromaVectorStore ───────────────────────────────────────────────────


class TestChromaVectorStore:
    @pytest.fixture(autouse=True)
    def _skip_if_chroma_broken(self) -> None:
        """Skip if chromadb can't be imported."""
        try:
            from grounded_rag.retrieval.chroma_store import ChromaVectorStore  # noqa: F401
        except Exception:
            pytest.skip("chromadb not importable in this environment")

    @pytest.fixture()
    def client(self):
        client = MagicMock()
        collection = MagicMock()
        collection.metadata = {"hnsw:space": "cosine"}
        collection.get.return_value = {"embeddings": []}
        client.get_or_create_collection.return_value = collection
        with patch("grounded_rag.retrieval.chroma_store.chromadb.HttpClient", return_value=client):
            yield client

    def _store(self, metric: str = "cosine"):
        from grounded_rag.retrieval.chroma_store import ChromaVectorStore

        return ChromaVectorStore("test", host="h", port=1, metric=metric)

    def test_lazy_connection(self) -> None:
        with patch("grounded_rag.retrieval.chroma_store.chromadb.HttpClient") as http:
            self._store()
            http.assert_not_called()

    def test_collection_created_with_space(self, client) -> None:
        self._store().ensure_schema(3)
        client.get_or_create_collection.assert_called_once_with(
            name="test", metadata={"hnsw:space": "cosine"}
        )

    def test_ensure_schema_space_mismatch(self, client) -> None:
        client.get_or_create_collection.return_value.metadata = {"hnsw:space": "l2"}
        with pytest.raises(SchemaMismatchError):
            self._store().ensure_schema(3)

    def test_ensure_schema_dimension_mismatch(self, client) -> None:
        client.get_or_create_collection.return_value.get.return_value = {"embeddings": [[0.1, 0.2]]}
        with pytest.raises(SchemaMismatchError):
            self._store().ensure_schema(3)

    def test_upsert_single_batch(self, client) -> None:
        store = self._store()
        store.upsert([_record("a", [1.0], text="alpha", chunk_index=0), _record("b", [0.5], text="beta")])
        collection = client.get_or_create_collection.return_value
        collection.upsert.assert_called_once()
        kwargs = collection.upsert.call_args.kwargs
        assert kwargs["ids"] == ["a", "b"]
        assert kwargs["documents"] == ["alpha", "beta"]
        assert kwargs["metadatas"][0] == {"chunk_index": 0}

    def test_cosine_distance_converted_to_similarity(self, client) -> None:
        client.get_or_create_collection.return_value.query.return_value = {
            "ids": [["a", "b"]],
            "documents": [["alpha", "beta"]],
            "metadatas": [[{"document_id": "d"}, None]],
            "distances": [[0.1, 0.4]],
        }
        hits = self._store().search([1.0], k=2)
        assert [h["score"] for h in hits] == [pytest.approx(0.9), pytest.approx(0.6)]
        assert hits[1]["metadata"] == {}

    def test_l2_distance_kept(self, client) -> None:
        client.get_or_create_collection.return_value.metadata = {"hnsw:space": "l2"}
        client.get_or_create_collection.return_value.query.return_value = {
            "ids": [["a"]],
            "documents": [["alpha"]],
            "metadatas": [[{}]],
            "distances": [[2.5]],
        }
        assert self._store("l2").search([1.0], k=1)[0]["score"] == 2.5

    def test_query_failure_is_unavailable(self, client) -> None:
        client.get_or_create_collection.return_value.query.side_effect = ConnectionError("down")
        with pytest.raises(StoreUnavailableError):
            self._store().search([1.0], k=1)

    def test_connect_failure_is_unavailable(self) -> None:
        with patch(
            "grounded_rag.retrieval.chroma_store.chromadb.HttpClient",
            side_effect=ConnectionError("refused"),
        ):
            with pytest.raises(StoreUnavailableError):
                self._store().upsert([_record("a", [1.0])])

    def test_health_check(self, client) -> None:
        assert self._store().health_check() is True
        client.heartbeat.side_effect = ConnectionError("down")
        assert self._store().health_check() is False

    def test_maintenance_calls_delegate(self, client) -> None:
        collection = client.get_or_create_collection.return_value
        collection.count.return_value = 7
        store = self._store()
        assert store.count() == 7
        store.delete(["a"])
        collection.delete.assert_called_once_with(ids=["a"])
        store.clear()
        client.delete_collection.assert_called_once_with("test")

    @pytest.mark.parametrize(
        ("call", "target"),
        [
            (lambda s: s.delete(["a"]), "collection.delete"),
            (lambda s: s.count(), "collection.count"),
            (lambda s: s.clear(), "client.delete_collection"),
        ],
    )
    def test_maintenance_failures_are_unavailable(self, client, call, target: str) -> None:
        owner, method = target.split(".")
        obj = client if owner == "client" else client.get_or_create_collection.return_value
        getattr(obj, method).side_effect = ConnectionError("down")
        with pytest.raises(StoreUnavailableError):
            call(self._store())


class TestBuildChromaWhere:
    @pytest.fixture(autouse=True)
    def _skip_if_chroma_broken(self) -> None:
        try:
            from grounded_rag.retrieval.chroma_store import _build_chroma_where  # noqa: F401
        except Exception:
            pytest.skip("chromadb not importable in this environment")

    def test_single_filter(self) -> None:
        from grounded_rag.retrieval.chroma_store import _build_chroma_where

        assert _build_chroma_where([MetadataFilter.equals("tenant", "a")]) == {"tenant": {"$eq": "a"}}

    def test_multiple_filters_produce_and(self) -> None:
        from grounded_rag.retrieval.chroma_store import _build_chroma_where

        where = _build_chroma_where(
            [MetadataFilter.equals("tenant", "a"), MetadataFilter(field="chunk_index", operator="gte", value=5)]
        )
        assert len(where["$and"]) == 2

    def test_none_when_empty(self) -> None:
        from grounded_rag.retrieval.chroma_store import _build_chroma_where

        assert _build_chroma_where([]) is None

    def test_unsupported_operator_raises(self) -> None:
        from grounded_rag.retrieval.chroma_store import _build_chroma_where

        with pytest.raises(InvalidArgumentError, match="Unsupported filter operator"):
            _build_chroma_where([MetadataFilter(field="x", operator="regex", value=".*")])


# ── Factory ─────────────────────────────────────────────────────────────


class TestGetVectorStore:
    def test_json_backend(self, tmp_path: Path) -> None:
        store = get_vector_store(
            Settings(vector_store_backend="json", vector_store_path=str(tmp_path / "v.json"), similarity_metric="l2")
        )
        assert isinstance(store, JsonFileVectorStore)
        assert store.metric is SimilarityMetric.L2

    def test_chroma_backend(self) -> None:
        pytest.importorskip("chromadb")
        from grounded_rag.retrieval.chroma_store import ChromaVectorStore

        store = get_vector_store(Settings(vector_store_backend="chroma", chroma_collection="kb"))
        assert isinstance(store, ChromaVectorStore)
        assert store.collection_name == "kb"

    def test_unknown_backend(self) -> None:
        with pytest.raises(InvalidConfigError, match="vector_store_backend"):
            get_vector_store(Settings(vector_store_backend="pinecone"))

    def test_unknown_metric(self) -> None:
        with pytest.raises(InvalidConfigError, match="similarity_metric"):
            get_vector_store(Settings(similarity_metric="manhattan"))
