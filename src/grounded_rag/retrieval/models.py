"""Domain models for documents, stored records, and retrieval results."""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Any
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field, field_validator

from grounded_rag.exceptions import InvalidArgumentError

SCALAR_TYPES = (str, int, float, bool)

# written by the pipeline onto every chunk
RESERVED_METADATA_KEYS = frozenset({"document_id", "chunk_index"})


def validate_metadata(metadata: dict[str, Any] | None) -> dict[str, Any]:
    """Return a copy of *metadata*, rejecting non-string keys and non-scalar values.

    ``None`` values are rejected too (Chroma cannot store them), as are
    the reserved keys ``document_id`` and ``chunk_index``.
    """
    if metadata is None:
        return {}
    if not isinstance(metadata, dict):
        raise InvalidArgumentError(f"metadata must be a mapping, got {type(metadata).__name__}")
    for key, value in metadata.items():
        if not isinstance(key, str):
            raise InvalidArgumentError(f"metadata keys must be strings, got {key!r}")
        if key in RESERVED_METADATA_KEYS:
            raise InvalidArgumentError(f"metadata key {key!r} is reserved")
        if not isinstance(value, SCALAR_TYPES):
            raise InvalidArgumentError(
                f"metadata value for {key!r} must be a scalar, got {type(value).__name__}"
            )
    return dict(metadata)


class SimilarityMetric(str, Enum):
    """Scoring function used by a vector store.

    ``cosine`` and ``ip`` are similarities (higher = closer); ``l2`` is a
    distance (lower = closer).
    """

    COSINE = "cosine"
    L2 = "l2"
    IP = "ip"

    @property
    def higher_is_better(self) -> bool:
        return self is not SimilarityMetric.L2


class MetadataFilter(BaseModel):
    """Declarative metadata filter for vector-store queries.

    Attributes
    ----------
    field:
        The metadata key to filter on (e.g. ``"document_id"``, ``"tenant"``).
    operator:
        Comparison operator — one of ``eq``, ``ne``, ``gt``, ``gte``,
        ``lt``, ``lte``, ``in``, ``nin``.
    value:
        The value (or list of values for ``in`` / ``nin``) to compare against.
    """

    field: str
    operator: str = "eq"
    value: Any = None

    # -- helpers for common filters ------------------------------------------

    @classmethod
    def equals(cls, field: str, value: Any) -> MetadataFilter:
        return cls(field=field, operator="eq", value=value)

    @classmethod
    def not_equals(cls, field: str, value: Any) -> MetadataFilter:
        return cls(field=field, operator="ne", value=value)

    @classmethod
    def one_of(cls, field: str, values: list[Any]) -> MetadataFilter:
        return cls(field=field, operator="in", value=values)

    def matches(self, metadata: dict[str, Any]) -> bool:
        """Evaluate the filter against *metadata* in-process.

        A missing key only satisfies ``ne`` and ``nin``.
        """
        if self.field not in metadata:
            return self.operator in ("ne", "nin")
        actual = metadata[self.field]
        op = self.operator
        try:
            if op == "eq":
                return actual == self.value
            if op == "ne":
                return actual != self.value
            if op == "in":
                return actual in self.value
            if op == "nin":
                return actual not in self.value
            if op == "gt":
                return actual > self.value
            if op == "gte":
                return actual >= self.value
            if op == "lt":
                return actual < self.value
            if op == "lte":
                return actual <= self.value
        except TypeError:
            return False
        raise InvalidArgumentError(f"Unsupported filter operator: {op!r}")


class Document(BaseModel):
    """A caller-supplied document, before normalisation and chunking."""

    id: str
    text: str
    metadata: dict[str, Any] = Field(default_factory=dict)

    @field_validator("id", mode="before")
    @classmethod
    def _coerce_id(cls, value: Any) -> Any:
        # numeric database ids are accepted and stored as strings
        if isinstance(value, (int, float)) and not isinstance(value, bool):
            return str(value)
        return value


class Chunk(BaseModel):
    """An immutable, embedded slice of a :class:`Document`."""

    model_config = ConfigDict(frozen=True)

    id: str = Field(default_factory=lambda: uuid4().hex)
    document_id: str
    chunk_index: int
    text: str
    embedding: list[float]
    metadata: dict[str, Any] = Field(default_factory=dict)

    def to_record(self) -> StoredRecord:
        return StoredRecord(
            id=self.id,
            vector=self.embedding,
            payload={
                "document_id": self.document_id,
                "text": self.text,
                "metadata": {**self.metadata, "document_id": self.document_id},
            },
        )


class StoredRecord(BaseModel):
    """Persisted ``(id, vector, payload)`` triple.

    ``payload`` carries ``document_id``, ``text`` and ``metadata``.
    """

    id: str
    vector: list[float]
    payload: dict[str, Any]

    @property
    def text(self) -> str:
        return self.payload.get("text", "")

    @property
    def metadata(self) -> dict[str, Any]:
        return self.payload.get("metadata", {})


class Citation(BaseModel):
    """Provenance record linking a retrieved chunk back to its source document.

    Attributes
    ----------
    citation_id:
        Unique identifier for this citation instance.
    chunk_id:
        The vector-store ID of the chunk (``None`` when unknown).
    document_id:
        Identifier of the document the chunk was cut from.
    chunk_index:
        Ordinal position of the chunk within the source document.
    rank:
        1-based position in the result list.
    score:
        Similarity / distance score returned by the vector store.
    retrieved_at:
        UTC timestamp of when the retrieval happened.
    """

    citation_id: str = Field(default_factory=lambda: uuid4().hex[:12])
    chunk_id: str | None = None
    document_id: str = "unknown"
    chunk_index: int | None = None
    rank: int | None = None
    score: float | None = None
    retrieved_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    def short_ref(self) -> str:
        """Return a compact ``[document§chunk]`` reference string."""
        chunk = self.chunk_index if self.chunk_index is not None else "?"
        return f"[{self.document_id}§{chunk}]"


class RetrievalMatch(BaseModel):
    """A single retrieved chunk with its score and 1-based rank."""

    id: str
    document_id: str | None = None
    content: str
    score: float
    rank: int
    metadata: dict[str, Any] = Field(default_factory=dict)

    def citation(self) -> Citation:
        return Citation(
            chunk_id=self.id,
            document_id=self.document_id or "unknown",
            chunk_index=self.metadata.get("chunk_index"),
            rank=self.rank,
            score=self.score,
        )

    def __str__(self) -> str:  # noqa: D105
        return f"{self.citation().short_ref()} {self.content[:120]}…"
