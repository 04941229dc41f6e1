"""Embedding providers — text → dense vector, per direction.

Document-side and query-side texts go through different entry points
because asymmetric models (e5, nomic, bge …) embed them differently.
Ingestion must always use :meth:`EmbeddingProvider.embed_document` and
retrieval :meth:`EmbeddingProvider.embed_query`.
"""

from __future__ import annotations

import logging
import threading
from abc import ABC, abstractmethod
from enum import Enum
from typing import TYPE_CHECKING

from grounded_rag.config import settings
from grounded_rag.exceptions import EmptyInputError, ProviderError, RAGError

if TYPE_CHECKING:
    from langchain_huggingface import HuggingFaceEmbeddings

logger = logging.getLogger(__name__)

_DIMENSION_PROBE = "dimension probe"


class EmbeddingDirection(str, Enum):
    """Which side of the retrieval pair a text belongs to."""

    DOCUMENT = "document"
    QUERY = "query"


class EmbeddingProvider(ABC):
    """Backend-agnostic embedding interface.

    Subclasses implement :meth:`_embed`; validation, error wrapping and
    dimension bookkeeping live here.
    """

    def __init__(self) -> None:
        self._dimension: int | None = None

    # -- required overrides ---------------------------------------------------

    @abstractmethod
    def _embed(self, text: str, direction: EmbeddingDirection) -> list[float]:
        """Return the vector for *text*; *text* is already known to be non-blank."""
        ...

    # -- public API -----------------------------------------------------------

    def embed(self, text: str, direction: EmbeddingDirection | str) -> list[float]:
        """Embed *text* for the given *direction*.

        Raises
        ------
        EmptyInputError
            When *text* is blank; no model call is made.
        ProviderError
            When the underlying model fails.
        """
        if not text or not text.strip():
            raise EmptyInputError("Cannot embed empty text")
        direction = EmbeddingDirection(direction)

        try:
            vector = [float(x) for x in self._embed(text, direction)]
        except RAGError:
            raise
        except Exception as exc:
            logger.error("Embedding call failed (direction=%s): %s", direction.value, exc)
            raise ProviderError(f"Embedding failed: {exc}") from exc

        if self._dimension is None and vector:
            self._dimension = len(vector)
        return vector

    def embed_document(self, text: str) -> list[float]:
        return self.embed(text, EmbeddingDirection.DOCUMENT)

    def embed_query(self, text: str) -> list[float]:
        return self.embed(text, EmbeddingDirection.QUERY)

    @property
    def dimension(self) -> int:
        """Vector length ``D``; probes the model once if nothing was embedded yet."""
        if self._dimension is None:
            self.embed_document(_DIMENSION_PROBE)
        if self._dimension is None:
            raise ProviderError("Embedding model returned no vector; dimension unknown")
        return self._dimension

    # -- lifecycle ------------------------------------------------------------

    def load(self) -> None:
        """Eagerly initialise the underlying model.  Optional."""

    def close(self) -> None:
        """Release the underlying model.  Optional."""


class HuggingFaceEmbeddingProvider(EmbeddingProvider):
    """Sentence-transformer embeddings via ``langchain_huggingface``.

    The model is loaded lazily on first use.  Loading happens at most once
    per instance even when several threads hit the provider at the same
    time: late callers block on the lock until the first load finishes.

    Parameters
    ----------
    model_name:
        HuggingFace model identifier.
    document_prefix / query_prefix:
        Prompt framing prepended per direction (``"search_document: "`` /
        ``"search_query: "`` for nomic-embed models).
    normalize:
        L2-normalise vectors; recommended for cosine similarity.
    """

    def __init__(
        self,
        model_name: str = settings.embedding_model,
        *,
        document_prefix: str = settings.embedding_document_prefix,
        query_prefix: str = settings.embedding_query_prefix,
        normalize: bool = settings.embedding_normalize,
    ) -> None:
        super().__init__()
        self.model_name = model_name
        self.document_prefix = document_prefix
        self.query_prefix = query_prefix
        self.normalize = normalize
        self._model: HuggingFaceEmbeddings | None = None
        self._lock = threading.Lock()

    def load(self) -> HuggingFaceEmbeddings:
        model = self._model
        if model is not None:
            return model

        with self._lock:
            if self._model is None:
                logger.info("Loading embedding model %s", self.model_name)
                try:
                    from langchain_huggingface import HuggingFaceEmbeddings

                    self._model = HuggingFaceEmbeddings(
                        model_name=self.model_name,
                        encode_kwargs={"normalize_embeddings": self.normalize},
                    )
                except Exception as exc:
                    raise ProviderError(
                        f"Failed to load embedding model {self.model_name!r}: {exc}"
                    ) from exc
                logger.info("Embedding model %s ready", self.model_name)
            return self._model

    def close(self) -> None:
        with self._lock:
            self._model = None

    def _embed(self, text: str, direction: EmbeddingDirection) -> list[float]:
        model = self.load()
        if direction is EmbeddingDirection.DOCUMENT:
            return model.embed_documents([f"{self.document_prefix}{text}"])[0]
        return model.embed_query(f"{self.query_prefix}{text}")
