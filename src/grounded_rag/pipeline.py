"""RAG orchestrator — the two public operations, ``ingest`` and ``ask``.

Ingestion::

    raw text ─▶ normalize ─▶ chunk ─▶ embed (document side) ─▶ upsert (one batch)

Question answering::

    question ─▶ embed (query side) ─▶ search ─▶ assemble context ─▶ generate

Grounding policy
----------------
Refusal happens at two levels.  When retrieval returns nothing the
pipeline answers :data:`REFUSAL_MESSAGE` itself and never calls the
generator.  When something was retrieved but does not answer the
question, the prompt instructs the model to emit that same sentence.
A *failed* generation call raises; it is never reported as a refusal.

Re-ingesting a document id appends a fresh set of chunks (new uuid ids);
earlier chunks for that id stay in the store until it is cleared.
"""

from __future__ import annotations

import logging
import threading
from concurrent.futures import ThreadPoolExecutor
from typing import Any

from pydantic import BaseModel, Field

from grounded_rag.config import Settings, settings as default_settings
from grounded_rag.exceptions import (
    EmptyInputError,
    EmptyQuestionError,
    ProviderError,
    RAGError,
    StoreUnavailableError,
)
from grounded_rag.generation.generator import AnswerGenerator, ChatAnswerGenerator
from grounded_rag.generation.prompts import REFUSAL_MESSAGE
from grounded_rag.ingestion.chunker import split_text
from grounded_rag.ingestion.embedder import EmbeddingProvider, HuggingFaceEmbeddingProvider
from grounded_rag.ingestion.normalizer import normalize
from grounded_rag.retrieval.base import VectorStoreBase
from grounded_rag.retrieval.context import assemble
from grounded_rag.retrieval.factory import get_vector_store
from grounded_rag.retrieval.models import (
    Chunk,
    Document,
    MetadataFilter,
    RetrievalMatch,
    StoredRecord,
    validate_metadata,
)
from grounded_rag.retrieval.retriever import SemanticRetriever

logger = logging.getLogger(__name__)


class IngestResult(BaseModel):
    """Outcome of :meth:`RAGPipeline.ingest`."""

    success: bool = True
    chunk_count: int


class AskResult(BaseModel):
    """Outcome of :meth:`RAGPipeline.ask`."""

    answer: str
    matches: list[RetrievalMatch] = Field(default_factory=list)

    @property
    def refused(self) -> bool:
        return self.answer.strip() == REFUSAL_MESSAGE


class RAGPipeline:
    """Composes normaliser, chunker, embedder, store and generator.

    Parameters
    ----------
    embedder:
        Embedding capability; ingestion uses the document side, queries
        the query side.
    store:
        Vector-store backend.
    generator:
        Answer generator.
    settings:
        Chunking, concurrency and retrieval defaults.
    """

    def __init__(
        self,
        embedder: EmbeddingProvider,
        store: VectorStoreBase,
        generator: AnswerGenerator,
        *,
        settings: Settings | None = None,
    ) -> None:
        self.settings = settings or default_settings
        self.embedder = embedder
        self.store = store
        self.generator = generator
        self.retriever = SemanticRetriever(store, embedder, default_k=self.settings.default_top_k)
        self._schema_ready = False
        self._schema_lock = threading.Lock()

    # -- lifecycle ------------------------------------------------------------

    def startup(self) -> None:
        """Load the embedding model and make sure the store schema exists.

        Safe to call on every start; a no-op once done.
        """
        self.embedder.load()
        self._ensure_schema(self.embedder.dimension)

    def close(self) -> None:
        self.embedder.close()

    # -- ingestion ------------------------------------------------------------

    def ingest(
        self,
        document_id: str | int,
        text: str,
        metadata: dict[str, Any] | None = None,
    ) -> IngestResult:
        """Normalise, chunk, embed and store one document.

        Parameters
        ----------
        document_id:
            Caller's identifier for the document (numbers are stringified).
        text:
            HTML or plain text body.
        metadata:
            Flat ``str → scalar`` mapping copied onto every chunk.

        Raises
        ------
        EmptyInputError
            Blank id or text, or nothing left after normalisation.
        InvalidArgumentError
            Non-scalar metadata or bad chunking configuration.
        ProviderError / StoreUnavailableError / SchemaMismatchError
            From the embedder or the store.  Chunks already written by
            an earlier call are left in place.
        """
        if document_id is None or not str(document_id).strip():
            raise EmptyInputError("Document 'id' is required")
        if not text or not text.strip():
            raise EmptyInputError("Document 'text' is required")
        document = Document(id=document_id, text=text, metadata=validate_metadata(metadata))

        cleaned = normalize(document.text)
        pieces = split_text(
            cleaned,
            strategy=self.settings.chunk_strategy,
            max_length=self.settings.chunk_max_length,
            window_size=self.settings.window_size,
            window_overlap=self.settings.window_overlap,
        )
        logger.info("Document %s split into %d chunks", document.id, len(pieces))
        if not pieces:
            return IngestResult(chunk_count=0)

        vectors = self._embed_all(pieces)
        self._ensure_schema(len(vectors[0]))

        chunks = [
            Chunk(
                document_id=document.id,
                chunk_index=i,
                text=piece,
                embedding=vector,
                metadata={**document.metadata, "chunk_index": i},
            )
            for i, (piece, vector) in enumerate(zip(pieces, vectors))
        ]
        self._upsert([c.to_record() for c in chunks])
        logger.info("Stored %d chunks for document %s", len(chunks), document.id)
        return IngestResult(chunk_count=len(chunks))

    # -- querying -------------------------------------------------------------

    def ask(
        self,
        question: str,
        top_k: int | None = None,
        *,
        filters: list[MetadataFilter] | None = None,
    ) -> AskResult:
        """Answer *question* from the stored chunks.

        Returns :data:`REFUSAL_MESSAGE` with no matches, without calling
        the generator, when retrieval finds nothing.

        Raises
        ------
        EmptyQuestionError
            Blank question.
        InvalidArgumentError
            ``top_k <= 0``.
        ProviderError
            Embedding or generation failed.
        """
        matches = self.search(question, top_k, filters=filters)
        if not matches:
            logger.info("No matches for question; returning refusal without generation")
            return AskResult(answer=REFUSAL_MESSAGE, matches=[])

        context = assemble(matches)
        try:
            answer = self.generator.generate(question, context)
        except RAGError:
            raise
        except Exception as exc:
            logger.error("Answer generation failed: %s", exc)
            raise ProviderError(f"Generation failed: {exc}") from exc
        return AskResult(answer=answer, matches=matches)

    def search(
        self,
        query: str,
        top_k: int | None = None,
        *,
        filters: list[MetadataFilter] | None = None,
    ) -> list[RetrievalMatch]:
        """Retrieval without generation."""
        if not query or not query.strip():
            raise EmptyQuestionError("Question is required")
        return self.retriever.retrieve(query, top_k, filters=filters)

    # -- internals ------------------------------------------------------------

    def _embed_all(self, texts: list[str]) -> list[list[float]]:
        workers = min(self.settings.embed_max_workers, len(texts))
        if workers <= 1:
            return [self.embedder.embed_document(t) for t in texts]
        # map() keeps input order and re-raises the first failure
        with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="embed") as pool:
            return list(pool.map(self.embedder.embed_document, texts))

    def _ensure_schema(self, dimension: int) -> None:
        if self._schema_ready:
            return
        with self._schema_lock:
            if not self._schema_ready:
                self._call_store(self.store.ensure_schema, dimension, self.store.metric)
                self._schema_ready = True

    def _upsert(self, records: list[StoredRecord]) -> None:
        self._call_store(self.store.upsert, records)

    @staticmethod
    def _call_store(fn, *args):  # noqa: ANN001, ANN205
        try:
            return fn(*args)
        except RAGError:
            raise
        except Exception as exc:
            logger.error("Vector store call %s failed: %s", getattr(fn, "__name__", fn), exc)
            raise StoreUnavailableError(f"Vector store call failed: {exc}") from exc


def build_pipeline(settings: Settings | None = None) -> RAGPipeline:
    """Wire the default providers from *settings*."""
    settings = settings or default_settings
    embedder = HuggingFaceEmbeddingProvider(
        settings.embedding_model,
        document_prefix=settings.embedding_document_prefix,
        query_prefix=settings.embedding_query_prefix,
        normalize=settings.embedding_normalize,
    )
    return RAGPipeline(
        embedder,
        get_vector_store(settings),
        ChatAnswerGenerator(settings=settings),
        settings=settings,
    )
