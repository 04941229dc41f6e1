"""FastAPI application exposing the RAG pipeline as a REST API."""

from __future__ import annotations

import logging
import threading
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import Any

from fastapi import Depends, FastAPI, Request
from fastapi.concurrency import run_in_threadpool
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ConfigDict, Field

from grounded_rag.exceptions import (
    EmptyInputError,
    InvalidArgumentError,
    ProviderError,
    RAGError,
    StoreUnavailableError,
)
from grounded_rag.pipeline import IngestResult, RAGPipeline, build_pipeline
from grounded_rag.retrieval.models import RetrievalMatch

logger = logging.getLogger(__name__)

_pipeline: RAGPipeline | None = None
_pipeline_lock = threading.Lock()


def get_pipeline() -> RAGPipeline:
    """Process-wide pipeline, built exactly once.

    Sync routes run in a threadpool, so concurrent first requests race
    here; the lock makes sure only one of them builds.
    """
    global _pipeline
    if _pipeline is None:
        with _pipeline_lock:
            if _pipeline is None:
                _pipeline = build_pipeline()
    return _pipeline


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Load the embedding model and check the store schema before serving."""
    pipeline = app.dependency_overrides.get(get_pipeline, get_pipeline)()
    await run_in_threadpool(pipeline.startup)
    logger.info("Pipeline ready")
    yield
    pipeline.close()


app = FastAPI(
    title="Grounded RAG API",
    version="0.1.0",
    description="Ingest documents and ask questions answered only from them.",
    lifespan=lifespan,
)


# ── Request / Response schemas ────────────────────────────────────────
class EmbedRequest(BaseModel):
    """Document to ingest.  Blank ``id`` / ``text`` are rejected with 400."""

    id: str | int | None = None
    text: str | None = None
    meta: dict[str, Any] | None = None


class EmbedResponse(BaseModel):
    success: bool = True
    message: str = "Document embedded"
    details: IngestResult


class AskRequest(BaseModel):
    """Question from the user."""

    model_config = ConfigDict(populate_by_name=True)

    question: str = ""
    top_k: int | None = Field(default=None, alias="topK")


class AskResponse(BaseModel):
    success: bool = True
    answer: str
    matches: list[RetrievalMatch] = []


class SearchRequest(BaseModel):
    """Raw vector search, no generation."""

    model_config = ConfigDict(populate_by_name=True)

    query: str = ""
    top_k: int | None = Field(default=None, alias="topK")


class SearchResponse(BaseModel):
    success: bool = True
    matches: list[RetrievalMatch] = []


# ── Error mapping ─────────────────────────────────────────────────────
def _status_for(exc: RAGError) -> int:
    if isinstance(exc, (EmptyInputError, InvalidArgumentError)):
        return 400
    if isinstance(exc, (StoreUnavailableError, ProviderError)):
        return 502
    return 500


@app.exception_handler(RAGError)
async def rag_error_handler(request: Request, exc: RAGError) -> JSONResponse:
    status = _status_for(exc)
    if status >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc)
    return JSONResponse(status_code=status, content={"error": str(exc), "type": type(exc).__name__})


# ── Routes ────────────────────────────────────────────────────────────
@app.get("/health")
async def health() -> dict[str, str]:
    """Liveness probe."""
    return {"status": "ok"}


@app.post("/embed", response_model=EmbedResponse)
def embed(request: EmbedRequest, pipeline: RAGPipeline = Depends(get_pipeline)) -> EmbedResponse:
    """Normalise, chunk, embed and store one document."""
    result = pipeline.ingest(request.id, request.text or "", request.meta)
    return EmbedResponse(details=result)


@app.post("/ask", response_model=AskResponse)
def ask(request: AskRequest, pipeline: RAGPipeline = Depends(get_pipeline)) -> AskResponse:
    """Answer a question from the stored documents."""
    result = pipeline.ask(request.question, request.top_k)
    return AskResponse(answer=result.answer, matches=result.matches)


@app.post("/search", response_model=SearchResponse)
def search(request: SearchRequest, pipeline: RAGPipeline = Depends(get_pipeline)) -> SearchResponse:
    """Return the top matches without calling the generator."""
    return SearchResponse(matches=pipeline.search(request.query, request.top_k))
