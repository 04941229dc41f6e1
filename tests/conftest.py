"""Shared pytest configuration and fixtures."""

from __future__ import annotations

import math
import re
import threading
import zlib
from pathlib import Path

import pytest

from grounded_rag.config import Settings
from grounded_rag.generation.generator import AnswerGenerator
from grounded_rag.ingestion.embedder import EmbeddingDirection, EmbeddingProvider
from grounded_rag.pipeline import RAGPipeline
from grounded_rag.retrieval.json_store import JsonFileVectorStore

_WORD = re.compile(r"[a-z0-9]+")


def pytest_configure(config: pytest.Config) -> None:
    """Register custom markers."""
    config.addinivalue_line("markers", "integration: marks tests requiring external services")


# ── Fakes ───────────────────────────────────────────────────────────────


class KeywordEmbedder(EmbeddingProvider):
    """Deterministic bag-of-words embedder (hashed into ``dim`` buckets).

    Plural ``s`` is stripped so "dogs" and "dog" land in the same bucket.
    Every call is recorded as ``(direction, text)``.
    """

    def __init__(self, dim: int = 256) -> None:
        super().__init__()
        self.dim = dim
        self.calls: list[tuple[EmbeddingDirection, str]] = []
        self._calls_lock = threading.Lock()

    def _embed(self, text: str, direction: EmbeddingDirection) -> list[float]:
        with self._calls_lock:
            self.calls.append((direction, text))
        vec = [0.0] * self.dim
        for word in _WORD.findall(text.lower()):
            if len(word) > 3 and word.endswith("s"):
                word = word[:-1]
            vec[zlib.crc32(word.encode()) % self.dim] += 1.0
        norm = math.sqrt(sum(v * v for v in vec)) or 1.0
        return [v / norm for v in vec]

    def directions(self) -> list[EmbeddingDirection]:
        return [d for d, _ in self.calls]


class RecordingGenerator(AnswerGenerator):
    """Echoes whether it got any context; counts calls."""

    def __init__(self, fail: Exception | None = None) -> None:
        self.calls: list[tuple[str, str]] = []
        self.fail = fail

    def generate(self, question: str, context: str) -> str:
        self.calls.append((question, context))
        if self.fail is not None:
            raise self.fail
        return "grounded" if context.strip() else "ungrounded"


# ── Fixtures ────────────────────────────────────────────────────────────


@pytest.fixture()
def settings(tmp_path: Path) -> Settings:
    return Settings(
        vector_store_path=str(tmp_path / "store" / "vector_store.json"),
        chunk_max_length=1200,
        embed_max_workers=4,
    )


@pytest.fixture()
def embedder() -> KeywordEmbedder:
    return KeywordEmbedder()


@pytest.fixture()
def generator() -> RecordingGenerator:
    return RecordingGenerator()


@pytest.fixture()
def json_store(settings: Settings) -> JsonFileVectorStore:
    return JsonFileVectorStore(settings.vector_store_path, metric="cosine")


@pytest.fixture()
def pipeline(
    embedder: KeywordEmbedder,
    json_store: JsonFileVectorStore,
    generator: RecordingGenerator,
    settings: Settings,
) -> RAGPipeline:
    return RAGPipeline(embedder, json_store, generator, settings=settings)
