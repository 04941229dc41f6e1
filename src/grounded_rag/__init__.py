"""
grounded_rag — retrieval-augmented generation with a strict grounding policy.

Public API
----------
- :class:`RAGPipeline` — ``ingest`` / ``ask`` / ``search``.
- :func:`build_pipeline` — wire default providers from settings.
- :data:`REFUSAL_MESSAGE` — the sentence returned when nothing grounds an answer.
"""

from grounded_rag.generation.prompts import REFUSAL_MESSAGE
from grounded_rag.pipeline import AskResult, IngestResult, RAGPipeline, build_pipeline

__all__ = [
    "REFUSAL_MESSAGE",
    "AskResult",
    "IngestResult",
    "RAGPipeline",
    "build_pipeline",
]
