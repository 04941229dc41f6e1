"""Render ranked matches into the context block handed to the generator."""

from __future__ import annotations

from collections.abc import Sequence

from grounded_rag.retrieval.models import RetrievalMatch

CONTEXT_DELIMITER = "\n--------------------\n"


def format_match(match: RetrievalMatch) -> str:
    return f"Chunk {match.rank} (score: {match.score:.3f}):\n\n{match.content}"


def assemble(matches: Sequence[RetrievalMatch]) -> str:
    """Join *matches* in rank order, each labelled with rank and score.

    Returns ``""`` for an empty sequence.  No truncation happens here;
    ``k`` and the chunk length limit bound the size upstream.
    """
    ordered = sorted(matches, key=lambda m: m.rank)
    return CONTEXT_DELIMITER.join(format_match(m) for m in ordered)
