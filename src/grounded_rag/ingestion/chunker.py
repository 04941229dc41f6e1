"""Text chunking strategies."""

from __future__ import annotations

import re

from grounded_rag.exceptions import InvalidArgumentError, InvalidConfigError

# Sentence-terminal punctuation followed by whitespace; the punctuation
# stays attached to the sentence it ends.
_SENTENCE_BOUNDARY = re.compile(r"(?<=[.?!])\s+")

STRATEGIES = ("sentence", "window")


def split_sentences(text: str) -> list[str]:
    """Split *text* into sentence-like segments, dropping blank ones."""
    return [s.strip() for s in _SENTENCE_BOUNDARY.split(text) if s.strip()]


def chunk(text: str, max_length: int) -> list[str]:
    """Greedily pack whole sentences into chunks of at most *max_length* chars.

    Sentences are joined with a single space.  A chunk only exceeds
    *max_length* when one sentence on its own is longer than the limit;
    such a sentence is emitted whole rather than cut mid-word.

    Parameters
    ----------
    text:
        Normalised plain text.
    max_length:
        Upper bound on chunk length, in characters.

    Returns
    -------
    list[str]
        Chunks in original sentence order.  Empty for blank input.
    """
    if max_length <= 0:
        raise InvalidArgumentError(f"max_length must be > 0, got {max_length}")

    chunks: list[str] = []
    buffer = ""
    for sentence in split_sentences(text):
        candidate = f"{buffer} {sentence}" if buffer else sentence
        if buffer and len(candidate) > max_length:
            chunks.append(buffer)
            buffer = sentence
        else:
            buffer = candidate
    if buffer:
        chunks.append(buffer)
    return chunks


def sliding_window(text: str, size: int, overlap: int) -> list[str]:
    """Cut *text* into fixed windows of *size* chars sharing *overlap* chars.

    Windows advance by ``size - overlap``; the final window may be
    shorter than *size*.  Stops as soon as a window reaches the end of
    the text, so no window is wholly contained in its predecessor.
    """
    if size <= 0:
        raise InvalidConfigError(f"size must be > 0, got {size}")
    if overlap < 0 or overlap >= size:
        raise InvalidConfigError(
            f"overlap ({overlap}) must be >= 0 and < size ({size})"
        )

    step = size - overlap
    windows: list[str] = []
    start = 0
    while start < len(text):
        end = min(len(text), start + size)
        windows.append(text[start:end])
        if end == len(text):
            break
        start += step
    return windows


def split_text(
    text: str,
    *,
    strategy: str = "sentence",
    max_length: int = 1200,
    window_size: int = 800,
    window_overlap: int = 120,
) -> list[str]:
    """Dispatch to :func:`chunk` or :func:`sliding_window` by *strategy*."""
    if strategy == "sentence":
        return chunk(text, max_length)
    if strategy == "window":
        return sliding_window(text, window_size, window_overlap)
    raise InvalidConfigError(
        f"Unsupported chunk strategy {strategy!r}. Choose from: {', '.join(STRATEGIES)}."
    )
