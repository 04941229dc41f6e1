"""Error taxonomy shared by every layer of the pipeline.

Validation errors (:class:`EmptyInputError`, :class:`InvalidArgumentError`)
are raised before any external call is made.  Failures coming from an
external capability (embedding model, vector store, chat model) are
wrapped into :class:`ProviderError` / :class:`StoreUnavailableError` with
the original exception chained as ``__cause__``.
"""

from __future__ import annotations


class RAGError(Exception):
    """Base class for all errors raised by :mod:`grounded_rag`."""


# ── validation ────────────────────────────────────────────────────────


class EmptyInputError(RAGError, ValueError):
    """Document or question text is blank."""


class EmptyContentError(EmptyInputError):
    """Normalisation left nothing but whitespace."""


class EmptyQuestionError(EmptyInputError):
    """The question (or search query) is blank."""


class InvalidArgumentError(RAGError, ValueError):
    """An argument is out of range, e.g. ``k <= 0`` or non-scalar metadata."""


class InvalidConfigError(InvalidArgumentError):
    """A configuration value is unusable, e.g. ``overlap >= size``."""


# ── external capabilities ─────────────────────────────────────────────


class StoreUnavailableError(RAGError):
    """The vector store could not be reached or read."""


class SchemaMismatchError(RAGError):
    """The existing collection disagrees with the configured dimension or metric."""


class ProviderError(RAGError):
    """The embedding or generation capability failed."""
