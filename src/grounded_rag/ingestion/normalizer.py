"""Turn raw document input (HTML or plain text) into clean plain text."""

from __future__ import annotations

import re
import unicodedata

from bs4 import BeautifulSoup

from grounded_rag.exceptions import EmptyContentError

# Elements whose content never belongs in the indexed text.
_DROP_TAGS = ["script", "style", "noscript", "template", "img"]

_CONTROL_CHARS = re.compile(r"[\x00-\x08\x0b\x0c\x0e-\x1f\x7f]")
_WHITESPACE = re.compile(r"\s+")


def looks_like_markup(raw: str) -> bool:
    """Heuristic used when the caller does not say whether *raw* is markup."""
    return raw.lstrip().startswith("<")


def strip_markup(raw: str) -> str:
    """Return the visible text of an HTML fragment or page."""
    soup = BeautifulSoup(raw, "html.parser")
    for tag in soup(_DROP_TAGS):
        tag.decompose()
    # separator keeps words from adjacent block elements apart
    return soup.get_text(separator=" ")


def collapse_whitespace(text: str) -> str:
    """Unicode NFC, drop control chars, collapse whitespace runs, trim ends."""
    text = unicodedata.normalize("NFC", text)
    text = _CONTROL_CHARS.sub("", text)
    return _WHITESPACE.sub(" ", text).strip()


def normalize(raw: str, *, is_markup: bool | None = None) -> str:
    """Normalise *raw* into single-spaced plain text.

    Parameters
    ----------
    raw:
        Document body — HTML markup or plain text.
    is_markup:
        Force markup handling on (``True``) or off (``False``).  When
        ``None`` the input is treated as markup if it begins with ``<``.

    Returns
    -------
    str
        Plain text with whitespace runs collapsed to single spaces.

    Raises
    ------
    EmptyContentError
        When nothing but whitespace remains.
    """
    if is_markup is None:
        is_markup = looks_like_markup(raw or "")

    text = strip_markup(raw) if is_markup else (raw or "")
    text = collapse_whitespace(text)
    if not text:
        raise EmptyContentError("Document content is empty after normalisation")
    return text
