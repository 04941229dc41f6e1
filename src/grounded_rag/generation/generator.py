"""Answer generators — (question, context) → text."""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import Any

from grounded_rag.config import Settings
from grounded_rag.exceptions import ProviderError
from grounded_rag.generation.prompts import build_grounded_prompt

logger = logging.getLogger(__name__)


class AnswerGenerator(ABC):
    """Text-generation capability used by the pipeline.

    Implementations must answer from *context* only and emit
    :data:`~grounded_rag.generation.prompts.REFUSAL_MESSAGE` verbatim when
    the context is insufficient.  Failures raise :class:`ProviderError`;
    they are never turned into the refusal sentence.
    """

    @abstractmethod
    def generate(self, question: str, context: str) -> str:
        ...


class ChatAnswerGenerator(AnswerGenerator):
    """Generator backed by a LangChain chat model.

    Parameters
    ----------
    llm:
        Any object with an ``invoke(messages)`` method returning a message
        with ``.content``.  Defaults to :func:`grounded_rag.generation.llm.get_llm`,
        built on first use.
    settings:
        Settings forwarded to ``get_llm`` when *llm* is not given.
    """

    def __init__(self, llm: Any = None, *, settings: Settings | None = None) -> None:
        self._llm = llm
        self._settings = settings

    @property
    def llm(self) -> Any:
        if self._llm is None:
            from grounded_rag.generation.llm import get_llm

            self._llm = get_llm(settings=self._settings)
        return self._llm

    def generate(self, question: str, context: str) -> str:
        messages = build_grounded_prompt(question, context)
        try:
            response = self.llm.invoke(messages)
        except Exception as exc:
            logger.error("Generation call failed: %s", exc)
            raise ProviderError(f"Generation failed: {exc}") from exc
        content = getattr(response, "content", response)
        return str(content).strip()
