"""
Generation — grounded answer generation on top of retrieved context.

Public API
----------
- :class:`AnswerGenerator` — abstract generation capability.
- :class:`ChatAnswerGenerator` — LangChain chat-model implementation.
- :data:`REFUSAL_MESSAGE` — the single refusal sentence.
- :func:`build_grounded_prompt` — prompt messages for a generation call.
"""

from grounded_rag.generation.generator import AnswerGenerator, ChatAnswerGenerator
from grounded_rag.generation.prompts import REFUSAL_MESSAGE, build_grounded_prompt

__all__ = [
    "REFUSAL_MESSAGE",
    "AnswerGenerator",
    "ChatAnswerGenerator",
    "build_grounded_prompt",
]
