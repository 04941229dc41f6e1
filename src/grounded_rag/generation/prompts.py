"""Prompt templates for grounded answer generation.

:data:`REFUSAL_MESSAGE` is the one and only refusal sentence.  The
pipeline returns it verbatim when nothing was retrieved, and the prompt
instructs the model to emit it verbatim when the context does not hold
the answer, so callers can pattern-match on a single string.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from langchain_core.messages import HumanMessage, SystemMessage

if TYPE_CHECKING:
    from langchain_core.messages import BaseMessage

REFUSAL_MESSAGE = "No matching information found."

GROUNDED_SYSTEM = f"""\
You are a precise, helpful assistant. Answer the user's question using
**only** the provided context.

Rules:
1. Do not use outside knowledge and do not fabricate information.
2. If the context does not contain the answer, reply exactly:
   "{REFUSAL_MESSAGE}"
3. Be concise.
"""


def build_grounded_prompt(question: str, context: str) -> list[BaseMessage]:
    """Assemble the chat messages for a grounded generation call.

    Parameters
    ----------
    question:
        The user question.
    context:
        Context block produced by :func:`grounded_rag.retrieval.context.assemble`.

    Returns
    -------
    list[BaseMessage]
        A list of LangChain message objects ready for ``.invoke()``.
    """
    user_msg = (
        "Use ONLY the following context to answer the user's question.\n"
        "If the context does not contain the answer, reply exactly:\n"
        f'"{REFUSAL_MESSAGE}"\n\n'
        f"CONTEXT:\n{context}\n\n"
        f"QUESTION:\n{question}"
    )
    return [
        SystemMessage(content=GROUNDED_SYSTEM),
        HumanMessage(content=user_msg),
    ]
