"""LLM initialisation — single place to swap providers.

Any OpenAI-compatible chat endpoint works:

1. **OpenAI cloud** (default) — set ``OPENAI_API_KEY``.
2. **OpenRouter / vLLM / other compatible servers** — set ``LLM_BASE_URL``
   (e.g. ``https://openrouter.ai/api/v1``) and the matching key.
"""

from __future__ import annotations

import logging

from langchain_openai import ChatOpenAI

from grounded_rag.config import Settings, settings as default_settings

logger = logging.getLogger(__name__)


def get_llm(temperature: float | None = None, settings: Settings | None = None) -> ChatOpenAI:
    """Return the configured chat model.

    When ``settings.llm_base_url`` is set the client is pointed at that
    endpoint instead of the OpenAI cloud API.  A dummy API key
    (``"EMPTY"``) is used for endpoints that do not require one.
    """
    settings = settings or default_settings
    kwargs: dict = {
        "model": settings.llm_model_name,
        "temperature": settings.llm_temperature if temperature is None else temperature,
    }

    if settings.llm_base_url:
        logger.info("Using OpenAI-compatible endpoint: %s", settings.llm_base_url)
        kwargs["base_url"] = settings.llm_base_url
        # local servers don't need a real key; LangChain requires a non-empty value.
        kwargs["api_key"] = settings.openai_api_key or "EMPTY"
    else:
        kwargs["api_key"] = settings.openai_api_key

    return ChatOpenAI(**kwargs)
