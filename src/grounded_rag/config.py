"""Shared configuration loaded from environment / .env file."""

from __future__ import annotations

from pydantic import Field
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application-wide settings, populated from env vars or .env file."""

    # LLM
    openai_api_key: str = Field(default="", description="API key for the OpenAI-compatible chat endpoint")
    llm_model_name: str = Field(default="gpt-4o-mini", description="Chat model identifier")
    llm_base_url: str = Field(
        default="",
        description=(
            "Base URL for the chat API. Leave empty to use OpenAI cloud. "
            "Any OpenAI-compatible endpoint works, e.g. "
            "'https://openrouter.ai/api/v1' or a local vLLM server."
        ),
    )
    llm_temperature: float = 0.1

    # Embedding
    embedding_model: str = "sentence-transformers/all-MiniLM-L6-v2"
    embedding_document_prefix: str = Field(
        default="",
        description="Prepended to document-side texts, e.g. 'search_document: ' for nomic models",
    )
    embedding_query_prefix: str = Field(
        default="",
        description="Prepended to query-side texts, e.g. 'search_query: ' for nomic models",
    )
    embedding_normalize: bool = True
    embed_max_workers: int = Field(default=4, ge=1, description="Concurrent embedding calls per ingest")

    # Chunking
    chunk_strategy: str = Field(default="sentence", description="'sentence' or 'window'")
    chunk_max_length: int = 1200
    window_size: int = 800
    window_overlap: int = 120

    # Vector store
    vector_store_backend: str = Field(default="json", description="'json' or 'chroma'")
    vector_store_path: str = "./data/vector_store.json"
    similarity_metric: str = Field(default="cosine", description="'cosine', 'l2' or 'ip'")
    chroma_host: str = "localhost"
    chroma_port: int = 8000
    chroma_collection: str = "grounded_rag"

    # Retrieval
    default_top_k: int = Field(default=5, ge=1)

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8"}


# Singleton — import `settings` wherever needed.
settings = Settings()
