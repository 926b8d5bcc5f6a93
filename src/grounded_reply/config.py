"""Shared configuration loaded from environment / ``.env`` file."""

from __future__ import annotations

import logging

from pydantic import Field
from pydantic_settings import BaseSettings

# Media types accepted at upload time, keyed to the extractor family that
# handles them (see :mod:`grounded_reply.ingestion.loader`).
ALLOWED_MEDIA_TYPES: dict[str, str] = {
    "application/pdf": "pdf",
    "image/jpeg": "image",
    "image/png": "image",
    "image/gif": "image",
    "text/plain": "text",
    "application/msword": "doc",
    "application/vnd.openxmlformats-officedocument.wordprocessingml.document": "docx",
}

MIB = 1024 * 1024


class Settings(BaseSettings):
    """Application-wide settings, populated from env vars or .env file."""

    # LLM
    openai_api_key: str = Field(default="", description="OpenAI API key")
    llm_model_name: str = Field(default="gpt-4", description="Model used to draft enhanced replies")
    llm_base_url: str = Field(
        default="",
        description=(
            "Base URL for an OpenAI-compatible API. Leave empty to use OpenAI cloud."
        ),
    )
    summary_model_name: str = "gpt-4o-mini"
    vision_model_name: str = "gpt-4o-mini"
    generation_temperature: float = 0.7
    generation_max_tokens: int = 1000
    request_timeout: float = Field(default=60.0, description="Per-call timeout (seconds) for model APIs")

    # Embedding
    embedding_provider: str = Field(default="openai", description="'openai' or 'huggingface'")
    embedding_model: str = "text-embedding-3-small"
    embedding_dim: int = Field(default=1536, gt=0)
    embedding_text_limit: int = Field(default=8000, description="Characters of document text embedded")

    # Retrieval
    similarity_threshold: float = 0.8
    max_relevant_docs: int = Field(default=5, gt=0)

    # Ingestion
    max_upload_bytes: int = 50 * MIB
    generate_summaries: bool = False
    storage_root: str = "./uploads"

    # Logging
    log_level: str = "INFO"

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8"}


def configure_logging(level: str | None = None) -> None:
    """Apply ``settings.log_level`` (or *level*) to the root logger."""
    logging.basicConfig(
        level=(level or settings.log_level).upper(),
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )


# Singleton; import `settings` wherever needed.
settings = Settings()
