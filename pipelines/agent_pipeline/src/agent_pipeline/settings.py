"""
Configuration settings for the agent pipeline.

Environment variables:
    FOLIO_LLM_BASE_URL        OpenAI-compatible API prefix (".../v1") or full chat/completions URL
    FOLIO_LLM_API_KEY         Bearer token (optional for local servers)
    FOLIO_LLM_MODEL           Model name sent with every request
    FOLIO_AGENT_*             Agent limits, see below
"""

from __future__ import annotations

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Agent pipeline settings."""

    model_config = SettingsConfigDict(
        env_prefix="FOLIO_",
        extra="ignore",
        env_file=".env",
        env_file_encoding="utf-8",
    )

    # LLM endpoint
    llm_base_url: str = "http://localhost:11434/v1"
    llm_api_key: str | None = None
    llm_model: str = "qwen2.5:7b-instruct"
    llm_timeout_s: float = 120.0
    llm_temperature: float = 0.0
    llm_max_tokens: int = 2048
    llm_response_format_json: bool = True

    # Agent limits
    agent_default_max_steps: int = 128
    agent_max_steps_limit: int = 512
    agent_max_found: int = 20
    agent_snapshot_evidence_limit: int = 5
    agent_max_summary_length: int = 500
    agent_max_excerpt_length: int = 1000
    agent_batch_max_elements: int = 50
    agent_batch_max_bytes: int = 8192
    agent_max_parse_retries: int = 2
    agent_log_truncate_chars: int = 1000


# Global settings instance
_settings: Settings | None = None


def get_settings() -> Settings:
    """Get or create global settings instance."""
    global _settings
    if _settings is None:
        _settings = Settings()
    return _settings
