from __future__ import annotations

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_prefix="FOLIO_",
        extra="ignore",
        env_file=".env",
        env_file_encoding="utf-8",
    )

    # Server-wide ceilings for a single cursor portion.
    cursor_max_elements_ceiling: int = 50
    cursor_max_bytes_ceiling: int = 32_768


settings = Settings()
