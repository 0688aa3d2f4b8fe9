"""Unified configuration for the Popbar chat service."""

from __future__ import annotations

import json
from functools import lru_cache
from pathlib import Path

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Global settings for the service."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="allow",
    )

    # HTTP server
    host: str = "127.0.0.1"
    port: int = 4000
    cors_origins: list[str] = ["*"]

    # Completion provider (OpenAI-compatible chat completions API)
    openai_api_key: str | None = None
    openai_base_url: str = "https://api.openai.com/v1"
    chat_model: str = "gpt-4o-mini"
    provider_extra_headers: dict[str, str] = {}

    # Checkout (external collaborator, only its URL is exposed)
    checkout_url: str | None = None

    # Logs
    log_dir: str = "server/logs"
    log_rotate_mb: int = 5
    log_retention_days: int = 7
    log_level: str = "INFO"
    mask_secrets_patterns: str = "api_key,token,authorization,password"

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls,
        init_settings,
        env_settings,
        dotenv_settings,
        file_secret_settings,
    ):
        return (
            init_settings,
            env_settings,
            dotenv_settings,
            cls.json_config_settings_source,
            file_secret_settings,
        )

    @staticmethod
    def json_config_settings_source() -> dict[str, object]:
        """Load config.json from the repository root when present."""
        config_path = Path(__file__).resolve().parents[2] / "config.json"
        if config_path.is_file():
            try:
                return json.loads(config_path.read_text())
            except ValueError:
                return {}
        return {}

    def masked(self) -> dict[str, object]:
        """Return the settings as a dict with secret-looking values hidden."""
        patterns = [p.strip().lower() for p in self.mask_secrets_patterns.split(",") if p.strip()]
        data = self.model_dump()
        for key, value in data.items():
            if value and any(pattern in key.lower() for pattern in patterns):
                data[key] = "***"
        return data


@lru_cache()
def get_settings() -> Settings:
    """Return a cached Settings instance."""
    return Settings()
