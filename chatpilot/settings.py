"""Centralised process settings for chatpilot, loaded from env / .env."""

from __future__ import annotations

from functools import lru_cache
from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class ChatpilotSettings(BaseSettings):
    model_config = SettingsConfigDict(
        env_prefix="CHATPILOT_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # --- general ---
    app_name: str = "chatpilot"
    production: bool = False
    log_level: str = "INFO"

    # --- HTTP ---
    host: str = "0.0.0.0"
    port: int = 8080
    # Public base URL the platform calls back (webhook + temp audio files)
    webhook_url: str = ""

    # --- messaging platform (Wassenger) ---
    api_key: str = ""
    api_url: str = "https://api.wassenger.com/v1"
    device: str = ""

    # --- generative backend ---
    openai_api_key: str = ""
    openai_api_base: str = ""
    model: str = "gpt-4o"

    # --- optional knowledge lookup ---
    knowledge_url: str = ""

    # --- file-system paths ---
    config_path: Path | None = None
    temp_dir: Path = Field(default_factory=lambda: Path.home() / ".chatpilot" / "tmp")


@lru_cache
def get_settings() -> ChatpilotSettings:
    s = ChatpilotSettings()
    s.temp_dir.mkdir(parents=True, exist_ok=True)
    return s
