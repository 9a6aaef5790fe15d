"""Configuration loading utilities."""

import json
import os
from pathlib import Path
from typing import Any

from dotenv import load_dotenv
from loguru import logger

from chatpilot.config.schema import Config
from chatpilot.errors import ConfigError

# Load .env into os.environ (won't overwrite existing env vars)
load_dotenv(override=False)


def get_config_path() -> Path:
    """Get the default configuration file path."""
    return Path.home() / ".chatpilot" / "config.json"


def load_config(config_path: Path | None = None, *, strict: bool = False) -> Config:
    """
    Load configuration from file, then apply env-var overrides.

    Priority (highest → lowest):
        1. CHATPILOT_* environment variables / .env
        2. config.json (camelCase keys)
        3. Built-in defaults

    Args:
        config_path: Explicit file path; defaults to ~/.chatpilot/config.json.
        strict: Raise ConfigError on an unreadable file instead of falling
            back to defaults.
    """
    path = config_path or get_config_path()

    if path.exists():
        try:
            with open(path) as f:
                data = json.load(f)
            config = Config.model_validate(convert_keys(data))
        except (json.JSONDecodeError, ValueError) as e:
            if strict:
                raise ConfigError(f"Invalid config file {path}: {e}") from e
            logger.warning(f"Failed to load config from {path}: {e}. Using default configuration.")
            config = Config()
    else:
        config = Config()

    _apply_env_overrides(config, strict=strict)
    return config


# ---------------------------------------------------------------------------
# Flat env-var overrides: keeps .env readable (no __ nesting)
# ---------------------------------------------------------------------------


def _split_list(val: str) -> list[str]:
    return [v.strip() for v in val.split(",") if v.strip()]


def _is_true(val: str) -> bool:
    return val.strip().lower() in ("1", "true", "yes", "on")


def _parse_int(name: str, val: str, strict: bool) -> int | None:
    try:
        return int(val)
    except ValueError:
        if strict:
            raise ConfigError(f"{name} must be an integer, got {val!r}") from None
        logger.warning(f"Ignoring {name}={val!r}: not an integer")
        return None


def _apply_env_overrides(config: Config, strict: bool = False) -> None:
    """Apply flat CHATPILOT_* env vars on top of the loaded config."""

    # --- Filters ---
    if val := os.environ.get("CHATPILOT_NUMBERS_WHITELIST"):
        config.filters.numbers_whitelist = _split_list(val)
    if val := os.environ.get("CHATPILOT_NUMBERS_BLACKLIST"):
        config.filters.numbers_blacklist = _split_list(val)
    if val := os.environ.get("CHATPILOT_SKIP_CHAT_WITH_LABELS"):
        config.filters.skip_chat_with_labels = _split_list(val)
    if val := os.environ.get("CHATPILOT_SKIP_ARCHIVED_CHATS"):
        config.filters.skip_archived_chats = _is_true(val)

    # --- Team assignment ---
    if val := os.environ.get("CHATPILOT_TEAM_WHITELIST"):
        config.team.team_whitelist = _split_list(val)
    if val := os.environ.get("CHATPILOT_TEAM_BLACKLIST"):
        config.team.team_blacklist = _split_list(val)
    if val := os.environ.get("CHATPILOT_ASSIGN_ONLY_TO_ONLINE_MEMBERS"):
        config.team.assign_only_to_online_members = _is_true(val)

    # --- Features ---
    if val := os.environ.get("CHATPILOT_AUDIO_INPUT"):
        config.features.audio_input = _is_true(val)
    if val := os.environ.get("CHATPILOT_AUDIO_OUTPUT"):
        config.features.audio_output = _is_true(val)
    if val := os.environ.get("CHATPILOT_AUDIO_ONLY"):
        config.features.audio_only = _is_true(val)
    if val := os.environ.get("CHATPILOT_IMAGE_INPUT"):
        config.features.image_input = _is_true(val)
    if val := os.environ.get("CHATPILOT_VOICE"):
        config.features.voice = val

    # --- Limits ---
    if val := os.environ.get("CHATPILOT_MAX_MESSAGES_PER_CHAT"):
        if (count := _parse_int("CHATPILOT_MAX_MESSAGES_PER_CHAT", val, strict)) is not None:
            config.limits.max_messages_per_chat = count
    if val := os.environ.get("CHATPILOT_MAX_MESSAGES_WINDOW_SECONDS"):
        if (seconds := _parse_int("CHATPILOT_MAX_MESSAGES_WINDOW_SECONDS", val, strict)) is not None:
            config.limits.max_messages_per_chat_window_seconds = seconds

    # --- Prompt ---
    if val := os.environ.get("CHATPILOT_BOT_INSTRUCTIONS"):
        config.messages.bot_instructions = val


def convert_keys(data: Any) -> Any:
    """Convert camelCase keys to snake_case for Pydantic."""
    if isinstance(data, dict):
        return {camel_to_snake(k): convert_keys(v) for k, v in data.items()}
    if isinstance(data, list):
        return [convert_keys(item) for item in data]
    return data


def camel_to_snake(name: str) -> str:
    """Convert camelCase to snake_case."""
    result = []
    for i, char in enumerate(name):
        if char.isupper() and i > 0:
            result.append("_")
        result.append(char.lower())
    return "".join(result)
