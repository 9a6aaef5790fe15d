"""Startup validation: credentials, device, labels, team members and webhook."""

from __future__ import annotations

import re
from typing import Any

from loguru import logger

from chatpilot.config.schema import Config
from chatpilot.errors import ConfigError
from chatpilot.integrations.wassenger import WassengerClient
from chatpilot.settings import ChatpilotSettings

_MEMBER_ID_RE = re.compile(r"^[a-f0-9]{24}$", re.IGNORECASE)


def validate_settings(settings: ChatpilotSettings) -> None:
    if not settings.api_key:
        raise ConfigError(
            "Please sign up in Wassenger and obtain your API key: https://app.wassenger.com/apikeys"
        )
    if not settings.openai_api_key:
        raise ConfigError(
            "Missing required OpenAI API key: https://platform.openai.com/account/api-keys"
        )
    if settings.production and not settings.webhook_url:
        raise ConfigError("CHATPILOT_WEBHOOK_URL must be set in production mode")


def validate_device(device: dict[str, Any] | None) -> dict[str, Any]:
    if not device:
        raise ConfigError(
            "No active WhatsApp numbers in your account. "
            "Please connect a WhatsApp number: https://app.wassenger.com/create"
        )
    alias = device.get("alias") or device.get("phone")
    session = device.get("session") or {}
    if session and session.get("status") != "online":
        raise ConfigError(
            f"WhatsApp number ({alias}) is not online: "
            f"https://app.wassenger.com/{device.get('id')}/scan"
        )
    subscription = (device.get("billing") or {}).get("subscription") or {}
    if subscription and subscription.get("product") != "io":
        raise ConfigError(
            f"WhatsApp number plan ({alias}) does not support inbound messages: "
            f"https://app.wassenger.com/{device.get('id')}/plan?product=io"
        )
    return device


def validate_members(config: Config, members: list[dict[str, Any]]) -> None:
    """Whitelisted and blacklisted member ids must be well formed and exist."""
    known = {m.get("id") for m in members}
    for member_id in config.team.team_whitelist + config.team.team_blacklist:
        if not isinstance(member_id, str) or not _MEMBER_ID_RE.match(member_id):
            raise ConfigError(
                f"Team member id must be a 24 characters hexadecimal value: {member_id}"
            )
        if member_id not in known:
            raise ConfigError(f"Team member id does not exist: {member_id}")


async def prepare(
    client: WassengerClient,
    settings: ChatpilotSettings,
    config: Config,
) -> dict[str, Any]:
    """Run every startup check; returns the device the bot will use."""
    validate_settings(settings)
    device = validate_device(await client.load_device(settings.device))
    device_id = device["id"]

    members = await client.list_team_members(device_id)
    await client.list_labels(device_id)
    created = await client.ensure_labels(device_id, config.required_labels)
    if created:
        logger.info(f"Created labels: {', '.join(created)}")
    validate_members(config, members)

    if settings.webhook_url:
        webhook = await client.register_webhook(settings.webhook_url, device_id)
        if not webhook:
            raise ConfigError(
                f"Missing webhook active endpoint: https://app.wassenger.com/{device_id}/webhooks"
            )
        logger.info(f"Using webhook endpoint: {webhook.get('url')}")
    else:
        logger.warning("No public webhook URL configured, skipping webhook registration")

    return device
