"""Async client for the Wassenger WhatsApp API.

Covers what the bot needs: sending messages, chat history, labels,
contact metadata, chat ownership, team members and webhooks.
"""

from __future__ import annotations

import random
from typing import Any

import httpx
from loguru import logger

from chatpilot.errors import PlatformError
from chatpilot.settings import ChatpilotSettings, get_settings
from chatpilot.utils.cache import TTLCache

SEND_ATTEMPTS = 3

LABEL_COLORS = (
    "tomato", "orange", "sunflower", "bubble",
    "rose", "poppy", "rouge", "raspberry",
    "purple", "lavender", "violet", "pool",
    "emerald", "kelly", "apple", "turquoise",
    "aqua", "gold", "latte", "cocoa",
)


class WassengerClient:
    """Async gateway to the Wassenger REST API.

    Team members and labels are cached per device with a TTL (10 minutes by
    default); every other call goes straight to the API.
    """

    def __init__(
        self,
        api_key: str | None = None,
        api_url: str | None = None,
        settings: ChatpilotSettings | None = None,
        cache_ttl: float = 600,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        if api_key is None or api_url is None:
            s = settings or get_settings()
            api_key = s.api_key if api_key is None else api_key
            api_url = s.api_url if api_url is None else api_url
        self._base = api_url.rstrip("/")
        self._http = httpx.AsyncClient(
            base_url=self._base,
            timeout=30.0,
            headers={"Authorization": api_key},
            transport=transport,
        )
        self._cache = TTLCache(ttl_seconds=cache_ttl)

    async def aclose(self) -> None:
        await self._http.aclose()

    # ── low-level request ────────────────────────────────────────────────

    async def _request(
        self,
        method: str,
        path: str,
        params: dict[str, Any] | None = None,
        json: Any = None,
    ) -> Any:
        resp = await self._http.request(method, path, params=params, json=json)
        if resp.status_code >= 400:
            try:
                body = resp.json()
            except ValueError:
                body = resp.text[:500]
            raise PlatformError(
                f"{method} {path} failed: HTTP {resp.status_code}",
                status=resp.status_code,
                body=body,
            )
        if not resp.content:
            return None
        return resp.json()

    # ── messages ─────────────────────────────────────────────────────────

    async def send_message(
        self,
        phone: str,
        device_id: str,
        message: str | None = None,
        media: dict[str, Any] | None = None,
        **fields: Any,
    ) -> dict[str, Any] | None:
        """Send a text or media message.

        Retried immediately up to ``SEND_ATTEMPTS`` times. Returns the created
        message (``id``, ``status``, ``createdAt``...) or None once every
        attempt failed.
        """
        body: dict[str, Any] = {"phone": phone, "device": device_id, **fields, "enqueue": "never"}
        if message:
            body["message"] = message
        if media:
            body["media"] = media

        for attempt in range(1, SEND_ATTEMPTS + 1):
            try:
                data = await self._request("POST", "/messages", json=body) or {}
                logger.info(f"Message sent: {phone} {data.get('id')} {data.get('status')}")
                return data
            except (PlatformError, httpx.HTTPError) as exc:
                detail = exc.body if isinstance(exc, PlatformError) else exc
                logger.error(
                    f"Failed to send message to {phone} (attempt {attempt}/{SEND_ATTEMPTS}): {detail}"
                )
        return None

    async def fetch_recent_messages(
        self, device_id: str, chat_id: str, limit: int = 25,
    ) -> list[dict[str, Any]]:
        data = await self._request(
            "GET",
            f"/chat/{device_id}/messages/",
            params={"chat": chat_id, "limit": limit},
        )
        return data if isinstance(data, list) else []

    async def download_media(self, device_id: str, media_id: str) -> bytes:
        resp = await self._http.get(f"/chat/{device_id}/files/{media_id}/download")
        if resp.status_code >= 400:
            raise PlatformError(
                f"media download failed: HTTP {resp.status_code}",
                status=resp.status_code,
            )
        return resp.content

    # ── chats / contacts ─────────────────────────────────────────────────

    async def patch_chat_labels(self, device_id: str, chat_id: str, labels: list[str]) -> None:
        logger.info(f"Update chat labels: {chat_id} {labels}")
        await self._request("PATCH", f"/chat/{device_id}/chats/{chat_id}/labels", json=labels)

    async def patch_contact_metadata(
        self, device_id: str, chat_id: str, entries: list[dict[str, str]],
    ) -> None:
        logger.debug(f"Update contact metadata: {chat_id} {[e['key'] for e in entries]}")
        await self._request("PATCH", f"/chat/{device_id}/contacts/{chat_id}/metadata", json=entries)

    async def patch_chat_owner(self, device_id: str, chat_id: str, agent_id: str) -> None:
        await self._request("PATCH", f"/chat/{device_id}/chats/{chat_id}/owner", json={"agent": agent_id})

    # ── team / labels (cached) ───────────────────────────────────────────

    async def list_team_members(self, device_id: str, *, force: bool = False) -> list[dict[str, Any]]:
        key = f"members:{device_id}"
        cached = None if force else self._cache.get(key)
        if cached is not None:
            return cached
        members = await self._request("GET", f"/devices/{device_id}/team") or []
        self._cache.set(key, members)
        return members

    async def list_labels(self, device_id: str, *, force: bool = False) -> list[dict[str, Any]]:
        key = f"labels:{device_id}"
        cached = None if force else self._cache.get(key)
        if cached is not None:
            return cached
        labels = await self._request("GET", f"/devices/{device_id}/labels") or []
        self._cache.set(key, labels)
        return labels

    async def create_label(self, device_id: str, name: str) -> dict[str, Any] | None:
        body = {
            "name": name[:30].strip(),
            "color": random.choice(LABEL_COLORS),
            "description": "Automatically created label for the chatbot",
        }
        try:
            return await self._request("POST", f"/devices/{device_id}/labels", json=body)
        except PlatformError as exc:
            logger.error(f"Failed to create label {name}: {exc.body}")
            return None

    async def ensure_labels(self, device_id: str, names: list[str]) -> list[str]:
        """Create missing labels; returns the names that were created."""
        existing = {label.get("name") for label in await self.list_labels(device_id)}
        missing = [name for name in names if name not in existing]
        created = []
        for name in missing:
            logger.info(f"Creating missing label: {name}")
            if await self.create_label(device_id, name):
                created.append(name)
        if missing:
            await self.list_labels(device_id, force=True)
        return created

    # ── devices / webhooks ───────────────────────────────────────────────

    async def list_devices(self) -> list[dict[str, Any]]:
        return await self._request("GET", "/devices") or []

    async def load_device(self, device_id: str = "") -> dict[str, Any] | None:
        """Return the configured device, or the first operative one."""
        devices = await self.list_devices()
        if device_id:
            return next((d for d in devices if d.get("id") == device_id), None)
        return next((d for d in devices if d.get("status") == "operative"), None)

    async def list_webhooks(self) -> list[dict[str, Any]]:
        return await self._request("GET", "/webhooks") or []

    async def register_webhook(self, base_url: str, device_id: str) -> dict[str, Any]:
        """Ensure an active ``message:in:new`` webhook points at *base_url*."""
        webhook_url = f"{base_url.rstrip('/')}/webhook"
        for webhook in await self.list_webhooks():
            if (
                webhook.get("url") == webhook_url
                and webhook.get("device") == device_id
                and webhook.get("status") == "active"
                and "message:in:new" in (webhook.get("events") or [])
            ):
                return webhook
        return await self._request("POST", "/webhooks", json={
            "url": webhook_url,
            "name": "Chatbot",
            "events": ["message:in:new"],
            "device": device_id,
        })
