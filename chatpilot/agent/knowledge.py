"""Optional retrieval collaborator for the generation step."""

from __future__ import annotations

from typing import Any, Protocol

import httpx
from loguru import logger


class KnowledgeBase(Protocol):
    async def query(self, text: str) -> dict[str, Any] | None:
        """Return ``{"content": ...}`` with reference text, or None."""
        ...


class HttpKnowledgeBase:
    """
    Retrieval over HTTP.

    Posts ``{"query": text}`` to *url* and expects a JSON body with a
    ``content`` string. Any failure yields None so generation carries on
    without extra context.
    """

    def __init__(
        self,
        url: str,
        api_key: str = "",
        timeout: float = 15.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.url = url
        self.api_key = api_key
        self.timeout = timeout
        self._transport = transport

    async def query(self, text: str) -> dict[str, Any] | None:
        if not text.strip():
            return None
        headers = {"Authorization": f"Bearer {self.api_key}"} if self.api_key else {}
        try:
            async with httpx.AsyncClient(transport=self._transport, timeout=self.timeout) as client:
                resp = await client.post(self.url, json={"query": text}, headers=headers)
                resp.raise_for_status()
                data = resp.json()
        except (httpx.HTTPError, ValueError) as e:
            logger.warning(f"Knowledge query failed: {e}")
            return None
        content = data.get("content") if isinstance(data, dict) else None
        if not content:
            return None
        return {"content": str(content)}
