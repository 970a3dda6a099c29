"""Shared HTTP client for OpenAI-compatible endpoints."""

from typing import Any, Dict

import httpx


class OpenAICompatClient:
    """Lazily created ``httpx.AsyncClient`` with an explicit close.

    One instance is built per process at startup and injected into the
    providers that need it.
    """

    def __init__(self, base_url: str, api_key: str = "", timeout: int = 30):
        self.base_url = base_url.rstrip("/")
        self.api_key = api_key
        self.timeout = timeout
        self._client: httpx.AsyncClient | None = None

    @property
    def client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._client is None or self._client.is_closed:
            headers = {"Content-Type": "application/json"}
            if self.api_key:
                headers["Authorization"] = f"Bearer {self.api_key}"

            self._client = httpx.AsyncClient(
                base_url=self.base_url,
                timeout=self.timeout,
                headers=headers,
            )
        return self._client

    async def post_json(self, path: str, payload: Dict[str, Any]) -> Dict[str, Any]:
        """POST ``payload`` and return the decoded body; raises on HTTP errors."""
        response = await self.client.post(path, json=payload)
        response.raise_for_status()
        return response.json()

    async def aclose(self) -> None:
        """Close HTTP client."""
        if self._client and not self._client.is_closed:
            await self._client.aclose()
            self._client = None
