"""HTTP client for interacting with the Chatwork API."""

from __future__ import annotations

from typing import Any, Dict

import httpx

CHATWORK_API_BASE = "https://api.chatwork.com/v2"


class ChatworkApiError(RuntimeError):
    """Raised when Chatwork returns an error response."""

    def __init__(self, method: str, status_code: int, error: str) -> None:
        super().__init__(f"Chatwork API error for {method} ({status_code}): {error}")
        self.method = method
        self.status_code = status_code
        self.error = error


class ChatworkClient:
    """Simple async wrapper around the Chatwork endpoints used by NowWorking."""

    def __init__(self, token: str, timeout: float = 10.0, transport: httpx.AsyncBaseTransport | None = None) -> None:
        self._client = httpx.AsyncClient(
            base_url=CHATWORK_API_BASE,
            headers={"X-ChatWorkToken": token},
            timeout=timeout,
            transport=transport,
        )

    async def close(self) -> None:
        await self._client.aclose()

    async def post_message(self, room_id: str, body: str) -> Dict[str, Any]:
        method = f"rooms/{room_id}/messages"
        response = await self._client.post(method, data={"body": body})
        if response.is_error:
            raise ChatworkApiError(method, response.status_code, response.text)
        return response.json()


__all__ = ["ChatworkClient", "ChatworkApiError"]
