"""
Push dispatcher (async, httpx) posting Expo-format messages to a gateway.

Delivery is fire-and-forget from the caller's point of view: failures are
logged and reported as False, never raised.
"""

from __future__ import annotations

from typing import Any, Dict, Iterable, Optional

import httpx

from childwatch.core.config import get_settings
from childwatch.core.logger import get_logger

log = get_logger(__name__)


class PushDispatcher:
    def __init__(self, gateway_url: Optional[str] = None, timeout: Optional[float] = None) -> None:
        settings = get_settings()
        self.gateway_url = gateway_url if gateway_url is not None else settings.PUSH_GATEWAY_URL
        self._timeout = timeout if timeout is not None else settings.PUSH_TIMEOUT
        self._aclient: Optional[httpx.AsyncClient] = None

    def _get_async_client(self) -> httpx.AsyncClient:
        if self._aclient is None:
            self._aclient = httpx.AsyncClient(timeout=self._timeout)
        return self._aclient

    async def send(
        self, token: str, title: str, body: str, data: Optional[Dict[str, Any]] = None
    ) -> bool:
        if not self.gateway_url:
            log.warning("Push gateway not configured, skipping push notification")
            return False

        payload = {"to": token, "title": title, "body": body, "data": data or {}}
        try:
            client = self._get_async_client()
            resp = await client.post(self.gateway_url, json=payload)
            resp.raise_for_status()
        except Exception as e:
            log.error("Failed to send push to token %s...: %s", token[:8], e)
            return False
        log.info("Push notification sent to token %s...", token[:8])
        return True

    async def send_many(
        self, tokens: Iterable[str], title: str, body: str, data: Optional[Dict[str, Any]] = None
    ) -> int:
        sent = 0
        for token in tokens:
            if await self.send(token, title, body, data):
                sent += 1
        return sent

    async def aclose(self) -> None:
        if self._aclient is not None:
            await self._aclient.aclose()
            self._aclient = None


_dispatcher: Optional[PushDispatcher] = None


def get_push_dispatcher() -> PushDispatcher:
    global _dispatcher
    if _dispatcher is None:
        _dispatcher = PushDispatcher()
    return _dispatcher
