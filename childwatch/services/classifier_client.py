"""
Classifier client wrapper (async, httpx) for an OpenAI-compatible
chat-completions endpoint with vision support.

The client never raises on transport problems: it returns a dict tagged with
`ok` so the classifier adapter can fall back. API key, base URL and timeout
are loaded via childwatch.core.config.get_settings.
"""

from __future__ import annotations

import os
from typing import Any, Dict, List, Optional

import httpx

from childwatch.core.config import get_settings
from childwatch.core.logger import get_logger

log = get_logger(__name__)


class ClassifierClient:
    def __init__(
        self,
        api_key: Optional[str] = None,
        base_url: Optional[str] = None,
        timeout: Optional[float] = None,
    ) -> None:
        settings = get_settings()
        # Prefer explicit arg, then settings, then env var
        self.api_key = api_key or settings.OPENAI_API_KEY or os.getenv("OPENAI_API_KEY", "")
        self.base_url = (base_url or settings.CLASSIFIER_BASE_URL).rstrip("/")
        self._timeout = timeout if timeout is not None else settings.CLASSIFIER_TIMEOUT
        self._aclient: Optional[httpx.AsyncClient] = None

    @property
    def is_configured(self) -> bool:
        return bool(self.api_key and self.base_url)

    @property
    def completions_url(self) -> str:
        return f"{self.base_url}/chat/completions"

    def _get_async_client(self) -> httpx.AsyncClient:
        if self._aclient is None:
            self._aclient = httpx.AsyncClient(timeout=self._timeout)
        return self._aclient

    async def acomplete(
        self,
        model: str,
        messages: List[Dict[str, Any]],
        max_tokens: int = 500,
    ) -> Dict[str, Any]:
        """Send one chat-completions request; a single attempt, no retries.

        Returns `{"ok": True, "content": str, "raw": dict}` on a 2xx response
        with a message body, otherwise `{"ok": False, "error": str}`.
        """
        if not self.is_configured:
            return {"ok": False, "error": "Classifier API key missing"}

        headers = {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
        }
        payload: Dict[str, Any] = {
            "model": model,
            "messages": messages,
            "max_tokens": max_tokens,
        }

        try:
            client = self._get_async_client()
            resp = await client.post(self.completions_url, json=payload, headers=headers)
            resp.raise_for_status()
            data = resp.json()
        except httpx.HTTPStatusError as e:
            log.error("Classifier returned HTTP %s", e.response.status_code)
            return {"ok": False, "error": f"HTTP {e.response.status_code}"}
        except Exception as e:
            log.exception("Classifier request failed: %s", e)
            return {"ok": False, "error": "Classifier request failed"}

        content = _message_content(data)
        if not content:
            return {"ok": False, "error": "Classifier returned empty content", "raw": data}
        return {"ok": True, "content": content, "raw": data}

    async def aclose(self) -> None:
        if self._aclient is not None:
            await self._aclient.aclose()
            self._aclient = None


def _message_content(data: Any) -> str:
    if not isinstance(data, dict):
        return ""
    choices = data.get("choices")
    if not isinstance(choices, list) or not choices or not isinstance(choices[0], dict):
        return ""
    message = choices[0].get("message") or {}
    content = message.get("content") if isinstance(message, dict) else None
    return content if isinstance(content, str) else ""


_client: Optional[ClassifierClient] = None


def get_classifier_client() -> ClassifierClient:
    global _client
    if _client is None:
        _client = ClassifierClient()
    return _client
