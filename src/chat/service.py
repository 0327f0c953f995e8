"""Single-shot chat completion proxy."""

from __future__ import annotations

import json
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Sequence

import httpx

from src.photo.providers.base import truncate_detail


class ChatProxyError(RuntimeError):
    status_code = 500

    def __init__(self, code: str, *, detail: Optional[str] = None) -> None:
        super().__init__(code)
        self.code = code
        self.detail = detail


class ChatMisconfiguredError(ChatProxyError):
    pass


class ChatUpstreamError(ChatProxyError):
    status_code = 502

    def __init__(self, code: str, *, upstream_status: int, detail: Optional[str] = None) -> None:
        super().__init__(code, detail=detail)
        self.upstream_status = upstream_status


@dataclass(frozen=True)
class ChatMessage:
    role: str
    content: Any


def message_text(content: Any) -> str:
    """Non-string content (numbers, lists, null) is forwarded as its JSON text."""

    if isinstance(content, str):
        return content
    return json.dumps(content, ensure_ascii=False)


class ChatCompletionClient:
    def __init__(
        self,
        *,
        api_key: str,
        url: str = "https://api.openai.com/v1/chat/completions",
        model: str = "gpt-4o-mini",
        timeout_seconds: int = 30,
        client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        self._api_key = api_key.strip()
        self._url = url.strip()
        self._model = model.strip()
        self._timeout_seconds = max(1, timeout_seconds)
        self._client = client

    def build_payload(self, messages: Sequence[ChatMessage]) -> Dict[str, Any]:
        return {
            "model": self._model,
            "messages": [{"role": message.role, "content": message_text(message.content)} for message in messages],
            "temperature": 0.7,
            "max_tokens": 500,
        }

    async def complete(self, messages: Sequence[ChatMessage]) -> str:
        if not self._api_key:
            raise ChatMisconfiguredError("Server misconfigured: missing OPENAI_API_KEY")

        headers = {
            "Authorization": f"Bearer {self._api_key}",
            "Content-Type": "application/json",
        }
        payload = self.build_payload(messages)
        if self._client is not None:
            response = await self._client.post(self._url, headers=headers, json=payload)
        else:
            async with httpx.AsyncClient(timeout=self._timeout_seconds) as client:
                response = await client.post(self._url, headers=headers, json=payload)

        if response.status_code < 200 or response.status_code >= 300:
            raise ChatUpstreamError(
                "upstream",
                upstream_status=response.status_code,
                detail=truncate_detail(response.text, limit=2000),
            )

        body: Dict[str, Any] = response.json()
        choices: List[Any] = body.get("choices") or []
        if not choices or not isinstance(choices[0], dict):
            return ""
        message = choices[0].get("message") or {}
        return str(message.get("content") or "")
