"""LLM infra: async OpenAI-compatible chat.completions client (buffered and streaming)."""

from __future__ import annotations

import json
from collections.abc import AsyncIterator
from dataclasses import dataclass
from typing import Any

import httpx


@dataclass(frozen=True)
class OpenAICompatibleConfig:
    """Runtime config for OpenAI-compatible API endpoints."""

    api_key: str
    base_url: str
    timeout_seconds: float


@dataclass(frozen=True)
class CompletionResult:
    text: str
    finish_reason: str | None = None


class UpstreamError(RuntimeError):
    """Raised when the upstream provider returns an error payload."""


class OpenAICompatibleClient:
    """Minimal async client for `/chat/completions` compatible providers."""

    def __init__(self, config: OpenAICompatibleConfig, *, transport: httpx.AsyncBaseTransport | None = None) -> None:
        self._config = config
        self._client = httpx.AsyncClient(
            base_url=config.base_url.rstrip("/"),
            timeout=config.timeout_seconds,
            transport=transport,
        )

    @property
    def enabled(self) -> bool:
        return bool(self._config.api_key.strip())

    async def aclose(self) -> None:
        await self._client.aclose()

    def _headers(self) -> dict[str, str]:
        return {
            "Authorization": f"Bearer {self._config.api_key}",
            "Content-Type": "application/json",
        }

    def _payload(
        self,
        *,
        model: str,
        messages: list[dict[str, str]],
        temperature: float | None,
        max_tokens: int | None,
        stream: bool,
    ) -> dict[str, Any]:
        payload: dict[str, Any] = {"model": model, "messages": messages, "stream": stream}
        if temperature is not None:
            payload["temperature"] = temperature
        if isinstance(max_tokens, int) and max_tokens > 0:
            payload["max_tokens"] = max_tokens
        return payload

    async def complete(
        self,
        *,
        model: str,
        messages: list[dict[str, str]],
        temperature: float | None = None,
        max_tokens: int | None = None,
    ) -> CompletionResult:
        payload = self._payload(
            model=model,
            messages=messages,
            temperature=temperature,
            max_tokens=max_tokens,
            stream=False,
        )
        response = await self._client.post("/chat/completions", json=payload, headers=self._headers())
        response.raise_for_status()
        decoded = response.json()
        if decoded.get("error"):
            raise UpstreamError(str(decoded.get("error")))

        choices = decoded.get("choices")
        if not isinstance(choices, list) or not choices or not isinstance(choices[0], dict):
            return CompletionResult(text="")
        message = choices[0].get("message")
        content = message.get("content") if isinstance(message, dict) else None
        return CompletionResult(
            text=content if isinstance(content, str) else "",
            finish_reason=choices[0].get("finish_reason"),
        )

    async def stream(
        self,
        *,
        model: str,
        messages: list[dict[str, str]],
        temperature: float | None = None,
        max_tokens: int | None = None,
    ) -> AsyncIterator[tuple[str, str | None]]:
        """Yield `(content_piece, finish_reason)` pairs as upstream SSE chunks arrive."""
        payload = self._payload(
            model=model,
            messages=messages,
            temperature=temperature,
            max_tokens=max_tokens,
            stream=True,
        )
        async with self._client.stream(
            "POST", "/chat/completions", json=payload, headers=self._headers()
        ) as response:
            response.raise_for_status()
            async for line in response.aiter_lines():
                if not line.startswith("data:"):
                    continue
                data = line[len("data:"):].strip()
                if data == "[DONE]":
                    break
                try:
                    chunk = json.loads(data)
                except json.JSONDecodeError:
                    continue
                if chunk.get("error"):
                    raise UpstreamError(str(chunk.get("error")))
                choices = chunk.get("choices")
                if not isinstance(choices, list) or not choices or not isinstance(choices[0], dict):
                    continue
                delta = choices[0].get("delta") or {}
                piece = delta.get("content") if isinstance(delta, dict) else None
                finish_reason = choices[0].get("finish_reason")
                if piece or finish_reason:
                    yield (piece if isinstance(piece, str) else "", finish_reason)
