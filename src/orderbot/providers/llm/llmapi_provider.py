"""Direct HTTP-based LLM provider (OpenAI-compatible API).

Talks to any OpenAI-compatible chat/completions endpoint (OpenRouter, Groq,
Together, vLLM, local models, etc.) via raw HTTP, including server-sent
event streaming.
"""

from __future__ import annotations

import json
from collections.abc import AsyncIterator
from typing import Any

import httpx
from loguru import logger

from orderbot.constants import LLM_TIMEOUT
from orderbot.providers.llm.base import BaseLLMProvider

_NO_RESPONSE = "No response generated"
_RETRYABLE_CLIENT_STATUSES = frozenset({408, 409, 429})


class LlmApiError(RuntimeError):
    """Non-2xx reply from the completions endpoint."""

    def __init__(self, message: str, status_code: int) -> None:
        super().__init__(message)
        self.status_code = status_code


class LlmApiClientError(LlmApiError):
    """4xx the request itself caused (bad key, unknown model); not retried."""


class LlmApiProvider(BaseLLMProvider):
    """LLM provider that calls an OpenAI-compatible REST API directly."""

    name: str = "llmapi"
    fatal_errors = (LlmApiClientError,)

    def __init__(
        self,
        api_base: str,
        api_key: str | None = None,
        slug: str = "",
        default_headers: dict[str, str] | None = None,
        timeout: float = LLM_TIMEOUT,
        **kwargs: Any,
    ) -> None:
        super().__init__(**kwargs)
        self._api_base = api_base.rstrip("/")
        self._api_key = api_key
        self._slug = slug
        self._default_headers = default_headers or {}
        self._timeout = timeout

    # ------------------------------------------------------------------
    # BaseLLMProvider hooks
    # ------------------------------------------------------------------

    async def _complete(self, model: str, messages: list[dict]) -> str:
        url = f"{self._api_base}/chat/completions"
        params = self._params(model, messages)

        logger.debug(
            "LlmApi request | url={} model={} msgs={}",
            url,
            params["model"],
            len(messages),
        )

        async with httpx.AsyncClient(timeout=self._timeout) as client:
            response = await client.post(url, json=params, headers=self._headers())
            self._raise_for_status(response, params["model"], url)
            data = response.json()

        return self._parse_response(data)

    async def _stream(self, model: str, messages: list[dict]) -> AsyncIterator[str]:
        url = f"{self._api_base}/chat/completions"
        params = self._params(model, messages)
        params["stream"] = True

        async with httpx.AsyncClient(timeout=self._timeout) as client:
            async with client.stream("POST", url, json=params, headers=self._headers()) as response:
                if response.status_code >= 400:
                    await response.aread()
                    self._raise_for_status(response, params["model"], url)

                async for line in response.aiter_lines():
                    chunk = self._parse_stream_line(line)
                    if chunk is None:
                        continue
                    if chunk == "[DONE]":
                        break
                    yield chunk

    # ------------------------------------------------------------------
    # Internal
    # ------------------------------------------------------------------

    def _params(self, model: str, messages: list[dict]) -> dict:
        # Strip provider slug prefix if present (e.g. "groq/llama3" → "llama3")
        if self._slug and model.startswith(self._slug + "/"):
            model = model[len(self._slug) + 1 :]

        return {
            "model": model,
            "messages": messages,
            "max_tokens": self.max_tokens,
            "temperature": self.temperature,
        }

    def _headers(self) -> dict[str, str]:
        headers = self._default_headers.copy()
        headers["Content-Type"] = "application/json"
        if self._api_key:
            headers["Authorization"] = f"Bearer {self._api_key}"
        return headers

    @staticmethod
    def _raise_for_status(response: httpx.Response, model: str, url: str) -> None:
        """Surface provider errors clearly."""
        if response.status_code < 400:
            return
        try:
            error_body = response.json()
        except ValueError:
            error_body = response.text

        status = response.status_code
        message = f"LLM API {status} {response.reason_phrase} for model='{model}' at {url}: {error_body}"
        logger.error("{}", message)
        if status < 500 and status not in _RETRYABLE_CLIENT_STATUSES:
            raise LlmApiClientError(message, status)
        raise LlmApiError(message, status)

    @staticmethod
    def _parse_response(data: dict) -> str:
        """Pull the reply text out of an OpenAI-style JSON response."""
        choices = data.get("choices")
        if not choices:
            raise RuntimeError(f"LLM API returned no choices: {json.dumps(data)[:500]}")

        content = (choices[0].get("message") or {}).get("content") or _NO_RESPONSE

        usage = data.get("usage") or {}
        logger.debug(
            "LlmApi response | content_len={} total_tokens={}",
            len(content),
            usage.get("total_tokens", 0),
        )
        return content

    @staticmethod
    def _parse_stream_line(line: str) -> str | None:
        """Text delta from one SSE line, "[DONE]" at the end, None otherwise."""
        line = line.strip()
        if not line.startswith("data:"):
            return None  # blank keep-alives and ": comment" lines

        payload = line[len("data:") :].strip()
        if payload == "[DONE]":
            return payload

        try:
            data = json.loads(payload)
        except json.JSONDecodeError:
            logger.warning("Skipping malformed stream chunk: {:.200}", payload)
            return None

        choices = data.get("choices") or []
        if not choices:
            return None
        return (choices[0].get("delta") or {}).get("content") or None
