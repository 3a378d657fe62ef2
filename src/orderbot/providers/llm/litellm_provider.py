"""LiteLLM-backed provider.

``litellm.acompletion`` speaks to most hosted and local model APIs behind
one OpenAI-shaped interface, so this adapter only assembles the call and
unwraps the reply (whole, or chunk by chunk when streaming).
"""

from __future__ import annotations

from collections.abc import AsyncIterator
from typing import Any

import litellm
from loguru import logger

from .base import BaseLLMProvider


class LiteLLMProvider(BaseLLMProvider):
    """Provider that routes every call through ``litellm.acompletion``.

    Credentials default to LiteLLM's own environment lookup
    (``OPENAI_API_KEY``, ``ANTHROPIC_API_KEY`` and so on); ``api_key`` and
    ``api_base`` override it, e.g. for a proxy.
    """

    name: str = "litellm"
    fatal_errors = (
        litellm.exceptions.AuthenticationError,
        litellm.exceptions.BadRequestError,
        litellm.exceptions.NotFoundError,
    )

    def __init__(
        self,
        api_key: str | None = None,
        api_base: str | None = None,
        default_headers: dict[str, str] | None = None,
        **kwargs: Any,
    ) -> None:
        super().__init__(**kwargs)
        overrides = {"api_key": api_key, "api_base": api_base, "extra_headers": default_headers}
        self._overrides = {key: value for key, value in overrides.items() if value}

    async def _complete(self, model: str, messages: list[dict]) -> str:
        logger.debug("LiteLLM request | model={} msgs={}", model, len(messages))
        try:
            response = await litellm.acompletion(**self._request(model, messages))
        except litellm.exceptions.RateLimitError as exc:
            logger.warning("LiteLLM rate-limited for model={}: {}", model, exc)
            raise

        if not response.choices:
            raise RuntimeError("LLM returned no choices")
        content = getattr(response.choices[0].message, "content", None)
        usage = getattr(response, "usage", None)
        logger.debug(
            "LiteLLM response | content_len={} total_tokens={}",
            len(content or ""),
            getattr(usage, "total_tokens", 0),
        )
        return content or "No response generated"

    async def _stream(self, model: str, messages: list[dict]) -> AsyncIterator[str]:
        response = await litellm.acompletion(**self._request(model, messages), stream=True)
        async for chunk in response:
            if chunk.choices:
                text = getattr(getattr(chunk.choices[0], "delta", None), "content", None)
                if text:
                    yield text

    def _request(self, model: str, messages: list[dict]) -> dict[str, Any]:
        return {
            "model": model,
            "messages": messages,
            "max_tokens": self.max_tokens,
            "temperature": self.temperature,
            **self._overrides,
        }
