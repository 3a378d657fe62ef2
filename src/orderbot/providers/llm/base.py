import asyncio
from abc import ABC, abstractmethod
from collections.abc import AsyncIterator, Awaitable, Callable
from dataclasses import dataclass
from typing import Any, TypeVar

from loguru import logger

from orderbot.constants import (
    DEFAULT_COMPLEXITY_THRESHOLD,
    DEFAULT_MAX_TOKENS,
    DEFAULT_MODEL,
    DEFAULT_TEMPERATURE,
    DEFAULT_VISION_MODEL,
    LLM_MAX_RETRIES,
    LLM_RETRY_DELAY,
)

T = TypeVar("T")


# ---------------------------------------------------------------------------
# Tool Definitions (what you tell the LLM it *can* call)
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ToolDefinition:
    """Schema describing a tool the LLM may invoke.

    Attributes:
        name:        Unique tool identifier (e.g. "search_products").
        description: Human-readable purpose – the LLM uses this to decide
                     when the tool is relevant.
        parameters:  JSON-Schema dict describing accepted arguments, e.g.:
                     {
                         "type": "object",
                         "properties": {
                             "query": {"type": "string", "description": "..."}
                         },
                         "required": ["query"]
                     }
    """

    name: str
    description: str
    parameters: dict[str, Any]


# ---------------------------------------------------------------------------
# Errors
# ---------------------------------------------------------------------------


class LLMError(RuntimeError):
    """Raised once a generation call has failed on every attempt."""


# ---------------------------------------------------------------------------
# Abstract Provider
# ---------------------------------------------------------------------------


class BaseLLMProvider(ABC):
    """Interface every LLM back-end must implement.

    Subclasses fill in ``_complete`` and ``_stream``; the text-in / text-out
    capability (model selection, system prompt, bounded retry with a fixed
    delay) lives here.
    """

    name: str = "base"
    # errors a retry cannot fix (bad key, unknown model); raised as LLMError at once
    fatal_errors: tuple[type[Exception], ...] = ()

    def __init__(
        self,
        default_model: str = DEFAULT_MODEL,
        advanced_model: str | None = None,
        vision_model: str = DEFAULT_VISION_MODEL,
        temperature: float = DEFAULT_TEMPERATURE,
        max_tokens: int = DEFAULT_MAX_TOKENS,
        complexity_threshold: float = DEFAULT_COMPLEXITY_THRESHOLD,
        max_retries: int = LLM_MAX_RETRIES,
        retry_delay: float = LLM_RETRY_DELAY,
    ) -> None:
        self.default_model = default_model
        self.advanced_model = advanced_model or default_model
        self.vision_model = vision_model
        self.temperature = temperature
        self.max_tokens = max_tokens
        self.complexity_threshold = complexity_threshold
        self.max_retries = max_retries
        self.retry_delay = retry_delay

    # ------------------------------------------------------------------
    # Back-end hooks
    # ------------------------------------------------------------------

    @abstractmethod
    async def _complete(self, model: str, messages: list[dict]) -> str:
        """Send OpenAI-style messages and return the reply text."""
        ...

    @abstractmethod
    def _stream(self, model: str, messages: list[dict]) -> AsyncIterator[str]:
        """Send OpenAI-style messages and yield reply text chunks."""
        ...

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def generate_response(
        self,
        prompt: str | list[dict],
        use_advanced_model: bool = False,
        system_prompt: str | None = None,
        history: list[dict] | None = None,
    ) -> str:
        """Return the model's reply to ``prompt``.

        Args:
            prompt:             User text, or multimodal content parts.
            use_advanced_model: Route to the advanced (more capable) model.
            system_prompt:      Optional system instructions.
            history:            Prior turns as ``{"role", "content"}`` dicts.

        Raises:
            LLMError: every attempt failed.
        """
        model = self.advanced_model if use_advanced_model else self.default_model
        return await self.generate_response_with_model(prompt, model, system_prompt, history)

    async def generate_response_with_model(
        self,
        prompt: str | list[dict],
        model: str,
        system_prompt: str | None = None,
        history: list[dict] | None = None,
    ) -> str:
        messages = self._build_messages(prompt, system_prompt, history)
        return await self._retry(lambda: self._complete(model, messages), model)

    async def generate_streaming_response(
        self,
        prompt: str | list[dict],
        use_advanced_model: bool = False,
        system_prompt: str | None = None,
        history: list[dict] | None = None,
    ) -> AsyncIterator[str]:
        """Yield the reply as text chunks.

        Opening the stream is retried like ``generate_response``; once the
        first chunk has been yielded a failure is raised immediately.
        """
        model = self.advanced_model if use_advanced_model else self.default_model
        messages = self._build_messages(prompt, system_prompt, history)

        attempt = 0
        while True:
            started = False
            try:
                async for chunk in self._stream(model, messages):
                    started = True
                    yield chunk
                return
            except Exception as exc:
                if started or attempt >= self.max_retries or isinstance(exc, self.fatal_errors):
                    logger.error("Streaming generation failed for model={}: {}", model, exc)
                    raise LLMError("Failed to generate streaming response") from exc
                attempt += 1
                logger.warning(
                    "Retrying stream, {} attempts remaining", self.max_retries - attempt + 1
                )
                await asyncio.sleep(self.retry_delay)

    async def process_image_query(
        self, text: str, image_ref: str, model: str | None = None
    ) -> str:
        """Ask a vision model about an image (URL or data URI)."""
        content = [
            {"type": "text", "text": text},
            {"type": "image_url", "image_url": {"url": image_ref}},
        ]
        return await self.generate_response_with_model(content, model or self.vision_model)

    def is_complex_query(self, prompt: str) -> bool:
        """Heuristic: enough complexity indicators hold → use the advanced model."""
        indicators = [
            len(prompt) > 200,
            "code" in prompt,
            "explain" in prompt,
            "analyze" in prompt,
            len(prompt.split(" ")) > 50,
        ]
        score = sum(indicators) / len(indicators)
        return score >= self.complexity_threshold

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    @staticmethod
    def _build_messages(
        prompt: str | list[dict],
        system_prompt: str | None,
        history: list[dict] | None,
    ) -> list[dict]:
        messages: list[dict] = []
        if system_prompt:
            messages.append({"role": "system", "content": system_prompt})
        messages.extend(history or [])
        messages.append({"role": "user", "content": prompt})
        return messages

    async def _retry(self, operation: Callable[[], Awaitable[T]], model: str) -> T:
        attempt = 0
        while True:
            try:
                return await operation()
            except Exception as exc:
                if attempt >= self.max_retries or isinstance(exc, self.fatal_errors):
                    logger.error("Error generating response with model={}: {}", model, exc)
                    raise LLMError("Failed to generate response") from exc
                attempt += 1
                logger.warning(
                    "Retrying operation, {} attempts remaining",
                    self.max_retries - attempt + 1,
                )
                await asyncio.sleep(self.retry_delay)
