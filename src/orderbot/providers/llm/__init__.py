from .base import (
    BaseLLMProvider,
    LLMError,
    ToolDefinition,
)
from .litellm_provider import LiteLLMProvider
from .llmapi_provider import LlmApiProvider

__all__ = [
    "BaseLLMProvider",
    "LiteLLMProvider",
    "LlmApiProvider",
    "LLMError",
    "ToolDefinition",
]
