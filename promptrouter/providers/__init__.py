"""LLM provider adapters."""

from promptrouter.providers.base import (
    ChatMessage,
    LLMAdapter,
    LLMRequestOptions,
    LLMResponse,
    MessageRole,
    StreamEvent,
    TokenUsage,
    ToolCall,
    ToolDefinition,
)
from promptrouter.providers.litellm_provider import (
    ADAPTERS,
    AnthropicAdapter,
    LiteLLMAdapter,
    OpenAIAdapter,
    OpenRouterAdapter,
)

__all__ = [
    "ChatMessage",
    "LLMAdapter",
    "LLMRequestOptions",
    "LLMResponse",
    "MessageRole",
    "StreamEvent",
    "TokenUsage",
    "ToolCall",
    "ToolDefinition",
    "ADAPTERS",
    "AnthropicAdapter",
    "LiteLLMAdapter",
    "OpenAIAdapter",
    "OpenRouterAdapter",
]
