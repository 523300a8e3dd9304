"""Base LLM adapter interface and the normalized request/response model."""

import json
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, AsyncIterator, Literal, Mapping, Sequence

from promptrouter.errors import LLMError, LLMErrorCode, is_retryable
from promptrouter.models import ModelConfig, ModelRegistry, ModelTier, estimate_cost


class MessageRole(str, Enum):
    SYSTEM = "system"
    USER = "user"
    ASSISTANT = "assistant"
    TOOL = "tool"


@dataclass(frozen=True)
class ChatMessage:
    """One message of a conversation. Order in the sequence matters."""
    role: MessageRole
    content: str
    name: str | None = None
    tool_call_id: str | None = None

    def __post_init__(self) -> None:
        if not isinstance(self.role, MessageRole):
            object.__setattr__(self, "role", MessageRole(self.role))
        if self.content is None:
            object.__setattr__(self, "content", "")

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "ChatMessage":
        return cls(
            role=data["role"],
            content=data.get("content") or "",
            name=data.get("name"),
            tool_call_id=data.get("tool_call_id") or data.get("toolCallId"),
        )

    def to_dict(self) -> dict[str, Any]:
        """OpenAI-format message dict."""
        message: dict[str, Any] = {"role": self.role.value, "content": self.content}
        if self.name:
            message["name"] = self.name
        if self.tool_call_id:
            message["tool_call_id"] = self.tool_call_id
        return message


@dataclass(frozen=True)
class ToolDefinition:
    """A function the model may call."""
    name: str
    description: str = ""
    parameters: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {
            "type": "function",
            "function": {
                "name": self.name,
                "description": self.description,
                "parameters": self.parameters,
            },
        }


@dataclass(frozen=True)
class ToolCall:
    """A tool call requested by the model; arguments is the raw JSON string."""
    id: str
    name: str
    arguments: str = ""

    def parsed_arguments(self) -> dict[str, Any]:
        if not self.arguments:
            return {}
        try:
            value = json.loads(self.arguments)
        except json.JSONDecodeError:
            return {"raw": self.arguments}
        return value if isinstance(value, dict) else {"raw": value}

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "type": "function",
            "function": {"name": self.name, "arguments": self.arguments},
        }


@dataclass(frozen=True)
class TokenUsage:
    """Token counts; zeros where a vendor withholds a figure."""
    prompt_tokens: int = 0
    completion_tokens: int = 0
    total_tokens: int = 0

    @classmethod
    def of(cls, prompt_tokens: int = 0, completion_tokens: int = 0) -> "TokenUsage":
        return cls(prompt_tokens, completion_tokens, prompt_tokens + completion_tokens)


@dataclass(frozen=True)
class LLMRequestOptions:
    """A decoded chat request. Built per call, never retained."""
    messages: Sequence[ChatMessage]
    tools: Sequence[ToolDefinition | dict[str, Any]] | None = None
    max_tokens: int | None = None
    temperature: float | None = None
    top_p: float | None = None
    stop: Sequence[str] | None = None
    # Routing hints
    model: str | None = None
    tier: ModelTier | None = None
    json_mode: bool = False
    timeout: float | None = None  # seconds

    def __post_init__(self) -> None:
        messages = tuple(
            m if isinstance(m, ChatMessage) else ChatMessage.from_dict(m)
            for m in self.messages
        )
        object.__setattr__(self, "messages", messages)
        if self.tools is not None:
            object.__setattr__(self, "tools", tuple(self.tools))
        if self.stop is not None:
            object.__setattr__(self, "stop", tuple(self.stop))
        if self.tier is not None and not isinstance(self.tier, ModelTier):
            object.__setattr__(self, "tier", ModelTier(self.tier))

    def tool_dicts(self) -> list[dict[str, Any]] | None:
        if not self.tools:
            return None
        return [t.to_dict() if isinstance(t, ToolDefinition) else dict(t) for t in self.tools]


FinishReason = Literal["stop", "length", "tool_calls", "content_filter", "error"]


@dataclass(frozen=True)
class LLMResponse:
    """Normalized result of a non-streaming call."""
    content: str
    model: str
    provider: str
    finish_reason: FinishReason = "stop"
    usage: TokenUsage = field(default_factory=TokenUsage)
    tool_calls: tuple[ToolCall, ...] = ()
    latency_ms: float = 0.0
    estimated_cost: float = 0.0

    @property
    def has_tool_calls(self) -> bool:
        return len(self.tool_calls) > 0


StreamEventType = Literal["content", "tool_call", "done", "error"]


@dataclass(frozen=True)
class StreamEvent:
    """
    One normalized streaming event.

    A stream always ends with exactly one event whose type is
    "done" or "error".
    """
    type: StreamEventType
    content: str = ""
    tool_call: ToolCall | None = None
    usage: TokenUsage | None = None
    error: str = ""
    code: LLMErrorCode | None = None
    retryable: bool = False

    @classmethod
    def content_delta(cls, text: str) -> "StreamEvent":
        return cls(type="content", content=text)

    @classmethod
    def tool_call_update(cls, tool_call: ToolCall) -> "StreamEvent":
        return cls(type="tool_call", tool_call=tool_call)

    @classmethod
    def done_event(cls, usage: TokenUsage | None = None) -> "StreamEvent":
        return cls(type="done", usage=usage)

    @classmethod
    def error_event(
        cls,
        message: str,
        code: LLMErrorCode = LLMErrorCode.PROVIDER_ERROR,
    ) -> "StreamEvent":
        return cls(type="error", error=message, code=code, retryable=is_retryable(code))

    @classmethod
    def from_error(cls, error: LLMError) -> "StreamEvent":
        return cls(type="error", error=error.message, code=error.code, retryable=error.retryable)

    @property
    def is_terminal(self) -> bool:
        return self.type in ("done", "error")


class LLMAdapter(ABC):
    """
    Abstract base class for vendor adapters.

    Implementations translate normalized requests into vendor calls and
    vendor responses/streams back into LLMResponse / StreamEvent. They must
    never let a raw vendor exception escape: failures surface as LLMError
    (chat) or a single terminal error event (stream_chat).
    """

    provider: str = ""

    def __init__(
        self,
        api_key: str | None = None,
        api_base: str | None = None,
        registry: ModelRegistry | None = None,
    ):
        self.api_key = api_key
        self.api_base = api_base
        self.registry = registry if registry is not None else ModelRegistry()

    def is_available(self) -> bool:
        """True iff a usable credential is held. Never does I/O."""
        return bool(self.api_key)

    def get_supported_models(self) -> list[str]:
        return [m.id for m in self.registry.get_models_by_provider(self.provider)]

    @abstractmethod
    async def validate_api_key(self) -> bool:
        """
        Probe the vendor with a minimal request.

        Returns False only for authentication failures; rate limits and other
        transient errors count as a valid key.
        """

    @abstractmethod
    async def chat(self, options: LLMRequestOptions, model: ModelConfig) -> LLMResponse:
        """
        Single round trip.

        Raises:
            LLMError: On any failure, classified via the error taxonomy.
        """

    @abstractmethod
    def stream_chat(
        self,
        options: LLMRequestOptions,
        model: ModelConfig,
    ) -> AsyncIterator[StreamEvent]:
        """Lazy, finite, non-restartable sequence of normalized events."""

    def calculate_cost(self, model: ModelConfig, usage: TokenUsage) -> float:
        return estimate_cost(model, usage.prompt_tokens, usage.completion_tokens)

    def create_error(
        self,
        message: str,
        model: str,
        code: LLMErrorCode,
        cause: BaseException | None = None,
    ) -> LLMError:
        return LLMError(message, provider=self.provider, model=model, code=code, cause=cause)
