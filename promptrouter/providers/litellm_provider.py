"""LiteLLM-backed adapters for OpenAI, Anthropic and OpenRouter."""

import inspect
import json
import os
import time
from typing import Any, AsyncIterator

import litellm
from litellm import acompletion
from loguru import logger

from promptrouter.errors import LLMError, LLMErrorCode, classify_error, wrap_error
from promptrouter.models import ModelConfig, ModelRegistry
from promptrouter.providers.base import (
    FinishReason,
    LLMAdapter,
    LLMRequestOptions,
    LLMResponse,
    StreamEvent,
    TokenUsage,
    ToolCall,
)


_FINISH_REASONS: dict[str, FinishReason] = {
    "stop": "stop",
    "end_turn": "stop",
    "stop_sequence": "stop",
    "length": "length",
    "max_tokens": "length",
    "tool_calls": "tool_calls",
    "tool_use": "tool_calls",
    "function_call": "tool_calls",
    "content_filter": "content_filter",
}


def map_finish_reason(reason: str | None) -> FinishReason:
    """Normalize vendor stop reasons; unknown or missing reasons count as "stop"."""
    if not reason:
        return "stop"
    return _FINISH_REASONS.get(reason, "stop")


def _get(obj: Any, name: str, default: Any = None) -> Any:
    """Attribute or key access, so SDK objects and plain dicts both work."""
    if obj is None:
        return default
    if isinstance(obj, dict):
        return obj.get(name, default)
    return getattr(obj, name, default)


def _usage_from(raw: Any) -> TokenUsage | None:
    if not raw:
        return None
    prompt = _get(raw, "prompt_tokens") or 0
    completion = _get(raw, "completion_tokens") or 0
    total = _get(raw, "total_tokens") or (prompt + completion)
    return TokenUsage(prompt_tokens=prompt, completion_tokens=completion, total_tokens=total)


class StreamAccumulator:
    """
    Translates OpenAI-shaped streaming chunks into normalized events.

    Tool-call fragments are accumulated per vendor tool-call index; every
    fragment re-emits the cumulative call so consumers never track deltas.
    Usage is remembered from whichever chunk carries it (vendors that
    withhold prompt counts yield completion-only usage).
    """

    def __init__(self) -> None:
        self._tool_calls: dict[Any, dict[str, str]] = {}
        self._last_key: Any = None
        self.usage: TokenUsage | None = None
        self.finish_reason: str | None = None
        self.content = ""

    @property
    def tool_calls(self) -> list[ToolCall]:
        return [
            ToolCall(id=tc["id"], name=tc["name"], arguments=tc["arguments"])
            for tc in self._tool_calls.values()
        ]

    def feed(self, chunk: Any) -> list[StreamEvent]:
        """Consume one vendor chunk and return the events it produces."""
        events: list[StreamEvent] = []

        usage = _usage_from(_get(chunk, "usage"))
        if usage is not None:
            self.usage = usage

        choices = _get(chunk, "choices") or []
        if not choices:
            return events

        choice = choices[0]
        delta = _get(choice, "delta")

        if delta is not None:
            text = _get(delta, "content")
            if text:
                self.content += text
                events.append(StreamEvent.content_delta(text))

            for tc in _get(delta, "tool_calls") or []:
                events.append(StreamEvent.tool_call_update(self._accumulate(tc)))

        finish_reason = _get(choice, "finish_reason")
        if finish_reason:
            self.finish_reason = finish_reason

        return events

    def _accumulate(self, tc: Any) -> ToolCall:
        key = _get(tc, "index")
        if key is None:
            key = _get(tc, "id") or None
        if key is None:
            # Continuation fragment: extend the call opened most recently
            key = self._last_key if self._last_key is not None else len(self._tool_calls)

        slot = self._tool_calls.setdefault(key, {"id": "", "name": "", "arguments": ""})
        self._last_key = key

        call_id = _get(tc, "id")
        if call_id:
            slot["id"] = call_id

        function = _get(tc, "function")
        name = _get(function, "name")
        if name:
            slot["name"] = name
        arguments = _get(function, "arguments")
        if arguments:
            slot["arguments"] += arguments if isinstance(arguments, str) else json.dumps(arguments)

        return ToolCall(id=slot["id"], name=slot["name"], arguments=slot["arguments"])

    def finish(self) -> StreamEvent:
        """The single terminal event for a stream that ended normally."""
        return StreamEvent.done_event(self.usage)


async def _close_stream(stream: Any) -> None:
    """Release a vendor stream; tolerates SDKs without an explicit close."""
    for name in ("aclose", "close"):
        closer = getattr(stream, name, None)
        if closer is None:
            continue
        try:
            result = closer()
            if inspect.isawaitable(result):
                await result
        except Exception as e:
            logger.debug(f"Error while closing vendor stream: {e}")
        return


class LiteLLMAdapter(LLMAdapter):
    """
    Adapter that reaches vendors through LiteLLM.

    LiteLLM already speaks each vendor's wire protocol; this class owns the
    normalization on top of it: request building, response/stream
    translation and error classification.
    """

    # Provider configurations
    PROVIDER_CONFIGS: dict[str, dict[str, Any]] = {
        "openai": {
            "env_key": "OPENAI_API_KEY",
            "prefix": "openai/",
        },
        "anthropic": {
            "env_key": "ANTHROPIC_API_KEY",
            "prefix": "anthropic/",
        },
        "openrouter": {
            "env_key": "OPENROUTER_API_KEY",
            "prefix": "openrouter/",
            "api_base": "https://openrouter.ai/api/v1",
        },
    }

    DEFAULT_TEMPERATURE = 0.7

    def __init__(
        self,
        api_key: str | None = None,
        api_base: str | None = None,
        registry: ModelRegistry | None = None,
        provider: str | None = None,
        extra_headers: dict[str, str] | None = None,
    ):
        if provider:
            self.provider = provider
        config = self.PROVIDER_CONFIGS.get(self.provider, {})

        env_key = config.get("env_key")
        if not api_key and env_key:
            api_key = os.environ.get(env_key) or None

        super().__init__(api_key, api_base or config.get("api_base"), registry)
        self.prefix: str = config.get("prefix", "")
        self.extra_headers = extra_headers or {}

        # Disable LiteLLM logging noise
        litellm.suppress_debug_info = True

    def _format_model_name(self, model_id: str) -> str:
        """LiteLLM routes by prefix, e.g. 'anthropic/claude-3-haiku-20240307'."""
        if not self.prefix:
            return model_id
        if self.provider != "openrouter" and model_id.startswith(self.prefix):
            return model_id
        return f"{self.prefix}{model_id}"

    def _auth_kwargs(self) -> dict[str, Any]:
        kwargs: dict[str, Any] = {"api_key": self.api_key}
        if self.api_base:
            kwargs["api_base"] = self.api_base
        if self.extra_headers:
            kwargs["extra_headers"] = self.extra_headers
        return kwargs

    def _build_kwargs(
        self,
        options: LLMRequestOptions,
        model: ModelConfig,
        stream: bool = False,
    ) -> dict[str, Any]:
        kwargs: dict[str, Any] = {
            "model": self._format_model_name(model.id),
            "messages": [m.to_dict() for m in options.messages],
            "max_tokens": options.max_tokens or model.max_output_tokens,
            "temperature": (
                options.temperature
                if options.temperature is not None
                else self.DEFAULT_TEMPERATURE
            ),
            # Per call, so the host process keeps its own LiteLLM settings
            "drop_params": True,
        }

        if options.top_p is not None:
            kwargs["top_p"] = options.top_p
        if options.stop:
            kwargs["stop"] = list(options.stop)
        if options.timeout:
            kwargs["timeout"] = options.timeout

        tools = options.tool_dicts()
        if tools:
            kwargs["tools"] = tools
            kwargs["tool_choice"] = "auto"

        if options.json_mode and model.supports_json_mode:
            kwargs["response_format"] = {"type": "json_object"}

        if stream:
            kwargs["stream"] = True
            kwargs["stream_options"] = {"include_usage": True}

        kwargs.update(self._auth_kwargs())
        return kwargs

    def _probe_model(self) -> str:
        cheapest = self.registry.find_cheapest_model([self.provider])
        if cheapest is not None:
            return cheapest.id
        supported = self.get_supported_models()
        if supported:
            return supported[0]
        raise LLMError(
            f"No registered model for provider {self.provider}",
            provider=self.provider,
            model="",
            code=LLMErrorCode.MODEL_NOT_FOUND,
        )

    async def validate_api_key(self) -> bool:
        if not self.is_available():
            return False

        try:
            probe = self._probe_model()
            await acompletion(
                model=self._format_model_name(probe),
                messages=[{"role": "user", "content": "Hi"}],
                max_tokens=1,
                drop_params=True,
                **self._auth_kwargs(),
            )
            return True
        except Exception as e:
            code = classify_error(e)
            if code == LLMErrorCode.INVALID_API_KEY:
                logger.warning(f"{self.provider} rejected the configured API key")
                return False
            logger.debug(f"{self.provider} key probe failed with {code.value}; treating key as valid")
            return True

    async def chat(self, options: LLMRequestOptions, model: ModelConfig) -> LLMResponse:
        """
        Send a chat completion request via LiteLLM.

        Args:
            options: The normalized request.
            model: Registry entry for the model to call.

        Returns:
            LLMResponse with content and/or tool calls, usage, latency and cost.

        Raises:
            LLMError: For every failure, classified via the error taxonomy.
        """
        if not self.is_available():
            raise self.create_error(
                f"{self.provider} not configured", model.id, LLMErrorCode.INVALID_API_KEY
            )

        kwargs = self._build_kwargs(options, model)
        start = time.monotonic()

        try:
            response = await acompletion(**kwargs)
        except Exception as e:
            raise wrap_error(e, self.provider, model.id) from e

        latency_ms = (time.monotonic() - start) * 1000
        return self._parse_response(response, model, latency_ms)

    def _parse_response(self, response: Any, model: ModelConfig, latency_ms: float) -> LLMResponse:
        """Parse a LiteLLM response into the normalized format."""
        choices = _get(response, "choices") or []
        if not choices:
            raise self.create_error(
                f"No response from {self.provider}", model.id, LLMErrorCode.PROVIDER_ERROR
            )

        choice = choices[0]
        message = _get(choice, "message")

        tool_calls = []
        for tc in _get(message, "tool_calls") or []:
            function = _get(tc, "function")
            args = _get(function, "arguments") or ""
            if not isinstance(args, str):
                args = json.dumps(args)
            tool_calls.append(ToolCall(
                id=_get(tc, "id") or "",
                name=_get(function, "name") or "",
                arguments=args,
            ))

        usage = _usage_from(_get(response, "usage")) or TokenUsage()

        return LLMResponse(
            content=_get(message, "content") or "",
            model=_get(response, "model") or model.id,
            provider=self.provider,
            tool_calls=tuple(tool_calls),
            finish_reason=map_finish_reason(_get(choice, "finish_reason")),
            usage=usage,
            latency_ms=latency_ms,
            estimated_cost=self.calculate_cost(model, usage),
        )

    async def stream_chat(
        self,
        options: LLMRequestOptions,
        model: ModelConfig,
    ) -> AsyncIterator[StreamEvent]:
        """
        Stream a chat completion request via LiteLLM.

        Yields content and cumulative tool-call events, then exactly one
        "done" or "error" event. The vendor stream is closed on every exit
        path, including when the consumer stops iterating early.
        """
        if not self.is_available():
            yield StreamEvent.error_event(
                f"{self.provider} not configured", LLMErrorCode.INVALID_API_KEY
            )
            return

        kwargs = self._build_kwargs(options, model, stream=True)
        accumulator = StreamAccumulator()
        stream = None

        try:
            stream = await acompletion(**kwargs)
            async for chunk in stream:
                for event in accumulator.feed(chunk):
                    yield event
        except Exception as e:
            error = wrap_error(e, self.provider, model.id)
            logger.debug(f"{self.provider} stream for {model.id} failed: {error.code.value}")
            yield StreamEvent.from_error(error)
            return
        finally:
            if stream is not None:
                await _close_stream(stream)

        yield accumulator.finish()


class OpenAIAdapter(LiteLLMAdapter):
    provider = "openai"


class AnthropicAdapter(LiteLLMAdapter):
    provider = "anthropic"


class OpenRouterAdapter(LiteLLMAdapter):
    """OpenRouter: many vendors behind one OpenAI-compatible API."""

    provider = "openrouter"

    def __init__(
        self,
        api_key: str | None = None,
        api_base: str | None = None,
        registry: ModelRegistry | None = None,
        app_name: str = "promptrouter",
        site_url: str | None = None,
    ):
        headers = {"X-Title": app_name}
        if site_url:
            headers["HTTP-Referer"] = site_url
        super().__init__(api_key, api_base, registry, extra_headers=headers)


ADAPTERS: dict[str, type[LiteLLMAdapter]] = {
    "openai": OpenAIAdapter,
    "anthropic": AnthropicAdapter,
    "openrouter": OpenRouterAdapter,
}
