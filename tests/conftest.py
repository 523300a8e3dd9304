"""
Pytest configuration and shared fixtures for promptrouter tests.
"""

import pytest
import sys
from pathlib import Path
from types import SimpleNamespace

# Add the project root to the path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from promptrouter.errors import LLMError, LLMErrorCode
from promptrouter.models import ModelConfig, ModelRegistry, ModelTier
from promptrouter.providers.base import (
    LLMAdapter,
    LLMRequestOptions,
    LLMResponse,
    StreamEvent,
    TokenUsage,
)


@pytest.fixture
def config_dir(tmp_path):
    """Create a temporary config directory."""
    config = tmp_path / "config"
    config.mkdir()
    return config


def make_model(model_id, provider, tier, priority=0, **kwargs):
    return ModelConfig(
        id=model_id,
        provider=provider,
        tier=tier,
        priority=priority,
        max_output_tokens=kwargs.pop("max_output_tokens", 1024),
        price_per_prompt_token=kwargs.pop("price_per_prompt_token", 0.000001),
        price_per_completion_token=kwargs.pop("price_per_completion_token", 0.000002),
        **kwargs,
    )


@pytest.fixture
def registry():
    """Small catalog: one model per provider per tier, alpha preferred."""
    return ModelRegistry([
        make_model("alpha-cheap", "alpha", ModelTier.CHEAP, priority=0),
        make_model("beta-cheap", "beta", ModelTier.CHEAP, priority=1),
        make_model("alpha-standard", "alpha", ModelTier.STANDARD, priority=0),
        make_model("beta-standard", "beta", ModelTier.STANDARD, priority=1),
        make_model("alpha-premium", "alpha", ModelTier.PREMIUM, priority=0),
        make_model("beta-premium", "beta", ModelTier.PREMIUM, priority=1),
    ])


def rate_limited(provider="alpha", model="alpha-standard"):
    return LLMError("Rate limit exceeded", provider=provider, model=model,
                    code=LLMErrorCode.RATE_LIMIT)


def auth_failed(provider="alpha", model="alpha-standard"):
    return LLMError("Invalid API key", provider=provider, model=model,
                    code=LLMErrorCode.INVALID_API_KEY)


class ScriptedAdapter(LLMAdapter):
    """
    Fake adapter driven by a script.

    chat_script entries are LLMResponse objects or exceptions, consumed one
    per call; the last entry repeats. stream_script entries are lists of
    StreamEvent (or an exception to raise mid-stream).
    """

    def __init__(self, provider, available=True, chat_script=None, stream_script=None,
                 registry=None):
        super().__init__(api_key="test-key" if available else None, registry=registry)
        self.provider = provider
        self.chat_script = list(chat_script or [])
        self.stream_script = list(stream_script or [])
        self.chat_calls: list[tuple[LLMRequestOptions, ModelConfig]] = []
        self.stream_calls: list[tuple[LLMRequestOptions, ModelConfig]] = []
        self.closed_streams = 0

    async def validate_api_key(self) -> bool:
        return self.is_available()

    def _next(self, script):
        if len(script) > 1:
            return script.pop(0)
        return script[0]

    async def chat(self, options, model):
        self.chat_calls.append((options, model))
        outcome = self._next(self.chat_script) if self.chat_script else ok_response(model)
        if isinstance(outcome, BaseException):
            raise outcome
        return outcome

    async def stream_chat(self, options, model):
        self.stream_calls.append((options, model))
        script = self._next(self.stream_script) if self.stream_script else [
            StreamEvent.content_delta("ok"),
            StreamEvent.done_event(),
        ]
        try:
            if isinstance(script, BaseException):
                raise script
            for item in script:
                if isinstance(item, BaseException):
                    raise item
                yield item
        finally:
            self.closed_streams += 1


def ok_response(model, content="ok"):
    return LLMResponse(
        content=content,
        model=model.id,
        provider=model.provider,
        usage=TokenUsage.of(10, 5),
    )


@pytest.fixture
def no_sleep():
    """Sleep stand-in recording requested backoff delays."""
    delays: list[float] = []

    async def sleep(delay):
        delays.append(delay)

    sleep.delays = delays
    return sleep


# LiteLLM-shaped fakes

def chunk(content=None, tool_calls=None, finish_reason=None, usage=None, choices=True):
    """Build a streaming chunk shaped like LiteLLM's ModelResponseStream."""
    if not choices:
        return SimpleNamespace(choices=[], usage=usage)
    delta = SimpleNamespace(content=content, tool_calls=tool_calls)
    choice = SimpleNamespace(delta=delta, finish_reason=finish_reason)
    return SimpleNamespace(choices=[choice], usage=usage)


def tool_delta(index, id=None, name=None, arguments=None):
    return SimpleNamespace(
        index=index,
        id=id,
        function=SimpleNamespace(name=name, arguments=arguments),
    )


def completion(content="Hello", tool_calls=None, finish_reason="stop",
               prompt_tokens=12, completion_tokens=4, model="gpt-4o-mini"):
    """Build a non-streaming response shaped like LiteLLM's ModelResponse."""
    message = SimpleNamespace(content=content, tool_calls=tool_calls)
    return SimpleNamespace(
        model=model,
        choices=[SimpleNamespace(message=message, finish_reason=finish_reason)],
        usage=SimpleNamespace(
            prompt_tokens=prompt_tokens,
            completion_tokens=completion_tokens,
            total_tokens=prompt_tokens + completion_tokens,
        ),
    )


class FakeStream:
    """Async-iterable vendor stream that records whether it was closed."""

    def __init__(self, items):
        self.items = list(items)
        self.closed = False

    def __aiter__(self):
        return self._iterate()

    async def _iterate(self):
        for item in self.items:
            if isinstance(item, BaseException):
                raise item
            yield item

    async def aclose(self):
        self.closed = True
