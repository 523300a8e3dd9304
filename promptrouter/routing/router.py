"""
Tiered model router.

Routes requests to a concrete adapter/model based on classification and
configuration. Supports:
- Fixed per-tier priority ordering with availability skipping
- Bounded exponential-backoff retries for retryable errors
- Fallback to the next adapter in the tier
- Usage statistics
"""

import asyncio
from dataclasses import dataclass, field, replace
from typing import Any, AsyncIterator, Awaitable, Callable

from loguru import logger

from promptrouter.config.schema import RoutingConfig
from promptrouter.errors import LLMError, LLMErrorCode, NoAvailableAdapterError, wrap_error
from promptrouter.models import ModelConfig, ModelRegistry, ModelTier, TIER_ORDER
from promptrouter.providers.base import (
    ChatMessage,
    LLMAdapter,
    LLMRequestOptions,
    LLMResponse,
    MessageRole,
    StreamEvent,
)
from promptrouter.routing.classifier import (
    ClassificationResult,
    MessageInput,
    TaskClassifier,
)
from promptrouter.routing.tiers import TieredClassification, recommend_tier


@dataclass
class RoutingDecision:
    """Result of routing decision."""
    classification: ClassificationResult
    tier: ModelTier
    candidates: list[ModelConfig] = field(default_factory=list)
    explicit_model: bool = False

    @property
    def model(self) -> ModelConfig | None:
        """The first-choice model, if any adapter can serve the tier."""
        return self.candidates[0] if self.candidates else None

    def to_dict(self) -> dict[str, Any]:
        return {
            "classification": self.classification.to_dict(),
            "tier": self.tier.value,
            "candidates": [m.id for m in self.candidates],
            "explicit_model": self.explicit_model,
        }


def _as_options(request: LLMRequestOptions | MessageInput) -> LLMRequestOptions:
    if isinstance(request, LLMRequestOptions):
        return request
    if request is None:
        return LLMRequestOptions(messages=())
    if isinstance(request, str):
        return LLMRequestOptions(messages=[ChatMessage(role=MessageRole.USER, content=request)])
    try:
        return LLMRequestOptions(messages=request)
    except (KeyError, TypeError, ValueError) as e:
        raise LLMError(
            f"Malformed request messages: {e!r}",
            provider="",
            model="",
            code=LLMErrorCode.PROVIDER_ERROR,
            cause=e,
        ) from e


async def _close(stream: AsyncIterator[StreamEvent]) -> None:
    aclose = getattr(stream, "aclose", None)
    if aclose is not None:
        await aclose()


@dataclass
class TieredRouter:
    """
    Routes requests to the appropriate model tier and invokes it.

    Per request: classify -> recommend tier -> select candidates -> invoke,
    retrying retryable failures with backoff and falling back to the next
    adapter in the tier's ordering.

    Configuration:
    - adapters: provider name -> LLMAdapter
    - registry: model catalog; its per-tier priority order drives selection
    - classifier: TaskClassifier for the tier decision
    - config: RoutingConfig (retry cap, backoff, fallback policy)
    - sleep: awaitable used between retries
    """

    adapters: dict[str, LLMAdapter] = field(default_factory=dict)
    registry: ModelRegistry = field(default_factory=ModelRegistry)
    classifier: TaskClassifier = field(default_factory=TaskClassifier)
    config: RoutingConfig = field(default_factory=RoutingConfig)
    sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep

    # Usage statistics
    _tier_usage: dict[str, int] = field(default_factory=dict)
    _model_usage: dict[str, int] = field(default_factory=dict)
    _failures: dict[str, int] = field(default_factory=dict)

    def register_adapter(self, adapter: LLMAdapter) -> None:
        """Add or replace the adapter for its provider."""
        self.adapters[adapter.provider] = adapter

    def get_available_providers(self) -> list[str]:
        return [name for name, adapter in self.adapters.items() if adapter.is_available()]

    # Pure classification entry points

    def classify_task(self, input: MessageInput) -> ClassificationResult:
        return self.classifier.classify(input)

    def classify_with_tier(self, input: MessageInput) -> TieredClassification:
        result = self.classifier.classify(input)
        return TieredClassification(result=result, tier=recommend_tier(result))

    def estimate_cost(
        self,
        model: ModelConfig | str,
        prompt_tokens: int,
        completion_tokens: int,
    ) -> float:
        return self.registry.estimate_cost(model, prompt_tokens, completion_tokens)

    # Selection

    def route(
        self,
        request: LLMRequestOptions | MessageInput,
        streaming: bool = False,
    ) -> RoutingDecision:
        """
        Decide where a request would go, without calling any model.

        Args:
            request: Request options, a prompt string or chat messages.
            streaming: Only keep models that can stream.

        Returns:
            RoutingDecision with the classification, tier and ordered
            candidates (one per available adapter). Candidates may be
            empty; callers that invoke a model treat that as fatal.
        """
        options = _as_options(request)
        classification = self.classifier.classify(options.messages)

        if options.tier is not None:
            tier = options.tier
        elif self.config.auto_route:
            tier = recommend_tier(classification)
        else:
            tier = ModelTier(self.config.default_tier)

        candidates = self._candidates(tier, options, streaming)
        explicit = False

        if options.model:
            model = self.registry.get_model(options.model)
            if model is not None and self._can_serve(model, options, streaming):
                candidates = [model] + [c for c in candidates if c.provider != model.provider]
                explicit = True
            else:
                logger.warning(f"Requested model {options.model} not available, using routing")

        return RoutingDecision(
            classification=classification,
            tier=tier,
            candidates=candidates,
            explicit_model=explicit,
        )

    def _can_serve(
        self,
        model: ModelConfig,
        options: LLMRequestOptions,
        streaming: bool = False,
    ) -> bool:
        adapter = self.adapters.get(model.provider)
        if adapter is None or not adapter.is_available():
            return False
        if options.tools and not model.supports_tools:
            return False
        if streaming and not model.supports_streaming:
            return False
        return True

    def _candidates(
        self,
        tier: ModelTier,
        options: LLMRequestOptions,
        streaming: bool = False,
    ) -> list[ModelConfig]:
        """
        Select candidate models for a tier.

        Walks the tier in registry priority order and keeps the first
        servable model of each provider, so the list holds one entry per
        adapter. Unavailable adapters are skipped here and never cost an
        attempt.
        """
        candidates: list[ModelConfig] = []
        seen: set[str] = set()
        for model in self.registry.get_models_by_tier(tier):
            if model.provider in seen or not self._can_serve(model, options, streaming):
                continue
            seen.add(model.provider)
            candidates.append(model)
        return candidates

    def _select(
        self,
        options: LLMRequestOptions,
        streaming: bool = False,
    ) -> tuple[RoutingDecision, list[ModelConfig]]:
        decision = self.route(options, streaming)
        if not decision.candidates:
            raise NoAvailableAdapterError(
                f"No available adapter for tier {decision.tier.value}",
                tier=decision.tier.value,
            )

        limit = self.config.max_fallback_models if self.config.fallback_enabled else 1
        candidates = decision.candidates[:limit]

        self._tier_usage[decision.tier.value] = self._tier_usage.get(decision.tier.value, 0) + 1
        logger.debug(
            f"Routing {decision.classification.task_type.value}/"
            f"{decision.classification.estimated_complexity.value} request to tier "
            f"{decision.tier.value}: {[m.id for m in candidates]}"
        )
        return decision, candidates

    def _prepare(self, options: LLMRequestOptions) -> LLMRequestOptions:
        if options.timeout is None and self.config.request_timeout:
            return replace(options, timeout=self.config.request_timeout)
        return options

    def _backoff(self, attempt: int) -> float:
        """Delay before retry number `attempt` (1-based)."""
        return min(self.config.backoff_base * 2 ** (attempt - 1), self.config.backoff_max)

    def _record_success(self, model: ModelConfig) -> None:
        self._model_usage[model.id] = self._model_usage.get(model.id, 0) + 1

    def _record_failure(self, code: LLMErrorCode | None) -> None:
        key = (code or LLMErrorCode.PROVIDER_ERROR).value
        self._failures[key] = self._failures.get(key, 0) + 1

    # Invocation

    async def chat(self, request: LLMRequestOptions | MessageInput) -> LLMResponse:
        """
        Execute a chat completion with retries and fallbacks.

        Raises:
            NoAvailableAdapterError: No adapter can serve the tier.
            LLMError: A terminal error, or the last error once every
                candidate has exhausted its attempts.
        """
        options = self._prepare(_as_options(request))
        decision, candidates = self._select(options)

        last_error: LLMError | None = None
        for index, model in enumerate(candidates):
            adapter = self.adapters[model.provider]
            try:
                response = await self._chat_with_retries(adapter, model, options)
            except LLMError as e:
                last_error = e
                self._record_failure(e.code)
                if not e.retryable:
                    logger.error(
                        f"{model.provider}/{model.id} failed with {e.code.value}: {e.message}"
                    )
                    raise
                if index + 1 < len(candidates):
                    logger.warning(
                        f"{model.id} exhausted {self.config.max_attempts} attempts "
                        f"({e.code.value}), falling back to {candidates[index + 1].id}"
                    )
                continue

            self._record_success(model)
            logger.info(
                f"Completed via {response.provider}/{response.model} in "
                f"{response.latency_ms:.0f}ms ({response.usage.total_tokens} tokens, "
                f"${response.estimated_cost:.6f})"
            )
            return response

        assert last_error is not None
        logger.error(f"All candidates failed for tier {decision.tier.value}: {last_error.message}")
        raise last_error

    async def _chat_with_retries(
        self,
        adapter: LLMAdapter,
        model: ModelConfig,
        options: LLMRequestOptions,
    ) -> LLMResponse:
        max_attempts = self.config.max_attempts
        attempt = 0
        while True:
            attempt += 1
            try:
                return await adapter.chat(options, model)
            except LLMError as e:
                error = e
            except Exception as e:
                error = wrap_error(e, adapter.provider, model.id)

            if not error.retryable or attempt >= max_attempts:
                raise error

            delay = self._backoff(attempt)
            logger.warning(
                f"{model.id} attempt {attempt}/{max_attempts} failed with "
                f"{error.code.value}, retrying in {delay:.2f}s"
            )
            await self.sleep(delay)

    async def stream_chat(
        self,
        request: LLMRequestOptions | MessageInput,
    ) -> AsyncIterator[StreamEvent]:
        """
        Stream a chat completion with retries and fallbacks.

        A retryable error that arrives before any output was forwarded is
        retried (and falls back) like chat(); once output has reached the
        consumer, an error is forwarded as the terminal event. Exactly one
        terminal event is yielded.
        """
        try:
            options = self._prepare(_as_options(request))
            decision, candidates = self._select(options, streaming=True)
        except LLMError as e:
            logger.error(e.message)
            yield StreamEvent.from_error(e)
            return

        terminal: StreamEvent | None = None
        for index, model in enumerate(candidates):
            adapter = self.adapters[model.provider]

            for attempt in range(1, self.config.max_attempts + 1):
                forwarded = False
                terminal = None
                stream = adapter.stream_chat(options, model)
                try:
                    async for event in stream:
                        if event.is_terminal:
                            terminal = event
                            break
                        forwarded = True
                        yield event
                except Exception as e:
                    terminal = StreamEvent.from_error(wrap_error(e, adapter.provider, model.id))
                finally:
                    await _close(stream)

                if terminal is None:
                    terminal = StreamEvent.done_event()

                if terminal.type == "done":
                    self._record_success(model)
                    usage = terminal.usage
                    logger.info(
                        f"Streamed via {model.provider}/{model.id}"
                        + (f" ({usage.total_tokens} tokens)" if usage else "")
                    )
                    yield terminal
                    return

                self._record_failure(terminal.code)
                if forwarded or not terminal.retryable:
                    logger.error(f"Stream from {model.id} failed: {terminal.error}")
                    yield terminal
                    return

                if attempt < self.config.max_attempts:
                    delay = self._backoff(attempt)
                    logger.warning(
                        f"{model.id} stream attempt {attempt}/{self.config.max_attempts} "
                        f"failed ({terminal.error}), retrying in {delay:.2f}s"
                    )
                    await self.sleep(delay)

            if index + 1 < len(candidates):
                logger.warning(
                    f"{model.id} stream exhausted retries, "
                    f"falling back to {candidates[index + 1].id}"
                )

        logger.error(f"All candidates failed for tier {decision.tier.value}")
        yield terminal if terminal is not None else StreamEvent.error_event(
            "All LLM providers failed", LLMErrorCode.PROVIDER_ERROR
        )

    async def complete(self, prompt: str, **kwargs: Any) -> str:
        """Simple completion helper (non-streaming)."""
        options = LLMRequestOptions(
            messages=[ChatMessage(role=MessageRole.USER, content=prompt)],
            **kwargs,
        )
        response = await self.chat(options)
        return response.content

    # Introspection

    def get_status(self) -> dict[str, Any]:
        """Router status for health endpoints."""
        return {
            "available": bool(self.get_available_providers()),
            "providers": {
                name: {
                    "available": adapter.is_available(),
                    "models": adapter.get_supported_models(),
                }
                for name, adapter in self.adapters.items()
            },
            "tiers": {
                tier.value: [m.id for m in self._candidates(tier, LLMRequestOptions(messages=()))]
                for tier in TIER_ORDER
            },
            "config": self.config.model_dump(),
        }

    def get_statistics(self) -> dict[str, Any]:
        """Get routing statistics."""
        return {
            "tier_usage": dict(self._tier_usage),
            "model_usage": dict(self._model_usage),
            "failures": dict(self._failures),
        }

    def reset_statistics(self) -> None:
        """Reset usage statistics."""
        self._tier_usage.clear()
        self._model_usage.clear()
        self._failures.clear()


def create_router_from_config(
    config: Any,
    registry: ModelRegistry | None = None,
) -> TieredRouter:
    """
    Create a TieredRouter from configuration.

    Args:
        config: Root Config with providers and routing settings.
        registry: Model catalog; defaults to the built-in one.

    Returns:
        Configured TieredRouter with one adapter per known provider.
    """
    from promptrouter.providers.litellm_provider import ADAPTERS

    registry = registry if registry is not None else ModelRegistry()

    adapters: dict[str, LLMAdapter] = {}
    for name, adapter_cls in ADAPTERS.items():
        adapter = adapter_cls(
            api_key=config.get_api_key(name),
            api_base=config.get_api_base(name),
            registry=registry,
        )
        adapters[name] = adapter
        if adapter.is_available():
            logger.debug(f"Adapter {name} configured")

    return TieredRouter(
        adapters=adapters,
        registry=registry,
        config=config.routing,
    )


def create_default_router() -> TieredRouter:
    """Create a router from environment-derived default configuration."""
    from promptrouter.config.schema import Config

    return create_router_from_config(Config())
