"""
Model registry for the LLM router.

A static catalog of provider/model metadata (token limits, per-token prices,
capabilities, tier and priority). Built once at startup and passed to the
router and adapters; never mutated afterwards.
"""

from dataclasses import dataclass, fields
from enum import Enum
from types import MappingProxyType
from typing import Any, Iterable, Iterator, Mapping


class ModelTier(str, Enum):
    """Cost/quality buckets used to pick a model class."""
    CHEAP = "cheap"
    STANDARD = "standard"
    PREMIUM = "premium"


# Lower index = cheaper. Used for downgrade fallbacks.
TIER_ORDER = (ModelTier.CHEAP, ModelTier.STANDARD, ModelTier.PREMIUM)


@dataclass(frozen=True)
class ModelConfig:
    """Static metadata for one model."""
    id: str
    provider: str
    max_output_tokens: int
    price_per_prompt_token: float  # USD
    price_per_completion_token: float  # USD
    name: str = ""
    tier: ModelTier = ModelTier.STANDARD
    max_context_tokens: int = 128_000
    supports_streaming: bool = True
    supports_tools: bool = True
    supports_vision: bool = False
    supports_json_mode: bool = False
    priority: int = 0  # Lower = preferred within the tier

    def __post_init__(self) -> None:
        if not isinstance(self.tier, ModelTier):
            object.__setattr__(self, "tier", ModelTier(self.tier))

    def to_dict(self) -> dict[str, Any]:
        data = {f.name: getattr(self, f.name) for f in fields(self)}
        data["tier"] = self.tier.value
        return data


def estimate_cost(model: ModelConfig, prompt_tokens: int, completion_tokens: int) -> float:
    """
    Estimate the USD cost of a call.

    Pure; negative token counts count as zero so the result is monotonic
    in both arguments.
    """
    prompt_tokens = max(prompt_tokens, 0)
    completion_tokens = max(completion_tokens, 0)
    return (
        prompt_tokens * model.price_per_prompt_token
        + completion_tokens * model.price_per_completion_token
    )


def _per_1k(usd: float) -> float:
    return usd / 1000


DEFAULT_MODELS: tuple[ModelConfig, ...] = (
    # OpenAI
    ModelConfig(
        id="gpt-4o-mini", name="GPT-4o Mini", provider="openai", tier=ModelTier.CHEAP,
        price_per_prompt_token=_per_1k(0.00015), price_per_completion_token=_per_1k(0.0006),
        max_context_tokens=128_000, max_output_tokens=16_384,
        supports_vision=True, supports_json_mode=True, priority=1,
    ),
    ModelConfig(
        id="gpt-3.5-turbo", name="GPT-3.5 Turbo", provider="openai", tier=ModelTier.CHEAP,
        price_per_prompt_token=_per_1k(0.0005), price_per_completion_token=_per_1k(0.0015),
        max_context_tokens=16_385, max_output_tokens=4096,
        supports_json_mode=True, priority=2,
    ),
    ModelConfig(
        id="gpt-4o", name="GPT-4o", provider="openai", tier=ModelTier.STANDARD,
        price_per_prompt_token=_per_1k(0.0025), price_per_completion_token=_per_1k(0.01),
        max_context_tokens=128_000, max_output_tokens=16_384,
        supports_vision=True, supports_json_mode=True, priority=1,
    ),
    ModelConfig(
        id="gpt-4-turbo", name="GPT-4 Turbo", provider="openai", tier=ModelTier.STANDARD,
        price_per_prompt_token=_per_1k(0.01), price_per_completion_token=_per_1k(0.03),
        max_context_tokens=128_000, max_output_tokens=4096,
        supports_vision=True, supports_json_mode=True, priority=2,
    ),
    ModelConfig(
        id="o1", name="O1", provider="openai", tier=ModelTier.PREMIUM,
        price_per_prompt_token=_per_1k(0.015), price_per_completion_token=_per_1k(0.06),
        max_context_tokens=200_000, max_output_tokens=100_000,
        supports_vision=True, supports_json_mode=True, priority=1,
    ),
    ModelConfig(
        id="o1-mini", name="O1 Mini", provider="openai", tier=ModelTier.PREMIUM,
        price_per_prompt_token=_per_1k(0.003), price_per_completion_token=_per_1k(0.012),
        max_context_tokens=128_000, max_output_tokens=65_536,
        supports_vision=True, supports_json_mode=True, priority=2,
    ),
    # Anthropic
    ModelConfig(
        id="claude-3-haiku-20240307", name="Claude 3 Haiku", provider="anthropic",
        tier=ModelTier.CHEAP,
        price_per_prompt_token=_per_1k(0.00025), price_per_completion_token=_per_1k(0.00125),
        max_context_tokens=200_000, max_output_tokens=4096,
        supports_vision=True, priority=1,
    ),
    ModelConfig(
        id="claude-sonnet-4-20250514", name="Claude Sonnet 4", provider="anthropic",
        tier=ModelTier.STANDARD,
        price_per_prompt_token=_per_1k(0.003), price_per_completion_token=_per_1k(0.015),
        max_context_tokens=200_000, max_output_tokens=16_384,
        supports_vision=True, priority=0,
    ),
    ModelConfig(
        id="claude-3-5-sonnet-20241022", name="Claude 3.5 Sonnet", provider="anthropic",
        tier=ModelTier.STANDARD,
        price_per_prompt_token=_per_1k(0.003), price_per_completion_token=_per_1k(0.015),
        max_context_tokens=200_000, max_output_tokens=8192,
        supports_vision=True, priority=1,
    ),
    ModelConfig(
        id="claude-opus-4-20250514", name="Claude Opus 4", provider="anthropic",
        tier=ModelTier.PREMIUM,
        price_per_prompt_token=_per_1k(0.015), price_per_completion_token=_per_1k(0.075),
        max_context_tokens=200_000, max_output_tokens=32_768,
        supports_vision=True, priority=0,
    ),
    ModelConfig(
        id="claude-3-opus-20240229", name="Claude 3 Opus", provider="anthropic",
        tier=ModelTier.PREMIUM,
        price_per_prompt_token=_per_1k(0.015), price_per_completion_token=_per_1k(0.075),
        max_context_tokens=200_000, max_output_tokens=4096,
        supports_vision=True, priority=1,
    ),
    # OpenRouter
    ModelConfig(
        id="meta-llama/llama-3.1-8b-instruct", name="Llama 3.1 8B", provider="openrouter",
        tier=ModelTier.CHEAP,
        price_per_prompt_token=_per_1k(0.00006), price_per_completion_token=_per_1k(0.00006),
        max_context_tokens=131_072, max_output_tokens=4096,
        supports_tools=False, priority=2,
    ),
    ModelConfig(
        id="openrouter/auto", name="OpenRouter Auto", provider="openrouter",
        tier=ModelTier.CHEAP,
        price_per_prompt_token=_per_1k(0.0001), price_per_completion_token=_per_1k(0.0004),
        max_context_tokens=128_000, max_output_tokens=4096,
        priority=3,
    ),
    ModelConfig(
        id="mistralai/mistral-7b-instruct", name="Mistral 7B", provider="openrouter",
        tier=ModelTier.CHEAP,
        price_per_prompt_token=_per_1k(0.00006), price_per_completion_token=_per_1k(0.00006),
        max_context_tokens=32_768, max_output_tokens=4096,
        supports_tools=False, priority=3,
    ),
    ModelConfig(
        id="meta-llama/llama-3.1-70b-instruct", name="Llama 3.1 70B", provider="openrouter",
        tier=ModelTier.STANDARD,
        price_per_prompt_token=_per_1k(0.00035), price_per_completion_token=_per_1k(0.0004),
        max_context_tokens=131_072, max_output_tokens=4096,
        priority=3,
    ),
)


class ModelRegistry:
    """
    Read-only catalog of ModelConfig keyed by id.

    Construct once and inject; lookups never mutate state, so a single
    instance is safe to share between concurrent requests.
    """

    def __init__(self, models: Iterable[ModelConfig] = DEFAULT_MODELS):
        by_id: dict[str, ModelConfig] = {}
        for model in models:
            if model.id in by_id:
                raise ValueError(f"Duplicate model id in registry: {model.id}")
            by_id[model.id] = model

        self._models: Mapping[str, ModelConfig] = MappingProxyType(by_id)

        by_tier: dict[ModelTier, tuple[ModelConfig, ...]] = {}
        for tier in ModelTier:
            tier_models = [m for m in by_id.values() if m.tier == tier]
            by_tier[tier] = tuple(sorted(tier_models, key=lambda m: (m.priority, m.id)))
        self._by_tier: Mapping[ModelTier, tuple[ModelConfig, ...]] = MappingProxyType(by_tier)

    @classmethod
    def from_dicts(cls, items: Iterable[Mapping[str, Any]]) -> "ModelRegistry":
        """Build a registry from JSON-like dicts (e.g. a pricing table)."""
        return cls(ModelConfig(**dict(item)) for item in items)

    def __contains__(self, model_id: object) -> bool:
        return model_id in self._models

    def __len__(self) -> int:
        return len(self._models)

    def __iter__(self) -> Iterator[ModelConfig]:
        return iter(self._models.values())

    def get_model(self, model_id: str) -> ModelConfig | None:
        return self._models.get(model_id)

    def all_model_ids(self) -> list[str]:
        return list(self._models.keys())

    def get_models_by_tier(self, tier: ModelTier | str) -> list[ModelConfig]:
        """Models in a tier, in routing priority order."""
        return list(self._by_tier.get(ModelTier(tier), ()))

    def get_models_by_provider(self, provider: str) -> list[ModelConfig]:
        return [m for m in self._models.values() if m.provider == provider]

    def get_best_model_for_tier(
        self,
        tier: ModelTier | str,
        available_providers: Iterable[str],
    ) -> ModelConfig | None:
        providers = set(available_providers)
        for model in self.get_models_by_tier(tier):
            if model.provider in providers:
                return model
        return None

    def get_fallback_models(
        self,
        model: ModelConfig,
        available_providers: Iterable[str],
    ) -> list[ModelConfig]:
        """
        Fallback chain for a model.

        Same-tier models first (priority order), then every cheaper tier
        as a last resort.
        """
        providers = set(available_providers)
        fallbacks = [
            m for m in self.get_models_by_tier(model.tier)
            if m.id != model.id and m.provider in providers
        ]

        tier_index = TIER_ORDER.index(model.tier)
        for lower in reversed(TIER_ORDER[:tier_index]):
            fallbacks.extend(
                m for m in self.get_models_by_tier(lower) if m.provider in providers
            )
        return fallbacks

    def find_cheapest_model(
        self,
        available_providers: Iterable[str],
        requires_tools: bool = False,
        requires_json_mode: bool = False,
        requires_vision: bool = False,
        min_context_tokens: int = 0,
        min_output_tokens: int = 0,
    ) -> ModelConfig | None:
        """Cheapest model (by mean per-token price) meeting the requirements."""
        providers = set(available_providers)
        eligible = [
            m for m in self._models.values()
            if m.provider in providers
            and (not requires_tools or m.supports_tools)
            and (not requires_json_mode or m.supports_json_mode)
            and (not requires_vision or m.supports_vision)
            and m.max_context_tokens >= min_context_tokens
            and m.max_output_tokens >= min_output_tokens
        ]
        if not eligible:
            return None
        return min(
            eligible,
            key=lambda m: (
                (m.price_per_prompt_token + m.price_per_completion_token) / 2,
                m.priority,
                m.id,
            ),
        )

    def estimate_cost(
        self,
        model: ModelConfig | str,
        prompt_tokens: int,
        completion_tokens: int,
    ) -> float:
        """
        Estimate cost for a model given by id or config.

        Raises:
            KeyError: If the model id is not registered.
        """
        if isinstance(model, str):
            config = self._models.get(model)
            if config is None:
                raise KeyError(f"Unknown model: {model}")
            model = config
        return estimate_cost(model, prompt_tokens, completion_tokens)
