"""
Tests for the model registry and cost estimator.
"""

import pytest

from promptrouter.models import (
    DEFAULT_MODELS,
    ModelConfig,
    ModelRegistry,
    ModelTier,
    estimate_cost,
)

from conftest import make_model


class TestEstimateCost:

    def test_formula(self):
        model = make_model("m", "p", ModelTier.CHEAP,
                           price_per_prompt_token=0.001, price_per_completion_token=0.002)
        assert estimate_cost(model, 1000, 500) == pytest.approx(2.0)

    def test_monotonic_in_both_arguments(self):
        model = DEFAULT_MODELS[0]
        counts = [0, 1, 10, 100, 10_000]
        for prompt in counts:
            costs = [estimate_cost(model, prompt, c) for c in counts]
            assert costs == sorted(costs)
        for completion in counts:
            costs = [estimate_cost(model, p, completion) for p in counts]
            assert costs == sorted(costs)

    def test_negative_counts_clamp_to_zero(self):
        model = DEFAULT_MODELS[0]
        assert estimate_cost(model, -50, -10) == 0

    def test_registry_accepts_id(self):
        registry = ModelRegistry()
        model = registry.get_model("gpt-4o-mini")
        assert registry.estimate_cost("gpt-4o-mini", 100, 100) == estimate_cost(model, 100, 100)

    def test_unknown_id_raises(self):
        with pytest.raises(KeyError):
            ModelRegistry().estimate_cost("no-such-model", 1, 1)


class TestRegistry:

    def test_default_catalog_loads(self):
        registry = ModelRegistry()
        assert len(registry) == len(DEFAULT_MODELS)
        assert "claude-3-haiku-20240307" in registry

    def test_duplicate_ids_rejected(self):
        model = make_model("dup", "p", ModelTier.CHEAP)
        with pytest.raises(ValueError):
            ModelRegistry([model, model])

    def test_tier_order_is_priority_then_id(self, registry):
        assert [m.id for m in registry.get_models_by_tier(ModelTier.CHEAP)] == [
            "alpha-cheap", "beta-cheap",
        ]
        assert [m.id for m in registry.get_models_by_tier("premium")] == [
            "alpha-premium", "beta-premium",
        ]

    def test_best_model_skips_unavailable_providers(self, registry):
        assert registry.get_best_model_for_tier(ModelTier.STANDARD, ["beta"]).id == "beta-standard"
        assert registry.get_best_model_for_tier(ModelTier.STANDARD, []) is None

    def test_fallbacks_same_tier_then_cheaper(self, registry):
        premium = registry.get_model("alpha-premium")
        fallbacks = registry.get_fallback_models(premium, ["alpha", "beta"])
        assert [m.id for m in fallbacks] == [
            "beta-premium", "alpha-standard", "beta-standard", "alpha-cheap", "beta-cheap",
        ]

    def test_find_cheapest_respects_capabilities(self):
        registry = ModelRegistry()
        cheapest = registry.find_cheapest_model(["openrouter"])
        assert cheapest.id in ("meta-llama/llama-3.1-8b-instruct", "mistralai/mistral-7b-instruct")
        with_tools = registry.find_cheapest_model(["openrouter"], requires_tools=True)
        assert with_tools.supports_tools is True
        assert registry.find_cheapest_model(["anthropic"], requires_json_mode=True) is None

    def test_models_by_provider(self):
        registry = ModelRegistry()
        ids = {m.id for m in registry.get_models_by_provider("anthropic")}
        assert "claude-opus-4-20250514" in ids
        assert all(m.provider == "anthropic" for m in registry.get_models_by_provider("anthropic"))

    def test_from_dicts(self):
        registry = ModelRegistry.from_dicts([{
            "id": "local",
            "provider": "openai",
            "tier": "cheap",
            "max_output_tokens": 100,
            "price_per_prompt_token": 0,
            "price_per_completion_token": 0,
        }])
        model = registry.get_model("local")
        assert isinstance(model, ModelConfig)
        assert model.tier == ModelTier.CHEAP

    def test_models_are_frozen(self):
        model = DEFAULT_MODELS[0]
        with pytest.raises(AttributeError):
            model.priority = 99
