"""
Tier recommendation.

Maps a ClassificationResult onto a cost/quality tier through a fixed
decision table. Downstream billing and cost controls rely on this table,
so it is spelled out rather than derived from scores.
"""

from dataclasses import dataclass
from typing import Any

from promptrouter.models import ModelTier
from promptrouter.routing.classifier import (
    ClassificationResult,
    Complexity,
    MessageInput,
    TaskClassifier,
    classify_task,
)


# (complexity, requires_tools or requires_json_mode) -> tier
TIER_TABLE: dict[tuple[Complexity, bool], ModelTier] = {
    (Complexity.HIGH, False): ModelTier.PREMIUM,
    (Complexity.HIGH, True): ModelTier.PREMIUM,
    (Complexity.MEDIUM, False): ModelTier.STANDARD,
    (Complexity.MEDIUM, True): ModelTier.STANDARD,
    (Complexity.LOW, False): ModelTier.CHEAP,
    (Complexity.LOW, True): ModelTier.STANDARD,
}


def recommend_tier(result: ClassificationResult) -> ModelTier:
    """Look up the tier for a classification. Total over all results."""
    needs_capability = result.requires_tools or result.requires_json_mode
    return TIER_TABLE[(result.estimated_complexity, needs_capability)]


@dataclass(frozen=True)
class TieredClassification:
    """A classification together with its recommended tier."""
    result: ClassificationResult
    tier: ModelTier

    @property
    def task_type(self):
        return self.result.task_type

    @property
    def estimated_complexity(self):
        return self.result.estimated_complexity

    @property
    def requires_tools(self) -> bool:
        return self.result.requires_tools

    @property
    def requires_json_mode(self) -> bool:
        return self.result.requires_json_mode

    def to_dict(self) -> dict[str, Any]:
        data = self.result.to_dict()
        data["tier"] = self.tier.value
        return data


def classify_with_tier(
    input: MessageInput,
    classifier: TaskClassifier | None = None,
) -> TieredClassification:
    """Classify the input and attach the recommended tier, without calling any model."""
    result = classify_task(input, classifier)
    return TieredClassification(result=result, tier=recommend_tier(result))
