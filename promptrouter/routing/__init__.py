"""
Tiered model routing.

Routes requests to a cost/quality tier based on a rule-based classification:
- cheap: short, simple or binary-answer prompts
- standard: everyday work, or simple prompts needing tools/JSON
- premium: complex, long or code-heavy prompts
"""

from promptrouter.routing.classifier import (
    ClassificationResult,
    Complexity,
    TaskClassifier,
    TaskType,
    classify_task,
)
from promptrouter.routing.tiers import (
    TIER_TABLE,
    ModelTier,
    TieredClassification,
    classify_with_tier,
    recommend_tier,
)
from promptrouter.routing.router import (
    TieredRouter,
    RoutingDecision,
    create_default_router,
    create_router_from_config,
)

__all__ = [
    "ClassificationResult",
    "Complexity",
    "TaskClassifier",
    "TaskType",
    "classify_task",
    "TIER_TABLE",
    "ModelTier",
    "TieredClassification",
    "classify_with_tier",
    "recommend_tier",
    "TieredRouter",
    "RoutingDecision",
    "create_default_router",
    "create_router_from_config",
]
