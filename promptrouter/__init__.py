"""
promptrouter - rule-based tiered routing for LLM chat requests.
"""

from loguru import logger

from promptrouter.errors import (
    LLMError,
    LLMErrorCode,
    NoAvailableAdapterError,
    classify_error,
    is_retryable,
)
from promptrouter.models import DEFAULT_MODELS, ModelConfig, ModelRegistry, ModelTier, estimate_cost
from promptrouter.providers.base import (
    ChatMessage,
    LLMAdapter,
    LLMRequestOptions,
    LLMResponse,
    StreamEvent,
)
from promptrouter.routing import (
    ClassificationResult,
    TaskClassifier,
    TieredRouter,
    classify_task,
    classify_with_tier,
    create_router_from_config,
    recommend_tier,
)

__version__ = "0.1.0"

# Silent as a library; hosts opt in via configure_logging() or logger.enable().
logger.disable("promptrouter")

__all__ = [
    "LLMError",
    "LLMErrorCode",
    "NoAvailableAdapterError",
    "classify_error",
    "is_retryable",
    "DEFAULT_MODELS",
    "ModelConfig",
    "ModelRegistry",
    "ModelTier",
    "estimate_cost",
    "ChatMessage",
    "LLMAdapter",
    "LLMRequestOptions",
    "LLMResponse",
    "StreamEvent",
    "ClassificationResult",
    "TaskClassifier",
    "TieredRouter",
    "classify_task",
    "classify_with_tier",
    "create_router_from_config",
    "recommend_tier",
]
