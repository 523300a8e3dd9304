"""
Task classifier for tiered model routing.

Infers the nature of a prompt from deterministic keyword/pattern matching:
1. Task type (highest matcher score, fixed tie-break precedence)
2. Complexity (length, complexity keywords, embedded code size)
3. Capability needs (tool calling, JSON output)

No I/O and no hidden state: the same input always classifies the same way.
"""

import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Mapping, Sequence

from promptrouter.providers.base import ChatMessage, MessageRole


class TaskType(str, Enum):
    """Types of tasks for routing."""
    CLASSIFICATION = "classification"
    GENERATION = "generation"
    REASONING = "reasoning"
    CODING = "coding"
    CONVERSATION = "conversation"
    SUMMARIZATION = "summarization"
    EXTRACTION = "extraction"


class Complexity(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


# Tie-break order, most specific matcher group first.
TASK_PRECEDENCE: tuple[TaskType, ...] = (
    TaskType.CODING,
    TaskType.EXTRACTION,
    TaskType.SUMMARIZATION,
    TaskType.CLASSIFICATION,
    TaskType.REASONING,
    TaskType.GENERATION,
    TaskType.CONVERSATION,
)

# Each matching pattern adds one point to its task type.
TASK_PATTERNS: dict[TaskType, list[str]] = {
    TaskType.CLASSIFICATION: [
        r"\b(classify|categori[sz]e|label|tag|identify type|what type|which category)\b",
        r"\b(is this|does this|true or false)\b",
        r"\b(spam|sentiment|positive|negative)\b",
    ],
    TaskType.GENERATION: [
        r"\b(write|create|generate|compose|draft|produce)\b",
        r"\b(blog post|article|story|email|message|content)\b",
        r"\b(marketing|copy|description)\b",
    ],
    TaskType.REASONING: [
        r"\b(explain|analy[sz]e|why|how does|reason|logic|think through)\b",
        r"\b(compare|contrast|evaluate|assess|critique)\b",
        r"\b(strategy|plan|approach|solution)\b",
        r"\b(pros and cons|advantages|disadvantages)\b",
    ],
    TaskType.CODING: [
        r"\b(code|program|function|class|implement|debug|fix bug)\b",
        r"\b(javascript|typescript|python|java|rust|golang|sql)\b",
        r"\b(api|endpoint|database|query|algorithm)\b",
        r"\b(refactor|optimi[sz]e|review code|code review)\b",
        r"```[\s\S]*?```",
    ],
    TaskType.CONVERSATION: [
        r"\b(hi|hello|hey|thanks|thank you|please)\b",
        r"\b(help me|can you|could you|would you)\b",
        r"\b(what is|who is|where is|when is)\b",
    ],
    TaskType.SUMMARIZATION: [
        r"\b(summari[sz]e|summary|tl;?dr|condense|shorten)\b",
        r"\b(key points|main points|highlights|overview)\b",
    ],
    TaskType.EXTRACTION: [
        r"\b(extract|identify|locate|pull out)\b",
        r"\b(entities|names|dates|numbers|data)\b",
        r"\b(parse|structured|json)\b",
    ],
}

COMPLEXITY_PATTERNS: dict[Complexity, list[str]] = {
    Complexity.HIGH: [
        r"\b(complex|advanced|sophisticated|comprehensive|in-depth)\b",
        r"\b(multi-step|detailed|thorough|extensive)\b",
        r"\b(architecture|system design|optimization)\b",
        r"\b(research|analysis|strategy)\b",
    ],
    Complexity.LOW: [
        r"\b(yes or no|yes/no|true or false|true/false|one word)\b",
        r"\b(simple|basic|quick|brief|short)\b",
        r"\b(just|only|simply)\b",
    ],
}

TOOL_PATTERNS: list[str] = [
    r"\b(search|browse|fetch|look up|api call|web request)\b",
    r"\b(execute|run|perform action)\b",
    r"\b(file|document|database|storage)\b",
    r"\b(calculate|compute|math)\b",
]

JSON_PATTERNS: list[str] = [
    r"\b(json|structured|schema|format as)\b",
    r"\b(return|output|respond with)\b.*\b(object|array|json)\b",
    r"\{\s*\"[^\"]+\"\s*:",  # {"key": ...
    r"\[\s*\{\s*\"[^\"]+\"\s*:",  # [{"key": ...
]

CODE_BLOCK_PATTERN = re.compile(r"```[^\n]*\n(.*?)```", re.DOTALL)

# Word-count and code-size thresholds
SHORT_INPUT_WORDS = 50
LONG_INPUT_WORDS = 500
LARGE_CODE_BLOCK_LINES = 30


def _compile(patterns: list[str]) -> list[re.Pattern]:
    return [re.compile(p, re.IGNORECASE) for p in patterns]


_TASK_MATCHERS = {task: _compile(p) for task, p in TASK_PATTERNS.items()}
_COMPLEXITY_MATCHERS = {level: _compile(p) for level, p in COMPLEXITY_PATTERNS.items()}
_TOOL_MATCHERS = _compile(TOOL_PATTERNS)
_JSON_MATCHERS = _compile(JSON_PATTERNS)


@dataclass(frozen=True)
class ClassificationResult:
    """Result of task classification."""
    task_type: TaskType
    estimated_complexity: Complexity
    requires_tools: bool = False
    requires_json_mode: bool = False
    scores: Mapping[str, int] = field(default_factory=dict, compare=False)

    def to_dict(self) -> dict[str, Any]:
        return {
            "task_type": self.task_type.value,
            "estimated_complexity": self.estimated_complexity.value,
            "requires_tools": self.requires_tools,
            "requires_json_mode": self.requires_json_mode,
        }


MessageInput = str | Sequence[ChatMessage | Mapping[str, Any]] | None

_ROLES = frozenset(role.value for role in MessageRole)


def _scoring_messages(input: Sequence[Any]) -> list[ChatMessage]:
    """Decode what can be scored; malformed items contribute nothing."""
    messages = []
    for item in input:
        if isinstance(item, ChatMessage):
            messages.append(item)
            continue
        if not isinstance(item, Mapping):
            continue
        role = item.get("role")
        if not isinstance(role, str) or role not in _ROLES:
            continue
        content = item.get("content")
        messages.append(ChatMessage(role=role, content=content if isinstance(content, str) else ""))
    return messages


def extract_text(input: MessageInput) -> str:
    """
    Build the searchable text for a prompt or conversation.

    System messages come first, then every user message in order.
    Assistant and tool messages do not take part in scoring, and neither
    do items with a missing or unknown role.
    """
    if input is None:
        return ""
    if isinstance(input, str):
        return input

    messages = _scoring_messages(input)
    system = [m.content for m in messages if m.role == MessageRole.SYSTEM]
    user = [m.content for m in messages if m.role == MessageRole.USER]
    return "\n".join(system + user)


def _largest_code_block_lines(text: str) -> int:
    blocks = CODE_BLOCK_PATTERN.findall(text)
    if not blocks:
        return 0
    return max(len(block.strip("\n").splitlines()) for block in blocks)


@dataclass
class TaskClassifier:
    """
    Rule-based task classifier.

    Pure and deterministic. `extra_patterns` lets a deployment extend the
    per-type matcher battery; extra patterns score exactly like built-ins.
    """

    extra_patterns: dict[TaskType, list[str]] = field(default_factory=dict)

    def __post_init__(self) -> None:
        self._task_matchers: dict[TaskType, list[re.Pattern]] = {
            task: list(matchers) for task, matchers in _TASK_MATCHERS.items()
        }
        for task, patterns in self.extra_patterns.items():
            self._task_matchers[TaskType(task)].extend(_compile(patterns))

    def classify(self, input: MessageInput) -> ClassificationResult:
        """
        Classify a prompt or an ordered message sequence.

        Args:
            input: Plain prompt text or chat messages.

        Returns:
            ClassificationResult; empty input yields conversation/low.
        """
        text = extract_text(input)
        scores = self.score(text)

        return ClassificationResult(
            task_type=self.detect_task_type(scores),
            estimated_complexity=self.estimate_complexity(text),
            requires_tools=self.detect_tool_requirement(text),
            requires_json_mode=self.detect_json_requirement(text),
            scores={task.value: score for task, score in scores.items()},
        )

    def score(self, text: str) -> dict[TaskType, int]:
        """One point per matching pattern, per task type."""
        return {
            task: sum(1 for pattern in matchers if pattern.search(text))
            for task, matchers in self._task_matchers.items()
        }

    @staticmethod
    def detect_task_type(scores: Mapping[TaskType, int]) -> TaskType:
        best = TaskType.CONVERSATION
        best_score = 0
        # Strict ">" while walking precedence order keeps the earlier type on ties.
        for task in TASK_PRECEDENCE:
            if scores.get(task, 0) > best_score:
                best = task
                best_score = scores[task]
        return best

    @staticmethod
    def estimate_complexity(text: str) -> Complexity:
        word_count = len(text.split())

        if any(p.search(text) for p in _COMPLEXITY_MATCHERS[Complexity.HIGH]):
            return Complexity.HIGH
        if word_count > LONG_INPUT_WORDS:
            return Complexity.HIGH
        if _largest_code_block_lines(text) > LARGE_CODE_BLOCK_LINES:
            return Complexity.HIGH

        if any(p.search(text) for p in _COMPLEXITY_MATCHERS[Complexity.LOW]):
            return Complexity.LOW
        if word_count < SHORT_INPUT_WORDS:
            return Complexity.LOW

        return Complexity.MEDIUM

    @staticmethod
    def detect_tool_requirement(text: str) -> bool:
        return any(p.search(text) for p in _TOOL_MATCHERS)

    @staticmethod
    def detect_json_requirement(text: str) -> bool:
        return any(p.search(text) for p in _JSON_MATCHERS)


_default_classifier = TaskClassifier()


def classify_task(
    input: MessageInput,
    classifier: TaskClassifier | None = None,
) -> ClassificationResult:
    """
    Convenience function to classify a task.

    Args:
        input: The prompt or messages.
        classifier: Optional classifier instance.

    Returns:
        ClassificationResult.
    """
    return (classifier or _default_classifier).classify(input)
