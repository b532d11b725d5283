"""Extract the user's current goals from recent conversation history."""

import re
from dataclasses import dataclass, field
from enum import StrEnum

from loguru import logger

from chatcompact.compaction.racing import TIMED_OUT, race_with_timeout
from chatcompact.prompts.compaction import GOAL_EXTRACTION_PROMPT, GOAL_EXTRACTION_REQUEST
from chatcompact.providers.base import LLMProvider
from chatcompact.session.messages import Message

DEFAULT_MAX_MESSAGES = 20
DEFAULT_TIMEOUT_SECONDS = 10.0
HIGH_CONFIDENCE_MIN_LENGTH = 30
MAX_GOALS = 3

_GOAL_RE = re.compile(r"<goal>\s*(.*?)\s*</goal>", re.DOTALL)


class Confidence(StrEnum):
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"
    NONE = "none"


class ExtractionError(StrEnum):
    TIMEOUT = "timeout"
    EXTRACTION_FAILED = "extraction_failed"


@dataclass
class GoalExtractionResult:
    """Goals found in the recent history.

    ``error`` is set when the extraction did not complete; ``goals`` is
    then always empty.
    """

    goals: list[str] = field(default_factory=list)
    confidence: Confidence = Confidence.NONE
    error: ExtractionError | None = None

    @classmethod
    def failed(cls, error: ExtractionError) -> "GoalExtractionResult":
        return cls(goals=[], confidence=Confidence.NONE, error=error)


def parse_goals(text: str) -> list[str]:
    """Return the trimmed, non-empty contents of the first MAX_GOALS <goal> tags."""
    goals = [g.strip() for g in _GOAL_RE.findall(text or "") if g.strip()]
    return goals[:MAX_GOALS]


def determine_confidence(goals: list[str]) -> Confidence:
    if not goals:
        return Confidence.NONE
    if len(goals) == 1 and len(goals[0]) > HIGH_CONFIDENCE_MIN_LENGTH:
        return Confidence.HIGH
    if len(goals) >= 2:
        return Confidence.MEDIUM
    return Confidence.LOW


class GoalExtractor:
    """Asks the model what the user is working on right now.

    Never raises: timeouts and provider failures degrade to an empty
    result carrying an error tag.
    """

    def __init__(self, provider: LLMProvider):
        self.provider = provider

    async def extract_goals(
        self,
        history: list[Message],
        model: str,
        prompt_id: str,
        max_messages: int = DEFAULT_MAX_MESSAGES,
        timeout: float | None = DEFAULT_TIMEOUT_SECONDS,
    ) -> GoalExtractionResult:
        recent = history[-max_messages:] if max_messages > 0 else list(history)
        contents = [m.to_llm_dict() for m in recent]
        contents.append({"role": "user", "content": GOAL_EXTRACTION_REQUEST})

        try:
            text = await race_with_timeout(
                self.provider.generate(model, GOAL_EXTRACTION_PROMPT, contents, prompt_id),
                timeout,
            )
        except Exception as e:
            logger.warning(f"Goal extraction failed: {e}")
            return GoalExtractionResult.failed(ExtractionError.EXTRACTION_FAILED)

        if text is TIMED_OUT:
            logger.warning(f"Goal extraction timed out after {timeout}s")
            return GoalExtractionResult.failed(ExtractionError.TIMEOUT)

        goals = parse_goals(text)
        confidence = determine_confidence(goals)
        logger.debug(f"Extracted {len(goals)} goal(s), confidence={confidence}")
        return GoalExtractionResult(goals=goals, confidence=confidence)
