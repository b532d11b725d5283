"""Choose the boundary between history to summarize and history to keep."""

from dataclasses import dataclass

from loguru import logger

from chatcompact.compaction.types import PreserveStrategy
from chatcompact.errors import SplitError
from chatcompact.session.messages import ASSISTANT, USER, Message

DEFAULT_PRESERVE_THRESHOLD = 0.3
DEFAULT_MIN_MESSAGES_TO_COMPRESS = 5


@dataclass
class SplitResult:
    """A split point plus the two halves of the history it produces."""

    split_index: int
    history_to_compress: list[Message]
    history_to_keep: list[Message]
    strategy: PreserveStrategy

    @classmethod
    def at(cls, messages: list[Message], index: int, strategy: PreserveStrategy) -> "SplitResult":
        return cls(index, messages[:index], messages[index:], strategy)


def _is_boundary(message: Message) -> bool:
    """A user turn that does not answer a pending tool call."""
    return message.role == USER and not message.has_tool_result


def find_percentage_split(
    messages: list[Message],
    preserve_threshold: float = DEFAULT_PRESERVE_THRESHOLD,
) -> int:
    """Return the index of the oldest message to keep.

    Roughly the last ``preserve_threshold`` of the history (by serialized
    length) is kept. May return ``len(messages)``, meaning everything can
    be compressed.

    Raises:
        SplitError: If preserve_threshold is not strictly between 0 and 1.
    """
    if not 0 < preserve_threshold < 1:
        raise SplitError(f"preserve_threshold must be between 0 and 1, got {preserve_threshold}")

    weights = [m.serialized_length() for m in messages]
    target = sum(weights) * (1 - preserve_threshold)

    last_split = 0  # Always valid: compress nothing
    cumulative = 0
    for i, message in enumerate(messages):
        if _is_boundary(message):
            if cumulative >= target:
                return i
            last_split = i
        cumulative += weights[i]

    # No boundary past the target. Everything may go only if the history
    # ends on a finished assistant turn.
    if messages and messages[-1].role == ASSISTANT and not messages[-1].has_tool_call:
        return len(messages)

    return last_split


def find_since_last_prompt_split(
    messages: list[Message],
    min_messages_to_compress: int = DEFAULT_MIN_MESSAGES_TO_COMPRESS,
) -> int | None:
    """Return the index of the last user message, or None if no split is worthwhile."""
    last_user = -1
    for i in range(len(messages) - 1, -1, -1):
        if messages[i].role == USER:
            last_user = i
            break

    if last_user <= 0:
        return None
    if last_user < min_messages_to_compress:
        return None
    return last_user


def plan_split(
    messages: list[Message],
    strategy: PreserveStrategy = PreserveStrategy.PERCENTAGE,
    preserve_threshold: float | None = None,
    min_messages_to_compress: int = DEFAULT_MIN_MESSAGES_TO_COMPRESS,
) -> SplitResult:
    """Split per strategy.

    since-last-prompt falls back to the percentage strategy (with the
    default preserve threshold) when it cannot find a split.
    """
    if strategy == PreserveStrategy.SINCE_LAST_PROMPT:
        index = find_since_last_prompt_split(messages, min_messages_to_compress)
        if index is not None:
            return SplitResult.at(messages, index, strategy)
        logger.debug("since-last-prompt split not possible, falling back to percentage")
        index = find_percentage_split(messages, DEFAULT_PRESERVE_THRESHOLD)
        return SplitResult.at(messages, index, PreserveStrategy.PERCENTAGE)

    threshold = DEFAULT_PRESERVE_THRESHOLD if preserve_threshold is None else preserve_threshold
    index = find_percentage_split(messages, threshold)
    return SplitResult.at(messages, index, PreserveStrategy.PERCENTAGE)
