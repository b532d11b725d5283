"""Shared types for compaction attempts."""

from dataclasses import dataclass
from enum import StrEnum


class CompressionStatus(StrEnum):
    """Outcome of a single compaction attempt."""

    COMPRESSED = "compressed"
    NOOP = "noop"
    COMPRESSION_FAILED_INFLATED_TOKEN_COUNT = "compression_failed_inflated_token_count"
    COMPRESSION_FAILED_EMPTY_SUMMARY = "compression_failed_empty_summary"
    COMPRESSION_FAILED_SUMMARIZATION_ERROR = "compression_failed_summarization_error"

    @property
    def is_failure(self) -> bool:
        return self.name.startswith("COMPRESSION_FAILED")


class PreserveStrategy(StrEnum):
    """How the boundary between compressed and kept history is chosen."""

    PERCENTAGE = "percentage"
    SINCE_LAST_PROMPT = "since-last-prompt"


@dataclass(frozen=True)
class CompressionOptions:
    """Options for one compaction, built from the user's selection."""

    user_goal: str | None = None
    preserve_strategy: PreserveStrategy = PreserveStrategy.PERCENTAGE
    preserve_threshold: float | None = None


@dataclass
class CompressionResult:
    """Terminal value of a compaction attempt.

    Attributes:
        status: What happened.
        original_token_count: Tokens before compaction.
        new_token_count: Tokens of the reconstructed history (equals the
            original count when nothing was attempted).
        messages_preserved: Messages kept verbatim.
        messages_compressed: Messages replaced by the state snapshot.
        discarded_context_summary: One-sentence note on what was dropped.
        goal_was_selected: Whether a user goal steered the summary.
    """

    status: CompressionStatus
    original_token_count: int = 0
    new_token_count: int = 0
    messages_preserved: int = 0
    messages_compressed: int = 0
    discarded_context_summary: str | None = None
    goal_was_selected: bool = False

    @classmethod
    def noop(cls, token_count: int = 0) -> "CompressionResult":
        return cls(
            status=CompressionStatus.NOOP,
            original_token_count=token_count,
            new_token_count=token_count,
        )


@dataclass
class AttemptContext:
    """Why an attempt runs and what the user chose, for telemetry."""

    trigger_reason: str = "manual"
    was_safety_valve: bool = False
    user_selected_disable: bool = False
    user_selected_less_frequent: bool = False
    frequency_multiplier_applied: float | None = None
    new_token_threshold: int | None = None
    new_message_threshold: int | None = None
