"""Decides when accumulated history must be compacted."""

import time
from dataclasses import dataclass
from enum import StrEnum

from loguru import logger

from chatcompact.compaction.guard import GuardState
from chatcompact.config.schema import CompressionConfig


class TriggerReason(StrEnum):
    COMPRESSION_IN_PROGRESS = "compression_in_progress"
    UTILIZATION_THRESHOLD = "utilization_threshold"
    BELOW_TOKEN_THRESHOLD = "below_token_threshold"
    MESSAGE_GUARD_FAILED = "message_guard_failed"
    TIME_GUARD_FAILED = "time_guard_failed"
    ABSOLUTE_TOKENS = "absolute_tokens"


@dataclass(frozen=True)
class TriggerDecision:
    should_compress: bool
    is_safety_valve: bool
    reason: TriggerReason


def evaluate_trigger(
    current_tokens: int,
    max_tokens: int,
    guard: GuardState,
    config: CompressionConfig,
    now: float | None = None,
) -> TriggerDecision:
    """Evaluate the hybrid trigger. First matching rule wins.

    The utilization safety valve bypasses the message and time guards.
    Pure with respect to its inputs; safe to call any number of times.
    """
    if guard.in_progress:
        return TriggerDecision(False, False, TriggerReason.COMPRESSION_IN_PROGRESS)

    logger.debug(
        f"[Compress] tokens={current_tokens}/{config.trigger_tokens}, "
        f"msgs={guard.messages_since_last_compress}/{config.min_messages_since_last_compress}"
    )

    utilization = current_tokens / max_tokens if max_tokens > 0 else 1.0
    if utilization >= config.trigger_utilization:
        return TriggerDecision(True, True, TriggerReason.UTILIZATION_THRESHOLD)

    if current_tokens < config.trigger_tokens:
        return TriggerDecision(False, False, TriggerReason.BELOW_TOKEN_THRESHOLD)

    if guard.messages_since_last_compress < config.min_messages_since_last_compress:
        return TriggerDecision(False, False, TriggerReason.MESSAGE_GUARD_FAILED)

    if guard.last_compression_time > 0:
        now = time.time() if now is None else now
        elapsed = now - guard.last_compression_time
        if elapsed < config.min_time_between_prompts:
            return TriggerDecision(False, False, TriggerReason.TIME_GUARD_FAILED)

    return TriggerDecision(True, False, TriggerReason.ABSOLUTE_TOKENS)
