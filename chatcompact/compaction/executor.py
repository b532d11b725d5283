"""Summarize older history into a state snapshot and rebuild the conversation."""

import re

from loguru import logger

from chatcompact.agent.tokens import estimate_messages_tokens, token_limit
from chatcompact.compaction.split import plan_split
from chatcompact.compaction.types import (
    AttemptContext,
    CompressionOptions,
    CompressionResult,
    CompressionStatus,
)
from chatcompact.config.schema import Config
from chatcompact.prompts.compaction import (
    SNAPSHOT_REQUEST,
    SUMMARY_ACKNOWLEDGEMENT,
    get_compression_prompt,
)
from chatcompact.providers.base import LLMProvider
from chatcompact.session.messages import Message
from chatcompact.telemetry.events import ChatCompressionEvent
from chatcompact.telemetry.logger import TelemetryLogger

_DISCARDED_RE = re.compile(
    r"<discarded_context_summary>\s*([\s\S]*?)\s*</discarded_context_summary>"
)


def extract_discarded_context_summary(text: str) -> str | None:
    """Return the <discarded_context_summary> content, or None if absent or empty."""
    match = _DISCARDED_RE.search(text or "")
    if not match:
        return None
    return match.group(1).strip() or None


class CompactionExecutor:
    """Runs one compaction: split, summarize, rebuild, validate.

    Never mutates the history it is given. The caller decides what to do
    with the returned history (``None`` unless the status is COMPRESSED).
    """

    def __init__(
        self,
        provider: LLMProvider,
        config: Config,
        telemetry: TelemetryLogger | None = None,
    ):
        self.provider = provider
        self.config = config
        self.telemetry = telemetry

    async def compress(
        self,
        history: list[Message],
        *,
        model: str,
        prompt_id: str,
        force: bool = False,
        has_failed_attempt: bool = False,
        options: CompressionOptions | None = None,
        system_context: str = "",
        context: AttemptContext | None = None,
    ) -> tuple[list[Message] | None, CompressionResult]:
        options = options or CompressionOptions()
        context = context or AttemptContext()
        cfg = self.config.compression

        if not history or (has_failed_attempt and not force):
            return None, CompressionResult.noop()

        original_tokens = estimate_messages_tokens(history, system_context)

        if not force:
            limit = token_limit(model, self.config.agents.defaults.max_context_tokens)
            if original_tokens < cfg.threshold * limit:
                return None, CompressionResult.noop(original_tokens)

        preserve_threshold = options.preserve_threshold
        if preserve_threshold is None:
            preserve_threshold = cfg.preserve_threshold
        split = plan_split(
            history,
            options.preserve_strategy,
            preserve_threshold=preserve_threshold,
            min_messages_to_compress=cfg.min_messages_to_compress,
        )
        if not split.history_to_compress:
            logger.debug("Compaction skipped: nothing before the split point")
            return None, CompressionResult.noop(original_tokens)

        goal = options.user_goal
        preserved = len(split.history_to_keep)
        compressed = len(split.history_to_compress)
        logger.info(
            f"Compacting {compressed} messages, keeping {preserved} "
            f"(strategy={split.strategy}, goal={'yes' if goal else 'no'})"
        )

        contents = [m.to_llm_dict() for m in split.history_to_compress]
        contents.append({"role": "user", "content": SNAPSHOT_REQUEST})
        summary_model = self.config.get_summary_model(model)

        def failed(status: CompressionStatus, new_tokens: int, discarded: str | None = None):
            return None, CompressionResult(
                status=status,
                original_token_count=original_tokens,
                new_token_count=new_tokens,
                messages_preserved=preserved,
                messages_compressed=compressed,
                discarded_context_summary=discarded,
                goal_was_selected=bool(goal),
            )

        try:
            summary = await self.provider.generate(
                summary_model, get_compression_prompt(goal), contents, prompt_id
            )
        except Exception as e:
            logger.warning(f"Compaction failed (LLM error): {e}")
            self._emit(prompt_id, original_tokens, original_tokens, split.strategy,
                       preserved, compressed, bool(goal), context)
            return failed(CompressionStatus.COMPRESSION_FAILED_SUMMARIZATION_ERROR, original_tokens)

        if not summary or not summary.strip():
            logger.warning("Compaction failed: empty summary from LLM")
            self._emit(prompt_id, original_tokens, original_tokens, split.strategy,
                       preserved, compressed, bool(goal), context)
            return failed(CompressionStatus.COMPRESSION_FAILED_EMPTY_SUMMARY, original_tokens)

        discarded = extract_discarded_context_summary(summary)
        new_history = [
            Message.user(summary, type="compaction"),
            Message.assistant(SUMMARY_ACKNOWLEDGEMENT),
            *split.history_to_keep,
        ]
        new_tokens = estimate_messages_tokens(new_history, system_context)

        self._emit(prompt_id, original_tokens, new_tokens, split.strategy,
                   preserved, compressed, bool(goal), context)

        if new_tokens >= original_tokens:
            logger.warning(
                f"Compaction rejected: summary inflated tokens "
                f"({original_tokens} -> {new_tokens})"
            )
            return failed(
                CompressionStatus.COMPRESSION_FAILED_INFLATED_TOKEN_COUNT, new_tokens, discarded
            )

        logger.info(
            f"Compaction complete: {original_tokens} -> {new_tokens} tokens "
            f"({compressed} messages summarized, {len(summary)} chars)"
        )
        return new_history, CompressionResult(
            status=CompressionStatus.COMPRESSED,
            original_token_count=original_tokens,
            new_token_count=new_tokens,
            messages_preserved=preserved,
            messages_compressed=compressed,
            discarded_context_summary=discarded,
            goal_was_selected=bool(goal),
        )

    def _emit(
        self,
        prompt_id: str,
        tokens_before: int,
        tokens_after: int,
        strategy: str,
        preserved: int,
        compressed: int,
        goal_was_selected: bool,
        context: AttemptContext,
    ) -> None:
        if not self.telemetry:
            return
        self.telemetry.log_chat_compression(ChatCompressionEvent(
            tokens_before=tokens_before,
            tokens_after=tokens_after,
            preserve_strategy=str(strategy),
            messages_preserved=preserved,
            messages_compressed=compressed,
            goal_was_selected=goal_was_selected,
            trigger_reason=context.trigger_reason,
            was_safety_valve=context.was_safety_valve,
            user_selected_disable=context.user_selected_disable,
            user_selected_less_frequent=context.user_selected_less_frequent,
            frequency_multiplier_applied=context.frequency_multiplier_applied,
            new_token_threshold=context.new_token_threshold,
            new_message_threshold=context.new_message_threshold,
            prompt_id=prompt_id,
        ))
