"""Per-session compaction engine: the public entry point."""

import time
from contextlib import contextmanager
from typing import Callable

from loguru import logger

from chatcompact.agent.tokens import estimate_messages_tokens, token_limit
from chatcompact.compaction.executor import CompactionExecutor
from chatcompact.compaction.goals import ExtractionError, GoalExtractor
from chatcompact.compaction.guard import GuardState
from chatcompact.compaction.selection import (
    AUTO,
    ChoicePrompt,
    SelectionCoordinator,
    SelectionOutcome,
)
from chatcompact.compaction.trigger import TriggerDecision, evaluate_trigger
from chatcompact.compaction.types import (
    AttemptContext,
    CompressionOptions,
    CompressionResult,
    CompressionStatus,
)
from chatcompact.config.loader import ConfigStore
from chatcompact.config.schema import Config
from chatcompact.providers.base import LLMProvider
from chatcompact.session.manager import Session
from chatcompact.telemetry.logger import TelemetryLogger


class CompactionEngine:
    """
    Compacts one session's history when it grows too large.

    Owns the session's GuardState. At most one attempt runs at a time;
    a concurrent attempt returns NOOP immediately instead of waiting.
    """

    def __init__(
        self,
        session: Session,
        provider: LLMProvider,
        config_store: ConfigStore,
        model: str | None = None,
        telemetry: TelemetryLogger | None = None,
        on_feedback: Callable[[str], None] | None = None,
        clock: Callable[[], float] = time.time,
        goal_extractor: GoalExtractor | None = None,
    ):
        self.session = session
        self.provider = provider
        self.config_store = config_store
        self._model = model
        self.telemetry = telemetry
        self.clock = clock
        self.guard = GuardState()
        self.selection = SelectionCoordinator(config_store, on_feedback)
        self.goal_extractor = goal_extractor or GoalExtractor(provider)

    @property
    def config(self) -> Config:
        return self.config_store.config

    @property
    def model(self) -> str:
        return self._model or self.config.agents.defaults.model

    # ── state queries ───────────────────────────────────────────

    def record_user_message(self) -> None:
        """Count a top-level user turn toward the message guard."""
        self.guard.messages_since_last_compress += 1

    def current_token_count(self) -> int:
        return estimate_messages_tokens(self.session.get_history(), self.session.system_prompt)

    def max_tokens(self) -> int:
        return token_limit(self.model, self.config.agents.defaults.max_context_tokens)

    def evaluate(self) -> TriggerDecision:
        """Evaluate the trigger against the current history. No side effects."""
        return evaluate_trigger(
            self.current_token_count(),
            self.max_tokens(),
            self.guard,
            self.config.compression,
            now=self.clock(),
        )

    # ── entry points ────────────────────────────────────────────

    async def try_compress(
        self,
        prompt_id: str,
        force: bool = False,
        options: CompressionOptions | None = None,
    ) -> CompressionResult:
        """Run one compaction attempt with the given options."""
        if self.guard.in_progress:
            logger.debug("Compaction already in progress, skipping")
            return CompressionResult.noop()

        with self._attempt():
            return await self._compress(prompt_id, force, options, AttemptContext())

    async def maybe_compress(
        self,
        prompt_id: str,
        prompt: ChoicePrompt | None = None,
    ) -> CompressionResult:
        """Post-response check: compact if the trigger fires, asking for a goal first.

        Goals are extracted once, before the prompt; messages arriving while
        the user decides do not refresh them.
        """
        if self.guard.in_progress:
            logger.debug("Compaction already in progress, skipping")
            return CompressionResult.noop()

        decision = self.evaluate()
        if not decision.should_compress:
            logger.debug(f"Compaction not triggered: {decision.reason}")
            return CompressionResult.noop()

        logger.info(
            f"Compaction triggered ({decision.reason}"
            f"{', safety valve' if decision.is_safety_valve else ''})"
        )
        with self._attempt():
            cfg = self.config.compression
            outcome = await self._select(
                prompt_id,
                decision.is_safety_valve,
                prompt,
                timeout=cfg.prompt_timeout_seconds,
                apply_opt_outs=True,
            )
            if outcome.user_selected_less_frequent:
                self.guard.frequency_relaxations += 1

            context = AttemptContext(
                trigger_reason=str(decision.reason),
                was_safety_valve=decision.is_safety_valve,
                user_selected_disable=outcome.user_selected_disable,
                user_selected_less_frequent=outcome.user_selected_less_frequent,
                frequency_multiplier_applied=outcome.frequency_multiplier_applied,
                new_token_threshold=outcome.new_token_threshold,
                new_message_threshold=outcome.new_message_threshold,
            )
            return await self._compress(prompt_id, True, outcome.options, context)

    async def compress_now(
        self,
        prompt_id: str,
        prompt: ChoicePrompt | None = None,
    ) -> CompressionResult:
        """Manual compaction: forced, with an untimed goal prompt when possible.

        Opt-out answers compress with 'auto' and leave the configuration alone.
        """
        if self.guard.in_progress:
            logger.debug("Compaction already in progress, skipping")
            return CompressionResult.noop()

        with self._attempt():
            outcome = await self._select(
                prompt_id, False, prompt, timeout=None, apply_opt_outs=False
            )
            return await self._compress(prompt_id, True, outcome.options, AttemptContext())

    def reset(self) -> None:
        """Clear transient flags after an aborted attempt or on session teardown."""
        self.guard.in_progress = False
        self.guard.prompt_active = False

    def close(self) -> None:
        self.reset()

    # ── internals ───────────────────────────────────────────────

    @contextmanager
    def _attempt(self):
        self.guard.in_progress = True
        try:
            yield
        finally:
            self.guard.in_progress = False
            self.guard.prompt_active = False

    async def _select(
        self,
        prompt_id: str,
        is_safety_valve: bool,
        prompt: ChoicePrompt | None,
        timeout: float | None,
        apply_opt_outs: bool,
    ) -> SelectionOutcome:
        cfg = self.config.compression
        if not cfg.interactive:
            return self.selection.interpret_selection(AUTO)

        extraction = await self.goal_extractor.extract_goals(
            self.session.get_history(),
            self.model,
            prompt_id,
            max_messages=cfg.goal_extraction_max_messages,
            timeout=cfg.goal_extraction_timeout_seconds,
        )
        decision = self.selection.should_prompt_user(extraction, is_safety_valve)

        if not decision.should_prompt or prompt is None:
            reason = decision.reason
            if reason == "no_goals" and extraction.error == ExtractionError.EXTRACTION_FAILED:
                reason = "extraction_failed"
            logger.debug(f"Goal prompt skipped: {reason}")
            self.selection.emit_skip_feedback(reason)
            return self.selection.interpret_selection(AUTO)

        self.guard.prompt_active = True
        try:
            selection = await self.selection.resolve_selection(
                extraction.goals, is_safety_valve, prompt, timeout
            )
        except Exception as e:
            logger.warning(f"Goal prompt failed, using auto: {e}")
            selection = AUTO
        finally:
            self.guard.prompt_active = False

        return self.selection.interpret_selection(selection, apply_opt_outs=apply_opt_outs)

    async def _compress(
        self,
        prompt_id: str,
        force: bool,
        options: CompressionOptions | None,
        context: AttemptContext,
    ) -> CompressionResult:
        if force:
            self.guard.last_failure = False

        executor = CompactionExecutor(self.provider, self.config, self.telemetry)
        new_history, result = await executor.compress(
            self.session.get_history(),
            model=self.model,
            prompt_id=prompt_id,
            force=force,
            has_failed_attempt=self.guard.last_failure,
            options=options,
            system_context=self.session.system_prompt,
            context=context,
        )

        if result.status == CompressionStatus.COMPRESSED and new_history is not None:
            self.session.replace_history(new_history)
            self.guard.messages_since_last_compress = 0
            self.guard.last_compression_time = self.clock()
            self.guard.last_failure = False
        elif result.status.is_failure:
            self.guard.last_failure = not force

        return result
