"""Decide whether to ask the user for a goal, and act on their answer."""

import math
from dataclasses import dataclass
from typing import Callable, Protocol

from loguru import logger

from chatcompact.compaction.goals import ExtractionError, GoalExtractionResult
from chatcompact.compaction.racing import TIMED_OUT, race_with_timeout
from chatcompact.compaction.types import CompressionOptions, PreserveStrategy
from chatcompact.config.loader import ConfigStore
from chatcompact.errors import ConfigError

AUTO = "auto"
OTHER = "other"
DISABLE = "disable"
LESS_FREQUENT = "less_frequent"
OPT_OUTS = (DISABLE, LESS_FREQUENT)

SAFETY_VALVE_FEEDBACK = "Context limit reached - compressing automatically."
DISABLED_FEEDBACK = "Interactive compression disabled. Future compressions will be automatic."


class ChoicePrompt(Protocol):
    """UI collaborator that asks the user what they are working on."""

    async def present_choice(self, goals: list[str], is_safety_valve: bool) -> str | None:
        """Return a goal, 'auto', 'other', 'disable', 'less_frequent' or None."""
        ...

    async def request_custom_goal(self) -> str | None:
        """Free-text follow-up after 'other'. None means cancelled."""
        ...


@dataclass(frozen=True)
class PromptDecision:
    should_prompt: bool
    reason: str
    fallback_to_basic: bool = False


@dataclass
class SelectionOutcome:
    """Compression options for this attempt plus what the user opted out of."""

    options: CompressionOptions
    goal_was_selected: bool = False
    user_selected_disable: bool = False
    user_selected_less_frequent: bool = False
    frequency_multiplier_applied: float | None = None
    new_token_threshold: int | None = None
    new_message_threshold: int | None = None


def _round_half_up(value: float) -> int:
    return math.floor(value + 0.5)


def _format_number(value: float) -> str:
    """Render 40.0 as '40' and 37.5 as '37.5'."""
    value = float(value)
    return str(int(value)) if value.is_integer() else repr(value)


def options_for_goal(goal: str | None) -> CompressionOptions:
    """Goal-focused since-last-prompt options, or plain percentage ones."""
    if goal:
        return CompressionOptions(
            user_goal=goal,
            preserve_strategy=PreserveStrategy.SINCE_LAST_PROMPT,
        )
    return CompressionOptions(preserve_strategy=PreserveStrategy.PERCENTAGE)


class SelectionCoordinator:
    """Owns the goal prompt decision and the user's opt-outs.

    Opt-outs are written to the config store synchronously, before the
    compaction they were chosen in runs, so only later trigger
    evaluations see them.
    """

    def __init__(
        self,
        config_store: ConfigStore,
        on_feedback: Callable[[str], None] | None = None,
    ):
        self.config_store = config_store
        self.on_feedback = on_feedback

    def should_prompt_user(
        self,
        extraction: GoalExtractionResult,
        is_safety_valve: bool,
    ) -> PromptDecision:
        if is_safety_valve:
            return PromptDecision(False, "safety_valve", fallback_to_basic=True)
        if extraction.error == ExtractionError.TIMEOUT:
            return PromptDecision(False, "extraction_timeout", fallback_to_basic=True)
        if not extraction.goals:
            return PromptDecision(False, "no_goals", fallback_to_basic=True)
        if self.config_store.config.compression.auto_skip:
            return PromptDecision(False, "auto_skip_enabled", fallback_to_basic=True)
        return PromptDecision(True, "goals_found")

    async def resolve_selection(
        self,
        goals: list[str],
        is_safety_valve: bool,
        prompt: ChoicePrompt,
        timeout: float | None,
    ) -> str | None:
        """Ask the user and return the raw selection.

        Each await is raced against *timeout*; a timeout yields None. An
        'other' answer is replaced by the free-text follow-up, with an
        empty or cancelled follow-up becoming 'auto'.
        """
        selection = await race_with_timeout(
            prompt.present_choice(goals, is_safety_valve), timeout
        )
        if selection is TIMED_OUT:
            logger.info(f"Goal prompt timed out after {timeout}s, using auto")
            return None

        if is_safety_valve and selection in OPT_OUTS:
            logger.warning(f"Ignoring '{selection}' during safety valve compaction")
            return AUTO

        if selection == OTHER:
            custom = await race_with_timeout(prompt.request_custom_goal(), timeout)
            if custom is TIMED_OUT or custom is None or not custom.strip():
                return AUTO
            return custom.strip()

        return selection

    def interpret_selection(
        self,
        selection: str | None,
        apply_opt_outs: bool = True,
    ) -> SelectionOutcome:
        """Turn a raw selection into compression options.

        'disable' and 'less_frequent' update the configuration (unless
        *apply_opt_outs* is False) and compress with 'auto' this time.
        """
        if selection == DISABLE:
            if not apply_opt_outs:
                return SelectionOutcome(options_for_goal(None))
            try:
                self.config_store.set("compressionInteractive", False)
            except (OSError, ConfigError) as e:
                logger.warning(f"Could not save opt-out, compressing with auto: {e}")
                return SelectionOutcome(options_for_goal(None))
            logger.info("Interactive compression disabled by user")
            self.emit_feedback(DISABLED_FEEDBACK)
            return SelectionOutcome(options_for_goal(None), user_selected_disable=True)

        if selection == LESS_FREQUENT:
            if not apply_opt_outs:
                return SelectionOutcome(options_for_goal(None))
            try:
                return self._apply_less_frequent()
            except (OSError, ConfigError) as e:
                logger.warning(f"Could not save opt-out, compressing with auto: {e}")
                return SelectionOutcome(options_for_goal(None))

        if selection is None or selection in (AUTO, OTHER) or not selection.strip():
            return SelectionOutcome(options_for_goal(None))

        goal = selection.strip()
        return SelectionOutcome(options_for_goal(goal), goal_was_selected=True)

    def _apply_less_frequent(self) -> SelectionOutcome:
        cfg = self.config_store.config.compression
        current_tokens = cfg.trigger_tokens
        current_messages = cfg.min_messages_since_last_compress
        multiplier = cfg.frequency_multiplier

        new_tokens = min(_round_half_up(current_tokens * multiplier), cfg.max_trigger_tokens)
        new_messages = min(_round_half_up(current_messages * multiplier), cfg.max_min_messages)

        self.config_store.update({
            "compressionTriggerTokens": new_tokens,
            "compressionMinMessagesSinceLastCompress": new_messages,
        })
        logger.info(
            f"Compression check-ins relaxed: tokens {current_tokens} -> {new_tokens}, "
            f"messages {current_messages} -> {new_messages}"
        )
        self.emit_feedback(
            f"Check-ins {_format_number(multiplier)}x less frequent: "
            f"{_format_number(current_tokens / 1000)}k → {_format_number(new_tokens / 1000)}k tokens, "
            f"{current_messages} → {new_messages} messages"
        )
        return SelectionOutcome(
            options_for_goal(None),
            user_selected_less_frequent=True,
            frequency_multiplier_applied=multiplier,
            new_token_threshold=new_tokens,
            new_message_threshold=new_messages,
        )

    def emit_skip_feedback(self, reason: str | None) -> None:
        """Tell the user why they were not asked."""
        if reason == "safety_valve":
            self.emit_feedback(SAFETY_VALVE_FEEDBACK)
        elif reason in ("no_goals", "extraction_failed"):
            self.emit_feedback(f"Compressing context ({reason}).")

    def emit_feedback(self, text: str) -> None:
        if self.on_feedback:
            self.on_feedback(text)
