"""Tests for the goal prompt decision and selection handling."""

import asyncio

import pytest

from chatcompact.compaction.goals import Confidence, ExtractionError, GoalExtractionResult
from chatcompact.compaction.selection import (
    AUTO,
    DISABLE,
    DISABLED_FEEDBACK,
    LESS_FREQUENT,
    OTHER,
    SAFETY_VALVE_FEEDBACK,
    SelectionCoordinator,
)
from chatcompact.compaction.types import PreserveStrategy
from chatcompact.config.loader import ConfigStore
from chatcompact.config.schema import Config


class FakePrompt:
    """Scripted ChoicePrompt."""

    def __init__(self, choice=AUTO, custom=None, delay: float = 0.0):
        self.choice = choice
        self.custom = custom
        self.delay = delay
        self.calls = []

    async def present_choice(self, goals, is_safety_valve):
        self.calls.append(("present_choice", list(goals), is_safety_valve))
        if self.delay:
            await asyncio.sleep(self.delay)
        return self.choice

    async def request_custom_goal(self):
        self.calls.append(("request_custom_goal",))
        return self.custom


def make_coordinator(**compression):
    config = Config()
    for key, value in compression.items():
        setattr(config.compression, key, value)
    feedback = []
    return SelectionCoordinator(ConfigStore(config), feedback.append), feedback


def found(*goals):
    return GoalExtractionResult(goals=list(goals), confidence=Confidence.MEDIUM)


# ── should_prompt_user ──────────────────────────────────────────


class TestShouldPromptUser:
    def test_safety_valve_wins(self):
        coord, _ = make_coordinator()
        decision = coord.should_prompt_user(found("a goal"), is_safety_valve=True)
        assert decision.should_prompt is False
        assert decision.reason == "safety_valve"
        assert decision.fallback_to_basic is True

    def test_extraction_timeout(self):
        coord, _ = make_coordinator()
        result = GoalExtractionResult.failed(ExtractionError.TIMEOUT)
        decision = coord.should_prompt_user(result, is_safety_valve=False)
        assert decision.should_prompt is False
        assert decision.reason == "extraction_timeout"

    def test_no_goals(self):
        coord, _ = make_coordinator()
        decision = coord.should_prompt_user(GoalExtractionResult(), is_safety_valve=False)
        assert decision.reason == "no_goals"

    def test_auto_skip(self):
        coord, _ = make_coordinator(auto_skip=True)
        decision = coord.should_prompt_user(found("a goal"), is_safety_valve=False)
        assert decision.should_prompt is False
        assert decision.reason == "auto_skip_enabled"

    def test_goals_found(self):
        coord, _ = make_coordinator()
        decision = coord.should_prompt_user(found("a goal"), is_safety_valve=False)
        assert decision.should_prompt is True
        assert decision.reason == "goals_found"


# ── interpret_selection ─────────────────────────────────────────


class TestInterpretSelection:
    def test_goal_uses_since_last_prompt(self):
        coord, _ = make_coordinator()
        outcome = coord.interpret_selection("Fix the login flow")
        assert outcome.options.user_goal == "Fix the login flow"
        assert outcome.options.preserve_strategy == PreserveStrategy.SINCE_LAST_PROMPT
        assert outcome.goal_was_selected is True

    @pytest.mark.parametrize("selection", [AUTO, None, "", "   "])
    def test_auto_like_selections(self, selection):
        coord, _ = make_coordinator()
        outcome = coord.interpret_selection(selection)
        assert outcome.options.user_goal is None
        assert outcome.options.preserve_strategy == PreserveStrategy.PERCENTAGE
        assert outcome.goal_was_selected is False

    def test_disable_persists_and_compresses_with_auto(self):
        coord, feedback = make_coordinator()
        outcome = coord.interpret_selection(DISABLE)
        assert coord.config_store.config.compression.interactive is False
        assert outcome.user_selected_disable is True
        assert outcome.options.preserve_strategy == PreserveStrategy.PERCENTAGE
        assert feedback == [DISABLED_FEEDBACK]

    def test_less_frequent_sequence_is_rounded_and_capped(self):
        coord, _ = make_coordinator()
        seen = []
        for _ in range(5):
            outcome = coord.interpret_selection(LESS_FREQUENT)
            seen.append((outcome.new_token_threshold, outcome.new_message_threshold))
        assert seen == [
            (60_000, 38),
            (90_000, 57),
            (135_000, 86),
            (200_000, 100),
            (200_000, 100),
        ]
        cfg = coord.config_store.config.compression
        assert (cfg.trigger_tokens, cfg.min_messages_since_last_compress) == (200_000, 100)

    def test_less_frequent_feedback(self):
        coord, feedback = make_coordinator()
        outcome = coord.interpret_selection(LESS_FREQUENT)
        assert feedback == ["Check-ins 1.5x less frequent: 40k → 60k tokens, 25 → 38 messages"]
        assert outcome.user_selected_less_frequent is True
        assert outcome.frequency_multiplier_applied == 1.5
        assert outcome.options.user_goal is None

    def test_opt_outs_ignored_when_not_applied(self):
        coord, feedback = make_coordinator()
        for selection in (DISABLE, LESS_FREQUENT):
            outcome = coord.interpret_selection(selection, apply_opt_outs=False)
            assert outcome.options.preserve_strategy == PreserveStrategy.PERCENTAGE
        cfg = coord.config_store.config.compression
        assert cfg.interactive is True
        assert cfg.trigger_tokens == 40_000
        assert feedback == []


# ── resolve_selection ───────────────────────────────────────────


class TestResolveSelection:
    @pytest.mark.asyncio
    async def test_returns_choice(self):
        coord, _ = make_coordinator()
        prompt = FakePrompt(choice="Write the parser")
        selection = await coord.resolve_selection(["Write the parser"], False, prompt, timeout=1)
        assert selection == "Write the parser"
        assert prompt.calls == [("present_choice", ["Write the parser"], False)]

    @pytest.mark.asyncio
    async def test_timeout_returns_none(self):
        coord, _ = make_coordinator()
        prompt = FakePrompt(choice="late", delay=0.5)
        assert await coord.resolve_selection(["g"], False, prompt, timeout=0.01) is None

    @pytest.mark.asyncio
    async def test_other_uses_custom_goal(self):
        coord, _ = make_coordinator()
        prompt = FakePrompt(choice=OTHER, custom="  Migrate the database  ")
        assert await coord.resolve_selection(["g"], False, prompt, timeout=1) == "Migrate the database"

    @pytest.mark.asyncio
    @pytest.mark.parametrize("custom", [None, "", "   "])
    async def test_other_with_empty_follow_up_is_auto(self, custom):
        coord, _ = make_coordinator()
        prompt = FakePrompt(choice=OTHER, custom=custom)
        assert await coord.resolve_selection(["g"], False, prompt, timeout=1) == AUTO

    @pytest.mark.asyncio
    async def test_opt_out_rejected_at_safety_valve(self):
        coord, _ = make_coordinator()
        prompt = FakePrompt(choice=DISABLE)
        assert await coord.resolve_selection(["g"], True, prompt, timeout=1) == AUTO


# ── skip feedback ───────────────────────────────────────────────


class TestSkipFeedback:
    def test_safety_valve(self):
        coord, feedback = make_coordinator()
        coord.emit_skip_feedback("safety_valve")
        assert feedback == [SAFETY_VALVE_FEEDBACK]

    @pytest.mark.parametrize("reason", ["no_goals", "extraction_failed"])
    def test_reported_reasons(self, reason):
        coord, feedback = make_coordinator()
        coord.emit_skip_feedback(reason)
        assert feedback == [f"Compressing context ({reason})."]

    @pytest.mark.parametrize("reason", ["extraction_timeout", "auto_skip_enabled", None])
    def test_silent_reasons(self, reason):
        coord, feedback = make_coordinator()
        coord.emit_skip_feedback(reason)
        assert feedback == []
