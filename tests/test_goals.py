"""Tests for goal extraction."""

import asyncio
from unittest.mock import AsyncMock, MagicMock

import pytest

from chatcompact.compaction.goals import (
    Confidence,
    ExtractionError,
    GoalExtractor,
    determine_confidence,
    parse_goals,
)
from chatcompact.errors import ProviderError
from chatcompact.prompts.compaction import GOAL_EXTRACTION_PROMPT, GOAL_EXTRACTION_REQUEST
from chatcompact.session.messages import Message


def make_provider(generate):
    provider = MagicMock()
    provider.generate = generate
    return provider


def history(n: int = 4) -> list[Message]:
    return [
        Message.user(f"question {i}") if i % 2 == 0 else Message.assistant(f"answer {i}")
        for i in range(n)
    ]


# ── parsing ─────────────────────────────────────────────────────


class TestParseGoals:
    def test_multiple_goals(self):
        text = "<goals>\n  <goal>Fix the login bug</goal>\n  <goal>Write tests</goal>\n</goals>"
        assert parse_goals(text) == ["Fix the login bug", "Write tests"]

    def test_multiline_goal_is_trimmed(self):
        text = "<goals><goal>\n  Implementing OAuth\n  authentication\n</goal></goals>"
        assert parse_goals(text) == ["Implementing OAuth\n  authentication"]

    def test_empty_goals_dropped(self):
        assert parse_goals("<goals><goal>  </goal><goal>Real</goal></goals>") == ["Real"]

    def test_at_most_three_goals(self):
        text = "<goals>" + "".join(f"<goal>Goal {i}</goal>" for i in range(5)) + "</goals>"
        assert parse_goals(text) == ["Goal 0", "Goal 1", "Goal 2"]

    def test_no_goals(self):
        assert parse_goals("<goals></goals>") == []
        assert parse_goals("") == []


class TestDetermineConfidence:
    def test_none(self):
        assert determine_confidence([]) == Confidence.NONE

    def test_single_long_goal_is_high(self):
        assert determine_confidence(["Implementing OAuth authentication flow"]) == Confidence.HIGH

    def test_single_short_goal_is_low(self):
        assert determine_confidence(["Fix bug"]) == Confidence.LOW

    def test_exactly_thirty_chars_is_low(self):
        assert determine_confidence(["x" * 30]) == Confidence.LOW

    def test_multiple_goals_are_medium(self):
        assert determine_confidence(["a", "b"]) == Confidence.MEDIUM


# ── extractor ───────────────────────────────────────────────────


class TestGoalExtractor:
    @pytest.mark.asyncio
    async def test_extracts_goals(self):
        generate = AsyncMock(return_value="<goals><goal>Refactoring the payment service</goal></goals>")
        extractor = GoalExtractor(make_provider(generate))

        result = await extractor.extract_goals(history(), "test-model", "p1")

        assert result.goals == ["Refactoring the payment service"]
        assert result.confidence == Confidence.HIGH
        assert result.error is None

    @pytest.mark.asyncio
    async def test_request_uses_recent_window(self):
        generate = AsyncMock(return_value="<goals></goals>")
        extractor = GoalExtractor(make_provider(generate))

        await extractor.extract_goals(history(30), "test-model", "p1", max_messages=20)

        model, system_instruction, contents, prompt_id = generate.call_args.args
        assert model == "test-model"
        assert system_instruction == GOAL_EXTRACTION_PROMPT
        assert prompt_id == "p1"
        assert len(contents) == 21
        assert contents[0]["content"] == "question 10"
        assert contents[-1] == {"role": "user", "content": GOAL_EXTRACTION_REQUEST}

    @pytest.mark.asyncio
    async def test_timeout_returns_empty_result(self):
        never = asyncio.Event()

        async def hang(*args):
            await never.wait()

        extractor = GoalExtractor(make_provider(hang))
        result = await extractor.extract_goals(history(), "test-model", "p1", timeout=0.01)

        assert result.goals == []
        assert result.confidence == Confidence.NONE
        assert result.error == ExtractionError.TIMEOUT
        never.set()
        await asyncio.sleep(0)

    @pytest.mark.asyncio
    async def test_provider_failure_returns_empty_result(self):
        generate = AsyncMock(side_effect=ProviderError("boom"))
        extractor = GoalExtractor(make_provider(generate))

        result = await extractor.extract_goals(history(), "test-model", "p1")

        assert result.goals == []
        assert result.error == ExtractionError.EXTRACTION_FAILED

    @pytest.mark.asyncio
    async def test_no_goals(self):
        generate = AsyncMock(return_value="<goals></goals>")
        extractor = GoalExtractor(make_provider(generate))

        result = await extractor.extract_goals(history(), "test-model", "p1")

        assert result.goals == []
        assert result.confidence == Confidence.NONE
        assert result.error is None
