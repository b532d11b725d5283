"""Tests for the compaction executor."""

from unittest.mock import AsyncMock, MagicMock

import pytest

from chatcompact.compaction.executor import (
    CompactionExecutor,
    extract_discarded_context_summary,
)
from chatcompact.compaction.types import (
    AttemptContext,
    CompressionOptions,
    CompressionStatus,
    PreserveStrategy,
)
from chatcompact.config.schema import Config
from chatcompact.errors import ProviderError
from chatcompact.prompts.compaction import SNAPSHOT_REQUEST, SUMMARY_ACKNOWLEDGEMENT
from chatcompact.session.messages import ASSISTANT, USER, Message

SUMMARY = (
    "<scratchpad>thinking</scratchpad>\n"
    "<state_snapshot><overall_goal>Ship it</overall_goal>"
    "<discarded_context_summary>\n  Early small talk was dropped.\n</discarded_context_summary>"
    "</state_snapshot>"
)


def make_history(n: int = 10, size: int = 400) -> list[Message]:
    return [
        Message.user("u" * size) if i % 2 == 0 else Message.assistant("a" * size)
        for i in range(n)
    ]


def make_executor(generate=None, config=None, telemetry=None):
    provider = MagicMock()
    provider.generate = generate or AsyncMock(return_value=SUMMARY)
    return CompactionExecutor(provider, config or Config(), telemetry), provider


# ── discarded context summary ───────────────────────────────────


class TestExtractDiscardedContextSummary:
    def test_extracts_trimmed_text(self):
        assert extract_discarded_context_summary(SUMMARY) == "Early small talk was dropped."

    def test_missing_tag(self):
        assert extract_discarded_context_summary("<state_snapshot/>") is None

    def test_empty_tag(self):
        assert extract_discarded_context_summary(
            "<discarded_context_summary>  </discarded_context_summary>"
        ) is None


# ── no-ops ──────────────────────────────────────────────────────


class TestNoop:
    @pytest.mark.asyncio
    async def test_empty_history(self):
        executor, provider = make_executor()
        new_history, result = await executor.compress([], model="m", prompt_id="p", force=True)
        assert new_history is None
        assert result.status == CompressionStatus.NOOP
        provider.generate.assert_not_called()

    @pytest.mark.asyncio
    async def test_sticky_failure_without_force(self):
        executor, provider = make_executor()
        _, result = await executor.compress(
            make_history(), model="m", prompt_id="p", has_failed_attempt=True
        )
        assert result.status == CompressionStatus.NOOP
        provider.generate.assert_not_called()

    @pytest.mark.asyncio
    async def test_below_threshold_without_force(self):
        executor, provider = make_executor()
        _, result = await executor.compress(make_history(), model="m", prompt_id="p")
        assert result.status == CompressionStatus.NOOP
        assert result.original_token_count == result.new_token_count > 0
        provider.generate.assert_not_called()

    @pytest.mark.asyncio
    async def test_nothing_to_compress(self):
        executor, provider = make_executor()
        history = [Message.user("hi")]
        _, result = await executor.compress(history, model="m", prompt_id="p", force=True)
        assert result.status == CompressionStatus.NOOP
        provider.generate.assert_not_called()


# ── compaction ──────────────────────────────────────────────────


class TestCompress:
    @pytest.mark.asyncio
    async def test_compressed(self):
        executor, _ = make_executor()
        history = make_history()

        new_history, result = await executor.compress(history, model="m", prompt_id="p", force=True)

        assert result.status == CompressionStatus.COMPRESSED
        assert result.new_token_count < result.original_token_count
        assert result.messages_compressed == 8
        assert result.messages_preserved == 2
        assert result.discarded_context_summary == "Early small talk was dropped."
        assert result.goal_was_selected is False

        assert new_history[0].role == USER
        assert new_history[0].text == SUMMARY
        assert new_history[1].role == ASSISTANT
        assert new_history[1].text == SUMMARY_ACKNOWLEDGEMENT
        assert new_history[2:] == history[8:]

    @pytest.mark.asyncio
    async def test_request_shape(self):
        config = Config()
        config.compression.summary_model = "summarizer"
        executor, provider = make_executor(config=config)

        await executor.compress(make_history(), model="chat-model", prompt_id="p7", force=True)

        model, system_instruction, contents, prompt_id = provider.generate.call_args.args
        assert model == "summarizer"
        assert "<state_snapshot>" in system_instruction
        assert len(contents) == 9
        assert contents[-1] == {"role": "user", "content": SNAPSHOT_REQUEST}
        assert prompt_id == "p7"

    @pytest.mark.asyncio
    async def test_goal_steers_summary_and_split(self):
        executor, provider = make_executor()
        options = CompressionOptions(
            user_goal="Finish the CSV importer",
            preserve_strategy=PreserveStrategy.SINCE_LAST_PROMPT,
        )

        new_history, result = await executor.compress(
            make_history(), model="m", prompt_id="p", force=True, options=options
        )

        _, system_instruction, _, _ = provider.generate.call_args.args
        assert "Finish the CSV importer" in system_instruction
        assert result.goal_was_selected is True
        assert result.messages_compressed == 8
        assert result.messages_preserved == 2

    @pytest.mark.asyncio
    async def test_system_context_counts_toward_tokens(self):
        executor, _ = make_executor()
        history = make_history()

        _, plain = await executor.compress(history, model="m", prompt_id="p", force=True)
        _, with_system = await executor.compress(
            history, model="m", prompt_id="p", force=True, system_context="s" * 4000
        )

        assert with_system.original_token_count == plain.original_token_count + 1000
        assert with_system.new_token_count == plain.new_token_count + 1000

    @pytest.mark.asyncio
    async def test_does_not_mutate_input(self):
        executor, _ = make_executor()
        history = make_history()
        snapshot = list(history)
        await executor.compress(history, model="m", prompt_id="p", force=True)
        assert history == snapshot


# ── failures ────────────────────────────────────────────────────


class TestFailures:
    @pytest.mark.asyncio
    async def test_inflated_summary(self):
        executor, _ = make_executor(generate=AsyncMock(return_value="y" * 20_000))
        new_history, result = await executor.compress(
            make_history(), model="m", prompt_id="p", force=True
        )
        assert new_history is None
        assert result.status == CompressionStatus.COMPRESSION_FAILED_INFLATED_TOKEN_COUNT
        assert result.new_token_count > result.original_token_count

    @pytest.mark.asyncio
    async def test_empty_summary(self):
        executor, _ = make_executor(generate=AsyncMock(return_value="   "))
        new_history, result = await executor.compress(
            make_history(), model="m", prompt_id="p", force=True
        )
        assert new_history is None
        assert result.status == CompressionStatus.COMPRESSION_FAILED_EMPTY_SUMMARY

    @pytest.mark.asyncio
    async def test_provider_error(self):
        executor, _ = make_executor(generate=AsyncMock(side_effect=ProviderError("rate limited")))
        new_history, result = await executor.compress(
            make_history(), model="m", prompt_id="p", force=True
        )
        assert new_history is None
        assert result.status == CompressionStatus.COMPRESSION_FAILED_SUMMARIZATION_ERROR
        assert result.status.is_failure


# ── telemetry ───────────────────────────────────────────────────


class TestTelemetry:
    @pytest.mark.asyncio
    async def test_event_emitted_on_success(self):
        telemetry = MagicMock()
        executor, _ = make_executor(telemetry=telemetry)
        context = AttemptContext(trigger_reason="absolute_tokens", user_selected_less_frequent=True,
                                 frequency_multiplier_applied=1.5, new_token_threshold=60_000,
                                 new_message_threshold=38)

        _, result = await executor.compress(
            make_history(), model="m", prompt_id="p", force=True, context=context
        )

        event = telemetry.log_chat_compression.call_args.args[0]
        assert event.tokens_before == result.original_token_count
        assert event.tokens_after == result.new_token_count
        assert event.preserve_strategy == "percentage"
        assert event.messages_compressed == 8
        assert event.messages_preserved == 2
        assert event.trigger_reason == "absolute_tokens"
        assert event.user_selected_less_frequent is True
        assert event.new_token_threshold == 60_000

    @pytest.mark.asyncio
    async def test_event_emitted_on_inflation(self):
        telemetry = MagicMock()
        executor, _ = make_executor(generate=AsyncMock(return_value="y" * 20_000), telemetry=telemetry)
        await executor.compress(make_history(), model="m", prompt_id="p", force=True)
        telemetry.log_chat_compression.assert_called_once()

    @pytest.mark.asyncio
    async def test_no_event_for_noop(self):
        telemetry = MagicMock()
        executor, _ = make_executor(telemetry=telemetry)
        await executor.compress([], model="m", prompt_id="p", force=True)
        telemetry.log_chat_compression.assert_not_called()
