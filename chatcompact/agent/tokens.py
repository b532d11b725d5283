"""Approximate token estimation for context management."""

import json

from chatcompact.session.messages import TOOL_CALL, Message

CHARS_PER_TOKEN = 4  # Cross-model estimate (EN text/code/JSON)
MESSAGE_OVERHEAD = 4  # Per-message overhead (role, separators)

DEFAULT_TOKEN_LIMIT = 200_000

# Context window sizes keyed by model-name fragment, most specific first.
MODEL_TOKEN_LIMITS: list[tuple[str, int]] = [
    ("gemini-1.5-pro", 2_097_152),
    ("gemini", 1_048_576),
    ("claude", 200_000),
    ("gpt-4.1", 1_047_576),
    ("gpt-4o", 128_000),
    ("o3", 200_000),
    ("o4", 200_000),
]


def estimate_tokens(text: str) -> int:
    """Estimate token count from character count."""
    return len(text) // CHARS_PER_TOKEN


def estimate_message_tokens(message: Message) -> int:
    """Estimate tokens for a single message including tool calls."""
    total = MESSAGE_OVERHEAD
    for part in message.parts:
        total += estimate_tokens(part.text)
        if part.type == TOOL_CALL:
            total += estimate_tokens(part.name)
            total += estimate_tokens(json.dumps(part.arguments))
    return total


def estimate_messages_tokens(messages: list[Message], system_prompt: str = "") -> int:
    """Estimate total tokens for a message list plus standing system context."""
    total = estimate_tokens(system_prompt) if system_prompt else 0
    for msg in messages:
        total += estimate_message_tokens(msg)
    return total


def token_limit(model: str, override: int | None = None) -> int:
    """Return the context window size for a model.

    An explicit override (from configuration) always wins.
    """
    if override:
        return override
    name = model.lower()
    for fragment, limit in MODEL_TOKEN_LIMITS:
        if fragment in name:
            return limit
    return DEFAULT_TOKEN_LIMIT
