"""Telemetry event types."""

import time
from dataclasses import asdict, dataclass, field
from typing import Any

CHAT_COMPRESSION = "chat_compression"


@dataclass
class ChatCompressionEvent:
    """One summarization attempt, successful or not."""

    tokens_before: int
    tokens_after: int
    preserve_strategy: str = "percentage"
    messages_preserved: int = 0
    messages_compressed: int = 0
    goal_was_selected: bool = False
    trigger_reason: str = "manual"
    was_safety_valve: bool = False
    user_selected_disable: bool = False
    user_selected_less_frequent: bool = False
    frequency_multiplier_applied: float | None = None
    new_token_threshold: int | None = None
    new_message_threshold: int | None = None
    prompt_id: str = ""
    timestamp: str = field(default_factory=lambda: time.strftime("%Y-%m-%dT%H:%M:%S%z"))

    def to_log_body(self) -> str:
        body = f"Chat compression: {self.tokens_before} -> {self.tokens_after} tokens"
        if self.goal_was_selected:
            body += " (goal-focused)"
        return body

    def to_dict(self) -> dict[str, Any]:
        return {"event_name": CHAT_COMPRESSION, **asdict(self)}
