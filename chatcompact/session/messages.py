"""Conversation message types.

A message is one turn of the conversation: a role plus an ordered tuple of
parts. Parts are plain text, tool calls, tool results, or internal
bookkeeping ("thought") entries that never reach the summarizer.
"""

import json
from dataclasses import dataclass, field
from typing import Any

USER = "user"
ASSISTANT = "assistant"
ROLES = (USER, ASSISTANT)

TEXT = "text"
TOOL_CALL = "tool_call"
TOOL_RESULT = "tool_result"
THOUGHT = "thought"
PART_TYPES = (TEXT, TOOL_CALL, TOOL_RESULT, THOUGHT)


@dataclass(frozen=True)
class Part:
    """A single piece of message content."""

    type: str = TEXT
    text: str = ""
    name: str = ""  # Tool name for tool_call / tool_result
    call_id: str = ""  # Pairs a tool_result with its tool_call
    arguments: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {"type": self.type}
        if self.text:
            data["text"] = self.text
        if self.name:
            data["name"] = self.name
        if self.call_id:
            data["call_id"] = self.call_id
        if self.arguments:
            data["arguments"] = self.arguments
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Part":
        part_type = data.get("type", TEXT)
        if part_type not in PART_TYPES:
            raise ValueError(f"Unknown part type: {part_type}")
        return cls(
            type=part_type,
            text=data.get("text", "") or "",
            name=data.get("name", "") or "",
            call_id=data.get("call_id", "") or "",
            arguments=data.get("arguments") or {},
        )


@dataclass(frozen=True)
class Message:
    """One turn of the conversation. Immutable once appended."""

    role: str
    parts: tuple[Part, ...] = ()
    metadata: dict[str, Any] = field(default_factory=dict, compare=False)

    def __post_init__(self):
        if self.role not in ROLES:
            raise ValueError(f"Unknown role: {self.role}")
        if not isinstance(self.parts, tuple):
            object.__setattr__(self, "parts", tuple(self.parts))

    @classmethod
    def user(cls, text: str, **metadata: Any) -> "Message":
        return cls(USER, (Part(TEXT, text),), metadata)

    @classmethod
    def assistant(cls, text: str, **metadata: Any) -> "Message":
        return cls(ASSISTANT, (Part(TEXT, text),), metadata)

    @property
    def text(self) -> str:
        """Concatenated text of all text parts."""
        return "".join(p.text for p in self.parts if p.type == TEXT)

    @property
    def has_tool_call(self) -> bool:
        return any(p.type == TOOL_CALL for p in self.parts)

    @property
    def has_tool_result(self) -> bool:
        return any(p.type == TOOL_RESULT for p in self.parts)

    @property
    def is_internal(self) -> bool:
        """True for bookkeeping entries excluded from the curated view."""
        if self.metadata.get("type") == THOUGHT:
            return True
        return bool(self.parts) and all(p.type == THOUGHT for p in self.parts)

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "role": self.role,
            "parts": [p.to_dict() for p in self.parts],
        }
        if self.metadata:
            data["metadata"] = self.metadata
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Message":
        parts = data.get("parts")
        if parts is None:
            # Plain {"role", "content"} chat format
            parts = [{"type": TEXT, "text": data.get("content", "") or ""}]
        return cls(
            role=data["role"],
            parts=tuple(Part.from_dict(p) for p in parts),
            metadata=data.get("metadata") or {},
        )

    def serialized_length(self) -> int:
        """Length of the JSON serialization, used as a split weight."""
        return len(json.dumps(self.to_dict(), ensure_ascii=False))

    def to_llm_dict(self) -> dict[str, Any]:
        """Render as a provider chat message with text content."""
        return {"role": self.role, "content": render_parts(self.parts)}


def render_parts(parts: tuple[Part, ...]) -> str:
    """Render parts as text, tool calls and results in bracketed form."""
    lines = []
    for part in parts:
        if part.type == TEXT:
            if part.text:
                lines.append(part.text)
        elif part.type == TOOL_CALL:
            args = json.dumps(part.arguments, ensure_ascii=False)
            lines.append(f"[tool_call] {part.name}({args})")
        elif part.type == TOOL_RESULT:
            lines.append(f"[tool_response:{part.name}] {part.text}")
    return "\n".join(lines)


def curate_history(messages: list[Message]) -> list[Message]:
    """Filter out internal bookkeeping entries, keeping order."""
    return [m for m in messages if not m.is_internal]
