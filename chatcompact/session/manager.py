"""Session storage for conversation history."""

import json
import re
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Any

from loguru import logger

from chatcompact.session.messages import Message, curate_history


@dataclass
class Session:
    """
    A conversation session.

    Stores messages in JSONL format for easy reading and persistence.
    Compaction guard flags live on the engine, never here.
    """

    key: str
    messages: list[Message] = field(default_factory=list)
    system_prompt: str = ""  # Standing context sent with every request
    created_at: datetime = field(default_factory=datetime.now)
    updated_at: datetime = field(default_factory=datetime.now)
    metadata: dict[str, Any] = field(default_factory=dict)

    def add_message(self, message: Message) -> None:
        """Append a message. Messages are immutable once appended."""
        self.messages.append(message)
        self.updated_at = datetime.now()

    def get_history(self, curated: bool = True) -> list[Message]:
        """Return the history, without internal entries when *curated*."""
        if curated:
            return curate_history(self.messages)
        return list(self.messages)

    def replace_history(self, messages: list[Message]) -> None:
        """Swap in a compacted history."""
        self.messages = list(messages)
        self.updated_at = datetime.now()
        self.metadata["compactions"] = self.metadata.get("compactions", 0) + 1
        self.metadata["last_compacted_at"] = self.updated_at.isoformat()

    def clear(self) -> None:
        """Clear all messages in the session."""
        self.messages = []
        self.updated_at = datetime.now()


def safe_filename(name: str) -> str:
    """Replace characters that are unsafe in file names."""
    return re.sub(r"[^\w.-]", "_", name).strip("._") or "session"


def load_session_file(path: Path, key: str | None = None) -> Session:
    """Read a session JSONL file.

    The first line may be a metadata record (``"_type": "metadata"``);
    every other line is a message.

    Raises:
        ValueError: If a line is not valid JSON or not a valid message.
    """
    messages = []
    metadata: dict[str, Any] = {}
    system_prompt = ""
    created_at = None

    with open(path, encoding="utf-8") as f:
        for lineno, line in enumerate(f, 1):
            line = line.strip()
            if not line:
                continue
            try:
                data = json.loads(line)
                if data.get("_type") == "metadata":
                    metadata = data.get("metadata", {})
                    system_prompt = data.get("system_prompt", "")
                    if data.get("created_at"):
                        created_at = datetime.fromisoformat(data["created_at"])
                else:
                    messages.append(Message.from_dict(data))
            except (json.JSONDecodeError, KeyError, ValueError) as e:
                raise ValueError(f"{path}:{lineno}: {e}") from e

    return Session(
        key=key or path.stem,
        messages=messages,
        system_prompt=system_prompt,
        created_at=created_at or datetime.now(),
        metadata=metadata,
    )


def save_session_file(session: Session, path: Path) -> None:
    """Write a session as JSONL, metadata line first."""
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, "w", encoding="utf-8") as f:
        metadata_line = {
            "_type": "metadata",
            "created_at": session.created_at.isoformat(),
            "updated_at": session.updated_at.isoformat(),
            "system_prompt": session.system_prompt,
            "metadata": session.metadata,
        }
        f.write(json.dumps(metadata_line, ensure_ascii=False) + "\n")

        for msg in session.messages:
            f.write(json.dumps(msg.to_dict(), ensure_ascii=False) + "\n")


class SessionManager:
    """
    Manages conversation sessions stored as JSONL files.

    Directory layout:
        ~/.chatcompact/sessions/
        └── {key}.jsonl
    """

    def __init__(self, sessions_dir: Path | None = None):
        self.sessions_dir = sessions_dir or Path.home() / ".chatcompact" / "sessions"
        self.sessions_dir.mkdir(parents=True, exist_ok=True)
        self._cache: dict[str, Session] = {}

    # ── public API ──────────────────────────────────────────────

    def get_or_create(self, key: str) -> Session:
        """Return the cached or stored session, or a new empty one."""
        if key in self._cache:
            return self._cache[key]

        session = self._load(key)
        if session is None:
            session = Session(key=key)
            logger.info(f"Created new session {key}")
        self._cache[key] = session
        return session

    def save(self, session: Session) -> None:
        """Save a session to disk."""
        save_session_file(session, self._get_session_path(session.key))
        self._cache[session.key] = session

    def delete(self, key: str) -> bool:
        """
        Delete a session.

        Returns:
            True if deleted, False if not found.
        """
        self._cache.pop(key, None)

        path = self._get_session_path(key)
        if path.exists():
            path.unlink()
            return True
        return False

    def list_sessions(self) -> list[dict[str, Any]]:
        """
        List stored sessions.

        Returns:
            List of session info dicts sorted by updated_at descending.
        """
        sessions = []

        for path in self.sessions_dir.glob("*.jsonl"):
            try:
                with open(path, encoding="utf-8") as f:
                    first_line = f.readline().strip()
                if not first_line:
                    continue
                data = json.loads(first_line)
                if data.get("_type") != "metadata":
                    continue
                sessions.append({
                    "key": path.stem,
                    "created_at": data.get("created_at"),
                    "updated_at": data.get("updated_at"),
                    "path": str(path),
                })
            except (OSError, json.JSONDecodeError) as e:
                logger.debug(f"Skipping unreadable session file {path.name}: {e}")

        return sorted(sessions, key=lambda x: x.get("updated_at") or "", reverse=True)

    # ── internal helpers ────────────────────────────────────────

    def _get_session_path(self, key: str) -> Path:
        return self.sessions_dir / f"{safe_filename(key)}.jsonl"

    def _load(self, key: str) -> Session | None:
        path = self._get_session_path(key)
        if not path.exists():
            return None

        try:
            return load_session_file(path, key=key)
        except (OSError, ValueError) as e:
            logger.warning(f"Failed to load session {key}: {e}")
            return None
