"""Compression telemetry sink: JSONL append log."""

import json
from pathlib import Path

from loguru import logger

from chatcompact.telemetry.events import ChatCompressionEvent

DEFAULT_TELEMETRY_PATH = "~/.chatcompact/telemetry/chat_compression.jsonl"


class TelemetryLogger:
    """Appends one JSON line per event. Write failures never propagate."""

    def __init__(self, path: str | Path = DEFAULT_TELEMETRY_PATH, enabled: bool = True):
        self.path = Path(path).expanduser()
        self.enabled = enabled

    def log_chat_compression(self, event: ChatCompressionEvent) -> None:
        logger.info(event.to_log_body())
        if not self.enabled:
            return

        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            with self.path.open("a", encoding="utf-8") as f:
                f.write(json.dumps(event.to_dict(), ensure_ascii=False) + "\n")
        except OSError as e:
            logger.error(f"Failed to write telemetry to {self.path}: {e}")

    def read_events(self) -> list[dict]:
        """Return every logged event, oldest first. Corrupt lines are skipped."""
        if not self.path.exists():
            return []

        events = []
        with self.path.open(encoding="utf-8") as f:
            for line in f:
                line = line.strip()
                if not line:
                    continue
                try:
                    events.append(json.loads(line))
                except json.JSONDecodeError:
                    logger.debug(f"Skipping corrupt telemetry line in {self.path}")
        return events
