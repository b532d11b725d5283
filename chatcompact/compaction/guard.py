"""Per-session compaction guard state."""

from dataclasses import dataclass


@dataclass
class GuardState:
    """Mutable counters and flags for one conversation session.

    Created once per session and owned by its CompactionEngine. Only the
    active attempt mutates the counters. The in-progress and prompt-active
    flags are never persisted.
    """

    messages_since_last_compress: int = 0
    last_compression_time: float = 0.0  # 0 means "never compressed"
    in_progress: bool = False
    prompt_active: bool = False
    last_failure: bool = False  # Sticky until a success or forced attempt
    frequency_relaxations: int = 0  # Cumulative less_frequent selections
