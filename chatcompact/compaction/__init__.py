"""Context compaction: trigger, goal prompt, split and summarization."""

from chatcompact.compaction.engine import CompactionEngine
from chatcompact.compaction.types import (
    CompressionOptions,
    CompressionResult,
    CompressionStatus,
    PreserveStrategy,
)

__all__ = [
    "CompactionEngine",
    "CompressionOptions",
    "CompressionResult",
    "CompressionStatus",
    "PreserveStrategy",
]
