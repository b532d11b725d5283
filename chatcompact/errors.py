"""Exception types raised by the compaction engine."""


class CompactionError(Exception):
    """Base class for compaction engine errors."""
    pass


class ConfigError(CompactionError):
    """Raised when configuration cannot be loaded, resolved or validated."""
    pass


class SplitError(CompactionError):
    """Raised when a split point is requested with invalid parameters."""
    pass


class ProviderError(CompactionError):
    """Raised when the LLM provider reports a failed generation."""
    pass
