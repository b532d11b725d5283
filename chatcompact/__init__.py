"""chatcompact - context compaction engine for chat agents."""

__version__ = "0.1.0"
__logo__ = "🗜"
