"""Terminal UI for the compaction goal prompt."""

from chatcompact.cli.tui.components import RichChoicePrompt

__all__ = ["RichChoicePrompt"]
