"""Terminal widgets for the compaction goal prompt."""

import asyncio

from rich.console import Console

from chatcompact import __logo__
from chatcompact.cli.tui.keys import Key, get_key_reader
from chatcompact.compaction.selection import AUTO, DISABLE, LESS_FREQUENT, OTHER


def draw_header(console: Console, title: str, subtitle: str = "", style: str = "bold cyan") -> None:
    """Clear the screen and draw the prompt header."""
    console.clear()
    console.print()
    console.print(f"  {__logo__} [bold]chatcompact[/bold]", highlight=False)
    console.print(f"  [dim]{'─' * 40}[/dim]")
    console.print(f"  [{style}]{title}[/{style}]", highlight=False)
    if subtitle:
        console.print(f"  [dim]{subtitle}[/dim]", highlight=False)
    console.print()


def draw_footer(console: Console, hints: str) -> None:
    console.print()
    console.print(f"  [dim]{hints}[/dim]", highlight=False)


def select_menu(
    console: Console,
    title: str,
    options: list[str],
    selected: int = 0,
    subtitle: str = "",
    question: str = "",
    footer: str = "",
    title_style: str = "bold cyan",
) -> int | None:
    """Arrow-key menu selection.

    Args:
        console: Rich console instance
        title: Screen title
        options: Option labels, in display order
        selected: Initially selected index
        subtitle: Optional subtitle
        question: Optional bold line above the options
        footer: Extra hint appended to the navigation hints

    Returns:
        Selected index, or None if the user pressed Esc
    """
    read = get_key_reader()

    while True:
        draw_header(console, title, subtitle, style=title_style)
        if question:
            console.print(f"  [bold]{question}[/bold]", highlight=False)
            console.print()

        for i, label in enumerate(options):
            if i == selected:
                console.print(f"  [bold cyan]▸ {label}[/bold cyan]", highlight=False)
            else:
                console.print(f"    {label}", highlight=False)

        hints = "↑/↓ Navigate  Enter Select  Esc Auto"
        draw_footer(console, f"{hints}  {footer}" if footer else hints)

        key, _ = read()

        if key == Key.UP:
            selected = (selected - 1) % len(options)
        elif key == Key.DOWN:
            selected = (selected + 1) % len(options)
        elif key == Key.ENTER:
            return selected
        elif key == Key.ESC:
            return None


def text_input(
    console: Console,
    title: str,
    prompt: str,
    hint: str = "",
    placeholder: str = "",
    subtitle: str = "",
) -> str | None:
    """Character-by-character text input.

    Returns:
        The typed text ("" when Enter is pressed on an empty buffer),
        or None if the user pressed Esc
    """
    read = get_key_reader()
    buffer = ""

    while True:
        draw_header(console, title, subtitle)

        if hint:
            console.print(f"  [dim]{hint}[/dim]", highlight=False)
            console.print()

        if buffer:
            console.print(f"  {prompt}: {buffer}[blink]_[/blink]", highlight=False)
        else:
            console.print(f"  {prompt}: [dim]{placeholder}[/dim][blink]_[/blink]", highlight=False)

        draw_footer(console, "Press Enter to submit, Esc to cancel (uses auto-compress)")

        key, char = read()

        if key == Key.BACKSPACE:
            buffer = buffer[:-1]
        elif key == Key.ENTER:
            return buffer
        elif key == Key.ESC:
            return None
        elif key == Key.CHAR:
            buffer += char


def goal_menu_items(goals: list[str], is_safety_valve: bool) -> list[tuple[str, str]]:
    """(label, value) pairs for the goal prompt. Opt-outs are hidden at the safety valve."""
    items = [(goal, goal) for goal in goals]
    items.append(("Auto-compress (default behavior)", AUTO))
    items.append(("Other (specify)", OTHER))
    if not is_safety_valve:
        items.append(("Don't ask me again", DISABLE))
        items.append(("Check in less often", LESS_FREQUENT))
    return items


class RichChoicePrompt:
    """Goal prompt drawn on a rich console.

    The blocking key loop runs in a worker thread so the engine can race
    it against its timeout.
    """

    def __init__(self, console: Console, timeout_seconds: float | None = None):
        self.console = console
        self.timeout_seconds = timeout_seconds

    def choose(self, goals: list[str], is_safety_valve: bool) -> str | None:
        items = goal_menu_items(goals, is_safety_valve)
        if is_safety_valve:
            title = "Context window nearly full - compression required"
            subtitle = "Compressing now to avoid hitting context limits."
            style = "bold yellow"
        else:
            title = "Context window is filling up"
            subtitle = "We'll compress the conversation to free up space."
            style = "bold cyan"

        footer = f"auto in {self.timeout_seconds:g}s" if self.timeout_seconds else ""
        index = select_menu(
            self.console,
            title,
            [label for label, _ in items],
            subtitle=subtitle,
            question="What are you working on? This helps prioritize what to keep in memory.",
            footer=footer,
            title_style=style,
        )
        if index is None:
            return None
        return items[index][1]

    def ask_custom_goal(self) -> str | None:
        return text_input(
            self.console,
            "Enter your current goal",
            "Goal",
            hint="Describe what you're working on so we can prioritize relevant context.",
            placeholder="e.g., Implementing user authentication",
        )

    async def present_choice(self, goals: list[str], is_safety_valve: bool) -> str | None:
        return await asyncio.to_thread(self.choose, goals, is_safety_valve)

    async def request_custom_goal(self) -> str | None:
        return await asyncio.to_thread(self.ask_custom_goal)
