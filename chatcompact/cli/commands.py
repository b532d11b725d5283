"""CLI commands for chatcompact."""

import asyncio
import sys
import time
from pathlib import Path

import typer
from loguru import logger
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from chatcompact import __logo__, __version__

app = typer.Typer(
    name="chatcompact",
    help=f"{__logo__} chatcompact - context compaction for chat agents",
    no_args_is_help=True,
)

console = Console()


def version_callback(value: bool):
    if value:
        console.print(f"{__logo__} chatcompact v{__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: bool = typer.Option(
        None, "--version", callback=version_callback, is_eager=True
    ),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Show debug logs"),
):
    """chatcompact - context compaction for chat agents."""
    logger.remove()
    logger.add(sys.stderr, level="DEBUG" if verbose else "INFO")


def _load_store(config_path: Path | None):
    from chatcompact.config.loader import ConfigStore
    from chatcompact.errors import ConfigError

    try:
        return ConfigStore.from_file(config_path)
    except ConfigError as e:
        console.print(f"[red]Error: {escape(str(e))}[/red]")
        raise typer.Exit(1)


def _load_session(path: Path):
    from chatcompact.session.manager import load_session_file

    if not path.exists():
        console.print(f"[red]Session file not found: {path}[/red]")
        raise typer.Exit(1)
    try:
        return load_session_file(path)
    except ValueError as e:
        console.print(f"[red]Invalid session file: {escape(str(e))}[/red]")
        raise typer.Exit(1)


def _feedback(text: str) -> None:
    console.print(f"[dim]{escape(text)}[/dim]", highlight=False)


# ============================================================================
# Compaction
# ============================================================================


@app.command()
def compress(
    session_file: Path = typer.Argument(..., help="Session JSONL file"),
    goal: str = typer.Option(None, "--goal", "-g", help="Focus the summary on this goal"),
    auto: bool = typer.Option(False, "--auto", help="Skip the goal prompt"),
    model: str = typer.Option(None, "--model", "-m", help="Model (default from config)"),
    config_path: Path = typer.Option(None, "--config", help="Config file"),
    dry_run: bool = typer.Option(False, "--dry-run", help="Do not write the compacted session"),
):
    """Compact a stored session now."""
    from chatcompact.cli.tui import RichChoicePrompt
    from chatcompact.compaction.engine import CompactionEngine
    from chatcompact.compaction.selection import options_for_goal
    from chatcompact.compaction.types import CompressionStatus
    from chatcompact.providers.litellm_provider import LiteLLMProvider
    from chatcompact.session.manager import save_session_file
    from chatcompact.telemetry.logger import TelemetryLogger

    store = _load_store(config_path)
    config = store.config
    session = _load_session(session_file)
    model = model or config.agents.defaults.model

    provider = LiteLLMProvider(api_key=config.provider.api_key or None, default_model=model)
    telemetry = TelemetryLogger(config.telemetry.path, enabled=config.telemetry.enabled)
    engine = CompactionEngine(
        session, provider, store, model=model, telemetry=telemetry, on_feedback=_feedback,
    )
    prompt_id = f"compress-{int(time.time() * 1000)}"

    async def run():
        try:
            if goal is not None or auto:
                return await engine.try_compress(
                    prompt_id, force=True, options=options_for_goal(goal and goal.strip())
                )
            prompt = RichChoicePrompt(console) if sys.stdin.isatty() else None
            return await engine.compress_now(prompt_id, prompt)
        finally:
            engine.close()

    result = asyncio.run(run())

    status_style = "green" if result.status == CompressionStatus.COMPRESSED else "yellow"
    console.print(f"Status: [{status_style}]{result.status}[/{status_style}]")
    console.print(f"Tokens: {result.original_token_count} → {result.new_token_count}")
    if result.messages_compressed or result.messages_preserved:
        console.print(
            f"Messages: {result.messages_compressed} summarized, "
            f"{result.messages_preserved} kept"
        )
    if result.discarded_context_summary:
        console.print(f"Discarded: [dim]{escape(result.discarded_context_summary)}[/dim]")

    if result.status == CompressionStatus.COMPRESSED and not dry_run:
        save_session_file(session, session_file)
        console.print(f"[green]✓[/green] Saved {session_file}")
    elif result.status.is_failure:
        raise typer.Exit(1)


@app.command()
def evaluate(
    session_file: Path = typer.Argument(..., help="Session JSONL file"),
    messages: int = typer.Option(
        None, "--messages", help="Messages since last compression (default: user turns in the file)"
    ),
    model: str = typer.Option(None, "--model", "-m", help="Model (default from config)"),
    config_path: Path = typer.Option(None, "--config", help="Config file"),
):
    """Show whether the trigger would fire for a stored session."""
    from chatcompact.agent.tokens import estimate_messages_tokens, token_limit
    from chatcompact.compaction.guard import GuardState
    from chatcompact.compaction.trigger import evaluate_trigger
    from chatcompact.session.messages import USER

    config = _load_store(config_path).config
    session = _load_session(session_file)
    history = session.get_history()
    model = model or config.agents.defaults.model

    if messages is None:
        messages = sum(1 for m in history if m.role == USER and not m.has_tool_result)

    tokens = estimate_messages_tokens(history, session.system_prompt)
    max_tokens = token_limit(model, config.agents.defaults.max_context_tokens)
    guard = GuardState(messages_since_last_compress=messages)
    decision = evaluate_trigger(tokens, max_tokens, guard, config.compression)
    cfg = config.compression

    table = Table(title="Compaction Trigger")
    table.add_column("Check", style="cyan")
    table.add_column("Value")
    table.add_column("Threshold")
    table.add_row("Tokens", str(tokens), str(cfg.trigger_tokens))
    table.add_row(
        "Utilization",
        f"{tokens / max_tokens:.1%}" if max_tokens else "n/a",
        f"{cfg.trigger_utilization:.0%} of {max_tokens}",
    )
    table.add_row("Messages", str(messages), str(cfg.min_messages_since_last_compress))
    console.print(table)

    verdict = "[green]compress[/green]" if decision.should_compress else "[dim]skip[/dim]"
    valve = " (safety valve)" if decision.is_safety_valve else ""
    console.print(f"Decision: {verdict}{valve} - {decision.reason}")


@app.command()
def plan(
    session_file: Path = typer.Argument(..., help="Session JSONL file"),
    strategy: str = typer.Option("percentage", "--strategy", "-s", help="percentage or since-last-prompt"),
    preserve_threshold: float = typer.Option(None, "--preserve", help="Fraction of history to keep"),
    config_path: Path = typer.Option(None, "--config", help="Config file"),
):
    """Show where a stored session would be split."""
    from chatcompact.compaction.split import plan_split
    from chatcompact.compaction.types import PreserveStrategy
    from chatcompact.errors import SplitError

    config = _load_store(config_path).config
    session = _load_session(session_file)
    history = session.get_history()

    try:
        requested = PreserveStrategy(strategy)
    except ValueError:
        console.print(f"[red]Unknown strategy '{strategy}'. Use percentage or since-last-prompt[/red]")
        raise typer.Exit(1)

    try:
        split = plan_split(
            history,
            requested,
            preserve_threshold=preserve_threshold if preserve_threshold is not None
            else config.compression.preserve_threshold,
            min_messages_to_compress=config.compression.min_messages_to_compress,
        )
    except SplitError as e:
        console.print(f"[red]Error: {escape(str(e))}[/red]")
        raise typer.Exit(1)

    if split.strategy != requested:
        console.print(f"[yellow]{requested} split not possible, using {split.strategy}[/yellow]")
    console.print(f"Split index: {split.split_index} of {len(history)}")
    console.print(f"Compress: {len(split.history_to_compress)} messages")
    console.print(f"Keep: {len(split.history_to_keep)} messages")


# ============================================================================
# Config
# ============================================================================

config_app = typer.Typer(help="Manage compaction settings")
app.add_typer(config_app, name="config")


@config_app.command("list")
def config_list(
    config_path: Path = typer.Option(None, "--config", help="Config file"),
):
    """List compaction settings."""
    from chatcompact.config.schema import SETTING_PATHS

    store = _load_store(config_path)

    table = Table(title="Compaction Settings")
    table.add_column("Setting", style="cyan")
    table.add_column("Value")
    for name in SETTING_PATHS:
        table.add_row(name, str(store.get(name)))
    console.print(table)


@config_app.command("get")
def config_get(
    name: str = typer.Argument(..., help="Setting name, e.g. compressionTriggerTokens"),
    config_path: Path = typer.Option(None, "--config", help="Config file"),
):
    """Print one setting."""
    from chatcompact.errors import ConfigError

    store = _load_store(config_path)
    try:
        console.print(str(store.get(name)))
    except (ConfigError, ValueError) as e:
        console.print(f"[red]Error: {escape(str(e))}[/red]")
        raise typer.Exit(1)


@config_app.command("set")
def config_set(
    name: str = typer.Argument(..., help="Setting name, e.g. compressionTriggerTokens"),
    value: str = typer.Argument(..., help="New value"),
    config_path: Path = typer.Option(None, "--config", help="Config file"),
):
    """Change one setting and save it."""
    from chatcompact.errors import ConfigError

    store = _load_store(config_path)
    try:
        store.set(name, value)
    except ConfigError as e:
        console.print(f"[red]Error: {escape(str(e))}[/red]")
        raise typer.Exit(1)
    console.print(f"[green]✓[/green] {name} = {store.get(name)}")


if __name__ == "__main__":
    app()
