"""
StepForge - CLI Entry Point.

Configuration Priority:
    1. CLI arguments (--simple, --headless, etc.)
    2. Environment variables (STEPFORGE__RECORDER__SMART, etc.)
    3. Config file (stepforge.yaml)

Usage:
    stepforge record example.com --feature Login
    stepforge dedupe recordings/Login.json --write
"""

import asyncio
import sys
from pathlib import Path
from typing import Any, Dict, Optional

import typer
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from stepforge import __version__
from stepforge.config import Settings, load_config
from stepforge.exceptions import StepForgeError
from stepforge.recorder import (
    ActionDeduplicator,
    BrowserRecorder,
    RecordingSession,
    save_session,
)
from stepforge.recorder.session import normalize_url
from stepforge.utils.logging import setup_logging

app = typer.Typer(
    name="stepforge",
    help="Record browser interactions as replayable UI actions",
    add_completion=False,
)

console = Console()

COMMAND_HELP = (
    "Commands: stop | pause | resume | clear | undo | "
    "new feature <name> | rename <name> | navigate <url>"
)


def _load_settings(
    config: Optional[Path],
    verbose: bool,
    overrides: Dict[str, Any],
) -> Settings:
    try:
        settings = load_config(config_path=config, **overrides)
    except StepForgeError as e:
        console.print(f"[red]Configuration error: {e}[/red]")
        raise typer.Exit(2)
    level = "DEBUG" if verbose or settings.debug else settings.logging.level
    setup_logging(level, settings.logging.file, settings.logging.json_format)
    return settings


@app.command()
def record(
    url: str = typer.Argument(..., help="Page to start recording on"),
    feature: Optional[str] = typer.Option(None, "--feature", "-f", help="Feature name"),
    output: Optional[Path] = typer.Option(None, "--output", "-o", help="Directory for session files"),
    simple: bool = typer.Option(False, "--simple", help="Use the simple selector fidelity"),
    headless: bool = typer.Option(False, "--headless", help="Run without a visible browser"),
    config: Optional[Path] = typer.Option(None, "--config", "-c", help="Path to config file"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable verbose output"),
):
    """
    Record interactions until `stop` is typed.

    Each completed feature is written to <output>/<Feature>.json.
    """
    overrides: Dict[str, Any] = {}
    if simple:
        overrides["recorder"] = {"smart": False}
    if headless:
        overrides["browser"] = {"headless": True}
    if output:
        overrides["output"] = {"output_dir": str(output)}
    settings = _load_settings(config, verbose, overrides)

    start_url = normalize_url(url)
    console.print(Panel.fit(
        f"[bold blue]StepForge Recorder[/bold blue]\n"
        f"[dim]URL:[/dim] {start_url}\n"
        f"[dim]Feature:[/dim] {feature or settings.output.default_feature}\n"
        f"[dim]Selectors:[/dim] {'smart' if settings.recorder.smart else 'simple'}\n"
        f"[dim]{COMMAND_HELP}[/dim]",
        border_style="blue",
    ))

    try:
        asyncio.run(_record_async(settings, start_url, feature))
    except KeyboardInterrupt:
        console.print("[dim]Interrupted[/dim]")


async def _record_async(settings: Settings, start_url: str, feature: Optional[str]) -> None:
    from playwright.async_api import async_playwright

    def write_feature(session: RecordingSession) -> None:
        path = save_session(session, settings.output.output_dir)
        console.print(f"[green]Saved {len(session.actions)} actions to {path}[/green]")

    recorder = BrowserRecorder(settings, on_feature_complete=write_feature)

    async with async_playwright() as p:
        browser_type = getattr(p, settings.browser.browser_type)
        launch_args: Dict[str, Any] = {
            "headless": settings.browser.headless,
            "slow_mo": settings.browser.slow_mo,
        }
        if settings.browser.channel:
            launch_args["channel"] = settings.browser.channel
        browser = await browser_type.launch(**launch_args)
        try:
            context = await browser.new_context(viewport={
                "width": settings.browser.viewport_width,
                "height": settings.browser.viewport_height,
            })
            page = await context.new_page()
            await recorder.start(page, feature, start_url=start_url)

            while recorder.is_recording:
                line = await asyncio.to_thread(sys.stdin.readline)
                if not line:
                    # stdin closed
                    await recorder.process_command("stop")
                    break
                if line.strip():
                    await recorder.process_command(line)
        finally:
            await browser.close()


@app.command()
def dedupe(
    file_path: Path = typer.Argument(..., help="Saved session JSON file"),
    write: bool = typer.Option(False, "--write", "-w", help="Overwrite the file with the result"),
    config: Optional[Path] = typer.Option(None, "--config", "-c", help="Path to config file"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable verbose output"),
):
    """Re-run the deduplicator over a saved session."""
    settings = _load_settings(config, verbose, {})

    try:
        session = RecordingSession.from_json(file_path.read_text(encoding="utf-8"))
    except (OSError, ValueError, KeyError, StepForgeError) as e:
        console.print(f"[red]Cannot read session {file_path}: {e}[/red]")
        raise typer.Exit(1)

    deduplicator = ActionDeduplicator(
        click_window_ms=settings.dedup.click_window_ms,
        enter_window_ms=settings.dedup.enter_window_ms,
    )
    kept = deduplicator.deduplicate(session.actions)

    table = Table(title=f"{session.name}: {len(kept)} of {len(session.actions)} actions kept")
    table.add_column("#", justify="right", style="dim")
    table.add_column("Action", style="cyan")
    table.add_column("Locator")
    table.add_column("Value", style="green")
    for index, action in enumerate(kept, 1):
        table.add_row(
            str(index),
            action.action_type.value,
            str(action.locator) if action.locator else "",
            action.value or "",
        )
    console.print(table)

    if write:
        session.actions = kept
        file_path.write_text(session.to_json(), encoding="utf-8")
        console.print(f"[green]Wrote {file_path}[/green]")


@app.command()
def version():
    """Show version information."""
    console.print(f"[bold]StepForge[/bold] v{__version__}")


if __name__ == "__main__":
    app()
