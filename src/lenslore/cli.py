"""LensLore CLI - identify landmarks from the terminal."""

from __future__ import annotations

import asyncio
import json
import sys
from typing import Optional

import typer
from rich.console import Console
from rich.prompt import Prompt

from lenslore import __version__
from lenslore.capture import load_image
from lenslore.common.errors import InvalidImageError
from lenslore.common.events import Event
from lenslore.common.logging import get_logger, setup_logging
from lenslore.config import Config, load_config
from lenslore.models import AnalysisState, Status
from lenslore.orchestrator import Orchestrator
from lenslore.views import loading_message, render, state_to_dict

app = typer.Typer(
    name="lenslore",
    help="Snap a landmark, hear its story.",
    no_args_is_help=True,
)
console = Console()
logger = get_logger("cli")


def get_config(config_path: str | None = None, mock: bool = False, verbose: bool = False) -> Config:
    """Load configuration and set up logging for a command."""
    cfg = load_config(config_path)
    if mock:
        cfg.mock_mode = True
    if verbose:
        cfg.app.log_level = "DEBUG"

    setup_logging(
        level=cfg.app.log_level,
        json_output=cfg.app.mode == "production",
    )
    return cfg


async def run_with_spinner(orchestrator: Orchestrator, image) -> AnalysisState:
    """Run one analysis while a spinner follows the status events."""
    with console.status(loading_message(Status.ANALYZING_IMAGE), spinner="dots") as spinner:

        async def on_status(event: Event) -> None:
            status = Status(event.data["status"])
            if status.is_loading:
                spinner.update(loading_message(status))

        unsubscribe = orchestrator.events.subscribe("analysis.status", on_status)
        try:
            return await orchestrator.start_analysis(image)
        finally:
            unsubscribe()


async def play_to_end(orchestrator: Orchestrator) -> None:
    """Play the narration once and wait until it finishes."""
    buffer = orchestrator.player.buffer
    if buffer is None:
        return

    finished = asyncio.Event()

    async def on_playback(event: Event) -> None:
        if not event.data["playing"]:
            finished.set()

    unsubscribe = orchestrator.events.subscribe("audio.playback", on_playback)
    try:
        if not orchestrator.toggle_audio():
            return
        console.print(f"[dim]Playing narration ({buffer.duration:.1f}s)...[/]")
        try:
            await asyncio.wait_for(finished.wait(), timeout=buffer.duration + 1.0)
        except asyncio.TimeoutError:
            pass
    finally:
        orchestrator.player.stop()
        unsubscribe()


async def ask(prompt: str, default: str = "") -> str:
    """Prompt without blocking the event loop (playback events keep flowing)."""
    loop = asyncio.get_running_loop()
    answer = await loop.run_in_executor(
        None, lambda: Prompt.ask(prompt, default=default, console=console)
    )
    return (answer or "").strip()


@app.command()
def identify(
    image: str = typer.Argument(..., help="Image file, or - to read from stdin"),
    mock: bool = typer.Option(False, "--mock", help="Use canned providers (no network)"),
    json_output: bool = typer.Option(False, "--json", help="Print the result as JSON"),
    play: bool = typer.Option(False, "--play/--no-play", help="Play the narration when done"),
    config_path: Optional[str] = typer.Option(None, "--config", "-c", help="Config file"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Debug logging"),
):
    """Identify the landmark in one photo."""
    cfg = get_config(config_path, mock, verbose)

    try:
        captured = load_image(image)
    except InvalidImageError as e:
        console.print(f"[red]Error:[/] {e.message}")
        sys.exit(1)

    async def _identify():
        orchestrator = Orchestrator.from_config(cfg)
        state = await run_with_spinner(orchestrator, captured)

        if json_output:
            print(json.dumps(state_to_dict(state), indent=2))
        else:
            console.print(render(state, orchestrator.is_playing))

        if state.status is Status.ERROR:
            sys.exit(1)

        if play:
            await play_to_end(orchestrator)

    asyncio.run(_identify())


@app.command()
def run(
    mock: bool = typer.Option(False, "--mock", help="Use canned providers (no network)"),
    config_path: Optional[str] = typer.Option(None, "--config", "-c", help="Config file"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Debug logging"),
):
    """Interactive session: analyze photos one after another."""
    cfg = get_config(config_path, mock, verbose)

    async def _session():
        orchestrator = Orchestrator.from_config(cfg)
        logger.info("session_started", mock_mode=cfg.mock_mode)

        while True:
            console.print(render(orchestrator.state))
            path = await ask("Image path ([bold]q[/] to quit)")
            if not path or path.lower() == "q":
                break

            try:
                captured = load_image(path)
            except InvalidImageError as e:
                console.print(f"[red]Error:[/] {e.message}")
                continue

            await run_with_spinner(orchestrator, captured)

            if not await _result_loop(orchestrator):
                break

        orchestrator.reset()
        logger.info("session_ended")

    try:
        asyncio.run(_session())
    except (KeyboardInterrupt, EOFError):
        console.print()


async def _result_loop(orchestrator: Orchestrator) -> bool:
    """Handle Complete/Error screens.

    Returns:
        False when the user quits.
    """
    while True:
        state = orchestrator.state
        console.print(render(state, orchestrator.is_playing))

        if state.status is Status.COMPLETE:
            choice = await ask("\\[p] play/pause  \\[r] new photo  \\[q] quit", default="p")
        else:
            choice = await ask("\\[r] try again  \\[q] quit", default="r")

        choice = choice.lower()
        if choice == "p" and state.status is Status.COMPLETE:
            orchestrator.toggle_audio()
        elif choice == "r":
            orchestrator.reset()
            return True
        elif choice == "q":
            return False


@app.command()
def config(
    json_output: bool = typer.Option(False, "--json", help="Print as JSON"),
    config_path: Optional[str] = typer.Option(None, "--config", "-c", help="Config file"),
):
    """Show configuration."""
    cfg = get_config(config_path)

    if json_output:
        print(json.dumps(cfg.masked(), indent=2, default=str))
        return

    console.print("[bold]Configuration[/]")
    console.print(f"  Mode: {cfg.app.mode}")
    console.print(f"  Mock Mode: {cfg.mock_mode}")
    console.print(f"  API Key: {'set' if cfg.genai.api_key else '[red]missing[/]'}")
    console.print("\n[bold]Models[/]")
    console.print(f"  Vision: {cfg.genai.vision_model}")
    console.print(f"  Details: {cfg.genai.details_model}")
    console.print(f"  Speech: {cfg.genai.tts_model} (voice {cfg.genai.voice})")
    console.print("\n[bold]Timeouts[/]")
    console.print(f"  Vision: {cfg.genai.vision_timeout_seconds:g}s")
    console.print(f"  Details: {cfg.genai.details_timeout_seconds:g}s")
    console.print(f"  Narration: {cfg.genai.narration_timeout_seconds:g}s")


@app.command()
def version():
    """Show version information."""
    console.print(f"[bold]LensLore[/] v{__version__}")


def main():
    """Main entry point."""
    app()


if __name__ == "__main__":
    main()
