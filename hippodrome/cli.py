"""Click CLI — run a debate in the terminal or serve the streaming API."""

import asyncio
import logging
import sys
import time
from pathlib import Path

import click
from dotenv import load_dotenv
from rich.console import Console
from rich.logging import RichHandler
from rich.progress import Progress, SpinnerColumn, TextColumn, TimeElapsedColumn

from config.config_loader import AppConfig, load_config
from hippodrome.channel import UpdateChannel
from hippodrome.models import DebateRequest, DebateState
from hippodrome.orchestrator import run_debate
from hippodrome.output import print_debate, print_final, round_label
from hippodrome.request import RequestError, parse_request

logger = logging.getLogger(__name__)

console = Console(legacy_windows=False)


def _setup_logging(verbose: bool) -> None:
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(message)s",
        handlers=[RichHandler(rich_tracebacks=True, show_path=False)],
    )
    # openai/httpx log every request at INFO
    logging.getLogger("httpx").setLevel(logging.WARNING)


def _load(settings: str | None) -> AppConfig:
    try:
        return load_config(Path(settings)) if settings else load_config()
    except (FileNotFoundError, KeyError, ValueError) as exc:
        console.print(f"[bold red]Config error:[/bold red] {exc}")
        sys.exit(1)


def describe_progress(state: DebateState, max_rounds: int) -> str:
    """One-line status for the spinner."""
    if state.is_terminal:
        return "Final answer committed"
    if not state.rounds:
        done = len(state.initial_answers)
        return f"Initial answers: {done}/{state.total_participants}"
    index = len(state.rounds) - 1
    answered = len(state.rounds[-1])
    return f"{round_label(index, max_rounds)}: {answered} answer(s)"


async def _run_in_terminal(request: DebateRequest, config: AppConfig) -> DebateState | None:
    channel = UpdateChannel()
    task = asyncio.create_task(run_debate(request, config, channel))
    last: DebateState | None = None

    with Progress(
        SpinnerColumn(),
        TextColumn("[progress.description]{task.description}"),
        TimeElapsedColumn(),
        console=console,
        transient=True,
    ) as progress:
        bar = progress.add_task("Starting debate...", total=None)
        async for state in channel:
            last = state
            progress.update(bar, description=describe_progress(state, config.debate.max_rounds))

    await task
    return last


@click.group()
@click.option("--settings", default=None, type=click.Path(exists=True, dir_okay=False),
              help="Path to settings.yaml (default: bundled settings)")
@click.option("--verbose", is_flag=True, help="Enable DEBUG-level logging")
@click.pass_context
def main(ctx: click.Context, settings: str | None, verbose: bool) -> None:
    """LLM Hippodrome -- models debate until they agree.

    \b
    Examples:
      hippodrome debate "Is a hot dog a sandwich?" -m google/gemma-3-27b-it -m mistralai/mistral-7b-instruct
      hippodrome debate "Tabs or spaces?" -m meta-llama/llama-3.2-3b-instruct -m qwen/qwq-32b --stream
      hippodrome serve --port 8000
    """
    load_dotenv()
    _setup_logging(verbose)
    ctx.ensure_object(dict)
    ctx.obj["settings"] = settings


@main.command()
@click.argument("topic")
@click.option("-m", "--model", "models", multiple=True, required=True,
              help="Model identifier; repeat for every participant (at least 2)")
@click.option("--stream", "use_stream", is_flag=True,
              help="Use streaming transport for every participant")
@click.option("--api-key", default=None, help="Credential (default: from environment)")
@click.pass_context
def debate(ctx: click.Context, topic: str, models: tuple[str, ...], use_stream: bool,
           api_key: str | None) -> None:
    """Run one debate and print the transcript and final answer."""
    config = _load(ctx.obj["settings"])
    transport = "streaming" if use_stream else "buffered"
    payload = {
        "topic": topic,
        "participants": [{"identifier": m, "transport": transport} for m in models],
    }
    try:
        request = parse_request(payload, header_credential=api_key,
                                env_credential=config.env_credential())
    except RequestError as exc:
        console.print(f"[bold red]Error:[/bold red] {exc}. Need a topic and at least 2 --model values, "
                      f"plus {config.gateway.api_key_env} in .env or --api-key.")
        sys.exit(1)

    names = ", ".join(p.display_name for p in request.participants)
    console.print(f"\n[bold cyan]LLM Hippodrome[/bold cyan] — {len(request.participants)} models")
    console.print(f"Panel: {names}")
    console.print(f"Topic: [italic]{topic[:80]}{'...' if len(topic) > 80 else ''}[/italic]\n")

    start = time.monotonic()
    final = asyncio.run(_run_in_terminal(request, config))
    if final is None:
        console.print("[bold red]Error:[/bold red] Debate produced no output.")
        sys.exit(1)

    print_debate(final, config.debate.max_rounds)
    print_final(final, time.monotonic() - start)


@main.command()
@click.option("--host", default=None, help="Bind address (default: from settings)")
@click.option("--port", default=None, type=int, help="Port (default: from settings)")
@click.pass_context
def serve(ctx: click.Context, host: str | None, port: int | None) -> None:
    """Serve POST /api/debate over HTTP."""
    import uvicorn

    from hippodrome.server import create_app

    config = _load(ctx.obj["settings"])
    uvicorn.run(
        create_app(config),
        host=host or config.server.host,
        port=port or config.server.port,
        log_config=None,
    )


if __name__ == "__main__":
    main()
