"""Rich console output for debate snapshots."""

import logging

from rich.console import Console
from rich.markdown import Markdown
from rich.panel import Panel
from rich.rule import Rule
from rich.text import Text

from hippodrome.models import DebateState

logger = logging.getLogger(__name__)

console = Console(legacy_windows=False)


def _preview(text: str, words: int = 50) -> str:
    """Return first N words of an answer."""
    all_words = text.split()
    preview = " ".join(all_words[:words])
    if len(all_words) > words:
        preview += "..."
    return preview


def round_label(index: int, max_rounds: int) -> str:
    if index < max_rounds:
        return f"Round {index + 1}"
    if index == max_rounds:
        return "Consensus Proposal"
    return f"Vote {index - max_rounds}"


def print_answers(title: str, answers: dict[str, str]) -> None:
    console.print(Rule(f"[bold cyan]{title}[/bold cyan]"))
    for name, text in answers.items():
        style = "red" if text.startswith("Error: ") else "dim"
        console.print(Panel(_preview(text), title=f"[bold]{name}[/bold]", border_style=style))


def print_debate(state: DebateState, max_rounds: int) -> None:
    """Print initial answers and every round of a finished debate."""
    print_answers("Initial Responses", state.initial_answers)
    for index, rnd in enumerate(state.rounds):
        print_answers(round_label(index, max_rounds), rnd)


def print_final(state: DebateState, duration_sec: float | None = None) -> None:
    console.print(Rule("[bold green]Final Answer[/bold green]"))
    method = "forced (voting)" if state.escalated else "consensus"
    meta = f"Method: {method} | Rounds: {len(state.rounds)} | Models: {state.total_participants}"
    if duration_sec is not None:
        meta += f" | Duration: {duration_sec:.1f}s"
    console.print(Text(meta, style="dim"))
    console.print(Markdown(state.final_answer or "_No final answer_"))
