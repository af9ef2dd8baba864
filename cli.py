"""Disaster Pulse CLI demo runner.

Runs the five-stage reasoning chain over a fixture signal file and renders
live stage panels in the terminal using Rich, then prints the decision and
the source-diversity breakdown. Traces go to an in-memory store.

Usage:
    uv run python cli.py [fixtures/earthquake_signals.json]

Requires OPENROUTER_API_KEY (or MAIA_API_KEY with LLM_PROVIDER=maia).
"""

import asyncio
import json
import pathlib
import sys

from rich.console import Console
from rich.table import Table

from agents.base import AgentExecutionError
from core.cache import ReasoningCache
from core.config import Settings
from core.orchestrator import ReasoningChain, ReasoningOrchestrator
from display.live import LiveDisplay
from llm import PROVIDER_MODELS, create_client
from schemas.reasoning import ActionType, ReasoningResult
from schemas.signal import Signal
from store.memory import InMemoryStore

console = Console()

_FIXTURE = pathlib.Path(__file__).parent / "fixtures" / "earthquake_signals.json"


def load_fixture(path: pathlib.Path) -> tuple[str, list[Signal]]:
    with open(path, encoding="utf-8") as f:
        data = json.load(f)
    return data.get("description", path.stem), [Signal.model_validate(s) for s in data["signals"]]


# ── Results tables ────────────────────────────────────────────────────────────

def _print_results(result: ReasoningResult) -> None:
    conclusion = result.conclusion
    decision = result.decision
    mv = result.multi_vector

    conf_color = "green" if conclusion.confidence_score >= 0.8 else "yellow" if conclusion.confidence_score >= 0.6 else "red"
    sev_color = "red" if conclusion.severity == "high" else "yellow" if conclusion.severity == "medium" else "dim"

    table = Table(title="Decision", show_lines=True, border_style="bright_black")
    table.add_column("Field", style="dim", min_width=16)
    table.add_column("Value", min_width=48)
    table.add_row("Classification", f"[bold]{conclusion.final_classification}[/bold]")
    table.add_row("Title", conclusion.title)
    table.add_row("Severity", f"[{sev_color}]{conclusion.severity}[/{sev_color}]")
    table.add_row(
        "Confidence",
        f"{result.raw_confidence:.0%} raw → [{conf_color}]{conclusion.confidence_score:.0%}[/{conf_color}] adjusted",
    )
    table.add_row("Action", f"[bold]{decision.action.value}[/bold]")
    if decision.action == ActionType.MERGE_INCIDENT:
        table.add_row("Merge target", decision.target_incident_id or "-")
    table.add_row("Reason", decision.reason)

    sources = Table(title="Source Diversity", border_style="bright_black")
    for column in ("Official", "User", "Social", "News", "Total", "Bonus"):
        sources.add_column(column, justify="center")
    b = mv.source_breakdown
    sources.add_row(
        str(b.official), str(b.user_report), str(b.social_media), str(b.news), str(b.total),
        f"{mv.diversity_bonus:+.2f}",
    )

    console.print()
    console.print(table)
    console.print(sources)
    tag = " [cyan](from cache)[/cyan]" if result.from_cache else ""
    console.print(f"[dim]session: {result.session_id}[/dim]{tag}\n")


# ── Entry point ───────────────────────────────────────────────────────────────

async def _run(path: pathlib.Path) -> int:
    settings = Settings.from_env()
    description, signals = load_fixture(path)

    fast, reasoning = PROVIDER_MODELS[settings.llm_provider]
    chain = ReasoningChain().with_models(fast, reasoning)
    orchestrator = ReasoningOrchestrator(
        llm=create_client(settings.llm_provider),
        store=InMemoryStore(),
        cache=ReasoningCache(ttl_seconds=settings.reasoning_cache_ttl_seconds),
        chain=chain,
    )

    stages = [chain.observer.role, chain.classifier.role, chain.skeptic.role, chain.synthesizer.role, chain.action.role]
    display = LiveDisplay(stages)
    event_queue: asyncio.Queue = asyncio.Queue()

    console.rule("[bold]Disaster Pulse[/bold]")
    console.print(f"  scenario   [cyan]{description}[/cyan]")
    console.print(f"  signals    [cyan]{len(signals)}[/cyan]")
    console.print(f"  models     [cyan]{fast}[/cyan] / [cyan]{reasoning}[/cyan]")
    console.print()

    with display.make_live() as live:
        session = asyncio.create_task(
            orchestrator.run_reasoning_loop(signals, [], event_queue=event_queue)
        )
        consumer = asyncio.create_task(display.consume(event_queue, live))

        try:
            result = await session
        except AgentExecutionError as exc:
            result = None
            error = exc
        finally:
            await event_queue.put(None)   # sentinel: tell consumer to stop
            await consumer

    await orchestrator.drain_traces()

    if result is None:
        console.print(f"\n[bold red]✗ Reasoning session failed:[/bold red] {error}\n")
        return 1
    _print_results(result)
    return 0


def main() -> None:
    path = pathlib.Path(sys.argv[1]) if len(sys.argv) > 1 else _FIXTURE
    sys.exit(asyncio.run(_run(path)))


if __name__ == "__main__":
    main()
