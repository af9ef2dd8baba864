"""Rich live display: one panel per deliberation stage, updating in real time.

The display only reads an asyncio.Queue of AgentEvents. The orchestrator
puts events into the queue and never checks whether anyone is reading.

Usage:
    event_queue = asyncio.Queue()
    display = LiveDisplay(stage_names)

    with display.make_live() as live:
        session = asyncio.create_task(orchestrator.run_reasoning_loop(signals, [], event_queue=event_queue))
        consumer = asyncio.create_task(display.consume(event_queue, live))
        result = await session
        await event_queue.put(None)  # sentinel, tells consume() to stop
        await consumer
"""

import asyncio
from dataclasses import dataclass, field

from rich.columns import Columns
from rich.console import Group
from rich.live import Live
from rich.panel import Panel
from rich.text import Text

from schemas.events import AgentEvent, EventType

# status -> (header icon, border style)
_STATUS_STYLES: dict[str, tuple[str, str]] = {
    "waiting": ("[dim]○[/dim]", "dim"),
    "running": ("[bold yellow]●[/bold yellow]", "yellow"),
    "complete": ("[bold green]✓[/bold green]", "green"),
    "cached": ("[bold cyan]↺[/bold cyan]", "cyan"),
    "error": ("[bold red]✗[/bold red]", "red"),
}


# ── Per-stage state ───────────────────────────────────────────────────────────

@dataclass
class _StageState:
    """Mutable state for one stage's panel."""
    name: str
    status: str = "waiting"    # waiting | running | complete | cached | error
    elapsed_ms: float = 0.0
    messages: list[str] = field(default_factory=list)


# ── Display ───────────────────────────────────────────────────────────────────

class LiveDisplay:
    """Manages the Rich live layout and subscribes to the event queue.

    Attributes:
        _states: Stage name -> _StageState, updated as events arrive.
        _order:  Stage names in pipeline order. Panels render in this order.
    """

    def __init__(self, stage_names: list[str]) -> None:
        self._states = {name: _StageState(name=name) for name in stage_names}
        self._order = list(stage_names)

    def make_live(self) -> Live:
        """Return a Rich Live context manager ready to use with `with`."""
        return Live(self._render(), refresh_per_second=12, transient=False)

    async def consume(self, queue: asyncio.Queue, live: Live) -> None:
        """Read events from the queue and update the display until the None sentinel."""
        while True:
            event = await queue.get()
            if event is None:
                break
            self.apply(event)
            live.update(self._render())

    def apply(self, event: AgentEvent) -> None:
        """Update stage state from an incoming event."""
        if event.event_type == EventType.CACHE_HIT:
            # No agent ran; every stage shows the reused session.
            for state in self._states.values():
                state.status = "cached"
                state.elapsed_ms = event.timestamp_ms
                state.messages = [f"↺ {event.message}"]
            return

        state = self._states.get(event.agent_name)
        if state is None:
            return

        state.elapsed_ms = event.timestamp_ms

        if event.event_type == EventType.STARTED:
            state.status = "running"
            state.messages.append("analyzing...")

        elif event.event_type == EventType.COMPLETE:
            state.status = "complete"
            state.messages.append(f"✓ {event.message}")

        elif event.event_type == EventType.ERROR:
            state.status = "error"
            state.messages.append(f"✗ {event.message}")

        state.messages = state.messages[-4:]

    def status_of(self, name: str) -> str:
        return self._states[name].status

    def progress(self) -> tuple[int, int]:
        """(stages finished, total stages). Cached stages count as finished."""
        done = sum(1 for s in self._states.values() if s.status in ("complete", "cached"))
        return done, len(self._states)

    # ── Private ───────────────────────────────────────────────────────────────

    def _render_panel(self, position: int, state: _StageState) -> Panel:
        icon, border = _STATUS_STYLES.get(state.status, _STATUS_STYLES["waiting"])
        body = [Text.from_markup(f"[dim][{state.elapsed_ms / 1000:.2f}s][/dim]  {icon}")]
        body.extend(Text(f"  {msg}", style="dim") for msg in state.messages)
        return Panel(
            Group(*body),
            title=f"[bold]{position}. {state.name}[/bold]",
            border_style=border,
            width=48,
        )

    def _render_footer(self) -> Text:
        done, total = self.progress()
        failed = next((s.name for s in self._states.values() if s.status == "error"), None)
        if failed:
            return Text(f"session aborted at {failed}", style="bold red")
        return Text(f"{done}/{total} stages finished", style="dim")

    def _render(self) -> Group:
        """Panels in rows of two, then a one-line progress footer."""
        panels = [self._render_panel(i, self._states[name]) for i, name in enumerate(self._order, start=1)]
        rows = [Columns(panels[i : i + 2], equal=True) for i in range(0, len(panels), 2)]
        return Group(*rows, self._render_footer())
