"""Rich console rendering and markdown file save for conversation transcripts."""

import logging
import re
from collections.abc import Sequence
from datetime import datetime
from pathlib import Path

from rich.console import Console, Group
from rich.markdown import Markdown
from rich.panel import Panel
from rich.rule import Rule
from rich.table import Table
from rich.text import Text

from swarmstudio.models import REFEREE_ID, Agent, RunSummary, TranscriptEntry, UsageTotals

logger = logging.getLogger(__name__)

console = Console(legacy_windows=False)

AGENT_COLORS = ["cyan", "magenta", "green", "blue", "bright_red", "bright_cyan"]
REFEREE_COLOR = "yellow"


def _slug(text: str, max_len: int = 40) -> str:
    """Convert text to a filename-safe slug."""
    slug = re.sub(r"[^\w\s-]", "", text.lower())
    slug = re.sub(r"[\s_-]+", "-", slug).strip("-")
    return slug[:max_len]


def _entry_label(entry: TranscriptEntry) -> str:
    return "Resolution" if entry.is_referee else f"Round {entry.round}"


def _entry_color(entry: TranscriptEntry, color_index: dict[str, int]) -> str:
    if entry.is_referee:
        return REFEREE_COLOR
    return AGENT_COLORS[color_index.get(entry.agent_id, 0) % len(AGENT_COLORS)]


def render_entry(entry: TranscriptEntry, color: str, streaming: bool = False) -> Panel:
    """Render one transcript entry as a panel."""
    title = f"[bold]{entry.agent_name}[/bold]"
    if entry.is_referee:
        title = f"[bold]Referee: {entry.agent_name}[/bold]"

    if entry.is_error:
        body = Text(entry.content, style="italic red")
    else:
        body = Text(entry.content + (" ▌" if streaming else ""))

    return Panel(
        body,
        title=title,
        title_align="left",
        subtitle=_entry_label(entry),
        subtitle_align="right",
        border_style="red" if entry.is_error else color,
    )


def render_transcript(
    entries: Sequence[TranscriptEntry],
    agents: Sequence[Agent],
    streaming_id: str | None = None,
) -> Group:
    """Render the transcript, marking the last entry of `streaming_id` as live."""
    color_index = {a.id: i for i, a in enumerate(agents)}
    panels = []
    for i, entry in enumerate(entries):
        live = streaming_id is not None and i == len(entries) - 1 and entry.agent_id == streaming_id
        panels.append(render_entry(entry, _entry_color(entry, color_index), streaming=live))
    return Group(*panels)


def usage_table(
    usage: dict[str, UsageTotals],
    agents: Sequence[Agent],
    referee: Agent | None = None,
) -> Table:
    """Token usage per participant. No cost estimation."""
    table = Table(title="Token Usage", title_style="bold", show_lines=False)
    table.add_column("Agent")
    table.add_column("Provider")
    table.add_column("Model")
    table.add_column("Input Tokens", justify="right")
    table.add_column("Output Tokens", justify="right")

    rows: list[tuple[str, Agent]] = [(a.id, a) for a in agents]
    if referee is not None and REFEREE_ID in usage:
        rows.append((REFEREE_ID, referee))

    total = UsageTotals()
    for identity, agent in rows:
        totals = usage.get(identity, UsageTotals())
        total = UsageTotals(
            total.input_tokens + totals.input_tokens,
            total.output_tokens + totals.output_tokens,
        )
        name = agent.name if identity != REFEREE_ID else f"{agent.name or 'Referee'} (referee)"
        table.add_row(
            name,
            agent.provider,
            agent.effective_model,
            f"{totals.input_tokens:,}",
            f"{totals.output_tokens:,}",
        )

    if not rows:
        table.add_row("No data yet.", "", "", "", "")
    else:
        table.add_row("[bold]Total[/bold]", "", "", f"{total.input_tokens:,}", f"{total.output_tokens:,}")
    return table


def print_resolution(entry: TranscriptEntry) -> None:
    """Print the referee's verdict to the console using Rich markdown."""
    console.print(Rule(f"[bold {REFEREE_COLOR}]Resolution[/bold {REFEREE_COLOR}]"))
    if entry.is_error:
        console.print(Text(entry.content, style="italic red"))
        return
    console.print(Text(f"Resolved by: {entry.agent_name}", style="dim"))
    console.print(Markdown(entry.content))


def save_to_file(summary: RunSummary, output_dir: Path, slug_override: str | None = None) -> Path:
    """Save the full conversation transcript as a markdown file.

    Args:
        summary: The finished run.
        output_dir: Directory to save the file in.
        slug_override: If provided, use this as the filename stem instead of
            deriving one from the prompt text. Useful for prompt files.

    Returns:
        Path to the saved file.
    """
    output_dir.mkdir(parents=True, exist_ok=True)

    timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
    slug = slug_override if slug_override is not None else _slug(summary.prompt)
    filepath = output_dir / f"{timestamp}_{slug}.md"

    panel_str = ", ".join(
        f"{a.name} ({a.provider}/{a.effective_model})" for a in summary.agents
    )
    status = "cancelled" if summary.cancelled else "complete"

    lines: list[str] = [
        f"# Swarm Studio Conversation: {summary.prompt[:80]}",
        "",
        f"**Date:** {datetime.now().strftime('%Y-%m-%d %H:%M:%S')}",
        f"**Agents:** {panel_str}",
        f"**Rounds:** {summary.total_rounds}",
        f"**Status:** {status}",
        f"**Duration:** {summary.duration_sec:.1f}s",
        f"**Source:** {summary.source}",
        "",
        "## Prompt",
        "",
        summary.prompt,
        "",
        "---",
        "",
    ]

    last_round: int | None = None
    for entry in summary.transcript:
        if entry.is_referee:
            lines.append(f"## Resolution (by {entry.agent_name})")
            lines.append("")
            lines.append(entry.content)
            lines.append("")
            continue
        if entry.round != last_round:
            last_round = entry.round
            lines.append(f"## Round {entry.round}")
            lines.append("")
        lines.append(f"### {entry.agent_name}" + (" (error)" if entry.is_error else ""))
        lines.append("")
        lines.append(entry.content)
        lines.append("")

    lines += ["## Token Usage", "", "| Participant | Input | Output |", "| --- | ---: | ---: |"]
    names = {a.id: a.name for a in summary.agents}
    if summary.referee is not None:
        names[REFEREE_ID] = f"{summary.referee.name or 'Referee'} (referee)"
    for identity, totals in summary.usage.items():
        lines.append(f"| {names.get(identity, identity)} | {totals.input_tokens} | {totals.output_tokens} |")
    lines.append("")

    filepath.write_text("\n".join(lines), encoding="utf-8")
    logger.info("Transcript saved to: %s", filepath)
    return filepath
