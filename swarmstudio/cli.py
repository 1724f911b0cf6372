"""Click CLI: loads config, picks agents, runs the conversation, resolves and saves."""

import asyncio
import functools
import logging
import os
import signal
import sys
import time
from pathlib import Path

import click
from dotenv import load_dotenv
from rich.console import Console
from rich.live import Live
from rich.logging import RichHandler
from rich.progress import Progress, SpinnerColumn, TextColumn, TimeElapsedColumn

from config.config_loader import AgentConfig, AppConfig, load_config
from swarmstudio.conversation import Conversation
from swarmstudio.healthcheck import run_health_checks
from swarmstudio.models import Agent, RunSummary
from swarmstudio.output import print_resolution, render_transcript, save_to_file, usage_table
from swarmstudio.prompt_file import agent_ids_from_meta, parse_file
from swarmstudio.providers.base import StreamCall
from swarmstudio.providers.registry import build_registry, stream_chat

logger = logging.getLogger(__name__)

console = Console(legacy_windows=False)

MIN_AGENTS = 2
MAX_AGENTS = 6


def _setup_logging(verbose: bool) -> None:
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(message)s",
        handlers=[RichHandler(rich_tracebacks=True, show_path=False)],
    )


def _build_agent(cfg: AgentConfig) -> Agent:
    """Resolve an agent's credential from the environment."""
    return Agent(
        id=cfg.id,
        name=cfg.name,
        provider=cfg.provider,
        model=cfg.model,
        custom_model=cfg.custom_model,
        base_url=cfg.base_url,
        api_key=os.environ.get(cfg.api_key_env, "").strip(),
        system_prompt=cfg.system_prompt,
    )


def _select_agents(config: AppConfig, agents_arg: str | None) -> list[Agent]:
    """Returns the roster in speaking order. --agents picks and orders by id.

    Raises:
        click.BadParameter: If --agents names an id not in settings.
    """
    by_id = {a.id: a for a in config.agents}
    if not agents_arg:
        return [_build_agent(a) for a in config.agents]

    ids = [s.strip() for s in agents_arg.split(",") if s.strip()]
    unknown = [i for i in ids if i not in by_id]
    if unknown:
        raise click.BadParameter(
            f"Unknown agent id(s): {', '.join(unknown)}. Known: {', '.join(by_id)}",
            param_hint="--agents",
        )
    return [_build_agent(by_id[i]) for i in ids]


def _keyed_agents(agents: list[Agent]) -> list[Agent]:
    """Drop agents without a credential, keeping speaking order."""
    keyed = [a for a in agents if a.has_credential]
    for agent in agents:
        if not agent.has_credential:
            logger.info("Skipping %s: no API key", agent.name)
    return keyed


def _check_and_filter_agents(agents: list[Agent], stream_call: StreamCall) -> list[Agent]:
    """Run credential checks, print results, and ask user what to do on failures.

    Returns the agents that passed. Exits if the user declines to continue or
    fewer than two agents pass.
    """
    console.print("\n[bold]Checking agents...[/bold]")
    results: dict[str, tuple[bool, str]] = asyncio.run(run_health_checks(agents, stream_call))

    failed_names: list[str] = []
    for agent in agents:
        ok, err = results[agent.id]
        if ok:
            console.print(f"  [green]OK  [/green] {agent.name} ({agent.provider}/{agent.effective_model})")
        else:
            short_err = err.splitlines()[0][:120] if err else "unknown error"
            console.print(f"  [red]FAIL[/red] {agent.name}: {short_err}")
            failed_names.append(agent.name)

    if not failed_names:
        console.print()
        return agents

    working = [a for a in agents if results[a.id][0]]

    if len(working) < MIN_AGENTS:
        console.print(f"\n[bold red]Error:[/bold red] Fewer than {MIN_AGENTS} agents passed the check.")
        sys.exit(1)

    console.print(
        f"\n[yellow]{len(failed_names)} agent(s) failed:[/yellow] {', '.join(failed_names)}"
    )
    console.print(f"Working agents: {', '.join(a.name for a in working)}")

    if not click.confirm("Continue with working agents only?", default=True):
        sys.exit(0)

    console.print()
    return working


def _install_stop_handler(conversation: Conversation) -> bool:
    """Route Ctrl+C to a cooperative stop. Returns False where unsupported."""
    try:
        asyncio.get_running_loop().add_signal_handler(signal.SIGINT, conversation.stop)
    except (NotImplementedError, RuntimeError):
        return False
    return True


async def _run_single(
    prompt: str,
    source: str,
    config: AppConfig,
    agents: list[Agent],
    referee: Agent | None,
    stream_call: StreamCall,
    rounds: int,
    resolve: bool,
    referee_prompt: str | None,
    output_dir: Path,
    slug_override: str | None = None,
) -> Path:
    """Run one conversation (plus optional resolution) and return the saved path."""
    console.print(f"\n[bold cyan]Swarm Studio[/bold cyan]: {len(agents)} agents, {rounds} rounds")
    console.print(f"Agents: {', '.join(a.name for a in agents)}")
    if resolve:
        referee_label = referee.name if referee and referee.has_credential else "not configured"
        console.print(f"Referee: {referee_label}")
    console.print(f"Prompt: [italic]{prompt[:80]}{'...' if len(prompt) > 80 else ''}[/italic]\n")

    start = time.monotonic()

    with Live(console=console, refresh_per_second=8, vertical_overflow="visible") as live:

        def on_change(conv: Conversation) -> None:
            live.update(render_transcript(conv.transcript, agents, conv.current_agent))

        conversation = Conversation(
            stream_call,
            max_tokens=config.defaults.max_tokens,
            turn_delay_sec=config.defaults.turn_delay_sec,
            round_delay_sec=config.defaults.round_delay_sec,
            turn_instruction=config.prompts.turn_instruction,
            on_change=on_change,
        )
        handler_installed = _install_stop_handler(conversation)
        if handler_installed:
            live.console.print("[dim]Press Ctrl+C to stop after the current turn.[/dim]")
        try:
            transcript = await conversation.start(agents, prompt, rounds)
        finally:
            if handler_installed:
                asyncio.get_running_loop().remove_signal_handler(signal.SIGINT)

    cancelled = len(transcript) < rounds * len(agents)
    if cancelled:
        console.print(f"[yellow]Stopped after {len(transcript)} turn(s).[/yellow]")

    if resolve:
        with Progress(
            SpinnerColumn(),
            TextColumn("[progress.description]{task.description}"),
            TimeElapsedColumn(),
            console=console,
            transient=True,
        ) as progress:
            progress.add_task("Referee is resolving...", total=None)
            verdict = await conversation.resolve(
                referee, agents, prompt, system_prompt=referee_prompt,
            )
        if verdict is not None:
            print_resolution(verdict)
        else:
            console.print("[dim]Resolution skipped: no referee API key or empty transcript.[/dim]")

    console.print(usage_table(conversation.usage, agents, referee))

    summary = RunSummary(
        prompt=prompt,
        source=source,
        agents=agents,
        total_rounds=rounds,
        transcript=list(conversation.transcript),
        usage=conversation.usage,
        duration_sec=time.monotonic() - start,
        cancelled=cancelled,
        referee=referee,
    )
    saved_path = save_to_file(summary, output_dir, slug_override=slug_override)
    console.print(f"\n[dim]Saved to: {saved_path}[/dim]")
    return saved_path


@click.command()
@click.argument("prompt", required=False)
@click.option("--file", "prompt_file", type=click.Path(exists=True), help="Read prompt from .md file")
@click.option("--rounds", default=None, type=int, help="Number of rounds (default: from config)")
@click.option("--agents", "agents_arg", default=None,
              help="Comma-separated agent ids in speaking order (default: all configured)")
@click.option("--resolve", "use_referee", is_flag=True, default=False,
              help="Ask the referee to adjudicate after the last round")
@click.option("--referee-prompt", default=None, help="Override the referee's system instruction")
@click.option("--output", "output_path", default=None, help="Output directory (default: from config)")
@click.option("--verbose", is_flag=True, help="Enable DEBUG-level logging")
@click.option("--skip-health-check", is_flag=True, default=False,
              help="Skip the API key check at startup")
def main(
    prompt: str | None,
    prompt_file: str | None,
    rounds: int | None,
    agents_arg: str | None,
    use_referee: bool,
    referee_prompt: str | None,
    output_path: str | None,
    verbose: bool,
    skip_health_check: bool,
) -> None:
    """Swarm Studio -- turn-based multi-agent conversations.

    \b
    Examples:
      python -m swarmstudio.cli "Is P equal to NP?" --rounds 2
      python -m swarmstudio.cli "Tabs or spaces?" --agents agent-1,agent-3 --resolve
      python -m swarmstudio.cli --file prompt.md
    """
    if sys.platform == "win32":
        if hasattr(sys.stdout, "reconfigure"):
            sys.stdout.reconfigure(encoding="utf-8", errors="replace")
        if hasattr(sys.stderr, "reconfigure"):
            sys.stderr.reconfigure(encoding="utf-8", errors="replace")

    load_dotenv()
    _setup_logging(verbose)

    try:
        config = load_config()
    except (FileNotFoundError, ValueError) as exc:
        console.print(f"[bold red]Config error:[/bold red] {exc}")
        sys.exit(1)

    # CLI flags win; frontmatter only fills in when a flag is not set
    meta: dict = {}
    slug_override: str | None = None
    if prompt_file:
        prompt_text, meta = parse_file(Path(prompt_file))
        source = prompt_file
        slug_override = Path(prompt_file).stem
    elif prompt:
        prompt_text = prompt
        source = "cli"
    else:
        console.print("[bold red]Error:[/bold red] Provide a PROMPT argument or --file.")
        sys.exit(1)

    if not prompt_text.strip():
        console.print("[bold red]Error:[/bold red] Prompt is empty.")
        sys.exit(1)

    if rounds is not None:
        effective_rounds = rounds
    elif "rounds" in meta:
        try:
            effective_rounds = int(meta["rounds"])
        except (TypeError, ValueError):
            console.print(
                f"[bold red]Error:[/bold red] Frontmatter 'rounds' must be a whole number, "
                f"got {meta['rounds']!r}."
            )
            sys.exit(1)
    else:
        effective_rounds = config.defaults.rounds
    effective_agents = agents_arg if agents_arg is not None else agent_ids_from_meta(meta.get("agents"))
    effective_resolve = use_referee or bool(meta.get("resolve", False))
    effective_output = Path(output_path) if output_path else config.defaults.output_dir

    if not 1 <= effective_rounds <= config.defaults.max_rounds:
        console.print(
            f"[bold red]Error:[/bold red] Rounds must be between 1 and {config.defaults.max_rounds}, "
            f"got {effective_rounds}."
        )
        sys.exit(1)

    agents = _keyed_agents(_select_agents(config, effective_agents))

    if len(agents) < MIN_AGENTS:
        console.print(
            f"[bold red]Error:[/bold red] Need at least {MIN_AGENTS} agents with API keys, got {len(agents)}. "
            "Check API keys in .env or adjust --agents."
        )
        sys.exit(1)
    if len(agents) > MAX_AGENTS:
        console.print(f"[bold red]Error:[/bold red] At most {MAX_AGENTS} agents may take part, got {len(agents)}.")
        sys.exit(1)

    stream_call = functools.partial(stream_chat, registry=build_registry(config.defaults.timeout_sec))

    if not skip_health_check:
        agents = _check_and_filter_agents(agents, stream_call)

    referee = _build_agent(config.referee) if config.referee else None

    asyncio.run(
        _run_single(
            prompt=prompt_text,
            source=source,
            config=config,
            agents=agents,
            referee=referee,
            stream_call=stream_call,
            rounds=effective_rounds,
            resolve=effective_resolve,
            referee_prompt=referee_prompt or config.prompts.referee_system or None,
            output_dir=effective_output,
            slug_override=slug_override,
        )
    )


if __name__ == "__main__":
    main()
