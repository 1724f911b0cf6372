"""Referee resolution: transcript digest and adjudication messages."""

from collections.abc import Sequence

from swarmstudio.models import Agent, ChatMessage, TranscriptEntry

DEFAULT_REFEREE_PROMPT = """You are the Referee, an impartial judge resolving a multi-agent AI debate. Analyze the full conversation transcript, then deliver:

1. **Winner**: Which agent made the strongest overall case? (or declare a draw if warranted)
2. **Key Agreements**: Points all agents converged on
3. **Key Disagreements**: Unresolved differences and who had the stronger argument on each
4. **Final Verdict**: Your authoritative summary and conclusion on the original question

Be decisive. Support your ruling with specific references to what each agent said."""

RESOLVE_REQUEST = "Please resolve this debate:\n\n"


def build_digest(
    agents: Sequence[Agent],
    transcript: Sequence[TranscriptEntry],
    initial_prompt: str,
) -> str:
    """Format the prompt, roster and round-grouped transcript for the referee.

    Prior referee entries are skipped. Error-flagged turns are kept as they
    appear in the visible transcript.
    """
    parts: list[str] = [f"**Original Prompt:** {initial_prompt}\n\n", "**Participants:**\n"]
    for agent in agents:
        if agent.has_credential:
            parts.append(f"- {agent.name} ({agent.provider}/{agent.effective_model})\n")
    parts.append("\n**Debate Transcript:**\n\n")

    last_round: int | None = None
    for entry in transcript:
        if entry.is_referee:
            continue
        if entry.round != last_round:
            last_round = entry.round
            parts.append(f"--- Round {entry.round} ---\n\n")
        parts.append(f"**{entry.agent_name}:**\n{entry.content}\n\n")

    return "".join(parts)


def build_referee_messages(
    referee: Agent,
    agents: Sequence[Agent],
    transcript: Sequence[TranscriptEntry],
    initial_prompt: str,
    system_prompt: str | None = None,
) -> list[ChatMessage]:
    """Return the system instruction and the digest request for the referee.

    The instruction precedence is: explicit `system_prompt`, the referee's own
    system prompt, then DEFAULT_REFEREE_PROMPT.
    """
    instruction = system_prompt or referee.system_prompt or DEFAULT_REFEREE_PROMPT
    digest = build_digest(agents, transcript, initial_prompt)
    return [
        ChatMessage("system", instruction),
        ChatMessage("user", RESOLVE_REQUEST + digest),
    ]
