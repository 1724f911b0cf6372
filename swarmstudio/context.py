"""Build the role-tagged message list sent to an agent for its turn."""

from collections.abc import Sequence

from swarmstudio.models import Agent, ChatMessage, TranscriptEntry

TURN_INSTRUCTION = "It's your turn to respond."


def _is_replayable(entry: TranscriptEntry) -> bool:
    return not entry.is_error and not entry.is_referee


def build_messages(
    agent: Agent,
    transcript: Sequence[TranscriptEntry],
    round_number: int,
    agent_index: int,
    initial_prompt: str,
    turn_instruction: str = TURN_INSTRUCTION,
) -> list[ChatMessage]:
    """Return the messages for one agent's turn.

    The very first turn of the conversation gets the raw prompt and nothing
    else. Every later turn gets the prior non-errored history, with the agent's
    own entries as assistant output and other agents' entries attributed by
    display name, followed by the turn instruction.

    Args:
        agent: The agent about to speak.
        transcript: Snapshot of the transcript before this turn.
        round_number: 1-based round number.
        agent_index: Position of the agent within the round.
        initial_prompt: The seed prompt of the conversation.
        turn_instruction: Closing user message for every turn after the first.
    """
    messages: list[ChatMessage] = []

    if agent.system_prompt:
        messages.append(ChatMessage("system", agent.system_prompt))

    if round_number == 1 and agent_index == 0:
        messages.append(ChatMessage("user", initial_prompt))
        return messages

    for entry in transcript:
        if not _is_replayable(entry):
            continue
        if entry.agent_id == agent.id:
            messages.append(ChatMessage("assistant", entry.content))
        else:
            messages.append(ChatMessage("user", f"{entry.agent_name} said: {entry.content}"))

    messages.append(ChatMessage("user", turn_instruction))
    return messages
