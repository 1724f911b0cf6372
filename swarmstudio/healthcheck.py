"""Credential checks: ping each agent's provider before starting a conversation."""

import asyncio
import logging
from collections.abc import AsyncIterator, Sequence

from swarmstudio.models import Agent, ChatMessage, Completion, StreamError, StreamEvent
from swarmstudio.providers.base import StreamCall

logger = logging.getLogger(__name__)

_PING_MESSAGES = [ChatMessage("user", "Reply with the word OK only.")]
_PING_MAX_TOKENS = 16
_TIMEOUT_SEC = 15.0


async def _drain(events: AsyncIterator[StreamEvent]) -> tuple[bool, str]:
    async for event in events:
        if isinstance(event, StreamError):
            return False, event.message
        if isinstance(event, Completion):
            return True, ""
    return True, ""


async def _check_one(agent: Agent, stream_call: StreamCall) -> tuple[str, bool, str]:
    """Ping a single agent's provider. Returns (agent_id, ok, error_message)."""
    try:
        events = stream_call(
            agent.provider,
            agent.effective_model,
            agent.api_key,
            agent.base_url or "",
            _PING_MESSAGES,
            _PING_MAX_TOKENS,
        )
        ok, err = await asyncio.wait_for(_drain(events), timeout=_TIMEOUT_SEC)
        return agent.id, ok, err
    except TimeoutError:
        return agent.id, False, f"No response within {_TIMEOUT_SEC:.0f}s"
    except Exception as exc:
        return agent.id, False, str(exc)


async def run_health_checks(
    agents: Sequence[Agent],
    stream_call: StreamCall,
) -> dict[str, tuple[bool, str]]:
    """Ping all agents in parallel.

    Pings are independent of the conversation, so unlike turns they may run
    concurrently.

    Returns:
        Dict mapping agent id -> (ok, error_message).
        error_message is "" when ok is True.
    """
    results = await asyncio.gather(*(_check_one(a, stream_call) for a in agents))
    for agent_id, ok, err in results:
        if not ok:
            logger.debug("Health check failed for %s: %s", agent_id, err)
    return {agent_id: (ok, err) for agent_id, ok, err in results}
