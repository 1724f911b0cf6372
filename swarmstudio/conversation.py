"""Conversation orchestration: sequential turns, cancellation, referee resolution."""

import asyncio
import logging
from collections.abc import Callable, Sequence

from swarmstudio.context import TURN_INSTRUCTION, build_messages
from swarmstudio.models import (
    REFEREE_ID,
    RESOLUTION_ROUND,
    Agent,
    ChatMessage,
    TranscriptEntry,
    UsageTotals,
)
from swarmstudio.providers.base import StreamCall
from swarmstudio.referee import build_referee_messages
from swarmstudio.streaming import TurnBuffer, TurnOutcome, consume_stream
from swarmstudio.usage import UsageAccumulator

logger = logging.getLogger(__name__)

DEFAULT_MAX_TOKENS = 4096
DEFAULT_TURN_DELAY_SEC = 0.5
DEFAULT_ROUND_DELAY_SEC = 1.0


async def _pause(cancel_token: asyncio.Event, delay_sec: float) -> None:
    """Sleep for `delay_sec`, waking early if cancellation is requested."""
    if delay_sec <= 0 or cancel_token.is_set():
        return
    try:
        await asyncio.wait_for(cancel_token.wait(), timeout=delay_sec)
    except TimeoutError:
        pass


class Conversation:
    """Runs agents in turn over a shared transcript.

    One streaming call is outstanding at a time. The transcript and usage are
    mutated only by this object; observers read the properties, optionally
    prompted by `on_change` after every mutation.
    """

    def __init__(
        self,
        stream_call: StreamCall,
        *,
        max_tokens: int = DEFAULT_MAX_TOKENS,
        turn_delay_sec: float = DEFAULT_TURN_DELAY_SEC,
        round_delay_sec: float = DEFAULT_ROUND_DELAY_SEC,
        turn_instruction: str = TURN_INSTRUCTION,
        on_change: Callable[["Conversation"], None] | None = None,
    ) -> None:
        self._stream_call = stream_call
        self._max_tokens = max_tokens
        self._turn_delay_sec = turn_delay_sec
        self._round_delay_sec = round_delay_sec
        self._turn_instruction = turn_instruction
        self._on_change = on_change

        self._entries: list[TranscriptEntry] = []
        self._live: TurnBuffer | None = None
        self._usage = UsageAccumulator()
        self._current_round = 0
        self._current_agent: str | None = None
        self._cancel_token: asyncio.Event | None = None
        self._running = False
        self._resolving = False

    # --- observability ---

    @property
    def current_round(self) -> int:
        return self._current_round

    @property
    def current_agent(self) -> str | None:
        return self._current_agent

    @property
    def transcript(self) -> tuple[TranscriptEntry, ...]:
        """Every entry so far, including the one currently streaming."""
        if self._live is not None:
            return (*self._entries, self._live.snapshot())
        return tuple(self._entries)

    @property
    def usage(self) -> dict[str, UsageTotals]:
        return self._usage.read()

    @property
    def is_running(self) -> bool:
        return self._running

    @property
    def is_resolving(self) -> bool:
        return self._resolving

    def _notify(self) -> None:
        if self._on_change:
            self._on_change(self)

    # --- control ---

    def stop(self) -> None:
        """Request cooperative cancellation of the active run."""
        if self._cancel_token is not None and not self._cancel_token.is_set():
            logger.info("Stop requested; finishing the current turn")
            self._cancel_token.set()

    async def start(
        self,
        agents: Sequence[Agent],
        initial_prompt: str,
        total_rounds: int,
        cancel_token: asyncio.Event | None = None,
    ) -> tuple[TranscriptEntry, ...]:
        """Run `total_rounds` rounds with every agent speaking once per round.

        Failed turns are recorded as error entries and the run moves on to
        the next agent. Cancellation is honoured before each turn and during
        the pauses between turns and rounds.

        Args:
            agents: Participants in speaking order.
            initial_prompt: The prompt the first agent answers.
            total_rounds: Number of rounds; zero performs no turns.
            cancel_token: Event that stops the run when set. A fresh one is
                created when omitted; `stop()` sets whichever is active.

        Returns:
            The transcript at the end of the run.

        Raises:
            RuntimeError: If a run or resolution is already in progress.
        """
        if self._running or self._resolving:
            raise RuntimeError("Conversation is already in progress")

        self._cancel_token = cancel_token if cancel_token is not None else asyncio.Event()
        self._entries = []
        self._usage.clear()
        self._usage.reset(a.id for a in agents)
        self._running = True
        self._current_round = 1 if total_rounds > 0 else 0
        self._notify()

        logger.info("Starting conversation: %d agents, %d rounds", len(agents), total_rounds)

        try:
            for round_num in range(1, total_rounds + 1):
                if self._cancel_token.is_set():
                    break
                self._current_round = round_num
                self._notify()

                for index, agent in enumerate(agents):
                    if self._cancel_token.is_set():
                        break
                    await self._run_turn(agent, index, round_num, initial_prompt)
                    await _pause(self._cancel_token, self._turn_delay_sec)

                if round_num < total_rounds:
                    await _pause(self._cancel_token, self._round_delay_sec)

            if self._cancel_token.is_set():
                logger.info("Conversation stopped after %d turns", len(self._entries))
            else:
                logger.info("Conversation complete: %d turns", len(self._entries))
        finally:
            self._live = None
            self._running = False
            self._current_agent = None
            self._current_round = 0
            self._cancel_token = None
            self._notify()

        return tuple(self._entries)

    async def _run_turn(
        self,
        agent: Agent,
        index: int,
        round_num: int,
        initial_prompt: str,
    ) -> None:
        self._current_agent = agent.id
        messages = build_messages(
            agent,
            tuple(self._entries),
            round_num,
            index,
            initial_prompt,
            turn_instruction=self._turn_instruction,
        )
        logger.info("Round %d: %s (%s/%s) is speaking", round_num, agent.name,
                    agent.provider, agent.effective_model)
        logger.debug("Sending %d messages to %s", len(messages), agent.id)

        entry = TranscriptEntry(agent_id=agent.id, agent_name=agent.name, round=round_num)
        outcome, buffer = await self._stream_into(entry, agent, messages, agent.id)

        if outcome.ok:
            final = buffer.finalize()
        else:
            final = buffer.finalize(error_content=f"[Error: {outcome.error}]")
            logger.warning("Turn failed for %s in round %d: %s", agent.name, round_num, outcome.error)

        self._entries.append(final)
        self._live = None
        self._notify()

    async def _stream_into(
        self,
        entry: TranscriptEntry,
        agent: Agent,
        messages: list[ChatMessage],
        identity: str,
    ) -> tuple[TurnOutcome, TurnBuffer]:
        buffer = TurnBuffer(entry, on_update=self._notify)
        self._live = buffer
        self._notify()

        try:
            events = self._stream_call(
                agent.provider,
                agent.effective_model,
                agent.api_key,
                agent.base_url or "",
                messages,
                self._max_tokens,
            )
        except Exception as exc:
            return TurnOutcome(text="", ok=False, error=f"Unexpected error: {exc}"), buffer
        outcome = await consume_stream(events, buffer, self._usage, identity)
        return outcome, buffer

    async def resolve(
        self,
        referee: Agent | None,
        agents: Sequence[Agent],
        initial_prompt: str,
        system_prompt: str | None = None,
    ) -> TranscriptEntry | None:
        """Ask the referee to adjudicate the transcript so far.

        Silently does nothing when no referee credential is configured or the
        transcript is empty.

        Returns:
            The referee's entry, or None when resolution was skipped.

        Raises:
            RuntimeError: If a run or another resolution is in progress.
        """
        if referee is None or not referee.has_credential or not self._entries:
            logger.debug("Skipping resolution: no referee credential or empty transcript")
            return None
        if self._running or self._resolving:
            raise RuntimeError("Cannot resolve while the conversation is in progress")

        messages = build_referee_messages(
            referee, agents, self._entries, initial_prompt, system_prompt=system_prompt,
        )

        self._resolving = True
        self._current_agent = REFEREE_ID
        self._usage.reset([REFEREE_ID])
        logger.info("Resolving via referee %s (%s/%s)", referee.name or "Referee",
                    referee.provider, referee.effective_model)

        entry = TranscriptEntry(
            agent_id=REFEREE_ID,
            agent_name=referee.name or "Referee",
            round=RESOLUTION_ROUND,
            is_referee=True,
        )
        try:
            outcome, buffer = await self._stream_into(entry, referee, messages, REFEREE_ID)
            if outcome.ok:
                final = buffer.finalize()
            else:
                final = buffer.finalize(error_content=f"[Referee Error: {outcome.error}]")
                logger.warning("Referee failed: %s", outcome.error)
            self._entries.append(final)
        finally:
            self._live = None
            self._resolving = False
            self._current_agent = None
            self._notify()

        return final
