"""Drive one streaming provider call to a terminal state."""

import logging
from collections.abc import AsyncIterator, Callable
from dataclasses import dataclass, replace

from swarmstudio.models import (
    Completion,
    StreamError,
    StreamEvent,
    TextFragment,
    TranscriptEntry,
    UsageReport,
)
from swarmstudio.usage import UsageAccumulator

logger = logging.getLogger(__name__)


class TurnBuffer:
    """Sole writer of an in-flight transcript entry.

    Fragments accumulate here while the turn streams; observers read
    `snapshot()` to see live partial output. Once the turn is terminal the
    scheduler takes a final immutable entry from `finalize()`.
    """

    def __init__(
        self,
        entry: TranscriptEntry,
        on_update: Callable[[], None] | None = None,
    ) -> None:
        self._entry = entry
        self._parts: list[str] = []
        self._on_update = on_update
        self._closed = False

    @property
    def text(self) -> str:
        return "".join(self._parts)

    @property
    def agent_id(self) -> str:
        return self._entry.agent_id

    def append(self, fragment: str) -> None:
        if self._closed:
            raise RuntimeError(f"Turn buffer for {self._entry.agent_id} is already finalized")
        self._parts.append(fragment)
        self.touch()

    def touch(self) -> None:
        if self._on_update:
            self._on_update()

    def snapshot(self) -> TranscriptEntry:
        return replace(self._entry, content=self.text)

    def finalize(self, *, error_content: str | None = None) -> TranscriptEntry:
        """Close the buffer and return the entry for the permanent transcript.

        With `error_content` the entry is flagged as an error, its content is
        replaced and whatever text had arrived is kept in `partial_content`.
        """
        self._closed = True
        if error_content is None:
            return self.snapshot()
        return replace(
            self._entry,
            content=error_content,
            is_error=True,
            partial_content=self.text,
        )


@dataclass
class TurnOutcome:
    text: str
    ok: bool
    error: str | None = None


async def _close(events: AsyncIterator[StreamEvent]) -> None:
    aclose = getattr(events, "aclose", None)
    if aclose is None:
        return
    try:
        await aclose()
    except Exception as exc:
        logger.debug("Ignoring error while closing stream: %s", exc)


async def consume_stream(
    events: AsyncIterator[StreamEvent],
    buffer: TurnBuffer,
    usage: UsageAccumulator,
    identity: str,
) -> TurnOutcome:
    """Apply a provider event stream to `buffer` and `usage`.

    Stops at the first Completion or StreamError. A stream that runs out
    without a terminal event counts as completed. Never raises: an exception
    from the stream itself becomes a failed outcome.

    Returns:
        TurnOutcome with the buffered text and success flag.
    """
    error: str | None = None
    try:
        async for event in events:
            if isinstance(event, TextFragment):
                if event.text:
                    buffer.append(event.text)
            elif isinstance(event, UsageReport):
                usage.add(identity, event.input_tokens, event.output_tokens)
                buffer.touch()
            elif isinstance(event, Completion):
                break
            elif isinstance(event, StreamError):
                error = event.message or "Unknown error"
                break
            else:
                logger.debug("Ignoring unknown stream event for %s: %r", identity, event)
    except Exception as exc:
        error = f"Unexpected error: {exc}"
    finally:
        await _close(events)

    text = buffer.text
    if error is not None:
        logger.warning("Stream for %s failed: %s", identity, error)
        return TurnOutcome(text=text, ok=False, error=error)
    return TurnOutcome(text=text, ok=True)
