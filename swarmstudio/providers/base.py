"""Abstract base for all streaming model providers."""

from abc import ABC, abstractmethod
from collections.abc import AsyncIterator, Callable, Sequence

from swarmstudio.models import ChatMessage, StreamEvent

# (provider, model, api_key, base_url, messages, max_tokens) -> event stream
StreamCall = Callable[
    [str, str, str, str, Sequence[ChatMessage], int],
    AsyncIterator[StreamEvent],
]

# Sent before a history that opens with the agent's own output, for APIs
# that require the first turn to come from the user
CONVERSATION_START = "(The conversation so far follows.)"


class ProviderError(Exception):
    """Raised when a provider call fails."""

    def __init__(self, provider_name: str, message: str) -> None:
        self.provider_name = provider_name
        super().__init__(f"[{provider_name}] {message}")


def split_system(messages: Sequence[ChatMessage]) -> tuple[str, list[ChatMessage]]:
    """Separate system messages from the conversational turns.

    Returns:
        (joined system text, remaining messages in order)
    """
    system = [m.content for m in messages if m.role == "system"]
    turns = [m for m in messages if m.role != "system"]
    return "\n\n".join(system), turns


def merge_turns(turns: Sequence[ChatMessage]) -> list[ChatMessage]:
    """Collapse consecutive same-role messages and make the user speak first.

    Anthropic and Gemini reject histories that do not alternate, while the
    context builder routinely emits several user messages in a row.
    """
    merged: list[ChatMessage] = []
    for msg in turns:
        if merged and merged[-1].role == msg.role:
            merged[-1] = ChatMessage(msg.role, f"{merged[-1].content}\n\n{msg.content}")
        else:
            merged.append(msg)
    if merged and merged[0].role == "assistant":
        merged.insert(0, ChatMessage("user", CONVERSATION_START))
    return merged


class AIProvider(ABC):
    """Abstract base for all streaming model providers.

    Credentials arrive per call because every agent carries its own key.
    """

    def __init__(self, timeout_sec: float) -> None:
        self._timeout_sec = timeout_sec

    @abstractmethod
    def name(self) -> str:
        """Return the short provider id (e.g. 'openai', 'anthropic')."""
        ...

    @abstractmethod
    def stream(
        self,
        model: str,
        api_key: str,
        base_url: str,
        messages: Sequence[ChatMessage],
        max_tokens: int,
    ) -> AsyncIterator[StreamEvent]:
        """Stream a chat completion as TextFragment/UsageReport events.

        Implementations yield Completion when the model finishes.

        Raises:
            ProviderError: On API failure, timeout, or invalid response.
        """
        ...
