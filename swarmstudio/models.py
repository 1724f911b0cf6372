"""Pure dataclasses for the Swarm Studio conversation engine. No I/O, no deps."""

from dataclasses import dataclass

# Pseudo-identity under which the referee's entry and usage are tracked
REFEREE_ID = "__referee__"

# Round number recorded on the referee's resolution entry (debate rounds are 1-based)
RESOLUTION_ROUND = 0


@dataclass(frozen=True)
class Agent:
    id: str
    name: str
    provider: str          # "openai", "anthropic", "gemini", "xai", "deepseek", "custom"
    model: str
    custom_model: str = ""  # user-supplied override, wins over model when set
    base_url: str | None = None
    api_key: str = ""
    system_prompt: str = ""

    @property
    def effective_model(self) -> str:
        return self.custom_model.strip() or self.model

    @property
    def has_credential(self) -> bool:
        return bool(self.api_key.strip())


@dataclass(frozen=True)
class ChatMessage:
    role: str              # "system", "user" or "assistant"
    content: str

    def as_dict(self) -> dict[str, str]:
        return {"role": self.role, "content": self.content}


@dataclass(frozen=True)
class TranscriptEntry:
    agent_id: str
    agent_name: str
    round: int
    content: str = ""
    is_referee: bool = False
    is_error: bool = False
    partial_content: str = ""  # text streamed before an error, kept for inspection


@dataclass(frozen=True)
class TextFragment:
    text: str


@dataclass(frozen=True)
class UsageReport:
    input_tokens: int
    output_tokens: int


@dataclass(frozen=True)
class Completion:
    pass


@dataclass(frozen=True)
class StreamError:
    message: str


StreamEvent = TextFragment | UsageReport | Completion | StreamError


@dataclass(frozen=True)
class UsageTotals:
    input_tokens: int = 0
    output_tokens: int = 0

    @property
    def total_tokens(self) -> int:
        return self.input_tokens + self.output_tokens


@dataclass
class RunSummary:
    prompt: str
    source: str            # "cli" or file path
    agents: list[Agent]
    total_rounds: int
    transcript: list[TranscriptEntry]
    usage: dict[str, UsageTotals]
    duration_sec: float
    cancelled: bool = False
    referee: Agent | None = None
