"""Shared pytest fixtures."""

import asyncio
from collections.abc import AsyncIterator, Callable, Sequence
from pathlib import Path

import pytest

from config.config_loader import AgentConfig, AppConfig, DefaultsConfig, PromptsConfig
from swarmstudio.models import (
    Agent,
    ChatMessage,
    Completion,
    StreamError,
    StreamEvent,
    TextFragment,
    TranscriptEntry,
    UsageReport,
)

# A script step is either an event to yield or a callable run at that point
ScriptStep = StreamEvent | Callable[[], None]


def reply(text: str, input_tokens: int = 10, output_tokens: int = 5) -> list[ScriptStep]:
    """A successful streamed reply split into word fragments."""
    words = text.split(" ")
    fragments: list[ScriptStep] = [
        TextFragment(w if i == 0 else f" {w}") for i, w in enumerate(words)
    ]
    return [*fragments, UsageReport(input_tokens, output_tokens), Completion()]


def failure(message: str = "API call failed: boom", partial: str = "") -> list[ScriptStep]:
    steps: list[ScriptStep] = [TextFragment(partial)] if partial else []
    return [*steps, StreamError(message)]


class FakeStreamCall:
    """Test double StreamCall.

    Replays scripted steps keyed by model string, one script per call, and
    records every call. Unscripted calls get a default reply.
    """

    def __init__(self, scripts: dict[str, list[list[ScriptStep]]] | None = None) -> None:
        self._scripts = {k: list(v) for k, v in (scripts or {}).items()}
        self.calls: list[dict] = []

    def __call__(
        self,
        provider: str,
        model: str,
        api_key: str,
        base_url: str,
        messages: Sequence[ChatMessage],
        max_tokens: int,
    ) -> AsyncIterator[StreamEvent]:
        self.calls.append({
            "provider": provider,
            "model": model,
            "api_key": api_key,
            "base_url": base_url,
            "messages": list(messages),
            "max_tokens": max_tokens,
        })
        queue = self._scripts.get(model)
        steps = queue.pop(0) if queue else reply(f"Reply from {model}")
        return self._play(steps)

    async def _play(self, steps: list[ScriptStep]) -> AsyncIterator[StreamEvent]:
        for step in steps:
            await asyncio.sleep(0)
            if callable(step):
                step()
            else:
                yield step

    def messages_for(self, model: str) -> list[list[ChatMessage]]:
        return [c["messages"] for c in self.calls if c["model"] == model]


def make_agent(n: int, **overrides) -> Agent:
    fields = {
        "id": f"agent-{n}",
        "name": f"Agent {n}",
        "provider": "openai",
        "model": f"model-{n}",
        "api_key": f"sk-test-{n}",
    }
    fields.update(overrides)
    return Agent(**fields)


@pytest.fixture
def two_agents() -> list[Agent]:
    return [make_agent(1), make_agent(2)]


@pytest.fixture
def three_agents() -> list[Agent]:
    return [make_agent(1), make_agent(2), make_agent(3)]


@pytest.fixture
def referee() -> Agent:
    return Agent(
        id="referee",
        name="Judge",
        provider="anthropic",
        model="referee-model",
        api_key="sk-referee",
    )


@pytest.fixture
def fake_stream() -> FakeStreamCall:
    return FakeStreamCall()


@pytest.fixture
def sample_transcript() -> list[TranscriptEntry]:
    return [
        TranscriptEntry("agent-1", "Agent 1", 1, "X is true."),
        TranscriptEntry("agent-2", "Agent 2", 1, "[Error: timeout]", is_error=True),
        TranscriptEntry("agent-1", "Agent 1", 2, "Still true."),
        TranscriptEntry("agent-2", "Agent 2", 2, "X is false."),
    ]


@pytest.fixture
def sample_defaults_config(tmp_path: Path) -> DefaultsConfig:
    return DefaultsConfig(
        rounds=2,
        max_rounds=5,
        output_dir=tmp_path / "output",
        turn_delay_sec=0.0,
        round_delay_sec=0.0,
    )


@pytest.fixture
def sample_app_config(sample_defaults_config: DefaultsConfig) -> AppConfig:
    agents = [
        AgentConfig(id="agent-1", name="Agent 1", provider="openai", model="gpt-4o",
                    api_key_env="TEST_OPENAI_KEY"),
        AgentConfig(id="agent-2", name="Agent 2", provider="anthropic",
                    model="claude-sonnet-4-20250514", api_key_env="TEST_ANTHROPIC_KEY"),
        AgentConfig(id="agent-3", name="Agent 3", provider="gemini", model="gemini-2.5-flash",
                    api_key_env="TEST_GEMINI_KEY"),
    ]
    return AppConfig(
        defaults=sample_defaults_config,
        agents=agents,
        prompts=PromptsConfig(turn_instruction="It's your turn to respond."),
        referee=AgentConfig(id="referee", name="Referee", provider="anthropic",
                            model="claude-sonnet-4-20250514", api_key_env="TEST_REFEREE_KEY"),
        available_agents={"agent-1", "agent-2"},
    )
