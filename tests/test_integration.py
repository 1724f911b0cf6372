"""Integration tests: real API calls, no mocks. Requires .env with 2+ API keys."""

import functools
import os
from pathlib import Path

import pytest
from dotenv import load_dotenv

load_dotenv()

# Skip entire module if fewer than 2 API keys are set
_AVAILABLE_KEYS = [
    k for k in ["ANTHROPIC_API_KEY", "OPENAI_API_KEY", "GEMINI_API_KEY", "XAI_API_KEY", "DEEPSEEK_API_KEY"]
    if os.environ.get(k, "").strip()
]
pytestmark = pytest.mark.integration

if len(_AVAILABLE_KEYS) < 2:
    pytestmark = pytest.mark.skip(reason=f"Need 2+ API keys, found {len(_AVAILABLE_KEYS)}")


async def test_full_conversation_pipeline(tmp_path: Path):
    """Run a real 1-round conversation with available agents, verify no crash."""
    from config.config_loader import load_config
    from swarmstudio.cli import _keyed_agents, _select_agents
    from swarmstudio.conversation import Conversation
    from swarmstudio.models import RunSummary
    from swarmstudio.output import save_to_file
    from swarmstudio.providers.registry import build_registry, stream_chat

    config = load_config()
    agents = _keyed_agents(_select_agents(config, None))[:3]
    assert len(agents) >= 2, f"Need 2+ keyed agents, got {len(agents)}"

    stream_call = functools.partial(stream_chat, registry=build_registry(config.defaults.timeout_sec))
    conversation = Conversation(stream_call, max_tokens=300, turn_delay_sec=0, round_delay_sec=0)
    prompt = "Should a small team use a monorepo or separate repos for a Python microservices project?"

    transcript = await conversation.start(agents, prompt, 1)

    assert len(transcript) == len(agents)
    for entry in transcript:
        assert entry.round == 1
        assert entry.content, f"Empty content from {entry.agent_name}"
    assert any(not e.is_error for e in transcript)

    summary = RunSummary(
        prompt=prompt,
        source="integration_test",
        agents=agents,
        total_rounds=1,
        transcript=list(transcript),
        usage=conversation.usage,
        duration_sec=1.0,
    )
    saved = save_to_file(summary, tmp_path / "output")
    content = saved.read_text(encoding="utf-8")
    assert "# Swarm Studio Conversation:" in content
    assert "## Round 1" in content
