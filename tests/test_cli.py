"""Tests for CLI roster selection and the end-to-end command in swarmstudio/cli.py."""

from pathlib import Path

import click
import pytest
from click.testing import CliRunner

import swarmstudio.cli as cli
from config.config_loader import AgentConfig
from swarmstudio.cli import _build_agent, _keyed_agents, _select_agents
from tests.conftest import FakeStreamCall, make_agent


def test_build_agent_reads_key_from_env(monkeypatch):
    monkeypatch.setenv("TEST_OPENAI_KEY", " sk-abc ")
    cfg = AgentConfig(id="a", name="A", provider="openai", model="gpt-4o",
                      api_key_env="TEST_OPENAI_KEY", system_prompt="Be nice.")
    agent = _build_agent(cfg)
    assert agent.api_key == "sk-abc"
    assert agent.system_prompt == "Be nice."
    assert agent.effective_model == "gpt-4o"


def test_select_agents_default_is_all_in_order(sample_app_config):
    agents = _select_agents(sample_app_config, None)
    assert [a.id for a in agents] == ["agent-1", "agent-2", "agent-3"]


def test_select_agents_by_id_sets_speaking_order(sample_app_config):
    agents = _select_agents(sample_app_config, "agent-3, agent-1")
    assert [a.id for a in agents] == ["agent-3", "agent-1"]


def test_select_agents_unknown_id(sample_app_config):
    with pytest.raises(click.BadParameter, match="agent-9"):
        _select_agents(sample_app_config, "agent-1,agent-9")


def test_keyed_agents_drops_agents_without_key():
    agents = [make_agent(1), make_agent(2, api_key=""), make_agent(3)]
    assert [a.id for a in _keyed_agents(agents)] == ["agent-1", "agent-3"]


@pytest.fixture
def patched_cli(monkeypatch, sample_app_config):
    """Run main() against sample config and a fake streaming capability."""
    fake = FakeStreamCall()
    monkeypatch.setattr(cli, "load_config", lambda: sample_app_config)
    monkeypatch.setattr(cli, "load_dotenv", lambda: None)
    monkeypatch.setattr(cli, "build_registry", lambda timeout_sec: {})
    monkeypatch.setattr(cli, "stream_chat", lambda *args, registry=None: fake(*args))
    monkeypatch.setenv("TEST_OPENAI_KEY", "sk-1")
    monkeypatch.setenv("TEST_ANTHROPIC_KEY", "sk-2")
    monkeypatch.delenv("TEST_GEMINI_KEY", raising=False)
    monkeypatch.setenv("TEST_REFEREE_KEY", "sk-ref")
    return fake


def test_main_runs_conversation_and_saves(patched_cli, sample_app_config, tmp_path: Path):
    result = CliRunner().invoke(
        cli.main,
        ["Is X true?", "--rounds", "1", "--skip-health-check", "--output", str(tmp_path)],
    )
    assert result.exit_code == 0, result.output
    # agent-3 has no key and sits out
    assert [c["provider"] for c in patched_cli.calls] == ["openai", "anthropic"]
    saved = list(tmp_path.glob("*.md"))
    assert len(saved) == 1
    content = saved[0].read_text(encoding="utf-8")
    assert "Reply from gpt-4o" in content


def test_main_resolve_calls_referee(patched_cli, tmp_path: Path):
    result = CliRunner().invoke(
        cli.main,
        ["Is X true?", "--rounds", "1", "--resolve", "--skip-health-check", "--output", str(tmp_path)],
    )
    assert result.exit_code == 0, result.output
    assert len(patched_cli.calls) == 3
    referee_messages = patched_cli.calls[-1]["messages"]
    assert referee_messages[0].role == "system"
    content = next(tmp_path.glob("*.md")).read_text(encoding="utf-8")
    assert "## Resolution (by Referee)" in content


def test_main_requires_two_keyed_agents(patched_cli, monkeypatch, tmp_path: Path):
    monkeypatch.delenv("TEST_ANTHROPIC_KEY")
    result = CliRunner().invoke(cli.main, ["Q", "--skip-health-check", "--output", str(tmp_path)])
    assert result.exit_code == 1
    assert "at least 2 agents" in result.output
    assert patched_cli.calls == []


def test_main_rejects_rounds_over_max(patched_cli, tmp_path: Path):
    result = CliRunner().invoke(cli.main, ["Q", "--rounds", "99", "--skip-health-check"])
    assert result.exit_code == 1
    assert "Rounds must be between" in result.output


def test_main_requires_prompt(patched_cli):
    result = CliRunner().invoke(cli.main, ["--skip-health-check"])
    assert result.exit_code == 1
    assert "Provide a PROMPT" in result.output


def test_main_reads_frontmatter(patched_cli, tmp_path: Path):
    prompt = tmp_path / "cars.md"
    prompt.write_text("---\nrounds: 2\nagents: agent-2,agent-1\n---\nBan cars downtown?", encoding="utf-8")
    out = tmp_path / "out"
    result = CliRunner().invoke(
        cli.main, ["--file", str(prompt), "--skip-health-check", "--output", str(out)],
    )
    assert result.exit_code == 0, result.output
    assert [c["provider"] for c in patched_cli.calls] == ["anthropic", "openai", "anthropic", "openai"]
    assert patched_cli.calls[0]["messages"][-1].content == "Ban cars downtown?"
    assert next(out.glob("*.md")).name.endswith("_cars.md")


def test_main_rejects_non_numeric_frontmatter_rounds(patched_cli, tmp_path: Path):
    prompt = tmp_path / "bad.md"
    prompt.write_text("---\nrounds: lots\n---\nQ?", encoding="utf-8")
    result = CliRunner().invoke(cli.main, ["--file", str(prompt), "--skip-health-check"])
    assert result.exit_code == 1
    assert "'rounds' must be a whole number" in result.output
    assert not isinstance(result.exception, ValueError)
    assert patched_cli.calls == []
