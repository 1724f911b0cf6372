"""Load settings.yaml into typed dataclasses. Checks agent API keys at startup."""

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path

import yaml

logger = logging.getLogger(__name__)

_SETTINGS_PATH = Path(__file__).parent / "settings.yaml"


@dataclass
class AgentConfig:
    id: str
    name: str
    provider: str
    model: str
    api_key_env: str
    custom_model: str = ""
    base_url: str | None = None
    system_prompt: str = ""


@dataclass
class PromptsConfig:
    turn_instruction: str
    referee_system: str = ""


@dataclass
class DefaultsConfig:
    rounds: int
    max_rounds: int
    output_dir: Path
    max_tokens: int = 4096
    timeout_sec: int = 120
    turn_delay_sec: float = 0.5
    round_delay_sec: float = 1.0


@dataclass
class AppConfig:
    defaults: DefaultsConfig
    agents: list[AgentConfig]
    prompts: PromptsConfig
    referee: AgentConfig | None = None
    available_agents: set[str] = field(default_factory=set)


def _parse_agent(raw: dict, fallback_id: str) -> AgentConfig:
    agent_id = str(raw.get("id", fallback_id))
    return AgentConfig(
        id=agent_id,
        name=str(raw.get("name", agent_id)),
        provider=str(raw["provider"]),
        model=str(raw["model"]),
        api_key_env=str(raw["api_key_env"]),
        custom_model=str(raw.get("custom_model") or ""),
        base_url=raw.get("base_url"),
        system_prompt=str(raw.get("system_prompt") or "").strip(),
    )


def _has_key(cfg: AgentConfig) -> bool:
    return bool(os.environ.get(cfg.api_key_env, "").strip())


def load_config(settings_path: Path = _SETTINGS_PATH) -> AppConfig:
    """Load and validate configuration from settings.yaml.

    Raises FileNotFoundError if settings file missing, ValueError on duplicate
    agent ids. Logs missing API keys but does not raise; callers check
    available_agents count.
    """
    if not settings_path.exists():
        raise FileNotFoundError(f"Settings file not found: {settings_path}")

    with settings_path.open("r", encoding="utf-8") as f:
        raw = yaml.safe_load(f)

    defaults_raw = raw["defaults"]
    defaults = DefaultsConfig(
        rounds=int(defaults_raw["rounds"]),
        max_rounds=int(defaults_raw["max_rounds"]),
        output_dir=Path(defaults_raw["output_dir"]),
        max_tokens=int(defaults_raw.get("max_tokens", 4096)),
        timeout_sec=int(defaults_raw.get("timeout_sec", 120)),
        turn_delay_sec=float(defaults_raw.get("turn_delay_sec", 0.5)),
        round_delay_sec=float(defaults_raw.get("round_delay_sec", 1.0)),
    )

    prompts_raw = raw.get("prompts", {})
    prompts = PromptsConfig(
        turn_instruction=str(prompts_raw.get("turn_instruction", "It's your turn to respond.")),
        referee_system=str(prompts_raw.get("referee_system") or "").strip(),
    )

    agents: list[AgentConfig] = []
    available_agents: set[str] = set()
    seen: set[str] = set()

    for i, agent_raw in enumerate(raw["agents"], start=1):
        agent_cfg = _parse_agent(agent_raw, fallback_id=f"agent-{i}")
        if agent_cfg.id in seen:
            raise ValueError(f"Duplicate agent id in settings: {agent_cfg.id}")
        seen.add(agent_cfg.id)
        agents.append(agent_cfg)

        if _has_key(agent_cfg):
            available_agents.add(agent_cfg.id)
            logger.info("Agent available: %s (%s)", agent_cfg.id, agent_cfg.provider)
        else:
            logger.info(
                "Agent skipped (no API key): %s; set %s in .env",
                agent_cfg.id,
                agent_cfg.api_key_env,
            )

    referee: AgentConfig | None = None
    if raw.get("referee"):
        referee = _parse_agent(raw["referee"], fallback_id="referee")
        if not _has_key(referee):
            logger.info("Referee has no API key (%s); resolution disabled", referee.api_key_env)

    return AppConfig(
        defaults=defaults,
        agents=agents,
        prompts=prompts,
        referee=referee,
        available_agents=available_agents,
    )
