"""Provider lookup and the streaming-call capability used by the engine."""

import logging
from collections.abc import AsyncIterator, Sequence

from swarmstudio.models import ChatMessage, StreamError, StreamEvent
from swarmstudio.providers.anthropic import AnthropicProvider
from swarmstudio.providers.base import AIProvider, ProviderError
from swarmstudio.providers.gemini import GeminiProvider
from swarmstudio.providers.openai_provider import OpenAIProvider

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT_SEC = 120.0

XAI_BASE_URL = "https://api.x.ai/v1"
DEEPSEEK_BASE_URL = "https://api.deepseek.com"


def build_registry(timeout_sec: float = DEFAULT_TIMEOUT_SEC) -> dict[str, AIProvider]:
    """Build every supported provider adapter. Returns dict keyed by provider id."""
    providers: list[AIProvider] = [
        OpenAIProvider("openai", timeout_sec),
        OpenAIProvider("xai", timeout_sec, default_base_url=XAI_BASE_URL),
        OpenAIProvider("deepseek", timeout_sec, default_base_url=DEEPSEEK_BASE_URL),
        OpenAIProvider("custom", timeout_sec, require_base_url=True),
        AnthropicProvider(timeout_sec),
        GeminiProvider(timeout_sec),
    ]
    return {p.name(): p for p in providers}


_default_registry: dict[str, AIProvider] | None = None


def _registry() -> dict[str, AIProvider]:
    global _default_registry
    if _default_registry is None:
        _default_registry = build_registry()
    return _default_registry


async def stream_chat(
    provider: str,
    model: str,
    api_key: str,
    base_url: str,
    messages: Sequence[ChatMessage],
    max_tokens: int,
    *,
    registry: dict[str, AIProvider] | None = None,
) -> AsyncIterator[StreamEvent]:
    """Stream one chat call, reporting failures as a StreamError event.

    Never raises ProviderError: the engine only ever sees events.
    """
    providers = registry if registry is not None else _registry()
    adapter = providers.get(provider)
    if adapter is None:
        yield StreamError(str(ProviderError(provider, "Unknown provider")))
        return

    try:
        async for event in adapter.stream(model, api_key, base_url, messages, max_tokens):
            yield event
    except ProviderError as exc:
        logger.debug("Provider %s raised: %s", provider, exc)
        yield StreamError(str(exc))
