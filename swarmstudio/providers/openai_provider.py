"""OpenAI provider using openai SDK with native async streaming.

Also serves OpenAI-compatible APIs (xAI, DeepSeek, self-hosted) via base_url.
"""

import logging
from collections.abc import AsyncIterator, Sequence

from openai import APITimeoutError, AsyncOpenAI

from swarmstudio.models import ChatMessage, Completion, StreamEvent, TextFragment, UsageReport
from swarmstudio.providers.base import AIProvider, ProviderError

logger = logging.getLogger(__name__)


class OpenAIProvider(AIProvider):
    """OpenAI (or OpenAI-compatible) provider via openai SDK."""

    def __init__(
        self,
        provider_name: str,
        timeout_sec: float,
        default_base_url: str | None = None,
        require_base_url: bool = False,
    ) -> None:
        super().__init__(timeout_sec)
        self._name = provider_name
        self._default_base_url = default_base_url
        self._require_base_url = require_base_url

    def name(self) -> str:
        return self._name

    def _client(self, api_key: str, base_url: str) -> AsyncOpenAI:
        url = base_url.strip() or self._default_base_url
        if self._require_base_url and not url:
            raise ProviderError(self._name, "base_url is required for this provider")
        return AsyncOpenAI(api_key=api_key, base_url=url or None, timeout=self._timeout_sec)

    async def stream(
        self,
        model: str,
        api_key: str,
        base_url: str,
        messages: Sequence[ChatMessage],
        max_tokens: int,
    ) -> AsyncIterator[StreamEvent]:
        client = self._client(api_key, base_url)
        try:
            response = await client.chat.completions.create(
                model=model,
                messages=[m.as_dict() for m in messages],
                max_tokens=max_tokens,
                stream=True,
                stream_options={"include_usage": True},
            )
            async for chunk in response:
                if chunk.choices:
                    delta = chunk.choices[0].delta.content
                    if delta:
                        yield TextFragment(delta)
                if chunk.usage:
                    logger.debug(
                        "%s usage: %d in, %d out",
                        self._name, chunk.usage.prompt_tokens, chunk.usage.completion_tokens,
                    )
                    yield UsageReport(chunk.usage.prompt_tokens, chunk.usage.completion_tokens)
        except APITimeoutError as exc:
            raise ProviderError(self._name, f"Request timed out after {self._timeout_sec}s") from exc
        except ProviderError:
            raise
        except Exception as exc:
            raise ProviderError(self._name, f"API call failed: {exc}") from exc
        finally:
            await client.close()

        yield Completion()
