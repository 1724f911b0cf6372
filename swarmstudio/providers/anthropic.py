"""Anthropic Claude provider using anthropic SDK with native async streaming."""

import logging
from collections.abc import AsyncIterator, Sequence

import anthropic as anthropic_sdk

from swarmstudio.models import ChatMessage, Completion, StreamEvent, TextFragment, UsageReport
from swarmstudio.providers.base import AIProvider, ProviderError, merge_turns, split_system

logger = logging.getLogger(__name__)


class AnthropicProvider(AIProvider):
    """Anthropic Claude provider via anthropic SDK."""

    def name(self) -> str:
        return "anthropic"

    async def stream(
        self,
        model: str,
        api_key: str,
        base_url: str,
        messages: Sequence[ChatMessage],
        max_tokens: int,
    ) -> AsyncIterator[StreamEvent]:
        system, turns = split_system(messages)
        request: dict = {
            "model": model,
            "max_tokens": max_tokens,
            "messages": [m.as_dict() for m in merge_turns(turns)],
            "stream": True,
        }
        if system:
            request["system"] = system

        client = anthropic_sdk.AsyncAnthropic(
            api_key=api_key,
            base_url=base_url.strip() or None,
            timeout=self._timeout_sec,
        )
        try:
            response = await client.messages.create(**request)
            async for event in response:
                if event.type == "message_start":
                    # output tokens are reported cumulatively by message_delta
                    yield UsageReport(event.message.usage.input_tokens, 0)
                elif event.type == "content_block_delta" and event.delta.type == "text_delta":
                    yield TextFragment(event.delta.text)
                elif event.type == "message_delta" and event.usage:
                    yield UsageReport(0, event.usage.output_tokens)
        except anthropic_sdk.APITimeoutError as exc:
            raise ProviderError(self.name(), f"Request timed out after {self._timeout_sec}s") from exc
        except Exception as exc:
            raise ProviderError(self.name(), f"API call failed: {exc}") from exc
        finally:
            await client.close()

        logger.debug("Anthropic stream finished for %s", model)
        yield Completion()
