"""Gemini provider using google-genai SDK with native async streaming."""

import logging
from collections.abc import AsyncIterator, Sequence

from google import genai
from google.genai import types as genai_types

from swarmstudio.models import ChatMessage, Completion, StreamEvent, TextFragment, UsageReport
from swarmstudio.providers.base import AIProvider, ProviderError, merge_turns, split_system

logger = logging.getLogger(__name__)


def _to_contents(turns: Sequence[ChatMessage]) -> list[genai_types.Content]:
    return [
        genai_types.Content(
            role="model" if m.role == "assistant" else "user",
            parts=[genai_types.Part(text=m.content)],
        )
        for m in merge_turns(turns)
    ]


class GeminiProvider(AIProvider):
    """Google Gemini provider via google-genai SDK."""

    def name(self) -> str:
        return "gemini"

    async def stream(
        self,
        model: str,
        api_key: str,
        base_url: str,
        messages: Sequence[ChatMessage],
        max_tokens: int,
    ) -> AsyncIterator[StreamEvent]:
        system, turns = split_system(messages)
        http_options = genai_types.HttpOptions(
            base_url=base_url.strip() or None,
            timeout=int(self._timeout_sec * 1000),
        )
        client = genai.Client(api_key=api_key, http_options=http_options)
        config = genai_types.GenerateContentConfig(
            max_output_tokens=max_tokens,
            system_instruction=system or None,
        )

        usage_metadata = None
        try:
            response = await client.aio.models.generate_content_stream(
                model=model,
                contents=_to_contents(turns),
                config=config,
            )
            async for chunk in response:
                if chunk.text:
                    yield TextFragment(chunk.text)
                # usage metadata is cumulative; only the last one counts
                if chunk.usage_metadata:
                    usage_metadata = chunk.usage_metadata
        except TimeoutError as exc:
            raise ProviderError(self.name(), f"Request timed out after {self._timeout_sec}s") from exc
        except Exception as exc:
            raise ProviderError(self.name(), f"API call failed: {exc}") from exc
        finally:
            await client.aio.aclose()

        if usage_metadata:
            yield UsageReport(
                usage_metadata.prompt_token_count or 0,
                usage_metadata.candidates_token_count or 0,
            )
        logger.debug("Gemini stream finished for %s", model)
        yield Completion()
