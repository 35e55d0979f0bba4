"""Anthropic API engine: single-turn completions, no tool use."""

from __future__ import annotations

import asyncio
import logging
import os
from dataclasses import dataclass

from memhealth.engines.base import AgentResponse
from memhealth.errors import MemhealthError, RateLimited, Unavailable, Unreachable

logger = logging.getLogger(__name__)


@dataclass
class AnthropicAPIEngine:
    """Direct Anthropic API via the `anthropic` SDK."""

    model: str = "claude-sonnet-4-5-20250929"
    max_tokens: int = 4096
    timeout: int = 120
    api_key: str = ""

    def __post_init__(self) -> None:
        key = self.api_key or os.getenv("ANTHROPIC_API_KEY", "")
        if not key:
            raise Unavailable("Anthropic API key not configured. Set ANTHROPIC_API_KEY.")
        try:
            import anthropic

            self._client = anthropic.Anthropic(api_key=key, timeout=self.timeout)
        except ImportError:
            raise ImportError(
                "anthropic package required. Install with: pip install anthropic"
            )

    async def send(
        self,
        message: str,
        *,
        system_prompt: str | None = None,
    ) -> AgentResponse:
        import anthropic

        kwargs: dict = {
            "model": self.model,
            "max_tokens": self.max_tokens,
            "messages": [{"role": "user", "content": message}],
        }
        if system_prompt:
            kwargs["system"] = system_prompt

        try:
            response = await asyncio.to_thread(self._client.messages.create, **kwargs)
        except anthropic.RateLimitError as e:
            logger.warning("Anthropic API rate limited: %s", e)
            raise RateLimited(f"Anthropic API rate limited: {e}") from e
        except (anthropic.AuthenticationError, anthropic.PermissionDeniedError) as e:
            raise Unavailable(f"Anthropic API key rejected: {e}") from e
        except anthropic.APIConnectionError as e:
            logger.error("Anthropic API unreachable: %s", e)
            raise Unreachable(f"Anthropic API unreachable: {e}") from e
        except anthropic.InternalServerError as e:
            logger.error("Anthropic API server error: %s", e)
            raise Unreachable(f"Anthropic API server error: {e}") from e
        except anthropic.APIStatusError as e:
            logger.error("Anthropic API error: %s", e)
            raise MemhealthError(f"Anthropic API error: {e}") from e

        text = response.content[0].text if response.content else ""
        cost = None
        if response.usage:
            # Approximate cost (Sonnet pricing)
            cost = (response.usage.input_tokens * 3 + response.usage.output_tokens * 15) / 1e6

        return AgentResponse(text=text, cost_usd=cost, model=response.model)
