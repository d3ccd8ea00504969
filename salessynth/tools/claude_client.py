"""
Async Claude client for sales insight generation.

Uses the ``anthropic`` Python SDK (``AsyncAnthropic``) with the SDK's own
retries disabled; transient failures (connection errors, rate limits,
5xx) are retried here with ``@with_retry``.  Anything else, such as an
invalid request, propagates on the first attempt.

:class:`~salessynth.research.insights.InsightGenerator` catches every
error raised here and stores its fixed fallback text instead.
"""

import logging
import os
from typing import Any, Dict, Optional

import anthropic
from anthropic import AsyncAnthropic

from salessynth.config import Settings
from salessynth.exceptions import ConfigurationError, ProviderError
from salessynth.utils import with_retry

logger = logging.getLogger(__name__)

TRANSIENT_ERRORS = (
    anthropic.APIConnectionError,
    anthropic.RateLimitError,
    anthropic.InternalServerError,
)


class ClaudeClient:
    """Async Claude client returning plain completion text.

    Args:
        api_key: Anthropic API key.  Falls back to ``ANTHROPIC_API_KEY``.
        model: Model identifier.
        timeout: Request timeout in seconds.
        client: Pre-built ``AsyncAnthropic`` instance.

    Raises:
        ConfigurationError: If no client is given and no API key is
            available.
    """

    def __init__(
        self,
        api_key: Optional[str] = None,
        model: str = "claude-sonnet-4-5",
        timeout: float = 30.0,
        client: Optional[AsyncAnthropic] = None,
    ) -> None:
        if client is None:
            api_key = api_key or os.environ.get("ANTHROPIC_API_KEY")
            if not api_key:
                raise ConfigurationError("ANTHROPIC_API_KEY must be set")
            client = AsyncAnthropic(api_key=api_key, timeout=timeout, max_retries=0)
        self.client = client
        self.model = model

    @classmethod
    def from_settings(cls, settings: Settings) -> "ClaudeClient":
        return cls(model=settings.llm_model, timeout=settings.timeouts.anthropic)

    @with_retry(max_attempts=3, retryable_exceptions=TRANSIENT_ERRORS, operation_name="claude.generate")
    async def generate(
        self,
        prompt: str,
        system: Optional[str] = None,
        max_tokens: int = 800,
        temperature: float = 0.7,
    ) -> str:
        """Send one user message and return the text of the reply.

        Args:
            prompt: User message content.
            system: Optional system prompt.
            max_tokens: Completion budget.
            temperature: Sampling temperature.

        Returns:
            Text blocks of the reply joined together.

        Raises:
            ProviderError: If the reply has no text.
            RetryExhaustedError: If every attempt hit a transient error.
        """
        kwargs: Dict[str, Any] = {
            "model": self.model,
            "messages": [{"role": "user", "content": prompt}],
            "max_tokens": max_tokens,
            "temperature": temperature,
        }
        if system:
            kwargs["system"] = system

        response = await self.client.messages.create(**kwargs)

        text = "".join(
            getattr(block, "text", "") or "" for block in response.content or []
        ).strip()
        logger.info(
            "Claude %s: in=%d out=%d tokens, stop=%s",
            self.model,
            response.usage.input_tokens,
            response.usage.output_tokens,
            response.stop_reason,
        )
        if not text:
            raise ProviderError("anthropic", f"empty completion (stop_reason={response.stop_reason})")
        return text
