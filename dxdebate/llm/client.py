"""
OpenAI-compatible LLM client used as the reasoning oracle transport.

Talks to OpenRouter (or any OpenAI-compatible endpoint) through the
OpenAI SDK. Only transport failures are retried; content the model
returns is never re-requested.
"""

import asyncio
import logging
import os
from typing import Optional

import httpx
from openai import APIConnectionError, APITimeoutError, AsyncOpenAI, InternalServerError, RateLimitError
from tenacity import (
    before_sleep_log,
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from dxdebate.models.oracle import LLMResponse

logger = logging.getLogger(__name__)

# Failures worth another attempt
TRANSIENT_ERRORS = (
    APIConnectionError,
    APITimeoutError,
    RateLimitError,
    InternalServerError,
    httpx.TransportError,
    asyncio.TimeoutError,
)


def _summarize_usage(calls: list[dict]) -> dict:
    usage_by_model: dict[str, dict] = {}
    for call in calls:
        model = call["model"]
        if model not in usage_by_model:
            usage_by_model[model] = {
                "input_tokens": 0,
                "output_tokens": 0,
                "calls": 0,
            }
        usage_by_model[model]["input_tokens"] += call["input_tokens"]
        usage_by_model[model]["output_tokens"] += call["output_tokens"]
        usage_by_model[model]["calls"] += 1
    return usage_by_model


class LLMClient:
    """
    Async client for an OpenAI-compatible chat completion API.
    """

    OPENROUTER_BASE_URL = "https://openrouter.ai/api/v1"

    def __init__(
        self,
        api_key: Optional[str] = None,
        base_url: Optional[str] = None,
        site_name: Optional[str] = None,
    ):
        """
        Initialize the LLM client.

        Args:
            api_key: API key. If not provided, reads OPENROUTER_API_KEY.
            base_url: Endpoint URL. Defaults to DXDEBATE_BASE_URL or OpenRouter.
            site_name: Optional title sent for OpenRouter attribution.
        """
        self.api_key = api_key or os.getenv("OPENROUTER_API_KEY")
        if not self.api_key:
            raise ValueError(
                "API key required. Set OPENROUTER_API_KEY environment variable "
                "or pass api_key parameter."
            )

        self.base_url = base_url or os.getenv("DXDEBATE_BASE_URL", self.OPENROUTER_BASE_URL)
        self.site_name = site_name or os.getenv("OPENROUTER_SITE_NAME", "Diagnostic Debate")

        self.client = AsyncOpenAI(
            api_key=self.api_key,
            base_url=self.base_url,
            default_headers={"X-Title": self.site_name},
        )

        self._session_costs: list[dict] = []

    @retry(
        retry=retry_if_exception_type(TRANSIENT_ERRORS),
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        before_sleep=before_sleep_log(logger, logging.WARNING),
        reraise=True,
    )
    async def complete(
        self,
        model: str,
        messages: list[dict],
        temperature: float = 0.3,
        max_tokens: Optional[int] = None,
    ) -> LLMResponse:
        """
        Generate a completion from the specified model.

        Args:
            model: Model identifier (e.g., "openai/o3-mini")
            messages: List of message dicts with "role" and "content" keys
            temperature: Sampling temperature (0.0 to 2.0)
            max_tokens: Maximum tokens to generate (optional)

        Returns:
            LLMResponse with content and token usage
        """
        kwargs = {
            "model": model,
            "messages": messages,
            "temperature": temperature,
        }
        if max_tokens:
            kwargs["max_tokens"] = max_tokens

        response = await self.client.chat.completions.create(**kwargs)

        content = response.choices[0].message.content or ""
        finish_reason = response.choices[0].finish_reason or "stop"

        input_tokens = response.usage.prompt_tokens if response.usage else 0
        output_tokens = response.usage.completion_tokens if response.usage else 0

        self._session_costs.append({
            "model": model,
            "input_tokens": input_tokens,
            "output_tokens": output_tokens,
        })

        return LLMResponse(
            content=content,
            model=model,
            input_tokens=input_tokens,
            output_tokens=output_tokens,
            finish_reason=finish_reason,
        )

    def get_session_usage(self) -> dict:
        """Token usage for this session, grouped by model."""
        return _summarize_usage(self._session_costs)

    def reset_session(self):
        """Reset session usage tracking."""
        self._session_costs = []


class MockLLMClient:
    """
    Mock LLM client for testing.

    Responses are looked up by model name. A list of strings is consumed
    in order, one per call, repeating the last entry once exhausted.
    """

    def __init__(self, responses: Optional[dict[str, object]] = None):
        """
        Initialize mock client.

        Args:
            responses: Optional dict mapping model names to a response string
                or a list of response strings.
        """
        self.responses = responses or {}
        self.calls: list[dict] = []
        self._session_costs: list[dict] = []
        self._cursor: dict[str, int] = {}

    def _next_content(self, model: str) -> str:
        configured = self.responses.get(model)
        if configured is None:
            return f"Mock response from {model}"
        if isinstance(configured, str):
            return configured

        index = self._cursor.get(model, 0)
        self._cursor[model] = index + 1
        return configured[min(index, len(configured) - 1)]

    async def complete(
        self,
        model: str,
        messages: list[dict],
        temperature: float = 0.3,
        max_tokens: Optional[int] = None,
    ) -> LLMResponse:
        """Return a mock response."""
        self.calls.append({
            "model": model,
            "messages": messages,
            "temperature": temperature,
            "max_tokens": max_tokens,
        })

        content = self._next_content(model)

        # Simulate token usage
        input_tokens = sum(len(m.get("content", "")) // 4 for m in messages)
        output_tokens = len(content) // 4

        self._session_costs.append({
            "model": model,
            "input_tokens": input_tokens,
            "output_tokens": output_tokens,
        })

        return LLMResponse(
            content=content,
            model=model,
            input_tokens=input_tokens,
            output_tokens=output_tokens,
            finish_reason="stop",
        )

    def get_session_usage(self) -> dict:
        """Get mock session usage."""
        return _summarize_usage(self._session_costs)

    def reset_session(self):
        """Reset mock session."""
        self._session_costs = []
        self.calls = []
        self._cursor = {}
