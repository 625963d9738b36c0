"""
Reasoning oracle: prompt in, text out.

Wraps an LLM client with a per-call timeout and turns transport failures
into OracleUnavailableError so callers can degrade gracefully.
"""

import asyncio
import logging
from typing import Optional

from dxdebate.llm.client import TRANSIENT_ERRORS
from dxdebate.utils.protocols import LLMClientProtocol

logger = logging.getLogger(__name__)


class OracleError(Exception):
    """Base class for reasoning-oracle failures."""


class OracleUnavailableError(OracleError):
    """The oracle could not be reached or did not answer in time."""


class ReasoningOracle:
    """Single entry point for every model call made by the workflow."""

    def __init__(
        self,
        llm_client: LLMClientProtocol,
        model: str,
        temperature: float = 0.3,
        timeout_seconds: float = 60.0,
    ):
        self.llm_client = llm_client
        self.model = model
        self.temperature = temperature
        self.timeout_seconds = timeout_seconds

    async def invoke(self, prompt: str, system_prompt: Optional[str] = None) -> str:
        """
        Send a prompt and return the raw response text.

        Raises:
            OracleUnavailableError: On timeout or exhausted transport retries
            OracleError: On any other client failure
        """
        messages = []
        if system_prompt:
            messages.append({"role": "system", "content": system_prompt})
        messages.append({"role": "user", "content": prompt})

        try:
            response = await asyncio.wait_for(
                self.llm_client.complete(
                    model=self.model,
                    messages=messages,
                    temperature=self.temperature,
                ),
                timeout=self.timeout_seconds,
            )
        except TRANSIENT_ERRORS as e:
            logger.warning(f"Oracle unavailable ({type(e).__name__}): {e}")
            raise OracleUnavailableError(str(e) or type(e).__name__) from e
        except Exception as e:
            logger.warning(f"Oracle call failed: {e}")
            raise OracleError(str(e)) from e

        return response.content
