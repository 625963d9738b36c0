"""
Shared Protocol definitions for type hints across the codebase.

These protocols define the interfaces expected from collaborators such as
LLM clients and test executors, allowing for dependency injection and
testing.
"""

from typing import Optional, Protocol

from dxdebate.models.case import DiagnosisHypothesis, TestResult
from dxdebate.models.oracle import LLMResponse


class LLMClientProtocol(Protocol):
    """
    Protocol defining the interface for LLM clients.
    """

    async def complete(
        self,
        model: str,
        messages: list[dict],
        temperature: float,
        max_tokens: Optional[int] = None,
    ) -> LLMResponse:
        """
        Complete a chat conversation with the LLM.

        Args:
            model: Model identifier (e.g., "openai/o3-mini")
            messages: List of message dicts with "role" and "content"
            temperature: Sampling temperature
            max_tokens: Optional maximum tokens to generate

        Returns:
            LLMResponse with content and token usage
        """
        ...

    def get_session_usage(self) -> dict:
        """Token usage statistics for the current session."""
        ...

    def reset_session(self) -> None:
        """Reset session tracking for a new case."""
        ...


class TestExecutorProtocol(Protocol):
    """Orders diagnostic tests for the current differential."""

    __test__ = False  # Not a pytest test class

    def execute(
        self,
        differential: list[DiagnosisHypothesis],
        remaining_budget: float,
        requested: list[str],
        already_ordered: Optional[list[str]] = None,
    ) -> list[TestResult]:
        """
        Order tests that fit within the remaining budget.

        Args:
            differential: Current ranked differential
            remaining_budget: Budget left for this case
            requested: Test names asked for by contributors
            already_ordered: Test names ordered earlier in the case

        Returns:
            Newly ordered tests, results possibly not yet available
        """
        ...
