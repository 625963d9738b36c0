"""LLM client and reasoning oracle."""

from dxdebate.llm.client import LLMClient, MockLLMClient
from dxdebate.llm.oracle import OracleError, OracleUnavailableError, ReasoningOracle

__all__ = [
    "LLMClient",
    "MockLLMClient",
    "OracleError",
    "OracleUnavailableError",
    "ReasoningOracle",
]
