"""Utility functions and helpers."""

from dxdebate.utils.extraction import ExtractionResult, Extractor
from dxdebate.utils.parsing import (
    get_role_display,
    parse_json_object,
    parse_money,
    strip_code_fences,
)
from dxdebate.utils.protocols import LLMClientProtocol, TestExecutorProtocol

__all__ = [
    "ExtractionResult",
    "Extractor",
    "get_role_display",
    "parse_json_object",
    "parse_money",
    "strip_code_fences",
    "LLMClientProtocol",
    "TestExecutorProtocol",
]
