"""
Structured extraction from free-text contributor output.

Every extractor returns an ExtractionResult instead of raising, so a
malformed response degrades to "nothing extracted" with a reason attached.
"""

import logging
import re
from dataclasses import dataclass
from typing import Any, Generic, Optional, TypeVar

from dxdebate.models.case import DiagnosisHypothesis
from dxdebate.utils.parsing import parse_json_object, parse_money

logger = logging.getLogger(__name__)

T = TypeVar("T")

DIAGNOSIS_PATTERN = re.compile(
    r"([A-Za-z][\w'/\-]*(?:[ \t]+[\w'/\-]+)*)[*_]*\s*\((\d{1,3}(?:\.\d+)?)\s*%\)"
)
TEST_LINE_PATTERN = re.compile(r"\b(test|tests|lab|labs|imaging|x-ray|xray|panel|culture|scan)\b", re.IGNORECASE)
LIST_MARKER = re.compile(r"^\s*(?:[-*•·]|\d+[.)])\s*")

BIAS_TERMS = (
    "anchoring",
    "confirmation",
    "availability",
    "representativeness",
    "premature closure",
)

# Words left over when a sentence runs into the condition name
_LEADING_FILLER = re.compile(
    r"^(?:and|or|vs\.?|versus|likely|possible|probable|suspected|consider|"
    r"considering|diagnosis|differential|top|primary|secondary|the|a|an)\s+",
    re.IGNORECASE,
)


@dataclass
class ExtractionResult(Generic[T]):
    """Outcome of one extraction: a value, or the reason there is none."""

    ok: bool
    value: Optional[T] = None
    error: Optional[str] = None

    @classmethod
    def success(cls, value: T) -> "ExtractionResult[T]":
        return cls(ok=True, value=value)

    @classmethod
    def failure(cls, error: str) -> "ExtractionResult[T]":
        return cls(ok=False, error=error)

    def value_or(self, default: T) -> T:
        return self.value if self.ok and self.value is not None else default


def _clean_condition(raw: str) -> str:
    name = re.split(r"[:;,]|\s-\s", raw)[-1].strip()
    name = LIST_MARKER.sub("", name)
    previous = None
    while previous != name:
        previous = name
        name = _LEADING_FILLER.sub("", name).strip()
    return name.strip("*_ ")


class Extractor:
    """
    Pulls typed fields out of oracle text.

    Args:
        known_tests: Catalog test names, preferred over raw lines when a
            test-request line mentions one
        bias_terms: Cognitive-bias vocabulary to look for
    """

    def __init__(
        self,
        known_tests: Optional[list[str]] = None,
        bias_terms: tuple[str, ...] = BIAS_TERMS,
    ):
        self.known_tests = list(known_tests or [])
        self.bias_terms = bias_terms

    def diagnoses(self, text: str) -> ExtractionResult[list[DiagnosisHypothesis]]:
        """Read "Condition Name (NN%)" phrases as probability estimates."""
        if not text or not text.strip():
            return ExtractionResult.failure("empty response")

        found: dict[str, DiagnosisHypothesis] = {}
        for line in text.splitlines():
            for match in DIAGNOSIS_PATTERN.finditer(line):
                condition = _clean_condition(match.group(1))
                if not condition:
                    continue
                percent = float(match.group(2))
                if percent > 100:
                    continue
                reasoning = line[match.end():].strip(" :-–")
                key = condition.lower()
                if key in found:
                    continue
                found[key] = DiagnosisHypothesis(
                    condition=condition,
                    probability=round(percent / 100.0, 4),
                    reasoning=reasoning or line.strip(),
                )

        if not found:
            return ExtractionResult.failure("no 'Condition (NN%)' estimates found")
        return ExtractionResult.success(list(found.values()))

    def tests(self, text: str) -> ExtractionResult[list[str]]:
        """Test requests from lines mentioning tests, labs or imaging."""
        if not text or not text.strip():
            return ExtractionResult.failure("empty response")

        requested: list[str] = []
        for line in text.splitlines():
            if not TEST_LINE_PATTERN.search(line):
                continue
            lowered = line.lower()
            named = [t for t in self.known_tests if t.lower() in lowered]
            if named:
                candidates = named
            else:
                cleaned = LIST_MARKER.sub("", line).strip().strip("*")
                candidates = [cleaned[:120]] if cleaned else []
            for test in candidates:
                if test not in requested:
                    requested.append(test)

        if not requested:
            return ExtractionResult.failure("no test requests found")
        return ExtractionResult.success(requested)

    def cost(self, text: str) -> ExtractionResult[float]:
        """First dollar amount in the text."""
        amount = parse_money(text or "")
        if amount is None:
            return ExtractionResult.failure("no dollar amount found")
        return ExtractionResult.success(amount)

    def biases(self, text: str) -> ExtractionResult[list[str]]:
        """Named cognitive biases mentioned in the text."""
        lowered = (text or "").lower()
        found = []
        for term in self.bias_terms:
            if term in lowered:
                found.append(term if term == "premature closure" else f"{term} bias")
        if not found:
            return ExtractionResult.failure("no biases named")
        return ExtractionResult.success(found)

    def recommendations(self, text: str) -> ExtractionResult[list[str]]:
        """Lines that recommend or suggest something, plus bullet items."""
        items = []
        for line in (text or "").splitlines():
            stripped = line.strip()
            if not stripped:
                continue
            lowered = stripped.lower()
            if "recommend" in lowered or "suggest" in lowered or stripped.startswith("- "):
                items.append(stripped)
        if not items:
            return ExtractionResult.failure("no recommendations found")
        return ExtractionResult.success(items)

    def json_object(self, text: str) -> ExtractionResult[dict[str, Any]]:
        """A JSON object, tolerating code fences and surrounding prose."""
        try:
            return ExtractionResult.success(parse_json_object(text or ""))
        except ValueError as e:
            logger.debug(f"JSON extraction failed: {e}")
            return ExtractionResult.failure(str(e))
