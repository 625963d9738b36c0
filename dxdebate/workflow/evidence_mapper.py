"""
Turns case text and test results into Evidence, and applies Evidence to
the belief engine exactly once per observation.
"""

import logging
import re
from typing import Optional

from dxdebate.bayes.engine import BayesianDiagnosticEngine, evidence_key
from dxdebate.bayes.projection import project_differential
from dxdebate.knowledge.base import KnowledgeBase
from dxdebate.models.case import CaseInformation, CaseState, TestResult
from dxdebate.models.enums import EvidenceKind
from dxdebate.models.evidence import Evidence

logger = logging.getLogger(__name__)

NEGATION_PATTERN = re.compile(r"\b(no|not|denies|denied|without|negative for|absence of|free of)\b")
CLAUSE_BREAK = re.compile(r"[.;,:!?\n]|\bbut\b")
NEGATION_WINDOW = 40
ELDERLY_AGE = 65


def observation_id(evidence: Evidence) -> str:
    """Identity used to apply each observation only once."""
    return f"{evidence.kind}:{evidence_key(evidence)}"


def _is_negated(text: str, start: int) -> bool:
    window = text[max(0, start - NEGATION_WINDOW):start]
    clause = CLAUSE_BREAK.split(window)[-1]
    return bool(NEGATION_PATTERN.search(clause))


class EvidenceMapper:
    """Reads observations out of free text using the knowledge-base phrase map."""

    def __init__(self, knowledge: KnowledgeBase):
        self.knowledge = knowledge

    def from_text(self, text: str) -> list[Evidence]:
        """
        Findings mentioned in text.

        A finding mentioned only in negated form ("no fever", "denies
        fever") is recorded as False; any affirmative mention wins.
        """
        if not text:
            return []

        lowered = text.lower()
        found: list[Evidence] = []
        for entry in self.knowledge.evidence_phrases:
            affirmed = False
            negated = False
            for phrase in entry.phrases:
                for match in re.finditer(r"\b" + re.escape(phrase), lowered):
                    if _is_negated(lowered, match.start()):
                        negated = True
                    else:
                        affirmed = True
            if affirmed or negated:
                found.append(Evidence(
                    kind=entry.kind,
                    name=entry.name,
                    value=affirmed,
                    confidence=entry.confidence,
                ))
        return found

    def from_case_info(self, case_info: Optional[CaseInformation]) -> list[Evidence]:
        """Findings from the structured case record, including age."""
        if not case_info:
            return []

        text_parts = [
            case_info.chief_complaint,
            case_info.history_of_present_illness,
            *[f"{k}: {v}" for k, v in case_info.review_of_systems.items()],
            *[f"{k}: {v}" for k, v in case_info.physical_exam.items()],
        ]
        evidence = self.from_text("\n".join(p for p in text_parts if p))

        if case_info.age >= ELDERLY_AGE:
            evidence.append(Evidence(
                kind=EvidenceKind.DEMOGRAPHIC,
                name="age_over_65",
                value=True,
                confidence=1.0,
            ))
        return evidence

    def from_test(self, test: TestResult) -> Optional[Evidence]:
        """Evidence from a resulted catalog test, or None."""
        if not test.result:
            return None

        entry = self.knowledge.find_test(test.test_name)
        if not entry or not entry.evidence_name:
            return None

        result = test.result.lower()
        positive = any(
            term in result and not _is_negated(result, result.find(term))
            for term in entry.positive_terms
        )
        negative = bool(re.search(r"\b(normal|negative|unremarkable|no)\b", result))
        if not positive and not negative:
            return None

        return Evidence(
            kind=EvidenceKind.TEST_RESULT,
            name=entry.evidence_name,
            value=positive,
            confidence=entry.evidence_confidence,
        )


def apply_evidence(
    state: CaseState,
    engine: BayesianDiagnosticEngine,
    knowledge: KnowledgeBase,
    evidence: list[Evidence],
) -> int:
    """
    Fold new observations into the belief engine and refresh the differential.

    Observations already applied to this case are skipped.

    Returns:
        Number of observations applied
    """
    applied_ids = {observation_id(e) for e in state.applied_evidence}
    applied = 0
    for item in evidence:
        oid = observation_id(item)
        if oid in applied_ids:
            continue
        engine.update_with_evidence(item)
        state.applied_evidence.append(item)
        applied_ids.add(oid)
        applied += 1
        logger.debug(f"Applied {oid} (confidence {item.confidence})")

    if applied:
        state.differential_diagnoses = project_differential(
            engine, knowledge, state.differential_diagnoses
        )
        logger.info(f"Applied {applied} new observation(s); differential refreshed")
    return applied
