"""
Diagnostic test selection against the knowledge-base catalog.
"""

import logging
import re
from typing import Optional

from dxdebate.knowledge.base import KnowledgeBase
from dxdebate.models.case import DiagnosisHypothesis, TestResult

logger = logging.getLogger(__name__)


def estimate_test_cost(test_name: str) -> float:
    """Price a test that is not in the catalog from its name."""
    lowered = test_name.lower()
    if "blood" in lowered or "lab" in lowered:
        return 50.0
    if "x-ray" in lowered or "xray" in lowered:
        return 150.0
    if re.search(r"\bct\b", lowered):
        return 800.0
    if "mri" in lowered:
        return 1500.0
    if "ultrasound" in lowered:
        return 300.0
    return 100.0


class CatalogTestExecutor:
    """
    Orders tests from the knowledge-base catalog within the remaining budget.

    Requested tests come first, then the recommended workup for the top
    diagnoses. Results are left empty unless scripted_results supplies
    one for the test name (useful for demonstrations and tests).
    """

    __test__ = False  # Not a pytest test class

    def __init__(
        self,
        knowledge: KnowledgeBase,
        scripted_results: Optional[dict[str, str]] = None,
        max_tests_per_turn: int = 3,
        top_diagnoses: int = 2,
    ):
        self.knowledge = knowledge
        self.scripted_results = {k.lower(): v for k, v in (scripted_results or {}).items()}
        self.max_tests_per_turn = max_tests_per_turn
        self.top_diagnoses = top_diagnoses

    def recommend(self, differential: list[DiagnosisHypothesis]) -> list[str]:
        """Catalog workup for the leading diagnoses, de-duplicated, in order."""
        ranked = sorted(differential, key=lambda d: d.probability, reverse=True)
        names: list[str] = []
        for hypothesis in ranked[:self.top_diagnoses]:
            profile = self.knowledge.get_condition(hypothesis.condition)
            if not profile:
                continue
            for test in profile.recommended_tests:
                if test.lower() not in {n.lower() for n in names}:
                    names.append(test)
        return names

    def price(self, test_name: str) -> TestResult:
        """Build an unresulted TestResult with catalog or estimated cost."""
        entry = self.knowledge.find_test(test_name)
        if entry:
            return TestResult(
                test_name=entry.name,
                test_type=entry.test_type,
                cost=entry.cost,
                sensitivity=entry.sensitivity,
                specificity=entry.specificity,
            )
        return TestResult(test_name=test_name, cost=estimate_test_cost(test_name))

    def execute(
        self,
        differential: list[DiagnosisHypothesis],
        remaining_budget: float,
        requested: list[str],
        already_ordered: Optional[list[str]] = None,
    ) -> list[TestResult]:
        """
        Order the tests that fit in the remaining budget.

        Args:
            differential: Current ranked differential
            remaining_budget: Budget left for this case
            requested: Test names asked for by contributors
            already_ordered: Names of tests ordered earlier in the case

        Returns:
            The newly ordered tests
        """
        seen = {name.lower() for name in (already_ordered or [])}
        ordered: list[TestResult] = []
        spent = 0.0

        for name in list(requested) + self.recommend(differential):
            if len(ordered) >= self.max_tests_per_turn:
                break

            test = self.price(name)
            key = test.test_name.lower()
            if key in seen:
                continue
            seen.add(key)

            if spent + test.cost > remaining_budget:
                logger.info(
                    f"Skipping {test.test_name} (${test.cost:.0f}); "
                    f"${remaining_budget - spent:.0f} of budget left"
                )
                continue

            scripted = self.scripted_results.get(key)
            if scripted is not None:
                test.result = scripted

            ordered.append(test)
            spent += test.cost

        logger.info(f"Ordered {len(ordered)} test(s) totalling ${spent:.0f}")
        return ordered
