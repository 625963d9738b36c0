"""Static domain knowledge and diagnostic test selection."""

from dxdebate.knowledge.base import (
    ConditionProfile,
    DiagnosticTestSpec,
    EvidencePhrase,
    KnowledgeBase,
    LikelihoodTable,
    condition_key,
)
from dxdebate.knowledge.testing import CatalogTestExecutor, estimate_test_cost

__all__ = [
    "CatalogTestExecutor",
    "ConditionProfile",
    "DiagnosticTestSpec",
    "EvidencePhrase",
    "KnowledgeBase",
    "LikelihoodTable",
    "condition_key",
    "estimate_test_cost",
]
