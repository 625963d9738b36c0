"""Contributor roles and the debate round executor."""

from dxdebate.debate.agent import (
    ROLE_HANDLERS,
    ROLE_SEQUENCES,
    ContributorAgent,
    build_briefing,
    roles_for_phase,
)
from dxdebate.debate.round_executor import (
    RoundExecutor,
    fold_contribution,
    merge_diagnosis_deltas,
    next_phase,
    reasoning_quality,
    synthesize,
)

__all__ = [
    "ROLE_HANDLERS",
    "ROLE_SEQUENCES",
    "ContributorAgent",
    "RoundExecutor",
    "build_briefing",
    "fold_contribution",
    "merge_diagnosis_deltas",
    "next_phase",
    "reasoning_quality",
    "roles_for_phase",
    "synthesize",
]
