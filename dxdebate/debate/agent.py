"""
Contributor agents for the diagnostic debate.

Each agent plays one fixed role (hypothesis, test selection, bias
challenge, cost stewardship, quality checklist). The role decides which
system prompt is used and which fields are extracted from the reply;
both come from the ROLE_HANDLERS table rather than subclassing.
"""

import logging
from dataclasses import dataclass
from typing import Callable, Optional

from dxdebate.bayes.engine import BayesianDiagnosticEngine
from dxdebate.knowledge.base import KnowledgeBase
from dxdebate.llm.oracle import OracleError, ReasoningOracle
from dxdebate.models.case import CaseState, Contribution
from dxdebate.models.config import WorkflowConfig
from dxdebate.models.enums import ContributorRole, DiagnosticPhase
from dxdebate.utils.extraction import Extractor
from dxdebate.utils.parsing import (
    format_case_information,
    format_differential,
    get_role_display,
    truncate,
)
from dxdebate.utils.prompt_loader import format_prompt, load_prompt, render_prompt

logger = logging.getLogger(__name__)


# Which roles speak, in order, during each phase
ROLE_SEQUENCES: dict[DiagnosticPhase, list[ContributorRole]] = {
    DiagnosticPhase.CASE_PRESENTATION: [
        ContributorRole.HYPOTHESIS,
        ContributorRole.CHALLENGER,
        ContributorRole.CHECKLIST,
    ],
    DiagnosticPhase.INITIAL_ASSESSMENT: [
        ContributorRole.HYPOTHESIS,
        ContributorRole.CHALLENGER,
        ContributorRole.CHECKLIST,
    ],
    DiagnosticPhase.INFORMATION_GATHERING: [
        ContributorRole.HYPOTHESIS,
        ContributorRole.TEST_CHOOSER,
        ContributorRole.STEWARDSHIP,
        ContributorRole.CHALLENGER,
    ],
    DiagnosticPhase.TEST_SELECTION: [
        ContributorRole.TEST_CHOOSER,
        ContributorRole.STEWARDSHIP,
        ContributorRole.CHALLENGER,
        ContributorRole.CHECKLIST,
    ],
    DiagnosticPhase.DELIBERATION: [
        ContributorRole.HYPOTHESIS,
        ContributorRole.CHALLENGER,
        ContributorRole.STEWARDSHIP,
        ContributorRole.CHECKLIST,
    ],
    DiagnosticPhase.FINAL_DIAGNOSIS: [
        ContributorRole.HYPOTHESIS,
        ContributorRole.CHECKLIST,
        ContributorRole.STEWARDSHIP,
    ],
}

PHASE_DIRECTIVES: dict[str, str] = {
    DiagnosticPhase.CASE_PRESENTATION.value: (
        "Establish a broad initial differential from the presenting complaint."
    ),
    DiagnosticPhase.INITIAL_ASSESSMENT.value: (
        "Refine the initial differential and identify the key missing facts."
    ),
    DiagnosticPhase.INFORMATION_GATHERING.value: (
        "Decide what history, examination or test information would best separate the leading diagnoses."
    ),
    DiagnosticPhase.TEST_SELECTION.value: (
        "Choose the highest-yield tests that fit the remaining budget."
    ),
    DiagnosticPhase.DELIBERATION.value: (
        "Weigh all the evidence gathered so far and converge on the most likely diagnosis."
    ),
    DiagnosticPhase.FINAL_DIAGNOSIS.value: (
        "Confirm the final diagnosis is justified and nothing important has been missed."
    ),
}


def roles_for_phase(
    phase: str,
    participating: Optional[list[str]] = None,
) -> list[ContributorRole]:
    """
    Ordered roles that speak in a phase.

    Phases without a fixed sequence use every role. Roles not in
    participating are dropped.
    """
    try:
        sequence = ROLE_SEQUENCES.get(DiagnosticPhase(phase), list(ContributorRole))
    except ValueError:
        sequence = list(ContributorRole)

    if participating is None:
        return list(sequence)
    allowed = {ContributorRole(r) for r in participating}
    return [role for role in sequence if role in allowed]


# Role-specific extraction: each returns the Contribution fields it fills


def _hypothesis_fields(extractor: Extractor, text: str) -> dict:
    return {"diagnosis_deltas": extractor.diagnoses(text).value_or([])}


def _test_chooser_fields(extractor: Extractor, text: str) -> dict:
    return {"tests_requested": extractor.tests(text).value_or([])}


def _stewardship_fields(extractor: Extractor, text: str) -> dict:
    result = extractor.cost(text)
    return {"cost_estimate": result.value if result.ok else None}


def _challenger_fields(extractor: Extractor, text: str) -> dict:
    return {"biases_found": extractor.biases(text).value_or([])}


def _checklist_fields(extractor: Extractor, text: str) -> dict:
    return {}


@dataclass(frozen=True)
class RoleHandler:
    """How one role is prompted and how its reply is read."""

    prompt_name: str
    extract: Callable[[Extractor, str], dict]
    receives_belief_analysis: bool = False


ROLE_HANDLERS: dict[ContributorRole, RoleHandler] = {
    ContributorRole.HYPOTHESIS: RoleHandler("hypothesis", _hypothesis_fields, receives_belief_analysis=True),
    ContributorRole.TEST_CHOOSER: RoleHandler("test_chooser", _test_chooser_fields),
    ContributorRole.STEWARDSHIP: RoleHandler("stewardship", _stewardship_fields),
    ContributorRole.CHALLENGER: RoleHandler("challenger", _challenger_fields),
    ContributorRole.CHECKLIST: RoleHandler("checklist", _checklist_fields),
}


def format_belief_analysis(
    engine: BayesianDiagnosticEngine,
    knowledge: KnowledgeBase,
    config: WorkflowConfig,
) -> str:
    """Belief ranking plus information-gain table for the hypothesis role."""
    ranked = engine.get_ranked_diagnoses()
    if not ranked:
        return ""

    ranking_lines = []
    for record in ranked:
        code = f" [{record.classification_code}]" if record.classification_code else ""
        ranking_lines.append(
            f"- {knowledge.display_name(record.condition_id)}{code}: "
            f"{record.posterior_probability * 100:.1f}% "
            f"(prior {record.prior_probability * 100:.1f}%, "
            f"{len(record.evidence_log)} observations)"
        )

    gain_lines = [
        f"- {candidate.name}: {gain:.3f}"
        for candidate, gain in engine.information_gain_table(config.information_gain_candidates)
    ]

    return render_prompt(
        "belief_analysis",
        belief_ranking="\n".join(ranking_lines),
        information_gain="\n".join(gain_lines) or "- none configured",
    )


def build_briefing(
    state: CaseState,
    role: ContributorRole,
    round_number: int,
    belief_analysis: str = "",
    recent_limit: int = 5,
) -> str:
    """Assemble the user prompt for one role from the current case state."""
    recent = state.contributions[-recent_limit:]
    if recent:
        recent_text = "\n\n".join(
            f"**{get_role_display(c.role)}** (round {c.round_number}): {truncate(c.narrative, 600)}"
            for c in recent
        )
    else:
        recent_text = "No discussion yet."

    tests = [
        f"{t.test_name}: {t.result}" if t.result else f"{t.test_name} (pending)"
        for t in state.diagnostic_tests
    ]

    return format_prompt(
        load_prompt("briefing", "workflow"),
        case_information=format_case_information(state.case_info),
        differential=format_differential(state.differential_diagnoses),
        recent_contributions=recent_text,
        phase=state.phase,
        round_number=round_number,
        cumulative_cost=f"{state.cumulative_cost:.2f}",
        cost_budget=f"{state.cost_budget:.2f}",
        remaining_budget=f"{max(state.cost_budget - state.cumulative_cost, 0.0):.2f}",
        tests_ordered=", ".join(tests) or "none",
        phase_directive=PHASE_DIRECTIVES.get(state.phase, "Contribute your perspective on the case."),
        belief_analysis=belief_analysis,
        role_name=get_role_display(role.value),
    )


class ContributorAgent:
    """
    A debate participant with one assigned role.

    The agent never raises on oracle failure: it returns a Contribution
    marked failed, with a fallback narrative.
    """

    def __init__(
        self,
        role: ContributorRole,
        oracle: ReasoningOracle,
        extractor: Extractor,
    ):
        self.role = ContributorRole(role)
        self.handler = ROLE_HANDLERS[self.role]
        self.oracle = oracle
        self.extractor = extractor
        self.system_prompt = load_prompt(self.handler.prompt_name, "roles")

    @property
    def display_name(self) -> str:
        return get_role_display(self.role.value)

    def parse(self, text: str, round_number: int) -> Contribution:
        """Turn oracle text into a Contribution using this role's extractors."""
        fields = self.handler.extract(self.extractor, text)
        return Contribution(
            role=self.role,
            narrative=text,
            recommendations=self.extractor.recommendations(text).value_or([]),
            round_number=round_number,
            **fields,
        )

    async def contribute(self, briefing: str, round_number: int) -> Contribution:
        """
        Ask the oracle for this role's view of the case.

        Args:
            briefing: User prompt built by build_briefing
            round_number: Debate round being played

        Returns:
            Contribution (failed=True if the oracle could not answer)
        """
        try:
            text = await self.oracle.invoke(briefing, system_prompt=self.system_prompt)
        except OracleError as e:
            logger.warning(f"{self.display_name} unavailable in round {round_number}: {e}")
            return Contribution(
                role=self.role,
                narrative=f"{self.display_name} could not be consulted this round ({e}).",
                round_number=round_number,
                failed=True,
            )

        return self.parse(text, round_number)
