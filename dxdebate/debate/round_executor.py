"""
Round executor for the diagnostic debate.

A round is a left fold of contributions over the case state: each role
speaks in the fixed order for the current phase, and its contribution is
folded in before the next role is briefed. Roles therefore run one at a
time, never concurrently.

After each round a synthesis step picks the leading diagnosis, sets the
confidence and readiness flags, and scores reasoning quality.
"""

import logging
from typing import Callable, Optional

from dxdebate.bayes.engine import BayesianDiagnosticEngine
from dxdebate.bayes.projection import project_differential
from dxdebate.debate.agent import (
    ContributorAgent,
    build_briefing,
    format_belief_analysis,
    roles_for_phase,
)
from dxdebate.knowledge.base import KnowledgeBase, condition_key
from dxdebate.llm.oracle import ReasoningOracle
from dxdebate.models.case import CaseState, Contribution, DiagnosisHypothesis
from dxdebate.models.config import WorkflowConfig
from dxdebate.models.enums import ContributorRole, DiagnosticPhase
from dxdebate.models.progress import ProgressStage, ProgressUpdate
from dxdebate.utils.extraction import Extractor
from dxdebate.utils.parsing import get_role_display, truncate

logger = logging.getLogger(__name__)

# Phase that follows each debate turn when the threshold has not been reached
PHASE_PROGRESSION: dict[str, str] = {
    DiagnosticPhase.CASE_PRESENTATION.value: DiagnosticPhase.INITIAL_ASSESSMENT.value,
    DiagnosticPhase.INITIAL_ASSESSMENT.value: DiagnosticPhase.INFORMATION_GATHERING.value,
    DiagnosticPhase.INFORMATION_GATHERING.value: DiagnosticPhase.TEST_SELECTION.value,
    DiagnosticPhase.TEST_SELECTION.value: DiagnosticPhase.DELIBERATION.value,
}
DELIBERATION_EXIT_CONFIDENCE = 0.6


def merge_diagnosis_deltas(
    differential: list[DiagnosisHypothesis],
    deltas: list[DiagnosisHypothesis],
) -> list[DiagnosisHypothesis]:
    """
    Merge contributor estimates into the differential by condition name.

    Matching entries take the new probability and reasoning and gain any
    new supporting evidence; unmatched deltas are added. The result is
    sorted by descending probability.
    """
    merged = [h.model_copy(deep=True) for h in differential]
    index = {condition_key(h.condition): h for h in merged}

    for delta in deltas:
        existing = index.get(condition_key(delta.condition))
        if existing is None:
            entry = delta.model_copy(deep=True)
            merged.append(entry)
            index[condition_key(entry.condition)] = entry
            continue
        existing.probability = delta.probability
        if delta.reasoning:
            existing.reasoning = delta.reasoning
        for item in delta.supporting_evidence:
            if item not in existing.supporting_evidence:
                existing.supporting_evidence.append(item)
        if delta.classification_code and not existing.classification_code:
            existing.classification_code = delta.classification_code

    return sorted(merged, key=lambda h: h.probability, reverse=True)


def fold_contribution(
    state: CaseState,
    contribution: Contribution,
    history_limit: int = 20,
) -> CaseState:
    """
    Fold one contribution into the case state.

    Pure: the input state is not modified.

    Args:
        state: Case state before the contribution
        contribution: What one role said this round
        history_limit: How many trailing contributions to keep

    Returns:
        New case state
    """
    new_state = state.model_copy(deep=True)

    if contribution.diagnosis_deltas:
        new_state.differential_diagnoses = merge_diagnosis_deltas(
            new_state.differential_diagnoses,
            contribution.diagnosis_deltas,
        )

    if contribution.cost_estimate:
        new_state.cumulative_cost += contribution.cost_estimate

    for bias in contribution.biases_found:
        if bias not in new_state.biases_detected:
            new_state.biases_detected.append(bias)

    ordered = {t.test_name.lower() for t in new_state.diagnostic_tests}
    for test in contribution.tests_requested:
        if test.lower() in ordered:
            continue
        if test.lower() not in {t.lower() for t in new_state.pending_test_requests}:
            new_state.pending_test_requests.append(test)

    new_state.contributions = (new_state.contributions + [contribution])[-history_limit:]
    new_state.contribution_count += 1
    new_state.messages.append(
        f"{get_role_display(contribution.role)} (round {contribution.round_number}): "
        f"{truncate(contribution.narrative, 200)}"
    )
    return new_state


def reasoning_quality(state: CaseState) -> float:
    """
    Score the debate process between 0 and 1.

    Weighted sum of contribution volume, differential breadth and biases
    caught, plus a flat bonus once any cost has been tracked.
    """
    score = 0.3 * min(state.contribution_count / 10, 1.0)
    score += 0.2 * min(len(state.differential_diagnoses) / 5, 1.0)
    score += 0.2 * min(len(state.biases_detected) / 3, 1.0)
    if state.cumulative_cost > 0:
        score += 0.3
    return min(score, 1.0)


def synthesize(state: CaseState, config: WorkflowConfig) -> CaseState:
    """Pick the leading diagnosis and set confidence, readiness and quality."""
    new_state = state.model_copy(deep=True)
    ranked = sorted(new_state.differential_diagnoses, key=lambda h: h.probability, reverse=True)
    new_state.differential_diagnoses = ranked

    if ranked:
        new_state.final_diagnosis = ranked[0].model_copy(deep=True)
        new_state.confidence_level = ranked[0].probability
    else:
        new_state.final_diagnosis = None
        new_state.confidence_level = 0.0

    new_state.ready_for_diagnosis = new_state.confidence_level >= config.confidence_threshold
    new_state.reasoning_quality = reasoning_quality(new_state)
    return new_state


def next_phase(state: CaseState, config: WorkflowConfig) -> str:
    """Phase to move to after a debate turn."""
    if state.confidence_level >= config.confidence_threshold:
        return DiagnosticPhase.FINAL_DIAGNOSIS.value
    if state.phase == DiagnosticPhase.DELIBERATION.value:
        if state.confidence_level > DELIBERATION_EXIT_CONFIDENCE:
            return DiagnosticPhase.FINAL_DIAGNOSIS.value
        return DiagnosticPhase.INFORMATION_GATHERING.value
    return PHASE_PROGRESSION.get(state.phase, state.phase)


class RoundExecutor:
    """
    Runs debate rounds for one case.

    Holds one ContributorAgent per participating role and the case's
    belief engine. Contributor estimates are written to the engine and the
    differential is re-projected from it after every contribution.
    """

    def __init__(
        self,
        oracle: ReasoningOracle,
        engine: BayesianDiagnosticEngine,
        knowledge: KnowledgeBase,
        config: WorkflowConfig,
        extractor: Optional[Extractor] = None,
    ):
        self.engine = engine
        self.knowledge = knowledge
        self.config = config
        self.extractor = extractor or Extractor(known_tests=list(knowledge.tests.keys()))
        self.agents: dict[ContributorRole, ContributorAgent] = {
            ContributorRole(role): ContributorAgent(ContributorRole(role), oracle, self.extractor)
            for role in config.participating_roles
        }

    def _record_estimates(self, contribution: Contribution) -> None:
        for delta in contribution.diagnosis_deltas:
            cid = condition_key(delta.condition)
            if not self.engine.is_tracking(cid):
                logger.info(f"Tracking new condition {cid} at {delta.probability:.3f}")
            profile = self.knowledge.get_condition(cid)
            code = delta.classification_code or (profile.classification_code if profile else None)
            self.engine.revise_belief(cid, delta.probability, code)

    async def run_round(
        self,
        state: CaseState,
        progress_callback: Optional[Callable[[ProgressUpdate], None]] = None,
        percent: int = 0,
    ) -> CaseState:
        """
        Play one debate round in the current phase.

        Increments debate_round, folds every role's contribution in order
        and finishes with synthesis.
        """
        state = state.model_copy(deep=True)
        state.debate_round += 1
        round_number = state.debate_round
        roles = roles_for_phase(state.phase, self.config.participating_roles)

        def report(stage: ProgressStage, message: str, **detail):
            if progress_callback:
                progress_callback(ProgressUpdate(
                    stage=stage,
                    message=message,
                    percent=percent,
                    detail=detail,
                ))

        report(
            ProgressStage.ROUND_START,
            f"Round {round_number} ({state.phase})",
            round_number=round_number,
            roles=[r.value for r in roles],
        )

        for role in roles:
            agent = self.agents.get(role)
            if agent is None:
                continue

            report(ProgressStage.CONTRIBUTOR_THINKING, f"{agent.display_name} is thinking...", role=role.value)

            belief_analysis = ""
            if agent.handler.receives_belief_analysis:
                belief_analysis = format_belief_analysis(self.engine, self.knowledge, self.config)

            briefing = build_briefing(state, role, round_number, belief_analysis)
            contribution = await agent.contribute(briefing, round_number)

            state = fold_contribution(state, contribution, self.config.contribution_history_limit)
            self._record_estimates(contribution)
            state.differential_diagnoses = project_differential(
                self.engine, self.knowledge, state.differential_diagnoses
            )

            report(
                ProgressStage.CONTRIBUTOR_COMPLETE,
                f"{agent.display_name} finished",
                role=role.value,
                failed=contribution.failed,
            )

        state = synthesize(state, self.config)
        report(
            ProgressStage.ROUND_COMPLETE,
            f"Round {round_number} complete",
            round_number=round_number,
            confidence=state.confidence_level,
        )
        logger.info(
            f"Round {round_number} complete: confidence {state.confidence_level:.2f}, "
            f"cost ${state.cumulative_cost:.0f}"
        )
        return state

    def _should_stop(self, state: CaseState) -> bool:
        return (
            state.confidence_level >= self.config.confidence_threshold
            or state.cumulative_cost >= state.cost_budget
            or state.ready_for_diagnosis
            or state.debate_round >= self.config.max_debate_rounds
        )

    async def run_turn(
        self,
        state: CaseState,
        progress_callback: Optional[Callable[[ProgressUpdate], None]] = None,
        percent: int = 0,
    ) -> CaseState:
        """
        Run up to debate_rounds_per_turn rounds, then advance the phase.

        Stops early once confidence reaches the threshold, the budget is
        spent or the round cap is hit.
        """
        for _ in range(self.config.debate_rounds_per_turn):
            state = await self.run_round(state, progress_callback, percent)
            if self._should_stop(state):
                break

        state = synthesize(state, self.config)
        if progress_callback:
            progress_callback(ProgressUpdate(
                stage=ProgressStage.SYNTHESIS,
                message=f"Leading diagnosis: "
                        f"{state.final_diagnosis.condition if state.final_diagnosis else 'none'}",
                percent=percent,
                detail={"confidence": state.confidence_level},
            ))

        state.phase = next_phase(state, self.config)
        return state
