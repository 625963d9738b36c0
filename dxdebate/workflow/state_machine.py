"""
Investigation state machine.

next_action() is a total function from a case-state snapshot to the next
WorkflowAction; ACTION_PHASES says which phase each action puts the case
into. The engine in workflow/engine.py performs the actions.
"""

import logging
from typing import Optional

from dxdebate.models.case import CaseState
from dxdebate.models.config import WorkflowConfig
from dxdebate.models.enums import DiagnosticPhase, WorkflowAction
from dxdebate.workflow.questions import QuestionPolicy

logger = logging.getLogger(__name__)


# Phase entered when an action is taken. None keeps the current phase.
ACTION_PHASES: dict[WorkflowAction, Optional[DiagnosticPhase]] = {
    WorkflowAction.INITIALIZE_CASE: DiagnosticPhase.CASE_PRESENTATION,
    WorkflowAction.DELIBERATE: None,
    WorkflowAction.PATIENT_INTERACTION: DiagnosticPhase.PATIENT_INTERACTION,
    WorkflowAction.PROCESS_RESPONSE: None,
    WorkflowAction.TEST_EXECUTION: None,
    WorkflowAction.FINAL_ASSESSMENT: DiagnosticPhase.FINAL_DIAGNOSIS,
}


def interaction_floor_unmet(state: CaseState, config: WorkflowConfig) -> bool:
    return state.interaction_round < config.min_interaction_rounds


def next_action(
    state: CaseState,
    config: WorkflowConfig,
    policy: Optional[QuestionPolicy] = None,
) -> WorkflowAction:
    """
    Decide what the investigation does next. First matching rule wins.

    An answer handed in on resume is always merged first. Budget
    exhaustion is checked next and always ends the case. A new case gets
    one debate turn before the first questions.
    """
    policy = policy or QuestionPolicy(config)

    if state.case_id is None:
        return WorkflowAction.INITIALIZE_CASE

    if state.completed:
        return WorkflowAction.FINAL_ASSESSMENT

    if state.received_answer is not None:
        return WorkflowAction.PROCESS_RESPONSE

    if state.cumulative_cost >= state.cost_budget:
        return WorkflowAction.FINAL_ASSESSMENT

    if state.awaiting_user_input or state.pending_questions:
        return WorkflowAction.PATIENT_INTERACTION

    if (
        state.debate_round == 0
        and not state.ready_for_diagnosis
        and state.phase == DiagnosticPhase.CASE_PRESENTATION.value
    ):
        return WorkflowAction.DELIBERATE

    if policy.should_generate(state):
        return WorkflowAction.PATIENT_INTERACTION

    if state.ready_for_diagnosis or state.phase == DiagnosticPhase.FINAL_DIAGNOSIS.value:
        if interaction_floor_unmet(state, config) and state.confidence_level < config.confidence_threshold:
            return WorkflowAction.PATIENT_INTERACTION
        return WorkflowAction.FINAL_ASSESSMENT

    if state.debate_round >= config.max_debate_rounds:
        if interaction_floor_unmet(state, config) or policy.should_generate(state):
            return WorkflowAction.PATIENT_INTERACTION
        return WorkflowAction.FINAL_ASSESSMENT

    if state.debate_round > 0 and state.debate_round % 2 == 0 and interaction_floor_unmet(state, config):
        return WorkflowAction.PATIENT_INTERACTION

    if state.pending_test_requests:
        return WorkflowAction.TEST_EXECUTION

    return WorkflowAction.DELIBERATE


def phase_after(action: WorkflowAction, current_phase: str) -> str:
    """Phase the case is in once action has been taken."""
    target = ACTION_PHASES[WorkflowAction(action)]
    return target.value if target is not None else current_phase
