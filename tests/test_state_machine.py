"""Tests for the investigation state machine."""

import pytest

from dxdebate.models.case import CaseState, DiagnosisHypothesis, PendingQuestion
from dxdebate.models.config import WorkflowConfig
from dxdebate.models.enums import DiagnosticPhase, WorkflowAction
from dxdebate.workflow.state_machine import ACTION_PHASES, next_action, phase_after


class NeverAsk:
    """Question policy that never wants more information."""

    def should_generate(self, state):
        return False


def _state(sample_state, **changes):
    state = sample_state.model_copy(deep=True)
    for name, value in changes.items():
        setattr(state, name, value)
    return state


@pytest.fixture
def settled_config():
    """Config whose single interview round is already done in settled states."""
    return WorkflowConfig(min_interaction_rounds=1, max_interaction_rounds=1)


class TestNextAction:
    """Tests for next_action."""

    def test_uninitialized_case(self):
        """Test that a case without an id is initialized first."""
        assert next_action(CaseState(), WorkflowConfig()) == WorkflowAction.INITIALIZE_CASE

    def test_completed_case(self, sample_state):
        """Test that a completed case stays at the final assessment."""
        state = _state(sample_state, completed=True)
        assert next_action(state, WorkflowConfig()) == WorkflowAction.FINAL_ASSESSMENT

    def test_budget_exhaustion_wins(self, sample_state):
        """Test that a spent budget ends the case even with questions pending."""
        state = _state(
            sample_state,
            cumulative_cost=1000.0,
            cost_budget=1000.0,
            awaiting_user_input=True,
            pending_questions=[PendingQuestion(text="Any allergies?")],
        )
        assert next_action(state, WorkflowConfig()) == WorkflowAction.FINAL_ASSESSMENT

    def test_received_answer_merged_first(self, sample_state):
        """Test that an answer handed in on resume is merged before the budget check."""
        state = _state(
            sample_state,
            received_answer="No, the pain does not radiate.",
            cumulative_cost=1000.0,
            cost_budget=1000.0,
            awaiting_user_input=True,
            pending_questions=[PendingQuestion(text="Does the pain radiate?")],
        )
        assert next_action(state, WorkflowConfig()) == WorkflowAction.PROCESS_RESPONSE

    def test_empty_answer_still_merged(self, sample_state):
        """Test that an empty answer still counts as received."""
        state = _state(sample_state, received_answer="", awaiting_user_input=True)
        assert next_action(state, WorkflowConfig()) == WorkflowAction.PROCESS_RESPONSE

    def test_awaiting_input(self, sample_state):
        """Test that a suspended case stays in patient interaction."""
        state = _state(sample_state, awaiting_user_input=True)
        assert next_action(state, WorkflowConfig()) == WorkflowAction.PATIENT_INTERACTION

    def test_pending_questions(self, sample_state):
        """Test that unanswered questions keep the case in patient interaction."""
        state = _state(sample_state, pending_questions=[PendingQuestion(text="When did it start?")])
        assert next_action(state, WorkflowConfig()) == WorkflowAction.PATIENT_INTERACTION

    def test_new_case_debates_first(self, sample_state):
        """Test that a freshly initialized case gets a debate turn before questions."""
        assert sample_state.debate_round == 0
        assert next_action(sample_state, WorkflowConfig()) == WorkflowAction.DELIBERATE

    def test_interaction_floor(self, sample_state):
        """Test that the case asks the patient while below the interaction floor."""
        state = _state(sample_state, debate_round=1, phase=DiagnosticPhase.INITIAL_ASSESSMENT)
        assert next_action(state, WorkflowConfig()) == WorkflowAction.PATIENT_INTERACTION

    def test_ready_and_floor_met(self, sample_state, settled_config):
        """Test that a confident case with enough interviews is finalized."""
        state = _state(
            sample_state,
            debate_round=2,
            interaction_round=1,
            confidence_level=0.9,
            ready_for_diagnosis=True,
            phase=DiagnosticPhase.FINAL_DIAGNOSIS,
        )
        assert next_action(state, settled_config) == WorkflowAction.FINAL_ASSESSMENT

    def test_final_phase_below_floor_and_threshold(self, sample_state):
        """Test that a weakly supported final phase goes back to the patient."""
        state = _state(sample_state, debate_round=1, confidence_level=0.7, phase=DiagnosticPhase.FINAL_DIAGNOSIS)
        assert next_action(state, WorkflowConfig(), NeverAsk()) == WorkflowAction.PATIENT_INTERACTION

    def test_final_phase_confident_below_floor(self, sample_state):
        """Test that confidence above threshold finalizes even below the floor."""
        state = _state(
            sample_state,
            debate_round=1,
            confidence_level=0.85,
            ready_for_diagnosis=True,
            phase=DiagnosticPhase.FINAL_DIAGNOSIS,
        )
        assert next_action(state, WorkflowConfig(), NeverAsk()) == WorkflowAction.FINAL_ASSESSMENT

    def test_round_cap_finalizes(self, sample_state, settled_config):
        """Test that hitting max_debate_rounds finalizes once interviews are done."""
        state = _state(
            sample_state,
            debate_round=5,
            interaction_round=1,
            confidence_level=0.5,
            phase=DiagnosticPhase.DELIBERATION,
        )
        assert next_action(state, settled_config) == WorkflowAction.FINAL_ASSESSMENT

    def test_round_cap_below_floor_asks(self, sample_state):
        """Test that hitting the round cap below the floor still asks the patient."""
        state = _state(sample_state, debate_round=5, phase=DiagnosticPhase.DELIBERATION)
        assert next_action(state, WorkflowConfig(), NeverAsk()) == WorkflowAction.PATIENT_INTERACTION

    def test_even_round_below_floor(self, sample_state):
        """Test that every second round asks the patient while below the floor."""
        even = _state(sample_state, debate_round=2, phase=DiagnosticPhase.INFORMATION_GATHERING)
        odd = _state(sample_state, debate_round=3, phase=DiagnosticPhase.INFORMATION_GATHERING)

        assert next_action(even, WorkflowConfig(), NeverAsk()) == WorkflowAction.PATIENT_INTERACTION
        assert next_action(odd, WorkflowConfig(), NeverAsk()) == WorkflowAction.DELIBERATE

    def test_pending_tests(self, sample_state, settled_config):
        """Test that requested tests are executed before the next debate turn."""
        state = _state(
            sample_state,
            debate_round=1,
            interaction_round=1,
            confidence_level=0.5,
            phase=DiagnosticPhase.TEST_SELECTION,
            pending_test_requests=["ECG"],
        )
        assert next_action(state, settled_config) == WorkflowAction.TEST_EXECUTION

    def test_default_is_deliberate(self, sample_state, settled_config):
        """Test that nothing else to do means another debate turn."""
        state = _state(
            sample_state,
            debate_round=1,
            interaction_round=1,
            confidence_level=0.5,
            phase=DiagnosticPhase.TEST_SELECTION,
        )
        assert next_action(state, settled_config) == WorkflowAction.DELIBERATE


class TestActionPhases:
    """Tests for the action-to-phase table."""

    def test_every_action_has_an_entry(self):
        """Test that the table is total over actions."""
        assert set(ACTION_PHASES) == set(WorkflowAction)

    def test_phase_after(self):
        """Test phase changes caused by actions."""
        assert phase_after(WorkflowAction.INITIALIZE_CASE, "deliberation") == "case_presentation"
        assert phase_after(WorkflowAction.PATIENT_INTERACTION, "deliberation") == "patient_interaction"
        assert phase_after(WorkflowAction.FINAL_ASSESSMENT, "deliberation") == "final_diagnosis"

    def test_deliberate_and_tests_keep_phase(self):
        """Test that debate turns and test execution do not move the phase themselves."""
        assert phase_after(WorkflowAction.DELIBERATE, "test_selection") == "test_selection"
        assert phase_after(WorkflowAction.TEST_EXECUTION, "test_selection") == "test_selection"
