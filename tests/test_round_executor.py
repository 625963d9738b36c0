"""Tests for the round executor, contribution folding and synthesis."""

import pytest

from dxdebate.debate.round_executor import (
    RoundExecutor,
    fold_contribution,
    merge_diagnosis_deltas,
    next_phase,
    reasoning_quality,
    synthesize,
)
from dxdebate.llm.oracle import ReasoningOracle
from dxdebate.models.case import Contribution, DiagnosisHypothesis, TestResult
from dxdebate.models.config import WorkflowConfig
from dxdebate.models.enums import ContributorRole, DiagnosticPhase, EvidenceKind
from dxdebate.models.evidence import Evidence
from dxdebate.models.progress import ProgressStage
from dxdebate.workflow.evidence_mapper import apply_evidence


class TestMergeDeltas:
    """Tests for merge_diagnosis_deltas."""

    def test_updates_existing_and_adds_new(self, sample_state, sample_contribution):
        """Test merge by condition name, new entries added, result sorted."""
        merged = merge_diagnosis_deltas(sample_state.differential_diagnoses, sample_contribution.diagnosis_deltas)

        assert [(h.condition, h.probability) for h in merged] == [
            ("Myocardial Infarction", 0.7),
            ("Aortic Dissection", 0.1),
            ("Gastroenteritis", 0.05),
            ("Pneumonia", 0.02),
        ]
        assert merged[0].reasoning == "ECG pending"

    def test_name_matching_ignores_case(self):
        """Test that condition names match case-insensitively."""
        merged = merge_diagnosis_deltas(
            [DiagnosisHypothesis(condition="Pneumonia", probability=0.2, supporting_evidence=["cough"])],
            [DiagnosisHypothesis(condition="pneumonia", probability=0.4, supporting_evidence=["fever"])],
        )
        assert len(merged) == 1
        assert merged[0].probability == 0.4
        assert merged[0].supporting_evidence == ["cough", "fever"]

    def test_inputs_not_modified(self, sample_state, sample_contribution):
        """Test that merging copies the differential."""
        merge_diagnosis_deltas(sample_state.differential_diagnoses, sample_contribution.diagnosis_deltas)
        assert sample_state.differential_diagnoses[0].probability == 0.35


class TestFoldContribution:
    """Tests for fold_contribution."""

    def test_fold_is_pure(self, sample_state, sample_contribution):
        """Test that the input state is left untouched."""
        folded = fold_contribution(sample_state, sample_contribution)

        assert sample_state.contributions == []
        assert sample_state.contribution_count == 0
        assert folded.contribution_count == 1
        assert folded.differential_diagnoses[0].probability == 0.7

    def test_cost_and_biases(self, sample_state):
        """Test that cost estimates add up and biases are recorded once."""
        contribution = Contribution(
            role=ContributorRole.STEWARDSHIP,
            cost_estimate=200.0,
            biases_found=["anchoring bias"],
        )
        state = fold_contribution(sample_state, contribution)
        state = fold_contribution(state, contribution)

        assert state.cumulative_cost == 400.0
        assert state.biases_detected == ["anchoring bias"]

    def test_history_is_bounded(self, sample_state):
        """Test that only the trailing contributions are kept, but all are counted."""
        state = sample_state
        for i in range(5):
            state = fold_contribution(
                state,
                Contribution(role=ContributorRole.CHECKLIST, narrative=f"note {i}"),
                history_limit=3,
            )

        assert [c.narrative for c in state.contributions] == ["note 2", "note 3", "note 4"]
        assert state.contribution_count == 5

    def test_test_requests_skip_ordered(self, sample_state):
        """Test that tests already ordered or already pending are not requested again."""
        sample_state.diagnostic_tests = [TestResult(test_name="ECG", cost=50.0)]
        contribution = Contribution(
            role=ContributorRole.TEST_CHOOSER,
            tests_requested=["ECG", "Troponin", "troponin"],
        )

        state = fold_contribution(sample_state, contribution)

        assert state.pending_test_requests == ["Troponin"]


class TestSynthesis:
    """Tests for synthesis, quality scoring and phase progression."""

    def test_reasoning_quality_formula(self, sample_state):
        """Test the weighted quality score."""
        sample_state.contribution_count = 5
        sample_state.differential_diagnoses = [
            DiagnosisHypothesis(condition=f"Condition {i}", probability=0.1) for i in range(5)
        ]
        sample_state.biases_detected = ["anchoring bias", "confirmation bias", "availability bias"]
        sample_state.cumulative_cost = 10.0

        assert reasoning_quality(sample_state) == pytest.approx(0.15 + 0.2 + 0.2 + 0.3)

    def test_reasoning_quality_capped(self, sample_state):
        """Test that the score never exceeds 1."""
        sample_state.contribution_count = 50
        sample_state.differential_diagnoses = [
            DiagnosisHypothesis(condition=f"Condition {i}", probability=0.1) for i in range(9)
        ]
        sample_state.biases_detected = ["a", "b", "c", "d"]
        sample_state.cumulative_cost = 10.0

        assert reasoning_quality(sample_state) == 1.0

    def test_synthesize_picks_leader(self, sample_state):
        """Test final diagnosis, confidence and readiness."""
        state = synthesize(sample_state, WorkflowConfig())

        assert state.final_diagnosis.condition == "Myocardial Infarction"
        assert state.confidence_level == 0.35
        assert state.ready_for_diagnosis is False

    def test_synthesize_ready_at_threshold(self, sample_state):
        """Test that reaching the threshold marks the case ready."""
        sample_state.differential_diagnoses[0].probability = 0.8
        assert synthesize(sample_state, WorkflowConfig()).ready_for_diagnosis is True

    def test_synthesize_empty_differential(self, sample_state):
        """Test synthesis with nothing to choose from."""
        sample_state.differential_diagnoses = []
        state = synthesize(sample_state, WorkflowConfig())
        assert state.final_diagnosis is None
        assert state.confidence_level == 0.0

    @pytest.mark.parametrize("phase,confidence,expected", [
        ("case_presentation", 0.3, "initial_assessment"),
        ("initial_assessment", 0.3, "information_gathering"),
        ("information_gathering", 0.3, "test_selection"),
        ("test_selection", 0.3, "deliberation"),
        ("deliberation", 0.65, "final_diagnosis"),
        ("deliberation", 0.5, "information_gathering"),
        ("case_presentation", 0.85, "final_diagnosis"),
    ])
    def test_next_phase(self, sample_state, phase, confidence, expected):
        """Test phase progression after a debate turn."""
        sample_state.phase = phase
        sample_state.confidence_level = confidence
        assert next_phase(sample_state, WorkflowConfig()) == expected


class TestRoundExecutor:
    """Tests for RoundExecutor."""

    def _executor(self, client, belief_engine, knowledge, **config):
        config = WorkflowConfig(model="test-model", **config)
        oracle = ReasoningOracle(client, model="test-model")
        return RoundExecutor(oracle, belief_engine, knowledge, config)

    @pytest.mark.asyncio
    async def test_round_folds_roles_in_order(self, scripted_client_factory, belief_engine, knowledge, sample_state):
        """Test that each phase role speaks once, in order, and is folded in."""
        client = scripted_client_factory(
            hypothesis="Myocardial Infarction (85%)\nAortic Dissection (8%)",
            challenger="Beware of anchoring on the ECG.",
            checklist="Checklist complete.",
        )
        executor = self._executor(client, belief_engine, knowledge)

        state = await executor.run_round(sample_state)

        assert client.routes_called() == ["hypothesis", "challenger", "checklist"]
        assert state.debate_round == 1
        assert state.contribution_count == 3
        assert state.biases_detected == ["anchoring bias"]
        assert state.final_diagnosis.condition == "Myocardial Infarction"
        assert state.ready_for_diagnosis is True
        assert sample_state.debate_round == 0

    @pytest.mark.asyncio
    async def test_new_conditions_are_tracked(self, scripted_client_factory, belief_engine, knowledge, sample_state):
        """Test that a newly named condition is seeded with its stated probability."""
        client = scripted_client_factory(hypothesis="Aortic Dissection (8%)")
        executor = self._executor(client, belief_engine, knowledge)

        await executor.run_round(sample_state)

        record = belief_engine.get_diagnosis("aortic_dissection")
        assert record is not None
        assert record.prior_probability == pytest.approx(0.08)

    @pytest.mark.asyncio
    async def test_later_roles_see_earlier_contributions(self, scripted_client_factory, belief_engine, knowledge,
                                                         sample_state):
        """Test that the challenger's briefing includes the hypothesis output."""
        client = scripted_client_factory(hypothesis="Pneumonia (40%) given the cough")
        executor = self._executor(client, belief_engine, knowledge)

        await executor.run_round(sample_state)

        challenger_prompt = client.calls[1]["messages"][-1]["content"]
        assert "Pneumonia (40%) given the cough" in challenger_prompt

    @pytest.mark.asyncio
    async def test_progress_events(self, scripted_client_factory, belief_engine, knowledge, sample_state):
        """Test the events reported during a round."""
        updates = []
        client = scripted_client_factory()
        executor = self._executor(client, belief_engine, knowledge)

        await executor.run_round(sample_state, progress_callback=updates.append)

        stages = [u.stage for u in updates]
        assert stages[0] == ProgressStage.ROUND_START
        assert stages[-1] == ProgressStage.ROUND_COMPLETE
        assert stages.count(ProgressStage.CONTRIBUTOR_COMPLETE) == 3

    @pytest.mark.asyncio
    async def test_turn_stops_when_confident(self, scripted_client_factory, belief_engine, knowledge, sample_state):
        """Test that a turn ends early once the threshold is reached."""
        client = scripted_client_factory(hypothesis="Myocardial Infarction (90%)")
        executor = self._executor(client, belief_engine, knowledge, debate_rounds_per_turn=3)

        state = await executor.run_turn(sample_state)

        assert state.debate_round == 1
        assert state.phase == DiagnosticPhase.FINAL_DIAGNOSIS.value

    @pytest.mark.asyncio
    async def test_turn_runs_all_rounds_and_advances(self, scripted_client_factory, belief_engine, knowledge,
                                                     sample_state):
        """Test a full turn at low confidence."""
        client = scripted_client_factory(hypothesis="Myocardial Infarction (40%)")
        executor = self._executor(client, belief_engine, knowledge, debate_rounds_per_turn=2)

        state = await executor.run_turn(sample_state)

        assert state.debate_round == 2
        assert state.contribution_count == 6
        assert state.phase == DiagnosticPhase.INITIAL_ASSESSMENT.value

    @pytest.mark.asyncio
    async def test_participating_roles_respected(self, scripted_client_factory, belief_engine, knowledge,
                                                 sample_state):
        """Test that roles outside the configuration are skipped."""
        client = scripted_client_factory()
        executor = self._executor(client, belief_engine, knowledge, participating_roles=["hypothesis"])

        await executor.run_round(sample_state)

        assert client.routes_called() == ["hypothesis"]

    @pytest.mark.asyncio
    async def test_estimates_move_tracked_beliefs(self, scripted_client_factory, belief_engine, knowledge,
                                                  sample_state):
        """Test that a contributor estimate for a tracked condition lands in the belief store."""
        client = scripted_client_factory(hypothesis="Myocardial Infarction (70%)")
        executor = self._executor(client, belief_engine, knowledge)

        state = await executor.run_round(sample_state)

        assert belief_engine.get_diagnosis("myocardial_infarction").posterior_probability == pytest.approx(0.7)
        by_name = {h.condition: h.probability for h in state.differential_diagnoses}
        assert by_name == {
            "Myocardial Infarction": pytest.approx(0.7),
            "Gastroenteritis": pytest.approx(0.15),
            "Pneumonia": pytest.approx(0.05),
        }

    @pytest.mark.asyncio
    async def test_neutral_evidence_keeps_estimate(self, scripted_client_factory, belief_engine, knowledge,
                                                   sample_state):
        """Test that evidence with no ratio for a condition leaves its probability alone."""
        client = scripted_client_factory(hypothesis="Myocardial Infarction (70%)")
        executor = self._executor(client, belief_engine, knowledge)
        state = await executor.run_round(sample_state)

        applied = apply_evidence(state, belief_engine, knowledge, [
            Evidence(kind=EvidenceKind.SYMPTOM, name="rash", value=True),
        ])
        state = synthesize(state, executor.config)

        assert applied == 1
        assert state.differential_diagnoses[0].condition == "Myocardial Infarction"
        assert state.differential_diagnoses[0].probability == pytest.approx(0.7)
        assert state.confidence_level == pytest.approx(0.7)
