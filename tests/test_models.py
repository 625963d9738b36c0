"""Tests for data models and configuration."""

import pytest
from pydantic import ValidationError

from dxdebate.models.case import CaseInformation, CaseState, InvestigationResult, PendingQuestion
from dxdebate.models.config import WorkflowConfig
from dxdebate.models.enums import (
    ContributorRole,
    DiagnosticPhase,
    EvidenceKind,
    InvestigationStatus,
)
from dxdebate.models.evidence import CandidateEvidence, Evidence


class TestEvidence:
    """Tests for Evidence models."""

    def test_evidence_is_frozen(self):
        """Test that recorded evidence cannot be changed."""
        evidence = Evidence(kind=EvidenceKind.SYMPTOM, name="fever", value=True)
        with pytest.raises(ValidationError):
            evidence.value = False

    def test_confidence_range(self):
        """Test that confidence must lie in [0, 1]."""
        with pytest.raises(ValidationError):
            Evidence(kind=EvidenceKind.SYMPTOM, name="fever", value=True, confidence=1.5)

    def test_enum_stored_as_value(self):
        """Test that kinds are stored as plain strings."""
        evidence = Evidence(kind=EvidenceKind.TEST_RESULT, name="troponin_elevated", value="positive")
        assert evidence.kind == "test_result"

    def test_candidate_materializes(self):
        """Test building hypothetical evidence from a candidate."""
        candidate = CandidateEvidence(name="troponin_elevated", confidence=0.95)
        evidence = candidate.as_evidence(False)

        assert evidence.kind == "test_result"
        assert evidence.value is False
        assert evidence.confidence == 0.95


class TestCaseState:
    """Tests for CaseState and related models."""

    def test_defaults(self):
        """Test a fresh state."""
        state = CaseState()
        assert state.case_id is None
        assert state.phase == "case_presentation"
        assert state.cost_budget == 1000.0
        assert state.completed is False

    def test_phase_assignment_validated(self):
        """Test that phases are validated and stored as values."""
        state = CaseState()
        state.phase = DiagnosticPhase.DELIBERATION
        assert state.phase == "deliberation"

        with pytest.raises(ValidationError):
            state.phase = "triage"

    def test_question_ids_unique(self):
        """Test that each question gets its own id."""
        a = PendingQuestion(text="One?")
        b = PendingQuestion(text="Two?")
        assert a.id.startswith("q_")
        assert a.id != b.id
        assert a.requesting_role == ContributorRole.HYPOTHESIS.value

    def test_age_bounds(self):
        """Test that impossible ages are rejected."""
        with pytest.raises(ValidationError):
            CaseInformation(patient_id="P1", age=200)

    def test_live_diagnoses(self, sample_state):
        """Test the live-candidate filter."""
        assert len(sample_state.live_diagnoses()) == 3
        assert len(sample_state.live_diagnoses(minimum_probability=0.05)) == 2

    def test_result_status(self):
        """Test result construction."""
        result = InvestigationResult(
            case_id="CASE_1",
            status=InvestigationStatus.SUSPENDED,
            phase=DiagnosticPhase.PATIENT_INTERACTION,
        )
        assert result.status == "suspended"
        assert result.phase == "patient_interaction"


class TestWorkflowConfig:
    """Tests for WorkflowConfig."""

    def test_defaults(self):
        """Test default settings."""
        config = WorkflowConfig()
        assert config.cost_budget == 1000.0
        assert config.max_debate_rounds == 5
        assert config.confidence_threshold == 0.8
        assert config.min_interaction_rounds == 3
        assert config.participating_roles == [r.value for r in ContributorRole]
        assert [c.name for c in config.information_gain_candidates] == [
            "troponin_elevated", "chest_xray_infiltrate", "diaphoresis",
        ]

    def test_threshold_order_enforced(self):
        """Test that the low threshold cannot exceed the decision threshold."""
        with pytest.raises(ValidationError):
            WorkflowConfig(confidence_threshold=0.5, low_confidence_threshold=0.6)

    def test_interaction_bounds_enforced(self):
        """Test that the interaction cap cannot be below the floor."""
        with pytest.raises(ValidationError):
            WorkflowConfig(min_interaction_rounds=4, max_interaction_rounds=2)

    def test_budget_must_be_positive(self):
        """Test budget validation."""
        with pytest.raises(ValidationError):
            WorkflowConfig(cost_budget=0)

    def test_from_env(self, monkeypatch, tmp_path):
        """Test reading overrides from the environment."""
        monkeypatch.setenv("DXDEBATE_COST_BUDGET", "2500")
        monkeypatch.setenv("DXDEBATE_MAX_DEBATE_ROUNDS", "7")
        monkeypatch.setenv("DXDEBATE_ROLES", "hypothesis, challenger")
        monkeypatch.delenv("DXDEBATE_MODEL", raising=False)

        config = WorkflowConfig.from_env(env_file=str(tmp_path / "absent.env"))

        assert config.cost_budget == 2500.0
        assert config.max_debate_rounds == 7
        assert config.participating_roles == ["hypothesis", "challenger"]
        assert config.model == "openai/o3-mini"

    def test_from_env_file(self, monkeypatch, tmp_path):
        """Test reading overrides from a .env file."""
        monkeypatch.setenv("DXDEBATE_CONFIDENCE_THRESHOLD", "0.8")
        monkeypatch.delenv("DXDEBATE_CONFIDENCE_THRESHOLD")
        env_file = tmp_path / ".env"
        env_file.write_text("DXDEBATE_CONFIDENCE_THRESHOLD=0.9\n")

        config = WorkflowConfig.from_env(env_file=str(env_file))

        assert config.confidence_threshold == 0.9

    def test_unknown_role_rejected(self, monkeypatch, tmp_path):
        """Test that a misspelled role is a configuration error."""
        monkeypatch.setenv("DXDEBATE_ROLES", "hypothesis,oracle")
        with pytest.raises(ValidationError):
            WorkflowConfig.from_env(env_file=str(tmp_path / "absent.env"))
