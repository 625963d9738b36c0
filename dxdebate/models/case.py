"""
Data models for the diagnostic investigation.

These Pydantic models define the case record that threads through the
workflow: intake information, the differential, questions put to the
patient, ordered tests, contributor output and the final result.
"""

import uuid
from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from dxdebate.models.enums import (
    ContributorRole,
    DiagnosticPhase,
    InvestigationStatus,
    QuestionCategory,
    QuestionPriority,
)
from dxdebate.models.evidence import Evidence


class CaseInformation(BaseModel):
    """Structured facts about the patient, extracted from free text."""

    patient_id: str = Field(..., description="Case identifier")
    age: int = Field(default=0, ge=0, le=150, description="0 means unknown")
    gender: str = Field(default="unknown")
    occupation: Optional[str] = None
    chief_complaint: str = Field(default="")
    history_of_present_illness: str = Field(default="")
    past_medical_history: list[str] = Field(default_factory=list)
    medications: list[str] = Field(default_factory=list)
    allergies: list[str] = Field(default_factory=list)
    family_history: list[str] = Field(default_factory=list)
    social_history: str = Field(default="")
    review_of_systems: dict[str, str] = Field(default_factory=dict)
    physical_exam: dict[str, str] = Field(default_factory=dict)


class DiagnosisHypothesis(BaseModel):
    """One entry of the ranked differential."""

    condition: str
    probability: float = Field(default=0.0, ge=0.0, le=1.0)
    supporting_evidence: list[str] = Field(default_factory=list)
    reasoning: str = Field(default="")
    classification_code: Optional[str] = None


class PendingQuestion(BaseModel):
    """A question waiting for the patient to answer."""

    model_config = ConfigDict(use_enum_values=True, validate_default=True)

    id: str = Field(default_factory=lambda: f"q_{uuid.uuid4().hex[:10]}")
    requesting_role: ContributorRole = ContributorRole.HYPOTHESIS
    category: QuestionCategory = QuestionCategory.HISTORY
    text: str
    priority: QuestionPriority = QuestionPriority.MEDIUM
    created_at: datetime = Field(default_factory=datetime.now)


class PatientAnswer(BaseModel):
    """Free-text answer supplied on resume."""

    question_ids: list[str] = Field(default_factory=list)
    text: str
    received_at: datetime = Field(default_factory=datetime.now)


class TestResult(BaseModel):
    """A diagnostic test that has been ordered, with its result once known."""

    __test__ = False  # Not a pytest test class

    test_name: str
    test_type: str = Field(default="lab")
    cost: float = Field(default=0.0, ge=0.0)
    sensitivity: float = Field(default=0.8, ge=0.0, le=1.0)
    specificity: float = Field(default=0.8, ge=0.0, le=1.0)
    requested_by: str = Field(default=ContributorRole.TEST_CHOOSER.value)
    result: Optional[str] = Field(default=None, description="None until available")
    ordered_at: datetime = Field(default_factory=datetime.now)


class Contribution(BaseModel):
    """Structured output of one contributor role for one round."""

    model_config = ConfigDict(use_enum_values=True, validate_default=True)

    role: ContributorRole
    narrative: str = Field(default="")
    recommendations: list[str] = Field(default_factory=list)
    diagnosis_deltas: list[DiagnosisHypothesis] = Field(default_factory=list)
    tests_requested: list[str] = Field(default_factory=list)
    cost_estimate: Optional[float] = None
    biases_found: list[str] = Field(default_factory=list)
    round_number: int = Field(default=1, ge=1)
    failed: bool = Field(
        default=False,
        description="True when the oracle could not be reached",
    )


class CaseState(BaseModel):
    """The single mutable record threading through the workflow."""

    model_config = ConfigDict(use_enum_values=True, validate_default=True, validate_assignment=True)

    # Identity and intake
    case_id: Optional[str] = None
    case_text: str = ""
    case_info: Optional[CaseInformation] = None

    # Workflow position
    phase: DiagnosticPhase = DiagnosticPhase.CASE_PRESENTATION
    return_phase: Optional[DiagnosticPhase] = Field(
        default=None,
        description="Phase to resume after patient interaction",
    )
    debate_round: int = Field(default=0, ge=0)
    interaction_round: int = Field(default=0, ge=0)
    workflow_steps: int = Field(default=0, ge=0)

    # Cost
    cumulative_cost: float = Field(default=0.0, ge=0.0)
    cost_budget: float = Field(default=1000.0, gt=0.0)

    # Decision tracking
    confidence_level: float = Field(default=0.0, ge=0.0, le=1.0)
    ready_for_diagnosis: bool = False
    differential_diagnoses: list[DiagnosisHypothesis] = Field(default_factory=list)
    final_diagnosis: Optional[DiagnosisHypothesis] = None

    # Patient interaction
    awaiting_user_input: bool = False
    pending_questions: list[PendingQuestion] = Field(default_factory=list)
    question_history: list[PendingQuestion] = Field(default_factory=list)
    answers: list[PatientAnswer] = Field(default_factory=list)
    received_answer: Optional[str] = Field(
        default=None,
        description="Answer supplied on resume, not yet merged into the case",
    )
    gathered_information: list[str] = Field(default_factory=list)

    # Debate output
    contributions: list[Contribution] = Field(default_factory=list)
    contribution_count: int = Field(default=0, ge=0)
    biases_detected: list[str] = Field(default_factory=list)
    reasoning_quality: float = Field(default=0.0, ge=0.0, le=1.0)

    # Tests
    diagnostic_tests: list[TestResult] = Field(default_factory=list)
    pending_test_requests: list[str] = Field(default_factory=list)

    # Audit
    applied_evidence: list[Evidence] = Field(default_factory=list)
    messages: list[str] = Field(default_factory=list)

    # Completion
    completed: bool = False
    final_assessment: str = ""

    def live_diagnoses(self, minimum_probability: float = 0.01) -> list[DiagnosisHypothesis]:
        """Candidates that have not been effectively ruled out."""
        return [
            d for d in self.differential_diagnoses
            if d.probability >= minimum_probability
        ]


class InvestigationResult(BaseModel):
    """What the caller sees when the investigation loop returns."""

    model_config = ConfigDict(use_enum_values=True, validate_default=True)

    case_id: str
    status: InvestigationStatus
    phase: DiagnosticPhase
    pending_questions: list[PendingQuestion] = Field(default_factory=list)
    differential_diagnoses: list[DiagnosisHypothesis] = Field(default_factory=list)
    final_diagnosis: Optional[DiagnosisHypothesis] = None
    confidence_level: float = 0.0
    cumulative_cost: float = 0.0
    reasoning_quality: float = 0.0
    evidence: list[Evidence] = Field(default_factory=list)
    contributions: list[Contribution] = Field(default_factory=list)
    diagnostic_tests: list[TestResult] = Field(default_factory=list)
    final_assessment: str = ""
    timestamp: datetime = Field(default_factory=datetime.now)
