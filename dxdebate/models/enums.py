"""
Diagnostic Debate Engine - Enumerations

Centralized enum definitions for phases, contributor roles and workflow actions.
"""

from enum import Enum


class DiagnosticPhase(str, Enum):
    """Phases a case moves through during an investigation."""

    CASE_PRESENTATION = "case_presentation"
    INITIAL_ASSESSMENT = "initial_assessment"
    INFORMATION_GATHERING = "information_gathering"
    PATIENT_INTERACTION = "patient_interaction"  # Cross-cutting sub-state
    TEST_SELECTION = "test_selection"
    DELIBERATION = "deliberation"
    FINAL_DIAGNOSIS = "final_diagnosis"


class ContributorRole(str, Enum):
    """Physician roles that contribute to a debate round."""

    HYPOTHESIS = "hypothesis"  # Differential diagnosis
    TEST_CHOOSER = "test_chooser"  # Test selection
    CHALLENGER = "challenger"  # Bias detection
    STEWARDSHIP = "stewardship"  # Cost-effectiveness
    CHECKLIST = "checklist"  # Quality assurance


class WorkflowAction(str, Enum):
    """Actions the investigation loop can take next."""

    INITIALIZE_CASE = "initialize_case"
    DELIBERATE = "deliberate"
    PATIENT_INTERACTION = "patient_interaction"
    PROCESS_RESPONSE = "process_response"
    TEST_EXECUTION = "test_execution"
    FINAL_ASSESSMENT = "final_assessment"


class EvidenceKind(str, Enum):
    """Source category of a piece of evidence."""

    SYMPTOM = "symptom"
    TEST_RESULT = "test_result"
    DEMOGRAPHIC = "demographic"
    HISTORY = "history"


class QuestionCategory(str, Enum):
    """Topic of a question put to the patient."""

    HISTORY = "history"
    SYMPTOMS = "symptoms"
    EXAMINATION = "examination"
    FAMILY = "family"
    SOCIAL = "social"
    MEDICATIONS = "medications"
    ALLERGIES = "allergies"


class QuestionPriority(str, Enum):
    """Urgency of a pending question."""

    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


class InvestigationStatus(str, Enum):
    """Why the investigation loop returned control to the caller."""

    SUSPENDED = "suspended"  # Waiting on human input
    COMPLETED = "completed"
