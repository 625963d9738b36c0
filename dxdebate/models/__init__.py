"""Data models for the diagnostic debate engine."""

from dxdebate.models.case import (
    CaseInformation,
    CaseState,
    Contribution,
    DiagnosisHypothesis,
    InvestigationResult,
    PatientAnswer,
    PendingQuestion,
    TestResult,
)
from dxdebate.models.config import WorkflowConfig
from dxdebate.models.enums import (
    ContributorRole,
    DiagnosticPhase,
    EvidenceKind,
    InvestigationStatus,
    QuestionCategory,
    QuestionPriority,
    WorkflowAction,
)
from dxdebate.models.evidence import (
    BeliefRecord,
    BeliefUpdate,
    CandidateEvidence,
    Evidence,
)
from dxdebate.models.oracle import LLMResponse
from dxdebate.models.progress import ProgressCallback, ProgressStage, ProgressUpdate

__all__ = [
    # Enums
    "ContributorRole",
    "DiagnosticPhase",
    "EvidenceKind",
    "InvestigationStatus",
    "QuestionCategory",
    "QuestionPriority",
    "WorkflowAction",
    # Evidence
    "BeliefRecord",
    "BeliefUpdate",
    "CandidateEvidence",
    "Evidence",
    # Case
    "CaseInformation",
    "CaseState",
    "Contribution",
    "DiagnosisHypothesis",
    "InvestigationResult",
    "PatientAnswer",
    "PendingQuestion",
    "TestResult",
    # Config
    "WorkflowConfig",
    # Oracle
    "LLMResponse",
    # Progress
    "ProgressCallback",
    "ProgressStage",
    "ProgressUpdate",
]
