"""Investigation workflow: state machine, intake, questioning and the engine."""

from dxdebate.workflow.engine import InvestigationEngine, InvestigationSession, summarize_case
from dxdebate.workflow.evidence_mapper import EvidenceMapper, apply_evidence
from dxdebate.workflow.intake import CaseIntake, detect_gathered_information, placeholder_case
from dxdebate.workflow.questions import QuestionGenerator, QuestionPolicy, prioritize_questions
from dxdebate.workflow.state_machine import ACTION_PHASES, next_action, phase_after

__all__ = [
    # Engine
    "InvestigationEngine",
    "InvestigationSession",
    "summarize_case",
    # State machine
    "ACTION_PHASES",
    "next_action",
    "phase_after",
    # Collaborators
    "CaseIntake",
    "EvidenceMapper",
    "QuestionGenerator",
    "QuestionPolicy",
    "apply_evidence",
    "detect_gathered_information",
    "placeholder_case",
    "prioritize_questions",
]
