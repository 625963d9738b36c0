"""
Progress tracking models for investigation execution.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Protocol


class ProgressStage(str, Enum):
    """Stages reported while an investigation runs."""

    # Intake
    CASE_INITIALIZED = "case_initialized"

    # Debate
    ROUND_START = "round_start"
    CONTRIBUTOR_THINKING = "contributor_thinking"
    CONTRIBUTOR_COMPLETE = "contributor_complete"
    ROUND_COMPLETE = "round_complete"
    SYNTHESIS = "synthesis"

    # Patient interaction
    QUESTIONS_PENDING = "questions_pending"
    RESPONSE_PROCESSED = "response_processed"

    # Tests
    TEST_EXECUTION = "test_execution"

    # Completion
    FINAL_ASSESSMENT = "final_assessment"
    COMPLETE = "complete"


@dataclass
class ProgressUpdate:
    """
    Progress update event for callers.

    Attributes:
        stage: Current stage of execution
        message: Human-readable status message
        percent: Rough progress through the step budget (0-100)
        detail: Optional extra information (role, round number, etc.)
    """
    stage: ProgressStage
    message: str
    percent: int
    detail: dict = field(default_factory=dict)


class ProgressCallback(Protocol):
    """Protocol for progress callback functions."""

    def __call__(self, update: ProgressUpdate) -> None:
        """Called with progress updates during an investigation."""
        ...
