"""
Configuration for the diagnostic investigation workflow.
"""

import os
from typing import Optional

from dotenv import load_dotenv
from pydantic import BaseModel, ConfigDict, Field, model_validator

from dxdebate.models.enums import ContributorRole, EvidenceKind
from dxdebate.models.evidence import CandidateEvidence


def default_information_gain_candidates() -> list[CandidateEvidence]:
    """Candidate next observations scored for the hypothesis briefing."""
    return [
        CandidateEvidence(kind=EvidenceKind.TEST_RESULT, name="troponin_elevated", confidence=0.95),
        CandidateEvidence(kind=EvidenceKind.TEST_RESULT, name="chest_xray_infiltrate", confidence=0.9),
        CandidateEvidence(kind=EvidenceKind.SYMPTOM, name="diaphoresis", confidence=0.8),
    ]


class WorkflowConfig(BaseModel):
    """Complete configuration for one investigation."""

    model_config = ConfigDict(use_enum_values=True, validate_default=True)

    # Oracle
    model: str = Field(default="openai/o3-mini", description="LLM model identifier")
    temperature: float = Field(default=0.3, ge=0.0, le=2.0)
    oracle_timeout_seconds: float = Field(default=60.0, gt=0.0)

    # Budget and stopping rules
    cost_budget: float = Field(default=1000.0, gt=0.0, description="Diagnostic budget in USD")
    max_debate_rounds: int = Field(default=5, ge=1, le=50)
    debate_rounds_per_turn: int = Field(default=2, ge=1, le=10)
    confidence_threshold: float = Field(default=0.8, ge=0.0, le=1.0)
    low_confidence_threshold: float = Field(default=0.4, ge=0.0, le=1.0)
    max_workflow_steps: int = Field(default=40, ge=1)

    # Patient interaction
    min_interaction_rounds: int = Field(default=3, ge=0)
    max_interaction_rounds: int = Field(default=5, ge=0)
    max_live_diagnoses: int = Field(default=4, ge=1)
    max_questions: int = Field(default=5, ge=1)

    # Debate
    participating_roles: list[ContributorRole] = Field(
        default_factory=lambda: list(ContributorRole),
    )
    contribution_history_limit: int = Field(default=20, ge=1)
    information_gain_candidates: list[CandidateEvidence] = Field(
        default_factory=default_information_gain_candidates,
    )

    # Knowledge
    knowledge_path: str = Field(default="config/knowledge.yaml")

    @model_validator(mode="after")
    def _check_thresholds(self) -> "WorkflowConfig":
        if self.low_confidence_threshold > self.confidence_threshold:
            raise ValueError("low_confidence_threshold must not exceed confidence_threshold")
        if self.max_interaction_rounds < self.min_interaction_rounds:
            raise ValueError("max_interaction_rounds must be >= min_interaction_rounds")
        return self

    @classmethod
    def from_env(cls, env_file: Optional[str] = None) -> "WorkflowConfig":
        """
        Build a config from DXDEBATE_* environment variables.

        Unset variables keep their defaults.

        Args:
            env_file: Optional .env path; defaults to python-dotenv's lookup

        Returns:
            WorkflowConfig
        """
        load_dotenv(env_file)

        overrides = {}
        env_map = {
            "model": "DXDEBATE_MODEL",
            "temperature": "DXDEBATE_TEMPERATURE",
            "oracle_timeout_seconds": "DXDEBATE_ORACLE_TIMEOUT",
            "cost_budget": "DXDEBATE_COST_BUDGET",
            "max_debate_rounds": "DXDEBATE_MAX_DEBATE_ROUNDS",
            "debate_rounds_per_turn": "DXDEBATE_ROUNDS_PER_TURN",
            "confidence_threshold": "DXDEBATE_CONFIDENCE_THRESHOLD",
            "low_confidence_threshold": "DXDEBATE_LOW_CONFIDENCE_THRESHOLD",
            "min_interaction_rounds": "DXDEBATE_MIN_INTERACTION_ROUNDS",
            "max_interaction_rounds": "DXDEBATE_MAX_INTERACTION_ROUNDS",
            "knowledge_path": "DXDEBATE_KNOWLEDGE_PATH",
        }
        for field_name, env_var in env_map.items():
            value = os.getenv(env_var)
            if value is not None and value.strip():
                overrides[field_name] = value.strip()

        roles = os.getenv("DXDEBATE_ROLES", "")
        if roles.strip():
            overrides["participating_roles"] = [r.strip() for r in roles.split(",") if r.strip()]

        return cls(**overrides)
