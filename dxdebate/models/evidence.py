"""
Evidence and belief models for the Bayesian diagnostic engine.
"""

from datetime import datetime
from typing import Optional, Union

from pydantic import BaseModel, ConfigDict, Field

from dxdebate.models.enums import EvidenceKind


EvidenceValue = Union[bool, int, float, str]


class Evidence(BaseModel):
    """A single observation about the case. Immutable once recorded."""

    model_config = ConfigDict(frozen=True, use_enum_values=True)

    kind: EvidenceKind = Field(..., description="Where the observation came from")
    name: str = Field(..., description="Observation name, e.g. 'troponin_elevated'")
    value: EvidenceValue = Field(..., description="Observed value")
    confidence: float = Field(
        default=1.0,
        ge=0.0,
        le=1.0,
        description="How much the observation is trusted (0-1)",
    )
    observed_at: datetime = Field(default_factory=datetime.now)


class CandidateEvidence(BaseModel):
    """Evidence that has not been observed yet, scored for information gain."""

    kind: EvidenceKind = EvidenceKind.TEST_RESULT
    name: str
    confidence: float = Field(default=1.0, ge=0.0, le=1.0)

    model_config = ConfigDict(use_enum_values=True, validate_default=True)

    def as_evidence(self, value: EvidenceValue) -> Evidence:
        """Materialize this candidate with a hypothetical value."""
        return Evidence(
            kind=self.kind,
            name=self.name,
            value=value,
            confidence=self.confidence,
        )


class BeliefRecord(BaseModel):
    """Probability state and evidence history for one condition."""

    condition_id: str
    prior_probability: float = Field(..., gt=0.0, lt=1.0)
    posterior_probability: float
    cumulative_likelihood: float = 1.0
    evidence_log: list[Evidence] = Field(default_factory=list)
    classification_code: Optional[str] = Field(
        default=None,
        description="Optional ICD-10 style code",
    )


class BeliefUpdate(BaseModel):
    """Effect of one piece of evidence on one condition."""

    condition_id: str
    old_probability: float
    new_probability: float
    likelihood_ratio: float
    evidence: Evidence
