"""
Bayesian belief engine.

Holds one BeliefRecord per tracked condition and revises the posteriors in
odds form as confidence-weighted evidence arrives:

    LR_adj   = 1 + (LR - 1) * confidence
    odds'    = odds * LR_adj
    p'       = clamp(odds' / (1 + odds'), 0.001, 0.999)

After each observation, if the posteriors sum to more than 1 they are
rescaled to sum to 0.95, leaving headroom for conditions not modelled.
"""

import logging
import re
from typing import Optional

from dxdebate.bayes.information import OUTCOME_WEIGHTS, entropy, expected_information_gain
from dxdebate.knowledge.base import LikelihoodTable
from dxdebate.models.evidence import (
    BeliefRecord,
    BeliefUpdate,
    CandidateEvidence,
    Evidence,
)

logger = logging.getLogger(__name__)

MIN_PROBABILITY = 0.001
MAX_PROBABILITY = 0.999
NORMALIZED_TOTAL = 0.95

_POSITIVE_STRINGS = {"true", "positive", "elevated"}


def evidence_key(evidence: Evidence) -> str:
    """
    Canonical lookup key for an observation.

    True -> "name", False -> "no_name", "positive"/"elevated"/"true" ->
    "name", anything else -> "name_value". Whole-number floats drop
    their ".0" so 39.0 and 39 share a key.
    """
    name = re.sub(r"\s+", "_", evidence.name.strip().lower())
    value = evidence.value

    if isinstance(value, bool):
        return name if value else f"no_{name}"

    if isinstance(value, float) and value.is_integer():
        value = int(value)
    normalized_value = str(value).strip().lower()
    if normalized_value in _POSITIVE_STRINGS:
        return name
    normalized_value = re.sub(r"\s+", "_", normalized_value)
    return f"{name}_{normalized_value}"


def adjusted_ratio(base_ratio: float, confidence: float) -> float:
    """Shrink a likelihood ratio toward 1.0 in proportion to confidence."""
    return 1.0 + (base_ratio - 1.0) * confidence


def odds_update(probability: float, ratio: float) -> float:
    """Apply one likelihood ratio in odds form and clamp the result."""
    odds = probability / (1.0 - probability)
    new_odds = odds * ratio
    new_probability = new_odds / (1.0 + new_odds)
    return min(max(new_probability, MIN_PROBABILITY), MAX_PROBABILITY)


class BayesianDiagnosticEngine:
    """
    Belief store plus update operations for one case.

    Each case owns its own engine; call reset() or build a fresh instance
    between cases.
    """

    def __init__(self, likelihoods: LikelihoodTable):
        self.likelihoods = likelihoods
        self._beliefs: dict[str, BeliefRecord] = {}

    def initialize_diagnosis(
        self,
        condition_id: str,
        prior: float,
        classification_code: Optional[str] = None,
    ) -> BeliefRecord:
        """
        Start tracking a condition at its prior.

        Re-initializing an existing condition discards its history.

        Raises:
            ValueError: If prior is not strictly between 0 and 1
        """
        if not 0.0 < prior < 1.0:
            raise ValueError(f"Prior for {condition_id} must be in (0, 1), got {prior}")

        record = BeliefRecord(
            condition_id=condition_id,
            prior_probability=prior,
            posterior_probability=prior,
            classification_code=classification_code,
        )
        self._beliefs[condition_id] = record
        logger.debug(f"Initialized {condition_id} at prior {prior:.4f}")
        return record

    def is_tracking(self, condition_id: str) -> bool:
        return condition_id in self._beliefs

    def revise_belief(
        self,
        condition_id: str,
        probability: float,
        classification_code: Optional[str] = None,
    ) -> BeliefRecord:
        """
        Set a condition's belief from an outside estimate.

        Contributor probabilities enter the store this way. An untracked
        condition starts at the estimate as its prior; a tracked one keeps
        its prior and evidence log and takes the estimate as its posterior.
        """
        probability = min(max(probability, MIN_PROBABILITY), MAX_PROBABILITY)
        record = self._beliefs.get(condition_id)
        if record is None:
            return self.initialize_diagnosis(condition_id, probability, classification_code)

        logger.debug(f"Revised {condition_id}: {record.posterior_probability:.4f} -> {probability:.4f}")
        record.posterior_probability = probability
        if classification_code and not record.classification_code:
            record.classification_code = classification_code
        return record

    def update_with_evidence(self, evidence: Evidence) -> list[BeliefUpdate]:
        """
        Revise every tracked condition with one observation.

        Returns:
            One BeliefUpdate per condition, with the clamped probability
            computed before normalization
        """
        key = evidence_key(evidence)
        updates: list[BeliefUpdate] = []

        for condition_id, record in self._beliefs.items():
            ratio = adjusted_ratio(
                self.likelihoods.ratio(condition_id, key),
                evidence.confidence,
            )
            old_probability = record.posterior_probability
            new_probability = odds_update(old_probability, ratio)

            record.posterior_probability = new_probability
            record.evidence_log.append(evidence)
            record.cumulative_likelihood *= ratio

            updates.append(BeliefUpdate(
                condition_id=condition_id,
                old_probability=old_probability,
                new_probability=new_probability,
                likelihood_ratio=ratio,
                evidence=evidence,
            ))
            logger.debug(
                f"{condition_id}: {old_probability:.4f} -> {new_probability:.4f} "
                f"(key={key}, LR={ratio:.3f})"
            )

        self._normalize()
        return updates

    def _normalize(self) -> None:
        total = sum(r.posterior_probability for r in self._beliefs.values())
        if total > 1.0:
            factor = NORMALIZED_TOTAL / total
            for record in self._beliefs.values():
                record.posterior_probability *= factor

    def get_ranked_diagnoses(self) -> list[BeliefRecord]:
        """Tracked conditions ordered by descending posterior (stable)."""
        return sorted(
            self._beliefs.values(),
            key=lambda r: r.posterior_probability,
            reverse=True,
        )

    def get_diagnosis(self, condition_id: str) -> Optional[BeliefRecord]:
        return self._beliefs.get(condition_id)

    def entropy(self) -> float:
        """Entropy (bits) of the current belief distribution."""
        return entropy(r.posterior_probability for r in self._beliefs.values())

    def _hypothetical_posteriors(self, evidence: Evidence) -> list[float]:
        key = evidence_key(evidence)
        return [
            odds_update(
                record.posterior_probability,
                adjusted_ratio(self.likelihoods.ratio(condition_id, key), evidence.confidence),
            )
            for condition_id, record in self._beliefs.items()
        ]

    def calculate_information_gain(self, candidate: CandidateEvidence) -> float:
        """
        Expected entropy reduction from observing a candidate.

        Both binary outcomes are scored with equal weight. The store is not
        modified.
        """
        current = [r.posterior_probability for r in self._beliefs.values()]
        outcomes = [
            (weight, self._hypothetical_posteriors(candidate.as_evidence(outcome)))
            for outcome, weight in OUTCOME_WEIGHTS
        ]
        return expected_information_gain(current, outcomes)

    def information_gain_table(
        self,
        candidates: list[CandidateEvidence],
    ) -> list[tuple[CandidateEvidence, float]]:
        """Score candidates and order them from most to least informative."""
        scored = [(c, self.calculate_information_gain(c)) for c in candidates]
        return sorted(scored, key=lambda item: item[1], reverse=True)

    def reset(self) -> None:
        """Forget every tracked condition."""
        self._beliefs.clear()

    def __len__(self) -> int:
        return len(self._beliefs)
