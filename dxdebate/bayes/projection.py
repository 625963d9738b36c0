"""
Differential diagnosis as a view of the belief store.
"""

from typing import Optional

from dxdebate.bayes.engine import BayesianDiagnosticEngine, evidence_key
from dxdebate.knowledge.base import KnowledgeBase, condition_key
from dxdebate.models.case import DiagnosisHypothesis


def project_differential(
    engine: BayesianDiagnosticEngine,
    knowledge: KnowledgeBase,
    previous: Optional[list[DiagnosisHypothesis]] = None,
) -> list[DiagnosisHypothesis]:
    """
    Ranked differential derived from the belief store.

    Probabilities always come from the engine. Reasoning text and
    supporting evidence from the previous differential are carried over by
    condition.
    """
    earlier = {condition_key(h.condition): h for h in (previous or [])}
    differential = []
    for record in engine.get_ranked_diagnoses():
        prior_entry = earlier.get(record.condition_id)

        supporting = list(prior_entry.supporting_evidence) if prior_entry else []
        for ev in record.evidence_log:
            key = evidence_key(ev)
            if knowledge.likelihoods.ratio(record.condition_id, key) > 1.0 and key not in supporting:
                supporting.append(key)

        reasoning = prior_entry.reasoning if prior_entry and prior_entry.reasoning else (
            f"Prior {record.prior_probability * 100:.1f}% updated with "
            f"{len(record.evidence_log)} observation(s)"
        )
        differential.append(DiagnosisHypothesis(
            condition=knowledge.display_name(record.condition_id),
            probability=round(record.posterior_probability, 4),
            supporting_evidence=supporting,
            reasoning=reasoning,
            classification_code=record.classification_code,
        ))
    return differential
