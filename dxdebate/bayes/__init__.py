"""Bayesian belief maintenance over candidate diagnoses."""

from dxdebate.bayes.engine import BayesianDiagnosticEngine, evidence_key
from dxdebate.bayes.information import entropy, expected_information_gain
from dxdebate.bayes.projection import project_differential

__all__ = [
    "BayesianDiagnosticEngine",
    "entropy",
    "evidence_key",
    "expected_information_gain",
    "project_differential",
]
