"""
Entropy and expected information gain over a belief distribution.
"""

import math
from typing import Iterable

# Probability of each binary outcome when scoring a candidate observation
OUTCOME_WEIGHTS: tuple[tuple[bool, float], ...] = ((True, 0.5), (False, 0.5))


def entropy(probabilities: Iterable[float]) -> float:
    """
    Shannon entropy (bits) of the probabilities after normalizing them to sum to 1.

    An empty or all-zero distribution has zero entropy.
    """
    values = [p for p in probabilities if p > 0]
    total = sum(values)
    if total <= 0:
        return 0.0

    result = 0.0
    for p in values:
        normalized = p / total
        result -= normalized * math.log2(normalized)
    return result


def expected_information_gain(
    current: list[float],
    outcomes: list[tuple[float, list[float]]],
) -> float:
    """
    Entropy reduction expected from observing one candidate.

    Args:
        current: Current posteriors
        outcomes: (weight, hypothetical posteriors) for each possible outcome

    Returns:
        H(current) minus the weighted entropy after each outcome
    """
    expected_after = sum(weight * entropy(posteriors) for weight, posteriors in outcomes)
    return entropy(current) - expected_after
