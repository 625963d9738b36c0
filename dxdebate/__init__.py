"""
dxdebate: multi-role diagnostic deliberation with Bayesian belief tracking.
"""

from dxdebate.models import CaseState, InvestigationResult, WorkflowConfig
from dxdebate.workflow import InvestigationEngine, InvestigationSession

__version__ = "0.1.0"

__all__ = [
    "CaseState",
    "InvestigationEngine",
    "InvestigationResult",
    "InvestigationSession",
    "WorkflowConfig",
]
