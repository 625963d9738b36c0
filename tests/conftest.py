"""
Pytest configuration and shared fixtures for the test suite.
"""

import json
from typing import Optional

import pytest

from dxdebate.bayes.engine import BayesianDiagnosticEngine
from dxdebate.knowledge.base import KnowledgeBase
from dxdebate.llm.client import MockLLMClient
from dxdebate.llm.oracle import ReasoningOracle
from dxdebate.models.case import (
    CaseInformation,
    CaseState,
    Contribution,
    DiagnosisHypothesis,
)
from dxdebate.models.config import WorkflowConfig
from dxdebate.models.enums import ContributorRole
from dxdebate.models.oracle import LLMResponse


# ============================================================================
# Scripted LLM Client
# ============================================================================

# Opening words of each prompt, used to route canned replies
PROMPT_ROUTES = {
    "Extract structured patient information": "intake",
    "A patient has answered": "merge_answer",
    "You are interviewing the patient": "questions",
    "Write the final diagnostic assessment": "final_assessment",
}


class ScriptedLLMClient(MockLLMClient):
    """
    Mock client that answers by what is being asked rather than by model.

    Contributor calls are routed by role (from the system prompt title),
    workflow calls by the opening of the user prompt. Each route maps to a
    string or a list of strings consumed in order.
    """

    def _route(self, messages: list[dict]) -> str:
        system = next((m["content"] for m in messages if m["role"] == "system"), "")
        if system:
            title = system.strip().splitlines()[0].lstrip("# ").strip()
            for role in ContributorRole:
                display = "Dr. " + role.value.replace("_", "-").title()
                if title.lower() == display.lower():
                    return role.value
        user = next((m["content"] for m in messages if m["role"] == "user"), "")
        for opening, route in PROMPT_ROUTES.items():
            if user.lstrip().startswith(opening):
                return route
        return "unknown"

    async def complete(
        self,
        model: str,
        messages: list[dict],
        temperature: float = 0.3,
        max_tokens: Optional[int] = None,
    ) -> LLMResponse:
        route = self._route(messages)
        self.calls.append({"model": model, "route": route, "messages": messages})

        content = self._next_content(route)
        self._session_costs.append({"model": model, "input_tokens": 0, "output_tokens": 0})
        return LLMResponse(content=content, model=model, input_tokens=0, output_tokens=0)

    def routes_called(self) -> list[str]:
        return [c["route"] for c in self.calls]


@pytest.fixture
def scripted_client_factory():
    """Factory for scripted clients keyed by route."""
    def _create(**responses):
        return ScriptedLLMClient(responses=responses)
    return _create


@pytest.fixture
def mock_client():
    """Mock client that answers every call with a generic reply."""
    return MockLLMClient()


@pytest.fixture
def oracle(mock_client):
    """Reasoning oracle over the mock client."""
    return ReasoningOracle(mock_client, model="test-model", timeout_seconds=5.0)


# ============================================================================
# Knowledge and Beliefs
# ============================================================================

@pytest.fixture
def knowledge():
    """Built-in demonstration knowledge base."""
    return KnowledgeBase.default()


@pytest.fixture
def belief_engine(knowledge):
    """Belief engine seeded with the demonstration priors."""
    engine = BayesianDiagnosticEngine(knowledge.likelihoods)
    for profile in knowledge.conditions.values():
        engine.initialize_diagnosis(profile.condition_id, profile.prior, profile.classification_code)
    return engine


# ============================================================================
# Case Fixtures
# ============================================================================

@pytest.fixture
def workflow_config():
    """Small, fast configuration for workflow tests."""
    return WorkflowConfig(
        model="test-model",
        min_interaction_rounds=1,
        max_interaction_rounds=1,
        max_debate_rounds=2,
        debate_rounds_per_turn=1,
        oracle_timeout_seconds=5.0,
        knowledge_path="does/not/exist.yaml",
    )


@pytest.fixture
def chest_pain_case():
    """Structured record for an elderly chest-pain presentation."""
    return CaseInformation(
        patient_id="CASE_TEST",
        age=70,
        gender="male",
        chief_complaint="Crushing chest pain",
        history_of_present_illness="Crushing chest pain with sweating that started 2 hours ago",
        medications=["aspirin"],
        allergies=["penicillin"],
        family_history=["father had a heart attack"],
    )


@pytest.fixture
def sample_state(chest_pain_case):
    """Case state just after initialization."""
    return CaseState(
        case_id=chest_pain_case.patient_id,
        case_info=chest_pain_case,
        differential_diagnoses=[
            DiagnosisHypothesis(condition="Myocardial Infarction", probability=0.35),
            DiagnosisHypothesis(condition="Gastroenteritis", probability=0.05),
            DiagnosisHypothesis(condition="Pneumonia", probability=0.02),
        ],
    )


@pytest.fixture
def sample_contribution():
    """Hypothesis contribution with two estimates."""
    return Contribution(
        role=ContributorRole.HYPOTHESIS,
        narrative="Myocardial Infarction (70%)\nPneumonia (5%)",
        diagnosis_deltas=[
            DiagnosisHypothesis(condition="Myocardial Infarction", probability=0.7, reasoning="ECG pending"),
            DiagnosisHypothesis(condition="Aortic Dissection", probability=0.1),
        ],
        round_number=1,
    )


@pytest.fixture
def intake_reply():
    """Intake JSON for the chest-pain case."""
    return json.dumps({
        "age": 70,
        "gender": "Male",
        "chief_complaint": "Crushing chest pain",
        "history_of_present_illness": "Crushing chest pain with diaphoresis that started 2 hours ago",
        "medications": ["aspirin"],
        "allergies": ["penicillin"],
        "family_history": ["father had a heart attack"],
    })
