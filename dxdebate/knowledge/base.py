"""
Static domain knowledge: condition priors, likelihood ratios, the
diagnostic-test catalog and the phrase map used to read evidence out of
free text.

The knowledge base is loaded once (YAML, or built-in demonstration data)
and then only read. Nothing in the workflow mutates it.
"""

import logging
import re
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Mapping, Optional

import yaml

logger = logging.getLogger(__name__)


def condition_key(name: str) -> str:
    """Normalize a condition name ("Myocardial Infarction") to its id."""
    return re.sub(r"[\s\-]+", "_", name.strip().lower())


@dataclass(frozen=True)
class ConditionProfile:
    """A diagnosable condition and its static attributes."""

    condition_id: str
    display_name: str
    prior: float
    classification_code: Optional[str] = None
    recommended_tests: tuple[str, ...] = ()


@dataclass(frozen=True)
class DiagnosticTestSpec:
    """Catalog entry for an orderable diagnostic test."""

    name: str
    cost: float
    sensitivity: float
    specificity: float
    test_type: str = "lab"
    # Evidence produced when the result text contains a positive term
    evidence_name: Optional[str] = None
    positive_terms: tuple[str, ...] = ("positive", "elevated", "abnormal")
    evidence_confidence: float = 0.9


@dataclass(frozen=True)
class EvidencePhrase:
    """Maps phrases found in case text to a named observation."""

    name: str
    phrases: tuple[str, ...]
    kind: str = "symptom"
    confidence: float = 0.9


class LikelihoodTable:
    """
    Read-only (condition, evidence key) -> likelihood ratio lookup.

    Missing pairs are uninformative and return 1.0.
    """

    def __init__(self, ratios: Mapping[str, Mapping[str, float]]):
        self._ratios = MappingProxyType({
            condition: MappingProxyType(dict(entries))
            for condition, entries in ratios.items()
        })

    def ratio(self, condition_id: str, evidence_key: str) -> float:
        return self._ratios.get(condition_id, {}).get(evidence_key, 1.0)


DEFAULT_KNOWLEDGE: dict = {
    "conditions": {
        "myocardial_infarction": {
            "display_name": "Myocardial Infarction",
            "prior": 0.02,
            "classification_code": "I21.9",
            "recommended_tests": ["ECG", "Troponin", "Chest X-ray", "Echocardiogram"],
            "likelihood_ratios": {
                "chest_pain_crushing": 8.0,
                "diaphoresis": 3.0,
                "nausea": 2.0,
                "troponin_elevated": 20.0,
                "age_over_65": 2.5,
                "fever": 0.3,
            },
        },
        "pneumonia": {
            "display_name": "Pneumonia",
            "prior": 0.05,
            "classification_code": "J18.9",
            "recommended_tests": ["Chest X-ray", "CBC", "Blood Culture", "Sputum Culture"],
            "likelihood_ratios": {
                "fever": 4.0,
                "no_fever": 0.3,
                "cough": 5.0,
                "shortness_of_breath": 3.0,
                "chest_xray_infiltrate": 15.0,
                "chest_pain_crushing": 0.2,
                "troponin_elevated": 0.1,
            },
        },
        "gastroenteritis": {
            "display_name": "Gastroenteritis",
            "prior": 0.15,
            "classification_code": "K59.1",
            "recommended_tests": ["Stool Culture", "CBC", "Basic Metabolic Panel"],
            "likelihood_ratios": {
                "nausea": 4.0,
                "vomiting": 6.0,
                "diarrhea": 8.0,
                "abdominal_pain": 5.0,
                "fever": 2.0,
                "chest_pain_crushing": 0.1,
                "troponin_elevated": 0.05,
            },
        },
    },
    "tests": {
        "ECG": {"cost": 50, "sensitivity": 0.85, "specificity": 0.90, "test_type": "cardiac"},
        "Troponin": {
            "cost": 75,
            "sensitivity": 0.95,
            "specificity": 0.85,
            "test_type": "lab",
            "evidence_name": "troponin_elevated",
            "positive_terms": ["elevated", "positive", "high"],
            "evidence_confidence": 0.95,
        },
        "Chest X-ray": {
            "cost": 150,
            "sensitivity": 0.70,
            "specificity": 0.80,
            "test_type": "imaging",
            "evidence_name": "chest_xray_infiltrate",
            "positive_terms": ["infiltrate", "consolidation", "opacity"],
            "evidence_confidence": 0.9,
        },
        "CBC": {"cost": 25, "sensitivity": 0.60, "specificity": 0.70, "test_type": "lab"},
        "Basic Metabolic Panel": {"cost": 30, "sensitivity": 0.65, "specificity": 0.75, "test_type": "lab"},
    },
    "evidence_phrases": {
        "chest_pain_crushing": {
            "phrases": ["crushing chest pain", "chest pain crushing", "crushing pain"],
            "confidence": 0.9,
        },
        "fever": {"phrases": ["fever", "febrile"], "confidence": 0.9},
        "nausea": {"phrases": ["nausea", "nauseous", "nauseated"], "confidence": 0.8},
        "cough": {"phrases": ["cough", "coughing"], "confidence": 0.9},
        "shortness_of_breath": {
            "phrases": ["shortness of breath", "short of breath", "dyspnea"],
            "confidence": 0.9,
        },
        "diaphoresis": {"phrases": ["diaphoresis", "diaphoretic", "sweating"], "confidence": 0.8},
        "vomiting": {"phrases": ["vomiting", "vomited", "emesis"], "confidence": 0.85},
        "diarrhea": {"phrases": ["diarrhea", "diarrhoea", "loose stools"], "confidence": 0.85},
        "abdominal_pain": {
            "phrases": ["abdominal pain", "stomach pain", "belly pain", "abdominal cramping"],
            "confidence": 0.85,
        },
    },
}


@dataclass(frozen=True)
class KnowledgeBase:
    """
    Immutable domain knowledge injected into the belief engine and workflow.
    """

    conditions: Mapping[str, ConditionProfile]
    likelihoods: LikelihoodTable
    tests: Mapping[str, DiagnosticTestSpec]
    evidence_phrases: tuple[EvidencePhrase, ...] = field(default_factory=tuple)
    source: str = "builtin"

    @classmethod
    def from_dict(cls, data: dict, source: str = "builtin") -> "KnowledgeBase":
        """Build a knowledge base from its plain-dict (YAML) form."""
        conditions: dict[str, ConditionProfile] = {}
        ratios: dict[str, dict[str, float]] = {}

        for key, entry in (data.get("conditions") or {}).items():
            condition_id = condition_key(key)
            conditions[condition_id] = ConditionProfile(
                condition_id=condition_id,
                display_name=entry.get("display_name", key.replace("_", " ").title()),
                prior=float(entry["prior"]),
                classification_code=entry.get("classification_code"),
                recommended_tests=tuple(entry.get("recommended_tests", [])),
            )
            ratios[condition_id] = {
                str(k): float(v) for k, v in (entry.get("likelihood_ratios") or {}).items()
            }

        tests: dict[str, DiagnosticTestSpec] = {}
        for name, entry in (data.get("tests") or {}).items():
            tests[name] = DiagnosticTestSpec(
                name=name,
                cost=float(entry.get("cost", 0.0)),
                sensitivity=float(entry.get("sensitivity", 0.8)),
                specificity=float(entry.get("specificity", 0.8)),
                test_type=entry.get("test_type", "lab"),
                evidence_name=entry.get("evidence_name"),
                positive_terms=tuple(
                    entry.get("positive_terms", ["positive", "elevated", "abnormal"])
                ),
                evidence_confidence=float(entry.get("evidence_confidence", 0.9)),
            )

        phrases = tuple(
            EvidencePhrase(
                name=name,
                phrases=tuple(p.lower() for p in entry.get("phrases", [name.replace("_", " ")])),
                kind=entry.get("kind", "symptom"),
                confidence=float(entry.get("confidence", 0.9)),
            )
            for name, entry in (data.get("evidence_phrases") or {}).items()
        )

        return cls(
            conditions=MappingProxyType(conditions),
            likelihoods=LikelihoodTable(ratios),
            tests=MappingProxyType(tests),
            evidence_phrases=phrases,
            source=source,
        )

    @classmethod
    def default(cls) -> "KnowledgeBase":
        return cls.from_dict(DEFAULT_KNOWLEDGE)

    @classmethod
    def from_config(cls, config_path: str = "config/knowledge.yaml") -> "KnowledgeBase":
        """Load the knowledge base from YAML, falling back to built-in data."""
        try:
            with open(config_path) as f:
                data = yaml.safe_load(f) or {}
        except FileNotFoundError:
            logger.info(f"Knowledge file {config_path} not found, using built-in defaults")
            return cls.default()

        if not data.get("conditions"):
            logger.warning(f"Knowledge file {config_path} defines no conditions, using built-in defaults")
            return cls.default()

        return cls.from_dict(data, source=config_path)

    def get_condition(self, name: str) -> Optional[ConditionProfile]:
        """Look up a condition by id or display name."""
        return self.conditions.get(condition_key(name))

    def display_name(self, condition_id: str) -> str:
        profile = self.conditions.get(condition_id)
        if profile:
            return profile.display_name
        return condition_id.replace("_", " ").title()

    def find_test(self, name: str) -> Optional[DiagnosticTestSpec]:
        """Find a catalog test by case-insensitive name or containment."""
        lowered = name.strip().lower()
        for test_name, entry in self.tests.items():
            if test_name.lower() == lowered:
                return entry
        for test_name, entry in self.tests.items():
            if test_name.lower() in lowered:
                return entry
        return None
