"""
Patient question policy and generation.

QuestionPolicy decides whether the investigation should stop and ask the
patient something. QuestionGenerator writes the questions (via the oracle,
with a deterministic fallback) and keeps the most useful few.
"""

import logging
from typing import Optional

from dxdebate.llm.oracle import OracleError, ReasoningOracle
from dxdebate.models.case import CaseState, PendingQuestion
from dxdebate.models.config import WorkflowConfig
from dxdebate.models.enums import (
    ContributorRole,
    DiagnosticPhase,
    QuestionCategory,
    QuestionPriority,
)
from dxdebate.utils.extraction import Extractor
from dxdebate.utils.parsing import format_case_information, truncate
from dxdebate.utils.prompt_loader import render_prompt

logger = logging.getLogger(__name__)

INFORMATION_REQUEST_MARKERS = ("need", "require", "ask", "clarify")
TIMELINE_MARKERS = ("started", "began", "onset", "since")

PRIORITY_WEIGHTS = {
    QuestionPriority.HIGH.value: 3,
    QuestionPriority.MEDIUM.value: 2,
    QuestionPriority.LOW.value: 1,
}


def _mentions_timeline(text: str) -> bool:
    lowered = (text or "").lower()
    return any(marker in lowered for marker in TIMELINE_MARKERS)


class QuestionPolicy:
    """Decides when more information from the patient is needed."""

    def __init__(self, config: WorkflowConfig):
        self.config = config

    def missing_essentials(self, state: CaseState) -> list[str]:
        """Essential facts that are still unrecorded, as readable labels."""
        info = state.case_info
        gathered = set(state.gathered_information)
        missing = []

        if info is None:
            return ["Patient age", "Patient gender", "Current medications", "Known allergies",
                    "Family medical history", "Symptom onset and timeline"]

        if not info.age:
            missing.append("Patient age")
        if not info.gender or info.gender == "unknown":
            missing.append("Patient gender")
        if "medications" not in gathered and not info.medications:
            missing.append("Current medications")
        if "allergies" not in gathered and not info.allergies:
            missing.append("Known allergies")
        if "family_history" not in gathered and not info.family_history:
            missing.append("Family medical history")
        if "symptom_timeline" not in gathered and not _mentions_timeline(info.history_of_present_illness):
            missing.append("Symptom onset and timeline")
        if state.interaction_round >= 2 and "symptom_severity" not in gathered:
            missing.append("Symptom severity and characteristics")
        return missing

    def has_information_requests(self, state: CaseState) -> bool:
        """True if the last two contributions ask for more information."""
        for contribution in state.contributions[-2:]:
            for recommendation in contribution.recommendations:
                lowered = recommendation.lower()
                if any(marker in lowered for marker in INFORMATION_REQUEST_MARKERS):
                    return True
        return False

    def should_generate(self, state: CaseState) -> bool:
        """
        Whether the investigation should stop to question the patient.

        Never while questions are pending, always below the interaction
        floor, and never once the interaction cap has been reached.
        """
        if state.pending_questions:
            return False
        if state.interaction_round < self.config.min_interaction_rounds:
            return True
        if state.interaction_round >= self.config.max_interaction_rounds:
            return False

        live = len(state.live_diagnoses())
        if state.confidence_level < self.config.low_confidence_threshold:
            return True
        if live > self.config.max_live_diagnoses:
            return True
        if self.missing_essentials(state):
            return True
        if self.has_information_requests(state):
            return True
        if state.phase == DiagnosticPhase.INFORMATION_GATHERING.value:
            return True
        if live > 2:
            return True
        return False


def round_strategy(interaction_round: int, live_diagnoses: int) -> str:
    """What the next interview round should focus on."""
    if interaction_round == 0:
        return "Establish demographics, symptom timeline and severity."
    if interaction_round == 1:
        return (
            "Collect medical history, medications and allergies, and begin exploring "
            "symptom features that separate the initial hypotheses."
        )
    if interaction_round == 2:
        return (
            "Discriminate between the top diagnoses: associated symptoms, risk "
            "factors and relevant family history."
        )
    if live_diagnoses > 2:
        return (
            f"Ask highly specific questions to rule in or out the top "
            f"{min(live_diagnoses, 3)} competing diagnoses."
        )
    return "Resolve the remaining uncertainty about the most likely condition."


def score_question(question: PendingQuestion, state: CaseState) -> int:
    """
    Usefulness score used to keep the best questions.

    Priority weight, plus a bonus for categories suited to the phase, plus
    a bonus when the leading diagnosis is already above 60%.
    """
    score = PRIORITY_WEIGHTS.get(question.priority, 1)

    phase = state.return_phase or state.phase
    if phase == DiagnosticPhase.INITIAL_ASSESSMENT.value:
        if question.category in (QuestionCategory.SYMPTOMS.value, QuestionCategory.HISTORY.value):
            score += 2
    elif phase == DiagnosticPhase.INFORMATION_GATHERING.value:
        if question.category in (QuestionCategory.FAMILY.value, QuestionCategory.SOCIAL.value):
            score += 2
    elif phase == DiagnosticPhase.PATIENT_INTERACTION.value:
        score += 1

    if state.differential_diagnoses:
        top = max(state.differential_diagnoses, key=lambda h: h.probability)
        if top.probability > 0.6:
            score += 2
    return score


def prioritize_questions(
    questions: list[PendingQuestion],
    state: CaseState,
    limit: int = 5,
) -> list[PendingQuestion]:
    """Highest-scoring questions first; ties keep their original order."""
    ranked = sorted(questions, key=lambda q: score_question(q, state), reverse=True)
    return ranked[:limit]


def default_questions(state: CaseState) -> list[PendingQuestion]:
    """
    Deterministic questions used when the oracle cannot write any.

    Always includes a general catch-all so the list is never empty.
    """
    info = state.case_info
    questions = []

    if "symptom_timeline" not in state.gathered_information and not (
        info and _mentions_timeline(info.history_of_present_illness)
    ):
        questions.append(PendingQuestion(
            category=QuestionCategory.SYMPTOMS,
            text="When did your symptoms first begin, and how have they changed over time?",
            priority=QuestionPriority.HIGH,
        ))

    if info and "pain" in info.chief_complaint.lower():
        questions.append(PendingQuestion(
            category=QuestionCategory.SYMPTOMS,
            text="On a scale of 1-10, how would you rate your pain, and what makes it better or worse?",
            priority=QuestionPriority.HIGH,
        ))

    if not (info and info.medications) and "medications" not in state.gathered_information:
        questions.append(PendingQuestion(
            category=QuestionCategory.MEDICATIONS,
            text="Are you currently taking any medications, including over-the-counter drugs or supplements?",
            priority=QuestionPriority.MEDIUM,
        ))

    if not (info and info.allergies) and "allergies" not in state.gathered_information:
        questions.append(PendingQuestion(
            category=QuestionCategory.ALLERGIES,
            text="Do you have any allergies to medications, foods or anything else?",
            priority=QuestionPriority.MEDIUM,
        ))

    questions.append(PendingQuestion(
        category=QuestionCategory.HISTORY,
        text="Is there anything else about your symptoms or health that you think we should know?",
        priority=QuestionPriority.LOW,
    ))
    return questions


class QuestionGenerator:
    """Writes follow-up questions for the patient."""

    def __init__(
        self,
        oracle: ReasoningOracle,
        config: WorkflowConfig,
        policy: Optional[QuestionPolicy] = None,
        extractor: Optional[Extractor] = None,
    ):
        self.oracle = oracle
        self.config = config
        self.policy = policy or QuestionPolicy(config)
        self.extractor = extractor or Extractor()

    def build_prompt(self, state: CaseState) -> str:
        leading = ", ".join(
            f"{h.condition} ({h.probability * 100:.0f}%)"
            for h in state.differential_diagnoses[:5]
        ) or "initial assessment in progress"

        recent = "\n".join(
            f"{c.role}: {'; '.join(c.recommendations)}"
            for c in state.contributions[-3:]
            if c.recommendations
        ) or "none"

        missing = self.policy.missing_essentials(state)
        info = state.case_info
        if info and not info.past_medical_history:
            missing.append("Past medical history")
        if info and not info.social_history:
            missing.append("Social history (smoking, alcohol, occupation)")

        return render_prompt(
            "questions",
            interview_round=state.interaction_round + 1,
            max_questions=self.config.max_questions,
            chief_complaint=info.chief_complaint if info else "unknown",
            leading_diagnoses=leading,
            confidence=f"{state.confidence_level * 100:.1f}%",
            phase=state.return_phase or state.phase,
            known_information=truncate(format_case_information(info), 1200),
            missing_information=", ".join(missing) or "All basic information collected",
            round_strategy=round_strategy(state.interaction_round, len(state.live_diagnoses())),
            recent_recommendations=recent,
        )

    def parse_questions(self, text: str) -> list[PendingQuestion]:
        """Questions from the oracle's JSON reply; malformed entries are skipped."""
        result = self.extractor.json_object(text)
        if not result.ok:
            logger.warning(f"Could not parse questions: {result.error}")
            return []

        raw_questions = result.value.get("questions")
        if not isinstance(raw_questions, list):
            logger.warning("Question reply has no 'questions' list")
            return []

        questions = []
        for raw in raw_questions:
            if not isinstance(raw, dict):
                continue
            text_value = (raw.get("question") or raw.get("text") or "").strip()
            if not text_value:
                continue
            try:
                questions.append(PendingQuestion(
                    text=text_value,
                    category=QuestionCategory(str(raw.get("category", "history")).lower()),
                    priority=QuestionPriority(str(raw.get("priority", "medium")).lower()),
                    requesting_role=ContributorRole(str(raw.get("requesting_role", "hypothesis")).lower()),
                ))
            except ValueError:
                questions.append(PendingQuestion(text=text_value))
        return questions

    async def generate(self, state: CaseState) -> list[PendingQuestion]:
        """
        Questions for the next interview round, best first.

        Never returns an empty list.
        """
        questions: list[PendingQuestion] = []
        try:
            reply = await self.oracle.invoke(self.build_prompt(state))
            questions = self.parse_questions(reply)
        except OracleError as e:
            logger.warning(f"Question generation failed, using defaults: {e}")

        if not questions:
            questions = default_questions(state)

        return prioritize_questions(questions, state, self.config.max_questions)
