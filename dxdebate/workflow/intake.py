"""
Case intake and answer merging.

Free text is turned into CaseInformation through the oracle. When the
oracle fails or its reply cannot be read, intake falls back to a
placeholder record and answer merging falls back to appending the raw
answer to the history.
"""

import logging
import re
import time
from typing import Any, Optional

from pydantic import ValidationError

from dxdebate.llm.oracle import OracleError, ReasoningOracle
from dxdebate.models.case import CaseInformation, PendingQuestion
from dxdebate.utils.extraction import Extractor
from dxdebate.utils.parsing import format_case_information
from dxdebate.utils.prompt_loader import render_prompt

logger = logging.getLogger(__name__)

PLACEHOLDER_AGE = 45
COMPLAINT_PREVIEW_CHARS = 100

LIST_FIELDS = ("past_medical_history", "medications", "allergies", "family_history")
DICT_FIELDS = ("review_of_systems", "physical_exam")
TEXT_FIELDS = ("gender", "occupation", "chief_complaint", "history_of_present_illness", "social_history")

# Keywords in an answer that mark an essential field as covered
GATHERED_KEYWORDS: dict[str, tuple[str, ...]] = {
    "medications": ("medication", "medicine", "pill", "taking", "prescription", "mg"),
    "allergies": ("allerg", "allergic", "reaction to"),
    "family_history": ("family", "mother", "father", "sister", "brother", "parent", "sibling"),
    "symptom_timeline": ("started", "began", "since", "ago", "onset", "yesterday", "last week", "hours", "days"),
    "symptom_severity": ("severe", "mild", "moderate", "scale", "/10", "out of 10", "worst", "intensity"),
}

# Lower-camel keys some models return instead of snake case
_KEY_ALIASES = {
    "patientId": "patient_id",
    "chiefComplaint": "chief_complaint",
    "historyOfPresentIllness": "history_of_present_illness",
    "pastMedicalHistory": "past_medical_history",
    "familyHistory": "family_history",
    "socialHistory": "social_history",
    "reviewOfSystems": "review_of_systems",
    "physicalExam": "physical_exam",
}


def generate_case_id() -> str:
    return f"CASE_{int(time.time() * 1000)}"


def placeholder_case(case_text: str, case_id: Optional[str] = None) -> CaseInformation:
    """Minimal record used when intake extraction fails."""
    text = (case_text or "").strip()
    if not text:
        return CaseInformation(
            patient_id=case_id or generate_case_id(),
            age=PLACEHOLDER_AGE,
            chief_complaint="No case information provided",
            history_of_present_illness="Initial case presentation",
        )
    return CaseInformation(
        patient_id=case_id or generate_case_id(),
        age=PLACEHOLDER_AGE,
        chief_complaint=text[:COMPLAINT_PREVIEW_CHARS],
        history_of_present_illness=text,
    )


def _as_list(value: Any) -> list[str]:
    if value is None:
        return []
    if isinstance(value, str):
        return [v.strip() for v in re.split(r"[;,\n]", value) if v.strip()]
    if isinstance(value, list):
        return [str(v).strip() for v in value if v is not None and str(v).strip()]
    return [str(value)]


def _as_dict(value: Any) -> dict[str, str]:
    if isinstance(value, dict):
        return {str(k): str(v) for k, v in value.items() if v not in (None, "")}
    return {}


def _as_age(value: Any) -> Optional[int]:
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        age = int(value)
    else:
        match = re.search(r"\d+", str(value or ""))
        if not match:
            return None
        age = int(match.group())
    return age if 0 < age <= 150 else None


def normalize_case_fields(data: dict) -> dict:
    """
    Coerce an oracle JSON object into CaseInformation keyword arguments.

    Unknown keys are dropped; empty values are omitted.
    """
    data = {_KEY_ALIASES.get(k, k): v for k, v in data.items()}

    # Nested demographics block
    demographics = data.get("demographics")
    if isinstance(demographics, dict):
        data.setdefault("age", demographics.get("age"))
        data.setdefault("gender", demographics.get("gender"))

    fields: dict[str, Any] = {}
    age = _as_age(data.get("age"))
    if age is not None:
        fields["age"] = age

    for name in TEXT_FIELDS:
        value = data.get(name)
        if value not in (None, "") and not isinstance(value, (list, dict)):
            fields[name] = str(value).strip()
    if "gender" in fields:
        fields["gender"] = fields["gender"].lower()

    for name in LIST_FIELDS:
        items = _as_list(data.get(name))
        if items:
            fields[name] = items
    for name in DICT_FIELDS:
        items = _as_dict(data.get(name))
        if items:
            fields[name] = items

    patient_id = data.get("patient_id")
    if patient_id not in (None, "", "null"):
        fields["patient_id"] = str(patient_id)
    return fields


def _merge_unique(existing: list[str], new: list[str]) -> list[str]:
    merged = list(existing)
    seen = {item.lower() for item in merged}
    for item in new:
        if item.lower() not in seen:
            merged.append(item)
            seen.add(item.lower())
    return merged


def merge_case_fields(case_info: CaseInformation, fields: dict) -> CaseInformation:
    """
    Merge extracted fields into an existing record.

    Lists are merged without duplicates, dicts are updated, scalars replace.
    The patient id never changes.
    """
    updated = case_info.model_copy(deep=True)
    for name, value in fields.items():
        if name == "patient_id":
            continue
        if name in LIST_FIELDS:
            setattr(updated, name, _merge_unique(getattr(updated, name), value))
        elif name in DICT_FIELDS:
            merged = dict(getattr(updated, name))
            merged.update(value)
            setattr(updated, name, merged)
        else:
            setattr(updated, name, value)
    return updated


def append_additional_information(case_info: CaseInformation, answer: str) -> CaseInformation:
    updated = case_info.model_copy(deep=True)
    addition = f"Additional Information: {answer.strip()}"
    if updated.history_of_present_illness:
        updated.history_of_present_illness = f"{updated.history_of_present_illness}\n\n{addition}"
    else:
        updated.history_of_present_illness = addition
    return updated


def detect_gathered_information(answer: str, questions: Optional[list[PendingQuestion]] = None) -> list[str]:
    """
    Essential-field tags an answer covers.

    A tag counts when the answer mentions one of its keywords, or when a
    question about that field was asked and the answer is a plain denial.
    """
    lowered = (answer or "").lower()
    tags = [tag for tag, words in GATHERED_KEYWORDS.items() if any(w in lowered for w in words)]

    if questions and re.search(r"\b(no|none|nothing|not any)\b", lowered):
        asked = {q.category for q in questions}
        for category, tag in (("medications", "medications"), ("allergies", "allergies"), ("family", "family_history")):
            if category in asked and tag not in tags:
                tags.append(tag)
    return tags


class CaseIntake:
    """Extracts and updates structured case information via the oracle."""

    def __init__(self, oracle: ReasoningOracle, extractor: Optional[Extractor] = None):
        self.oracle = oracle
        self.extractor = extractor or Extractor()

    async def extract_case(self, case_text: str) -> CaseInformation:
        """
        Structured case information from a free-text description.

        Never raises; falls back to a placeholder record.
        """
        if not case_text or not case_text.strip():
            logger.warning("Empty case text, using placeholder record")
            return placeholder_case(case_text)

        try:
            reply = await self.oracle.invoke(render_prompt("intake", case_text=case_text))
        except OracleError as e:
            logger.warning(f"Case extraction failed, using placeholder: {e}")
            return placeholder_case(case_text)

        result = self.extractor.json_object(reply)
        if not result.ok:
            logger.warning(f"Unreadable case extraction ({result.error}), using placeholder")
            return placeholder_case(case_text)

        fields = normalize_case_fields(result.value)
        fields.setdefault("patient_id", generate_case_id())
        if not fields.get("chief_complaint"):
            fields["chief_complaint"] = case_text.strip()[:COMPLAINT_PREVIEW_CHARS]
        if not fields.get("history_of_present_illness"):
            fields["history_of_present_illness"] = case_text.strip()

        try:
            return CaseInformation(**fields)
        except ValidationError as e:
            logger.warning(f"Extracted case failed validation, using placeholder: {e}")
            return placeholder_case(case_text)

    async def merge_answer(
        self,
        case_info: CaseInformation,
        answer: str,
        questions: Optional[list[PendingQuestion]] = None,
    ) -> CaseInformation:
        """
        Fold a patient's answer into the case record.

        Never raises; falls back to appending the raw answer to the history.
        """
        if not answer or not answer.strip():
            return case_info

        question_text = "\n".join(
            f"{i}. {q.text} (category: {q.category})"
            for i, q in enumerate(questions or [], 1)
        ) or "None recorded"

        try:
            reply = await self.oracle.invoke(render_prompt(
                "merge_answer",
                questions=question_text,
                answer=answer.strip(),
                case_information=format_case_information(case_info),
            ))
        except OracleError as e:
            logger.warning(f"Answer extraction failed, appending raw answer: {e}")
            return append_additional_information(case_info, answer)

        result = self.extractor.json_object(reply)
        if not result.ok:
            logger.warning(f"Unreadable answer extraction ({result.error}), appending raw answer")
            return append_additional_information(case_info, answer)

        return merge_case_fields(case_info, normalize_case_fields(result.value))
