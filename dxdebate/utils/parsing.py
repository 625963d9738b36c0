"""
Shared text parsing utilities for oracle responses.
"""

import json
import re
from typing import Optional


def strip_code_fences(content: str) -> str:
    """Return the body of the first fenced block, or the text unchanged."""
    content = content.strip()
    if "```json" in content:
        return content.split("```json")[1].split("```")[0].strip()
    if "```" in content:
        return content.split("```")[1].split("```")[0].strip()
    return content


def find_json_object(content: str) -> Optional[str]:
    """
    Locate the first balanced {...} block in free text.

    Braces inside JSON strings are respected.
    """
    start = content.find("{")
    while start != -1:
        depth = 0
        in_string = False
        escaped = False
        for i in range(start, len(content)):
            ch = content[i]
            if in_string:
                if escaped:
                    escaped = False
                elif ch == "\\":
                    escaped = True
                elif ch == '"':
                    in_string = False
                continue
            if ch == '"':
                in_string = True
            elif ch == "{":
                depth += 1
            elif ch == "}":
                depth -= 1
                if depth == 0:
                    return content[start:i + 1]
        start = content.find("{", start + 1)
    return None


def parse_json_object(content: str) -> dict:
    """
    Parse a JSON object out of an oracle response.

    Code fences are stripped; if the remainder is not valid JSON the first
    {...} block is tried.

    Raises:
        ValueError: If no JSON object can be parsed
    """
    if not content or not content.strip():
        raise ValueError("empty response")

    body = strip_code_fences(content)
    try:
        result = json.loads(body)
    except json.JSONDecodeError:
        block = find_json_object(content)
        if block is None:
            raise ValueError("no JSON object found in response")
        try:
            result = json.loads(block)
        except json.JSONDecodeError as e:
            raise ValueError(f"malformed JSON object: {e}") from e

    if not isinstance(result, dict):
        raise ValueError(f"expected a JSON object, got {type(result).__name__}")
    return result


def parse_money(text: str) -> Optional[float]:
    """First dollar amount in text ("$1,250.00" -> 1250.0), or None."""
    match = re.search(r"\$(\d+(?:,\d{3})*(?:\.\d{2})?)", text)
    if not match:
        return None
    return float(match.group(1).replace(",", ""))


def truncate(text: str, limit: int = 400) -> str:
    """Shorten text for prompts and log lines."""
    text = text.strip()
    if len(text) <= limit:
        return text
    return text[:limit].rstrip() + "..."


def get_role_display(role: str) -> str:
    """
    Human-readable name for a contributor role.

    Args:
        role: Role identifier (e.g., "test_chooser")

    Returns:
        Display name (e.g., "Dr. Test-Chooser")
    """
    displays = {
        "hypothesis": "Dr. Hypothesis",
        "test_chooser": "Dr. Test-Chooser",
        "challenger": "Dr. Challenger",
        "stewardship": "Dr. Stewardship",
        "checklist": "Dr. Checklist",
    }
    return displays.get(role, role.replace("_", " ").title())


def format_case_information(case_info) -> str:
    """
    Format a CaseInformation object as readable lines for prompts.

    Empty fields are omitted.
    """
    if not case_info:
        return "No case information recorded yet."

    ci = case_info
    parts = [f"Patient: {ci.patient_id}"]

    age = f"{ci.age}" if ci.age else "unknown"
    parts.append(f"Age: {age}, Gender: {ci.gender or 'unknown'}")
    if ci.occupation:
        parts.append(f"Occupation: {ci.occupation}")
    if ci.chief_complaint:
        parts.append(f"Chief complaint: {ci.chief_complaint}")
    if ci.history_of_present_illness:
        parts.append(f"History: {ci.history_of_present_illness}")
    if ci.past_medical_history:
        parts.append(f"Past medical history: {', '.join(ci.past_medical_history)}")
    if ci.medications:
        parts.append(f"Medications: {', '.join(ci.medications)}")
    if ci.allergies:
        parts.append(f"Allergies: {', '.join(ci.allergies)}")
    if ci.family_history:
        parts.append(f"Family history: {', '.join(ci.family_history)}")
    if ci.social_history:
        parts.append(f"Social history: {ci.social_history}")
    for label, findings in (("Review of systems", ci.review_of_systems), ("Exam", ci.physical_exam)):
        if findings:
            rendered = "; ".join(f"{k}: {v}" for k, v in findings.items())
            parts.append(f"{label}: {rendered}")

    return "\n".join(parts)


def format_differential(differential: list, limit: Optional[int] = None) -> str:
    """Render hypotheses as "Condition (NN.N%): reasoning" lines."""
    if not differential:
        return "No differential diagnoses established yet."

    lines = []
    for hypothesis in differential[:limit]:
        line = f"{hypothesis.condition} ({hypothesis.probability * 100:.1f}%)"
        if hypothesis.reasoning:
            line += f": {truncate(hypothesis.reasoning, 200)}"
        lines.append(line)
    return "\n".join(lines)
