"""Key findings and risk level derived from test results and the interpretation."""

import re
from typing import List, Optional, Sequence

from lab_interpreter.models.interpretation import (
    AbnormalFinding,
    AlertFinding,
    Interpretation,
    KeyFinding,
    LabMeasurement,
    RiskLevel,
    StructuredData,
)


ALERT_KEYWORDS = ["urgent", "anormal", "critique", "critical", "élevé", "faible"]

CONTEXT_LENGTH = 100

_RANGE = re.compile(r"(\d+(?:[.,]\d+)?)\s*-\s*(\d+(?:[.,]\d+)?)")


def _to_float(token: str) -> float:
    return float(token.replace(",", "."))


def is_abnormal(value: Optional[float], range_text: Optional[str]) -> bool:
    """
    True iff value lies strictly outside a "min-max" range.

    One-sided ranges such as "<5" or ">100" are not parsed and count as
    normal.
    """
    if not range_text or not isinstance(value, (int, float)) or isinstance(value, bool):
        return False

    match = _RANGE.search(range_text)
    if not match:
        return False

    low, high = _to_float(match.group(1)), _to_float(match.group(2))
    return value < low or value > high


def extract_context(text: str, keyword: str, context_length: int = CONTEXT_LENGTH) -> str:
    """Window of text around the first occurrence of keyword (case-insensitive)."""
    index = text.lower().find(keyword.lower())
    if index == -1:
        return ""

    start = max(0, index - context_length)
    end = min(len(text), index + len(keyword) + context_length)
    return text[start:end].strip()


def extract_key_findings(
    interpretation: Optional[Interpretation],
    structured_data: Optional[StructuredData],
) -> List[KeyFinding]:
    """Abnormal test results first, then alert keywords found in the interpretation."""
    findings: List[KeyFinding] = []

    if structured_data:
        for result in structured_data.test_results:
            if is_abnormal(result.value, result.range):
                findings.append(AbnormalFinding(
                    test=result.test,
                    value=result.value,
                    unit=result.unit,
                    expected_range=result.range,
                ))

    text = interpretation.as_text() if interpretation else ""
    lowered = text.lower()
    for keyword in ALERT_KEYWORDS:
        if keyword in lowered:
            findings.append(AlertFinding(
                keyword=keyword,
                context=extract_context(text, keyword),
            ))

    return findings


def assess_risk_level(test_results: Optional[Sequence[LabMeasurement]]) -> RiskLevel:
    """Map the share of abnormal results to a risk label."""
    if not test_results:
        return RiskLevel.UNKNOWN

    abnormal_count = sum(1 for result in test_results if is_abnormal(result.value, result.range))
    abnormal_percentage = abnormal_count / len(test_results) * 100

    if abnormal_percentage == 0:
        return RiskLevel.NORMAL
    if abnormal_percentage < 25:
        return RiskLevel.LOW
    if abnormal_percentage < 50:
        return RiskLevel.MEDIUM
    return RiskLevel.HIGH
