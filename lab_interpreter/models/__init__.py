"""Database models for analysis interpretation."""

from lab_interpreter.models.interpretation import (
    AnalysisInterpretation,
    InterpretationRecord,
    InterpretationStatus,
    RiskLevel,
)
from lab_interpreter.models.clinical import Patient, Analysis

__all__ = [
    "AnalysisInterpretation",
    "InterpretationRecord",
    "InterpretationStatus",
    "RiskLevel",
    "Patient",
    "Analysis",
]
