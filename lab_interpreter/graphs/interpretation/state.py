"""LangGraph state schema for the interpretation pipeline."""

from datetime import datetime
from typing import Any, Dict, List, Optional, TypedDict

from lab_interpreter.models.interpretation import (
    Interpretation,
    KeyFinding,
    RiskLevel,
    StructuredData,
    TextAnalysis,
)


class InterpretationState(TypedDict, total=False):
    """State carried between the pipeline stages."""

    # Input - provided when starting the run
    record_id: str
    patient_id: str
    analysis_id: str
    file_path: str
    started_at: float  # time.monotonic() at run start
    metadata: Dict[str, Any]

    # Extraction
    raw_text: str
    parsed_data: StructuredData

    # Analysis
    extracted_text: str  # Cleaned text
    structured_data: StructuredData
    text_analysis: TextAnalysis

    # Reasoning
    interpretation: Interpretation
    ai_model: str

    # Completion
    key_findings: List[KeyFinding]
    risk_level: RiskLevel
    processing_time: int
    completed_at: datetime
    analysis_linked: Optional[bool]
