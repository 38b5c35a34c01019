"""Analysis interpretation document model."""

from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Literal, Optional, Union

from beanie import Document
from pydantic import BaseModel, Field


class InterpretationStatus(str, Enum):
    """Lifecycle of an interpretation record."""
    PENDING = "pending"
    PROCESSING = "processing"
    EXTRACTING = "extracting"
    ANALYZING = "analyzing"
    INTERPRETING = "interpreting"
    COMPLETED = "completed"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (InterpretationStatus.COMPLETED, InterpretationStatus.FAILED)

    def can_transition_to(self, target: "InterpretationStatus") -> bool:
        """Forward moves only, plus failed -> processing for retries."""
        return target in _TRANSITIONS[self]


_TRANSITIONS = {
    InterpretationStatus.PENDING: {InterpretationStatus.PROCESSING, InterpretationStatus.FAILED},
    InterpretationStatus.PROCESSING: {InterpretationStatus.EXTRACTING, InterpretationStatus.FAILED},
    InterpretationStatus.EXTRACTING: {InterpretationStatus.ANALYZING, InterpretationStatus.FAILED},
    InterpretationStatus.ANALYZING: {InterpretationStatus.INTERPRETING, InterpretationStatus.FAILED},
    InterpretationStatus.INTERPRETING: {InterpretationStatus.COMPLETED, InterpretationStatus.FAILED},
    InterpretationStatus.COMPLETED: set(),
    InterpretationStatus.FAILED: {InterpretationStatus.PROCESSING},
}


class RiskLevel(str, Enum):
    """Aggregate severity derived from abnormal test results."""
    UNKNOWN = "unknown"
    NORMAL = "normal"
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


# ============ EMBEDDED MODELS ============

class OriginalFile(BaseModel):
    """Descriptor of the stored upload."""
    filename: str                       # Generated name on disk
    original_name: Optional[str] = None
    path: str
    size: int = 0
    content_type: Optional[str] = None


class PatientInfo(BaseModel):
    name: Optional[str] = None
    age: Optional[int] = None
    gender: Optional[str] = None        # "M" / "F"
    reference_id: Optional[str] = None


class LabMeasurement(BaseModel):
    """A recognised measurement found in the document text."""
    test: str
    value: float
    unit: str = ""
    range: str = ""


class ReportDates(BaseModel):
    sample_date: Optional[str] = None
    result_date: Optional[str] = None
    date: Optional[str] = None


class LabInfo(BaseModel):
    lab_name: Optional[str] = None
    doctor_name: Optional[str] = None
    phone: Optional[str] = None


class StructuredData(BaseModel):
    """Best-effort parse of the document; every part may be empty."""
    patient_info: PatientInfo = Field(default_factory=PatientInfo)
    test_results: List[LabMeasurement] = Field(default_factory=list)
    dates: ReportDates = Field(default_factory=ReportDates)
    lab_info: LabInfo = Field(default_factory=LabInfo)


class TextAnalysis(BaseModel):
    word_count: int = 0
    complexity: int = 0                 # 0-100
    reading_time: int = 0               # Minutes
    keywords: List[str] = Field(default_factory=list)


class NormalRange(BaseModel):
    parameter: str
    value: str
    normal_range: str
    status: Literal["normal", "low", "high", "critical"] = "normal"


class StructuredInterpretation(BaseModel):
    """Interpretation the reasoning model returned in the expected shape."""
    kind: Literal["structured"] = "structured"
    summary: str = ""
    details: str = ""
    recommendations: List[str] = Field(default_factory=list)
    concerns: List[str] = Field(default_factory=list)
    normal_ranges: List[NormalRange] = Field(default_factory=list)

    def as_text(self) -> str:
        """Flatten every section into plain text for keyword scanning."""
        lines = [self.summary, self.details, *self.recommendations, *self.concerns]
        lines.extend(
            f"{r.parameter}: {r.value} ({r.normal_range}) {r.status}" for r in self.normal_ranges
        )
        return "\n".join(line for line in lines if line)


class TextInterpretation(BaseModel):
    """Free-form interpretation kept verbatim."""
    kind: Literal["text"] = "text"
    text: str

    def as_text(self) -> str:
        return self.text


Interpretation = Union[StructuredInterpretation, TextInterpretation]


class AbnormalFinding(BaseModel):
    type: Literal["abnormal"] = "abnormal"
    test: str
    value: float
    unit: str = ""
    expected_range: str


class AlertFinding(BaseModel):
    type: Literal["alert"] = "alert"
    keyword: str
    context: str


KeyFinding = Union[AbnormalFinding, AlertFinding]


class ProcessingError(BaseModel):
    message: str
    timestamp: datetime = Field(default_factory=datetime.utcnow)


# ============ DOCUMENT ============

class InterpretationFields(BaseModel):
    """Persisted fields of an interpretation record."""

    # References owned by the main back office
    analysis_id: str
    patient_id: str

    original_file: OriginalFile
    notes: Optional[str] = None

    # Stage outputs
    extracted_text: Optional[str] = None
    structured_data: Optional[StructuredData] = None
    text_analysis: Optional[TextAnalysis] = None
    interpretation: Optional[Interpretation] = Field(default=None, discriminator="kind")
    key_findings: Optional[List[KeyFinding]] = None
    risk_level: Optional[RiskLevel] = None
    ai_model: Optional[str] = None

    # Processing status
    status: InterpretationStatus = InterpretationStatus.PENDING
    error: Optional[ProcessingError] = None
    processing_time: Optional[int] = None      # Milliseconds
    completed_at: Optional[datetime] = None

    metadata: Dict[str, Any] = Field(default_factory=dict)

    # Timestamps
    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow)


class AnalysisInterpretation(Document, InterpretationFields):
    """One uploaded lab document and its journey through the pipeline."""

    class Settings:
        name = "analysis_interpretations"
        use_state_management = True
        indexes = [
            "analysis_id",
            "patient_id",
            "status",
            "risk_level",
            [("patient_id", 1), ("created_at", -1)],
            [("analysis_id", 1), ("created_at", -1)],
        ]


class InterpretationRecord(InterpretationFields):
    """Storage-independent view of a record, keyed by its string id."""
    id: str
