"""Pydantic schemas for interpretation requests/responses."""

from typing import List, Optional

from pydantic import BaseModel, Field

from lab_interpreter.models.interpretation import InterpretationRecord


class SubmitResponse(BaseModel):
    """Response after accepting a document for interpretation."""
    interpretation_id: str
    status: str = "processing"
    estimated_time: str = "2-3 minutes"
    message: str = "Analysis uploaded successfully and being processed"


class RetryResponse(BaseModel):
    interpretation_id: str
    status: str = "processing"
    message: str = "Interpretation retry started"


class InterpretationDetail(InterpretationRecord):
    """A record as returned by the API."""
    download_url: Optional[str] = None


class Pagination(BaseModel):
    total: int
    page: int
    limit: int
    pages: int
    has_next: bool
    has_prev: bool


class InterpretationListResponse(BaseModel):
    records: List[InterpretationDetail] = Field(default_factory=list)
    pagination: Pagination


class GroupCount(BaseModel):
    """Number of records sharing one value of a field."""
    value: str
    count: int


class StatisticsResponse(BaseModel):
    by_status: List[GroupCount] = Field(default_factory=list)
    by_risk_level: List[GroupCount] = Field(default_factory=list)  # Completed records only
    average_processing_time: Optional[float] = None               # Milliseconds

    class Config:
        json_schema_extra = {
            "example": {
                "by_status": [{"value": "completed", "count": 12}, {"value": "failed", "count": 1}],
                "by_risk_level": [{"value": "normal", "count": 9}, {"value": "medium", "count": 3}],
                "average_processing_time": 8450.5,
            }
        }


class MessageResponse(BaseModel):
    message: str
