"""Pydantic schemas for API requests/responses."""

from lab_interpreter.schemas.interpretation import (
    GroupCount,
    InterpretationDetail,
    InterpretationListResponse,
    MessageResponse,
    Pagination,
    RetryResponse,
    StatisticsResponse,
    SubmitResponse,
)

__all__ = [
    "GroupCount",
    "InterpretationDetail",
    "InterpretationListResponse",
    "MessageResponse",
    "Pagination",
    "RetryResponse",
    "StatisticsResponse",
    "SubmitResponse",
]
