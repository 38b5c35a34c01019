"""Interpretation record store."""

from abc import ABC, abstractmethod
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple

from beanie import PydanticObjectId
from bson import ObjectId

from lab_interpreter.core.logging import logger
from lab_interpreter.models.interpretation import (
    AnalysisInterpretation,
    InterpretationFields,
    InterpretationRecord,
)


# Fields a caller may sort the listing by
SORTABLE_FIELDS = {
    "created_at",
    "updated_at",
    "completed_at",
    "status",
    "risk_level",
    "processing_time",
    "patient_id",
    "analysis_id",
}


def clean_filters(filters: Optional[Dict[str, Any]]) -> Dict[str, Any]:
    """Drop empty filters and store enums by value."""
    cleaned = {}
    for key, value in (filters or {}).items():
        if value is None or value == "":
            continue
        cleaned[key] = value.value if isinstance(value, Enum) else value
    return cleaned


class InterpretationRepository(ABC):
    """Persistence of interpretation records."""

    @abstractmethod
    async def create(self, fields: InterpretationFields) -> InterpretationRecord:
        ...

    @abstractmethod
    async def get(self, record_id: str) -> Optional[InterpretationRecord]:
        ...

    @abstractmethod
    async def apply(self, record_id: str, delta: Dict[str, Any]) -> Optional[InterpretationRecord]:
        """Write the given fields in one update; None if the record is gone."""

    @abstractmethod
    async def list(
        self,
        filters: Optional[Dict[str, Any]] = None,
        page: int = 1,
        limit: int = 20,
        sort_by: str = "created_at",
        sort_order: str = "desc",
    ) -> Tuple[List[InterpretationRecord], int]:
        ...

    @abstractmethod
    async def count_by(self, field: str, match: Optional[Dict[str, Any]] = None) -> Dict[str, int]:
        """Record counts grouped by the value of field."""

    @abstractmethod
    async def average_processing_time(self) -> Optional[float]:
        """Mean processing time (ms) of completed records."""

    @abstractmethod
    async def delete(self, record_id: str) -> bool:
        ...


def _to_record(document: AnalysisInterpretation) -> InterpretationRecord:
    data = document.model_dump(exclude={"id", "revision_id"})
    return InterpretationRecord(id=str(document.id), **data)


class BeanieInterpretationRepository(InterpretationRepository):
    """MongoDB-backed store for AnalysisInterpretation documents."""

    @staticmethod
    async def _load(record_id: str) -> Optional[AnalysisInterpretation]:
        if not ObjectId.is_valid(record_id):
            return None
        return await AnalysisInterpretation.get(PydanticObjectId(record_id))

    async def create(self, fields: InterpretationFields) -> InterpretationRecord:
        document = AnalysisInterpretation(**fields.model_dump())
        await document.insert()
        logger.info(f"Created interpretation {document.id} for analysis {document.analysis_id}")
        return _to_record(document)

    async def get(self, record_id: str) -> Optional[InterpretationRecord]:
        document = await self._load(record_id)
        return _to_record(document) if document else None

    async def apply(self, record_id: str, delta: Dict[str, Any]) -> Optional[InterpretationRecord]:
        document = await self._load(record_id)
        if not document:
            return None

        for key, value in delta.items():
            setattr(document, key, value)
        document.updated_at = datetime.utcnow()
        await document.save()

        return _to_record(document)

    async def list(
        self,
        filters: Optional[Dict[str, Any]] = None,
        page: int = 1,
        limit: int = 20,
        sort_by: str = "created_at",
        sort_order: str = "desc",
    ) -> Tuple[List[InterpretationRecord], int]:
        direction = 1 if sort_order == "asc" else -1
        query = AnalysisInterpretation.find(clean_filters(filters)).sort([(sort_by, direction)])

        total = await query.count()
        documents = await query.skip((page - 1) * limit).limit(limit).to_list()

        return [_to_record(document) for document in documents], total

    async def count_by(self, field: str, match: Optional[Dict[str, Any]] = None) -> Dict[str, int]:
        pipeline = []
        if match:
            pipeline.append({"$match": clean_filters(match)})
        pipeline.append({"$group": {"_id": f"${field}", "count": {"$sum": 1}}})

        rows = await AnalysisInterpretation.aggregate(pipeline).to_list()
        return {row["_id"]: row["count"] for row in rows if row["_id"] is not None}

    async def average_processing_time(self) -> Optional[float]:
        pipeline = [
            {"$match": {"status": "completed", "processing_time": {"$ne": None}}},
            {"$group": {"_id": None, "average": {"$avg": "$processing_time"}}},
        ]
        rows = await AnalysisInterpretation.aggregate(pipeline).to_list()
        return rows[0]["average"] if rows else None

    async def delete(self, record_id: str) -> bool:
        document = await self._load(record_id)
        if not document:
            return False
        await document.delete()
        logger.info(f"Deleted interpretation {record_id}")
        return True
