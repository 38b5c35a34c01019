# Interpretations Feature - Service

import asyncio
import math
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Optional, Tuple

from bson import ObjectId
from fastapi import UploadFile
from fastapi.concurrency import run_in_threadpool

from lab_interpreter.config import settings
from lab_interpreter.core.logging import logger
from lab_interpreter.features.interpretations.runner import PipelineRunner
from lab_interpreter.models.interpretation import (
    InterpretationFields,
    InterpretationRecord,
    InterpretationStatus,
    OriginalFile,
)
from lab_interpreter.schemas.interpretation import (
    GroupCount,
    InterpretationDetail,
    InterpretationListResponse,
    Pagination,
    RetryResponse,
    StatisticsResponse,
    SubmitResponse,
)
from lab_interpreter.services.directory import ClinicalDirectory
from lab_interpreter.services.pdf_service import PDFService
from lab_interpreter.services.repository import SORTABLE_FIELDS, InterpretationRepository
from lab_interpreter.services.storage import FileStorage, StoredFile, get_file_extension
from lab_interpreter.shared.exceptions import (
    BadRequestException,
    ConflictException,
    NotFoundException,
)


# Grace given to a run that has already recorded its outcome
RUN_SETTLE_SECONDS = 1.0


def _label(value: Any) -> str:
    return value.value if isinstance(value, Enum) else str(value)


def _require_object_id(value: Optional[str], name: str) -> str:
    if not value:
        raise BadRequestException(f"{name} is required")
    if not ObjectId.is_valid(value):
        raise BadRequestException(f"Invalid {name}")
    return value


class InterpretationService:
    """Operations exposed to the HTTP layer."""

    def __init__(
        self,
        repository: InterpretationRepository,
        directory: ClinicalDirectory,
        storage: FileStorage,
        runner: PipelineRunner,
    ):
        self.repository = repository
        self.directory = directory
        self.storage = storage
        self.runner = runner
        self._retry_lock = asyncio.Lock()

    @staticmethod
    def download_url(record_id: str) -> str:
        return f"{settings.API_V1_PREFIX}/interpretations/{record_id}/download"

    def _to_detail(self, record: InterpretationRecord) -> InterpretationDetail:
        return InterpretationDetail(
            **record.model_dump(),
            download_url=self.download_url(record.id) if record.original_file else None,
        )

    async def _get_record(self, record_id: str) -> InterpretationRecord:
        _require_object_id(record_id, "interpretation ID")
        record = await self.repository.get(record_id)
        if not record:
            raise NotFoundException("Interpretation not found")
        return record

    async def _ensure_idle(self, record: InterpretationRecord) -> None:
        """
        Refuse to touch a record while its pipeline runs.
        A run that already wrote its terminal status is given a moment to finish.
        """
        if not self.runner.is_active(record.id):
            return
        if record.status.is_terminal and await self.runner.wait_finished(record.id, RUN_SETTLE_SECONDS):
            return
        raise ConflictException("Interpretation is still being processed")

    async def _discard(self, stored: StoredFile) -> None:
        await self.storage.delete_file(stored.path)

    async def submit(
        self,
        file: Optional[UploadFile],
        patient_id: Optional[str],
        analysis_id: Optional[str],
        notes: Optional[str] = None,
        ip_address: Optional[str] = None,
    ) -> SubmitResponse:
        """
        Store an uploaded PDF, create its record and start the pipeline.

        Args:
            file: Uploaded PDF
            patient_id: Patient ObjectId from the main back office
            analysis_id: Analysis ObjectId from the main back office
            notes: Optional free text from the caller
            ip_address: Client address, kept in the record metadata

        Returns:
            Id of the new record; processing continues in the background
        """
        if file is None or not file.filename:
            raise BadRequestException("PDF file is required")
        if not patient_id or not analysis_id:
            raise BadRequestException("Patient ID and Analysis ID are required")
        _require_object_id(patient_id, "patient ID")
        _require_object_id(analysis_id, "analysis ID")
        if get_file_extension(file.filename) != ".pdf":
            raise BadRequestException("Only PDF files are accepted")

        stored = await self.storage.save_upload(file.file, file.filename, file.content_type)

        if not await run_in_threadpool(PDFService.is_valid_pdf, stored.path):
            await self._discard(stored)
            raise BadRequestException("Invalid PDF file")

        if await self.directory.get_patient(patient_id) is None:
            await self._discard(stored)
            raise NotFoundException("Patient not found")

        if await self.directory.get_analysis(analysis_id) is None:
            await self._discard(stored)
            raise NotFoundException("Analysis not found")

        try:
            record = await self.repository.create(InterpretationFields(
                analysis_id=analysis_id,
                patient_id=patient_id,
                original_file=OriginalFile(**stored.model_dump()),
                notes=notes,
                status=InterpretationStatus.PROCESSING,
                metadata={
                    "uploaded_at": datetime.utcnow().isoformat(),
                    "ip_address": ip_address,
                },
            ))
        except Exception:
            await self._discard(stored)
            raise

        self.runner.launch(record.id)
        logger.info(f"Accepted '{file.filename}' for analysis {analysis_id} as interpretation {record.id}")

        return SubmitResponse(interpretation_id=record.id)

    async def get(self, record_id: str) -> InterpretationDetail:
        return self._to_detail(await self._get_record(record_id))

    async def list(
        self,
        filters: Optional[Dict[str, Any]] = None,
        page: int = 1,
        limit: int = 20,
        sort_by: str = "created_at",
        sort_order: str = "desc",
    ) -> InterpretationListResponse:
        """
        Filtered, sorted page of records.

        Args:
            filters: Equality filters on patient_id, analysis_id, status, risk_level
            page: 1-based page number
            limit: Page size, 1 to 100
            sort_by: Record field to sort on
            sort_order: "asc" or "desc"
        """
        if sort_by not in SORTABLE_FIELDS:
            raise BadRequestException(f"Cannot sort by '{sort_by}'")

        page = max(1, page)
        limit = min(100, max(1, limit))

        records, total = await self.repository.list(filters, page, limit, sort_by, sort_order)
        pages = math.ceil(total / limit) if total else 0

        return InterpretationListResponse(
            records=[self._to_detail(record) for record in records],
            pagination=Pagination(
                total=total,
                page=page,
                limit=limit,
                pages=pages,
                has_next=page < pages,
                has_prev=page > 1,
            ),
        )

    async def retry(self, record_id: str) -> RetryResponse:
        """Restart the full pipeline for a failed record."""
        async with self._retry_lock:
            record = await self._get_record(record_id)

            if record.status != InterpretationStatus.FAILED:
                raise BadRequestException("Only failed interpretations can be retried")
            await self._ensure_idle(record)

            await self.repository.apply(record_id, {
                "status": InterpretationStatus.PROCESSING,
                "error": None,
            })
            self.runner.launch(record_id)

        logger.info(f"Retrying interpretation {record_id}")
        return RetryResponse(interpretation_id=record_id)

    async def delete(self, record_id: str) -> None:
        """Delete the stored file, then the record."""
        record = await self._get_record(record_id)
        await self._ensure_idle(record)

        if record.original_file:
            await self.storage.delete_file(record.original_file.path)
        await self.repository.delete(record_id)

    async def get_file(self, record_id: str) -> Tuple[OriginalFile, bytes]:
        """Descriptor and content of the original PDF."""
        record = await self._get_record(record_id)
        if not record.original_file or not await self.storage.file_exists(record.original_file.path):
            raise NotFoundException("PDF file not found")
        content = await self.storage.read_file(record.original_file.path)
        return record.original_file, content

    async def statistics(self) -> StatisticsResponse:
        by_status = await self.repository.count_by("status")
        by_risk_level = await self.repository.count_by(
            "risk_level", {"status": InterpretationStatus.COMPLETED}
        )
        average = await self.repository.average_processing_time()

        return StatisticsResponse(
            by_status=[GroupCount(value=_label(value), count=count) for value, count in by_status.items()],
            by_risk_level=[GroupCount(value=_label(value), count=count) for value, count in by_risk_level.items()],
            average_processing_time=average,
        )
