# Interpretations Feature - Orchestrator

import time
from datetime import datetime

from lab_interpreter.core.logging import record_logger
from lab_interpreter.graphs.interpretation import PipelineDependencies, compile_interpretation_graph
from lab_interpreter.graphs.interpretation.state import InterpretationState
from lab_interpreter.models.interpretation import (
    InterpretationStatus,
    ProcessingError,
)
from lab_interpreter.shared.exceptions import InterpretationError


class InterpretationOrchestrator:
    """Runs the stage graph for one record and records the outcome."""

    def __init__(self, deps: PipelineDependencies):
        self.deps = deps
        self.graph = compile_interpretation_graph(deps)

    async def run(self, record_id: str) -> None:
        """
        Drive a record from processing to completed or failed.

        Never raises: any error ends up on the record.
        """
        log = record_logger(record_id)
        started_at = time.monotonic()

        try:
            record = await self.deps.repository.get(record_id)
            if record is None:
                raise InterpretationError(f"Interpretation {record_id} not found")

            log.info(f"Starting interpretation of {record.original_file.path}")
            initial_state: InterpretationState = {
                "record_id": record_id,
                "patient_id": record.patient_id,
                "analysis_id": record.analysis_id,
                "file_path": record.original_file.path,
                "started_at": started_at,
                "metadata": dict(record.metadata),
            }
            final_state = await self.graph.ainvoke(initial_state)
            log.info(f"Completed in {final_state['processing_time']} ms (risk: {final_state['risk_level'].value})")

        except Exception as e:
            log.exception(f"Interpretation failed: {e}")
            await self._record_failure(record_id, e, started_at)

    async def _record_failure(self, record_id: str, error: Exception, started_at: float) -> None:
        """Mark the record failed in one write. Errors here are logged only."""
        log = record_logger(record_id)
        try:
            record = await self.deps.repository.get(record_id)
            if record is None:
                log.warning("Record no longer exists, failure not recorded")
                return
            if not record.status.can_transition_to(InterpretationStatus.FAILED):
                log.warning(f"Record is {record.status.value}, failure not recorded")
                return

            await self.deps.repository.apply(record_id, {
                "status": InterpretationStatus.FAILED,
                "error": ProcessingError(message=str(error) or type(error).__name__, timestamp=datetime.utcnow()),
                "processing_time": int((time.monotonic() - started_at) * 1000),
                "interpretation": None,
                "key_findings": None,
                "risk_level": None,
                "completed_at": None,
            })
        except Exception as e:
            log.exception(f"Could not record failure: {e}")
