"""LangGraph nodes for the interpretation pipeline.

Each node reads the state and returns a delta. Status writes and
persistence of the delta are done by the wrapper in graph.py.
"""

import asyncio
import time
from dataclasses import dataclass
from datetime import datetime

from fastapi.concurrency import run_in_threadpool

from lab_interpreter.config import settings
from lab_interpreter.core.logging import record_logger
from lab_interpreter.graphs.interpretation.state import InterpretationState
from lab_interpreter.models.clinical import AnalysisContext, PatientContext
from lab_interpreter.models.interpretation import StructuredData, TextAnalysis
from lab_interpreter.services.directory import ClinicalDirectory
from lab_interpreter.services.findings import assess_risk_level, extract_key_findings
from lab_interpreter.services.medical_extractor import MedicalDataExtractor
from lab_interpreter.services.pdf_service import PDFService
from lab_interpreter.services.reasoning_service import ReasoningService
from lab_interpreter.services.repository import InterpretationRepository
from lab_interpreter.services.text_analyzer import TextAnalyzer
from lab_interpreter.shared.exceptions import InsufficientTextError


@dataclass
class PipelineDependencies:
    """Collaborators injected into the nodes."""
    repository: InterpretationRepository
    directory: ClinicalDirectory
    reasoning: ReasoningService
    max_attempts: int = settings.INTERPRETATION_MAX_ATTEMPTS
    retry_delay: float = settings.INTERPRETATION_RETRY_DELAY_SECONDS
    min_text_chars: int = settings.MIN_EXTRACTED_CHARS


# ============ NODE 1: EXTRACT ============

async def extract_stage(state: InterpretationState, deps: PipelineDependencies) -> dict:
    """
    Read PDF metadata, text and structured data.
    Falls back to plain pdfplumber extraction when the parser yields no text.
    """
    log = record_logger(state["record_id"])
    path = state["file_path"]

    metadata = dict(state.get("metadata") or {})
    pdf_metadata = await run_in_threadpool(PDFService.get_metadata, path)
    if pdf_metadata:
        metadata["pdf_pages"] = pdf_metadata.pages
        metadata["pdf_version"] = pdf_metadata.version

    result = await run_in_threadpool(MedicalDataExtractor.extract_medical_data, path)

    text = ""
    parsed_data = StructuredData()
    if result.success:
        text = result.raw_text
        parsed_data = result.to_structured_data()
    else:
        log.warning(f"Medical parser failed, using fallback: {result.error}")

    if not text:
        text = await run_in_threadpool(PDFService.extract_text_fallback, path)

    if not text or len(text.strip()) < deps.min_text_chars:
        raise InsufficientTextError("Unable to extract meaningful text from PDF")

    log.info(f"Extracted {len(text)} characters, {len(parsed_data.test_results)} test results")
    return {"metadata": metadata, "raw_text": text, "parsed_data": parsed_data}


# ============ NODE 2: ANALYZE ============

async def analyze_stage(state: InterpretationState, deps: PipelineDependencies) -> dict:
    """Clean the text and compute quality metrics."""
    cleaned_text = PDFService.clean_text(state["raw_text"])
    metrics = TextAnalyzer.analyze(cleaned_text)

    return {
        "extracted_text": cleaned_text,
        "structured_data": state.get("parsed_data") or StructuredData(),
        "text_analysis": TextAnalysis(
            word_count=metrics.word_count,
            complexity=metrics.complexity,
            reading_time=metrics.reading_time,
            keywords=metrics.keywords,
        ),
    }


# ============ NODE 3: INTERPRET ============

async def _load_contexts(state: InterpretationState, deps: PipelineDependencies):
    log = record_logger(state["record_id"])

    patient = await deps.directory.get_patient(state["patient_id"])
    if patient is None:
        log.warning(f"Patient {state['patient_id']} not found, interpreting without patient context")
        patient = PatientContext()

    analysis = await deps.directory.get_analysis(state["analysis_id"])
    if analysis is None:
        log.warning(f"Analysis {state['analysis_id']} not found, interpreting without analysis context")
        analysis = AnalysisContext()

    return patient, analysis


async def interpret_stage(state: InterpretationState, deps: PipelineDependencies) -> dict:
    """
    Ask the reasoning service for an interpretation.
    Fixed delay between attempts; the last error propagates.
    """
    log = record_logger(state["record_id"])
    patient, analysis = await _load_contexts(state, deps)

    max_attempts = max(1, deps.max_attempts)
    for attempt in range(1, max_attempts + 1):
        try:
            interpretation = await deps.reasoning.interpret(
                state["extracted_text"],
                patient,
                analysis,
                state.get("structured_data"),
            )
            break
        except Exception as e:
            if attempt == max_attempts:
                log.error(f"Reasoning failed after {attempt} attempts: {e}")
                raise
            log.warning(f"Reasoning attempt {attempt}/{max_attempts} failed: {e}, retrying in {deps.retry_delay}s")
            await asyncio.sleep(deps.retry_delay)

    log.info(f"Received {interpretation.kind} interpretation")
    return {"interpretation": interpretation, "ai_model": deps.reasoning.model_name}


# ============ NODE 4: FINALIZE ============

async def finalize_stage(state: InterpretationState, deps: PipelineDependencies) -> dict:
    """Derive findings and risk level and stamp completion."""
    structured_data = state.get("structured_data")
    test_results = structured_data.test_results if structured_data else []

    return {
        "key_findings": extract_key_findings(state["interpretation"], structured_data),
        "risk_level": assess_risk_level(test_results),
        "processing_time": int((time.monotonic() - state["started_at"]) * 1000),
        "completed_at": datetime.utcnow(),
    }


# ============ NODE 5: LINK ANALYSIS ============

async def link_analysis(state: InterpretationState, deps: PipelineDependencies) -> dict:
    """Point the analysis at this interpretation. The record is already completed."""
    log = record_logger(state["record_id"])
    try:
        await deps.directory.mark_last_interpretation(state["analysis_id"], state["record_id"])
    except Exception as e:
        log.error(f"Could not update analysis {state['analysis_id']}: {e}")
        return {"analysis_linked": False}
    return {"analysis_linked": True}
