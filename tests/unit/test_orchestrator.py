"""
Unit tests for the interpretation pipeline and its orchestrator
"""

import time

import pytest
from bson import ObjectId

from lab_interpreter.features.interpretations.orchestrator import InterpretationOrchestrator
from lab_interpreter.graphs.interpretation.graph import ensure_transition
from lab_interpreter.models.interpretation import (
    AbnormalFinding,
    AlertFinding,
    InterpretationStatus,
    OriginalFile,
    RiskLevel,
    TextInterpretation,
)
from lab_interpreter.shared.exceptions import InvalidStatusTransition
from tests.fakes import InMemoryInterpretationRepository, ScriptedReasoningService


STAGES = [
    InterpretationStatus.EXTRACTING,
    InterpretationStatus.ANALYZING,
    InterpretationStatus.INTERPRETING,
]


def add_record(repository, path, patient_id, analysis_id, status=InterpretationStatus.PROCESSING, **fields):
    return repository.add(
        analysis_id=analysis_id,
        patient_id=patient_id,
        original_file=OriginalFile(filename="report.pdf", original_name="bilan.pdf", path=path, size=1024),
        status=status,
        metadata={"uploaded_at": "2024-01-16T08:00:00", "ip_address": "127.0.0.1"},
        **fields,
    )


@pytest.mark.asyncio
async def test_successful_run(deps, repository, directory, reasoning, sample_pdf, patient_id, analysis_id,
                              structured_interpretation):
    """A readable report goes through every stage and completes"""
    record = add_record(repository, sample_pdf, patient_id, analysis_id)

    await InterpretationOrchestrator(deps).run(record.id)

    stored = await repository.get(record.id)
    assert stored.status == InterpretationStatus.COMPLETED
    assert repository.status_history[record.id] == STAGES + [InterpretationStatus.COMPLETED]

    assert "Jean Dupont" in stored.extracted_text
    assert stored.structured_data.patient_info.name == "Jean Dupont"
    assert stored.text_analysis.word_count > 0
    assert stored.metadata["pdf_pages"] == 1
    assert stored.metadata["ip_address"] == "127.0.0.1"

    assert stored.interpretation == structured_interpretation
    assert stored.ai_model == "fake-model"
    assert stored.risk_level == RiskLevel.MEDIUM
    assert isinstance(stored.key_findings[0], AbnormalFinding)
    assert stored.key_findings[0].test == "Glycémie"
    assert any(isinstance(f, AlertFinding) and f.keyword == "élevé" for f in stored.key_findings)
    assert stored.processing_time >= 0
    assert stored.completed_at is not None
    assert stored.error is None

    call = reasoning.calls[0]
    assert call["patient"].name == "Jean Dupont"
    assert call["analysis"].name == "Bilan lipidique"
    assert call["structured_data"].test_results

    assert directory.marked == [(analysis_id, record.id)]


@pytest.mark.asyncio
async def test_text_interpretation_is_kept(deps, repository, sample_pdf, patient_id, analysis_id):
    deps.reasoning = ScriptedReasoningService(TextInterpretation(text="Résultat anormal, voir médecin."))
    record = add_record(repository, sample_pdf, patient_id, analysis_id)

    await InterpretationOrchestrator(deps).run(record.id)

    stored = await repository.get(record.id)
    assert stored.interpretation.kind == "text"
    assert any(isinstance(f, AlertFinding) and f.keyword == "anormal" for f in stored.key_findings)


@pytest.mark.asyncio
async def test_insufficient_text_fails_without_reasoning(deps, repository, reasoning, short_pdf,
                                                         patient_id, analysis_id):
    record = add_record(repository, short_pdf, patient_id, analysis_id)

    await InterpretationOrchestrator(deps).run(record.id)

    stored = await repository.get(record.id)
    assert stored.status == InterpretationStatus.FAILED
    assert stored.error.message == "Unable to extract meaningful text from PDF"
    assert repository.status_history[record.id] == [
        InterpretationStatus.EXTRACTING,
        InterpretationStatus.FAILED,
    ]
    assert reasoning.calls == []
    assert stored.interpretation is None
    assert stored.processing_time is not None


@pytest.mark.asyncio
async def test_blank_pdf_fails(deps, repository, blank_pdf, patient_id, analysis_id):
    record = add_record(repository, blank_pdf, patient_id, analysis_id)

    await InterpretationOrchestrator(deps).run(record.id)

    stored = await repository.get(record.id)
    assert stored.status == InterpretationStatus.FAILED
    assert stored.error.message == "Unable to extract meaningful text from PDF"


@pytest.mark.asyncio
async def test_missing_file_fails(deps, repository, tmp_path, patient_id, analysis_id):
    record = add_record(repository, str(tmp_path / "gone.pdf"), patient_id, analysis_id)

    await InterpretationOrchestrator(deps).run(record.id)

    stored = await repository.get(record.id)
    assert stored.status == InterpretationStatus.FAILED
    assert stored.error.message


@pytest.mark.asyncio
async def test_transient_reasoning_errors_are_retried(deps, repository, sample_pdf, patient_id, analysis_id,
                                                      structured_interpretation):
    deps.reasoning = ScriptedReasoningService(
        RuntimeError("rate limited"),
        RuntimeError("rate limited"),
        structured_interpretation,
    )
    record = add_record(repository, sample_pdf, patient_id, analysis_id)

    await InterpretationOrchestrator(deps).run(record.id)

    stored = await repository.get(record.id)
    assert stored.status == InterpretationStatus.COMPLETED
    assert len(deps.reasoning.calls) == 3


@pytest.mark.asyncio
async def test_reasoning_failure_after_three_attempts(deps, repository, sample_pdf, patient_id, analysis_id):
    deps.reasoning = ScriptedReasoningService(RuntimeError("model unavailable"))
    record = add_record(repository, sample_pdf, patient_id, analysis_id)

    await InterpretationOrchestrator(deps).run(record.id)

    stored = await repository.get(record.id)
    assert len(deps.reasoning.calls) == 3
    assert stored.status == InterpretationStatus.FAILED
    assert stored.error.message == "model unavailable"
    assert stored.interpretation is None
    assert stored.key_findings is None
    assert stored.risk_level is None
    assert stored.completed_at is None
    assert repository.status_history[record.id] == STAGES + [InterpretationStatus.FAILED]


@pytest.mark.asyncio
async def test_retry_waits_between_attempts(deps, repository, sample_pdf, patient_id, analysis_id):
    """Two fixed 2 s waits separate the three attempts"""
    deps.reasoning = ScriptedReasoningService(RuntimeError("model unavailable"))
    deps.retry_delay = 2.0
    record = add_record(repository, sample_pdf, patient_id, analysis_id)

    await InterpretationOrchestrator(deps).run(record.id)

    times = deps.reasoning.call_times
    assert len(times) == 3
    assert times[1] - times[0] >= 1.9
    assert times[2] - times[0] >= 3.9


@pytest.mark.asyncio
async def test_failure_clears_stale_completion_fields(deps, repository, sample_pdf, patient_id, analysis_id,
                                                      structured_interpretation):
    deps.reasoning = ScriptedReasoningService(RuntimeError("boom"))
    record = add_record(
        repository, sample_pdf, patient_id, analysis_id,
        interpretation=structured_interpretation,
        risk_level=RiskLevel.LOW,
        key_findings=[],
    )

    await InterpretationOrchestrator(deps).run(record.id)

    stored = await repository.get(record.id)
    assert stored.status == InterpretationStatus.FAILED
    assert stored.interpretation is None
    assert stored.risk_level is None
    assert stored.key_findings is None


@pytest.mark.asyncio
async def test_completed_record_is_left_alone(deps, repository, reasoning, sample_pdf, patient_id, analysis_id):
    record = add_record(repository, sample_pdf, patient_id, analysis_id, status=InterpretationStatus.COMPLETED)

    await InterpretationOrchestrator(deps).run(record.id)

    stored = await repository.get(record.id)
    assert stored.status == InterpretationStatus.COMPLETED
    assert stored.error is None
    assert repository.status_history[record.id] == []
    assert reasoning.calls == []


@pytest.mark.asyncio
async def test_missing_record_does_not_raise(deps):
    await InterpretationOrchestrator(deps).run(str(ObjectId()))


@pytest.mark.asyncio
async def test_analysis_link_failure_keeps_record_completed(deps, repository, directory, sample_pdf,
                                                            patient_id, analysis_id):
    directory.fail_on_mark = True
    record = add_record(repository, sample_pdf, patient_id, analysis_id)

    await InterpretationOrchestrator(deps).run(record.id)

    stored = await repository.get(record.id)
    assert stored.status == InterpretationStatus.COMPLETED
    assert directory.marked == []


class BrokenRepository(InMemoryInterpretationRepository):
    async def apply(self, record_id, delta):
        raise RuntimeError("database unavailable")


@pytest.mark.asyncio
async def test_failure_recording_errors_are_swallowed(deps, sample_pdf, patient_id, analysis_id):
    deps.repository = BrokenRepository()
    record = add_record(deps.repository, sample_pdf, patient_id, analysis_id)

    await InterpretationOrchestrator(deps).run(record.id)

    stored = await deps.repository.get(record.id)
    assert stored.status == InterpretationStatus.PROCESSING


@pytest.mark.asyncio
async def test_illegal_transition_is_rejected(deps, repository, sample_pdf, patient_id, analysis_id):
    record = add_record(repository, sample_pdf, patient_id, analysis_id, status=InterpretationStatus.PENDING)

    with pytest.raises(InvalidStatusTransition):
        await ensure_transition(deps, record.id, InterpretationStatus.EXTRACTING)


def test_transition_table():
    assert InterpretationStatus.PROCESSING.can_transition_to(InterpretationStatus.EXTRACTING)
    assert InterpretationStatus.INTERPRETING.can_transition_to(InterpretationStatus.FAILED)
    assert InterpretationStatus.FAILED.can_transition_to(InterpretationStatus.PROCESSING)
    assert not InterpretationStatus.COMPLETED.can_transition_to(InterpretationStatus.FAILED)
    assert not InterpretationStatus.ANALYZING.can_transition_to(InterpretationStatus.EXTRACTING)
    assert not InterpretationStatus.FAILED.can_transition_to(InterpretationStatus.EXTRACTING)


@pytest.mark.asyncio
async def test_single_abnormal_result_with_urgent_interpretation(deps, repository, glycemia_pdf,
                                                                 patient_id, analysis_id):
    """One out-of-range glycemia plus an urgent interpretation is high risk"""
    deps.reasoning = ScriptedReasoningService(
        TextInterpretation(text="Glycémie au-dessus de la norme, avis médical urgent.")
    )
    record = add_record(repository, glycemia_pdf, patient_id, analysis_id)

    await InterpretationOrchestrator(deps).run(record.id)

    stored = await repository.get(record.id)
    assert stored.status == InterpretationStatus.COMPLETED
    assert len(stored.structured_data.test_results) == 1
    assert stored.structured_data.test_results[0].value == 130
    assert stored.structured_data.test_results[0].range == "70-110"

    assert len(stored.key_findings) == 2
    abnormal, alert = stored.key_findings
    assert isinstance(abnormal, AbnormalFinding)
    assert abnormal.test == "Glycémie"
    assert isinstance(alert, AlertFinding)
    assert alert.keyword == "urgent"
    assert stored.risk_level == RiskLevel.HIGH


@pytest.mark.asyncio
async def test_two_failures_then_success_after_backoff(deps, repository, sample_pdf, patient_id, analysis_id,
                                                        structured_interpretation):
    """Two 2 s waits, then the third attempt completes the record"""
    deps.reasoning = ScriptedReasoningService(
        RuntimeError("rate limited"),
        RuntimeError("rate limited"),
        structured_interpretation,
    )
    deps.retry_delay = 2.0
    record = add_record(repository, sample_pdf, patient_id, analysis_id)

    started = time.monotonic()
    await InterpretationOrchestrator(deps).run(record.id)
    elapsed = time.monotonic() - started

    stored = await repository.get(record.id)
    assert stored.status == InterpretationStatus.COMPLETED
    assert stored.error is None
    assert len(deps.reasoning.calls) == 3
    assert elapsed >= 3.9
    assert deps.reasoning.call_times[2] - deps.reasoning.call_times[0] >= 3.9
