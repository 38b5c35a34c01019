"""
Pytest configuration and shared fixtures for testing.
"""

import os

# Settings are read at import time
os.environ.setdefault("OPENAI_API_KEY", "test-key")
os.environ.setdefault("LOG_LEVEL", "WARNING")

import fitz  # PyMuPDF
import pytest
from bson import ObjectId

from lab_interpreter.graphs.interpretation import PipelineDependencies
from lab_interpreter.models.clinical import AnalysisContext, PatientContext
from lab_interpreter.models.interpretation import StructuredInterpretation
from lab_interpreter.services.storage import LocalFileStorage
from tests.fakes import (
    InMemoryClinicalDirectory,
    InMemoryInterpretationRepository,
    ScriptedReasoningService,
)


SAMPLE_REPORT = """Laboratoire: Bio Santé Paris
Patient: Jean Dupont
Âge: 45
Sexe: Masculin
Référence: LAB-2024-001
Date de prélèvement: 15/01/2024
Date de résultat: 16/01/2024

Glycémie : 1.45 g/L (0.70-1.10)
Cholestérol : 1.80 g/L (1.50-2.00)
Hémoglobine : 14.2 g/dL (13.0-17.0)

Dr Martin Durand
Tél: 01 23 45 67 89
"""


def write_pdf(path, text: str) -> str:
    """Write a one-page PDF holding text."""
    doc = fitz.open()
    page = doc.new_page()
    if text:
        page.insert_text((72, 72), text, fontsize=10)
    doc.save(str(path))
    doc.close()
    return str(path)


@pytest.fixture
def sample_report_text():
    """Sample French lab report text"""
    return SAMPLE_REPORT


@pytest.fixture
def sample_pdf(tmp_path):
    """A readable lab report PDF"""
    return write_pdf(tmp_path / "report.pdf", SAMPLE_REPORT)


@pytest.fixture
def glycemia_pdf(tmp_path):
    """A report whose only measurement is an out-of-range glycemia"""
    return write_pdf(
        tmp_path / "glycemie.pdf",
        "Compte rendu de biologie médicale\nPrélèvement réalisé à jeun\n\nGlycémie: 130 (70-110)\n",
    )


@pytest.fixture
def short_pdf(tmp_path):
    """A PDF with too little text to interpret"""
    return write_pdf(tmp_path / "short.pdf", "Page 1")


@pytest.fixture
def blank_pdf(tmp_path):
    """A PDF with no text at all"""
    return write_pdf(tmp_path / "blank.pdf", "")


@pytest.fixture
def fake_pdf(tmp_path):
    """A .pdf file that is not a PDF"""
    path = tmp_path / "fake.pdf"
    path.write_bytes(b"this is not a pdf document")
    return str(path)


@pytest.fixture
def patient_id():
    return str(ObjectId())


@pytest.fixture
def analysis_id():
    return str(ObjectId())


@pytest.fixture
def repository():
    return InMemoryInterpretationRepository()


@pytest.fixture
def directory(patient_id, analysis_id):
    return InMemoryClinicalDirectory(
        patients={patient_id: PatientContext(name="Jean Dupont", age=45, gender="male")},
        analyses={analysis_id: AnalysisContext(type="blood", name="Bilan lipidique", category="biochimie")},
    )


@pytest.fixture
def structured_interpretation():
    return StructuredInterpretation(
        summary="La glycémie est élevée, le reste du bilan est normal.",
        details="Glycémie à 1.45 g/L pour une norme de 0.70-1.10 g/L.",
        recommendations=["Consulter votre médecin traitant"],
        concerns=[],
    )


@pytest.fixture
def reasoning(structured_interpretation):
    return ScriptedReasoningService(structured_interpretation)


@pytest.fixture
def deps(repository, directory, reasoning):
    return PipelineDependencies(
        repository=repository,
        directory=directory,
        reasoning=reasoning,
        max_attempts=3,
        retry_delay=0,
        min_text_chars=50,
    )


@pytest.fixture
def upload_dir(tmp_path):
    path = tmp_path / "uploads"
    path.mkdir()
    return path


@pytest.fixture
def storage(upload_dir):
    return LocalFileStorage(str(upload_dir), max_bytes=1024 * 1024)
