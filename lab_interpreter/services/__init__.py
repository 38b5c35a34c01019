"""Business logic services."""

from lab_interpreter.services.findings import assess_risk_level, extract_key_findings, is_abnormal
from lab_interpreter.services.medical_extractor import MedicalDataExtractor
from lab_interpreter.services.pdf_service import PDFService
from lab_interpreter.services.text_analyzer import TextAnalyzer

__all__ = [
    "MedicalDataExtractor",
    "PDFService",
    "TextAnalyzer",
    "assess_risk_level",
    "extract_key_findings",
    "is_abnormal",
]
