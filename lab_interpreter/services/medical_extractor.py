"""Pattern-based extraction of clinical data from lab report text.

Extraction is heuristic and tuned for French/English lab reports. Each field
has an ordered list of patterns; the first one that matches wins and a
field with no match is simply left unset.
"""

import re
from typing import Any, Callable, Dict, List, NamedTuple, Optional, Sequence

from pydantic import BaseModel, Field

from lab_interpreter.core.logging import logger
from lab_interpreter.models.interpretation import (
    LabInfo,
    LabMeasurement,
    PatientInfo,
    ReportDates,
    StructuredData,
)
from lab_interpreter.services.pdf_service import PDFService


# Capitalised words on one line ("Jean Dupont", "Élise Martin")
_NAME_WORDS = r"[A-ZÀ-Ÿ][a-zà-ÿ]+(?:[ \t]+[A-ZÀ-Ÿ][a-zà-ÿ]+)"
_DATE = r"(\d{1,2}[/-]\d{1,2}[/-]\d{2,4})"


class FieldPattern(NamedTuple):
    """A pattern whose first group is the field value, plus a converter for it."""
    regex: "re.Pattern[str]"
    convert: Callable[[str], Any] = str.strip


def _pattern(expr: str, convert: Callable[[str], Any] = str.strip) -> FieldPattern:
    return FieldPattern(re.compile(expr, re.IGNORECASE), convert)


def first_match(text: str, patterns: Sequence[FieldPattern]) -> Optional[Any]:
    """Value of the first pattern that matches, or None."""
    for pattern in patterns:
        match = pattern.regex.search(text)
        if match:
            return pattern.convert(match.group(1))
    return None


def _initial(token: str) -> str:
    return token.strip()[0].upper()


PATIENT_FIELDS: Dict[str, List[FieldPattern]] = {
    "name": [
        _pattern(r"\b(?:Patient|Nom|Name)[:\s]+(" + _NAME_WORDS + r"+)"),
        _pattern(r"\bNom\s*:\s*([^\n]+)"),
    ],
    "age": [_pattern(r"\b(?:Age|Âge)[:\s]+(\d+)", int)],
    "gender": [_pattern(r"\b(?:Sexe|Gender|Sex)[:\s]+(Masculin|Féminin|Male|Female|M|F)\b", _initial)],
    "reference_id": [_pattern(r"(?:\bID|\bRéférence|\bReference|\bN°)[:\s]+([A-Z0-9-]+)")],
}

DATE_FIELDS: Dict[str, List[FieldPattern]] = {
    "sample_date": [_pattern(r"(?:Date\s+(?:de\s+)?prélèvement|Sample\s+Date)[:\s]+" + _DATE)],
    "result_date": [_pattern(r"(?:Date\s+(?:de\s+)?résultat|Result\s+Date)[:\s]+" + _DATE)],
    "date": [_pattern(r"\bDate[:\s]+" + _DATE)],
}

LAB_FIELDS: Dict[str, List[FieldPattern]] = {
    "lab_name": [_pattern(r"\b(?:Laboratoire|Laboratory)[: \t]+([^\n]+)")],
    "doctor_name": [_pattern(r"(?:\bDr\.?|\bDocteur|\bDoctor)[: \t]+(" + _NAME_WORDS + r"*)")],
    "phone": [_pattern(r"\b(?:Tél|Tel|Phone)[.:\s]+(\+?[\d][\d \-().]+\d)")],
}

# Only these analytes are kept; anything else that looks like "name: number" is dropped.
RECOGNIZED_TESTS = [
    "Glycémie",
    "Glucose",
    "Cholestérol",
    "Cholesterol",
    "Hémoglobine",
    "Hemoglobin",
    "Leucocytes",
    "Plaquettes",
    "Créatinine",
    "Urée",
    "Urea",
    "TSH",
    "T3",
    "T4",
    "HDL",
    "LDL",
    "Triglycérides",
    "Triglycerides",
]

_VALUE = r"(\d+(?:[.,]\d+)?)"
_UNIT = r"([a-zA-Zµ%/]+)?"

TEST_RESULT_PATTERNS = [
    # Test Name : Value Unit (Range)
    re.compile(
        r"([A-Za-zÀ-ÿ][A-Za-zÀ-ÿ \t]*?)[ \t]*[: \t]+" + _VALUE + r"[ \t]*" + _UNIT + r"[ \t]*(?:\(([^)\n]+)\))?"
    ),
    # Test Name | Value | Unit | Range
    re.compile(
        r"([A-Za-zÀ-ÿ]+)[ \t]*\|[ \t]*" + _VALUE + r"[ \t]*\|[ \t]*" + _UNIT + r"[ \t]*\|[ \t]*([^|\n]+)?"
    ),
]


class KeywordHit(BaseModel):
    keyword: str
    context: str
    position: int


class ExtractionResult(BaseModel):
    """Outcome of reading one document."""
    success: bool
    raw_text: str = ""
    patient_info: PatientInfo = Field(default_factory=PatientInfo)
    test_results: List[LabMeasurement] = Field(default_factory=list)
    dates: ReportDates = Field(default_factory=ReportDates)
    lab_info: LabInfo = Field(default_factory=LabInfo)
    error: Optional[str] = None

    def to_structured_data(self) -> StructuredData:
        return StructuredData(
            patient_info=self.patient_info,
            test_results=self.test_results,
            dates=self.dates,
            lab_info=self.lab_info,
        )


class MedicalDataExtractor:
    """Turns lab report text into structured clinical data."""

    @staticmethod
    def extract_patient_info(text: str) -> PatientInfo:
        return PatientInfo(**{field: first_match(text, patterns) for field, patterns in PATIENT_FIELDS.items()})

    @staticmethod
    def extract_test_results(text: str) -> List[LabMeasurement]:
        results = []
        recognized = [name.lower() for name in RECOGNIZED_TESTS]

        for pattern in TEST_RESULT_PATTERNS:
            for match in pattern.finditer(text):
                test_name = match.group(1).strip()
                if not any(name in test_name.lower() for name in recognized):
                    continue

                results.append(LabMeasurement(
                    test=test_name,
                    value=float(match.group(2).replace(",", ".")),
                    unit=(match.group(3) or "").strip(),
                    range=(match.group(4) or "").strip(),
                ))

        return results

    @staticmethod
    def extract_dates(text: str) -> ReportDates:
        dates = ReportDates(
            sample_date=first_match(text, DATE_FIELDS["sample_date"]),
            result_date=first_match(text, DATE_FIELDS["result_date"]),
        )
        # An unlabelled date only stands in for a missing sample date
        if not dates.sample_date:
            dates.date = first_match(text, DATE_FIELDS["date"])
        return dates

    @staticmethod
    def extract_lab_info(text: str) -> LabInfo:
        return LabInfo(**{field: first_match(text, patterns) for field, patterns in LAB_FIELDS.items()})

    @classmethod
    def extract_from_text(cls, text: str) -> ExtractionResult:
        """Run every field extractor over already-extracted text."""
        return ExtractionResult(
            success=True,
            raw_text=text,
            patient_info=cls.extract_patient_info(text),
            test_results=cls.extract_test_results(text),
            dates=cls.extract_dates(text),
            lab_info=cls.extract_lab_info(text),
        )

    @classmethod
    def extract_medical_data(cls, pdf_path: str) -> ExtractionResult:
        """
        Read a PDF and extract structured data from its text.

        I/O and parse errors give success=False; a readable document with
        nothing recognisable still gives success=True with empty parts.
        """
        try:
            text = PDFService.extract_text(pdf_path)
        except Exception as e:
            logger.error(f"Error extracting medical data from {pdf_path}: {e}")
            return ExtractionResult(success=False, error=str(e))

        return cls.extract_from_text(text)

    @staticmethod
    def search_keywords(text: str, keywords: Sequence[str]) -> List[KeywordHit]:
        """Every occurrence of each keyword with up to 50 characters either side."""
        hits = []
        for keyword in keywords:
            for match in re.finditer(r".{0,50}" + re.escape(keyword) + r".{0,50}", text, re.IGNORECASE):
                hits.append(KeywordHit(
                    keyword=keyword,
                    context=match.group(0).strip(),
                    position=match.start(),
                ))
        return hits
