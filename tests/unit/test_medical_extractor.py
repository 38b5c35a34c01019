"""
Unit tests for pattern-based medical data extraction
"""

from lab_interpreter.services.medical_extractor import (
    MedicalDataExtractor,
    _pattern,
    first_match,
)


def test_first_match_wins():
    patterns = [_pattern(r"alpha=(\w+)"), _pattern(r"beta=(\w+)")]
    assert first_match("beta=2 alpha=1", patterns) == "1"
    assert first_match("beta=2", patterns) == "2"
    assert first_match("gamma=3", patterns) is None


def test_first_match_applies_converter():
    assert first_match("Age: 45", [_pattern(r"Age: (\d+)", int)]) == 45


def test_patient_info(sample_report_text):
    info = MedicalDataExtractor.extract_patient_info(sample_report_text)

    assert info.name == "Jean Dupont"
    assert info.age == 45
    assert info.gender == "M"
    assert info.reference_id == "LAB-2024-001"


def test_patient_name_falls_back_to_rest_of_line():
    info = MedicalDataExtractor.extract_patient_info("Nom: dupont-martin\n")
    assert info.name == "dupont-martin"


def test_gender_uses_first_letter():
    assert MedicalDataExtractor.extract_patient_info("Sexe: Féminin").gender == "F"
    assert MedicalDataExtractor.extract_patient_info("Gender: male").gender == "M"


def test_missing_fields_stay_unset():
    info = MedicalDataExtractor.extract_patient_info("Rapport sans identité")
    assert info.model_dump() == {"name": None, "age": None, "gender": None, "reference_id": None}


def test_test_results(sample_report_text):
    results = MedicalDataExtractor.extract_test_results(sample_report_text)

    assert [r.test for r in results] == ["Glycémie", "Cholestérol", "Hémoglobine"]
    glucose = results[0]
    assert glucose.value == 1.45
    assert glucose.unit == "g/L"
    assert glucose.range == "0.70-1.10"


def test_table_rows():
    text = "TSH | 2,5 | mUI/L | 0.4-4.0\nFerritine | 80 | ng/mL | 30-300\n"
    results = MedicalDataExtractor.extract_test_results(text)

    assert len(results) == 1
    assert results[0].test == "TSH"
    assert results[0].value == 2.5
    assert results[0].range == "0.4-4.0"


def test_unrecognised_tests_are_dropped():
    assert MedicalDataExtractor.extract_test_results("Ferritine : 80 ng/mL (30-300)") == []


def test_dates(sample_report_text):
    dates = MedicalDataExtractor.extract_dates(sample_report_text)

    assert dates.sample_date == "15/01/2024"
    assert dates.result_date == "16/01/2024"
    assert dates.date is None


def test_generic_date_only_without_sample_date():
    dates = MedicalDataExtractor.extract_dates("Date: 03-02-2024")
    assert dates.sample_date is None
    assert dates.date == "03-02-2024"


def test_lab_info(sample_report_text):
    lab = MedicalDataExtractor.extract_lab_info(sample_report_text)

    assert lab.lab_name == "Bio Santé Paris"
    assert lab.doctor_name == "Martin Durand"
    assert lab.phone == "01 23 45 67 89"


def test_extract_from_text_with_nothing_recognisable():
    result = MedicalDataExtractor.extract_from_text("Aucune donnée exploitable")

    assert result.success is True
    assert result.test_results == []
    assert result.to_structured_data().patient_info.name is None


def test_extract_medical_data_missing_file(tmp_path):
    result = MedicalDataExtractor.extract_medical_data(str(tmp_path / "missing.pdf"))

    assert result.success is False
    assert result.error


def test_extract_medical_data_from_pdf(sample_pdf):
    result = MedicalDataExtractor.extract_medical_data(sample_pdf)

    assert result.success is True
    assert "Patient" in result.raw_text
    assert any(r.value == 1.45 for r in result.test_results)


def test_search_keywords_context():
    text = "x" * 80 + " valeur urgent " + "y" * 80
    hits = MedicalDataExtractor.search_keywords(text, ["URGENT", "absent"])

    assert len(hits) == 1
    hit = hits[0]
    assert hit.keyword == "URGENT"
    assert "urgent" in hit.context
    assert len(hit.context) <= 50 + len("urgent") + 50
    assert hit.position == text.index("urgent") - 50


def test_search_keywords_every_occurrence():
    text = "urgent\nrien\nurgent"
    hits = MedicalDataExtractor.search_keywords(text, ["urgent"])
    assert [h.context for h in hits] == ["urgent", "urgent"]
    assert [h.position for h in hits] == [0, text.rindex("urgent")]
