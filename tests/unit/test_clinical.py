"""
Unit tests for the patient read models
"""

from lab_interpreter.models.clinical import AnalysisContext, MedicalInfo, PatientContext
from lab_interpreter.services.reasoning_service import build_user_prompt


def test_medical_info_from_back_office_document():
    info = MedicalInfo.model_validate({
        "bloodType": "O+",
        "height": 180,
        "allergies": [{"name": "Pénicilline", "severity": "severe", "notes": "urticaire"}],
        "chronicDiseases": [{"name": "Diabète de type 2", "diagnosedDate": "2019-03-01T00:00:00"}],
        "medications": [{"name": "Metformine", "dosage": "500 mg", "frequency": "2x/jour"}],
        "vaccinations": [{"name": "Grippe"}],
    })

    assert info.blood_type == "O+"
    assert info.history() == [
        "Maladie chronique: Diabète de type 2",
        "Allergie: Pénicilline (severe)",
        "Traitement: Metformine 500 mg 2x/jour",
    ]


def test_empty_medical_info():
    assert MedicalInfo().history() == []
    assert MedicalInfo.model_validate({"allergies": [{"severity": "mild"}]}).history() == []


def test_history_reaches_the_prompt():
    info = MedicalInfo.model_validate({"chronicDiseases": [{"name": "Hypertension"}]})
    patient = PatientContext(name="Jean Dupont", age=45, gender="male", medical_history=info.history())

    prompt = build_user_prompt("Glycémie: 1.45 g/L", patient, AnalysisContext())

    assert "Antécédents" in prompt
    assert "Maladie chronique: Hypertension" in prompt
