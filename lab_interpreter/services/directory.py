"""Access to the patients and analyses owned by the main back office."""

from abc import ABC, abstractmethod
from datetime import datetime
from typing import Optional

from beanie import PydanticObjectId
from bson import ObjectId

from lab_interpreter.core.logging import logger
from lab_interpreter.models.clinical import (
    Analysis,
    AnalysisContext,
    Patient,
    PatientContext,
)


class ClinicalDirectory(ABC):
    """Lookup of patients and analyses, plus the one write this service makes."""

    @abstractmethod
    async def get_patient(self, patient_id: str) -> Optional[PatientContext]:
        ...

    @abstractmethod
    async def get_analysis(self, analysis_id: str) -> Optional[AnalysisContext]:
        ...

    @abstractmethod
    async def mark_last_interpretation(self, analysis_id: str, interpretation_id: str) -> None:
        """Point the analysis at its latest completed interpretation."""


def patient_context(patient: Patient) -> PatientContext:
    return PatientContext(
        name=patient.full_name or None,
        age=patient.age,
        gender=patient.gender,
        medical_history=patient.medical_info.history() if patient.medical_info else [],
    )


def analysis_context(analysis: Analysis) -> AnalysisContext:
    return AnalysisContext(type=analysis.type, name=analysis.name, category=analysis.category)


class BeanieClinicalDirectory(ClinicalDirectory):
    """Reads the shared patients/analyses collections through Beanie."""

    async def get_patient(self, patient_id: str) -> Optional[PatientContext]:
        if not ObjectId.is_valid(patient_id):
            return None
        patient = await Patient.get(PydanticObjectId(patient_id))
        return patient_context(patient) if patient else None

    async def get_analysis(self, analysis_id: str) -> Optional[AnalysisContext]:
        if not ObjectId.is_valid(analysis_id):
            return None
        analysis = await Analysis.get(PydanticObjectId(analysis_id))
        return analysis_context(analysis) if analysis else None

    async def mark_last_interpretation(self, analysis_id: str, interpretation_id: str) -> None:
        analysis = await Analysis.get(PydanticObjectId(analysis_id))
        if not analysis:
            logger.warning(f"Analysis {analysis_id} no longer exists, last interpretation not recorded")
            return

        # Stored under the back office's camelCase keys
        await analysis.set({
            "lastInterpretation": PydanticObjectId(interpretation_id),
            "lastInterpretationDate": datetime.utcnow(),
        })
