"""Read models for the patient and analysis collections of the main back office.

Those collections are written by the main back office with camelCase keys,
so fields carry aliases.
"""

from datetime import date, datetime
from typing import Any, List, Optional

from beanie import Document, PydanticObjectId
from pydantic import BaseModel, ConfigDict, Field


class Allergy(BaseModel):
    name: Optional[str] = None
    severity: Optional[str] = None  # mild, moderate, severe


class ChronicDisease(BaseModel):
    name: Optional[str] = None


class Medication(BaseModel):
    name: Optional[str] = None
    dosage: Optional[str] = None
    frequency: Optional[str] = None


class MedicalInfo(BaseModel):
    """Clinical background kept on the patient document."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    blood_type: Optional[str] = Field(None, alias="bloodType")
    allergies: List[Allergy] = Field(default_factory=list)
    chronic_diseases: List[ChronicDisease] = Field(default_factory=list, alias="chronicDiseases")
    medications: List[Medication] = Field(default_factory=list)

    def history(self) -> List[str]:
        """One French line per known disease, allergy and ongoing treatment."""
        lines = [f"Maladie chronique: {d.name}" for d in self.chronic_diseases if d.name]
        for allergy in self.allergies:
            if allergy.name:
                lines.append(f"Allergie: {allergy.name}" + (f" ({allergy.severity})" if allergy.severity else ""))
        for medication in self.medications:
            if medication.name:
                parts = [medication.name, medication.dosage, medication.frequency]
                lines.append("Traitement: " + " ".join(p for p in parts if p))
        return lines


class Patient(Document):
    """Patient record owned by the main back office (read only here)."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    first_name: str = Field("", alias="firstName")
    last_name: str = Field("", alias="lastName")
    birth_date: Optional[datetime] = Field(None, alias="birthDate")
    gender: Optional[str] = None  # male, female, other
    medical_info: Optional[MedicalInfo] = Field(None, alias="medicalInfo")

    class Settings:
        name = "patients"

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()

    @property
    def age(self) -> Optional[int]:
        if not self.birth_date:
            return None
        today = date.today()
        born = self.birth_date.date()
        return today.year - born.year - ((today.month, today.day) < (born.month, born.day))


class Analysis(Document):
    """Analysis/order record owned by the main back office."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    code: Optional[str] = None
    name: str = ""
    category: Optional[str] = None
    type: Optional[str] = None

    # Written by this service when an interpretation completes
    last_interpretation: Optional[PydanticObjectId] = Field(None, alias="lastInterpretation")
    last_interpretation_date: Optional[datetime] = Field(None, alias="lastInterpretationDate")

    class Settings:
        name = "analyses"


# ============ CONTEXT PASSED TO THE REASONING SERVICE ============

class PatientContext(BaseModel):
    name: Optional[str] = None
    age: Optional[int] = None
    gender: Optional[str] = None
    medical_history: List[Any] = Field(default_factory=list)


class AnalysisContext(BaseModel):
    type: Optional[str] = None
    name: Optional[str] = None
    category: Optional[str] = None
