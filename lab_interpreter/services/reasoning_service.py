"""Reasoning service: turns lab report text into a readable interpretation."""

import json
import re
from abc import ABC, abstractmethod
from typing import Any, List, Optional

from pydantic import BaseModel, Field, ValidationError

from lab_interpreter.config import settings
from lab_interpreter.core.logging import logger
from lab_interpreter.models.clinical import AnalysisContext, PatientContext
from lab_interpreter.models.interpretation import (
    Interpretation,
    StructuredData,
    StructuredInterpretation,
    TextInterpretation,
)
from lab_interpreter.shared.exceptions import ReasoningError


# ============ STRUCTURED OUTPUT SCHEMA ============

class NormalRangeSchema(BaseModel):
    """One parameter compared with its normal range."""
    parameter: str = Field(description="Nom du paramètre")
    value: str = Field(description="Valeur mesurée avec unité")
    normal_range: str = Field(description="Intervalle de référence")
    status: str = Field(description="normal, low, high ou critical")


class InterpretationSchema(BaseModel):
    """Interpretation of a lab report for the patient."""
    summary: str = Field(description="Résumé compréhensible pour le patient")
    details: str = Field(description="Explication détaillée de chaque paramètre")
    recommendations: List[str] = Field(default_factory=list, description="Recommandations générales")
    concerns: List[str] = Field(default_factory=list, description="Points nécessitant une consultation urgente")
    normal_ranges: List[NormalRangeSchema] = Field(default_factory=list, description="Valeurs comparées aux normes")


SYSTEM_PROMPT = """Tu es un médecin expert en analyses médicales.
Analyse le document d'analyse médicale fourni et génère:
1. Un résumé compréhensible pour le patient
2. Une explication détaillée de chaque paramètre
3. Les valeurs hors normes avec leur signification
4. Des recommandations générales
5. Les points nécessitant une consultation médicale urgente

IMPORTANT:
- Utilise un langage simple et accessible
- Évite le jargon médical complexe
- Indique clairement ce qui est normal vs anormal
- Recommande TOUJOURS de consulter un médecin pour interprétation complète
- Ne fais PAS de diagnostic médical"""

NOT_SPECIFIED = "Non spécifié"


def build_user_prompt(
    cleaned_text: str,
    patient: PatientContext,
    analysis: AnalysisContext,
    structured_data: Optional[StructuredData] = None,
    max_chars: int = 8000,
) -> str:
    """Patient and analysis context followed by the document text."""
    lines = [
        f"Patient: {patient.name or NOT_SPECIFIED}",
        f"Âge: {patient.age if patient.age is not None else NOT_SPECIFIED}",
        f"Sexe: {patient.gender or NOT_SPECIFIED}",
    ]
    if patient.medical_history:
        lines.append(f"Antécédents: {json.dumps(patient.medical_history, ensure_ascii=False, default=str)}")

    lines.append(f"Analyse: {analysis.name or NOT_SPECIFIED} ({analysis.category or analysis.type or NOT_SPECIFIED})")

    if structured_data and structured_data.test_results:
        lines.append("\nValeurs repérées automatiquement:")
        for result in structured_data.test_results:
            reference = f" (normes: {result.range})" if result.range else ""
            lines.append(f"- {result.test}: {result.value} {result.unit}{reference}".rstrip())

    lines.append(f"\nRésultats d'analyse:\n{cleaned_text[:max_chars]}")
    lines.append("\nFournis une interprétation complète et structurée.")
    return "\n".join(lines)


def extract_json_from_text(text: str) -> Optional[dict]:
    """
    Extract a JSON object from text that may contain markdown or other content.
    Tries the whole text, then fenced code blocks, then the outermost braces.
    """
    if not text:
        return None

    try:
        parsed = json.loads(text.strip())
        return parsed if isinstance(parsed, dict) else None
    except json.JSONDecodeError:
        pass

    for pattern in (r"```json\s*([\s\S]*?)\s*```", r"```\s*([\s\S]*?)\s*```"):
        match = re.search(pattern, text, re.IGNORECASE)
        if match:
            try:
                parsed = json.loads(match.group(1).strip())
                if isinstance(parsed, dict):
                    return parsed
            except json.JSONDecodeError:
                continue

    start_idx = text.find("{")
    if start_idx != -1:
        depth = 0
        for i, char in enumerate(text[start_idx:], start_idx):
            if char == "{":
                depth += 1
            elif char == "}":
                depth -= 1
                if depth == 0:
                    try:
                        parsed = json.loads(text[start_idx:i + 1])
                        return parsed if isinstance(parsed, dict) else None
                    except json.JSONDecodeError:
                        return None

    return None


def normalize_interpretation(result: Any) -> Interpretation:
    """
    Convert whatever the reasoning model produced into one of the two
    interpretation shapes. Done once, at the service boundary.
    """
    if isinstance(result, (StructuredInterpretation, TextInterpretation)):
        return result

    if isinstance(result, BaseModel):
        result = result.model_dump()

    if isinstance(result, str):
        parsed = extract_json_from_text(result)
        if parsed is None:
            if not result.strip():
                raise ReasoningError("Reasoning service returned an empty interpretation")
            return TextInterpretation(text=result.strip())
        result = parsed

    if isinstance(result, dict):
        try:
            return StructuredInterpretation.model_validate({**result, "kind": "structured"})
        except ValidationError:
            logger.warning("Interpretation did not match the structured shape, keeping it as text")
            return TextInterpretation(text=json.dumps(result, ensure_ascii=False, default=str))

    raise ReasoningError(f"Unsupported interpretation type: {type(result).__name__}")


class ReasoningService(ABC):
    """External capability that interprets clinical text."""

    model_name: str = "unknown"

    @abstractmethod
    async def interpret(
        self,
        cleaned_text: str,
        patient_context: PatientContext,
        analysis_context: AnalysisContext,
        structured_data: Optional[StructuredData] = None,
    ) -> Interpretation:
        """Interpret the text. May raise; the caller owns retries."""


class OpenAIReasoningService(ReasoningService):
    """Reasoning service backed by an OpenAI chat model through LangChain."""

    def __init__(self, model: Optional[str] = None):
        from langchain_openai import ChatOpenAI

        self.model_name = model or settings.OPENAI_MODEL
        self.llm = ChatOpenAI(
            model=self.model_name,
            api_key=settings.OPENAI_API_KEY,
            temperature=settings.OPENAI_TEMPERATURE,
            max_tokens=settings.OPENAI_MAX_TOKENS,
            timeout=settings.OPENAI_TIMEOUT_SECONDS,
            max_retries=0,  # Retries are handled by the orchestrator
        )
        # function_calling works with every chat model, including gpt-4
        self.structured_llm = self.llm.with_structured_output(
            InterpretationSchema,
            method="function_calling",
            include_raw=True,
        )

    async def interpret(
        self,
        cleaned_text: str,
        patient_context: PatientContext,
        analysis_context: AnalysisContext,
        structured_data: Optional[StructuredData] = None,
    ) -> Interpretation:
        messages = [
            {"role": "system", "content": SYSTEM_PROMPT},
            {"role": "user", "content": build_user_prompt(
                cleaned_text, patient_context, analysis_context, structured_data
            )},
        ]

        result = await self.structured_llm.ainvoke(messages)

        if result.get("parsed") is not None:
            return normalize_interpretation(result["parsed"])

        # The model answered in prose instead of calling the schema tool
        raw = result.get("raw")
        content = getattr(raw, "content", "") if raw is not None else ""
        if result.get("parsing_error"):
            logger.warning(f"Structured output parsing failed: {result['parsing_error']}")
        return normalize_interpretation(content if isinstance(content, str) else str(content))
