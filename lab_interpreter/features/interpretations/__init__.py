# Interpretations Feature

from lab_interpreter.features.interpretations.orchestrator import InterpretationOrchestrator
from lab_interpreter.features.interpretations.router import router
from lab_interpreter.features.interpretations.runner import PipelineRunner
from lab_interpreter.features.interpretations.service import InterpretationService

__all__ = ["InterpretationOrchestrator", "PipelineRunner", "InterpretationService", "router"]
