"""Interpretation workflow."""

from lab_interpreter.graphs.interpretation.graph import (
    build_interpretation_graph,
    compile_interpretation_graph,
)
from lab_interpreter.graphs.interpretation.nodes import PipelineDependencies
from lab_interpreter.graphs.interpretation.state import InterpretationState

__all__ = [
    "build_interpretation_graph",
    "compile_interpretation_graph",
    "PipelineDependencies",
    "InterpretationState",
]
