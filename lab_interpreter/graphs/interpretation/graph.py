"""LangGraph workflow definition for the interpretation pipeline."""

from typing import Awaitable, Callable, Sequence

from langgraph.graph import StateGraph, START, END

from lab_interpreter.core.logging import record_logger
from lab_interpreter.graphs.interpretation.state import InterpretationState
from lab_interpreter.graphs.interpretation.nodes import (
    PipelineDependencies,
    extract_stage,
    analyze_stage,
    interpret_stage,
    finalize_stage,
    link_analysis,
)
from lab_interpreter.models.interpretation import InterpretationStatus
from lab_interpreter.shared.exceptions import InterpretationError, InvalidStatusTransition


Node = Callable[[InterpretationState, PipelineDependencies], Awaitable[dict]]


async def ensure_transition(
    deps: PipelineDependencies,
    record_id: str,
    target: InterpretationStatus,
) -> None:
    """Raise unless the record may move from its stored status to target."""
    record = await deps.repository.get(record_id)
    if record is None:
        raise InterpretationError(f"Interpretation {record_id} no longer exists")
    if not record.status.can_transition_to(target):
        raise InvalidStatusTransition(record.status.value, target.value)


def persisted_stage(
    status: InterpretationStatus,
    node: Node,
    deps: PipelineDependencies,
    persist: Sequence[str],
) -> Callable[[InterpretationState], Awaitable[dict]]:
    """
    Wrap a node so the record follows it.

    Non-terminal statuses are written before the node runs. The terminal
    status is written together with the node's output, in one update.
    """
    async def run(state: InterpretationState) -> dict:
        record_id = state["record_id"]
        log = record_logger(record_id)

        await ensure_transition(deps, record_id, status)
        if not status.is_terminal:
            await deps.repository.apply(record_id, {"status": status})
            log.info(f"Status -> {status.value}")

        delta = await node(state, deps)

        update = {field: delta[field] for field in persist if field in delta}
        if status.is_terminal:
            update["status"] = status
        if update:
            await deps.repository.apply(record_id, update)
        if status.is_terminal:
            log.info(f"Status -> {status.value}")

        return delta

    return run


def build_interpretation_graph(deps: PipelineDependencies) -> StateGraph:
    """Build the interpretation workflow graph."""

    graph = StateGraph(InterpretationState)

    graph.add_node("extract", persisted_stage(
        InterpretationStatus.EXTRACTING, extract_stage, deps,
        persist=["metadata"],
    ))
    graph.add_node("analyze", persisted_stage(
        InterpretationStatus.ANALYZING, analyze_stage, deps,
        persist=["extracted_text", "structured_data", "text_analysis"],
    ))
    graph.add_node("interpret", persisted_stage(
        InterpretationStatus.INTERPRETING, interpret_stage, deps,
        persist=["ai_model"],
    ))
    # interpretation is only stored with the completed status
    graph.add_node("finalize", persisted_stage(
        InterpretationStatus.COMPLETED, _finalize_with_interpretation, deps,
        persist=["interpretation", "key_findings", "risk_level", "processing_time", "completed_at"],
    ))

    async def link(state: InterpretationState) -> dict:
        return await link_analysis(state, deps)

    graph.add_node("link_analysis", link)

    # Start -> Extract -> Analyze -> Interpret -> Finalize -> Link Analysis -> End
    graph.add_edge(START, "extract")
    graph.add_edge("extract", "analyze")
    graph.add_edge("analyze", "interpret")
    graph.add_edge("interpret", "finalize")
    graph.add_edge("finalize", "link_analysis")
    graph.add_edge("link_analysis", END)

    return graph


async def _finalize_with_interpretation(state: InterpretationState, deps: PipelineDependencies) -> dict:
    delta = await finalize_stage(state, deps)
    return {**delta, "interpretation": state["interpretation"]}


def compile_interpretation_graph(deps: PipelineDependencies):
    """Compiled graph, ready for ainvoke."""
    return build_interpretation_graph(deps).compile()
