#!/usr/bin/env python3
"""
Static workflow validation.

Reports problems with a graph without running any step.
"""
from collections import Counter
from typing import List

from flowrun.engine.errors import CyclicGraphError
from flowrun.engine.graph import Graph, StepKind


def validate_graph(graph: Graph, registry=None) -> List[str]:
    """
    Check a workflow graph for problems.

    Args:
        graph: Workflow to check
        registry: Step registry whose executors check per-kind configuration
            (default: registry with default collaborators)

    Returns:
        List of human-readable problems; empty when the graph is runnable
    """
    if registry is None:
        from flowrun.steps.registry import build_registry
        registry = build_registry()

    errors: List[str] = []

    counts = Counter(step.id for step in graph.steps)
    for step_id, count in counts.items():
        if count > 1:
            errors.append(f"Duplicate step id: {step_id}")

    known_kinds = {kind.value for kind in StepKind}
    for step in graph.steps:
        if step.kind not in known_kinds:
            errors.append(f"Step {step.id} ({step.display_label}): Unknown step kind: {step.kind}")
            continue
        executor = registry.get_executor(step.kind)
        for problem in executor.validate(step):
            errors.append(f"Step {step.id} ({step.display_label}): {problem}")

    for conn in graph.connections:
        for endpoint in (conn.from_step, conn.to_step):
            if endpoint not in counts:
                errors.append(
                    f"Connection {conn.from_step} -> {conn.to_step} references unknown step: {endpoint}"
                )

    if not any(count > 1 for count in counts.values()):
        from flowrun.engine.executor import build_dependency_graph, topological_sort

        producers, consumers = build_dependency_graph(graph)
        try:
            topological_sort(graph, producers, consumers)
        except CyclicGraphError as e:
            errors.append(str(e))

    return errors
