#!/usr/bin/env python3
"""
Workflow execution engine.

Handles dependency resolution, scheduling, step dispatch and fail-fast abort.
Mutually independent steps may run in parallel; a step only starts once every
one of its producers has a recorded result.
"""
import heapq
import logging
import time
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass
from typing import Any, Dict, List, Mapping, Tuple

from flowrun.engine.data import DataManager, build_context
from flowrun.engine.errors import (
    CyclicGraphError,
    EngineError,
    StepExecutionError,
    UnknownStepKindError,
)
from flowrun.engine.graph import Graph, Step

logger = logging.getLogger(__name__)

DependencyMap = Dict[str, List[str]]


@dataclass
class ExecutionResult:
    """Result of a successful workflow run"""
    results: Dict[str, Any]
    order: List[str]
    execution_time: float

    @property
    def total_steps(self) -> int:
        return len(self.order)


def build_dependency_graph(graph: Graph) -> Tuple[DependencyMap, DependencyMap]:
    """
    Build producer and consumer sets from the graph's connections.

    Connections referencing unknown steps are ignored.

    Returns:
        Tuple of (producers, consumers), each mapping step_id to a list of step_ids
    """
    producers: DependencyMap = {}
    consumers: DependencyMap = {}

    for step in graph.steps:
        if step.id in producers:
            raise EngineError(f"Duplicate step id: {step.id}")
        producers[step.id] = []
        consumers[step.id] = []

    for conn in graph.connections:
        # conn.to_step depends on conn.from_step
        if conn.from_step not in producers or conn.to_step not in producers:
            continue
        if conn.from_step not in producers[conn.to_step]:
            producers[conn.to_step].append(conn.from_step)
            consumers[conn.from_step].append(conn.to_step)

    return producers, consumers


def topological_sort(graph: Graph, producers: DependencyMap,
                     consumers: DependencyMap) -> List[str]:
    """
    Order steps so that every step comes after all of its producers.

    Kahn's algorithm; among steps that are ready at the same time the one
    declared first in the graph goes first.

    Raises:
        CyclicGraphError: If some steps can never become ready
    """
    position = {step.id: index for index, step in enumerate(graph.steps)}
    in_degree = {step_id: len(deps) for step_id, deps in producers.items()}

    ready = [(position[step_id], step_id) for step_id, degree in in_degree.items() if degree == 0]
    heapq.heapify(ready)
    order: List[str] = []

    while ready:
        _, step_id = heapq.heappop(ready)
        order.append(step_id)

        for consumer in consumers[step_id]:
            in_degree[consumer] -= 1
            if in_degree[consumer] == 0:
                heapq.heappush(ready, (position[consumer], consumer))

    if len(order) < len(graph.steps):
        scheduled = set(order)
        raise CyclicGraphError(s.id for s in graph.steps if s.id not in scheduled)

    return order


def execution_levels(order: List[str], producers: DependencyMap) -> List[List[str]]:
    """
    Group an execution order into levels of mutually independent steps.

    A step's level is one more than the deepest of its producers, so every
    producer sits in an earlier level.
    """
    depth: Dict[str, int] = {}
    levels: List[List[str]] = []

    for step_id in order:
        level = 1 + max((depth[p] for p in producers[step_id]), default=-1)
        depth[step_id] = level
        if level == len(levels):
            levels.append([])
        levels[level].append(step_id)

    return levels


class WorkflowExecutor:
    """Executes step-based workflows"""

    def __init__(self, registry=None, max_workers: int = 4):
        """
        Initialize workflow executor.

        Args:
            registry: Step registry used to dispatch steps (default: all kinds
                with default collaborators)
            max_workers: Maximum number of independent steps run in parallel
        """
        if registry is None:
            from flowrun.steps.registry import build_registry
            registry = build_registry()
        self.registry = registry
        self.max_workers = max(1, max_workers)

    def execute_step(self, step: Step, data_manager: DataManager,
                     results: Mapping[str, Any]) -> Any:
        """
        Execute a single step against a snapshot of prior results.

        Returns:
            The step's result

        Raises:
            UnknownStepKindError: If no executor handles the step's kind
            StepExecutionError: If the executor fails
        """
        executor = self.registry.get_executor(step.kind)
        if executor is None:
            raise UnknownStepKindError(step.id, step.display_label, step.kind)

        from flowrun.steps.base import StepContext

        resolved_input = data_manager.resolve_step_input(step.id, results)
        context = StepContext(bindings=build_context(resolved_input, results), results=results)

        logger.debug("Executing step %s (%s)", step.id, step.kind)
        try:
            result = executor.execute(step, resolved_input, context)
        except StepExecutionError:
            raise
        except Exception as e:
            raise StepExecutionError(step.id, step.display_label, str(e), cause=e) from e

        logger.debug("Step %s completed", step.id)
        return result

    def _run_level(self, level: List[str], steps: Dict[str, Step],
                   data_manager: DataManager) -> Dict[str, Any]:
        snapshot = data_manager.snapshot()
        level_results: Dict[str, Any] = {}

        if len(level) == 1 or self.max_workers == 1:
            for step_id in level:
                level_results[step_id] = self.execute_step(steps[step_id], data_manager, snapshot)
            return level_results

        with ThreadPoolExecutor(max_workers=min(self.max_workers, len(level))) as pool:
            futures = {
                pool.submit(self.execute_step, steps[step_id], data_manager, snapshot): step_id
                for step_id in level
            }
            try:
                for future in as_completed(futures):
                    level_results[futures[future]] = future.result()
            except EngineError:
                for future in futures:
                    future.cancel()
                raise

        return level_results

    def run(self, graph: Graph) -> Dict[str, Any]:
        """
        Run a workflow once.

        Args:
            graph: Steps and connections to execute

        Returns:
            Result of every step keyed by step id

        Raises:
            EngineError: The first failure; no partial results are returned
        """
        return self.execute_workflow(graph).results

    def execute_workflow(self, graph: Graph) -> ExecutionResult:
        """Run a workflow and report its execution order and timing"""
        start_time = time.time()
        logger.info("Running workflow: %d steps, %d connections",
                    len(graph.steps), len(graph.connections))

        producers, consumers = build_dependency_graph(graph)
        order = topological_sort(graph, producers, consumers)
        steps = {step.id: step for step in graph.steps}
        data_manager = DataManager(graph.connections, steps)

        try:
            for level in execution_levels(order, producers):
                level_results = self._run_level(level, steps, data_manager)
                # Record in schedule order so context bindings are deterministic
                for step_id in level:
                    data_manager.set_step_result(step_id, level_results[step_id])
        except EngineError as e:
            logger.error("Workflow run failed: %s", e)
            raise

        execution_time = time.time() - start_time
        logger.info("Workflow completed in %.2fs", execution_time)
        return ExecutionResult(
            results=data_manager.snapshot(),
            order=order,
            execution_time=execution_time,
        )
