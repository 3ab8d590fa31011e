#!/usr/bin/env python3
"""
Data management for step-based workflows.

Handles data passing between steps: routing upstream results into a step's
primary input, and flattening prior results into the namespaces used by
expression evaluation and by the filter service.
"""
import re
import threading
from typing import Any, Collection, Dict, Iterable, List, Mapping, Optional, Sequence, Tuple

from flowrun.engine.graph import Connection

# Name under which a step's primary input is always bound
DATA_BINDING = "data"

_UNSAFE_NAME_CHARS = re.compile(r"[^A-Za-z0-9_$]")

# Words an expression reads as literals or operators, never as names
RESERVED_NAMES = frozenset({"true", "false", "null", "undefined", "typeof"})

Binding = Tuple[str, Any]


def producers_of(step_id: str, connections: Iterable[Connection],
                 known_steps: Optional[Collection[str]] = None) -> List[str]:
    """
    Ids feeding `step_id`, in connection order, without duplicates.

    When `known_steps` is given, connections from steps outside it are
    dangling and ignored.
    """
    producers: List[str] = []
    for conn in connections:
        if conn.to_step != step_id or conn.from_step in producers:
            continue
        if known_steps is None or conn.from_step in known_steps:
            producers.append(conn.from_step)
    return producers


def resolve_input(step_id: str, connections: Iterable[Connection],
                  results: Mapping[str, Any],
                  known_steps: Optional[Collection[str]] = None) -> Any:
    """
    Resolve the primary input of a step from its upstream producers.

    Args:
        step_id: Step to resolve the input for
        connections: All connections of the workflow
        results: Results of the steps that already ran
        known_steps: Ids of the workflow's steps; connections from any other
            id are treated as if they did not exist

    Returns:
        None when nothing feeds the step, the producer's result verbatim for a
        single producer, or a mapping of producer id -> result on fan-in.
    """
    producers = producers_of(step_id, connections, known_steps)

    if not producers:
        return None

    if len(producers) == 1:
        return results.get(producers[0])

    return {producer: results.get(producer) for producer in producers}


def sanitize_name(name: str) -> str:
    """Replace every character outside [A-Za-z0-9_$] with an underscore"""
    return _UNSAFE_NAME_CHARS.sub("_", name)


def _unique_name(name: str, used: set) -> str:
    candidate = name
    counter = 1
    while candidate in used:
        candidate = f"{name}_{counter}"
        counter += 1
    return candidate


def build_context(primary_input: Any, results: Mapping[str, Any]) -> List[Binding]:
    """
    Build the ordered variable bindings visible to expression evaluation.

    `data` is bound to the primary input, then every prior result is bound
    under its sanitized step id. Names that collide with an earlier binding or
    with a keyword get `_1`, `_2`, ... appended, so every result stays
    reachable.
    """
    bindings: List[Binding] = [(DATA_BINDING, primary_input)]
    used = {DATA_BINDING} | RESERVED_NAMES

    for step_id, value in results.items():
        name = _unique_name(sanitize_name(step_id), used)
        used.add(name)
        bindings.append((name, value))

    return bindings


def context_namespace(bindings: Sequence[Binding]) -> Dict[str, Any]:
    """Mapping view of bindings produced by `build_context`"""
    return dict(bindings)


def build_filter_context(primary_input: Any, results: Mapping[str, Any]) -> Dict[str, Any]:
    """
    Context sent to the filter service.

    Keys are raw step ids since the mapping is JSON-serialized rather than
    evaluated. `data` always holds the primary input.
    """
    context: Dict[str, Any] = {step_id: value for step_id, value in results.items()}
    context[DATA_BINDING] = primary_input
    return context


class DataManager:
    """Holds the result set of a single run and routes data between steps"""

    def __init__(self, connections: Optional[Iterable[Connection]] = None,
                 step_ids: Optional[Iterable[str]] = None):
        self._connections: List[Connection] = list(connections or [])
        self._step_ids = None if step_ids is None else frozenset(step_ids)
        self._step_results: Dict[str, Any] = {}
        self._lock = threading.Lock()

    @property
    def connections(self) -> List[Connection]:
        return list(self._connections)

    def add_connection(self, connection: Connection):
        """Add a connection between steps"""
        self._connections.append(connection)

    def set_step_result(self, step_id: str, result: Any):
        """Store the result of a step; results are written exactly once"""
        with self._lock:
            if step_id in self._step_results:
                raise RuntimeError(f"Result for step {step_id} already recorded")
            self._step_results[step_id] = result

    def has_result(self, step_id: str) -> bool:
        with self._lock:
            return step_id in self._step_results

    def snapshot(self) -> Dict[str, Any]:
        """Stable copy of the results recorded so far"""
        with self._lock:
            return dict(self._step_results)

    def resolve_step_input(self, step_id: str, results: Mapping[str, Any]) -> Any:
        """Resolve the primary input of a step against a results snapshot"""
        return resolve_input(step_id, self._connections, results, self._step_ids)
