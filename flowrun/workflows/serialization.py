#!/usr/bin/env python3
"""
Workflow serialization format.

Handles saving and loading workflows as JSON files. Two shapes are read:
the engine's own format and the saved state of the visual editor.
"""
import copy
import json
from pathlib import Path
from typing import Dict, List, Any, Optional, Tuple

from flowrun.engine.graph import Connection, Graph, Step, StepKind

FORMAT_VERSION = "1.0"

# Configuration a freshly created step starts with
DEFAULT_CONFIGS: Dict[str, Dict[str, Any]] = {
    StepKind.HTTP_REQUEST.value: {"method": "GET", "url": "", "headers": {}},
    StepKind.TRANSFORM.value: {"expression": "", "condition": "", "trueValue": "", "falseValue": ""},
    StepKind.FILTER.value: {"type": "array", "condition": ""},
}


class WorkflowFormatError(ValueError):
    """Workflow document is malformed"""


def default_config(kind: str) -> Dict[str, Any]:
    """Copy of the starting configuration for a step kind"""
    return copy.deepcopy(DEFAULT_CONFIGS.get(kind, {}))


def new_step(step_id: str, kind: str, label: str = "", **config) -> Step:
    """Create a step with the default configuration of its kind"""
    merged = default_config(kind)
    merged.update(config)
    return Step(id=step_id, kind=kind, label=label, config=merged)


class WorkflowSerializer:
    """Handles workflow serialization and deserialization"""

    def serialize_workflow(self, graph: Graph,
                           metadata: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        """
        Serialize a workflow to dictionary format.

        Args:
            graph: Steps and connections
            metadata: Optional workflow metadata

        Returns:
            Dictionary representation of workflow
        """
        return {
            "version": FORMAT_VERSION,
            "metadata": metadata or {},
            "steps": [step.to_dict() for step in graph.steps],
            "connections": [conn.to_dict() for conn in graph.connections],
        }

    def _editor_steps(self, nodes: List[Dict[str, Any]]) -> List[Step]:
        steps = []
        for node in nodes:
            data = node.get("data") or {}
            steps.append(Step(
                id=str(node["id"]),
                kind=node.get("type", ""),
                label=data.get("label", ""),
                config=dict(data.get("config") or {}),
            ))
        return steps

    def deserialize_workflow(self, workflow_data: Dict[str, Any]) -> Tuple[Graph, Dict[str, Any]]:
        """
        Deserialize a workflow from dictionary format.

        Args:
            workflow_data: Engine-format or editor-format workflow

        Returns:
            Tuple of (graph, metadata)

        Raises:
            WorkflowFormatError: If the document is not a workflow
        """
        if not isinstance(workflow_data, dict):
            raise WorkflowFormatError("Workflow must be a JSON object")

        try:
            if "nodes" in workflow_data:
                steps = self._editor_steps(workflow_data.get("nodes") or [])
                connections = [
                    Connection(from_step=str(edge["source"]), to_step=str(edge["target"]))
                    for edge in workflow_data.get("edges") or []
                ]
            else:
                steps = [Step.from_dict(s) for s in workflow_data.get("steps") or []]
                connections = [Connection.from_dict(c) for c in workflow_data.get("connections") or []]
        except (KeyError, TypeError, AttributeError) as e:
            raise WorkflowFormatError(f"Malformed workflow: {e}") from e

        for conn in connections:
            if conn.from_step is None or conn.to_step is None:
                raise WorkflowFormatError("Connection is missing an endpoint")

        return Graph(steps=steps, connections=connections), workflow_data.get("metadata") or {}

    def save_workflow(self, workflow_path: Path, graph: Graph,
                      metadata: Optional[Dict[str, Any]] = None):
        """Save workflow to JSON file"""
        workflow_data = self.serialize_workflow(graph, metadata)

        with open(workflow_path, 'w', encoding='utf-8') as f:
            json.dump(workflow_data, f, indent=2, default=str)

    def load_workflow(self, workflow_path: Path) -> Tuple[Graph, Dict[str, Any]]:
        """
        Load workflow from JSON file.

        Returns:
            Tuple of (graph, metadata)
        """
        with open(workflow_path, 'r', encoding='utf-8') as f:
            try:
                workflow_data = json.load(f)
            except json.JSONDecodeError as e:
                raise WorkflowFormatError(f"Invalid JSON in {workflow_path}: {e}") from e

        return self.deserialize_workflow(workflow_data)


def load_workflow(path: Path) -> Graph:
    """Load the graph stored in a workflow file"""
    graph, _ = WorkflowSerializer().load_workflow(Path(path))
    return graph


def save_workflow(path: Path, graph: Graph, metadata: Optional[Dict[str, Any]] = None):
    """Write a graph to a workflow file in the engine format"""
    WorkflowSerializer().save_workflow(Path(path), graph, metadata)
