#!/usr/bin/env python3
"""
Graph model for step-based workflows.

Steps and connections are supplied by the caller and are read-only to the engine.
"""
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Mapping


class StepKind(str, Enum):
    """Closed set of step kinds the engine can dispatch"""
    HTTP_REQUEST = "http_request"
    TRANSFORM = "transform"
    FILTER = "filter"


@dataclass(frozen=True)
class Step:
    """A single unit of work in the workflow graph"""
    id: str
    kind: str
    label: str = ""
    config: Mapping[str, Any] = field(default_factory=dict)

    @property
    def display_label(self) -> str:
        return self.label or self.id

    def to_dict(self) -> Dict[str, Any]:
        """Serialize step to dictionary"""
        return {
            "id": self.id,
            "kind": self.kind,
            "label": self.label,
            "config": dict(self.config),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Step":
        """Deserialize step from dictionary"""
        return cls(
            id=data["id"],
            kind=data.get("kind") or data.get("type", ""),
            label=data.get("label", ""),
            config=dict(data.get("config") or {}),
        )


@dataclass(frozen=True)
class Connection:
    """Directed edge: the output of `from_step` feeds the input of `to_step`"""
    from_step: str
    to_step: str

    def to_dict(self) -> Dict[str, str]:
        return {"from": self.from_step, "to": self.to_step}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Connection":
        return cls(
            from_step=data.get("from", data.get("source")),
            to_step=data.get("to", data.get("target")),
        )


@dataclass(frozen=True)
class Graph:
    """Steps plus the connections between them"""
    steps: List[Step] = field(default_factory=list)
    connections: List[Connection] = field(default_factory=list)

    def step_ids(self) -> List[str]:
        return [step.id for step in self.steps]

    def get_step(self, step_id: str) -> Step:
        for step in self.steps:
            if step.id == step_id:
                return step
        raise KeyError(step_id)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "steps": [step.to_dict() for step in self.steps],
            "connections": [conn.to_dict() for conn in self.connections],
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Graph":
        return cls(
            steps=[Step.from_dict(s) for s in data.get("steps", [])],
            connections=[Connection.from_dict(c) for c in data.get("connections", [])],
        )
