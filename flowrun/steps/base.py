#!/usr/bin/env python3
"""
Base classes for step executors.

Defines the common executor interface every step kind implements.
"""
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping

from flowrun.engine.data import Binding, context_namespace
from flowrun.engine.graph import Step, StepKind


@dataclass(frozen=True)
class StepContext:
    """Per-step view of the run, rebuilt for every step"""
    bindings: List[Binding] = field(default_factory=list)
    results: Mapping[str, Any] = field(default_factory=dict)

    @property
    def namespace(self) -> Dict[str, Any]:
        return context_namespace(self.bindings)


class StepExecutor(ABC):
    """
    Base class for all step executors.

    One executor exists per step kind. Executors are stateless with respect to
    a run: everything they need arrives through `execute`.
    """

    kind: StepKind
    title: str = ""
    default_config: Dict[str, Any] = {}

    @abstractmethod
    def execute(self, step: Step, resolved_input: Any, context: StepContext) -> Any:
        """
        Execute the step.

        Args:
            step: Step being executed
            resolved_input: Primary input routed from upstream producers
            context: Bindings and prior results visible to this step

        Returns:
            The step's result value
        """
        pass

    def validate(self, step: Step) -> List[str]:
        """Return configuration problems found without executing the step"""
        return []

    def get_title(self) -> str:
        """Get display title for this step kind"""
        return self.title or self.__class__.__name__.replace("Executor", "")

    def get_description(self) -> str:
        """Get description of what this step kind does"""
        return (self.__doc__ or "").strip()

    def to_dict(self) -> Dict[str, Any]:
        """Describe this step kind for editors and the CLI"""
        return {
            "kind": self.kind.value,
            "title": self.get_title(),
            "description": self.get_description(),
            "default_config": dict(self.default_config),
        }
