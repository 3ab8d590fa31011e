#!/usr/bin/env python3
"""
Error taxonomy for workflow runs.

Every failure is fatal to the run. Step failures carry the identity of the
step that failed so the caller can attribute the error.
"""
from typing import Iterable, List, Optional


class EngineError(Exception):
    """Base class for all errors raised by a workflow run"""


class CyclicGraphError(EngineError):
    """The scheduler could not order every step"""

    def __init__(self, unordered: Iterable[str]):
        self.unordered: List[str] = list(unordered)
        super().__init__(
            "Workflow contains cycles or disconnected steps: "
            + ", ".join(self.unordered)
        )


class UnknownStepKindError(EngineError):
    """Step kind is not one of the supported kinds"""

    def __init__(self, step_id: str, label: str, kind: str):
        self.step_id = step_id
        self.label = label
        self.kind = kind
        super().__init__(f"Error executing step {step_id} ({label}): Unknown step kind: {kind}")


class StepExecutionError(EngineError):
    """A step executor failed"""

    def __init__(self, step_id: str, label: str, message: str,
                 cause: Optional[BaseException] = None):
        self.step_id = step_id
        self.label = label
        self.message = message
        self.cause = cause
        super().__init__(f"Error executing step {step_id} ({label}): {message}")


class MissingConfigError(StepExecutionError):
    """Required step configuration is absent or invalid"""


class TypeMismatchError(StepExecutionError):
    """Resolved input does not have the shape the step requires"""


class TransportError(StepExecutionError):
    """Network or HTTP failure from the HTTP collaborator"""


class TransformEvaluationError(StepExecutionError):
    """Expression or condition evaluation failed"""


class FilterServiceError(StepExecutionError):
    """The natural-language filter collaborator failed or was unreachable"""
