"""
Execution engine for step-based workflows.

Handles dependency resolution, scheduling, data passing and fail-fast execution.
"""
from .graph import Graph, Step, StepKind, Connection
from .errors import (
    EngineError,
    CyclicGraphError,
    UnknownStepKindError,
    StepExecutionError,
    MissingConfigError,
    TypeMismatchError,
    TransportError,
    TransformEvaluationError,
    FilterServiceError,
)
from .data import DataManager, resolve_input, build_context
from .executor import WorkflowExecutor, ExecutionResult, topological_sort
from .validation import validate_graph

__all__ = [
    'Graph',
    'Step',
    'StepKind',
    'Connection',
    'EngineError',
    'CyclicGraphError',
    'UnknownStepKindError',
    'StepExecutionError',
    'MissingConfigError',
    'TypeMismatchError',
    'TransportError',
    'TransformEvaluationError',
    'FilterServiceError',
    'DataManager',
    'resolve_input',
    'build_context',
    'WorkflowExecutor',
    'ExecutionResult',
    'topological_sort',
    'validate_graph',
]
