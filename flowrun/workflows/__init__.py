"""
Workflow files and the command-line interface.
"""
from .serialization import WorkflowSerializer, WorkflowFormatError, load_workflow, save_workflow

__all__ = [
    'WorkflowSerializer',
    'WorkflowFormatError',
    'load_workflow',
    'save_workflow',
]
