"""
Step executors for flowrun workflows.

One executor per step kind, looked up through a closed registry.
"""
from .base import StepExecutor, StepContext
from .registry import StepRegistry, build_registry, registry_from_config

__all__ = [
    'StepExecutor',
    'StepContext',
    'StepRegistry',
    'build_registry',
    'registry_from_config',
]
