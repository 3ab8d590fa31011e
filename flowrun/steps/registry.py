#!/usr/bin/env python3
"""
Step registry mapping each step kind to its executor.

The set of kinds is closed: a registry is built from exactly one executor per
`StepKind`, and lookups never import or discover code at runtime.
"""
from typing import Dict, Iterable, List, Optional

from flowrun.clients.filter import FilterClient, LocalFilterClient, RemoteFilterClient
from flowrun.clients.http import HttpClient, RequestsHttpClient
from flowrun.engine.graph import StepKind
from flowrun.filtering.service import create_filter_service
from flowrun.steps.base import StepExecutor
from flowrun.steps.filter_steps import FilterExecutor
from flowrun.steps.http_steps import HttpRequestExecutor
from flowrun.steps.transform_steps import TransformExecutor


class StepRegistry:
    """Registry of executors keyed by step kind"""

    def __init__(self, executors: Iterable[StepExecutor]):
        self._executors: Dict[StepKind, StepExecutor] = {}
        for executor in executors:
            if executor.kind in self._executors:
                raise ValueError(f"Duplicate executor for step kind: {executor.kind.value}")
            self._executors[executor.kind] = executor

        missing = [kind.value for kind in StepKind if kind not in self._executors]
        if missing:
            raise ValueError(f"No executor registered for: {', '.join(missing)}")

    def get_executor(self, kind: str) -> Optional[StepExecutor]:
        """Get executor for a step kind, or None if the kind is unknown"""
        try:
            return self._executors[StepKind(kind)]
        except ValueError:
            return None

    def list_step_kinds(self) -> List[str]:
        """List all registered step kinds"""
        return [kind.value for kind in self._executors]

    def describe(self) -> List[Dict]:
        """Metadata for every registered step kind"""
        return [executor.to_dict() for executor in self._executors.values()]


def build_registry(http_client: Optional[HttpClient] = None,
                   filter_client: Optional[FilterClient] = None) -> StepRegistry:
    """
    Build the registry of all step kinds.

    Args:
        http_client: Transport for HTTP request steps (default: requests)
        filter_client: Filter service client (default: in-process keyword fallback)
    """
    return StepRegistry([
        HttpRequestExecutor(http_client),
        TransformExecutor(),
        FilterExecutor(filter_client),
    ])


def registry_from_config(config) -> StepRegistry:
    """
    Build the registry from a `FlowConfig`.

    Filter steps use the remote filter service when a service URL is
    configured, otherwise an in-process service whose language model is
    attached only when an OpenAI key is configured.
    """
    if config.filter.service_url:
        filter_client = RemoteFilterClient(config.filter.service_url, timeout=config.filter.timeout)
    else:
        filter_client = LocalFilterClient(create_filter_service(
            api_key=config.filter.openai_api_key,
            model=config.filter.model,
            temperature=config.filter.temperature,
        ))

    return build_registry(
        http_client=RequestsHttpClient(timeout=config.engine.http_timeout),
        filter_client=filter_client,
    )
