#!/usr/bin/env python3
"""
Filter steps.

Delegate natural-language filtering to the filter service.
"""
from typing import Any, List, Optional

from flowrun.clients.filter import FilterClient, FilterClientError, LocalFilterClient
from flowrun.engine.data import build_filter_context
from flowrun.engine.errors import FilterServiceError, MissingConfigError, TypeMismatchError
from flowrun.engine.graph import Step, StepKind
from flowrun.filtering.service import FILTER_TYPES
from flowrun.steps.base import StepContext, StepExecutor


class FilterExecutor(StepExecutor):
    """Filter an array or object by a natural-language condition"""

    kind = StepKind.FILTER
    title = "Filter"
    default_config = {
        "type": "array",
        "condition": "",
    }

    def __init__(self, client: Optional[FilterClient] = None):
        self.client = client or LocalFilterClient()

    def validate(self, step: Step) -> List[str]:
        filter_type = step.config.get("type") or "array"
        if filter_type not in FILTER_TYPES:
            return [f"Invalid filter type: {filter_type}"]
        return []

    def execute(self, step: Step, resolved_input: Any, context: StepContext) -> Any:
        filter_type = step.config.get("type") or "array"
        condition = step.config.get("condition")

        if not condition:
            return resolved_input

        if filter_type not in FILTER_TYPES:
            raise MissingConfigError(step.id, step.display_label,
                                     f"Invalid filter type: {filter_type}")

        data = resolved_input
        if filter_type == "array":
            if not isinstance(resolved_input, (list, tuple)):
                raise TypeMismatchError(step.id, step.display_label,
                                        "Input data is not an array")
            data = list(resolved_input)
        elif not isinstance(resolved_input, dict):
            raise TypeMismatchError(step.id, step.display_label,
                                    "Input data is not an object")

        try:
            return self.client.filter(
                filter_type,
                condition,
                data,
                build_filter_context(data, context.results),
            )
        except FilterClientError as e:
            raise FilterServiceError(step.id, step.display_label,
                                     f"Filter execution failed: {e}", cause=e) from e
