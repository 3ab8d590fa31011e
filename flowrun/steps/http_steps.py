#!/usr/bin/env python3
"""
HTTP request steps.

Fetch data over HTTP through the injected HTTP client.
"""
from typing import Any, List, Optional

from flowrun.clients.http import HttpClient, RequestsHttpClient
from flowrun.engine.errors import MissingConfigError, TransportError
from flowrun.engine.graph import Step, StepKind
from flowrun.steps.base import StepContext, StepExecutor

# Methods that never carry the step input as a request body
BODYLESS_METHODS = ("GET", "DELETE")


class HttpRequestExecutor(StepExecutor):
    """Issue an HTTP request and return the response body"""

    kind = StepKind.HTTP_REQUEST
    title = "HTTP Request"
    default_config = {
        "method": "GET",
        "url": "",
        "headers": {},
    }

    def __init__(self, client: Optional[HttpClient] = None):
        self.client = client or RequestsHttpClient()

    def validate(self, step: Step) -> List[str]:
        errors = []
        if not step.config.get("url"):
            errors.append("URL is required for HTTP request step")
        if not isinstance(step.config.get("headers") or {}, dict):
            errors.append("Headers must be a JSON object")
        return errors

    def execute(self, step: Step, resolved_input: Any, context: StepContext) -> Any:
        method = str(step.config.get("method") or "GET").upper()
        url = step.config.get("url")
        headers = step.config.get("headers") or {}

        if not url:
            raise MissingConfigError(step.id, step.display_label,
                                     "URL is required for HTTP request step")
        if not isinstance(headers, dict):
            raise MissingConfigError(step.id, step.display_label,
                                     "Headers must be a JSON object")

        body = None if method in BODYLESS_METHODS else resolved_input
        response = self.client.request(method, url, headers=headers, body=body)

        if response.error:
            raise TransportError(step.id, step.display_label,
                                 f"HTTP request failed: {response.error}")
        return response.body
