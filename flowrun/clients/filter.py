#!/usr/bin/env python3
"""
Clients for the natural-language filter service.

Filter steps talk to the service either over HTTP (`RemoteFilterClient`) or
in-process (`LocalFilterClient`). Both report failures as `FilterClientError`.
"""
import logging
from abc import ABC, abstractmethod
from typing import Any, Dict, Optional

import requests

from flowrun.filtering.service import FilterError, FilterService

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 60


class FilterClientError(Exception):
    """The filter service failed or could not be reached"""


class FilterClient(ABC):
    """Request/response boundary to the filter service"""

    @abstractmethod
    def filter(self, filter_type: str, condition: str, data: Any,
               context: Dict[str, Any]) -> Any:
        """Return the service's `result` for the given request"""
        pass


class RemoteFilterClient(FilterClient):
    """Reaches the filter service with POST /api/filter"""

    def __init__(self, base_url: str, timeout: float = DEFAULT_TIMEOUT,
                 session: Optional[requests.Session] = None):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.session = session or requests.Session()

    @property
    def endpoint(self) -> str:
        return f"{self.base_url}/api/filter"

    def filter(self, filter_type: str, condition: str, data: Any,
               context: Dict[str, Any]) -> Any:
        payload = {
            "type": filter_type,
            "condition": condition,
            "data": data,
            "context": context,
        }
        try:
            r = self.session.post(self.endpoint, json=payload, timeout=self.timeout)
        except requests.RequestException as e:
            logger.warning("POST %s failed: %s", self.endpoint, e)
            raise FilterClientError(f"Filter service unreachable: {e}") from e

        try:
            body = r.json()
        except ValueError:
            body = {}

        if r.status_code >= 400:
            message = body.get("error") if isinstance(body, dict) else None
            raise FilterClientError(
                message or f"Request failed with status code {r.status_code}"
            )

        if not isinstance(body, dict) or "result" not in body:
            raise FilterClientError("Filter service returned no result")
        return body["result"]


class LocalFilterClient(FilterClient):
    """Calls an in-process filter service"""

    def __init__(self, service: Optional[FilterService] = None):
        self.service = service or FilterService()

    def filter(self, filter_type: str, condition: str, data: Any,
               context: Dict[str, Any]) -> Any:
        try:
            return self.service.filter(filter_type, condition, data, context)
        except FilterError as e:
            raise FilterClientError(str(e)) from e
