#!/usr/bin/env python3
"""
HTTP transport used by HTTP request steps.

Wraps `requests` behind a small request/response contract so the engine never
deals with transport exceptions directly.
"""
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Dict, Optional

import requests

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 30


@dataclass
class HttpResponse:
    """Response from the HTTP collaborator"""
    body: Any
    status: int
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error is None


class HttpClient(ABC):
    """Generic HTTP client abstraction"""

    @abstractmethod
    def request(self, method: str, url: str, headers: Optional[Dict[str, str]] = None,
                body: Any = None) -> HttpResponse:
        """Issue a request; failures are reported through `HttpResponse.error`"""
        pass


class RequestsHttpClient(HttpClient):
    """HTTP client backed by requests"""

    def __init__(self, timeout: float = DEFAULT_TIMEOUT,
                 session: Optional[requests.Session] = None):
        self.timeout = timeout
        self.session = session or requests.Session()

    def request(self, method: str, url: str, headers: Optional[Dict[str, str]] = None,
                body: Any = None) -> HttpResponse:
        kwargs: Dict[str, Any] = {
            "headers": dict(headers or {}),
            "timeout": self.timeout,
        }
        if body is not None:
            if isinstance(body, (str, bytes)):
                kwargs["data"] = body
            else:
                kwargs["json"] = body

        try:
            r = self.session.request(method.upper(), url, **kwargs)
        except requests.RequestException as e:
            logger.warning("%s %s failed: %s", method.upper(), url, e)
            return HttpResponse(body=None, status=0, error=str(e))

        payload = self._decode_body(r)
        if r.status_code >= 400:
            return HttpResponse(
                body=payload,
                status=r.status_code,
                error=f"Request failed with status code {r.status_code}",
            )
        return HttpResponse(body=payload, status=r.status_code)

    @staticmethod
    def _decode_body(r: requests.Response) -> Any:
        """JSON-decode the body when possible, otherwise return the text"""
        if not r.content:
            return r.text
        try:
            return r.json()
        except ValueError:
            return r.text
