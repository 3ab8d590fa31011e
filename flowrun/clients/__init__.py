"""
Clients for the collaborators steps depend on: HTTP transport and the filter service.
"""
from .http import HttpClient, HttpResponse, RequestsHttpClient
from .filter import FilterClient, FilterClientError, LocalFilterClient, RemoteFilterClient

__all__ = [
    'HttpClient',
    'HttpResponse',
    'RequestsHttpClient',
    'FilterClient',
    'FilterClientError',
    'LocalFilterClient',
    'RemoteFilterClient',
]
