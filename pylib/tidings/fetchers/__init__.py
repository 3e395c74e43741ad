'''Feed fetching: pluggable transport, conditional/redirect-aware client, error taxonomy.'''

from tidings.fetchers.client import MAX_REDIRECTS, FetchClient, Response
from tidings.fetchers.errors import FetchError, NotFoundError, ServerError, TransportError
from tidings.fetchers.transport import (
    HttpxTransport,
    Transport,
    TransportResponse,
    create_transport,
)
from tidings.fetchers.urls import normalize_path, resolve_redirect_url

__all__ = [
    'MAX_REDIRECTS',
    'FetchClient',
    'FetchError',
    'HttpxTransport',
    'NotFoundError',
    'Response',
    'ServerError',
    'Transport',
    'TransportError',
    'TransportResponse',
    'create_transport',
    'normalize_path',
    'resolve_redirect_url',
]
