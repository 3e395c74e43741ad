'''
Transport protocol: performs exactly one HTTP exchange, no redirect following.

Provides a pluggable interface so the fetch client can run over httpx in
production and over scripted fakes in tests.
'''

from abc import ABC, abstractmethod
from collections.abc import Mapping
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import TYPE_CHECKING

import httpx
import structlog

from tidings import __version__
from tidings.fetchers.errors import TransportError

if TYPE_CHECKING:
    from tidings.config import FetchConfig


logger = structlog.get_logger()

DEFAULT_USER_AGENT = f'tidings/{__version__}'


@dataclass(frozen=True)
class TransportResponse:
    '''Raw result of one exchange.'''

    status_code: int
    headers: Mapping[str, str] = field(default_factory=dict)
    body: bytes = b''

    def __post_init__(self) -> None:
        object.__setattr__(self, 'headers', read_only_headers(self.headers))


def read_only_headers(headers: Mapping[str, str]) -> Mapping[str, str]:
    '''Snapshot of headers that callers cannot mutate.'''
    return MappingProxyType(dict(headers))


class Transport(ABC):
    '''Protocol for single-exchange HTTP transports.'''

    @abstractmethod
    async def send(self, method: str, url: str, headers: Mapping[str, str]) -> TransportResponse:
        '''
        Send one request and return the raw response.

        Args:
            method: HTTP method, e.g. GET or HEAD
            url: absolute URL
            headers: extra request headers

        Raises:
            TransportError: the exchange could not complete
        '''

    async def aclose(self) -> None:
        '''Release any held connections.'''

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()


class HttpxTransport(Transport):
    '''
    Transport over a shared httpx.AsyncClient.

    Redirects are never followed here; the fetch client resolves them hop by hop.
    '''

    def __init__(
        self,
        timeout: float = 30.0,
        user_agent: str = DEFAULT_USER_AGENT,
        client: httpx.AsyncClient | None = None,
    ):
        self.timeout = timeout
        self.user_agent = user_agent
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(timeout=timeout, follow_redirects=False)

    @classmethod
    def from_config(cls, config: 'FetchConfig', client: httpx.AsyncClient | None = None) -> 'HttpxTransport':
        '''Transport using the timeout and User-Agent from a FetchConfig.'''
        return cls(timeout=config.timeout, user_agent=config.user_agent, client=client)

    async def send(self, method: str, url: str, headers: Mapping[str, str]) -> TransportResponse:
        request_headers = {'User-Agent': self.user_agent, **headers}
        try:
            resp = await self._client.request(method, url, headers=request_headers, follow_redirects=False)
        except (httpx.RequestError, httpx.InvalidURL) as e:
            # RequestError also covers body decoding failures, e.g. a corrupt gzip body
            logger.warning('transport failure', method=method, url=url, error=str(e))
            raise TransportError(f'{method} {url} failed: {e}') from e
        return TransportResponse(
            status_code=resp.status_code,
            headers=dict(resp.headers),
            body=resp.content,
        )

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()


def create_transport(transport_type: str = 'httpx', config: 'FetchConfig | None' = None, **kwargs) -> Transport:
    '''
    Factory function to create a transport.

    Args:
        transport_type: 'httpx' (default)
        config: FetchConfig supplying timeout and user_agent; explicit kwargs win
        **kwargs: Additional arguments for the transport

    Returns:
        Transport instance
    '''
    if transport_type in ('httpx', 'http'):
        if config is not None:
            kwargs = {'timeout': config.timeout, 'user_agent': config.user_agent, **kwargs}
        return HttpxTransport(**kwargs)
    raise ValueError(f'Unknown transport type: {transport_type}')
