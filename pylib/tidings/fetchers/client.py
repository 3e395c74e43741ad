'''
Feed fetch client: conditional requests, bounded redirects, status classification.

One call to get_response() yields either a complete Response or raises one of
NotFoundError, ServerError, TransportError. Nothing is retried here.
'''

import time
from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from datetime import datetime, timezone
from email.utils import format_datetime, parsedate_to_datetime

import httpx
import structlog

from tidings.fetchers.errors import NotFoundError, ServerError
from tidings.fetchers.transport import Transport, TransportResponse, read_only_headers
from tidings.fetchers.urls import resolve_redirect_url


logger = structlog.get_logger()

MAX_REDIRECTS = 10

SUCCESS_STATUSES = frozenset({200, 304})
REDIRECT_STATUSES = frozenset({301, 302, 303, 307, 308})


@dataclass(frozen=True)
class Response:
    '''Successful (200 or 304) outcome of a fetch. duration covers the last hop only.'''

    status_code: int
    body: bytes
    duration: float
    headers: Mapping[str, str] = field(default_factory=dict)
    url: str = ''

    def __post_init__(self) -> None:
        object.__setattr__(self, 'headers', read_only_headers(self.headers))

    @property
    def is_modified(self) -> bool:
        return self.status_code != 304

    @property
    def last_modified(self) -> datetime | None:
        '''Last-Modified response header as an aware datetime, if present and parsable.'''
        raw = httpx.Headers(self.headers).get('last-modified')
        if not raw:
            return None
        try:
            parsed = parsedate_to_datetime(raw)
        except (TypeError, ValueError):
            return None
        if parsed.tzinfo is None:
            parsed = parsed.replace(tzinfo=timezone.utc)
        return parsed


def format_http_date(value: datetime) -> str:
    '''RFC 2822 date for If-Modified-Since. Naive datetimes are taken as UTC.'''
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return format_datetime(value)


class FetchClient:
    '''
    Fetches feed documents over a pluggable Transport.

    Holds no per-call state, so one instance can serve many concurrent fetches.
    '''

    def __init__(self, transport: Transport, timer: Callable[[], float] = time.perf_counter):
        self.transport = transport
        self._timer = timer

    async def get_response(self, url: str, modified_since: datetime | None = None) -> Response:
        '''
        Fetch url. With modified_since, a conditional HEAD goes first and a
        304 answer is returned without issuing the GET.
        '''
        if modified_since is not None:
            head_response = await self.request('HEAD', url, modified_since)
            if head_response.status_code == 304:
                return head_response
        return await self.request('GET', url, modified_since)

    async def request(self, method: str, url: str, modified_since: datetime | None = None) -> Response:
        '''Issue method against url, following up to MAX_REDIRECTS redirects.'''
        headers = {}
        if modified_since is not None:
            headers['If-Modified-Since'] = format_http_date(modified_since)

        redirect_count = 0
        while True:
            raw, duration = await self._send(method, url, headers)
            status = raw.status_code

            if status in SUCCESS_STATUSES:
                return Response(
                    status_code=status,
                    body=raw.body,
                    duration=duration,
                    headers=raw.headers,
                    url=url,
                )
            if status == 404:
                logger.warning('feed not found', method=method, url=url, duration=duration)
                raise NotFoundError('not found', duration=duration)
            if status not in REDIRECT_STATUSES:
                logger.warning('unexpected status', method=method, url=url, status=status, duration=duration)
                raise ServerError(f'unexpected status {status}', response=raw, duration=duration)

            # 303 switches to GET, except that a HEAD must stay body-less
            if status == 303 and method != 'HEAD':
                method = 'GET'
            url = self._redirect_target(url, raw, duration)
            redirect_count += 1
            if redirect_count > MAX_REDIRECTS:
                logger.warning('too many redirects', url=url, max_redirects=MAX_REDIRECTS)
                raise ServerError('too many redirects', status_code=508, response=raw, duration=duration)

    async def _send(self, method: str, url: str, headers: Mapping[str, str]) -> tuple[TransportResponse, float]:
        '''One hop: a single transport exchange, timed on its own.'''
        started = self._timer()
        raw = await self.transport.send(method, url, headers)
        duration = max(0.0, self._timer() - started)
        logger.debug('fetch hop', method=method, url=url, status=raw.status_code, duration=duration)
        return raw, duration

    def _redirect_target(self, url: str, raw: TransportResponse, duration: float) -> str:
        location = httpx.Headers(raw.headers).get('location', '').strip()
        if not location:
            raise ServerError('redirect without Location', response=raw, duration=duration)
        try:
            return resolve_redirect_url(url, location)
        except ServerError as e:
            logger.warning('rejected redirect', url=url, location=location, reason=str(e))
            e.response = raw
            e.duration = duration
            raise
