'''
Pytest configuration and shared fixtures for tidings tests.
'''
from collections.abc import Mapping
from datetime import datetime, timezone

import pytest

from tidings.feed import ParsedFeed, ParsedItem
from tidings.fetchers import FetchClient, Transport, TransportResponse

NOW = 1_750_000_000
DAY = 86400


class FixedClock:
    '''Clock returning a settable instant.'''

    def __init__(self, now: float = NOW):
        self.now = now

    def __call__(self) -> float:
        return self.now


class ScriptedTransport(Transport):
    '''Replays queued responses (or exceptions) and records every request.'''

    def __init__(self, *responses):
        self.responses = list(responses)
        self.requests: list[tuple[str, str, dict]] = []

    def queue(self, *responses) -> None:
        self.responses.extend(responses)

    async def send(self, method: str, url: str, headers: Mapping[str, str]) -> TransportResponse:
        self.requests.append((method, url, dict(headers)))
        if not self.responses:
            raise AssertionError(f'unexpected request: {method} {url}')
        item = self.responses.pop(0)
        if isinstance(item, Exception):
            raise item
        return item

    @property
    def methods(self) -> list[str]:
        return [method for method, _, _ in self.requests]

    @property
    def urls(self) -> list[str]:
        return [url for _, url, _ in self.requests]


def ok(body: bytes = b'', status: int = 200, **headers) -> TransportResponse:
    return TransportResponse(status_code=status, headers=headers, body=body)


def redirect(location: str, status: int = 301) -> TransportResponse:
    return TransportResponse(status_code=status, headers={'Location': location})


def ts_to_dt(ts: int) -> datetime:
    return datetime.fromtimestamp(ts, tz=timezone.utc)


def make_feed(item_timestamps, feed_timestamp=None) -> ParsedFeed:
    '''Feed whose items carry the given unix timestamps (None for undated items).'''
    items = tuple(
        ParsedItem(last_modified=None if ts is None else ts_to_dt(ts)) for ts in item_timestamps
    )
    return ParsedFeed(
        items=items,
        last_modified=None if feed_timestamp is None else ts_to_dt(feed_timestamp),
    )


@pytest.fixture
def clock():
    return FixedClock()


@pytest.fixture
def transport():
    return ScriptedTransport()


@pytest.fixture
def client(transport):
    return FetchClient(transport)
