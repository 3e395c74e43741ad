'''Tests for FeedReader: fetch, parse, predict next update.'''

from datetime import datetime, timezone
from email.utils import format_datetime

import pytest

from conftest import DAY, NOW, FixedClock, ScriptedTransport, ok, ts_to_dt
from tidings.config import ScheduleConfig
from tidings.fetchers import FetchClient, NotFoundError
from tidings.reader import FeedReader


def rss(*item_timestamps: int) -> bytes:
    items = ''.join(
        f'<item><title>#{i}</title><pubDate>{format_datetime(ts_to_dt(ts), usegmt=True)}</pubDate></item>'
        for i, ts in enumerate(item_timestamps)
    )
    return f'<?xml version="1.0"?><rss version="2.0"><channel><title>t</title>{items}</channel></rss>'.encode()


def make_reader(*responses, schedule=None):
    transport = ScriptedTransport(*responses)
    reader = FeedReader(FetchClient(transport), clock=FixedClock(NOW), schedule=schedule)
    return reader, transport


async def test_read_parses_and_schedules():
    hour = 3600
    body = rss(NOW - hour, NOW - 2 * hour, NOW - 3 * hour)
    reader, transport = make_reader(ok(body))

    result = await reader.read('https://example.com/feed')

    assert result.modified
    assert len(result.feed) == 3
    assert result.stats.intervals == (hour, hour)
    assert result.next_update == NOW - hour + int(1.1 * hour)
    assert result.next_update > NOW
    assert transport.methods == ['GET']


async def test_read_not_modified_skips_parsing():
    since = ts_to_dt(NOW - DAY)
    reader, transport = make_reader(ok(status=304))

    result = await reader.read('https://example.com/feed', since)

    assert not result.modified
    assert len(result.feed) == 0
    assert result.stats.newest_item_date == NOW - DAY
    assert result.next_update == NOW + ScheduleConfig().min_delay
    assert result.modified_since == since
    assert transport.methods == ['HEAD']


async def test_read_uses_schedule_config():
    # one item, 30 days old: sleepy
    reader, _ = make_reader(ok(rss(NOW - 30 * DAY)), schedule=ScheduleConfig(sleepy_delay=7200))

    result = await reader.read('https://example.com/feed')

    assert result.next_update == NOW + 7200


async def test_modified_since_prefers_last_modified_header():
    header = 'Wed, 01 Jan 2025 00:00:00 GMT'
    reader, _ = make_reader(ok(rss(NOW - DAY), **{'Last-Modified': header}))

    result = await reader.read('https://example.com/feed')

    assert result.modified_since == datetime(2025, 1, 1, tzinfo=timezone.utc)


async def test_read_propagates_fetch_errors():
    reader, _ = make_reader(ok(status=404))

    with pytest.raises(NotFoundError):
        await reader.read('https://example.com/feed')
