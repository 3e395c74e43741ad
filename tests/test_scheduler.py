'''Tests for the asyncio poll scheduler.'''

import asyncio

import pytest
from tenacity import wait_none

from conftest import NOW, FixedClock, ScriptedTransport, ok
from tidings.config import ScheduleConfig
from tidings.fetchers import FetchClient, TransportError
from tidings.reader import FeedReader
from tidings.scheduler import AsyncioPollScheduler, get_scheduler

FEED_URL = 'https://example.com/feed'
RSS = (
    b'<?xml version="1.0"?><rss version="2.0"><channel><title>t</title>'
    b'<item><title>a</title><pubDate>Wed, 01 Jan 2025 00:00:00 GMT</pubDate></item>'
    b'</channel></rss>'
)


def make_scheduler(*responses, on_result=None, **config):
    transport = ScriptedTransport(*responses)
    clock = FixedClock(NOW)
    schedule = ScheduleConfig(**config)
    reader = FeedReader(FetchClient(transport), clock=clock, schedule=schedule)
    scheduler = AsyncioPollScheduler(reader, on_result=on_result, clock=clock, retry_wait=wait_none())
    return scheduler, transport


async def test_poll_once_returns_next_update_and_reports_result():
    results = []

    async def on_result(url, result):
        results.append((url, result))

    scheduler, _ = make_scheduler(ok(RSS), on_result=on_result)
    scheduler.add_feed(FEED_URL)

    next_update = await scheduler.poll_once(FEED_URL)

    assert next_update > NOW
    assert scheduler.next_updates[FEED_URL] == next_update
    assert len(results) == 1
    assert results[0][0] == FEED_URL
    assert results[0][1].next_update == next_update


async def test_second_poll_is_conditional():
    scheduler, transport = make_scheduler(
        ok(RSS, **{'Last-Modified': 'Wed, 01 Jan 2025 00:00:00 GMT'}),
        ok(status=304),
    )
    scheduler.add_feed(FEED_URL)

    await scheduler.poll_once(FEED_URL)
    await scheduler.poll_once(FEED_URL)

    assert transport.methods == ['GET', 'HEAD']
    assert transport.requests[1][2]['If-Modified-Since'] == 'Wed, 01 Jan 2025 00:00:00 +0000'


async def test_fetch_error_reschedules_after_error_delay():
    scheduler, transport = make_scheduler(ok(status=500), error_delay=900)
    scheduler.add_feed(FEED_URL)

    assert await scheduler.poll_once(FEED_URL) == NOW + 900
    assert len(transport.requests) == 1


async def test_transport_errors_are_retried():
    scheduler, transport = make_scheduler(TransportError('reset'), ok(RSS), retry_attempts=3)
    scheduler.add_feed(FEED_URL)

    next_update = await scheduler.poll_once(FEED_URL)

    assert next_update > NOW
    assert len(transport.requests) == 2


async def test_transport_retries_exhausted():
    scheduler, transport = make_scheduler(
        TransportError('reset'), TransportError('reset'), retry_attempts=2, error_delay=60
    )
    scheduler.add_feed(FEED_URL)

    assert await scheduler.poll_once(FEED_URL) == NOW + 60
    assert len(transport.requests) == 2


async def test_start_polls_each_feed_and_stop_cancels():
    polled = asyncio.Event()

    async def on_result(url, result):
        polled.set()

    scheduler, transport = make_scheduler(ok(RSS), on_result=on_result)
    scheduler.add_feed(FEED_URL)

    await scheduler.start()
    await asyncio.wait_for(polled.wait(), timeout=5)
    await scheduler.stop()

    assert transport.urls == [FEED_URL]
    assert FEED_URL in scheduler.next_updates


async def test_failing_callback_does_not_kill_loop():
    called = asyncio.Event()

    async def on_result(url, result):
        called.set()
        raise RuntimeError('boom')

    scheduler, _ = make_scheduler(ok(RSS), on_result=on_result)
    scheduler.add_feed(FEED_URL)

    await scheduler.start()
    await asyncio.wait_for(called.wait(), timeout=5)
    await asyncio.sleep(0)
    task = scheduler._tasks[FEED_URL]
    assert not task.done()
    await scheduler.stop()


async def test_start_without_feeds():
    scheduler, _ = make_scheduler()

    with pytest.raises(RuntimeError):
        await scheduler.start()


async def test_get_scheduler():
    scheduler, _ = make_scheduler()
    reader = scheduler._reader

    assert isinstance(get_scheduler(reader), AsyncioPollScheduler)
    with pytest.raises(ValueError):
        get_scheduler(reader, kind='cron')
