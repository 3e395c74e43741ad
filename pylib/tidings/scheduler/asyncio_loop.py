'''asyncio-based adaptive poll scheduler: one task per feed, bounded concurrency.'''

import asyncio
import time
from collections.abc import Callable, Coroutine
from datetime import datetime
from typing import Any

import structlog
from tenacity import AsyncRetrying, retry_if_exception_type, stop_after_attempt, wait_exponential

from tidings.config import ScheduleConfig
from tidings.fetchers import FetchError, TransportError
from tidings.reader import FeedReader, ReadResult
from tidings.scheduler.base import Scheduler


logger = structlog.get_logger()

ResultCallback = Callable[[str, ReadResult], Coroutine[Any, Any, None]]


class AsyncioPollScheduler(Scheduler):
    '''
    Re-polls every feed at the time its UpdateStats recommends.

    Transport failures are retried with exponential backoff; any other fetch
    failure (or retries running out) reschedules the feed error_delay seconds out.
    '''

    def __init__(
        self,
        reader: FeedReader,
        config: ScheduleConfig | None = None,
        on_result: ResultCallback | None = None,
        clock: Callable[[], float] = time.time,
        retry_wait=None,
    ) -> None:
        '''
        on_result: optional async callback(url, ReadResult) after each successful read
        retry_wait: tenacity wait strategy between transport retries
        '''
        self._reader = reader
        self._config = config or reader.schedule
        self._on_result = on_result
        self._clock = clock
        self._retry_wait = retry_wait or wait_exponential(multiplier=1, min=2, max=10)
        self._semaphore = asyncio.Semaphore(self._config.max_concurrency)
        self._stop_event = asyncio.Event()
        self._feeds: dict[str, datetime | None] = {}
        self._tasks: dict[str, asyncio.Task[None]] = {}
        self._running = False
        self.next_updates: dict[str, int] = {}

    def add_feed(self, url: str, modified_since: datetime | None = None) -> None:
        self._feeds[url] = modified_since
        if self._running and url not in self._tasks:
            self._tasks[url] = asyncio.create_task(self._run_loop(url))

    async def start(self) -> None:
        if not self._feeds:
            raise RuntimeError('No feeds registered; call add_feed() first')
        self._stop_event.clear()
        self._running = True
        for url in self._feeds:
            if url not in self._tasks:
                self._tasks[url] = asyncio.create_task(self._run_loop(url))

    async def stop(self) -> None:
        self._stop_event.set()
        self._running = False
        tasks = list(self._tasks.values())
        self._tasks.clear()
        for task in tasks:
            task.cancel()
        for task in tasks:
            try:
                await task
            except asyncio.CancelledError:
                pass

    async def poll_once(self, url: str) -> int:
        '''Read url once and return the unix timestamp of its next poll.'''
        modified_since = self._feeds.get(url)
        try:
            async with self._semaphore:
                result = await self._read_with_retry(url, modified_since)
        except FetchError as e:
            next_update = int(self._clock()) + self._config.error_delay
            logger.warning(
                'feed fetch failed',
                url=url,
                error_type=type(e).__name__,
                error=str(e),
                duration=e.duration,
                next_update=next_update,
            )
            self.next_updates[url] = next_update
            return next_update

        self._feeds[url] = result.modified_since or modified_since
        self.next_updates[url] = result.next_update
        if self._on_result:
            await self._on_result(url, result)
        return result.next_update

    async def _read_with_retry(self, url: str, modified_since: datetime | None) -> ReadResult:
        async for attempt in AsyncRetrying(
            stop=stop_after_attempt(self._config.retry_attempts),
            wait=self._retry_wait,
            retry=retry_if_exception_type(TransportError),
            reraise=True,
        ):
            with attempt:
                return await self._reader.read(url, modified_since)

    async def _run_loop(self, url: str) -> None:
        while not self._stop_event.is_set():
            try:
                next_update = await self.poll_once(url)
            except Exception:
                # Log but don't kill this feed's loop
                logger.exception('poll callback failed', url=url)
                next_update = int(self._clock()) + self._config.error_delay
            delay = max(0.0, next_update - self._clock())
            try:
                await asyncio.wait_for(self._stop_event.wait(), timeout=delay)
            except asyncio.TimeoutError:
                pass
