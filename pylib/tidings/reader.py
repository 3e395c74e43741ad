'''
Feed reader: fetch, parse and compute the next poll time in one call.
This is the callback the poll scheduler runs for each feed.
'''

import time
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime

import structlog

from tidings.config import ScheduleConfig
from tidings.feed import ParsedFeed, parse_feed
from tidings.fetchers import FetchClient, Response
from tidings.stats import UpdateStats


logger = structlog.get_logger()


@dataclass(frozen=True)
class ReadResult:
    '''Outcome of one feed check.'''

    url: str
    response: Response
    feed: ParsedFeed
    stats: UpdateStats
    next_update: int  # unix timestamp

    @property
    def modified(self) -> bool:
        return self.response.is_modified

    @property
    def modified_since(self) -> datetime | None:
        '''Value to send as If-Modified-Since on the next cycle.'''
        return self.response.last_modified or self.feed.last_modified


class FeedReader:
    '''Reads one feed per call; safe to share across concurrent tasks.'''

    def __init__(
        self,
        client: FetchClient,
        clock: Callable[[], float] = time.time,
        schedule: ScheduleConfig | None = None,
    ):
        self.client = client
        self._clock = clock
        self.schedule = schedule or ScheduleConfig()

    async def read(self, url: str, modified_since: datetime | None = None) -> ReadResult:
        '''
        Fetch url and predict its next update. Fetch errors propagate.

        A 304 is not parsed: the snapshot is empty and dated modified_since.
        '''
        response = await self.client.get_response(url, modified_since)
        if response.is_modified:
            feed = parse_feed(response.body)
        else:
            feed = ParsedFeed.empty(modified_since)

        stats = UpdateStats(feed, clock=self._clock)
        next_update = stats.compute_next_update(**self.schedule.next_update_kwargs())
        logger.info(
            'feed read',
            url=url,
            status=response.status_code,
            items=len(feed),
            duration=response.duration,
            next_update=next_update,
        )
        return ReadResult(
            url=url,
            response=response,
            feed=feed,
            stats=stats,
            next_update=next_update,
        )
