'''
Update statistics: predict when a feed should next be fetched.

Built once from a feed snapshot. Publication intervals are derived from item
timestamps; a robust average and the median of those intervals, inflated by a
safety margin, give the next poll time. Feeds quiet for too long ("sleepy")
fall back to a coarse daily recheck.
'''

import math
import time
from collections.abc import Callable
from datetime import datetime, timezone

from tidings.feed import FeedModel


class UpdateStats:
    '''Interval statistics for one feed snapshot. Immutable after construction.'''

    # delay applied when neither average nor median projects into the future
    DEFAULT_MIN_DELAY = 3600
    # delay applied when the feed is sleepy
    DEFAULT_SLEEPY_DELAY = 86400
    # inactivity after which a feed is sleepy
    DEFAULT_SLEEPY_DURATION = 7 * 86400
    DEFAULT_MARGIN_RATIO = 0.1

    def __init__(self, feed: FeedModel, clock: Callable[[], float] = time.time) -> None:
        self._clock = clock
        now = self._now()
        feed_ts = _timestamp(feed.last_modified)
        fallback = feed_ts if feed_ts is not None else now

        dates = []
        for item in feed:
            ts = _timestamp(item.last_modified)
            dates.append(ts if ts is not None else fallback)

        if dates:
            # most recent item date that is not in the future
            self._newest_item_date = min(max(dates), now)
        else:
            # a server clock running ahead must not date the feed in the future
            self._newest_item_date = min(fallback, now)

        dates.sort(reverse=True)
        self._intervals = tuple(newer - older for newer, older in zip(dates, dates[1:]))

    def _now(self) -> int:
        return int(self._clock())

    @property
    def intervals(self) -> tuple[int, ...]:
        '''Gaps between consecutive items, newest first.'''
        return self._intervals

    @property
    def newest_item_date(self) -> int:
        return self._newest_item_date

    @property
    def min_interval(self) -> int:
        return min(self._intervals) if self._intervals else 0

    @property
    def max_interval(self) -> int:
        return max(self._intervals) if self._intervals else 0

    @property
    def average_interval(self) -> int:
        '''
        Mean interval with IQR outlier filtering.

        Quartiles are picked by index, not interpolated. Outliers are dropped
        from the sum but still counted in the divisor, so a single huge gap
        (e.g. a very old historic entry) damps the average instead of
        vanishing.
        '''
        count = len(self._intervals)
        if count == 0:
            return 0
        ordered = sorted(self._intervals)
        q1 = ordered[math.floor(count * 0.25)]
        q3 = ordered[math.floor(count * 0.75)]
        iqr = q3 - q1
        lower_bound = q1 - 1.5 * iqr
        upper_bound = q3 + 1.5 * iqr
        total = sum(v for v in ordered if lower_bound <= v <= upper_bound)
        return total // count

    @property
    def median_interval(self) -> int:
        count = len(self._intervals)
        if count == 0:
            return 0
        ordered = sorted(self._intervals)
        middle = count // 2
        if count % 2 == 0:
            return (ordered[middle - 1] + ordered[middle]) // 2
        return ordered[middle]

    def is_sleepy(self, sleepy_duration: int, margin_ratio: float) -> bool:
        '''True when the newest item is older than sleepy_duration plus margin.'''
        return self._now() > self.add_interval(self._newest_item_date, sleepy_duration, margin_ratio)

    @staticmethod
    def add_interval(ts: int, interval: int, margin_ratio: float) -> int:
        '''ts pushed forward by interval inflated by margin_ratio.'''
        return ts + math.floor(interval + margin_ratio * interval)

    def compute_next_update(
        self,
        min_delay: int = DEFAULT_MIN_DELAY,
        sleepy_delay: int = DEFAULT_SLEEPY_DELAY,
        sleepy_duration: int = DEFAULT_SLEEPY_DURATION,
        margin_ratio: float = DEFAULT_MARGIN_RATIO,
    ) -> int:
        '''
        Unix timestamp of the next recommended fetch, always after now.

        The smaller of average and median is tried first; the first one that
        projects past now wins, otherwise now + min_delay.
        '''
        now = self._now()
        if self.is_sleepy(sleepy_duration, margin_ratio):
            return now + sleepy_delay
        for interval in sorted((self.average_interval, self.median_interval)):
            candidate = self.add_interval(self._newest_item_date, interval, margin_ratio)
            if candidate > now:
                return candidate
        return now + min_delay

    def next_update_datetime(self, **kwargs) -> datetime:
        '''compute_next_update() as an aware UTC datetime.'''
        return datetime.fromtimestamp(self.compute_next_update(**kwargs), tz=timezone.utc)

    def __repr__(self) -> str:
        return (
            f'UpdateStats(intervals={len(self._intervals)}, newest_item_date={self._newest_item_date}, '
            f'average={self.average_interval}, median={self.median_interval})'
        )


def _timestamp(value: datetime | None) -> int | None:
    if value is None:
        return None
    return int(value.timestamp())
