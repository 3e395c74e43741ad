'''Poll scheduler implementations. Swap via kind= param.'''

from tidings.config import ScheduleConfig
from tidings.reader import FeedReader
from tidings.scheduler.asyncio_loop import AsyncioPollScheduler
from tidings.scheduler.base import Scheduler

__all__ = ['AsyncioPollScheduler', 'Scheduler', 'get_scheduler']


def get_scheduler(
    reader: FeedReader,
    kind: str = 'asyncio',
    config: ScheduleConfig | None = None,
    **kwargs,
) -> Scheduler:
    '''
    Factory for scheduler. kind: asyncio (default).
    '''
    if kind == 'asyncio':
        return AsyncioPollScheduler(reader, config=config, **kwargs)
    raise ValueError(f'unknown scheduler: {kind}')
