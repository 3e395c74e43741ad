'''Poll scheduler abstraction. Implementations decide how per-feed polls are timed and run.'''

from abc import ABC, abstractmethod
from datetime import datetime


class Scheduler(ABC):
    '''Abstract scheduler. Polls each registered feed at its predicted next update.'''

    @abstractmethod
    async def start(self) -> None:
        '''Start polling all registered feeds.'''

    @abstractmethod
    async def stop(self) -> None:
        '''Stop polling; in-flight polls are cancelled.'''

    @abstractmethod
    def add_feed(self, url: str, modified_since: datetime | None = None) -> None:
        '''Register a feed URL. modified_since seeds the first conditional fetch.'''
