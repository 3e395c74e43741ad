'''
Feed snapshot model consumed by UpdateStats, plus a feedparser-backed parser.

Only timestamps matter for scheduling; title/link/id ride along for callers.
'''

import io
from collections.abc import Iterator
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Protocol

import feedparser
import structlog


logger = structlog.get_logger()


class FeedItem(Protocol):
    last_modified: datetime | None


class FeedModel(Protocol):
    last_modified: datetime | None

    def __iter__(self) -> Iterator[FeedItem]: ...


@dataclass(frozen=True)
class ParsedItem:
    '''A single feed entry.'''

    last_modified: datetime | None = None
    id: str = ''
    title: str = ''
    link: str = ''


@dataclass(frozen=True)
class ParsedFeed:
    '''Ordered entries plus the feed-level fallback timestamp.'''

    items: tuple[ParsedItem, ...] = ()
    last_modified: datetime | None = None
    title: str = ''

    def __iter__(self) -> Iterator[ParsedItem]:
        return iter(self.items)

    def __len__(self) -> int:
        return len(self.items)

    @classmethod
    def empty(cls, last_modified: datetime | None = None) -> 'ParsedFeed':
        '''Snapshot used when the server reports the feed unchanged (304).'''
        return cls(items=(), last_modified=last_modified)


def _struct_to_datetime(entry, *keys: str) -> datetime | None:
    '''First usable feedparser *_parsed time tuple among keys, as aware UTC.'''
    for key in keys:
        date_tuple = entry.get(key)
        if date_tuple:
            try:
                return datetime(*date_tuple[:6], tzinfo=timezone.utc)
            except (ValueError, TypeError):
                continue
    return None


def parse_feed(body: bytes) -> ParsedFeed:
    '''
    Parse an RSS/Atom/RDF document into a ParsedFeed.

    Malformed documents are parsed leniently; feedparser's bozo flag is logged,
    not raised.
    '''
    # a file object, so feedparser never treats the body as a path or URL
    parsed = feedparser.parse(io.BytesIO(body))
    if parsed.bozo and parsed.get('bozo_exception'):
        logger.warning('feed parsing warning', error=str(parsed.bozo_exception))

    items = []
    for entry in parsed.entries:
        items.append(ParsedItem(
            last_modified=_struct_to_datetime(entry, 'updated_parsed', 'published_parsed'),
            id=str(entry.get('id') or entry.get('guid') or entry.get('link', '')),
            title=entry.get('title', ''),
            link=entry.get('link', ''),
        ))
    return ParsedFeed(
        items=tuple(items),
        last_modified=_struct_to_datetime(parsed.feed, 'updated_parsed', 'published_parsed'),
        title=parsed.feed.get('title', ''),
    )
