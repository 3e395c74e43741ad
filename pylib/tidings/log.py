'''structlog setup for applications embedding tidings.'''

import logging

import structlog
from structlog.contextvars import merge_contextvars
from structlog.dev import ConsoleRenderer, plain_traceback, set_exc_info
from structlog.processors import StackInfoRenderer, TimeStamper, add_log_level


def configure_logging(level: str = 'INFO') -> None:
    '''
    Console logging with plain Python tracebacks. Events below level are dropped.
    '''
    numeric = logging.getLevelName(level.upper())
    if not isinstance(numeric, int):
        raise ValueError(f'Unknown log level: {level}')
    structlog.configure(
        processors=[
            merge_contextvars,
            add_log_level,
            StackInfoRenderer(),
            set_exc_info,
            TimeStamper(fmt='%Y-%m-%d %H:%M:%S', utc=False),
            ConsoleRenderer(exception_formatter=plain_traceback),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(numeric),
    )
