'''
Fetch error taxonomy. Every failed fetch surfaces as exactly one of these.

Nothing in the fetch pipeline retries or recovers; callers (e.g. the poll
scheduler) decide what to do.
'''

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from tidings.fetchers.transport import TransportResponse


class FetchError(Exception):
    '''Base for all fetch failures. duration: seconds spent on the last hop.'''

    def __init__(self, message: str, duration: float = 0.0) -> None:
        super().__init__(message)
        self.duration = duration


class NotFoundError(FetchError):
    '''The server answered 404.'''

    def __init__(self, message: str = 'not found', duration: float = 0.0) -> None:
        super().__init__(message, duration)


class ServerError(FetchError):
    '''
    Unexpected status, unusable redirect or too many redirects.

    response is the raw transport response when one exists; synthetic failures
    (too many redirects, bad redirect scheme) only carry a status_code.
    '''

    def __init__(
        self,
        message: str,
        *,
        status_code: int | None = None,
        response: TransportResponse | None = None,
        duration: float = 0.0,
    ) -> None:
        super().__init__(message, duration)
        self.response = response
        if status_code is None and response is not None:
            status_code = response.status_code
        self.status_code = status_code


class TransportError(FetchError):
    '''DNS, connection, TLS or timeout failure. The original exception is chained as __cause__.'''
