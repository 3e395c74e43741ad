'''Redirect target resolution and lenient path normalization.'''

import re

import httpx

from tidings.fetchers.errors import ServerError

ALLOWED_REDIRECT_SCHEMES = frozenset({'http', 'https'})

_SCHEME_PATTERN = re.compile(r'^([a-z][a-z0-9+.-]*):', re.IGNORECASE)
_SUFFIX_PATTERN = re.compile(r'[?#]')


def normalize_path(path: str) -> str:
    '''
    Collapse '.', '..' and empty segments in a URL path.

    Lenient on purpose: a '..' with nothing left to pop is kept as a literal
    segment instead of being rejected.
    '''
    segments: list[str] = []
    for segment in path.split('/'):
        if segment in ('', '.'):
            continue
        if segment == '..':
            if segments and segments[-1] != '..':
                segments.pop()
            else:
                segments.append(segment)
            continue
        segments.append(segment)
    normalized = '/'.join(segments)
    if path.startswith('/'):
        normalized = '/' + normalized
    return normalized or '/'


def _split_suffix(location: str) -> tuple[str, str]:
    '''Split "path?query#frag" into ("path", "?query#frag").'''
    m = _SUFFIX_PATTERN.search(location)
    if not m:
        return location, ''
    return location[: m.start()], location[m.start() :]


def resolve_redirect_url(current_url: str, location: str) -> str:
    '''
    Turn a Location header into an absolute URL relative to current_url.

    Raises ServerError for non-http(s) schemes or an unparsable current_url.
    '''
    m = _SCHEME_PATTERN.match(location)
    if m:
        scheme = m.group(1).lower()
        if scheme not in ALLOWED_REDIRECT_SCHEMES:
            raise ServerError(f'invalid redirect scheme: {scheme}', status_code=400)
        return location

    try:
        base = httpx.URL(current_url)
    except httpx.InvalidURL as e:
        raise ServerError(f'invalid URL: {current_url}', status_code=500) from e
    if not base.host:
        raise ServerError(f'invalid URL: {current_url}', status_code=500)

    origin = f'{base.scheme or "http"}://{base.netloc.decode("ascii")}'
    path, suffix = _split_suffix(location)

    if path.startswith('/'):
        return origin + normalize_path(path) + suffix

    base_dir = base.path.rsplit('/', 1)[0]
    return origin + normalize_path(f'{base_dir}/{path}') + suffix
