'''
Runtime configuration from TIDINGS_* environment variables (optionally a .env file).
'''

from __future__ import annotations

import os
from collections.abc import Callable, Mapping
from dataclasses import dataclass, fields
from pathlib import Path
from typing import Any

from dotenv import dotenv_values

from tidings.fetchers.transport import DEFAULT_USER_AGENT

ENV_PREFIX = 'TIDINGS_'

# field annotation (a string under postponed evaluation) -> parser
_CASTS: dict[str, Callable[[str], Any]] = {'int': int, 'float': float, 'str': str}


def _load_env(env_file: Path | None) -> dict[str, str]:
    '''Merge env_file values with os.environ; the process environment wins.'''
    values: dict[str, str] = {}
    if env_file is not None and env_file.exists():
        values.update({k: v for k, v in dotenv_values(env_file).items() if v is not None})
    values.update(os.environ)
    return values


def _coerce(env: Mapping[str, str], name: str, cast: Callable[[str], Any]) -> Any:
    var = ENV_PREFIX + name.upper()
    raw = env[var].strip()
    try:
        return cast(raw)
    except ValueError as e:
        raise ValueError(f'{var}: invalid value {raw!r}') from e


def _from_env(cls, env_file: Path | None, overrides: dict[str, Any]):
    env = _load_env(env_file)
    kwargs: dict[str, Any] = {}
    for f in fields(cls):
        if ENV_PREFIX + f.name.upper() in env:
            kwargs[f.name] = _coerce(env, f.name, _CASTS[f.type])
    kwargs.update({k: v for k, v in overrides.items() if v is not None})
    return cls(**kwargs)


@dataclass
class FetchConfig:
    '''HTTP transport settings.'''

    timeout: float = 30.0
    user_agent: str = DEFAULT_USER_AGENT

    @classmethod
    def from_env(cls, env_file: Path | None = None, **overrides: Any) -> FetchConfig:
        '''Build config from env vars (TIDINGS_TIMEOUT, TIDINGS_USER_AGENT).'''
        return _from_env(cls, env_file, overrides)


@dataclass
class ScheduleConfig:
    '''Polling policy. Delays and durations are in seconds.'''

    min_delay: int = 3600
    sleepy_delay: int = 86400
    sleepy_duration: int = 7 * 86400
    margin_ratio: float = 0.1
    max_concurrency: int = 10
    retry_attempts: int = 3
    error_delay: int = 3600

    def __post_init__(self) -> None:
        for name in ('min_delay', 'sleepy_delay', 'max_concurrency', 'retry_attempts', 'error_delay'):
            if getattr(self, name) < 1:
                raise ValueError(f'{name} must be at least 1')
        if self.sleepy_duration < 0 or self.margin_ratio < 0:
            raise ValueError('sleepy_duration and margin_ratio must not be negative')

    @classmethod
    def from_env(cls, env_file: Path | None = None, **overrides: Any) -> ScheduleConfig:
        '''Build config from env vars, e.g. TIDINGS_MIN_DELAY, TIDINGS_MAX_CONCURRENCY.'''
        return _from_env(cls, env_file, overrides)

    def next_update_kwargs(self) -> dict[str, Any]:
        '''Keyword arguments for UpdateStats.compute_next_update().'''
        return {
            'min_delay': self.min_delay,
            'sleepy_delay': self.sleepy_delay,
            'sleepy_duration': self.sleepy_duration,
            'margin_ratio': self.margin_ratio,
        }
