"""Request metadata captured alongside each profile."""

import datetime as dt
import typing as t
from dataclasses import dataclass

from django.utils import timezone

from .ambient import AmbientContext
from .conf import CollectorSettings
from .session import ProfilingSession


@dataclass(frozen=True)
class Metadata:
    """Snapshot of what was requested and when.

    Timestamps are plain epoch milliseconds so the snapshot stays independent of
    the store. ``request_ts`` comes from the whole-second start time and
    ``request_ts_micro`` from the fractional one; they are kept side by side as the
    host reported them.
    """

    url: str | None
    simple_url: str | None
    server: dict[str, t.Any]
    get: dict[str, t.Any]
    env: dict[str, t.Any]
    request_ts: int
    request_ts_micro: float
    request_date: str


@dataclass(frozen=True)
class ProfileRecord:
    """The unit handed to the persistence sink."""

    profile: dict[str, t.Any] | None
    meta: Metadata


def capture_metadata(
    session: ProfilingSession, ambient: AmbientContext, config: CollectorSettings
) -> Metadata:
    """Resolve session overrides against ambient defaults.

    Args:
        session: The session whose overrides take precedence.
        ambient: Defaults for the current request.
        config: Controls whether server and environment variables are collected.

    Returns:
        The metadata for the record. Disabled collections are stored as empty maps.
    """
    if ambient.request_time is None or ambient.request_time_float is None:
        ambient.ensure_request_time()
    request_time = t.cast(int, ambient.request_time)
    request_time_float = t.cast(float, ambient.request_time_float)

    url = session.url if session.url is not None else ambient.url
    simple_url = session.aggregation_url if session.aggregation_url is not None else url

    server: dict[str, t.Any] = {}
    if config.collect_server_vars:
        server = session.server_vars if session.server_vars is not None else ambient.server_vars

    env: dict[str, t.Any] = {}
    if config.collect_env_vars:
        env = session.env_vars if session.env_vars is not None else ambient.env_vars

    started = timezone.localtime(dt.datetime.fromtimestamp(request_time, tz=dt.timezone.utc))
    return Metadata(
        url=url,
        simple_url=simple_url,
        server=dict(server),
        get=dict(ambient.query_params),
        env=dict(env),
        request_ts=request_time * 1000,
        request_ts_micro=request_time_float * 1000.0,
        request_date=started.strftime("%Y-%m-%d"),
    )
