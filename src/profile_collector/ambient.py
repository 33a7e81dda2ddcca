"""Request context the collector reads from, passed in explicitly by the installer.

An ``AmbientContext`` carries the defaults for everything the collector records
(URL, request environment, query string, process environment, start time) and the
host primitives it needs after the response has been sent.
"""

import atexit
import os
import signal
import sys
import threading
import time
import typing as t
from dataclasses import dataclass, field
from pathlib import Path

from django.core.signals import request_finished
from django.http import HttpRequest

Hook = t.Callable[..., None]

_SCALAR_TYPES = (str, int, float, bool)


def _parse_request_time_float(value: t.Any) -> float | None:
    """Parse a sub-second start time, accepting a decimal comma from locale-aware servers."""
    if value is None:
        return None
    if isinstance(value, str):
        value = value.replace(",", ".")
    return float(value)


def _flush_std_streams() -> None:
    for stream in (sys.stdout, sys.stderr):
        stream.flush()


def _ignore_interrupts() -> None:
    # signal handlers can only be installed from the main thread
    if threading.current_thread() is threading.main_thread():
        signal.signal(signal.SIGINT, signal.SIG_IGN)


REQUEST_FINISHED_UID = "profile_collector.finish"


def _connect_request_finished(hook: Hook) -> None:
    # one post-response hook per process; a rebuilt collector replaces the old one
    request_finished.disconnect(dispatch_uid=REQUEST_FINISHED_UID)
    request_finished.connect(hook, weak=False, dispatch_uid=REQUEST_FINISHED_UID)


@dataclass
class AmbientContext:
    """Defaults and host primitives for one request or command invocation.

    Attributes:
        url: Request URI with query string, or the command line.
        server_vars: Request/server environment.
        query_params: Query string parameters, one value per key.
        env_vars: Process environment.
        request_time: Request start as integer epoch seconds.
        request_time_float: Request start as fractional epoch seconds.
        finish_response: Flushes the response to the caller, if the host can.
        close_session: Releases any session-affinity resource, if the host has one.
        ignore_abort: Keeps tail work running if the caller disconnects, if the host can.
        register_hook: Registers a callback to run after the response has been sent.
    """

    url: str | None = None
    server_vars: dict[str, t.Any] = field(default_factory=dict)
    query_params: dict[str, t.Any] = field(default_factory=dict)
    env_vars: dict[str, str] = field(default_factory=dict)
    request_time: int | None = None
    request_time_float: float | None = None
    finish_response: t.Callable[[], None] | None = None
    close_session: t.Callable[[], None] | None = None
    ignore_abort: t.Callable[[], None] | None = None
    register_hook: t.Callable[[Hook], None] | None = None

    def ensure_request_time(self, clock: t.Callable[[], float] | None = None) -> None:
        """Fill in missing start times. Existing values are never overwritten."""
        now = (clock or time.time)()
        if self.request_time is None:
            self.request_time = int(now)
        if self.request_time_float is None:
            self.request_time_float = now

    @classmethod
    def from_request(cls, request: HttpRequest) -> "AmbientContext":
        """Build the context for a Django HTTP request.

        The response has already been written to the client when Django sends
        ``request_finished``, so no finish/abort primitives are needed.
        """
        meta = request.META
        request_time = meta.get("REQUEST_TIME")
        return cls(
            url=request.get_full_path(),
            server_vars={key: value for key, value in meta.items() if isinstance(value, _SCALAR_TYPES)},
            query_params=request.GET.dict(),
            env_vars=dict(os.environ),
            request_time=int(request_time) if request_time is not None else None,
            request_time_float=_parse_request_time_float(meta.get("REQUEST_TIME_FLOAT")),
            register_hook=_connect_request_finished,
        )

    @classmethod
    def from_argv(cls, argv: t.Sequence[str]) -> "AmbientContext":
        """Build the context for a command-line invocation.

        The URL is the program's base name followed by its arguments.
        """
        args = list(argv)
        url = " ".join([Path(args[0]).name, *args[1:]]) if args else None
        return cls(
            url=url,
            server_vars={"argv": args, "argc": len(args), "SCRIPT_NAME": args[0] if args else ""},
            env_vars=dict(os.environ),
            finish_response=_flush_std_streams,
            ignore_abort=_ignore_interrupts,
            register_hook=atexit.register,
        )
