"""Request-scoped profiling for Django.

Profiles a sampled share of requests and management commands and stores each
profile with its request metadata once the response has been sent. The collector
itself lives in ``profile_collector.collector``, which needs the app registry.
"""

from .ambient import AmbientContext
from .exceptions import ConfigurationError, ProfilingError, StoreError, UnexpectedError

__all__ = [
    "AmbientContext",
    "ConfigurationError",
    "ProfilingError",
    "StoreError",
    "UnexpectedError",
]
