"""Exceptions raised by the profile collector."""


class ProfilingError(Exception):
    """Base class for profile collector failures."""


class ConfigurationError(ProfilingError):
    """Profiling is enabled but a required capability is missing.

    Raised synchronously from ``ProfileCollector.start()``. Installers are expected
    to log it and keep serving the request without profiling.
    """


class StoreError(ProfilingError):
    """A profile record could not be written to the store."""


class UnexpectedError(ProfilingError):
    """Any other failure while stopping the profiler, capturing metadata or serializing."""


class EngineBusyError(ProfilingError):
    """A process-exclusive engine is already profiling another request.

    ``ProfileCollector.start()`` skips the request instead of raising.
    """
