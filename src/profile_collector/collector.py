"""Request profiling lifecycle.

The collector decides whether a request is profiled, starts the engine, and after
the host has sent the response stops the engine and stores the profile together
with the request metadata.

Typical flow for one request::

    collector.start(ambient)   # installer, before the request is handled
    ...                        # the request itself
    collector.finish()         # post-response hook, registered by start()

Nothing after the response has been sent may reach the caller: ``finish()`` logs
every failure and returns normally.
"""

import functools
import threading
import typing as t
from contextvars import ContextVar

import structlog
from django.core.signals import setting_changed
from django.dispatch import receiver

from .ambient import AmbientContext
from .conf import SETTING_NAME, CollectorSettings, load_settings
from .engines import DEFAULT_ENGINES, ProfilerAdapter, ProfilerEngine
from .exceptions import ConfigurationError, EngineBusyError, ProfilingError, StoreError, UnexpectedError
from .metadata import ProfileRecord, capture_metadata
from .sampler import Sampler
from .session import ProfilingSession, SessionState
from .sink import PersistenceSink

logger = structlog.get_logger(__name__)


class ProfileCollector:
    """Owns the per-request profiling state machine.

    One collector serves a whole process. Each request gets its own
    ``ProfilingSession``, kept in a context variable so that requests handled on
    different threads never see each other's session.
    """

    def __init__(
        self,
        config: CollectorSettings,
        sampler: Sampler | None = None,
        engines: t.Sequence[type[ProfilerEngine]] = DEFAULT_ENGINES,
        sink: PersistenceSink | None = None,
    ) -> None:
        self.config = config
        self.sampler = sampler or Sampler()
        self.engines = tuple(engines)
        self.sink = sink or PersistenceSink(config.database)
        self._session: ContextVar[ProfilingSession | None] = ContextVar(
            f"profile_collector_session_{id(self)}", default=None
        )
        self._hook_lock = threading.Lock()
        self._hook_registered = False

    # -- state ----------------------------------------------------------------

    @property
    def session(self) -> ProfilingSession | None:
        """The current request's session, if ``start()`` has been called for it."""
        return self._session.get()

    def is_enabled(self) -> bool:
        return self.config.enabled

    def is_supported(self) -> bool:
        """Check that both the store and at least one profiling engine are usable."""
        return self.sink.is_available() and ProfilerAdapter(self.engines).is_supported()

    def is_running(self) -> bool:
        session = self.session
        return session is not None and session.running

    # -- overrides ------------------------------------------------------------

    def get_url(self) -> str | None:
        session = self.session
        if session is None:
            return None
        return session.url if session.url is not None else session.ambient.url

    def set_url(self, url: str) -> "ProfileCollector":
        """Override the URL recorded for the current request."""
        return self._override("url", url)

    def get_aggregation_url(self) -> str | None:
        session = self.session
        if session is not None and session.aggregation_url is not None:
            return session.aggregation_url
        return self.get_url()

    def set_aggregation_url(self, url: str) -> "ProfileCollector":
        """Set the grouping key for the current request, e.g. the path with ids stripped."""
        return self._override("aggregation_url", url)

    def set_server_vars(self, server_vars: dict[str, t.Any]) -> "ProfileCollector":
        return self._override("server_vars", server_vars)

    def set_env_vars(self, env_vars: dict[str, str]) -> "ProfileCollector":
        return self._override("env_vars", env_vars)

    def _override(self, name: str, value: t.Any) -> "ProfileCollector":
        session = self.session
        if session is None:
            logger.debug("No profiling session for this request, ignoring override", field=name)
            return self
        setattr(session, name, value)
        return self

    # -- lifecycle ------------------------------------------------------------

    def start(self, ambient: AmbientContext) -> bool:
        """Start profiling the request described by ``ambient`` if it is sampled.

        Args:
            ambient: Defaults and host primitives for the current request.

        Returns:
            True if profiling started. False if disabled, already running for this
            request, not sampled, or the engine is busy with another request.

        Raises:
            ConfigurationError: If profiling is enabled but no store or engine is usable.
        """
        if not self.config.enabled:
            return False

        session = self._bind_session(ambient)
        if session.running:
            return False

        if not self.is_supported():
            raise ConfigurationError(
                f"Profiling requires a usable '{self.config.database}' database and a supported profiling engine"
            )

        if not self.sampler.should_sample(self.config.ratio):
            return False

        ambient.ensure_request_time()
        try:
            session.profiler.enable(self.config.flags, self.config.profiler_options)
        except EngineBusyError:
            logger.debug("Profiler busy, request not profiled", url=ambient.url)
            return False
        self._register_hook(ambient)
        session.state = SessionState.RUNNING
        return True

    def stop(self) -> bool:
        """Stop profiling the current request and store the result.

        Returns:
            True if a running session was stopped, whether or not the record could be
            stored. False if nothing was running.

        Raises:
            UnexpectedError: If stopping the engine or building the record fails.
        """
        session = self.session
        if session is None or not session.running:
            return False

        try:
            try:
                profile = session.profiler.disable()
            finally:
                session.state = SessionState.STOPPED
                self._session.set(None)
            record = ProfileRecord(profile=profile, meta=capture_metadata(session, session.ambient, self.config))
        except ProfilingError:
            raise
        except Exception as e:
            raise UnexpectedError(f"Failed to collect profile: {e}") from e

        try:
            self.sink.persist(record)
        except (StoreError, UnexpectedError):
            logger.exception("Failed to store profile record", url=session.ambient.url)
        return True

    def finish(self, *args: t.Any, **kwargs: t.Any) -> None:
        """Post-response hook: finish the response, then stop and store the profile.

        Accepts and ignores any arguments so it can be connected to Django signals
        and ``atexit`` alike. Never raises.
        """
        session = self.session
        if session is None or not session.running:
            return

        ambient = session.ambient
        try:
            try:
                self._release_response(ambient)
            finally:
                self.stop()
        except Exception:
            logger.exception("profile-collector failed after the response was sent", url=ambient.url)

    def _release_response(self, ambient: AmbientContext) -> None:
        """Let the caller go before the profile is stored."""
        if ambient.ignore_abort is not None:
            ambient.ignore_abort()
        if ambient.close_session is not None:
            ambient.close_session()
        if self.config.finish_response_before_persist and ambient.finish_response is not None:
            ambient.finish_response()

    def _bind_session(self, ambient: AmbientContext) -> ProfilingSession:
        """Return the session for ``ambient``, replacing one left over from an earlier request."""
        session = self.session
        if session is not None and session.ambient is ambient:
            return session

        if session is not None and session.running:
            logger.warning("Discarding profiling session that was never finished", url=session.ambient.url)
            session.profiler.disable()

        session = ProfilingSession(ambient=ambient, profiler=ProfilerAdapter(self.engines))
        self._session.set(session)
        return session

    def _register_hook(self, ambient: AmbientContext) -> None:
        if self._hook_registered:
            return
        with self._hook_lock:
            if self._hook_registered:
                return
            if ambient.register_hook is None:
                logger.warning("Host offers no post-response hook, profiles must be finished manually")
                return
            ambient.register_hook(self.finish)
            self._hook_registered = True


@functools.cache
def get_collector() -> ProfileCollector:
    """Process-wide collector built from the ``PROFILE_COLLECTOR`` setting."""
    return ProfileCollector(load_settings())


@receiver(setting_changed)
def _reset_collector(*, setting: str, **kwargs: t.Any) -> None:
    if setting == SETTING_NAME:
        get_collector.cache_clear()
