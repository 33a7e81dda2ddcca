"""Sampling engines and the adapter that picks one of them at runtime.

Engines are probed in order and the first installed one wins:

1. pyinstrument (statistical sampler, per thread)
2. yappi (deterministic, process-wide)
3. cProfile (standard library, always available, one session per process at a time)

Every engine returns a JSON-friendly dict tagged with the engine name and carrying
``main()`` totals. The call-graph engines add xhprof-style ``"caller==>callee"`` edges.
"""

import cProfile
import importlib.util
import pstats
import threading
import time
import tracemalloc
import typing as t
from dataclasses import dataclass

import orjson
import structlog

from .exceptions import ConfigurationError, EngineBusyError

logger = structlog.get_logger(__name__)

MAIN = "main()"


@dataclass(frozen=True)
class ProfilerFlags:
    """Engine-neutral profiling flags, translated by each engine."""

    cpu: bool = True
    memory: bool = True


def _micros(seconds: float) -> int:
    return int(seconds * 1_000_000)


class _MemoryTracker:
    """Reports current and peak traced allocations for the running sessions.

    tracemalloc is process-wide, so every session shares one tracing run. Tracing
    starts with the first session and stops when the last one finishes. ``pmu`` is
    the process peak since the oldest running session started, not a per-request peak.
    Tracing started by someone else is left running.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._sessions = 0
        self._owns_tracing = False

    def start(self) -> None:
        with self._lock:
            if self._sessions == 0:
                if not tracemalloc.is_tracing():
                    tracemalloc.start()
                    self._owns_tracing = True
                tracemalloc.reset_peak()
            self._sessions += 1

    def stop(self) -> dict[str, int]:
        with self._lock:
            current, peak = tracemalloc.get_traced_memory()
            self._sessions -= 1
            if self._sessions == 0 and self._owns_tracing:
                tracemalloc.stop()
                self._owns_tracing = False
        return {"mu": current, "pmu": peak}


_memory_tracker = _MemoryTracker()

# cProfile sits on sys.monitoring, which allows a single active profiler per interpreter
_cprofile_lock = threading.Lock()


class ProfilerEngine:
    """Base class for a sampling engine.

    Subclasses name the module they need in ``module`` and implement ``_start`` and
    ``_stop``. Wall time, CPU time and memory totals are measured here so every engine
    reports them the same way.
    """

    name: t.ClassVar[str] = ""
    module: t.ClassVar[str | None] = None

    def __init__(self) -> None:
        self.flags = ProfilerFlags()
        self._tracks_memory = False
        self._wall_started = 0.0
        self._cpu_started = 0.0

    @classmethod
    def is_available(cls) -> bool:
        """Check whether the engine's library can be imported."""
        return cls.module is None or importlib.util.find_spec(cls.module) is not None

    def enable(self, flags: ProfilerFlags, options: dict[str, t.Any]) -> None:
        """Start profiling the current thread of execution.

        Raises:
            EngineBusyError: If the engine is process-exclusive and already in use.
        """
        self.flags = flags
        if flags.memory:
            _memory_tracker.start()
            self._tracks_memory = True
        self._wall_started = time.perf_counter()
        self._cpu_started = time.process_time()
        try:
            self._start(options)
        except Exception:
            if self._tracks_memory:
                _memory_tracker.stop()
                self._tracks_memory = False
            raise

    def disable(self) -> dict[str, t.Any]:
        """Stop profiling and return the collected profile."""
        memory: dict[str, int] = {}
        try:
            payload = self._stop()
        finally:
            if self._tracks_memory:
                memory = _memory_tracker.stop()
                self._tracks_memory = False
        totals: dict[str, int] = {"ct": 1, "wt": _micros(time.perf_counter() - self._wall_started)}
        if self.flags.cpu:
            totals["cpu"] = _micros(time.process_time() - self._cpu_started)
        totals.update(memory)
        return {"engine": self.name, MAIN: totals, **payload}

    def _start(self, options: dict[str, t.Any]) -> None:
        raise NotImplementedError

    def _stop(self) -> dict[str, t.Any]:
        raise NotImplementedError


class PyinstrumentEngine(ProfilerEngine):
    """Statistical sampling via pyinstrument.

    Options: ``interval`` (seconds between samples), ``async_mode``.
    """

    name = "pyinstrument"
    module = "pyinstrument"

    def _start(self, options: dict[str, t.Any]) -> None:
        from pyinstrument import Profiler  # type: ignore[import-not-found]

        self._profiler = Profiler(
            interval=options.get("interval", 0.001),
            async_mode=options.get("async_mode", "disabled"),
        )
        self._profiler.start()

    def _stop(self) -> dict[str, t.Any]:
        from pyinstrument.renderers import JSONRenderer  # type: ignore[import-not-found]

        session = self._profiler.stop()
        return {"session": orjson.loads(JSONRenderer().render(session))}


class YappiEngine(ProfilerEngine):
    """Deterministic profiling via yappi.

    yappi keeps process-wide state, so concurrent sessions on other threads share it.
    Options: ``builtins``, ``profile_threads``.
    """

    name = "yappi"
    module = "yappi"

    def _start(self, options: dict[str, t.Any]) -> None:
        import yappi  # type: ignore[import-not-found]

        yappi.clear_stats()
        yappi.set_clock_type("cpu" if self.flags.cpu else "wall")
        yappi.start(
            builtins=options.get("builtins", False),
            profile_threads=options.get("profile_threads", False),
        )

    def _stop(self) -> dict[str, t.Any]:
        import yappi  # type: ignore[import-not-found]

        yappi.stop()
        metric = "cpu" if self.flags.cpu else "wt"
        edges: dict[str, t.Any] = {}
        for stat in yappi.get_func_stats():
            for child in stat.children:
                edges[f"{stat.full_name}==>{child.full_name}"] = {"ct": child.ncall, metric: _micros(child.ttot)}
        yappi.clear_stats()
        return edges


class CProfileEngine(ProfilerEngine):
    """Deterministic profiling via the standard library's cProfile.

    Only one cProfile session can run per process. A request that finds it taken is
    not profiled. Options: ``builtins``.
    """

    name = "cprofile"

    def _start(self, options: dict[str, t.Any]) -> None:
        if not _cprofile_lock.acquire(blocking=False):
            logger.debug("cProfile is busy with another request, skipping")
            raise EngineBusyError("cProfile is already profiling another request")
        try:
            self._profile = cProfile.Profile(builtins=options.get("builtins", True))
            self._profile.enable()
        except Exception:
            _cprofile_lock.release()
            raise

    def _stop(self) -> dict[str, t.Any]:
        try:
            self._profile.create_stats()
        finally:
            _cprofile_lock.release()
        stats = self._profile.stats  # type: ignore[attr-defined]
        edges: dict[str, t.Any] = {}
        for callee, (_cc, calls, _tt, cumulative, callers) in stats.items():
            callee_name = pstats.func_std_string(callee)
            if not callers:
                edges[f"{MAIN}==>{callee_name}"] = {"ct": calls, "wt": _micros(cumulative)}
            for caller, caller_stats in callers.items():
                edges[f"{pstats.func_std_string(caller)}==>{callee_name}"] = {
                    "ct": caller_stats[0],
                    "wt": _micros(caller_stats[3]),
                }
        return edges


DEFAULT_ENGINES: tuple[type[ProfilerEngine], ...] = (PyinstrumentEngine, YappiEngine, CProfileEngine)


class ProfilerAdapter:
    """Uniform start/stop interface over whichever engine is installed.

    The engine is chosen at ``enable()`` time and forgotten at ``disable()``; one
    adapter drives at most one engine at a time.
    """

    def __init__(self, engines: t.Sequence[type[ProfilerEngine]] = DEFAULT_ENGINES) -> None:
        self.engines = tuple(engines)
        self.active: ProfilerEngine | None = None

    def is_supported(self) -> bool:
        """Check whether at least one engine is installed."""
        return any(engine.is_available() for engine in self.engines)

    def enable(self, flags: ProfilerFlags, options: dict[str, t.Any]) -> None:
        """Start the first available engine.

        Raises:
            ConfigurationError: If no engine is installed.
        """
        engine_class = next((engine for engine in self.engines if engine.is_available()), None)
        if engine_class is None:
            raise ConfigurationError("No supported profiling engine is installed")

        engine = engine_class()
        engine.enable(flags, options)
        self.active = engine
        logger.debug("Profiler engine enabled", engine=engine.name, cpu=flags.cpu, memory=flags.memory)

    def disable(self) -> dict[str, t.Any] | None:
        """Stop the active engine and return its profile, or None if nothing is running."""
        if self.active is None:
            return None
        engine, self.active = self.active, None
        return engine.disable()
