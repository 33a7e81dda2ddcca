"""Per-request profiling session."""

import enum
import typing as t
from dataclasses import dataclass

from .ambient import AmbientContext
from .engines import ProfilerAdapter


class SessionState(enum.Enum):
    IDLE = "idle"
    RUNNING = "running"
    STOPPED = "stopped"


@dataclass
class ProfilingSession:
    """Profiling state for one request, owned by the collector.

    The override fields stay ``None`` until a caller sets them; ``None`` means
    "use the ambient default".
    """

    ambient: AmbientContext
    profiler: ProfilerAdapter
    state: SessionState = SessionState.IDLE
    url: str | None = None
    aggregation_url: str | None = None
    server_vars: dict[str, t.Any] | None = None
    env_vars: dict[str, str] | None = None

    @property
    def running(self) -> bool:
        return self.state is SessionState.RUNNING
