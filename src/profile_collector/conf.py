"""Collector configuration, read once from the ``PROFILE_COLLECTOR`` Django setting."""

import typing as t

from django.conf import settings
from pydantic import BaseModel, ConfigDict, Field, field_validator

from .engines import ProfilerFlags

SETTING_NAME = "PROFILE_COLLECTOR"
DEFAULT_TABLE = "profile_collector_results"


class CollectorSettings(BaseModel):
    """Immutable collector configuration.

    Attributes:
        enabled: Master switch. When False the collector never touches a profiler.
        ratio: Percentage of requests to profile, clamped to [0, 100].
        database: Django database alias the profile records are written to.
        table: Table the profile records are written to. Read once, when the model is defined.
        profiler_options: Engine options passed through on enable.
        cpu: Collect CPU time.
        memory: Collect memory usage.
        finish_response_before_persist: Flush the response before persisting, where the host supports it.
        collect_server_vars: Store the request environment in the record.
        collect_env_vars: Store the process environment in the record.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    enabled: bool = False
    ratio: int = 100
    database: str = "default"
    table: str = Field(default=DEFAULT_TABLE, min_length=1)
    profiler_options: dict[str, t.Any] = Field(default_factory=dict)
    cpu: bool = True
    memory: bool = True
    finish_response_before_persist: bool = True
    collect_server_vars: bool = True
    collect_env_vars: bool = True

    @field_validator("ratio", mode="after")
    @classmethod
    def clamp_ratio(cls, value: int) -> int:
        """Clamp the sampling ratio to a percentage."""
        return max(0, min(100, value))

    @property
    def flags(self) -> ProfilerFlags:
        return ProfilerFlags(cpu=self.cpu, memory=self.memory)


def load_settings() -> CollectorSettings:
    """Build the collector configuration from Django settings.

    Raises:
        pydantic.ValidationError: If the setting has unknown keys or invalid values.
    """
    return CollectorSettings.model_validate(getattr(settings, SETTING_NAME, {}))


def table_name() -> str:
    """Table for profile records, read without validating the rest of the setting."""
    return getattr(settings, SETTING_NAME, {}).get("table") or DEFAULT_TABLE
