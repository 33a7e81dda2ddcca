"""Profile collector settings, read from the environment.

PROFILING_ENABLE                  turn request profiling on
PROFILING_RATIO                   percentage of requests to profile (default 100)
PROFILING_COLLECTION_NAME         table the records are written to (default profile_collector_results)
PROFILING_DB_NAME                 store records in a dedicated PostgreSQL database
PROFILING_DB_HOST / _PORT / _USERNAME / _PASSWORD
PROFILING_FINISH_RESPONSE         flush the response before storing (default on)
PROFILING_COLLECT_SERVER_VARS     store the request environment (default on)
PROFILING_COLLECT_ENV_VARS        store the process environment (default on)
PROFILING_CPU / PROFILING_MEMORY  engine flags (default on)
"""

import typing as t

from decouple import config

from .base import DATABASES

PROFILING_APP_NAME = "profile-collector"
PROFILING_DB_NAME = config("PROFILING_DB_NAME", default="")

PROFILE_COLLECTOR: dict[str, t.Any] = {
    "enabled": config("PROFILING_ENABLE", default=False, cast=bool),
    "ratio": config("PROFILING_RATIO", default=100, cast=int),
    "database": "default",
    "table": config("PROFILING_COLLECTION_NAME", default="profile_collector_results"),
    "profiler_options": {},
    "cpu": config("PROFILING_CPU", default=True, cast=bool),
    "memory": config("PROFILING_MEMORY", default=True, cast=bool),
    "finish_response_before_persist": config("PROFILING_FINISH_RESPONSE", default=True, cast=bool),
    "collect_server_vars": config("PROFILING_COLLECT_SERVER_VARS", default=True, cast=bool),
    "collect_env_vars": config("PROFILING_COLLECT_ENV_VARS", default=True, cast=bool),
}

if PROFILING_DB_NAME:
    DATABASES["profiling"] = {
        "ENGINE": "django.db.backends.postgresql",
        "NAME": PROFILING_DB_NAME,
        "USER": config("PROFILING_DB_USERNAME", default=""),
        "PASSWORD": config("PROFILING_DB_PASSWORD", default=""),
        "HOST": config("PROFILING_DB_HOST", default="localhost"),
        "PORT": config("PROFILING_DB_PORT", default=5432, cast=int),
        "OPTIONS": {"application_name": PROFILING_APP_NAME},
    }
    PROFILE_COLLECTOR["database"] = "profiling"
    DATABASE_ROUTERS = ["profile_collector.routers.ProfileCollectorRouter"]
