"""Database router sending profile records to the configured store alias."""

import typing as t

from django.db.models import Model

from .conf import load_settings

APP_LABEL = "profile_collector"


class ProfileCollectorRouter:
    """Routes the profile_collector app to ``PROFILE_COLLECTOR["database"]``.

    Add ``"profile_collector.routers.ProfileCollectorRouter"`` to ``DATABASE_ROUTERS``
    when the records live in their own database.
    """

    def _alias(self) -> str:
        return load_settings().database

    def db_for_read(self, model: type[Model], **hints: t.Any) -> str | None:
        return self._alias() if model._meta.app_label == APP_LABEL else None

    def db_for_write(self, model: type[Model], **hints: t.Any) -> str | None:
        return self._alias() if model._meta.app_label == APP_LABEL else None

    def allow_migrate(self, db: str, app_label: str, model_name: str | None = None, **hints: t.Any) -> bool | None:
        if app_label == APP_LABEL:
            return db == self._alias()
        return None
