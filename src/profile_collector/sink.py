"""Writes profile records to the store."""

import datetime as dt
import typing as t
import uuid

import orjson
import structlog
from django.core.exceptions import ImproperlyConfigured
from django.db import DatabaseError, connections
from django.utils.connection import ConnectionDoesNotExist

from .exceptions import StoreError, UnexpectedError
from .metadata import ProfileRecord
from .models import ProfileResult

logger = structlog.get_logger(__name__)


def to_document(value: t.Any) -> t.Any:
    """Coerce a value into plain JSON types. Values JSON cannot hold become strings."""
    return orjson.loads(orjson.dumps(value, default=str, option=orjson.OPT_NON_STR_KEYS))


def millis_to_datetime(millis: float) -> dt.datetime:
    """Convert epoch milliseconds into an aware UTC datetime."""
    return dt.datetime.fromtimestamp(millis / 1000.0, tz=dt.timezone.utc)


class PersistenceSink:
    """Inserts one ``ProfileResult`` row per record into the configured database alias.

    Django owns the connection; each call uses whatever connection the alias hands
    out and nothing here depends on it being reused.
    """

    def __init__(self, alias: str = "default") -> None:
        self.alias = alias

    def is_available(self) -> bool:
        """Check that the alias is configured and its database driver loads."""
        try:
            connections[self.alias]
        except (ConnectionDoesNotExist, ImproperlyConfigured):
            return False
        return True

    def persist(self, record: ProfileRecord) -> uuid.UUID:
        """Store a record in a single insert.

        Args:
            record: The profile and its metadata.

        Returns:
            The id of the stored row.

        Raises:
            UnexpectedError: If the record cannot be serialized.
            StoreError: If the store cannot be reached or the insert fails.
        """
        meta = record.meta
        try:
            fields = {
                "profile": to_document(record.profile) if record.profile is not None else None,
                "server": to_document(meta.server),
                "get": to_document(meta.get),
                "env": to_document(meta.env),
            }
        except TypeError as e:
            raise UnexpectedError(f"Could not serialize profile record: {e}") from e

        try:
            result = ProfileResult.objects.using(self.alias).create(
                url=meta.url,
                simple_url=meta.simple_url,
                request_ts=millis_to_datetime(meta.request_ts),
                request_ts_micro=millis_to_datetime(meta.request_ts_micro),
                request_date=meta.request_date,
                **fields,
            )
        except DatabaseError as e:
            raise StoreError(f"Could not write profile record to '{self.alias}': {e}") from e

        logger.debug("Profile record stored", record_id=str(result.pk), alias=self.alias, url=meta.url)
        return t.cast(uuid.UUID, result.pk)
