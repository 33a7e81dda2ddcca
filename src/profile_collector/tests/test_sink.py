"""Tests for the persistence sink."""

import datetime as dt
import decimal
from unittest import mock

import pytest
from django.db import OperationalError

from profile_collector.exceptions import StoreError, UnexpectedError
from profile_collector.metadata import Metadata, ProfileRecord
from profile_collector.models import ProfileResult
from profile_collector.sink import PersistenceSink, millis_to_datetime, to_document

pytestmark = pytest.mark.django_db


@pytest.fixture
def record() -> ProfileRecord:
    return ProfileRecord(
        profile={"main()": {"ct": 1, "wt": 1500}},
        meta=Metadata(
            url="/foo?x=1",
            simple_url="/foo",
            server={"REQUEST_METHOD": "GET"},
            get={"x": "1"},
            env={"HOME": "/root"},
            request_ts=1709640000000,
            request_ts_micro=1709640000250.0,
            request_date="2024-03-05",
        ),
    )


def test_persist_stores_the_whole_record(record: ProfileRecord) -> None:
    record_id = PersistenceSink("default").persist(record)

    result = ProfileResult.objects.get(pk=record_id)
    assert result.profile == {"main()": {"ct": 1, "wt": 1500}}
    assert result.url == "/foo?x=1"
    assert result.simple_url == "/foo"
    assert result.server == {"REQUEST_METHOD": "GET"}
    assert result.get == {"x": "1"}
    assert result.env == {"HOME": "/root"}
    assert result.request_date == "2024-03-05"


def test_timestamps_become_datetimes(record: ProfileRecord) -> None:
    record_id = PersistenceSink("default").persist(record)

    result = ProfileResult.objects.get(pk=record_id)
    assert result.request_ts == dt.datetime(2024, 3, 5, 12, 0, tzinfo=dt.timezone.utc)
    assert result.request_ts_micro == dt.datetime(2024, 3, 5, 12, 0, 0, 250000, tzinfo=dt.timezone.utc)


def test_null_profile_is_stored(record: ProfileRecord) -> None:
    record_id = PersistenceSink("default").persist(ProfileRecord(profile=None, meta=record.meta))

    assert ProfileResult.objects.get(pk=record_id).profile is None


def test_database_errors_become_store_errors(record: ProfileRecord) -> None:
    with mock.patch.object(ProfileResult.objects, "using") as using:
        using.return_value.create.side_effect = OperationalError("connection refused")
        with pytest.raises(StoreError):
            PersistenceSink("default").persist(record)

    assert ProfileResult.objects.count() == 0


def test_unserializable_profile_is_an_unexpected_error(record: ProfileRecord) -> None:
    with mock.patch("profile_collector.sink.to_document", side_effect=TypeError("nope")):
        with pytest.raises(UnexpectedError):
            PersistenceSink("default").persist(record)


def test_is_available() -> None:
    assert PersistenceSink("default").is_available()
    assert not PersistenceSink("no-such-alias").is_available()


def test_to_document_coerces_non_json_values() -> None:
    assert to_document({1: decimal.Decimal("1.5"), "when": dt.date(2024, 3, 5)}) == {
        "1": "1.5",
        "when": "2024-03-05",
    }


def test_millis_to_datetime() -> None:
    assert millis_to_datetime(0) == dt.datetime(1970, 1, 1, tzinfo=dt.timezone.utc)
