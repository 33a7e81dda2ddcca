"""Tests for building the ambient context from requests and command lines."""

import atexit
import typing as t
from unittest import mock

from django.core.signals import request_finished
from django.test import RequestFactory
from freezegun import freeze_time

from profile_collector.ambient import REQUEST_FINISHED_UID, AmbientContext


class TestFromRequest:
    def test_url_includes_query_string(self, rf: RequestFactory) -> None:
        ambient = AmbientContext.from_request(rf.get("/foo", {"x": "1"}))

        assert ambient.url == "/foo?x=1"
        assert ambient.query_params == {"x": "1"}

    def test_repeated_query_keys_keep_last_value(self, rf: RequestFactory) -> None:
        ambient = AmbientContext.from_request(rf.get("/foo?tag=a&tag=b"))

        assert ambient.query_params == {"tag": "b"}

    def test_server_vars_keep_only_scalar_values(self, rf: RequestFactory) -> None:
        ambient = AmbientContext.from_request(rf.post("/foo", data={"a": "b"}))

        assert ambient.server_vars["REQUEST_METHOD"] == "POST"
        assert ambient.server_vars["PATH_INFO"] == "/foo"
        assert "wsgi.input" not in ambient.server_vars

    def test_start_times_come_from_server_when_present(self, rf: RequestFactory) -> None:
        request = rf.get("/foo", REQUEST_TIME="1709640000", REQUEST_TIME_FLOAT="1709640000,125")

        ambient = AmbientContext.from_request(request)

        assert ambient.request_time == 1709640000
        assert ambient.request_time_float == 1709640000.125

    def test_start_times_are_unset_without_server_values(self, rf: RequestFactory) -> None:
        ambient = AmbientContext.from_request(rf.get("/foo"))

        assert ambient.request_time is None
        assert ambient.request_time_float is None

    def test_hook_connects_to_request_finished(self, rf: RequestFactory) -> None:
        def hook(*args: t.Any, **kwargs: t.Any) -> None:
            pass

        ambient = AmbientContext.from_request(rf.get("/foo"))
        assert ambient.register_hook is not None

        with mock.patch("profile_collector.ambient.request_finished") as request_finished:
            ambient.register_hook(hook)

        request_finished.connect.assert_called_once_with(hook, weak=False, dispatch_uid=REQUEST_FINISHED_UID)

    def test_newer_hook_replaces_older_one(self, rf: RequestFactory) -> None:
        def first(*args: t.Any, **kwargs: t.Any) -> None:
            pass

        def second(*args: t.Any, **kwargs: t.Any) -> None:
            pass

        register_hook = AmbientContext.from_request(rf.get("/foo")).register_hook
        assert register_hook is not None
        request_finished.disconnect(dispatch_uid=REQUEST_FINISHED_UID)
        receivers_before = len(request_finished.receivers)

        try:
            register_hook(first)
            register_hook(second)

            assert len(request_finished.receivers) == receivers_before + 1
        finally:
            request_finished.disconnect(dispatch_uid=REQUEST_FINISHED_UID)


class TestFromArgv:
    def test_url_is_program_name_and_arguments(self) -> None:
        ambient = AmbientContext.from_argv(["/srv/app/manage.py", "migrate", "--noinput"])

        assert ambient.url == "manage.py migrate --noinput"
        assert ambient.server_vars["argc"] == 3
        assert ambient.query_params == {}

    def test_url_without_arguments_has_no_trailing_space(self) -> None:
        assert AmbientContext.from_argv(["bin/worker"]).url == "worker"

    def test_cli_primitives(self) -> None:
        ambient = AmbientContext.from_argv(["manage.py"])

        assert ambient.register_hook is atexit.register
        assert ambient.finish_response is not None
        assert ambient.ignore_abort is not None
        assert ambient.close_session is None


class TestEnsureRequestTime:
    @freeze_time("2024-03-05 12:00:00.5")
    def test_fills_missing_values(self) -> None:
        ambient = AmbientContext()

        ambient.ensure_request_time()

        assert ambient.request_time == 1709640000
        assert ambient.request_time_float == 1709640000.5

    def test_never_overwrites(self) -> None:
        ambient = AmbientContext(request_time=100, request_time_float=99.9)

        ambient.ensure_request_time(clock=lambda: 5000.0)

        assert ambient.request_time == 100
        assert ambient.request_time_float == 99.9
