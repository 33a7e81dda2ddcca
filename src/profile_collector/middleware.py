"""Middleware that installs the profile collector into Django's request cycle."""

import typing as t

import structlog
from django.core.exceptions import MiddlewareNotUsed
from django.http import HttpRequest, HttpResponse

from .ambient import AmbientContext
from .collector import ProfileCollector, get_collector

logger = structlog.get_logger(__name__)


class ProfilingMiddleware:
    """Starts profiling for sampled requests.

    Should be the first entry in ``MIDDLEWARE`` so the profile covers the whole
    middleware chain. The profile is stored from Django's ``request_finished``
    signal, after the response has been sent to the client.

    Removes itself from the chain when profiling is disabled or the collector
    cannot be built.
    """

    def __init__(self, get_response: t.Callable[[HttpRequest], HttpResponse]) -> None:
        """Initialize the middleware.

        Args:
            get_response: Django middleware get_response callable
        """
        self.get_response = get_response
        try:
            self.collector: ProfileCollector = get_collector()
        except Exception as e:
            logger.exception("Could not set up profile-collector, profiling is off")
            raise MiddlewareNotUsed from e

        if not self.collector.is_enabled():
            raise MiddlewareNotUsed

    def __call__(self, request: HttpRequest) -> HttpResponse:
        """Start profiling if the request is sampled, then handle it.

        Args:
            request: Django HttpRequest

        Returns:
            HttpResponse, unchanged
        """
        try:
            self.collector.start(AmbientContext.from_request(request))
        except Exception:
            logger.exception("profile-collector could not start profiling", path=request.path)

        return self.get_response(request)
