"""Demo views exercising the profile collector."""

from django.http import HttpRequest, JsonResponse

from profile_collector.collector import get_collector


def foo(request: HttpRequest) -> JsonResponse:
    return JsonResponse({"query": request.GET.dict()})


def item_detail(request: HttpRequest, item_id: int) -> JsonResponse:
    """Group every item's profile under one aggregation URL."""
    get_collector().set_aggregation_url("/items/<id>")
    return JsonResponse({"id": item_id})


def boom(request: HttpRequest) -> JsonResponse:
    raise RuntimeError("Intentional failure")
