"""URL configuration for the profiling site."""

from django.urls import path

from . import views

urlpatterns = [
    path("foo", views.foo, name="foo"),
    path("items/<int:item_id>", views.item_detail, name="item-detail"),
    path("boom", views.boom, name="boom"),
]
