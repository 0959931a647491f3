"""URL configuration for itam app."""

from django.urls import path

from . import views

app_name = "itam"

urlpatterns = [
    # Assets
    path("assets/", views.asset_list, name="asset_list"),
    path("assets/create/", views.asset_create, name="asset_create"),
    path("assets/bulk-status/", views.bulk_status, name="bulk_status"),
    path("assets/<int:pk>/", views.asset_detail, name="asset_detail"),
    path("assets/<int:pk>/edit/", views.asset_edit, name="asset_edit"),
    path(
        "assets/<int:pk>/checkout/",
        views.asset_checkout,
        name="asset_checkout",
    ),
    path(
        "assets/<int:pk>/checkin/", views.asset_checkin, name="asset_checkin"
    ),
    path("assets/<int:pk>/repair/", views.asset_repair, name="asset_repair"),
    path("assets/<int:pk>/lost/", views.asset_mark_lost, name="asset_lost"),
    path(
        "assets/<int:pk>/dispose/", views.asset_dispose, name="asset_dispose"
    ),
    path("assets/<int:pk>/status/", views.asset_status, name="asset_status"),
    path(
        "assets/<int:pk>/replicate/",
        views.asset_replicate,
        name="asset_replicate",
    ),
    path("assets/<int:pk>/delete/", views.asset_delete, name="asset_delete"),
    path(
        "assets/<int:pk>/history/", views.asset_history, name="asset_history"
    ),
    path("assets/<int:pk>/label.svg", views.asset_label, name="asset_label"),
    # Tagging
    path(
        "categories/<int:pk>/next-tag/", views.tag_preview, name="tag_preview"
    ),
    path(
        "categories/<int:pk>/allocate-tag/",
        views.allocate_tag_number,
        name="allocate_tag",
    ),
    # Access and preferences
    path("access/", views.route_access, name="route_access"),
    path("preferences/<slug:key>/", views.preference, name="preference"),
    # Licenses
    path("licenses/", views.license_list, name="license_list"),
    path(
        "licenses/<int:pk>/assign/",
        views.license_assign,
        name="license_assign",
    ),
]
