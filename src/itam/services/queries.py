"""Asset list queries: filtering, sorting and pagination."""

from django.conf import settings
from django.core.exceptions import ValidationError
from django.core.paginator import EmptyPage, Paginator
from django.db.models import Q

from ..models import Asset

# Explicit whitelist of filter parameter names
ALLOWED_FILTER_FIELDS = {
    "status",
    "q",
    "category",
    "department",
    "location",
    "assigned_to",
    "include_inactive",
}

SORT_FIELDS = {
    "asset_tag",
    "name",
    "status",
    "created_at",
    "updated_at",
    "purchase_date",
    "purchase_price",
    "warranty_expiry",
}

DEFAULT_SORT = "-updated_at"

ID_FILTER_FIELDS = ("category", "department", "location", "assigned_to")


def validate_filter_params(params) -> dict:
    """Strip unknown keys and empty values from filter parameters.

    Raises ValidationError when an id filter is not an integer.
    """
    filters = {
        k: v for k, v in params.items() if k in ALLOWED_FILTER_FIELDS and v
    }
    for name in ID_FILTER_FIELDS:
        if name not in filters:
            continue
        try:
            filters[name] = int(filters[name])
        except (TypeError, ValueError):
            raise ValidationError(f"{name} must be an integer id") from None
    return filters


def build_asset_queryset(filters: dict, organisation=None):
    """Queryset of assets matching ``filters`` (not materialised).

    Inactive (soft-deleted) assets are hidden unless
    ``include_inactive`` is set.
    """
    queryset = Asset.objects.with_related()
    if organisation is not None:
        queryset = queryset.filter(organisation=organisation)

    if filters.get("include_inactive") not in ("1", "true", True):
        queryset = queryset.filter(is_active=True)

    status = filters.get("status", "")
    if status:
        queryset = queryset.filter(status__in=str(status).split(","))

    q = filters.get("q", "")
    if q:
        queryset = queryset.filter(
            Q(name__icontains=q)
            | Q(asset_tag__icontains=q)
            | Q(asset_id__icontains=q)
            | Q(serial_number__icontains=q)
            | Q(model__icontains=q)
        )

    for name in ID_FILTER_FIELDS:
        value = filters.get(name, "")
        if value:
            queryset = queryset.filter(**{f"{name}_id": value})

    return queryset


def normalise_sort(sort: str | None) -> str:
    if not sort:
        return DEFAULT_SORT
    field_name = sort[1:] if sort.startswith("-") else sort
    if field_name not in SORT_FIELDS:
        return DEFAULT_SORT
    return sort


def count_assets(filters: dict, organisation=None) -> int:
    return build_asset_queryset(filters, organisation).count()


def list_assets(
    filters: dict,
    sort: str | None = None,
    page: int = 1,
    page_size: int | None = None,
    organisation=None,
):
    """One page of assets plus the total count for ``filters``.

    Returns ``(assets, count, num_pages)``; a page past the end is empty.
    """
    page_size = page_size or settings.ASSETS_PAGE_SIZE
    page_size = max(1, min(page_size, settings.ASSETS_MAX_PAGE_SIZE))
    queryset = build_asset_queryset(filters, organisation).order_by(
        normalise_sort(sort), "pk"
    )
    paginator = Paginator(queryset, page_size)
    try:
        assets = list(paginator.page(page).object_list)
    except EmptyPage:
        assets = []
    return assets, paginator.count, paginator.num_pages
