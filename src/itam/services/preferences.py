"""Per-user preference blobs: asset list columns and dashboard layout.

Stored blobs may predate columns or widgets added later, so every read
merges the blob over the current defaults.
"""

from copy import deepcopy

from django.core.exceptions import ValidationError

from ..models import UserPreference

ASSET_COLUMNS_KEY = "asset_columns"
DASHBOARD_KEY = "dashboard"

DEFAULT_ASSET_COLUMNS = [
    {"id": "asset_tag", "label": "Asset Tag ID", "visible": True,
     "locked": True, "group": "asset"},
    {"id": "make", "label": "Make", "visible": True, "group": "asset"},
    {"id": "cost", "label": "Cost", "visible": True, "group": "asset"},
    {"id": "created_by", "label": "Created By", "visible": False,
     "group": "asset"},
    {"id": "created_at", "label": "Date Created", "visible": False,
     "group": "asset"},
    {"id": "description", "label": "Description", "visible": False,
     "group": "asset"},
    {"id": "model", "label": "Model", "visible": True, "group": "asset"},
    {"id": "purchase_date", "label": "Purchase Date", "visible": False,
     "group": "asset"},
    {"id": "serial_number", "label": "Serial No", "visible": True,
     "group": "asset"},
    {"id": "category", "label": "Category", "visible": True,
     "group": "linking"},
    {"id": "department", "label": "Department", "visible": False,
     "group": "linking"},
    {"id": "location", "label": "Location", "visible": True,
     "group": "linking"},
    {"id": "assigned_to", "label": "Assigned To", "visible": True,
     "group": "event"},
    {"id": "expected_return_date", "label": "Event Due Date",
     "visible": False, "group": "event"},
    {"id": "status", "label": "Status", "visible": True, "group": "event"},
]

DEFAULT_DASHBOARD = {
    "widgets": [
        {"id": "activeAssets", "label": "Number of Active Assets",
         "enabled": True},
        {"id": "availableAssets", "label": "Available Assets",
         "enabled": True},
        {"id": "assetValue", "label": "Value of Assets", "enabled": True},
        {"id": "fiscalPurchases", "label": "Purchases in Fiscal Year",
         "enabled": True},
        {"id": "checkedOut", "label": "Checked-out Assets",
         "enabled": False},
        {"id": "underRepair", "label": "Under Repair", "enabled": False},
        {"id": "disposed", "label": "Disposed Assets", "enabled": False},
        {"id": "expiringLicenses", "label": "Expiring Licenses",
         "enabled": False},
    ],
    "columns": 4,
    "showChart": True,
    "showFeeds": True,
    "showAlerts": True,
    "showCalendar": True,
}

DEFAULTS = {
    ASSET_COLUMNS_KEY: DEFAULT_ASSET_COLUMNS,
    DASHBOARD_KEY: DEFAULT_DASHBOARD,
}


def _as_order(value):
    if isinstance(value, bool):
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


def _saved_by_id(saved) -> dict:
    if not isinstance(saved, list):
        return {}
    return {
        item["id"]: item
        for item in saved
        if isinstance(item, dict) and "id" in item
    }


def merge_columns(defaults: list[dict], saved) -> list[dict]:
    """Overlay saved column settings on the defaults.

    Only ``visible`` and ``order`` are taken from the saved entries.
    Columns unknown to the defaults are dropped, new default columns are
    appended after the saved ones, and locked columns stay visible.
    """
    by_id = _saved_by_id(saved)
    merged = []
    for position, default in enumerate(defaults):
        column = {**default, "order": position}
        if default["id"] in by_id:
            saved_column = by_id[default["id"]]
            if isinstance(saved_column.get("visible"), bool):
                column["visible"] = saved_column["visible"]
            order = _as_order(saved_column.get("order"))
            if order is not None:
                column["order"] = order
        else:
            column["order"] = len(defaults) + position
        if default.get("locked"):
            column["visible"] = True
        merged.append(column)
    merged.sort(key=lambda c: c["order"])
    for position, column in enumerate(merged):
        column["order"] = position
    return merged


def merge_dashboard(defaults: dict, saved) -> dict:
    """Overlay a saved dashboard layout on the defaults."""
    if not isinstance(saved, dict):
        return deepcopy(defaults)
    by_id = _saved_by_id(saved.get("widgets"))
    widgets = []
    for widget in defaults["widgets"]:
        widget = dict(widget)
        enabled = by_id.get(widget["id"], {}).get("enabled")
        if isinstance(enabled, bool):
            widget["enabled"] = enabled
        widgets.append(widget)
    merged = deepcopy(defaults)
    for name, value in saved.items():
        # Settings keep the type of their default
        if name in merged and name != "widgets":
            if type(value) is type(merged[name]):
                merged[name] = value
    merged["widgets"] = widgets
    return merged


def _check_entries(entries, flag: str) -> None:
    if not isinstance(entries, list):
        raise ValidationError("Expected a list of entries")
    for entry in entries:
        if not isinstance(entry, dict) or not isinstance(
            entry.get("id"), str
        ):
            raise ValidationError("Each entry needs a string id")
        if flag in entry and not isinstance(entry[flag], bool):
            raise ValidationError(f"{flag} must be true or false")
        if "order" in entry and _as_order(entry["order"]) is None:
            raise ValidationError("order must be an integer")


def validate_preference(key: str, value) -> None:
    """Reject blobs of the wrong shape for the known preference keys."""
    if key == ASSET_COLUMNS_KEY:
        _check_entries(value, "visible")
    elif key == DASHBOARD_KEY:
        if not isinstance(value, dict):
            raise ValidationError("Expected a JSON object")
        if "widgets" in value:
            _check_entries(value["widgets"], "enabled")


def merge_preference(key: str, saved):
    if key == ASSET_COLUMNS_KEY:
        return merge_columns(DEFAULT_ASSET_COLUMNS, saved)
    if key == DASHBOARD_KEY:
        return merge_dashboard(DEFAULT_DASHBOARD, saved)
    return saved


def get_preference(user, key: str):
    """Stored blob merged with defaults; defaults when nothing is saved."""
    pref = UserPreference.objects.filter(user=user, key=key).first()
    if pref is None:
        default = DEFAULTS.get(key)
        return merge_preference(key, None) if default is not None else None
    return merge_preference(key, pref.value)


def set_preference(user, key: str, value) -> UserPreference:
    """Store ``value`` for ``key``; the last write wins.

    Raises ValidationError when the blob has the wrong shape.
    """
    validate_preference(key, value)
    pref, _ = UserPreference.objects.update_or_create(
        user=user, key=key, defaults={"value": value}
    )
    return pref


def reset_preference(user, key: str) -> None:
    UserPreference.objects.filter(user=user, key=key).delete()
