"""Asset history (audit log) writer and display helpers."""

import logging
from datetime import date, datetime

from django.utils import timezone
from django.utils.dateparse import parse_date, parse_datetime

from ..models import AssetHistory

logger = logging.getLogger(__name__)

# Keys duplicated by structured columns or only meaningful as ids
HIDDEN_DETAIL_KEYS = frozenset(
    {"checkout_type", "user_id", "location_id", "department_id"}
)

DETAIL_DATE_FORMAT = "%d/%m/%Y %H:%M"


def record_history(
    asset,
    action: str,
    old_value=None,
    new_value=None,
    details: dict | None = None,
    performed_by=None,
    organisation=None,
) -> AssetHistory:
    """Append one history entry for ``asset``.

    Entries are never updated or deleted afterwards.
    """
    entry = AssetHistory.objects.create(
        asset=asset,
        action=action,
        old_value=None if old_value is None else str(old_value),
        new_value=None if new_value is None else str(new_value),
        details=details or {},
        performed_by=performed_by,
        organisation=organisation or asset.organisation,
    )
    logger.debug(
        "History %s recorded for asset %s", action, asset.asset_tag
    )
    return entry


def list_history(asset):
    """History for ``asset``, most recent first."""
    return (
        AssetHistory.objects.filter(asset=asset)
        .select_related("performed_by")
        .order_by("-created_at", "-pk")
    )


def format_action(action: str) -> str:
    """``checked_out`` -> ``Checked Out``."""
    return action.replace("_", " ").title()


def _is_date_key(key: str) -> bool:
    return "date" in key or "return" in key or key.endswith("_at")


def format_detail_value(key: str, value) -> str:
    """Display form of one details value.

    Date-like keys render as ``dd/mm/yyyy hh:mm``; anything that does not
    parse is shown as-is.
    """
    if value is None:
        return ""
    if not _is_date_key(key):
        return str(value)
    moment = value
    if isinstance(value, str):
        try:
            moment = parse_datetime(value) or parse_date(value)
        except ValueError:
            moment = None
    if isinstance(moment, datetime):
        if timezone.is_aware(moment):
            moment = timezone.localtime(moment)
        return moment.strftime(DETAIL_DATE_FORMAT)
    if isinstance(moment, date):
        return datetime.combine(moment, datetime.min.time()).strftime(
            DETAIL_DATE_FORMAT
        )
    return str(value)


def render_details(details) -> list[str]:
    """Render a details mapping as ``Label: value`` lines.

    Hidden keys and empty values are skipped.
    """
    if not isinstance(details, dict):
        return []
    lines = []
    for key, value in details.items():
        if key in HIDDEN_DETAIL_KEYS or value in (None, ""):
            continue
        label = key.replace("_", " ").title()
        lines.append(f"{label}: {format_detail_value(key, value)}")
    return lines


def serialize_history(entry: AssetHistory) -> dict:
    performer = entry.performed_by
    return {
        "id": entry.pk,
        "action": entry.action,
        "action_display": format_action(entry.action),
        "old_value": entry.old_value,
        "new_value": entry.new_value,
        "details": entry.details,
        "detail_lines": render_details(entry.details),
        "performed_by": performer.get_display_name() if performer else None,
        "created_at": entry.created_at.isoformat(),
    }
