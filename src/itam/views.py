"""JSON views for the itam app."""

import json
import logging
from decimal import Decimal, InvalidOperation

from django.conf import settings
from django.contrib.auth import get_user_model
from django.contrib.auth.decorators import login_required
from django.core.exceptions import ValidationError
from django.db import DatabaseError
from django.http import HttpResponse, JsonResponse
from django.shortcuts import get_object_or_404
from django.utils.dateparse import parse_date, parse_datetime
from django.views.decorators.http import require_GET, require_POST

from .models import (
    Asset,
    Category,
    Department,
    License,
    Location,
    Make,
    Vendor,
)
from .services import preferences
from .services.access import (
    ActorContext,
    can_manage_assets,
    has_access_batch,
    route_access_required,
)
from .services.expiry import days_until, expiry_status
from .services.history import list_history, serialize_history
from .services.labels import tag_label_svg
from .services.licenses import assign_license
from .services.lifecycle import InvalidTransition
from .services.queries import list_assets, validate_filter_params
from .services.tagging import (
    TagAllocationError,
    TagFormatNotConfigured,
    format_tag,
    get_next_asset_number,
    get_tag_format,
    preview_tag_for_category,
)
from .services.transitions import (
    bulk_status_update,
    change_status,
    checkin_asset,
    checkout_asset,
    create_asset,
    deactivate_asset,
    dispose_asset,
    mark_as_lost,
    replicate_asset,
    send_for_repair,
    update_asset,
)

logger = logging.getLogger(__name__)

User = get_user_model()

ASSETS_ROUTE = "/assets/allassets"
ASSET_DETAIL_ROUTE = "/assets/detail"
ASSET_LOGS_ROUTE = "/assets/logs"
LICENSES_ROUTE = "/assets/licenses"
SETUP_ROUTE = "/assets/setup/fields-setup"

MAX_BULK_ASSETS = 500

# Editable lookup fields and the model each id refers to
LOOKUP_FIELDS = {
    "category": Category,
    "make": Make,
    "department": Department,
    "location": Location,
    "vendor": Vendor,
}
TEXT_FIELDS = ("name", "asset_id", "description", "serial_number", "model")
DATE_FIELDS = ("purchase_date", "warranty_expiry")


# --- Helpers ---


def _error(message, status=400):
    return JsonResponse({"error": message}, status=status)


def _json_body(request) -> dict:
    if not request.body:
        return {}
    try:
        data = json.loads(request.body)
    except (json.JSONDecodeError, ValueError):
        raise ValidationError("Invalid JSON") from None
    if not isinstance(data, dict):
        raise ValidationError("Expected a JSON object")
    return data


def _parse_date(value, name):
    if value in (None, ""):
        return None
    try:
        parsed = parse_date(str(value))
    except ValueError:
        parsed = None
    if parsed is None:
        raise ValidationError(f"'{name}' must be a date (YYYY-MM-DD).")
    return parsed


def _parse_datetime(value, name):
    if value in (None, ""):
        return None
    try:
        parsed = parse_datetime(str(value))
    except ValueError:
        parsed = None
    if parsed is None:
        raise ValidationError(f"'{name}' must be an ISO 8601 datetime.")
    return parsed


def _parse_decimal(value, name):
    if value in (None, ""):
        return None
    try:
        return Decimal(str(value))
    except InvalidOperation:
        raise ValidationError(f"'{name}' must be a number.") from None


def _organisation_scope(user):
    """Organisation to scope queries to; None for admins (all)."""
    if user.effective_role == "admin":
        return None
    return user.organisation


def _get_asset(request, pk, include_inactive=False):
    qs = Asset.objects.with_related()
    if request.user.effective_role != "admin":
        qs = qs.filter(organisation=request.user.organisation)
    if not include_inactive:
        qs = qs.filter(is_active=True)
    return get_object_or_404(qs, pk=pk)


def _ref(obj):
    if obj is None:
        return None
    return {"id": obj.pk, "name": str(obj)}


def _serialize_asset(asset: Asset) -> dict:
    return {
        "id": asset.pk,
        "asset_tag": asset.asset_tag,
        "asset_id": asset.asset_id,
        "name": asset.name,
        "description": asset.description,
        "serial_number": asset.serial_number,
        "model": asset.model,
        "category": _ref(asset.category),
        "make": _ref(asset.make),
        "department": _ref(asset.department),
        "location": _ref(asset.location),
        "vendor": _ref(asset.vendor),
        "status": asset.status,
        "status_display": asset.get_status_display(),
        "assigned_to": _ref(asset.assigned_to),
        "checked_out_to": _ref(asset.checked_out_to),
        "checked_out_at": (
            asset.checked_out_at.isoformat() if asset.checked_out_at else None
        ),
        "expected_return_date": (
            asset.expected_return_date.isoformat()
            if asset.expected_return_date
            else None
        ),
        "check_out_notes": asset.check_out_notes,
        "purchase_date": (
            asset.purchase_date.isoformat() if asset.purchase_date else None
        ),
        "purchase_price": (
            str(asset.purchase_price)
            if asset.purchase_price is not None
            else None
        ),
        "warranty_expiry": (
            asset.warranty_expiry.isoformat()
            if asset.warranty_expiry
            else None
        ),
        "warranty_status": expiry_status(asset.warranty_expiry),
        "is_active": asset.is_active,
        "created_at": asset.created_at.isoformat(),
        "updated_at": asset.updated_at.isoformat(),
    }


def _serialize_license(lic: License) -> dict:
    return {
        "id": lic.pk,
        "name": lic.name,
        "vendor": _ref(lic.vendor),
        "license_type": lic.license_type,
        "seats_total": lic.seats_total,
        "seats_allocated": lic.seats_allocated,
        "seats_available": lic.seats_available,
        "expiry_date": (
            lic.expiry_date.isoformat() if lic.expiry_date else None
        ),
        "expiry_status": expiry_status(lic.expiry_date),
        "days_until_expiry": days_until(lic.expiry_date),
    }


def _asset_fields(data: dict) -> dict:
    """Editable asset fields from a request body.

    Only keys present in ``data`` are returned.
    """
    fields = {}
    for name in TEXT_FIELDS:
        if name in data:
            fields[name] = (data[name] or "").strip()
    for name, model in LOOKUP_FIELDS.items():
        if name in data:
            value = data[name]
            if value in (None, ""):
                fields[name] = None
            else:
                try:
                    obj = model.objects.filter(
                        pk=value, is_active=True
                    ).first()
                except (TypeError, ValueError):
                    obj = None
                if obj is None:
                    raise ValidationError(f"Unknown {name} '{value}'.")
                fields[name] = obj
    for name in DATE_FIELDS:
        if name in data:
            fields[name] = _parse_date(data[name], name)
    if "purchase_price" in data:
        fields["purchase_price"] = _parse_decimal(
            data["purchase_price"], "purchase_price"
        )
    return fields


def _fallback_args(data: dict) -> dict:
    """Fallback tag prefix, only when the client explicitly asks for it."""
    if data.get("use_default_prefix"):
        return {
            "fallback_prefix": settings.ASSET_TAG_FALLBACK_PREFIX,
            "fallback_padding": settings.ASSET_TAG_FALLBACK_PADDING,
        }
    return {}


def _forbid_unless_manager(request):
    if not can_manage_assets(ActorContext.from_user(request.user)):
        return _error("Permission denied", status=403)
    return None


def _run_action(request, pk, action):
    """Shared body of the single-asset lifecycle views.

    ``action`` receives the asset and the parsed body and performs the
    change; errors map to 400 (bad input), 409 (transition not allowed)
    and 500 (database failure).
    """
    denied = _forbid_unless_manager(request)
    if denied:
        return denied
    asset = _get_asset(request, pk)
    try:
        data = _json_body(request)
        entry = action(asset, data)
    except InvalidTransition as exc:
        return _error("; ".join(exc.messages), status=409)
    except ValidationError as exc:
        return _error("; ".join(exc.messages))
    except DatabaseError:
        logger.exception("Lifecycle action failed for asset %s", pk)
        return _error("Failed to update asset status", status=500)
    return JsonResponse(
        {
            "asset": _serialize_asset(asset),
            "history": serialize_history(entry) if entry else None,
        }
    )


# --- Assets ---


@login_required
@require_GET
@route_access_required(ASSETS_ROUTE)
def asset_list(request):
    """Paginated, filtered asset list with the total count."""
    try:
        filters = validate_filter_params(request.GET)
    except ValidationError as exc:
        return _error(exc.messages[0])
    try:
        page = int(request.GET.get("page", "1"))
        page_size = int(
            request.GET.get("page_size", settings.ASSETS_PAGE_SIZE)
        )
    except ValueError:
        return _error("page and page_size must be integers")
    assets, count, num_pages = list_assets(
        filters,
        sort=request.GET.get("sort"),
        page=page,
        page_size=page_size,
        organisation=_organisation_scope(request.user),
    )
    return JsonResponse(
        {
            "results": [_serialize_asset(a) for a in assets],
            "count": count,
            "page": page,
            "num_pages": num_pages,
        }
    )


@login_required
@require_GET
@route_access_required(ASSET_DETAIL_ROUTE)
def asset_detail(request, pk):
    asset = _get_asset(request, pk, include_inactive=True)
    return JsonResponse(_serialize_asset(asset))


@login_required
@require_POST
@route_access_required(ASSETS_ROUTE)
def asset_create(request):
    """Create an asset; its tag comes from the category's counter."""
    denied = _forbid_unless_manager(request)
    if denied:
        return denied
    try:
        data = _json_body(request)
        if not (data.get("name") or "").strip():
            return _error("Name is required")
        fields = _asset_fields(data)
        asset = create_asset(
            request.user,
            **_fallback_args(data),
            **fields,
        )
    except TagFormatNotConfigured as exc:
        return _error("; ".join(exc.messages), status=409)
    except TagAllocationError as exc:
        return _error(str(exc), status=500)
    except ValidationError as exc:
        return _error("; ".join(exc.messages))
    except DatabaseError:
        logger.exception("Asset creation failed")
        return _error("Failed to create asset", status=500)
    return JsonResponse(_serialize_asset(asset), status=201)


@login_required
@require_POST
@route_access_required(ASSET_DETAIL_ROUTE)
def asset_edit(request, pk):
    denied = _forbid_unless_manager(request)
    if denied:
        return denied
    asset = _get_asset(request, pk)
    try:
        data = _json_body(request)
        update_asset(asset, request.user, **_asset_fields(data))
    except ValidationError as exc:
        return _error("; ".join(exc.messages))
    except DatabaseError:
        logger.exception("Asset update failed for %s", pk)
        return _error("Failed to update asset", status=500)
    return JsonResponse(_serialize_asset(asset))


@login_required
@require_POST
@route_access_required(ASSET_DETAIL_ROUTE)
def asset_checkout(request, pk):
    def action(asset, data):
        if not data.get("assignee"):
            raise ValidationError("An assignee is required to check out.")
        assignees = User.objects.filter(is_active=True)
        if request.user.effective_role != "admin":
            assignees = assignees.filter(
                organisation=request.user.organisation
            )
        try:
            assignee = assignees.filter(pk=int(data["assignee"])).first()
        except (TypeError, ValueError):
            assignee = None
        if assignee is None:
            raise ValidationError(f"Unknown user '{data['assignee']}'.")
        return checkout_asset(
            asset,
            assignee,
            request.user,
            expected_return_date=_parse_date(
                data.get("expected_return_date"), "expected_return_date"
            ),
            notes=data.get("notes", ""),
            checked_out_at=_parse_datetime(
                data.get("checked_out_at"), "checked_out_at"
            ),
        )

    return _run_action(request, pk, action)


@login_required
@require_POST
@route_access_required(ASSET_DETAIL_ROUTE)
def asset_checkin(request, pk):
    def action(asset, data):
        return checkin_asset(
            asset,
            request.user,
            notes=data.get("notes", ""),
            returned_at=_parse_datetime(
                data.get("returned_at"), "returned_at"
            ),
        )

    return _run_action(request, pk, action)


@login_required
@require_POST
@route_access_required(ASSET_DETAIL_ROUTE)
def asset_repair(request, pk):
    def action(asset, data):
        return send_for_repair(
            asset,
            request.user,
            started_at=_parse_datetime(data.get("started_at"), "started_at"),
            completed_at=_parse_datetime(
                data.get("completed_at"), "completed_at"
            ),
            cost=_parse_decimal(data.get("cost"), "cost"),
            technician=data.get("technician", ""),
            notes=data.get("notes", ""),
        )

    return _run_action(request, pk, action)


@login_required
@require_POST
@route_access_required(ASSET_DETAIL_ROUTE)
def asset_mark_lost(request, pk):
    def action(asset, data):
        return mark_as_lost(
            asset,
            request.user,
            broken_date=_parse_datetime(
                data.get("broken_date"), "broken_date"
            ),
            notes=data.get("notes", ""),
        )

    return _run_action(request, pk, action)


@login_required
@require_POST
@route_access_required(ASSET_DETAIL_ROUTE)
def asset_dispose(request, pk):
    def action(asset, data):
        return dispose_asset(asset, request.user, notes=data.get("notes", ""))

    return _run_action(request, pk, action)


@login_required
@require_POST
@route_access_required(ASSET_DETAIL_ROUTE)
def asset_status(request, pk):
    def action(asset, data):
        new_status = data.get("status")
        if not new_status:
            raise ValidationError("status is required")
        return change_status(
            asset, new_status, request.user, notes=data.get("notes", "")
        )

    return _run_action(request, pk, action)


@login_required
@require_POST
@route_access_required(ASSET_DETAIL_ROUTE)
def asset_delete(request, pk):
    def action(asset, data):
        return deactivate_asset(asset, request.user)

    return _run_action(request, pk, action)


@login_required
@require_POST
@route_access_required(ASSET_DETAIL_ROUTE)
def asset_replicate(request, pk):
    denied = _forbid_unless_manager(request)
    if denied:
        return denied
    asset = _get_asset(request, pk)
    try:
        data = _json_body(request)
        copy = replicate_asset(asset, request.user, **_fallback_args(data))
    except TagFormatNotConfigured as exc:
        return _error("; ".join(exc.messages), status=409)
    except TagAllocationError as exc:
        return _error(str(exc), status=500)
    except ValidationError as exc:
        return _error("; ".join(exc.messages))
    except DatabaseError:
        logger.exception("Asset replication failed for %s", pk)
        return _error("Failed to replicate asset", status=500)
    return JsonResponse(_serialize_asset(copy), status=201)


@login_required
@require_POST
@route_access_required(ASSETS_ROUTE)
def bulk_status(request):
    """Change the status of several assets; failures do not roll back."""
    denied = _forbid_unless_manager(request)
    if denied:
        return denied
    try:
        data = _json_body(request)
    except ValidationError as exc:
        return _error("; ".join(exc.messages))
    new_status = data.get("status")
    raw_ids = data.get("asset_ids") or []
    if not new_status or not raw_ids:
        return _error("status and asset_ids are required")
    try:
        asset_ids = [int(pk) for pk in raw_ids]
    except (TypeError, ValueError):
        return _error("asset_ids must be integers")
    if len(asset_ids) > MAX_BULK_ASSETS:
        return _error(f"At most {MAX_BULK_ASSETS} assets per request")
    if request.user.effective_role != "admin":
        visible = set(
            Asset.objects.filter(
                pk__in=asset_ids, organisation=request.user.organisation
            ).values_list("pk", flat=True)
        )
        hidden = [pk for pk in asset_ids if pk not in visible]
        asset_ids = [pk for pk in asset_ids if pk in visible]
    else:
        hidden = []
    result = bulk_status_update(
        asset_ids, new_status, request.user, notes=data.get("notes", "")
    )
    failed = {str(pk): msg for pk, msg in result.failed.items()}
    failed.update({str(pk): "Asset not found." for pk in hidden})
    return JsonResponse(
        {
            "succeeded": result.succeeded,
            "failed": failed,
            "ok": not failed,
        },
        status=200 if not failed else 207,
    )


@login_required
@require_GET
@route_access_required(ASSET_LOGS_ROUTE)
def asset_history(request, pk):
    asset = _get_asset(request, pk, include_inactive=True)
    return JsonResponse(
        {"results": [serialize_history(e) for e in list_history(asset)]}
    )


@login_required
@require_GET
@route_access_required(ASSET_DETAIL_ROUTE)
def asset_label(request, pk):
    asset = _get_asset(request, pk, include_inactive=True)
    response = HttpResponse(
        tag_label_svg(asset.asset_tag), content_type="image/svg+xml"
    )
    response["Content-Disposition"] = (
        f'inline; filename="{asset.asset_tag}.svg"'
    )
    return response


# --- Tagging ---


@login_required
@require_GET
@route_access_required(ASSETS_ROUTE)
def tag_preview(request, pk):
    """Advisory next tag for a category; may be stale."""
    category = get_object_or_404(Category, pk=pk)
    preview = preview_tag_for_category(category)
    return JsonResponse(
        {
            "category": category.pk,
            "configured": preview is not None,
            "preview": preview,
        }
    )


@login_required
@require_POST
@route_access_required(SETUP_ROUTE)
def allocate_tag_number(request, pk):
    """Reserve the next number from a category's counter (admins)."""
    if request.user.effective_role != "admin":
        return _error("Permission denied", status=403)
    category = get_object_or_404(Category, pk=pk)
    try:
        tag_format = get_tag_format(category)
        number = get_next_asset_number(tag_format)
    except TagFormatNotConfigured as exc:
        return _error("; ".join(exc.messages), status=409)
    except TagAllocationError as exc:
        return _error(str(exc), status=500)
    return JsonResponse(
        {
            "number": number,
            "asset_tag": format_tag(
                tag_format.prefix, tag_format.zero_padding, number
            ),
        }
    )


# --- Access ---


@login_required
@require_GET
def route_access(request):
    """Access map for one or more ``route`` query parameters."""
    routes = request.GET.getlist("route")
    if not routes:
        return _error("At least one route is required")
    actor = ActorContext.from_user(request.user)
    return JsonResponse({"access": has_access_batch(routes, actor)})


# --- Preferences ---


@login_required
def preference(request, key):
    """Read (merged with defaults) or replace one preference blob."""
    if request.method == "GET":
        value = preferences.get_preference(request.user, key)
        return JsonResponse({"key": key, "value": value})
    if request.method == "POST":
        try:
            value = json.loads(request.body or b"null")
        except (json.JSONDecodeError, ValueError):
            return _error("Invalid JSON")
        try:
            preferences.set_preference(request.user, key, value)
        except ValidationError as exc:
            return _error(exc.messages[0])
        return JsonResponse(
            {"key": key, "value": preferences.merge_preference(key, value)}
        )
    if request.method == "DELETE":
        preferences.reset_preference(request.user, key)
        return JsonResponse(
            {"key": key, "value": preferences.get_preference(request.user, key)}
        )
    return _error("Method not allowed", status=405)


# --- Licenses ---


@login_required
@require_GET
@route_access_required(LICENSES_ROUTE)
def license_list(request):
    qs = License.objects.filter(is_active=True).select_related("vendor")
    if request.user.effective_role != "admin":
        qs = qs.filter(organisation=request.user.organisation)
    return JsonResponse({"results": [_serialize_license(lic) for lic in qs]})


@login_required
@require_POST
@route_access_required(LICENSES_ROUTE)
def license_assign(request, pk):
    denied = _forbid_unless_manager(request)
    if denied:
        return denied
    licenses = License.objects.filter(is_active=True)
    if request.user.effective_role != "admin":
        licenses = licenses.filter(organisation=request.user.organisation)
    lic = get_object_or_404(licenses, pk=pk)
    try:
        data = _json_body(request)
        if not data.get("asset"):
            return _error("asset is required")
        try:
            asset_pk = int(data["asset"])
        except (TypeError, ValueError):
            return _error("asset must be an integer")
        asset = _get_asset(request, asset_pk)
        assign_license(lic, asset)
    except ValidationError as exc:
        return _error("; ".join(exc.messages))
    return JsonResponse(_serialize_license(lic))
