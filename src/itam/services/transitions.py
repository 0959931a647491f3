"""Apply lifecycle plans to the database.

Each action writes the asset row with one UPDATE statement and records
its history entry (plus any repair or license side writes) inside the
same transaction, so a failed history insert rolls the status change
back with it.
"""

import logging
from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal

from django.core.exceptions import ValidationError
from django.db import DatabaseError, transaction
from django.utils import timezone

from ..models import Asset, AssetHistory, Repair
from . import lifecycle
from .history import record_history
from .licenses import release_licenses
from .tagging import allocate_tag

logger = logging.getLogger(__name__)

# Model fields whose plan values are user primary keys
_USER_FK_FIELDS = ("assigned_to", "checked_out_to")

# Fields a direct edit may not touch; they belong to lifecycle actions
PROTECTED_FIELDS = frozenset(
    {"id", "asset_tag", "status", "is_active", "organisation", "created_by"}
    | set(lifecycle.ASSIGNMENT_FIELDS)
)


def _column_values(fields: dict) -> dict:
    """Translate plan fields into ``QuerySet.update`` keyword arguments."""
    values = {}
    for name, value in fields.items():
        if name in _USER_FK_FIELDS:
            values[f"{name}_id"] = value
        else:
            values[name] = value
    return values


def apply_plan(
    asset: Asset, plan: lifecycle.TransitionPlan, performed_by
) -> AssetHistory:
    """Write ``plan`` for ``asset`` and return the history entry."""
    with transaction.atomic():
        Asset.objects.filter(pk=asset.pk).update(
            **_column_values(plan.fields), updated_at=timezone.now()
        )
        if plan.repair is not None:
            draft = plan.repair
            Repair.objects.create(
                asset=asset,
                status=draft.status,
                issue_description=draft.issue_description,
                cost=draft.cost,
                technician=draft.technician,
                started_at=draft.started_at,
                completed_at=draft.completed_at,
                notes=draft.notes,
                organisation=asset.organisation,
            )
        details = dict(plan.details)
        if plan.release_licenses:
            released = release_licenses(asset)
            if released:
                details["licenses_released"] = released
        entry = record_history(
            asset,
            plan.action,
            old_value=plan.old_status,
            new_value=plan.new_status,
            details=details,
            performed_by=performed_by,
        )
    asset.refresh_from_db()
    logger.info(
        "Asset %s: %s (%s -> %s)",
        asset.asset_tag,
        plan.action,
        plan.old_status,
        plan.new_status,
    )
    return entry


def _plan_and_apply(asset, performed_by, planner, *args, **kwargs):
    state = lifecycle.AssetState.from_asset(asset)
    plan = planner(state, *args, **kwargs)
    return apply_plan(asset, plan, performed_by)


def checkout_asset(
    asset: Asset,
    assignee,
    performed_by,
    expected_return_date: date | None = None,
    notes: str = "",
    checked_out_at: datetime | None = None,
) -> AssetHistory:
    """Check out an available asset to ``assignee``."""
    return _plan_and_apply(
        asset,
        performed_by,
        lifecycle.plan_checkout,
        assignee.pk,
        checked_out_at or timezone.now(),
        expected_return_date=expected_return_date,
        notes=notes,
    )


def checkin_asset(
    asset: Asset,
    performed_by,
    notes: str = "",
    returned_at: datetime | None = None,
) -> AssetHistory:
    """Check an in-use asset back in."""
    return _plan_and_apply(
        asset,
        performed_by,
        lifecycle.plan_checkin,
        returned_at or timezone.now(),
        notes=notes,
    )


def send_for_repair(
    asset: Asset,
    performed_by,
    started_at: datetime | None = None,
    completed_at: datetime | None = None,
    cost: Decimal | None = None,
    technician: str = "",
    notes: str = "",
) -> AssetHistory:
    return _plan_and_apply(
        asset,
        performed_by,
        lifecycle.plan_repair,
        started_at or timezone.now(),
        completed_at=completed_at,
        cost=cost,
        technician=technician,
        notes=notes,
    )


def mark_as_lost(
    asset: Asset,
    performed_by,
    broken_date: datetime | None = None,
    notes: str = "",
) -> AssetHistory:
    return _plan_and_apply(
        asset,
        performed_by,
        lifecycle.plan_mark_lost,
        broken_date or timezone.now(),
        notes=notes,
    )


def dispose_asset(asset: Asset, performed_by, notes: str = "") -> AssetHistory:
    return _plan_and_apply(
        asset, performed_by, lifecycle.plan_dispose, notes=notes
    )


def change_status(
    asset: Asset, new_status: str, performed_by, notes: str = ""
) -> AssetHistory:
    """Direct status change (status menu and bulk updates)."""
    return _plan_and_apply(
        asset,
        performed_by,
        lifecycle.plan_status_change,
        new_status,
        notes=notes,
    )


@dataclass
class BulkResult:
    """Outcome of a bulk action. ``failed`` maps asset id to a message."""

    succeeded: list[int] = field(default_factory=list)
    failed: dict[int, str] = field(default_factory=dict)

    @property
    def ok(self) -> bool:
        return not self.failed


def bulk_status_update(
    asset_ids: list[int], new_status: str, performed_by, notes: str = ""
) -> BulkResult:
    """Change the status of several assets.

    Each asset is written in its own transaction. A failure on one asset
    is recorded and does not undo the assets already updated.
    """
    result = BulkResult()
    assets = {
        a.pk: a for a in Asset.objects.filter(pk__in=asset_ids, is_active=True)
    }
    for asset_id in asset_ids:
        asset = assets.get(asset_id)
        if asset is None:
            result.failed[asset_id] = "Asset not found."
            continue
        try:
            change_status(asset, new_status, performed_by, notes=notes)
        except ValidationError as exc:
            result.failed[asset_id] = "; ".join(exc.messages)
        except DatabaseError as exc:
            logger.exception(
                "Bulk status update failed for asset %s", asset.asset_tag
            )
            result.failed[asset_id] = f"Database error: {exc}"
        else:
            result.succeeded.append(asset_id)
    if result.failed:
        logger.warning(
            "Bulk status update to %s: %d succeeded, %d failed (%s)",
            new_status,
            len(result.succeeded),
            len(result.failed),
            ", ".join(str(pk) for pk in result.failed),
        )
    return result


def create_asset(
    performed_by,
    category=None,
    fallback_prefix: str | None = None,
    fallback_padding: int = 4,
    **fields,
) -> Asset:
    """Create an asset with an authoritative tag.

    Tag allocation, the insert and the ``created`` history entry share a
    transaction: if the counter fails nothing is created.
    """
    for name in PROTECTED_FIELDS - {"organisation"}:
        if name in fields:
            raise ValidationError(
                f"'{name}' cannot be set when creating an asset."
            )
    organisation = fields.pop("organisation", None)
    if organisation is None and performed_by is not None:
        organisation = performed_by.organisation
    with transaction.atomic():
        tag = allocate_tag(category, fallback_prefix, fallback_padding)
        asset = Asset(
            asset_tag=tag,
            category=category,
            status="available",
            organisation=organisation,
            created_by=performed_by,
            **fields,
        )
        asset.full_clean()
        asset.save()
        record_history(
            asset,
            "created",
            new_value="available",
            details={"asset_tag": tag},
            performed_by=performed_by,
        )
    logger.info("Created asset %s", tag)
    return asset


def _display(value):
    if value is None:
        return None
    if isinstance(value, (date, datetime)):
        return value.isoformat()
    if isinstance(value, Decimal):
        return str(value)
    if hasattr(value, "pk"):
        return str(value)
    return value


def update_asset(asset: Asset, performed_by, **fields) -> Asset:
    """Edit descriptive fields of an asset.

    Status, assignment and tag changes must go through lifecycle actions.
    Records one ``updated`` entry listing each changed field.
    """
    refused = PROTECTED_FIELDS.intersection(fields)
    if refused:
        raise ValidationError(
            f"Use a lifecycle action to change: {', '.join(sorted(refused))}."
        )
    changes = {}
    for name, value in fields.items():
        old = getattr(asset, name)
        if old != value:
            changes[name] = {"from": _display(old), "to": _display(value)}
            setattr(asset, name, value)
    if not changes:
        return asset
    with transaction.atomic():
        asset.full_clean()
        asset.save(update_fields=[*changes, "updated_at"])
        record_history(
            asset,
            "updated",
            details={"changes": changes},
            performed_by=performed_by,
        )
    return asset


def replicate_asset(
    asset: Asset,
    performed_by,
    fallback_prefix: str | None = None,
    fallback_padding: int = 4,
) -> Asset:
    """Copy ``asset`` into a new available asset with its own tag."""
    copied = {
        name: getattr(asset, name)
        for name in (
            "description",
            "serial_number",
            "model",
            "make",
            "department",
            "location",
            "vendor",
            "purchase_date",
            "purchase_price",
            "warranty_expiry",
        )
    }
    with transaction.atomic():
        copy = create_asset(
            performed_by,
            category=asset.category,
            fallback_prefix=fallback_prefix,
            fallback_padding=fallback_padding,
            name=f"{asset.name or 'Asset'} (Copy)",
            asset_id=f"{asset.asset_id}-COPY" if asset.asset_id else "",
            organisation=asset.organisation,
            **copied,
        )
        record_history(
            asset,
            "replicated",
            details={"copy_asset_tag": copy.asset_tag},
            performed_by=performed_by,
        )
        record_history(
            copy,
            "replicated",
            details={"source_asset_tag": asset.asset_tag},
            performed_by=performed_by,
        )
    return copy


def deactivate_asset(asset: Asset, performed_by) -> AssetHistory:
    """Soft-delete ``asset``; it stays in the database with its history."""
    if not asset.is_active:
        raise ValidationError("Asset is already deleted.")
    with transaction.atomic():
        Asset.objects.filter(pk=asset.pk).update(
            is_active=False, updated_at=timezone.now()
        )
        entry = record_history(
            asset,
            "deleted",
            details={"asset_tag": asset.asset_tag},
            performed_by=performed_by,
        )
    asset.refresh_from_db()
    logger.info("Deactivated asset %s", asset.asset_tag)
    return entry
