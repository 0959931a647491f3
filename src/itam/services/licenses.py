"""License seat bookkeeping."""

import logging

from django.core.exceptions import ValidationError
from django.db import transaction
from django.db.models import F
from django.db.models.functions import Greatest
from django.utils import timezone

from ..models import License, LicenseAssignment

logger = logging.getLogger(__name__)


def assign_license(license: License, asset) -> LicenseAssignment:
    """Give ``asset`` one seat of ``license``.

    Raises ValidationError when no seat is free, the license is inactive,
    the asset already holds a seat, or the asset is disposed or lost.
    """
    if asset.status in ("disposed", "lost"):
        raise ValidationError(
            f"Cannot assign a license to a {asset.status} asset."
        )
    with transaction.atomic():
        locked = License.objects.select_for_update().get(pk=license.pk)
        if not locked.is_active:
            raise ValidationError(f"License '{locked}' is inactive.")
        if LicenseAssignment.objects.filter(
            license=locked, asset=asset, released_at__isnull=True
        ).exists():
            raise ValidationError(
                f"{asset.asset_tag} already holds a seat of '{locked}'."
            )
        if locked.seats_allocated >= locked.seats_total:
            raise ValidationError(f"No free seats left on '{locked}'.")
        assignment = LicenseAssignment.objects.create(
            license=locked, asset=asset
        )
        License.objects.filter(pk=locked.pk).update(
            seats_allocated=F("seats_allocated") + 1
        )
    license.refresh_from_db(fields=["seats_allocated"])
    return assignment


def release_licenses(asset) -> int:
    """Release every seat ``asset`` holds. Returns the number released.

    Runs inside the caller's transaction when there is one.
    """
    now = timezone.now()
    with transaction.atomic():
        active = list(
            LicenseAssignment.objects.select_for_update().filter(
                asset=asset, released_at__isnull=True
            )
        )
        if not active:
            return 0
        LicenseAssignment.objects.filter(
            pk__in=[a.pk for a in active]
        ).update(released_at=now)
        for assignment in active:
            License.objects.filter(pk=assignment.license_id).update(
                seats_allocated=Greatest(F("seats_allocated") - 1, 0)
            )
    logger.info(
        "Released %d license seat(s) held by %s", len(active), asset.asset_tag
    )
    return len(active)
