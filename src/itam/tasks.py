"""Celery tasks for the itam app."""

import logging

from celery import shared_task

from django.conf import settings
from django.contrib.auth import get_user_model
from django.core.mail import EmailMultiAlternatives
from django.db.models import Q
from django.utils.html import escape

from .models import Asset, License
from .services.expiry import days_until, expiring_window

logger = logging.getLogger(__name__)


def _digest_recipients() -> list[str]:
    User = get_user_model()
    return list(
        User.objects.filter(
            Q(role="admin") | Q(is_superuser=True),
            is_active=True,
        )
        .exclude(email="")
        .values_list("email", flat=True)
        .distinct()
    )


def collect_expiring(today=None) -> dict:
    """Active assets and licenses whose warranty or term ends soon."""
    start, end = expiring_window(today)
    assets = Asset.objects.filter(
        is_active=True,
        warranty_expiry__range=(start, end),
    ).order_by("warranty_expiry", "asset_tag")
    licenses = License.objects.filter(
        is_active=True,
        expiry_date__range=(start, end),
    ).order_by("expiry_date", "name")
    return {
        "assets": [
            (a.asset_tag, a.name, days_until(a.warranty_expiry, start))
            for a in assets
        ],
        "licenses": [
            (lic.name, days_until(lic.expiry_date, start)) for lic in licenses
        ],
    }


def _render_digest(expiring: dict) -> tuple[str, str]:
    lines = []
    if expiring["assets"]:
        lines.append("Warranties expiring:")
        lines.extend(
            f"  {tag} {name}: {days} day(s)"
            for tag, name, days in expiring["assets"]
        )
    if expiring["licenses"]:
        lines.append("Licenses expiring:")
        lines.extend(
            f"  {name}: {days} day(s)" for name, days in expiring["licenses"]
        )
    text_body = "\n".join(lines)
    html_body = "<pre>" + escape(text_body) + "</pre>"
    return text_body, html_body


@shared_task(
    bind=True,
    max_retries=3,
    default_retry_delay=60,
    autoretry_for=(Exception,),
    retry_backoff=True,
)
def send_expiry_digest(self) -> int:
    """Email admins the warranties and licenses about to expire.

    Returns the number of expiring items reported (0 sends nothing).
    """
    expiring = collect_expiring()
    count = len(expiring["assets"]) + len(expiring["licenses"])
    if not count:
        logger.info("Expiry digest: nothing expiring")
        return 0
    recipients = _digest_recipients()
    if not recipients:
        logger.warning(
            "Expiry digest: %d item(s) expiring but no admin email", count
        )
        return count
    text_body, html_body = _render_digest(expiring)
    msg = EmailMultiAlternatives(
        subject=f"[{settings.SITE_NAME}] {count} item(s) expiring soon",
        body=text_body,
        from_email=settings.DEFAULT_FROM_EMAIL,
        to=recipients,
    )
    msg.attach_alternative(html_body, "text/html")
    msg.send()
    logger.info("Expiry digest sent to %s (%d items)", recipients, count)
    return count
