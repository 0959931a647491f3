"""Warranty and license expiry status."""

from datetime import date, timedelta

from django.conf import settings
from django.utils import timezone


def warning_days() -> int:
    return getattr(settings, "EXPIRY_WARNING_DAYS", 30)


def expiry_status(expires_on: date | None, today: date | None = None):
    """Return ``expired``, ``expiring``, ``active`` or None (no date).

    ``expiring`` covers the configured warning window, today included.
    """
    if expires_on is None:
        return None
    today = today or timezone.localdate()
    if expires_on < today:
        return "expired"
    if (expires_on - today).days <= warning_days():
        return "expiring"
    return "active"


def days_until(expires_on: date | None, today: date | None = None):
    if expires_on is None:
        return None
    today = today or timezone.localdate()
    return (expires_on - today).days


def expiring_window(today: date | None = None) -> tuple[date, date]:
    """Inclusive date range considered ``expiring``."""
    today = today or timezone.localdate()
    return today, today + timedelta(days=warning_days())
