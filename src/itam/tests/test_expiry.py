"""Tests for warranty and license expiry, including the digest task."""

from datetime import date, timedelta

from django.core import mail
from django.test import override_settings
from django.utils import timezone

from itam.factories import AssetFactory, LicenseFactory
from itam.services.expiry import days_until, expiring_window, expiry_status
from itam.tasks import collect_expiring, send_expiry_digest

TODAY = date(2024, 6, 1)


class TestExpiryStatus:
    def test_no_date(self):
        assert expiry_status(None, TODAY) is None

    def test_expired(self):
        assert expiry_status(date(2024, 5, 31), TODAY) == "expired"

    def test_expiring_today(self):
        assert expiry_status(TODAY, TODAY) == "expiring"

    def test_expiring_at_window_edge(self):
        assert expiry_status(TODAY + timedelta(days=30), TODAY) == "expiring"

    def test_active(self):
        assert expiry_status(TODAY + timedelta(days=31), TODAY) == "active"

    @override_settings(EXPIRY_WARNING_DAYS=7)
    def test_window_is_configurable(self):
        assert expiry_status(TODAY + timedelta(days=8), TODAY) == "active"
        assert expiring_window(TODAY) == (TODAY, date(2024, 6, 8))

    def test_days_until(self):
        assert days_until(date(2024, 6, 11), TODAY) == 10
        assert days_until(None, TODAY) is None


class TestExpiryDigest:
    def test_collects_only_window(self, organisation):
        today = timezone.localdate()
        AssetFactory(
            asset_tag="LAP-0001",
            organisation=organisation,
            warranty_expiry=today + timedelta(days=5),
        )
        AssetFactory(
            asset_tag="LAP-0002",
            organisation=organisation,
            warranty_expiry=today + timedelta(days=90),
        )
        AssetFactory(
            asset_tag="LAP-0003",
            organisation=organisation,
            warranty_expiry=today + timedelta(days=2),
            is_active=False,
        )
        LicenseFactory(name="Office", expiry_date=today + timedelta(days=1))
        expiring = collect_expiring()
        assert [a[0] for a in expiring["assets"]] == ["LAP-0001"]
        assert expiring["licenses"] == [("Office", 1)]

    def test_sends_to_admins(self, admin_user, user):
        LicenseFactory(
            name="Antivirus",
            expiry_date=timezone.localdate() + timedelta(days=3),
        )
        assert send_expiry_digest.apply().get() == 1
        assert len(mail.outbox) == 1
        message = mail.outbox[0]
        assert message.to == [admin_user.email]
        assert "Antivirus" in message.body

    def test_nothing_expiring_sends_nothing(self, admin_user):
        assert send_expiry_digest.apply().get() == 0
        assert mail.outbox == []
