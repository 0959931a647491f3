"""Tests for lifecycle actions applied to the database."""

from datetime import date, timedelta
from decimal import Decimal
from unittest.mock import patch

import pytest

from django.core.exceptions import ValidationError
from django.db import DatabaseError
from django.utils import timezone

from itam.factories import AssetFactory, LicenseFactory
from itam.models import Asset, AssetHistory, LicenseAssignment, Repair
from itam.services.licenses import assign_license
from itam.services.lifecycle import ASSIGNMENT_FIELDS, InvalidTransition
from itam.services.transitions import (
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


def _assert_unassigned(asset):
    for name in ASSIGNMENT_FIELDS:
        assert getattr(asset, name) is None, name


class TestCheckout:
    def test_checkout_assigns_and_records(self, asset, user, manager_user):
        due = timezone.localdate() + timedelta(days=7)
        entry = checkout_asset(
            asset, user, manager_user, expected_return_date=due, notes="Trip"
        )
        asset.refresh_from_db()
        assert asset.status == "in_use"
        assert asset.assigned_to == user
        assert asset.checked_out_to == user
        assert asset.checked_out_at is not None
        assert asset.expected_return_date == due
        assert asset.check_out_notes == "Trip"
        assert entry.action == "checked_out"
        assert entry.old_value == "available"
        assert entry.new_value == "in_use"
        assert entry.performed_by == manager_user

    def test_checkout_of_in_use_asset_rejected(
        self, asset, user, second_user, manager_user
    ):
        checkout_asset(asset, user, manager_user)
        with pytest.raises(InvalidTransition):
            checkout_asset(asset, second_user, manager_user)
        asset.refresh_from_db()
        assert asset.checked_out_to == user
        assert asset.history.filter(action="checked_out").count() == 1

    def test_checkin_clears_assignment(self, asset, user, manager_user):
        checkout_asset(asset, user, manager_user)
        entry = checkin_asset(asset, manager_user, notes="Returned")
        asset.refresh_from_db()
        assert asset.status == "available"
        _assert_unassigned(asset)
        assert entry.details["notes"] == "Returned"


class TestLeavingStatuses:
    def test_dispose_in_use_asset(self, asset, user, manager_user):
        checkout_asset(asset, user, manager_user)
        entry = dispose_asset(asset, manager_user, notes="End of life")
        asset.refresh_from_db()
        assert asset.status == "disposed"
        _assert_unassigned(asset)
        assert entry.action == "status_changed"
        assert entry.old_value == "in_use"
        assert entry.new_value == "disposed"

    def test_mark_lost_in_use_asset(self, asset, user, manager_user):
        checkout_asset(asset, user, manager_user)
        entry = mark_as_lost(asset, manager_user, notes="Stolen")
        asset.refresh_from_db()
        assert asset.status == "lost"
        _assert_unassigned(asset)
        assert entry.action == "marked_as_broken"

    def test_repair_opens_in_progress_record(self, asset, user, manager_user):
        checkout_asset(asset, user, manager_user)
        send_for_repair(
            asset, manager_user, technician="Acme", cost=Decimal("80.00")
        )
        asset.refresh_from_db()
        assert asset.status == "maintenance"
        _assert_unassigned(asset)
        repair = Repair.objects.get(asset=asset)
        assert repair.status == "in_progress"
        assert repair.technician == "Acme"
        assert repair.cost == Decimal("80.00")

    def test_repair_with_completion_is_completed(self, asset, manager_user):
        started = timezone.now() - timedelta(days=2)
        send_for_repair(
            asset,
            manager_user,
            started_at=started,
            completed_at=timezone.now(),
        )
        assert Repair.objects.get(asset=asset).status == "completed"

    def test_change_status_retired(self, asset, user, manager_user):
        checkout_asset(asset, user, manager_user)
        change_status(asset, "retired", manager_user)
        asset.refresh_from_db()
        assert asset.status == "retired"
        _assert_unassigned(asset)

    def test_reactivate_disposed(self, asset, manager_user):
        dispose_asset(asset, manager_user)
        entry = change_status(asset, "available", manager_user)
        assert entry.details["reactivated"] is True


class TestHistoryPerTransition:
    def test_one_entry_per_action(self, asset, user, manager_user):
        checkout_asset(asset, user, manager_user)
        checkin_asset(asset, manager_user)
        send_for_repair(asset, manager_user)
        change_status(asset, "available", manager_user)
        dispose_asset(asset, manager_user)
        actions = list(
            asset.history.order_by("created_at", "pk").values_list(
                "action", flat=True
            )
        )
        assert actions == [
            "checked_out",
            "checked_in",
            "sent_for_repair",
            "status_changed",
            "status_changed",
        ]

    def test_rejected_action_writes_nothing(self, asset, manager_user):
        with pytest.raises(InvalidTransition):
            checkin_asset(asset, manager_user)
        assert not asset.history.exists()

    def test_history_failure_rolls_back_status(
        self, asset, user, manager_user
    ):
        with patch(
            "itam.services.transitions.record_history",
            side_effect=DatabaseError("insert failed"),
        ):
            with pytest.raises(DatabaseError):
                checkout_asset(asset, user, manager_user)
        asset.refresh_from_db()
        assert asset.status == "available"
        _assert_unassigned(asset)
        assert not AssetHistory.objects.filter(asset=asset).exists()


class TestLicensesOnTerminalStatus:
    def test_dispose_releases_seats(self, asset, manager_user):
        lic = LicenseFactory(seats_total=2)
        assign_license(lic, asset)
        entry = dispose_asset(asset, manager_user)
        lic.refresh_from_db()
        assert lic.seats_allocated == 0
        assert entry.details["licenses_released"] == 1
        assert set(asset.history.values_list("action", flat=True)) == {
            "status_changed"
        }
        assert not LicenseAssignment.objects.filter(
            asset=asset, released_at__isnull=True
        ).exists()

    def test_retire_keeps_seats(self, asset, manager_user):
        lic = LicenseFactory(seats_total=2)
        assign_license(lic, asset)
        change_status(asset, "retired", manager_user)
        lic.refresh_from_db()
        assert lic.seats_allocated == 1


class TestCreateAsset:
    def test_create_allocates_tag(self, tag_format, manager_user):
        asset = create_asset(
            manager_user, category=tag_format.category, name="ThinkPad"
        )
        assert asset.asset_tag == "LAP-0001"
        assert asset.status == "available"
        assert asset.organisation == manager_user.organisation
        assert asset.history.get().action == "created"

    def test_create_without_format_creates_nothing(
        self, category, manager_user
    ):
        with pytest.raises(ValidationError):
            create_asset(manager_user, category=category, name="ThinkPad")
        assert Asset.objects.count() == 0

    def test_create_rejects_lifecycle_fields(self, tag_format, manager_user):
        with pytest.raises(ValidationError):
            create_asset(
                manager_user,
                category=tag_format.category,
                name="ThinkPad",
                status="in_use",
            )

    def test_create_requires_name(self, tag_format, manager_user):
        with pytest.raises(ValidationError):
            create_asset(manager_user, category=tag_format.category)
        assert Asset.objects.count() == 0
        tag_format.refresh_from_db()
        assert tag_format.current_number == 0


class TestUpdateAsset:
    def test_records_changes(self, asset, manager_user):
        update_asset(
            asset,
            manager_user,
            name="ThinkPad X1 Gen 11",
            purchase_date=date(2024, 1, 5),
        )
        asset.refresh_from_db()
        assert asset.name == "ThinkPad X1 Gen 11"
        entry = asset.history.get(action="updated")
        assert entry.details["changes"]["name"] == {
            "from": "ThinkPad X1",
            "to": "ThinkPad X1 Gen 11",
        }
        assert entry.details["changes"]["purchase_date"]["to"] == "2024-01-05"

    def test_no_change_no_history(self, asset, manager_user):
        update_asset(asset, manager_user, name=asset.name)
        assert not asset.history.exists()

    def test_status_is_protected(self, asset, manager_user):
        with pytest.raises(ValidationError):
            update_asset(asset, manager_user, status="disposed")

    def test_assignment_is_protected(self, asset, user, manager_user):
        with pytest.raises(ValidationError):
            update_asset(asset, manager_user, assigned_to=user)


class TestReplicateAndDeactivate:
    def test_replicate(self, tag_format, manager_user):
        source = create_asset(
            manager_user,
            category=tag_format.category,
            name="Dock",
            asset_id="FIN-77",
            serial_number="SN1",
        )
        copy = replicate_asset(source, manager_user)
        assert copy.asset_tag == "LAP-0002"
        assert copy.name == "Dock (Copy)"
        assert copy.asset_id == "FIN-77-COPY"
        assert copy.serial_number == "SN1"
        assert source.history.filter(action="replicated").exists()
        assert copy.history.filter(action="replicated").exists()

    def test_deactivate_is_soft(self, asset, manager_user):
        deactivate_asset(asset, manager_user)
        asset.refresh_from_db()
        assert asset.is_active is False
        assert asset.history.get().action == "deleted"

    def test_deactivate_twice_rejected(self, asset, manager_user):
        deactivate_asset(asset, manager_user)
        with pytest.raises(ValidationError):
            deactivate_asset(asset, manager_user)

    def test_hard_delete_refused(self, asset):
        with pytest.raises(ValidationError):
            asset.delete()
        assert Asset.objects.filter(pk=asset.pk).exists()


class TestUserDeletion:
    def test_held_assets_checked_in(self, asset, user, manager_user):
        checkout_asset(asset, user, manager_user)
        user.delete()
        asset.refresh_from_db()
        assert asset.status == "available"
        _assert_unassigned(asset)
        entry = asset.history.get(action="checked_in")
        assert "deleted" in entry.details["notes"]
        assert entry.performed_by is None


@pytest.mark.django_db
class TestAssignmentConstraint:
    def test_database_rejects_assignment_outside_in_use(self, user):
        from django.db import IntegrityError, transaction

        with pytest.raises(IntegrityError):
            with transaction.atomic():
                AssetFactory(status="available", assigned_to=user)
