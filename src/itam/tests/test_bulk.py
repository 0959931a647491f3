"""Tests for bulk status updates."""

from unittest.mock import patch

from django.db import DatabaseError

from itam.factories import AssetFactory
from itam.models import AssetHistory
from itam.services import transitions
from itam.services.transitions import bulk_status_update, checkout_asset


class TestBulkStatusUpdate:
    def test_all_succeed(self, organisation, manager_user):
        assets = AssetFactory.create_batch(3, organisation=organisation)
        result = bulk_status_update(
            [a.pk for a in assets], "retired", manager_user
        )
        assert result.ok
        assert result.succeeded == [a.pk for a in assets]
        for a in assets:
            a.refresh_from_db()
            assert a.status == "retired"
        assert (
            AssetHistory.objects.filter(action="status_changed").count() == 3
        )

    def test_failure_does_not_undo_others(self, organisation, manager_user):
        first, second, third = AssetFactory.create_batch(
            3, organisation=organisation
        )
        real_record = transitions.record_history

        def flaky_record(asset, *args, **kwargs):
            if asset.pk == second.pk:
                raise DatabaseError("history insert failed")
            return real_record(asset, *args, **kwargs)

        with patch(
            "itam.services.transitions.record_history",
            side_effect=flaky_record,
        ):
            result = bulk_status_update(
                [first.pk, second.pk, third.pk], "disposed", manager_user
            )

        assert not result.ok
        assert result.succeeded == [first.pk, third.pk]
        assert list(result.failed) == [second.pk]
        assert "history insert failed" in result.failed[second.pk]
        for a in (first, second, third):
            a.refresh_from_db()
        assert first.status == "disposed"
        assert second.status == "available"
        assert third.status == "disposed"

    def test_invalid_transition_reported_per_asset(
        self, organisation, user, manager_user
    ):
        retired = AssetFactory(organisation=organisation, status="retired")
        available = AssetFactory(organisation=organisation)
        result = bulk_status_update(
            [retired.pk, available.pk], "retired", manager_user
        )
        assert result.succeeded == [available.pk]
        assert "already" in result.failed[retired.pk]

    def test_in_use_rejected_for_every_asset(self, organisation, manager_user):
        assets = AssetFactory.create_batch(2, organisation=organisation)
        result = bulk_status_update(
            [a.pk for a in assets], "in_use", manager_user
        )
        assert result.succeeded == []
        assert set(result.failed) == {a.pk for a in assets}

    def test_missing_assets_reported(self, organisation, manager_user):
        existing = AssetFactory(organisation=organisation)
        result = bulk_status_update(
            [existing.pk, 999999], "retired", manager_user
        )
        assert result.succeeded == [existing.pk]
        assert result.failed == {999999: "Asset not found."}

    def test_checked_out_assets_are_released(
        self, organisation, user, manager_user
    ):
        asset = AssetFactory(organisation=organisation)
        checkout_asset(asset, user, manager_user)
        bulk_status_update([asset.pk], "maintenance", manager_user)
        asset.refresh_from_db()
        assert asset.status == "maintenance"
        assert asset.checked_out_to is None
        assert asset.assigned_to is None
