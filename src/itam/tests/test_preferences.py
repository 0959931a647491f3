"""Tests for preference blobs merged with defaults."""

import pytest

from django.core.exceptions import ValidationError

from itam.models import UserPreference
from itam.services.preferences import (
    ASSET_COLUMNS_KEY,
    DASHBOARD_KEY,
    DEFAULT_ASSET_COLUMNS,
    get_preference,
    merge_columns,
    merge_dashboard,
    reset_preference,
    set_preference,
)

DEFAULT_IDS = [c["id"] for c in DEFAULT_ASSET_COLUMNS]


class TestMergeColumns:
    def test_defaults_when_nothing_saved(self):
        merged = merge_columns(DEFAULT_ASSET_COLUMNS, None)
        assert [c["id"] for c in merged] == DEFAULT_IDS
        assert [c["order"] for c in merged] == list(range(len(DEFAULT_IDS)))

    def test_new_columns_appended_after_saved(self):
        saved = [
            {"id": "status", "visible": True, "order": 0},
            {"id": "make", "visible": False, "order": 1},
        ]
        merged = merge_columns(DEFAULT_ASSET_COLUMNS, saved)
        ids = [c["id"] for c in merged]
        assert ids[:2] == ["status", "make"]
        assert set(ids) == set(DEFAULT_IDS)
        make = next(c for c in merged if c["id"] == "make")
        assert make["visible"] is False

    def test_unknown_saved_columns_dropped(self):
        saved = [{"id": "retired_column", "visible": True, "order": 0}]
        merged = merge_columns(DEFAULT_ASSET_COLUMNS, saved)
        assert "retired_column" not in [c["id"] for c in merged]

    def test_locked_column_stays_visible(self):
        saved = [{"id": "asset_tag", "visible": False, "order": 3}]
        merged = merge_columns(DEFAULT_ASSET_COLUMNS, saved)
        tag = next(c for c in merged if c["id"] == "asset_tag")
        assert tag["visible"] is True

    def test_labels_come_from_defaults(self):
        saved = [{"id": "make", "label": "Brand", "order": 0}]
        merged = merge_columns(DEFAULT_ASSET_COLUMNS, saved)
        assert merged[0]["label"] == "Make"

    def test_bad_saved_values_ignored(self):
        saved = [
            {"id": "make", "order": "x", "visible": "yes"},
            {"id": "status", "order": "0"},
        ]
        merged = merge_columns(DEFAULT_ASSET_COLUMNS, saved)
        assert merged[0]["id"] == "status"
        make = next(c for c in merged if c["id"] == "make")
        assert make["visible"] is True
        assert sorted(c["order"] for c in merged) == list(
            range(len(DEFAULT_IDS))
        )

    def test_unknown_keys_not_copied(self):
        saved = [{"id": "make", "order": 0, "width": 300}]
        merged = merge_columns(DEFAULT_ASSET_COLUMNS, saved)
        assert "width" not in merged[0]


class TestMergeDashboard:
    def test_saved_layout_keeps_new_widgets(self):
        defaults = {
            "widgets": [
                {"id": "a", "label": "A", "enabled": True},
                {"id": "b", "label": "B", "enabled": False},
            ],
            "columns": 4,
        }
        saved = {"widgets": [{"id": "a", "enabled": False}], "columns": 3}
        merged = merge_dashboard(defaults, saved)
        assert merged["columns"] == 3
        assert merged["widgets"] == [
            {"id": "a", "label": "A", "enabled": False},
            {"id": "b", "label": "B", "enabled": False},
        ]

    def test_garbage_falls_back_to_defaults(self):
        defaults = {"widgets": [], "columns": 4}
        assert merge_dashboard(defaults, "nonsense") == defaults

    def test_mistyped_settings_ignored(self):
        defaults = {
            "widgets": [{"id": "a", "label": "A", "enabled": True}],
            "columns": 4,
        }
        saved = {
            "widgets": [{"id": "a", "enabled": "no"}],
            "columns": "wide",
            "extra": 1,
        }
        assert merge_dashboard(defaults, saved) == defaults


class TestStoredPreferences:
    def test_get_returns_defaults(self, user):
        columns = get_preference(user, ASSET_COLUMNS_KEY)
        assert [c["id"] for c in columns] == DEFAULT_IDS

    def test_set_then_get(self, user):
        set_preference(
            user, DASHBOARD_KEY, {"columns": 2, "showChart": False}
        )
        dashboard = get_preference(user, DASHBOARD_KEY)
        assert dashboard["columns"] == 2
        assert dashboard["showChart"] is False
        assert dashboard["showFeeds"] is True

    def test_last_write_wins(self, user):
        set_preference(user, "theme", {"dark": True})
        set_preference(user, "theme", {"dark": False})
        assert UserPreference.objects.filter(user=user).count() == 1
        assert get_preference(user, "theme") == {"dark": False}

    def test_unknown_key_without_value(self, user):
        assert get_preference(user, "theme") is None

    def test_bad_column_blob_rejected(self, user):
        with pytest.raises(ValidationError):
            set_preference(
                user, ASSET_COLUMNS_KEY, [{"id": "make", "order": "x"}]
            )
        assert not UserPreference.objects.filter(user=user).exists()
        columns = get_preference(user, ASSET_COLUMNS_KEY)
        assert [c["id"] for c in columns] == DEFAULT_IDS

    def test_bad_stored_blob_still_reads(self, user):
        UserPreference.objects.create(
            user=user,
            key=ASSET_COLUMNS_KEY,
            value=[{"id": "make", "order": "x"}],
        )
        columns = get_preference(user, ASSET_COLUMNS_KEY)
        assert {c["id"] for c in columns} == set(DEFAULT_IDS)

    def test_dashboard_must_be_object(self, user):
        with pytest.raises(ValidationError):
            set_preference(user, DASHBOARD_KEY, [1, 2])

    def test_reset(self, user):
        set_preference(user, DASHBOARD_KEY, {"columns": 1})
        reset_preference(user, DASHBOARD_KEY)
        assert get_preference(user, DASHBOARD_KEY)["columns"] == 4
