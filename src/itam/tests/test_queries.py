"""Tests for asset list filtering, sorting and pagination."""

import pytest

from django.core.exceptions import ValidationError

from itam.factories import AssetFactory, CategoryFactory
from itam.services.queries import (
    count_assets,
    list_assets,
    normalise_sort,
    validate_filter_params,
)


class TestFilterParams:
    def test_unknown_and_empty_keys_dropped(self):
        params = {"status": "available", "q": "", "evil": "1"}
        assert validate_filter_params(params) == {"status": "available"}

    def test_sort_whitelist(self):
        assert normalise_sort("-name") == "-name"
        assert normalise_sort("password") == "-updated_at"
        assert normalise_sort(None) == "-updated_at"

    def test_sort_allows_one_leading_minus_only(self):
        assert normalise_sort("--name") == "-updated_at"
        assert normalise_sort("name") == "name"

    def test_id_filters_coerced(self):
        assert validate_filter_params({"category": "7"}) == {"category": 7}

    @pytest.mark.parametrize(
        "name", ["category", "department", "location", "assigned_to"]
    )
    def test_non_numeric_id_filter_rejected(self, name):
        with pytest.raises(ValidationError):
            validate_filter_params({name: "abc"})


class TestListAssets:
    def test_inactive_hidden_by_default(self, organisation):
        AssetFactory(organisation=organisation)
        AssetFactory(organisation=organisation, is_active=False)
        assert count_assets({}) == 1
        assert count_assets({"include_inactive": "1"}) == 2

    def test_status_list(self, organisation):
        AssetFactory(organisation=organisation, status="available")
        AssetFactory(organisation=organisation, status="retired")
        AssetFactory(organisation=organisation, status="lost")
        assert count_assets({"status": "retired,lost"}) == 2

    def test_search(self, organisation):
        AssetFactory(organisation=organisation, name="Dell Monitor")
        AssetFactory(
            organisation=organisation, name="Laptop", serial_number="DL-99"
        )
        AssetFactory(organisation=organisation, name="Phone")
        assert count_assets({"q": "dell"}) == 1
        assert count_assets({"q": "DL-"}) == 1

    def test_category_filter(self, organisation):
        laptops = CategoryFactory(name="Laptops")
        AssetFactory(organisation=organisation, category=laptops)
        AssetFactory(organisation=organisation)
        assert count_assets({"category": str(laptops.pk)}) == 1

    def test_organisation_scope(self, organisation, other_organisation):
        AssetFactory(organisation=organisation)
        AssetFactory(organisation=other_organisation)
        assert count_assets({}, organisation=organisation) == 1

    def test_pagination(self, organisation):
        for n in range(5):
            AssetFactory(organisation=organisation, asset_tag=f"PG-{n}")
        assets, count, num_pages = list_assets(
            {}, sort="asset_tag", page=2, page_size=2
        )
        assert [a.asset_tag for a in assets] == ["PG-2", "PG-3"]
        assert count == 5
        assert num_pages == 3

    def test_page_past_end_is_empty(self, organisation):
        AssetFactory(organisation=organisation)
        assets, count, _ = list_assets({}, page=9, page_size=10)
        assert assets == []
        assert count == 1
