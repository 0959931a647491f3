"""Tests for accounts models."""

import pytest

from django.db import IntegrityError, transaction

from accounts.models import RouteAccess
from itam.factories import UserFactory


class TestCustomUser:
    def test_display_name_preferred(self, db):
        user = UserFactory(display_name="Jo Bloggs", username="jb")
        assert user.get_display_name() == "Jo Bloggs"
        assert str(user) == "Jo Bloggs"

    def test_falls_back_to_full_name_then_username(self, db):
        user = UserFactory(
            display_name="", first_name="Ada", last_name="Lovelace"
        )
        assert user.get_display_name() == "Ada Lovelace"
        user.first_name = user.last_name = ""
        assert user.get_display_name() == user.username

    def test_default_role(self, db):
        assert UserFactory().role == "user"

    def test_superuser_effective_role(self, db):
        user = UserFactory(is_superuser=True, role="user")
        assert user.effective_role == "admin"

    def test_manager_effective_role(self, manager_user):
        assert manager_user.effective_role == "manager"


class TestRouteAccess:
    def test_one_entry_per_route(self, organisation):
        RouteAccess.objects.create(organisation=organisation, route="/x")
        with pytest.raises(IntegrityError):
            with transaction.atomic():
                RouteAccess.objects.create(
                    organisation=organisation, route="/x"
                )

    def test_str(self, organisation):
        entry = RouteAccess.objects.create(
            organisation=organisation, route="/assets/detail", is_allowed=False
        )
        assert str(entry) == "Head Office: /assets/detail (denied)"
