"""Tests for the route access gate."""

from unittest.mock import patch

from django.contrib.auth.models import AnonymousUser
from django.db import DatabaseError

from accounts.models import RouteAccess
from itam.services.access import (
    AccessState,
    ActorContext,
    can_manage_assets,
    has_access,
    has_access_batch,
    resolve_access,
)

ROUTE = "/assets/allassets"


class TestActorContext:
    def test_from_user(self, user):
        actor = ActorContext.from_user(user)
        assert actor.user_id == user.pk
        assert actor.role == "user"
        assert actor.organisation_id == user.organisation_id

    def test_superuser_is_admin(self, admin_user):
        admin_user.role = "user"
        assert ActorContext.from_user(admin_user).is_admin

    def test_anonymous(self):
        actor = ActorContext.from_user(AnonymousUser())
        assert actor == ActorContext(None, None, None)

    def test_can_manage_assets(self):
        assert can_manage_assets(ActorContext(1, "manager", 1))
        assert can_manage_assets(ActorContext(1, "admin", None))
        assert not can_manage_assets(ActorContext(1, "user", 1))


class TestHasAccess:
    def test_admin_bypasses_table(self, db):
        actor = ActorContext(user_id=1, role="admin", organisation_id=None)
        assert has_access(ROUTE, actor)

    def test_default_deny(self, user):
        assert not has_access(ROUTE, ActorContext.from_user(user))

    def test_granted(self, user, grant_routes):
        grant_routes(ROUTE)
        assert has_access(ROUTE, ActorContext.from_user(user))

    def test_explicit_denial(self, user, organisation):
        RouteAccess.objects.create(
            organisation=organisation, route=ROUTE, is_allowed=False
        )
        assert not has_access(ROUTE, ActorContext.from_user(user))

    def test_grant_is_per_organisation(
        self, user, other_organisation, grant_routes
    ):
        grant_routes(ROUTE, org=other_organisation)
        assert not has_access(ROUTE, ActorContext.from_user(user))

    def test_no_organisation_denied(self, user):
        actor = ActorContext(user_id=user.pk, role="user", organisation_id=None)
        assert not has_access(ROUTE, actor)


class TestBatch:
    def test_map_of_routes(self, user, grant_routes):
        grant_routes("/assets/detail")
        access = has_access_batch(
            ["/assets/detail", ROUTE], ActorContext.from_user(user)
        )
        assert access == {"/assets/detail": True, ROUTE: False}

    def test_error_denies_only_that_route(self, user, grant_routes):
        grant_routes("/assets/detail", "/assets/licenses")
        from itam.services import access as access_module

        real = access_module.has_access

        def flaky(route, actor):
            if route == "/assets/licenses":
                raise DatabaseError("timeout")
            return real(route, actor)

        with patch.object(access_module, "has_access", side_effect=flaky):
            result = has_access_batch(
                ["/assets/detail", "/assets/licenses"],
                ActorContext.from_user(user),
            )
        assert result == {"/assets/detail": True, "/assets/licenses": False}


class TestResolveAccess:
    def test_loading_without_context(self, db):
        assert (
            resolve_access(ROUTE, ActorContext(None, None, None))
            is AccessState.LOADING
        )
        assert (
            resolve_access(ROUTE, ActorContext(3, "user", None))
            is AccessState.LOADING
        )

    def test_admin_allowed(self, db):
        assert (
            resolve_access(ROUTE, ActorContext(1, "admin", None))
            is AccessState.ALLOWED
        )

    def test_denied(self, user):
        assert (
            resolve_access(ROUTE, ActorContext.from_user(user))
            is AccessState.DENIED
        )

    def test_allowed(self, user, grant_routes):
        grant_routes(ROUTE)
        assert (
            resolve_access(ROUTE, ActorContext.from_user(user))
            is AccessState.ALLOWED
        )
