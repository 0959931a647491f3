"""Shared pytest fixtures for itdesk tests."""

import pytest

from django.conf import settings

from itam.factories import (
    AssetFactory,
    CategoryFactory,
    DepartmentFactory,
    LocationFactory,
    OrganisationFactory,
    TagFormatFactory,
    UserFactory,
)

settings.STORAGES["staticfiles"] = {
    "BACKEND": "django.contrib.staticfiles.storage.StaticFilesStorage",
}

# Run Celery tasks synchronously in tests
settings.CELERY_TASK_ALWAYS_EAGER = True
settings.CELERY_TASK_EAGER_PROPAGATES = True

# Use in-memory cache for tests (avoids Redis connection errors)
settings.CACHES = {
    "default": {
        "BACKEND": "django.core.cache.backends.locmem.LocMemCache",
    }
}

settings.EMAIL_BACKEND = "django.core.mail.backends.locmem.EmailBackend"
settings.PASSWORD_HASHERS = ["django.contrib.auth.hashers.MD5PasswordHasher"]


@pytest.fixture(autouse=True)
def _clear_cache():
    """Clear the in-memory cache before each test."""
    from django.core.cache import cache

    cache.clear()


@pytest.fixture
def password():
    return "testpass123!"


@pytest.fixture
def organisation(db):
    return OrganisationFactory(name="Head Office", slug="head-office")


@pytest.fixture
def other_organisation(db):
    return OrganisationFactory(name="Branch", slug="branch")


@pytest.fixture
def user(organisation, password):
    return UserFactory(
        username="testuser",
        email="test@example.com",
        password=password,
        display_name="Test User",
        organisation=organisation,
    )


@pytest.fixture
def manager_user(organisation, password):
    return UserFactory(
        username="manager",
        email="manager@example.com",
        password=password,
        display_name="Desk Manager",
        role="manager",
        organisation=organisation,
    )


@pytest.fixture
def admin_user(organisation, password):
    return UserFactory(
        username="admin",
        email="admin@example.com",
        password=password,
        display_name="Admin",
        role="admin",
        is_staff=True,
        is_superuser=True,
        organisation=organisation,
    )


@pytest.fixture
def second_user(organisation, password):
    return UserFactory(
        username="seconduser",
        email="second@example.com",
        password=password,
        display_name="Second User",
        organisation=organisation,
    )


@pytest.fixture
def client_logged_in(client, user, password):
    client.login(username=user.username, password=password)
    return client


@pytest.fixture
def manager_client(client, manager_user, password):
    client.login(username=manager_user.username, password=password)
    return client


@pytest.fixture
def admin_client(client, admin_user, password):
    client.login(username=admin_user.username, password=password)
    return client


@pytest.fixture
def grant_routes(organisation):
    """Grant the organisation access to the given routes."""
    from accounts.models import RouteAccess

    def _grant(*routes, org=None):
        for route in routes:
            RouteAccess.objects.update_or_create(
                organisation=org or organisation,
                route=route,
                defaults={"is_allowed": True},
            )

    return _grant


# --- Core model fixtures ---


@pytest.fixture
def department(db):
    return DepartmentFactory(name="IT Operations")


@pytest.fixture
def location(db):
    return LocationFactory(name="Server Room", address="1 Main St")


@pytest.fixture
def category(db):
    return CategoryFactory(name="Laptops", description="Portable computers")


@pytest.fixture
def tag_format(category):
    return TagFormatFactory(category=category, prefix="LAP-", zero_padding=4)


@pytest.fixture
def asset(category, location, organisation, manager_user):
    return AssetFactory(
        asset_tag="LAP-0001",
        name="ThinkPad X1",
        category=category,
        location=location,
        organisation=organisation,
        created_by=manager_user,
    )
