"""Factory Boy factories for itdesk test data generation."""

import factory
from factory.django import DjangoModelFactory


class OrganisationFactory(DjangoModelFactory):
    class Meta:
        model = "accounts.Organisation"
        django_get_or_create = ("slug",)

    name = factory.Sequence(lambda n: f"Organisation {n}")
    slug = factory.Sequence(lambda n: f"org-{n}")


class UserFactory(DjangoModelFactory):
    """Factory for CustomUser model."""

    class Meta:
        model = "accounts.CustomUser"
        skip_postgeneration_save = True

    username = factory.Sequence(lambda n: f"user{n}")
    email = factory.LazyAttribute(lambda o: f"{o.username}@example.com")
    display_name = factory.Faker("name")
    role = "user"
    is_active = True

    @factory.post_generation
    def password(self, create, extracted, **kwargs):
        pwd = extracted or "testpass123!"
        self.set_password(pwd)
        if create:
            self.save(update_fields=["password"])


class DepartmentFactory(DjangoModelFactory):
    class Meta:
        model = "itam.Department"

    name = factory.Sequence(lambda n: f"Department {n}")


class LocationFactory(DjangoModelFactory):
    class Meta:
        model = "itam.Location"

    name = factory.Sequence(lambda n: f"Location {n}")


class MakeFactory(DjangoModelFactory):
    class Meta:
        model = "itam.Make"

    name = factory.Sequence(lambda n: f"Make {n}")


class VendorFactory(DjangoModelFactory):
    class Meta:
        model = "itam.Vendor"

    name = factory.Sequence(lambda n: f"Vendor {n}")


class CategoryFactory(DjangoModelFactory):
    class Meta:
        model = "itam.Category"

    name = factory.Sequence(lambda n: f"Category {n}")


class TagFormatFactory(DjangoModelFactory):
    class Meta:
        model = "itam.TagFormat"

    category = factory.SubFactory(CategoryFactory)
    prefix = factory.Sequence(lambda n: f"T{n}-")
    zero_padding = 4


class AssetFactory(DjangoModelFactory):
    """Factory for Asset model.

    Sets ``asset_tag`` directly; use ``create_asset`` to exercise
    allocation.
    """

    class Meta:
        model = "itam.Asset"

    asset_tag = factory.Sequence(lambda n: f"FAC-{n:05d}")
    name = factory.Sequence(lambda n: f"Asset {n}")
    status = "available"
    is_active = True


class LicenseFactory(DjangoModelFactory):
    class Meta:
        model = "itam.License"

    name = factory.Sequence(lambda n: f"License {n}")
    seats_total = 5
    seats_allocated = 0
