"""Users, organisations and per-organisation route access."""

from django.contrib.auth.models import AbstractUser
from django.db import models
from django.db.models import Q
from django.db.models.signals import pre_delete
from django.dispatch import receiver


class Organisation(models.Model):
    """Tenant that owns users, assets and access settings."""

    name = models.CharField(max_length=200)
    slug = models.SlugField(max_length=100, unique=True)
    is_active = models.BooleanField(default=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ["name"]

    def __str__(self):
        return self.name


class CustomUser(AbstractUser):
    """Helpdesk user with a role and an organisation context."""

    ROLE_CHOICES = [
        ("admin", "Administrator"),
        ("manager", "Manager"),
        ("user", "User"),
    ]

    display_name = models.CharField(
        max_length=255,
        blank=True,
        help_text="Human-readable name shown on assignments and history",
    )
    role = models.CharField(
        max_length=20, choices=ROLE_CHOICES, default="user"
    )
    organisation = models.ForeignKey(
        Organisation,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="users",
    )

    class Meta:
        verbose_name = "user"
        verbose_name_plural = "users"

    @property
    def effective_role(self):
        """Superusers always act as admins."""
        if self.is_superuser:
            return "admin"
        return self.role

    def get_display_name(self):
        """Return display_name if set, otherwise full name or username."""
        if self.display_name:
            return self.display_name
        full = self.get_full_name()
        return full if full else self.username

    def __str__(self):
        return self.get_display_name()


class RouteAccess(models.Model):
    """Grant (or explicit denial) of one application route."""

    organisation = models.ForeignKey(
        Organisation,
        on_delete=models.CASCADE,
        related_name="route_access",
    )
    route = models.CharField(max_length=200)
    is_allowed = models.BooleanField(default=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        verbose_name = "route access"
        verbose_name_plural = "route access"
        ordering = ["organisation", "route"]
        constraints = [
            models.UniqueConstraint(
                fields=["organisation", "route"],
                name="unique_route_per_organisation",
            ),
        ]

    def __str__(self):
        state = "allowed" if self.is_allowed else "denied"
        return f"{self.organisation}: {self.route} ({state})"


@receiver(pre_delete, sender=CustomUser)
def check_in_assets_of_deleted_user(sender, instance, **kwargs):
    """Check in assets held by a user being deleted so no asset stays
    in use with a dangling assignment."""
    from itam.models import Asset
    from itam.services.transitions import checkin_asset

    display_name = instance.get_display_name()
    held = Asset.objects.filter(
        Q(checked_out_to=instance) | Q(assigned_to=instance),
        status="in_use",
    )
    for asset in held:
        checkin_asset(
            asset,
            performed_by=None,
            notes=(
                f"Assignee '{display_name}' (user #{instance.pk}) "
                f"deleted."
            ),
        )
