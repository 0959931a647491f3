"""Models for IT asset management."""

from django.conf import settings
from django.core.exceptions import ValidationError
from django.core.validators import MinValueValidator
from django.db import models
from django.db.models import F, Q

from .services.lifecycle import ASSIGNMENT_FIELDS, STATUS_CHOICES


class LookupModel(models.Model):
    """Shared shape of the simple classification tables."""

    name = models.CharField(max_length=100)
    organisation = models.ForeignKey(
        "accounts.Organisation",
        on_delete=models.CASCADE,
        null=True,
        blank=True,
        related_name="+",
    )
    is_active = models.BooleanField(default=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        abstract = True
        ordering = ["name"]

    def __str__(self):
        return self.name


class Department(LookupModel):
    pass


class Location(LookupModel):
    """Site or room an asset lives at."""

    address = models.TextField(blank=True)


class Make(LookupModel):
    pass


class Vendor(LookupModel):
    contact_email = models.EmailField(blank=True)


class Category(LookupModel):
    """Asset type classification (laptop, monitor, phone...)."""

    description = models.TextField(blank=True)

    class Meta(LookupModel.Meta):
        verbose_name_plural = "categories"


class TagFormat(models.Model):
    """Asset tag prefix and zero padding for one category.

    ``current_number`` caches the last number handed out. It is a hint
    only: allocation also checks the tags that actually exist.
    """

    category = models.OneToOneField(
        Category,
        on_delete=models.CASCADE,
        related_name="tag_format",
    )
    prefix = models.CharField(max_length=20)
    zero_padding = models.PositiveSmallIntegerField(
        default=4,
        validators=[MinValueValidator(1)],
        help_text="Minimum number of digits after the prefix",
    )
    start_number = models.PositiveIntegerField(
        default=1,
        validators=[MinValueValidator(1)],
        help_text="First number to hand out for this prefix",
    )
    current_number = models.PositiveIntegerField(
        default=0,
        help_text="Last allocated number (cache, not authoritative)",
    )
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["prefix"]

    def __str__(self):
        return f"{self.category}: {self.prefix}"


class TagCounter(models.Model):
    """Allocation counter for one tag prefix.

    Categories sharing a prefix and the default fallback prefix all lock
    the same row, so tags stay unique per prefix.
    """

    prefix = models.CharField(max_length=20, unique=True)
    last_number = models.PositiveIntegerField(default=0)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["prefix"]

    def __str__(self):
        return f"{self.prefix} ({self.last_number})"


class AssetQuerySet(models.QuerySet):
    def active(self):
        return self.filter(is_active=True)

    def with_related(self):
        return self.select_related(
            "category",
            "make",
            "department",
            "location",
            "vendor",
            "assigned_to",
            "checked_out_to",
        )


class Asset(models.Model):
    """Individual trackable IT asset."""

    asset_tag = models.CharField(max_length=50, unique=True)
    asset_id = models.CharField(
        max_length=100,
        blank=True,
        help_text="Secondary identifier (e.g. finance or vendor id)",
    )
    name = models.CharField(max_length=200)
    description = models.TextField(blank=True)
    serial_number = models.CharField(max_length=100, blank=True)
    model = models.CharField(max_length=100, blank=True)

    category = models.ForeignKey(
        Category,
        on_delete=models.PROTECT,
        null=True,
        blank=True,
        related_name="assets",
    )
    make = models.ForeignKey(
        Make,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="assets",
    )
    department = models.ForeignKey(
        Department,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="assets",
    )
    location = models.ForeignKey(
        Location,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="assets",
    )
    vendor = models.ForeignKey(
        Vendor,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="assets",
    )

    status = models.CharField(
        max_length=20, choices=STATUS_CHOICES, default="available"
    )
    assigned_to = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="assigned_assets",
    )
    checked_out_to = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="checked_out_assets",
    )
    checked_out_at = models.DateTimeField(null=True, blank=True)
    expected_return_date = models.DateField(null=True, blank=True)
    check_out_notes = models.TextField(null=True, blank=True)

    purchase_date = models.DateField(null=True, blank=True)
    purchase_price = models.DecimalField(
        max_digits=12,
        decimal_places=2,
        null=True,
        blank=True,
        validators=[MinValueValidator(0)],
    )
    warranty_expiry = models.DateField(null=True, blank=True)

    is_active = models.BooleanField(
        default=True, help_text="Unset to hide the asset (soft delete)"
    )
    organisation = models.ForeignKey(
        "accounts.Organisation",
        on_delete=models.PROTECT,
        null=True,
        blank=True,
        related_name="assets",
    )
    created_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="created_assets",
    )
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    objects = AssetQuerySet.as_manager()

    class Meta:
        ordering = ["-updated_at"]
        indexes = [
            models.Index(fields=["status"], name="idx_asset_status"),
            models.Index(fields=["is_active"], name="idx_asset_is_active"),
            models.Index(
                fields=["warranty_expiry"], name="idx_asset_warranty"
            ),
        ]
        constraints = [
            models.CheckConstraint(
                condition=Q(status="in_use")
                | Q(
                    assigned_to__isnull=True,
                    checked_out_to__isnull=True,
                    checked_out_at__isnull=True,
                    expected_return_date__isnull=True,
                    check_out_notes__isnull=True,
                ),
                name="asset_assignment_only_in_use",
            ),
        ]

    def __str__(self):
        return f"{self.name} ({self.asset_tag})"

    def delete(self, *args, **kwargs):
        raise ValidationError(
            "Assets are never deleted. Deactivate the asset instead."
        )

    @property
    def is_checked_out(self):
        return self.status == "in_use"

    @property
    def assignment(self):
        """Current assignment field values, keyed by field name."""
        return {name: getattr(self, name) for name in ASSIGNMENT_FIELDS}


class AssetHistory(models.Model):
    """Append-only audit log of asset lifecycle events and edits."""

    ACTION_CHOICES = [
        ("created", "Created"),
        ("updated", "Updated"),
        ("checked_out", "Checked Out"),
        ("checked_in", "Checked In"),
        ("status_changed", "Status Changed"),
        ("marked_as_broken", "Marked As Broken"),
        ("sent_for_repair", "Sent For Repair"),
        ("deleted", "Deleted"),
        ("replicated", "Replicated"),
    ]

    asset = models.ForeignKey(
        Asset, on_delete=models.CASCADE, related_name="history"
    )
    action = models.CharField(max_length=30, choices=ACTION_CHOICES)
    old_value = models.CharField(max_length=255, null=True, blank=True)
    new_value = models.CharField(max_length=255, null=True, blank=True)
    details = models.JSONField(default=dict, blank=True)
    performed_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="asset_history",
    )
    organisation = models.ForeignKey(
        "accounts.Organisation",
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="asset_history",
    )
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        verbose_name_plural = "asset history"
        ordering = ["-created_at", "-pk"]
        indexes = [
            models.Index(
                fields=["asset", "created_at"],
                name="idx_history_asset_created",
            ),
            models.Index(fields=["action"], name="idx_history_action"),
        ]

    def __str__(self):
        return f"{self.asset.asset_tag} - {self.get_action_display()}"

    def save(self, *args, **kwargs):
        if self.pk is not None:
            raise ValidationError(
                "History entries are immutable and cannot be modified."
            )
        super().save(*args, **kwargs)

    def delete(self, *args, **kwargs):
        raise ValidationError(
            "History entries are immutable and cannot be deleted."
        )


class Repair(models.Model):
    """Repair or maintenance job opened when an asset goes for repair."""

    STATUS_CHOICES = [
        ("in_progress", "In Progress"),
        ("completed", "Completed"),
    ]

    asset = models.ForeignKey(
        Asset, on_delete=models.CASCADE, related_name="repairs"
    )
    status = models.CharField(
        max_length=20, choices=STATUS_CHOICES, default="in_progress"
    )
    issue_description = models.TextField()
    cost = models.DecimalField(
        max_digits=10,
        decimal_places=2,
        null=True,
        blank=True,
        validators=[MinValueValidator(0)],
    )
    technician = models.CharField(max_length=200, blank=True)
    started_at = models.DateTimeField()
    completed_at = models.DateTimeField(null=True, blank=True)
    notes = models.TextField(null=True, blank=True)
    organisation = models.ForeignKey(
        "accounts.Organisation",
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="repairs",
    )
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ["-started_at"]

    def __str__(self):
        return f"Repair of {self.asset.asset_tag} ({self.status})"


class License(models.Model):
    """Software license with a fixed number of seats."""

    name = models.CharField(max_length=200)
    vendor = models.ForeignKey(
        Vendor,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="licenses",
    )
    license_key = models.CharField(max_length=255, blank=True)
    license_type = models.CharField(max_length=50, blank=True)
    seats_total = models.PositiveIntegerField(default=1)
    seats_allocated = models.PositiveIntegerField(default=0)
    purchase_date = models.DateField(null=True, blank=True)
    expiry_date = models.DateField(null=True, blank=True)
    cost = models.DecimalField(
        max_digits=12,
        decimal_places=2,
        null=True,
        blank=True,
        validators=[MinValueValidator(0)],
    )
    notes = models.TextField(blank=True)
    is_active = models.BooleanField(default=True)
    organisation = models.ForeignKey(
        "accounts.Organisation",
        on_delete=models.CASCADE,
        null=True,
        blank=True,
        related_name="licenses",
    )
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ["name"]
        constraints = [
            models.CheckConstraint(
                condition=Q(seats_allocated__lte=F("seats_total")),
                name="license_seats_within_total",
            ),
        ]

    def __str__(self):
        return self.name

    @property
    def seats_available(self):
        return max(0, self.seats_total - self.seats_allocated)


class LicenseAssignment(models.Model):
    """A license seat held by an asset."""

    license = models.ForeignKey(
        License, on_delete=models.CASCADE, related_name="assignments"
    )
    asset = models.ForeignKey(
        Asset, on_delete=models.CASCADE, related_name="license_assignments"
    )
    assigned_at = models.DateTimeField(auto_now_add=True)
    released_at = models.DateTimeField(null=True, blank=True)

    class Meta:
        ordering = ["-assigned_at"]
        constraints = [
            models.UniqueConstraint(
                fields=["license", "asset"],
                condition=Q(released_at__isnull=True),
                name="unique_active_license_seat",
            ),
        ]

    def __str__(self):
        return f"{self.license} -> {self.asset.asset_tag}"


class UserPreference(models.Model):
    """Opaque JSON preference blob (column layout, dashboard widgets)."""

    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="preferences",
    )
    key = models.CharField(max_length=100)
    value = models.JSONField(default=dict)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        constraints = [
            models.UniqueConstraint(
                fields=["user", "key"], name="unique_preference_per_user"
            ),
        ]

    def __str__(self):
        return f"{self.user}: {self.key}"
