"""Initial schema: lookups, tag formats, assets, history, repairs,
licenses and user preferences."""

import django.core.validators
import django.db.models.deletion
from django.conf import settings
from django.db import migrations, models

STATUS_CHOICES = [
    ("available", "Available"),
    ("in_use", "In Use"),
    ("maintenance", "Maintenance"),
    ("disposed", "Disposed"),
    ("lost", "Lost"),
    ("retired", "Retired"),
]

HISTORY_ACTION_CHOICES = [
    ("created", "Created"),
    ("updated", "Updated"),
    ("checked_out", "Checked Out"),
    ("checked_in", "Checked In"),
    ("status_changed", "Status Changed"),
    ("marked_as_broken", "Marked As Broken"),
    ("sent_for_repair", "Sent For Repair"),
    ("deleted", "Deleted"),
    ("replicated", "Replicated"),
    ("license_released", "License Released"),
]


def _id():
    return (
        "id",
        models.BigAutoField(
            auto_created=True,
            primary_key=True,
            serialize=False,
            verbose_name="ID",
        ),
    )


def _lookup_fields(*extra):
    return [
        _id(),
        ("name", models.CharField(max_length=100)),
        ("is_active", models.BooleanField(default=True)),
        ("created_at", models.DateTimeField(auto_now_add=True)),
        *extra,
        (
            "organisation",
            models.ForeignKey(
                blank=True,
                null=True,
                on_delete=django.db.models.deletion.CASCADE,
                related_name="+",
                to="accounts.organisation",
            ),
        ),
    ]


def _user_fk(related_name, **kwargs):
    return models.ForeignKey(
        blank=True,
        null=True,
        on_delete=django.db.models.deletion.SET_NULL,
        related_name=related_name,
        to=settings.AUTH_USER_MODEL,
        **kwargs,
    )


def _lookup_fk(model):
    return models.ForeignKey(
        blank=True,
        null=True,
        on_delete=django.db.models.deletion.SET_NULL,
        related_name="assets",
        to=f"itam.{model}",
    )


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        ("accounts", "0001_initial"),
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name="Department",
            fields=_lookup_fields(),
            options={"ordering": ["name"], "abstract": False},
        ),
        migrations.CreateModel(
            name="Location",
            fields=_lookup_fields(
                ("address", models.TextField(blank=True)),
            ),
            options={"ordering": ["name"], "abstract": False},
        ),
        migrations.CreateModel(
            name="Make",
            fields=_lookup_fields(),
            options={"ordering": ["name"], "abstract": False},
        ),
        migrations.CreateModel(
            name="Vendor",
            fields=_lookup_fields(
                ("contact_email", models.EmailField(blank=True, max_length=254)),
            ),
            options={"ordering": ["name"], "abstract": False},
        ),
        migrations.CreateModel(
            name="Category",
            fields=_lookup_fields(
                ("description", models.TextField(blank=True)),
            ),
            options={
                "ordering": ["name"],
                "abstract": False,
                "verbose_name_plural": "categories",
            },
        ),
        migrations.CreateModel(
            name="TagFormat",
            fields=[
                _id(),
                ("prefix", models.CharField(max_length=20)),
                (
                    "zero_padding",
                    models.PositiveSmallIntegerField(
                        default=4,
                        help_text="Minimum number of digits after the prefix",
                        validators=[
                            django.core.validators.MinValueValidator(1)
                        ],
                    ),
                ),
                (
                    "start_number",
                    models.PositiveIntegerField(
                        default=1,
                        help_text="First number to hand out for this prefix",
                        validators=[
                            django.core.validators.MinValueValidator(1)
                        ],
                    ),
                ),
                (
                    "current_number",
                    models.PositiveIntegerField(
                        default=0,
                        help_text="Last allocated number (cache, not authoritative)",
                    ),
                ),
                ("updated_at", models.DateTimeField(auto_now=True)),
                (
                    "category",
                    models.OneToOneField(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="tag_format",
                        to="itam.category",
                    ),
                ),
            ],
            options={"ordering": ["prefix"]},
        ),
        migrations.CreateModel(
            name="Asset",
            fields=[
                _id(),
                ("asset_tag", models.CharField(max_length=50, unique=True)),
                (
                    "asset_id",
                    models.CharField(
                        blank=True,
                        help_text="Secondary identifier (e.g. finance or vendor id)",
                        max_length=100,
                    ),
                ),
                ("name", models.CharField(max_length=200)),
                ("description", models.TextField(blank=True)),
                ("serial_number", models.CharField(blank=True, max_length=100)),
                ("model", models.CharField(blank=True, max_length=100)),
                (
                    "status",
                    models.CharField(
                        choices=STATUS_CHOICES,
                        default="available",
                        max_length=20,
                    ),
                ),
                (
                    "checked_out_at",
                    models.DateTimeField(blank=True, null=True),
                ),
                (
                    "expected_return_date",
                    models.DateField(blank=True, null=True),
                ),
                ("check_out_notes", models.TextField(blank=True, null=True)),
                ("purchase_date", models.DateField(blank=True, null=True)),
                (
                    "purchase_price",
                    models.DecimalField(
                        blank=True,
                        decimal_places=2,
                        max_digits=12,
                        null=True,
                        validators=[
                            django.core.validators.MinValueValidator(0)
                        ],
                    ),
                ),
                ("warranty_expiry", models.DateField(blank=True, null=True)),
                (
                    "is_active",
                    models.BooleanField(
                        default=True,
                        help_text="Unset to hide the asset (soft delete)",
                    ),
                ),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                (
                    "category",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="assets",
                        to="itam.category",
                    ),
                ),
                ("make", _lookup_fk("make")),
                ("department", _lookup_fk("department")),
                ("location", _lookup_fk("location")),
                ("vendor", _lookup_fk("vendor")),
                ("assigned_to", _user_fk("assigned_assets")),
                ("checked_out_to", _user_fk("checked_out_assets")),
                ("created_by", _user_fk("created_assets")),
                (
                    "organisation",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="assets",
                        to="accounts.organisation",
                    ),
                ),
            ],
            options={
                "ordering": ["-updated_at"],
                "indexes": [
                    models.Index(fields=["status"], name="idx_asset_status"),
                    models.Index(
                        fields=["is_active"], name="idx_asset_is_active"
                    ),
                    models.Index(
                        fields=["warranty_expiry"], name="idx_asset_warranty"
                    ),
                ],
                "constraints": [
                    models.CheckConstraint(
                        condition=models.Q(("status", "in_use"))
                        | models.Q(
                            ("assigned_to__isnull", True),
                            ("checked_out_to__isnull", True),
                            ("checked_out_at__isnull", True),
                            ("expected_return_date__isnull", True),
                            ("check_out_notes__isnull", True),
                        ),
                        name="asset_assignment_only_in_use",
                    ),
                ],
            },
        ),
        migrations.CreateModel(
            name="AssetHistory",
            fields=[
                _id(),
                (
                    "action",
                    models.CharField(
                        choices=HISTORY_ACTION_CHOICES, max_length=30
                    ),
                ),
                (
                    "old_value",
                    models.CharField(blank=True, max_length=255, null=True),
                ),
                (
                    "new_value",
                    models.CharField(blank=True, max_length=255, null=True),
                ),
                ("details", models.JSONField(blank=True, default=dict)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                (
                    "asset",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="history",
                        to="itam.asset",
                    ),
                ),
                ("performed_by", _user_fk("asset_history")),
                (
                    "organisation",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        related_name="asset_history",
                        to="accounts.organisation",
                    ),
                ),
            ],
            options={
                "verbose_name_plural": "asset history",
                "ordering": ["-created_at", "-pk"],
                "indexes": [
                    models.Index(
                        fields=["asset", "created_at"],
                        name="idx_history_asset_created",
                    ),
                    models.Index(fields=["action"], name="idx_history_action"),
                ],
            },
        ),
        migrations.CreateModel(
            name="Repair",
            fields=[
                _id(),
                (
                    "status",
                    models.CharField(
                        choices=[
                            ("in_progress", "In Progress"),
                            ("completed", "Completed"),
                        ],
                        default="in_progress",
                        max_length=20,
                    ),
                ),
                ("issue_description", models.TextField()),
                (
                    "cost",
                    models.DecimalField(
                        blank=True,
                        decimal_places=2,
                        max_digits=10,
                        null=True,
                        validators=[
                            django.core.validators.MinValueValidator(0)
                        ],
                    ),
                ),
                ("technician", models.CharField(blank=True, max_length=200)),
                ("started_at", models.DateTimeField()),
                ("completed_at", models.DateTimeField(blank=True, null=True)),
                ("notes", models.TextField(blank=True, null=True)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                (
                    "asset",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="repairs",
                        to="itam.asset",
                    ),
                ),
                (
                    "organisation",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        related_name="repairs",
                        to="accounts.organisation",
                    ),
                ),
            ],
            options={"ordering": ["-started_at"]},
        ),
        migrations.CreateModel(
            name="License",
            fields=[
                _id(),
                ("name", models.CharField(max_length=200)),
                ("license_key", models.CharField(blank=True, max_length=255)),
                ("license_type", models.CharField(blank=True, max_length=50)),
                ("seats_total", models.PositiveIntegerField(default=1)),
                ("seats_allocated", models.PositiveIntegerField(default=0)),
                ("purchase_date", models.DateField(blank=True, null=True)),
                ("expiry_date", models.DateField(blank=True, null=True)),
                (
                    "cost",
                    models.DecimalField(
                        blank=True,
                        decimal_places=2,
                        max_digits=12,
                        null=True,
                        validators=[
                            django.core.validators.MinValueValidator(0)
                        ],
                    ),
                ),
                ("notes", models.TextField(blank=True)),
                ("is_active", models.BooleanField(default=True)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                (
                    "vendor",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        related_name="licenses",
                        to="itam.vendor",
                    ),
                ),
                (
                    "organisation",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="licenses",
                        to="accounts.organisation",
                    ),
                ),
            ],
            options={
                "ordering": ["name"],
                "constraints": [
                    models.CheckConstraint(
                        condition=models.Q(
                            (
                                "seats_allocated__lte",
                                models.F("seats_total"),
                            )
                        ),
                        name="license_seats_within_total",
                    ),
                ],
            },
        ),
        migrations.CreateModel(
            name="LicenseAssignment",
            fields=[
                _id(),
                ("assigned_at", models.DateTimeField(auto_now_add=True)),
                ("released_at", models.DateTimeField(blank=True, null=True)),
                (
                    "license",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="assignments",
                        to="itam.license",
                    ),
                ),
                (
                    "asset",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="license_assignments",
                        to="itam.asset",
                    ),
                ),
            ],
            options={
                "ordering": ["-assigned_at"],
                "constraints": [
                    models.UniqueConstraint(
                        condition=models.Q(("released_at__isnull", True)),
                        fields=("license", "asset"),
                        name="unique_active_license_seat",
                    ),
                ],
            },
        ),
        migrations.CreateModel(
            name="UserPreference",
            fields=[
                _id(),
                ("key", models.CharField(max_length=100)),
                ("value", models.JSONField(default=dict)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                (
                    "user",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="preferences",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
            ],
            options={
                "constraints": [
                    models.UniqueConstraint(
                        fields=("user", "key"),
                        name="unique_preference_per_user",
                    ),
                ],
            },
        ),
    ]
