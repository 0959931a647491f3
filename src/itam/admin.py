"""Admin configuration for itam app using django-unfold."""

from unfold.admin import ModelAdmin, StackedInline, TabularInline
from unfold.contrib.filters.admin import (
    ChoicesDropdownFilter,
    RelatedDropdownFilter,
)
from unfold.decorators import action, display

from django.contrib import admin, messages

from .models import (
    Asset,
    AssetHistory,
    Category,
    Department,
    License,
    LicenseAssignment,
    Location,
    Make,
    Repair,
    TagFormat,
    UserPreference,
    Vendor,
)
from .services.expiry import expiry_status
from .services.tagging import preview_tag_for_category
from .services.transitions import bulk_status_update, update_asset


class LookupAdmin(ModelAdmin):
    list_display = ["name", "organisation", "display_active"]
    list_filter = ["is_active", ("organisation", RelatedDropdownFilter)]
    search_fields = ["name"]

    @display(description="Active", boolean=True)
    def display_active(self, obj):
        return obj.is_active


admin.site.register(Department, LookupAdmin)
admin.site.register(Make, LookupAdmin)


@admin.register(Location)
class LocationAdmin(LookupAdmin):
    search_fields = ["name", "address"]


@admin.register(Vendor)
class VendorAdmin(LookupAdmin):
    list_display = ["name", "contact_email", "organisation", "display_active"]


class TagFormatInline(StackedInline):
    model = TagFormat
    extra = 0
    max_num = 1
    fields = ["prefix", "zero_padding", "start_number", "current_number"]
    readonly_fields = ["current_number"]


@admin.register(Category)
class CategoryAdmin(LookupAdmin):
    list_display = [
        "name",
        "display_tag_format",
        "display_next_tag",
        "display_asset_count",
        "display_active",
    ]
    search_fields = ["name", "description"]
    inlines = [TagFormatInline]

    @display(description="Tag format")
    def display_tag_format(self, obj):
        tag_format = getattr(obj, "tag_format", None)
        if tag_format is None:
            return "-"
        return f"{tag_format.prefix} ({tag_format.zero_padding} digits)"

    @display(description="Next tag")
    def display_next_tag(self, obj):
        return preview_tag_for_category(obj) or "-"

    @display(description="Assets")
    def display_asset_count(self, obj):
        return obj.assets.count()


@admin.register(TagFormat)
class TagFormatAdmin(ModelAdmin):
    list_display = [
        "category",
        "prefix",
        "zero_padding",
        "start_number",
        "current_number",
    ]
    search_fields = ["prefix", "category__name"]
    readonly_fields = ["current_number", "updated_at"]


class RepairInline(TabularInline):
    model = Repair
    extra = 0
    fields = ["status", "issue_description", "technician", "cost", "started_at"]
    readonly_fields = fields

    def has_add_permission(self, request, obj=None):
        return False


class AssetHistoryInline(TabularInline):
    model = AssetHistory
    extra = 0
    fields = ["action", "old_value", "new_value", "performed_by", "created_at"]
    readonly_fields = fields
    can_delete = False

    def has_add_permission(self, request, obj=None):
        return False


@admin.register(Asset)
class AssetAdmin(ModelAdmin):
    list_display = [
        "display_header",
        "display_status",
        "category",
        "location",
        "checked_out_to",
        "display_warranty",
        "updated_at",
    ]
    list_filter = [
        ("status", ChoicesDropdownFilter),
        ("category", RelatedDropdownFilter),
        ("department", RelatedDropdownFilter),
        ("location", RelatedDropdownFilter),
        "is_active",
    ]
    list_filter_submit = True
    search_fields = ["name", "asset_tag", "asset_id", "serial_number", "model"]
    # Tag, status and assignment change only through lifecycle actions
    readonly_fields = [
        "asset_tag",
        "status",
        "assigned_to",
        "checked_out_to",
        "checked_out_at",
        "expected_return_date",
        "check_out_notes",
        "is_active",
        "organisation",
        "created_by",
        "created_at",
        "updated_at",
    ]
    inlines = [RepairInline, AssetHistoryInline]
    actions = ["mark_disposed", "mark_retired", "mark_available"]

    fieldsets = (
        (
            None,
            {
                "fields": (
                    "asset_tag",
                    "name",
                    "asset_id",
                    "description",
                    "status",
                    "category",
                    "make",
                    "model",
                    "serial_number",
                )
            },
        ),
        (
            "Location",
            {
                "fields": ("department", "location", "organisation"),
                "classes": ["tab"],
            },
        ),
        (
            "Purchase",
            {
                "fields": (
                    "vendor",
                    "purchase_date",
                    "purchase_price",
                    "warranty_expiry",
                ),
                "classes": ["tab"],
            },
        ),
        (
            "Tracking",
            {
                "fields": (
                    "assigned_to",
                    "checked_out_to",
                    "checked_out_at",
                    "expected_return_date",
                    "check_out_notes",
                    "is_active",
                    "created_by",
                    "created_at",
                    "updated_at",
                ),
                "classes": ["tab"],
            },
        ),
    )

    def has_add_permission(self, request):
        # New assets need an allocated tag; create them through the API
        return False

    def save_model(self, request, obj, form, change):
        if not change:
            return super().save_model(request, obj, form, change)
        # obj already carries the form values; diff against the stored row
        stored = Asset.objects.get(pk=obj.pk)
        update_asset(
            stored,
            request.user,
            **{name: form.cleaned_data[name] for name in form.changed_data},
        )

    def has_delete_permission(self, request, obj=None):
        return False

    @display(description="Asset", header=True, ordering="asset_tag")
    def display_header(self, obj):
        return obj.name, obj.asset_tag

    @display(
        description="Status",
        label={
            "available": "success",
            "in_use": "info",
            "maintenance": "warning",
            "disposed": "danger",
            "lost": "danger",
            "retired": "default",
        },
    )
    def display_status(self, obj):
        return obj.status

    @display(
        description="Warranty",
        label={
            "active": "success",
            "expiring": "warning",
            "expired": "danger",
        },
    )
    def display_warranty(self, obj):
        return expiry_status(obj.warranty_expiry) or "-"

    def _bulk_status(self, request, queryset, new_status):
        result = bulk_status_update(
            list(queryset.values_list("pk", flat=True)),
            new_status,
            request.user,
        )
        if result.succeeded:
            messages.success(
                request,
                f"{len(result.succeeded)} asset(s) set to {new_status}.",
            )
        for pk, error in result.failed.items():
            messages.error(request, f"Asset #{pk}: {error}")

    @action(description="Mark as disposed")
    def mark_disposed(self, request, queryset):
        self._bulk_status(request, queryset, "disposed")

    @action(description="Mark as retired")
    def mark_retired(self, request, queryset):
        self._bulk_status(request, queryset, "retired")

    @action(description="Mark as available")
    def mark_available(self, request, queryset):
        self._bulk_status(request, queryset, "available")


@admin.register(AssetHistory)
class AssetHistoryAdmin(ModelAdmin):
    list_display = [
        "asset",
        "action",
        "old_value",
        "new_value",
        "performed_by",
        "created_at",
    ]
    list_filter = [("action", ChoicesDropdownFilter)]
    search_fields = ["asset__asset_tag", "asset__name"]
    date_hierarchy = "created_at"

    def has_add_permission(self, request):
        return False

    def has_change_permission(self, request, obj=None):
        return False

    def has_delete_permission(self, request, obj=None):
        return False


@admin.register(Repair)
class RepairAdmin(ModelAdmin):
    list_display = [
        "asset",
        "status",
        "technician",
        "cost",
        "started_at",
        "completed_at",
    ]
    list_filter = [("status", ChoicesDropdownFilter)]
    search_fields = ["asset__asset_tag", "technician", "issue_description"]


class LicenseAssignmentInline(TabularInline):
    model = LicenseAssignment
    extra = 0
    fields = ["asset", "assigned_at", "released_at"]
    readonly_fields = fields

    def has_add_permission(self, request, obj=None):
        return False


@admin.register(License)
class LicenseAdmin(ModelAdmin):
    list_display = [
        "name",
        "vendor",
        "display_seats",
        "expiry_date",
        "display_expiry",
    ]
    list_filter = ["is_active", ("vendor", RelatedDropdownFilter)]
    search_fields = ["name", "license_key"]
    readonly_fields = ["seats_allocated", "created_at"]
    inlines = [LicenseAssignmentInline]

    @display(description="Seats")
    def display_seats(self, obj):
        return f"{obj.seats_allocated} / {obj.seats_total}"

    @display(
        description="Expiry",
        label={
            "active": "success",
            "expiring": "warning",
            "expired": "danger",
        },
    )
    def display_expiry(self, obj):
        return expiry_status(obj.expiry_date) or "-"


@admin.register(UserPreference)
class UserPreferenceAdmin(ModelAdmin):
    list_display = ["user", "key", "updated_at"]
    search_fields = ["user__username", "key"]
