"""Admin configuration for accounts app."""

import logging

from unfold.admin import ModelAdmin, TabularInline
from unfold.contrib.filters.admin import (
    ChoicesDropdownFilter,
    RelatedDropdownFilter,
)
from unfold.decorators import action, display

from django.contrib import admin, messages
from django.contrib.admin.models import CHANGE, LogEntry
from django.contrib.auth.admin import UserAdmin
from django.contrib.contenttypes.models import ContentType

from .models import CustomUser, Organisation, RouteAccess

logger = logging.getLogger(__name__)


class RouteAccessInline(TabularInline):
    model = RouteAccess
    extra = 0
    fields = ["route", "is_allowed"]


@admin.register(Organisation)
class OrganisationAdmin(ModelAdmin):
    list_display = ["name", "slug", "display_user_count", "display_active"]
    list_filter = ["is_active"]
    search_fields = ["name", "slug"]
    prepopulated_fields = {"slug": ("name",)}
    inlines = [RouteAccessInline]

    @display(description="Users")
    def display_user_count(self, obj):
        return obj.users.count()

    @display(description="Active", boolean=True)
    def display_active(self, obj):
        return obj.is_active


@admin.register(RouteAccess)
class RouteAccessAdmin(ModelAdmin):
    list_display = ["organisation", "route", "display_allowed", "updated_at"]
    list_filter = ["is_allowed", ("organisation", RelatedDropdownFilter)]
    search_fields = ["route", "organisation__name"]

    @display(description="Allowed", boolean=True)
    def display_allowed(self, obj):
        return obj.is_allowed


@admin.register(CustomUser)
class CustomUserAdmin(UserAdmin, ModelAdmin):
    model = CustomUser
    list_display = [
        "display_user",
        "email",
        "display_role",
        "organisation",
        "display_staff",
        "display_active",
    ]
    list_filter = [
        "is_active",
        "is_staff",
        ("role", ChoicesDropdownFilter),
        ("organisation", RelatedDropdownFilter),
    ]
    search_fields = [
        "username",
        "email",
        "display_name",
        "first_name",
        "last_name",
    ]
    fieldsets = (
        (
            "Profile",
            {
                "classes": ["tab"],
                "fields": (
                    "username",
                    "password",
                    "display_name",
                    "first_name",
                    "last_name",
                    "email",
                ),
            },
        ),
        (
            "Access",
            {
                "classes": ["tab"],
                "fields": (
                    "role",
                    "organisation",
                    "is_active",
                    "is_staff",
                    "is_superuser",
                ),
            },
        ),
        (
            "Activity",
            {
                "classes": ["tab"],
                "fields": ("last_login", "date_joined"),
            },
        ),
    )
    readonly_fields = ["last_login", "date_joined"]
    add_fieldsets = UserAdmin.add_fieldsets + (
        (
            "Additional Info",
            {"fields": ("email", "display_name", "role", "organisation")},
        ),
    )
    actions = ["set_role_manager", "set_role_user"]

    @display(description="User", header=True, ordering="username")
    def display_user(self, obj):
        return obj.get_display_name(), obj.username

    @display(
        description="Role",
        label={"admin": "danger", "manager": "warning", "user": "info"},
    )
    def display_role(self, obj):
        return obj.effective_role

    @display(description="Staff", boolean=True)
    def display_staff(self, obj):
        return obj.is_staff

    @display(description="Active", boolean=True)
    def display_active(self, obj):
        return obj.is_active

    def _log_change(self, request, user, message):
        """Create a LogEntry for a bulk action change."""
        ct = ContentType.objects.get_for_model(user)
        LogEntry.objects.create(
            user_id=request.user.pk,
            content_type_id=ct.pk,
            object_id=str(user.pk),
            object_repr=str(user),
            action_flag=CHANGE,
            change_message=message,
        )

    def _set_role(self, request, queryset, role):
        count = 0
        for user in queryset:
            user.role = role
            user.save(update_fields=["role"])
            self._log_change(
                request, user, f"Set role to {role} via bulk action"
            )
            count += 1
        messages.success(request, f"{count} user(s) updated.")

    @action(description="Set role: manager")
    def set_role_manager(self, request, queryset):
        self._set_role(request, queryset, "manager")

    @action(description="Set role: user")
    def set_role_user(self, request, queryset):
        self._set_role(request, queryset, "user")

    def delete_model(self, request, obj):
        """Warn that assets held by the user will be checked in."""
        from itam.models import Asset

        held = Asset.objects.filter(
            checked_out_to=obj, status="in_use"
        ).count()
        if held:
            messages.warning(
                request,
                f"Deleting user '{obj.get_display_name()}': {held} asset(s) "
                f"checked out to this user will be checked in.",
            )
            logger.warning(
                "User deletion: %s (pk=%s) holds %d asset(s)",
                obj.get_display_name(),
                obj.pk,
                held,
            )
        super().delete_model(request, obj)
