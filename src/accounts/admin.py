"""Admin configuration for accounts app."""

from unfold.admin import ModelAdmin, TabularInline

from django.contrib import admin
from django.contrib.auth.admin import UserAdmin

from .models import CustomUser, SiteRight, WorkLogEntry


class SiteRightInline(TabularInline):
    model = SiteRight
    extra = 0
    autocomplete_fields = ["site"]


@admin.register(CustomUser)
class CustomUserAdmin(UserAdmin, ModelAdmin):
    model = CustomUser
    list_display = ["username", "email", "display_name", "role", "is_active"]
    list_filter = ["role", "is_active", "is_staff"]
    search_fields = ["username", "email", "display_name"]
    filter_horizontal = ["assigned_sites", "groups"]
    inlines = [SiteRightInline]
    fieldsets = UserAdmin.fieldsets + (
        (
            "Field service",
            {
                "fields": (
                    "display_name",
                    "phone_number",
                    "role",
                    "assigned_sites",
                    "global_rights",
                ),
            },
        ),
    )


@admin.register(WorkLogEntry)
class WorkLogEntryAdmin(ModelAdmin):
    list_display = ["user", "category", "description", "created_at"]
    list_filter = ["category"]
    search_fields = ["user__username", "description"]
    date_hierarchy = "created_at"

    def has_add_permission(self, request):
        return False

    def has_change_permission(self, request, obj=None):
        return False
