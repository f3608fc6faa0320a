"""Admin configuration for tickets app using django-unfold."""

from unfold.admin import ModelAdmin, TabularInline
from unfold.contrib.filters.admin import (
    ChoicesDropdownFilter,
    RelatedDropdownFilter,
)
from unfold.decorators import display

from django.contrib import admin

from .models import SLAPolicy, Ticket, TicketActivity


class TicketActivityInline(TabularInline):
    model = TicketActivity
    extra = 0
    fields = ["activity_type", "user", "content", "created_at"]
    readonly_fields = fields

    def has_add_permission(self, request, obj=None):
        return False

    def has_delete_permission(self, request, obj=None):
        return False


@admin.register(Ticket)
class TicketAdmin(ModelAdmin):
    list_display = [
        "ticket_number",
        "title",
        "site",
        "display_priority",
        "status",
        "assigned_to",
        "created_at",
    ]
    list_filter = [
        ("status", ChoicesDropdownFilter),
        ("priority", ChoicesDropdownFilter),
        ("site", RelatedDropdownFilter),
    ]
    search_fields = ["ticket_number", "title"]
    inlines = [TicketActivityInline]
    readonly_fields = [
        "ticket_number",
        "status",
        "priority_score",
        "sla_policy",
        "sla_response_due",
        "sla_restore_due",
        "escalation_level",
    ]

    @display(
        description="Priority",
        label={"P1": "danger", "P2": "warning", "P3": "info", "P4": "default"},
    )
    def display_priority(self, obj):
        return obj.priority


@admin.register(SLAPolicy)
class SLAPolicyAdmin(ModelAdmin):
    list_display = [
        "name",
        "priority",
        "response_time_minutes",
        "restore_time_minutes",
        "is_active",
    ]
    list_filter = ["is_active"]
