"""Admin configuration for assets app using django-unfold."""

from unfold.admin import ModelAdmin, TabularInline
from unfold.contrib.filters.admin import (
    ChoicesDropdownFilter,
    RelatedDropdownFilter,
)
from unfold.decorators import display

from django.contrib import admin

from .models import (
    Asset,
    Requisition,
    RequisitionTimelineEntry,
    RMARequest,
    RMATimelineEntry,
    Site,
    StockMovementLog,
    StockReplacement,
    StockTransfer,
)

STATUS_LABELS = {
    "Operational": "success",
    "Online": "success",
    "Spare": "info",
    "Reserved": "warning",
    "InTransit": "warning",
    "Damaged": "danger",
    "Decommissioned": "default",
}


class ReadOnlyAdminMixin:
    """Audit rows are written by the workflows only."""

    def has_add_permission(self, request, obj=None):
        return False

    def has_change_permission(self, request, obj=None):
        return False

    def has_delete_permission(self, request, obj=None):
        return False


@admin.register(Site)
class SiteAdmin(ModelAdmin):
    list_display = ["name", "code", "city", "is_head_office", "is_active"]
    list_filter = ["is_active", "is_head_office"]
    search_fields = ["name", "code", "city"]


@admin.register(Asset)
class AssetAdmin(ModelAdmin):
    list_display = [
        "asset_code",
        "asset_type",
        "site",
        "display_status",
        "serial_number",
        "criticality",
        "is_active",
    ]
    list_filter = [
        ("status", ChoicesDropdownFilter),
        ("asset_type", ChoicesDropdownFilter),
        ("site", RelatedDropdownFilter),
        "is_active",
    ]
    search_fields = ["asset_code", "serial_number", "mac_address", "model"]
    # Status and site change only through the workflows
    readonly_fields = ["asset_code", "status", "reserved_by_rma"]

    def get_readonly_fields(self, request, obj=None):
        if obj is None:
            return ["asset_code", "reserved_by_rma"]
        return super().get_readonly_fields(request, obj) + ["site"]

    @display(description="Status", label=STATUS_LABELS)
    def display_status(self, obj):
        return obj.status


@admin.register(StockMovementLog)
class StockMovementLogAdmin(ReadOnlyAdminMixin, ModelAdmin):
    list_display = [
        "asset",
        "movement_type",
        "from_status",
        "to_status",
        "from_site",
        "to_site",
        "performed_by",
        "created_at",
    ]
    list_filter = [
        ("movement_type", ChoicesDropdownFilter),
        ("to_site", RelatedDropdownFilter),
    ]
    search_fields = ["asset__asset_code", "notes"]
    date_hierarchy = "created_at"


class RMATimelineInline(ReadOnlyAdminMixin, TabularInline):
    model = RMATimelineEntry
    extra = 0
    fields = ["status", "changed_by", "changed_at", "remarks"]
    readonly_fields = fields


@admin.register(RMARequest)
class RMARequestAdmin(ModelAdmin):
    list_display = [
        "rma_number",
        "ticket",
        "site",
        "original_asset",
        "status",
        "created_at",
    ]
    list_filter = [
        ("status", ChoicesDropdownFilter),
        ("site", RelatedDropdownFilter),
    ]
    search_fields = ["rma_number", "ticket__ticket_number"]
    inlines = [RMATimelineInline]
    readonly_fields = [
        "rma_number",
        "ticket",
        "original_asset",
        "original_snapshot",
        "replacement_details",
        "reserved_asset",
        "status",
        "approved_by",
        "approved_at",
        "installed_by",
        "installed_at",
    ]


class RequisitionTimelineInline(ReadOnlyAdminMixin, TabularInline):
    model = RequisitionTimelineEntry
    extra = 0
    fields = ["status", "changed_by", "changed_at", "remarks"]
    readonly_fields = fields


@admin.register(Requisition)
class RequisitionAdmin(ModelAdmin):
    list_display = [
        "requisition_number",
        "ticket",
        "asset_type",
        "quantity",
        "source_site",
        "site",
        "status",
    ]
    list_filter = [("status", ChoicesDropdownFilter)]
    search_fields = ["requisition_number", "ticket__ticket_number"]
    inlines = [RequisitionTimelineInline]
    readonly_fields = [
        "requisition_number",
        "status",
        "fulfilled_asset",
        "approved_by",
        "approved_at",
        "fulfilled_at",
    ]


@admin.register(StockTransfer)
class StockTransferAdmin(ModelAdmin):
    list_display = [
        "transfer_name",
        "source_site",
        "destination_site",
        "status",
        "created_at",
    ]
    list_filter = [("status", ChoicesDropdownFilter)]
    search_fields = ["transfer_name"]
    readonly_fields = [
        "status",
        "assets",
        "dispatched_by",
        "dispatched_at",
        "received_by",
        "received_at",
    ]


@admin.register(StockReplacement)
class StockReplacementAdmin(ReadOnlyAdminMixin, ModelAdmin):
    list_display = [
        "ticket",
        "asset",
        "spare_asset",
        "replaced_by",
        "replaced_at",
    ]
    search_fields = [
        "ticket__ticket_number",
        "asset__asset_code",
        "spare_asset__asset_code",
    ]
