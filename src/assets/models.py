"""Models for FieldOps sites, assets and replacement workflows."""

import secrets
import time

from django.conf import settings
from django.core.exceptions import ValidationError
from django.core.validators import MaxValueValidator, MinValueValidator
from django.db import IntegrityError, models, transaction
from django.utils import timezone


class Site(models.Model):
    """A customer location where assets are installed or stocked."""

    name = models.CharField(max_length=150, unique=True)
    code = models.CharField(max_length=30, unique=True)
    address = models.TextField(blank=True)
    city = models.CharField(max_length=100, blank=True)
    is_head_office = models.BooleanField(
        default=False,
        help_text="Central store that feeds site stock",
    )
    is_active = models.BooleanField(default=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ["name"]

    def __str__(self):
        return self.name

    @property
    def display_label(self):
        return "HO" if self.is_head_office else self.name


class Asset(models.Model):
    """Individual physical unit tracked across sites."""

    STATUS_CHOICES = [
        ("Operational", "Operational"),
        ("Degraded", "Degraded"),
        ("Offline", "Offline"),
        ("Maintenance", "Maintenance"),
        ("InRepair", "In Repair"),
        ("NotInstalled", "Not Installed"),
        ("Spare", "Spare"),
        ("InTransit", "In Transit"),
        ("Damaged", "Damaged"),
        ("Reserved", "Reserved"),
        ("Online", "Online"),
        ("PassiveDevice", "Passive Device"),
        ("Decommissioned", "Decommissioned"),
    ]

    TYPE_CHOICES = [
        ("Camera", "Camera"),
        ("NVR", "NVR"),
        ("Switch", "Switch"),
        ("Router", "Router"),
        ("Server", "Server"),
        ("Other", "Other"),
    ]

    # Reserved and InTransit are entered only from Spare. Leaving one of
    # the listed states is restricted to its targets; every other move is
    # administrative and unconstrained.
    VALID_TRANSITIONS = {
        "Reserved": ["Spare", "Operational", "Decommissioned", "Damaged"],
        "InTransit": ["Spare", "Damaged"],
        "Decommissioned": [],
    }

    # Only reachable from Spare
    CLAIM_ONLY_STATUSES = ("Reserved", "InTransit")

    # Fields copied between units when hardware is physically swapped
    IDENTITY_FIELDS = (
        "serial_number",
        "ip_address",
        "mac_address",
        "make",
        "model",
    )

    asset_code = models.CharField(
        max_length=60,
        unique=True,
        blank=True,
        help_text="Stable identifier; never changes after creation",
    )
    asset_type = models.CharField(max_length=20, choices=TYPE_CHOICES)
    device_type = models.CharField(max_length=100, blank=True)
    make = models.CharField(max_length=100, blank=True)
    model = models.CharField(max_length=100, blank=True)
    serial_number = models.CharField(max_length=100, blank=True)
    mac_address = models.CharField(max_length=50, blank=True)
    ip_address = models.CharField(max_length=50, blank=True)
    site = models.ForeignKey(
        Site,
        on_delete=models.PROTECT,
        related_name="assets",
    )
    location_description = models.CharField(max_length=255, blank=True)
    stock_location = models.CharField(
        max_length=100,
        blank=True,
        help_text="Shelf or store room while held as spare",
    )
    criticality = models.PositiveSmallIntegerField(
        default=2,
        validators=[MinValueValidator(1), MaxValueValidator(3)],
        help_text="1 (low) to 3 (high); weights ticket priority",
    )
    status = models.CharField(
        max_length=20, choices=STATUS_CHOICES, default="Operational"
    )
    reserved_by_rma = models.ForeignKey(
        "RMARequest",
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="held_assets",
        help_text="RMA currently holding this unit in reserve",
    )
    remark = models.CharField(max_length=500, blank=True)
    is_active = models.BooleanField(default=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)
    created_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="created_assets",
    )

    class Meta:
        ordering = ["asset_code"]
        indexes = [
            models.Index(fields=["status"], name="idx_asset_status"),
            models.Index(
                fields=["site", "asset_type", "status"],
                name="idx_asset_site_type_status",
            ),
            models.Index(
                fields=["serial_number"], name="idx_asset_serial"
            ),
        ]

    def __str__(self):
        return f"{self.asset_code} ({self.asset_type})"

    @classmethod
    def from_db(cls, db, field_names, values):
        instance = super().from_db(db, field_names, values)
        instance._loaded_asset_code = instance.__dict__.get("asset_code")
        return instance

    def save(self, *args, **kwargs):
        loaded_code = getattr(self, "_loaded_asset_code", None)
        if (
            not self._state.adding
            and loaded_code
            and self.asset_code != loaded_code
        ):
            raise ValidationError("Asset code cannot be changed.")

        generated = not self.asset_code
        if generated:
            self.asset_code = self._generate_asset_code()
        max_attempts = 5
        for attempt in range(max_attempts):
            try:
                with transaction.atomic():
                    super().save(*args, **kwargs)
                break
            except IntegrityError:
                if not generated or attempt >= max_attempts - 1:
                    raise
                # Code collision: regenerate and retry
                self.asset_code = self._generate_asset_code()
        self._loaded_asset_code = self.asset_code

    def can_transition_to(self, new_status):
        """Check if the status transition is valid."""
        return self.is_transition_allowed(self.status, new_status)

    @classmethod
    def is_transition_allowed(cls, from_status, to_status):
        if from_status == to_status:
            return True
        if from_status in cls.VALID_TRANSITIONS:
            return to_status in cls.VALID_TRANSITIONS[from_status]
        if to_status in cls.CLAIM_ONLY_STATUSES:
            return from_status == "Spare"
        return True

    def snapshot(self):
        """Identifying details as they stand right now."""
        data = {"asset_code": self.asset_code, "asset_type": self.asset_type}
        for field in self.IDENTITY_FIELDS:
            data[field] = getattr(self, field)
        return data

    @staticmethod
    def _generate_asset_code():
        prefix = getattr(settings, "SPARE_CODE_PREFIX", "SPR")
        stamp = int(time.time() * 1000)
        return f"{prefix}-{stamp}-{secrets.randbelow(10000):04d}"


class ImmutableRecord(models.Model):
    """Base for append-only audit rows."""

    class Meta:
        abstract = True

    def save(self, *args, **kwargs):
        if self.pk is not None:
            raise ValidationError(
                f"{self._meta.verbose_name_plural.capitalize()} are "
                "immutable and cannot be modified."
            )
        super().save(*args, **kwargs)

    def delete(self, *args, **kwargs):
        raise ValidationError(
            f"{self._meta.verbose_name_plural.capitalize()} are "
            "immutable and cannot be deleted."
        )


class StockMovementLog(ImmutableRecord):
    """Ledger of every status or site change an asset goes through."""

    MOVEMENT_CHOICES = [
        ("Added", "Added to stock"),
        ("Transfer", "Transfer"),
        ("RMATransfer", "RMA transfer"),
        ("RepairedReturn", "Returned from repair"),
        ("StatusChange", "Status change"),
        ("Reserved", "Reserved"),
        ("Released", "Released"),
        ("Disposed", "Disposed"),
    ]

    asset = models.ForeignKey(
        Asset, on_delete=models.PROTECT, related_name="movements"
    )
    movement_type = models.CharField(max_length=20, choices=MOVEMENT_CHOICES)
    from_site = models.ForeignKey(
        Site,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="movements_out",
    )
    to_site = models.ForeignKey(
        Site,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="movements_in",
    )
    from_status = models.CharField(max_length=20, blank=True)
    to_status = models.CharField(max_length=20, blank=True)
    performed_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        related_name="stock_movements",
    )
    rma = models.ForeignKey(
        "RMARequest",
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="movements",
    )
    requisition = models.ForeignKey(
        "Requisition",
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="movements",
    )
    stock_transfer = models.ForeignKey(
        "StockTransfer",
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="movements",
    )
    ticket = models.ForeignKey(
        "tickets.Ticket",
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="stock_movements",
    )
    notes = models.CharField(max_length=500, blank=True)
    asset_snapshot = models.JSONField(default=dict, blank=True)
    created_at = models.DateTimeField(default=timezone.now)

    class Meta:
        ordering = ["-created_at", "-id"]
        indexes = [
            models.Index(
                fields=["asset", "created_at"],
                name="idx_movement_asset_created",
            ),
            models.Index(
                fields=["movement_type"], name="idx_movement_type"
            ),
        ]

    def __str__(self):
        return (
            f"{self.asset_snapshot.get('asset_code', self.asset_id)} "
            f"{self.get_movement_type_display()}"
        )


class TimelineEntry(ImmutableRecord):
    """One status change in a workflow record's history."""

    status = models.CharField(max_length=20)
    changed_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        related_name="+",
    )
    changed_at = models.DateTimeField(default=timezone.now)
    remarks = models.CharField(max_length=1000, blank=True)

    class Meta:
        abstract = True
        ordering = ["changed_at", "id"]


class RMARequest(models.Model):
    """Vendor replacement cycle for one defective asset."""

    STATUS_CHOICES = [
        ("Requested", "Requested"),
        ("Approved", "Approved"),
        ("Ordered", "Ordered"),
        ("Dispatched", "Dispatched"),
        ("Received", "Received"),
        ("Installed", "Installed"),
        ("Rejected", "Rejected"),
    ]

    VALID_TRANSITIONS = {
        "Requested": ["Approved", "Rejected"],
        "Approved": ["Ordered", "Rejected"],
        "Ordered": ["Dispatched", "Rejected"],
        "Dispatched": ["Received", "Rejected"],
        "Received": ["Installed", "Rejected"],
        "Installed": [],
        "Rejected": [],
    }

    TERMINAL_STATUSES = ("Installed", "Rejected")

    rma_number = models.CharField(max_length=30, unique=True)
    ticket = models.ForeignKey(
        "tickets.Ticket",
        on_delete=models.PROTECT,
        related_name="rma_requests",
    )
    site = models.ForeignKey(
        Site, on_delete=models.PROTECT, related_name="rma_requests"
    )
    original_asset = models.ForeignKey(
        Asset, on_delete=models.PROTECT, related_name="rma_requests"
    )
    original_snapshot = models.JSONField(
        default=dict,
        help_text="Identifying details of the defective unit at request time",
    )
    replacement_details = models.JSONField(default=dict, blank=True)
    reserved_asset = models.ForeignKey(
        Asset,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="reserved_for_rmas",
        help_text="Site spare held for this RMA, if any",
    )
    request_reason = models.TextField(max_length=1000)
    status = models.CharField(
        max_length=20, choices=STATUS_CHOICES, default="Requested"
    )
    shipping_details = models.JSONField(default=dict, blank=True)
    vendor_details = models.JSONField(default=dict, blank=True)
    requested_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        related_name="requested_rmas",
    )
    approved_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="approved_rmas",
    )
    approved_at = models.DateTimeField(null=True, blank=True)
    installed_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="installed_rmas",
    )
    installed_at = models.DateTimeField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["-created_at"]
        verbose_name = "RMA request"
        constraints = [
            models.UniqueConstraint(
                fields=["ticket"],
                condition=~models.Q(status__in=["Installed", "Rejected"]),
                name="unique_active_rma_per_ticket",
            ),
        ]
        indexes = [
            models.Index(fields=["status"], name="idx_rma_status"),
        ]

    def __str__(self):
        return f"{self.rma_number} ({self.status})"

    @property
    def is_active(self):
        return self.status not in self.TERMINAL_STATUSES

    def can_transition_to(self, new_status):
        return new_status in self.VALID_TRANSITIONS.get(self.status, [])


class RMATimelineEntry(TimelineEntry):
    rma = models.ForeignKey(
        RMARequest, on_delete=models.CASCADE, related_name="timeline"
    )

    class Meta(TimelineEntry.Meta):
        verbose_name = "RMA timeline entry"
        verbose_name_plural = "RMA timeline entries"


class Requisition(models.Model):
    """Request to bring a spare from a source site into use for a ticket."""

    STATUS_CHOICES = [
        ("Pending", "Pending"),
        ("Approved", "Approved"),
        ("Fulfilled", "Fulfilled"),
        ("Rejected", "Rejected"),
        ("Cancelled", "Cancelled"),
    ]

    VALID_TRANSITIONS = {
        "Pending": ["Approved", "Fulfilled", "Rejected", "Cancelled"],
        "Approved": ["Fulfilled", "Rejected", "Cancelled"],
        "Fulfilled": [],
        "Rejected": [],
        "Cancelled": [],
    }

    requisition_number = models.CharField(max_length=30, unique=True)
    ticket = models.ForeignKey(
        "tickets.Ticket",
        on_delete=models.PROTECT,
        related_name="requisitions",
    )
    site = models.ForeignKey(
        Site,
        on_delete=models.PROTECT,
        related_name="requisitions_in",
        help_text="Destination: the ticket's site",
    )
    source_site = models.ForeignKey(
        Site,
        on_delete=models.PROTECT,
        related_name="requisitions_out",
    )
    asset_type = models.CharField(
        max_length=20, choices=Asset.TYPE_CHOICES
    )
    quantity = models.PositiveIntegerField(
        default=1, validators=[MinValueValidator(1)]
    )
    status = models.CharField(
        max_length=20, choices=STATUS_CHOICES, default="Pending"
    )
    fulfilled_asset = models.ForeignKey(
        Asset,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="fulfilled_requisitions",
    )
    requested_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        related_name="requisitions",
    )
    approved_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="approved_requisitions",
    )
    approved_at = models.DateTimeField(null=True, blank=True)
    fulfilled_at = models.DateTimeField(null=True, blank=True)
    comments = models.TextField(blank=True)
    rejection_reason = models.TextField(blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["-created_at"]
        indexes = [
            models.Index(
                fields=["status"], name="idx_requisition_status"
            ),
        ]

    def __str__(self):
        return f"{self.requisition_number} ({self.status})"

    def can_transition_to(self, new_status):
        return new_status in self.VALID_TRANSITIONS.get(self.status, [])


class RequisitionTimelineEntry(TimelineEntry):
    requisition = models.ForeignKey(
        Requisition, on_delete=models.CASCADE, related_name="timeline"
    )

    class Meta(TimelineEntry.Meta):
        verbose_name_plural = "requisition timeline entries"


class StockTransfer(models.Model):
    """Bulk movement of spare units between two sites."""

    STATUS_CHOICES = [
        ("Pending", "Pending"),
        ("Approved", "Approved"),
        ("Dispatched", "Dispatched"),
        ("Completed", "Completed"),
        ("Cancelled", "Cancelled"),
    ]

    VALID_TRANSITIONS = {
        "Pending": ["Approved", "Dispatched", "Cancelled"],
        "Approved": ["Dispatched", "Cancelled"],
        "Dispatched": ["Completed"],
        "Completed": [],
        "Cancelled": [],
    }

    transfer_name = models.CharField(max_length=255, blank=True)
    source_site = models.ForeignKey(
        Site, on_delete=models.PROTECT, related_name="transfers_out"
    )
    destination_site = models.ForeignKey(
        Site, on_delete=models.PROTECT, related_name="transfers_in"
    )
    assets = models.ManyToManyField(
        Asset, related_name="stock_transfers"
    )
    status = models.CharField(
        max_length=20, choices=STATUS_CHOICES, default="Pending"
    )
    shipping_details = models.JSONField(default=dict, blank=True)
    notes = models.TextField(blank=True)
    cancellation_reason = models.TextField(blank=True)
    initiated_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        related_name="initiated_transfers",
    )
    approved_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="approved_transfers",
    )
    approved_at = models.DateTimeField(null=True, blank=True)
    dispatched_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="dispatched_transfers",
    )
    dispatched_at = models.DateTimeField(null=True, blank=True)
    received_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="received_transfers",
    )
    received_at = models.DateTimeField(null=True, blank=True)
    cancelled_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="cancelled_transfers",
    )
    cancelled_at = models.DateTimeField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ["-created_at"]
        indexes = [
            models.Index(fields=["status"], name="idx_transfer_status"),
        ]

    def __str__(self):
        return self.transfer_name or f"Transfer #{self.pk}"

    def save(self, *args, **kwargs):
        if not self.transfer_name and self.source_site_id:
            self.transfer_name = (
                f"{self.source_site.display_label} -> "
                f"{self.destination_site.display_label}"
            )
        super().save(*args, **kwargs)

    def can_transition_to(self, new_status):
        return new_status in self.VALID_TRANSITIONS.get(self.status, [])


class StockReplacement(ImmutableRecord):
    """Direct swap of a defective unit for a site spare."""

    ticket = models.ForeignKey(
        "tickets.Ticket",
        on_delete=models.PROTECT,
        related_name="stock_replacements",
    )
    asset = models.ForeignKey(
        Asset,
        on_delete=models.PROTECT,
        related_name="replacements",
        help_text="Unit that kept its code and took the spare's hardware",
    )
    spare_asset = models.ForeignKey(
        Asset,
        on_delete=models.PROTECT,
        related_name="consumed_in_replacements",
    )
    old_details = models.JSONField(default=dict)
    new_details = models.JSONField(default=dict)
    replaced_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        related_name="stock_replacements",
    )
    replaced_at = models.DateTimeField(default=timezone.now)
    remarks = models.CharField(max_length=500, blank=True)

    class Meta:
        ordering = ["-replaced_at"]

    def __str__(self):
        return (
            f"{self.asset.asset_code} <- "
            f"{self.spare_asset.asset_code}"
        )
