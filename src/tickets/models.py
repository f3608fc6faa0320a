"""Models for field-service tickets, SLA policies and numbering."""

from django.conf import settings
from django.core.exceptions import ValidationError
from django.core.validators import MaxValueValidator, MinValueValidator
from django.db import models
from django.utils import timezone

PRIORITY_CHOICES = [
    ("P1", "P1 - Critical"),
    ("P2", "P2 - High"),
    ("P3", "P3 - Medium"),
    ("P4", "P4 - Low"),
]


class SLAPolicy(models.Model):
    """Response and restore targets for one priority tier."""

    name = models.CharField(max_length=100)
    priority = models.CharField(max_length=2, choices=PRIORITY_CHOICES)
    response_time_minutes = models.PositiveIntegerField()
    restore_time_minutes = models.PositiveIntegerField()
    escalation_level1_minutes = models.PositiveIntegerField(
        null=True, blank=True
    )
    escalation_level2_minutes = models.PositiveIntegerField(
        null=True, blank=True
    )
    is_active = models.BooleanField(default=True)

    class Meta:
        ordering = ["priority"]
        verbose_name = "SLA policy"
        verbose_name_plural = "SLA policies"
        constraints = [
            models.UniqueConstraint(
                fields=["priority"],
                condition=models.Q(is_active=True),
                name="unique_active_sla_per_priority",
            ),
        ]

    def __str__(self):
        return self.name


class DailySequence(models.Model):
    """Per-prefix, per-day counter behind TKT/RMA/REQ numbers."""

    prefix = models.CharField(max_length=10)
    day = models.DateField()
    last_value = models.PositiveIntegerField(default=0)

    class Meta:
        constraints = [
            models.UniqueConstraint(
                fields=["prefix", "day"],
                name="unique_sequence_per_prefix_day",
            ),
        ]

    def __str__(self):
        return f"{self.prefix} {self.day:%Y%m%d}: {self.last_value}"


class Ticket(models.Model):
    """Incident raised against a site and optionally one asset."""

    STATUS_CHOICES = [
        ("Open", "Open"),
        ("Assigned", "Assigned"),
        ("Acknowledged", "Acknowledged"),
        ("InProgress", "In Progress"),
        ("OnHold", "On Hold"),
        ("Escalated", "Escalated"),
        ("Resolved", "Resolved"),
        ("ResolutionRejected", "Resolution Rejected"),
        ("Verified", "Verified"),
        ("Closed", "Closed"),
        ("Cancelled", "Cancelled"),
    ]

    VALID_TRANSITIONS = {
        "Open": ["Assigned", "Escalated", "Cancelled"],
        "Assigned": [
            "Assigned",
            "Acknowledged",
            "Escalated",
            "OnHold",
            "Cancelled",
        ],
        "Acknowledged": ["InProgress", "Escalated", "OnHold", "Cancelled"],
        "InProgress": ["Resolved", "Escalated", "OnHold"],
        "OnHold": ["InProgress", "Cancelled"],
        "Escalated": ["Assigned", "Escalated", "InProgress", "Resolved"],
        "Resolved": ["Verified", "ResolutionRejected", "Closed"],
        "ResolutionRejected": ["InProgress", "Escalated"],
        "Verified": ["Closed"],
        "Closed": ["Open"],
        "Cancelled": [],
    }

    CLOSED_STATUSES = ("Closed", "Cancelled")

    CATEGORY_CHOICES = [
        ("Hardware", "Hardware"),
        ("Software", "Software"),
        ("Network", "Network"),
        ("Power", "Power"),
        ("Connectivity", "Connectivity"),
        ("Other", "Other"),
    ]

    SOURCE_CHOICES = [
        ("Manual", "Manual"),
        ("VMS", "VMS"),
        ("NMS", "NMS"),
        ("IoT", "IoT"),
    ]

    ticket_number = models.CharField(max_length=30, unique=True)
    site = models.ForeignKey(
        "assets.Site", on_delete=models.PROTECT, related_name="tickets"
    )
    asset = models.ForeignKey(
        "assets.Asset",
        on_delete=models.PROTECT,
        null=True,
        blank=True,
        related_name="tickets",
    )
    title = models.CharField(max_length=200)
    description = models.TextField(blank=True)
    category = models.CharField(
        max_length=20, choices=CATEGORY_CHOICES, default="Hardware"
    )
    source = models.CharField(
        max_length=10, choices=SOURCE_CHOICES, default="Manual"
    )
    impact = models.PositiveSmallIntegerField(
        default=3, validators=[MinValueValidator(1), MaxValueValidator(5)]
    )
    urgency = models.PositiveSmallIntegerField(
        default=3, validators=[MinValueValidator(1), MaxValueValidator(5)]
    )
    priority = models.CharField(
        max_length=2, choices=PRIORITY_CHOICES, default="P3"
    )
    priority_score = models.PositiveIntegerField(default=0)
    priority_pinned = models.BooleanField(
        default=False,
        help_text="Priority was set by hand and is not recomputed",
    )
    status = models.CharField(
        max_length=20, choices=STATUS_CHOICES, default="Open"
    )
    created_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        related_name="created_tickets",
    )
    assigned_to = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="assigned_tickets",
    )
    sla_policy = models.ForeignKey(
        SLAPolicy,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="tickets",
    )
    sla_response_due = models.DateTimeField(null=True, blank=True)
    sla_restore_due = models.DateTimeField(null=True, blank=True)
    is_sla_response_breached = models.BooleanField(default=False)
    is_sla_restore_breached = models.BooleanField(default=False)
    escalation_level = models.PositiveSmallIntegerField(
        default=0, validators=[MaxValueValidator(3)]
    )
    assigned_at = models.DateTimeField(null=True, blank=True)
    acknowledged_at = models.DateTimeField(null=True, blank=True)
    started_at = models.DateTimeField(null=True, blank=True)
    resolved_at = models.DateTimeField(null=True, blank=True)
    verified_at = models.DateTimeField(null=True, blank=True)
    closed_at = models.DateTimeField(null=True, blank=True)
    verified_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="verified_tickets",
    )
    root_cause = models.TextField(blank=True)
    resolution_summary = models.TextField(blank=True)
    created_at = models.DateTimeField(default=timezone.now)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["-created_at"]
        indexes = [
            models.Index(fields=["status"], name="idx_ticket_status"),
            models.Index(
                fields=["site", "status"], name="idx_ticket_site_status"
            ),
            models.Index(fields=["priority"], name="idx_ticket_priority"),
        ]

    def __str__(self):
        return f"{self.ticket_number}: {self.title}"

    @property
    def is_open_for_work(self):
        return self.status not in self.CLOSED_STATUSES

    def can_transition_to(self, new_status):
        return new_status in self.VALID_TRANSITIONS.get(self.status, [])


class TicketActivity(models.Model):
    """Human-readable note in a ticket's activity stream."""

    TYPE_CHOICES = [
        ("Comment", "Comment"),
        ("StatusChange", "Status Change"),
        ("Assignment", "Assignment"),
        ("Escalation", "Escalation"),
        ("Resolution", "Resolution"),
        ("Attachment", "Attachment"),
        ("Note", "Note"),
        ("RMA", "RMA"),
        ("RequisitionCreated", "Requisition Created"),
        ("RequisitionApproved", "Requisition Approved"),
        ("RequisitionRejected", "Requisition Rejected"),
        ("RequisitionFulfilled", "Requisition Fulfilled"),
    ]

    ticket = models.ForeignKey(
        Ticket, on_delete=models.CASCADE, related_name="activities"
    )
    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        related_name="ticket_activities",
    )
    activity_type = models.CharField(max_length=30, choices=TYPE_CHOICES)
    content = models.TextField()
    created_at = models.DateTimeField(default=timezone.now)

    class Meta:
        ordering = ["created_at", "id"]
        verbose_name_plural = "ticket activities"

    def __str__(self):
        return f"{self.ticket.ticket_number} [{self.activity_type}]"

    def save(self, *args, **kwargs):
        if self.pk is not None:
            raise ValidationError(
                "Ticket activity is append-only and cannot be modified."
            )
        super().save(*args, **kwargs)
