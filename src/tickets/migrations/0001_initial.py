"""Create SLAPolicy, DailySequence, Ticket and TicketActivity."""

import django.core.validators
import django.db.models.deletion
import django.utils.timezone
from django.conf import settings
from django.db import migrations, models

PRIORITY_CHOICES = [
    ("P1", "P1 - Critical"),
    ("P2", "P2 - High"),
    ("P3", "P3 - Medium"),
    ("P4", "P4 - Low"),
]


def _id():
    return models.BigAutoField(
        auto_created=True, primary_key=True, serialize=False, verbose_name="ID"
    )


def _user_fk(related_name, blank=False):
    return models.ForeignKey(
        blank=blank,
        null=True,
        on_delete=django.db.models.deletion.SET_NULL,
        related_name=related_name,
        to=settings.AUTH_USER_MODEL,
    )


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        ("assets", "0002_asset"),
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name="SLAPolicy",
            fields=[
                ("id", _id()),
                ("name", models.CharField(max_length=100)),
                (
                    "priority",
                    models.CharField(choices=PRIORITY_CHOICES, max_length=2),
                ),
                ("response_time_minutes", models.PositiveIntegerField()),
                ("restore_time_minutes", models.PositiveIntegerField()),
                (
                    "escalation_level1_minutes",
                    models.PositiveIntegerField(blank=True, null=True),
                ),
                (
                    "escalation_level2_minutes",
                    models.PositiveIntegerField(blank=True, null=True),
                ),
                ("is_active", models.BooleanField(default=True)),
            ],
            options={
                "verbose_name": "SLA policy",
                "verbose_name_plural": "SLA policies",
                "ordering": ["priority"],
                "constraints": [
                    models.UniqueConstraint(
                        condition=models.Q(is_active=True),
                        fields=("priority",),
                        name="unique_active_sla_per_priority",
                    )
                ],
            },
        ),
        migrations.CreateModel(
            name="DailySequence",
            fields=[
                ("id", _id()),
                ("prefix", models.CharField(max_length=10)),
                ("day", models.DateField()),
                ("last_value", models.PositiveIntegerField(default=0)),
            ],
            options={
                "constraints": [
                    models.UniqueConstraint(
                        fields=("prefix", "day"),
                        name="unique_sequence_per_prefix_day",
                    )
                ],
            },
        ),
        migrations.CreateModel(
            name="Ticket",
            fields=[
                ("id", _id()),
                ("ticket_number", models.CharField(max_length=30, unique=True)),
                ("title", models.CharField(max_length=200)),
                ("description", models.TextField(blank=True)),
                (
                    "category",
                    models.CharField(
                        choices=[
                            ("Hardware", "Hardware"),
                            ("Software", "Software"),
                            ("Network", "Network"),
                            ("Power", "Power"),
                            ("Connectivity", "Connectivity"),
                            ("Other", "Other"),
                        ],
                        default="Hardware",
                        max_length=20,
                    ),
                ),
                (
                    "source",
                    models.CharField(
                        choices=[
                            ("Manual", "Manual"),
                            ("VMS", "VMS"),
                            ("NMS", "NMS"),
                            ("IoT", "IoT"),
                        ],
                        default="Manual",
                        max_length=10,
                    ),
                ),
                (
                    "impact",
                    models.PositiveSmallIntegerField(
                        default=3,
                        validators=[
                            django.core.validators.MinValueValidator(1),
                            django.core.validators.MaxValueValidator(5),
                        ],
                    ),
                ),
                (
                    "urgency",
                    models.PositiveSmallIntegerField(
                        default=3,
                        validators=[
                            django.core.validators.MinValueValidator(1),
                            django.core.validators.MaxValueValidator(5),
                        ],
                    ),
                ),
                (
                    "priority",
                    models.CharField(
                        choices=PRIORITY_CHOICES, default="P3", max_length=2
                    ),
                ),
                ("priority_score", models.PositiveIntegerField(default=0)),
                (
                    "priority_pinned",
                    models.BooleanField(
                        default=False,
                        help_text=(
                            "Priority was set by hand and is not recomputed"
                        ),
                    ),
                ),
                (
                    "status",
                    models.CharField(
                        choices=[
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
                        ],
                        default="Open",
                        max_length=20,
                    ),
                ),
                (
                    "sla_response_due",
                    models.DateTimeField(blank=True, null=True),
                ),
                (
                    "sla_restore_due",
                    models.DateTimeField(blank=True, null=True),
                ),
                (
                    "is_sla_response_breached",
                    models.BooleanField(default=False),
                ),
                (
                    "is_sla_restore_breached",
                    models.BooleanField(default=False),
                ),
                (
                    "escalation_level",
                    models.PositiveSmallIntegerField(
                        default=0,
                        validators=[
                            django.core.validators.MaxValueValidator(3)
                        ],
                    ),
                ),
                ("assigned_at", models.DateTimeField(blank=True, null=True)),
                (
                    "acknowledged_at",
                    models.DateTimeField(blank=True, null=True),
                ),
                ("started_at", models.DateTimeField(blank=True, null=True)),
                ("resolved_at", models.DateTimeField(blank=True, null=True)),
                ("verified_at", models.DateTimeField(blank=True, null=True)),
                ("closed_at", models.DateTimeField(blank=True, null=True)),
                ("root_cause", models.TextField(blank=True)),
                ("resolution_summary", models.TextField(blank=True)),
                (
                    "created_at",
                    models.DateTimeField(default=django.utils.timezone.now),
                ),
                ("updated_at", models.DateTimeField(auto_now=True)),
                (
                    "asset",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="tickets",
                        to="assets.asset",
                    ),
                ),
                (
                    "site",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="tickets",
                        to="assets.site",
                    ),
                ),
                ("created_by", _user_fk("created_tickets")),
                ("assigned_to", _user_fk("assigned_tickets", blank=True)),
                ("verified_by", _user_fk("verified_tickets", blank=True)),
                (
                    "sla_policy",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        related_name="tickets",
                        to="tickets.slapolicy",
                    ),
                ),
            ],
            options={
                "ordering": ["-created_at"],
                "indexes": [
                    models.Index(fields=["status"], name="idx_ticket_status"),
                    models.Index(
                        fields=["site", "status"],
                        name="idx_ticket_site_status",
                    ),
                    models.Index(
                        fields=["priority"], name="idx_ticket_priority"
                    ),
                ],
            },
        ),
        migrations.CreateModel(
            name="TicketActivity",
            fields=[
                ("id", _id()),
                (
                    "activity_type",
                    models.CharField(
                        choices=[
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
                            (
                                "RequisitionFulfilled",
                                "Requisition Fulfilled",
                            ),
                        ],
                        max_length=30,
                    ),
                ),
                ("content", models.TextField()),
                (
                    "created_at",
                    models.DateTimeField(default=django.utils.timezone.now),
                ),
                (
                    "ticket",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="activities",
                        to="tickets.ticket",
                    ),
                ),
                ("user", _user_fk("ticket_activities")),
            ],
            options={
                "verbose_name_plural": "ticket activities",
                "ordering": ["created_at", "id"],
            },
        ),
    ]
