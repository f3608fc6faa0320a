"""Create the movement ledger and the replacement workflow models."""

import django.core.validators
import django.db.models.deletion
import django.utils.timezone
from django.conf import settings
from django.db import migrations, models

ASSET_TYPES = [
    ("Camera", "Camera"),
    ("NVR", "NVR"),
    ("Switch", "Switch"),
    ("Router", "Router"),
    ("Server", "Server"),
    ("Other", "Other"),
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


def _timeline_fields():
    return [
        ("id", _id()),
        ("status", models.CharField(max_length=20)),
        (
            "changed_at",
            models.DateTimeField(default=django.utils.timezone.now),
        ),
        ("remarks", models.CharField(blank=True, max_length=1000)),
        ("changed_by", _user_fk("+")),
    ]


class Migration(migrations.Migration):

    dependencies = [
        ("assets", "0002_asset"),
        ("tickets", "0001_initial"),
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name="RMARequest",
            fields=[
                ("id", _id()),
                ("rma_number", models.CharField(max_length=30, unique=True)),
                (
                    "original_snapshot",
                    models.JSONField(
                        default=dict,
                        help_text=(
                            "Identifying details of the defective unit at "
                            "request time"
                        ),
                    ),
                ),
                (
                    "replacement_details",
                    models.JSONField(blank=True, default=dict),
                ),
                ("request_reason", models.TextField(max_length=1000)),
                (
                    "status",
                    models.CharField(
                        choices=[
                            ("Requested", "Requested"),
                            ("Approved", "Approved"),
                            ("Ordered", "Ordered"),
                            ("Dispatched", "Dispatched"),
                            ("Received", "Received"),
                            ("Installed", "Installed"),
                            ("Rejected", "Rejected"),
                        ],
                        default="Requested",
                        max_length=20,
                    ),
                ),
                (
                    "shipping_details",
                    models.JSONField(blank=True, default=dict),
                ),
                ("vendor_details", models.JSONField(blank=True, default=dict)),
                ("approved_at", models.DateTimeField(blank=True, null=True)),
                ("installed_at", models.DateTimeField(blank=True, null=True)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                (
                    "ticket",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="rma_requests",
                        to="tickets.ticket",
                    ),
                ),
                (
                    "site",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="rma_requests",
                        to="assets.site",
                    ),
                ),
                (
                    "original_asset",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="rma_requests",
                        to="assets.asset",
                    ),
                ),
                (
                    "reserved_asset",
                    models.ForeignKey(
                        blank=True,
                        help_text="Site spare held for this RMA, if any",
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        related_name="reserved_for_rmas",
                        to="assets.asset",
                    ),
                ),
                ("requested_by", _user_fk("requested_rmas")),
                ("approved_by", _user_fk("approved_rmas", blank=True)),
                ("installed_by", _user_fk("installed_rmas", blank=True)),
            ],
            options={
                "verbose_name": "RMA request",
                "ordering": ["-created_at"],
                "indexes": [
                    models.Index(fields=["status"], name="idx_rma_status"),
                ],
                "constraints": [
                    models.UniqueConstraint(
                        condition=models.Q(
                            ("status__in", ["Installed", "Rejected"]),
                            _negated=True,
                        ),
                        fields=("ticket",),
                        name="unique_active_rma_per_ticket",
                    ),
                ],
            },
        ),
        migrations.CreateModel(
            name="RMATimelineEntry",
            fields=_timeline_fields()
            + [
                (
                    "rma",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="timeline",
                        to="assets.rmarequest",
                    ),
                ),
            ],
            options={
                "verbose_name": "RMA timeline entry",
                "verbose_name_plural": "RMA timeline entries",
                "ordering": ["changed_at", "id"],
                "abstract": False,
            },
        ),
        migrations.CreateModel(
            name="Requisition",
            fields=[
                ("id", _id()),
                (
                    "requisition_number",
                    models.CharField(max_length=30, unique=True),
                ),
                (
                    "asset_type",
                    models.CharField(choices=ASSET_TYPES, max_length=20),
                ),
                (
                    "quantity",
                    models.PositiveIntegerField(
                        default=1,
                        validators=[
                            django.core.validators.MinValueValidator(1)
                        ],
                    ),
                ),
                (
                    "status",
                    models.CharField(
                        choices=[
                            ("Pending", "Pending"),
                            ("Approved", "Approved"),
                            ("Fulfilled", "Fulfilled"),
                            ("Rejected", "Rejected"),
                            ("Cancelled", "Cancelled"),
                        ],
                        default="Pending",
                        max_length=20,
                    ),
                ),
                ("approved_at", models.DateTimeField(blank=True, null=True)),
                ("fulfilled_at", models.DateTimeField(blank=True, null=True)),
                ("comments", models.TextField(blank=True)),
                ("rejection_reason", models.TextField(blank=True)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                (
                    "ticket",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="requisitions",
                        to="tickets.ticket",
                    ),
                ),
                (
                    "site",
                    models.ForeignKey(
                        help_text="Destination: the ticket's site",
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="requisitions_in",
                        to="assets.site",
                    ),
                ),
                (
                    "source_site",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="requisitions_out",
                        to="assets.site",
                    ),
                ),
                (
                    "fulfilled_asset",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        related_name="fulfilled_requisitions",
                        to="assets.asset",
                    ),
                ),
                ("requested_by", _user_fk("requisitions")),
                (
                    "approved_by",
                    _user_fk("approved_requisitions", blank=True),
                ),
            ],
            options={
                "ordering": ["-created_at"],
                "indexes": [
                    models.Index(
                        fields=["status"], name="idx_requisition_status"
                    ),
                ],
            },
        ),
        migrations.CreateModel(
            name="RequisitionTimelineEntry",
            fields=_timeline_fields()
            + [
                (
                    "requisition",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="timeline",
                        to="assets.requisition",
                    ),
                ),
            ],
            options={
                "verbose_name_plural": "requisition timeline entries",
                "ordering": ["changed_at", "id"],
                "abstract": False,
            },
        ),
        migrations.CreateModel(
            name="StockTransfer",
            fields=[
                ("id", _id()),
                (
                    "transfer_name",
                    models.CharField(blank=True, max_length=255),
                ),
                (
                    "status",
                    models.CharField(
                        choices=[
                            ("Pending", "Pending"),
                            ("Approved", "Approved"),
                            ("Dispatched", "Dispatched"),
                            ("Completed", "Completed"),
                            ("Cancelled", "Cancelled"),
                        ],
                        default="Pending",
                        max_length=20,
                    ),
                ),
                (
                    "shipping_details",
                    models.JSONField(blank=True, default=dict),
                ),
                ("notes", models.TextField(blank=True)),
                ("cancellation_reason", models.TextField(blank=True)),
                ("approved_at", models.DateTimeField(blank=True, null=True)),
                (
                    "dispatched_at",
                    models.DateTimeField(blank=True, null=True),
                ),
                ("received_at", models.DateTimeField(blank=True, null=True)),
                (
                    "cancelled_at",
                    models.DateTimeField(blank=True, null=True),
                ),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                (
                    "source_site",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="transfers_out",
                        to="assets.site",
                    ),
                ),
                (
                    "destination_site",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="transfers_in",
                        to="assets.site",
                    ),
                ),
                (
                    "assets",
                    models.ManyToManyField(
                        related_name="stock_transfers", to="assets.asset"
                    ),
                ),
                ("initiated_by", _user_fk("initiated_transfers")),
                ("approved_by", _user_fk("approved_transfers", blank=True)),
                (
                    "dispatched_by",
                    _user_fk("dispatched_transfers", blank=True),
                ),
                ("received_by", _user_fk("received_transfers", blank=True)),
                (
                    "cancelled_by",
                    _user_fk("cancelled_transfers", blank=True),
                ),
            ],
            options={
                "ordering": ["-created_at"],
                "indexes": [
                    models.Index(
                        fields=["status"], name="idx_transfer_status"
                    ),
                ],
            },
        ),
        migrations.CreateModel(
            name="StockReplacement",
            fields=[
                ("id", _id()),
                ("old_details", models.JSONField(default=dict)),
                ("new_details", models.JSONField(default=dict)),
                (
                    "replaced_at",
                    models.DateTimeField(default=django.utils.timezone.now),
                ),
                ("remarks", models.CharField(blank=True, max_length=500)),
                (
                    "ticket",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="stock_replacements",
                        to="tickets.ticket",
                    ),
                ),
                (
                    "asset",
                    models.ForeignKey(
                        help_text=(
                            "Unit that kept its code and took the spare's "
                            "hardware"
                        ),
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="replacements",
                        to="assets.asset",
                    ),
                ),
                (
                    "spare_asset",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="consumed_in_replacements",
                        to="assets.asset",
                    ),
                ),
                ("replaced_by", _user_fk("stock_replacements")),
            ],
            options={
                "ordering": ["-replaced_at"],
                "abstract": False,
            },
        ),
        migrations.CreateModel(
            name="StockMovementLog",
            fields=[
                ("id", _id()),
                (
                    "movement_type",
                    models.CharField(
                        choices=[
                            ("Added", "Added to stock"),
                            ("Transfer", "Transfer"),
                            ("RMATransfer", "RMA transfer"),
                            ("RepairedReturn", "Returned from repair"),
                            ("StatusChange", "Status change"),
                            ("Reserved", "Reserved"),
                            ("Released", "Released"),
                            ("Disposed", "Disposed"),
                        ],
                        max_length=20,
                    ),
                ),
                ("from_status", models.CharField(blank=True, max_length=20)),
                ("to_status", models.CharField(blank=True, max_length=20)),
                ("notes", models.CharField(blank=True, max_length=500)),
                (
                    "asset_snapshot",
                    models.JSONField(blank=True, default=dict),
                ),
                (
                    "created_at",
                    models.DateTimeField(default=django.utils.timezone.now),
                ),
                (
                    "asset",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="movements",
                        to="assets.asset",
                    ),
                ),
                (
                    "from_site",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        related_name="movements_out",
                        to="assets.site",
                    ),
                ),
                (
                    "to_site",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        related_name="movements_in",
                        to="assets.site",
                    ),
                ),
                ("performed_by", _user_fk("stock_movements")),
                (
                    "rma",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        related_name="movements",
                        to="assets.rmarequest",
                    ),
                ),
                (
                    "requisition",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        related_name="movements",
                        to="assets.requisition",
                    ),
                ),
                (
                    "stock_transfer",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        related_name="movements",
                        to="assets.stocktransfer",
                    ),
                ),
                (
                    "ticket",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        related_name="stock_movements",
                        to="tickets.ticket",
                    ),
                ),
            ],
            options={
                "ordering": ["-created_at", "-id"],
                "indexes": [
                    models.Index(
                        fields=["asset", "created_at"],
                        name="idx_movement_asset_created",
                    ),
                    models.Index(
                        fields=["movement_type"], name="idx_movement_type"
                    ),
                ],
                "abstract": False,
            },
        ),
        migrations.AddField(
            model_name="asset",
            name="reserved_by_rma",
            field=models.ForeignKey(
                blank=True,
                help_text="RMA currently holding this unit in reserve",
                null=True,
                on_delete=django.db.models.deletion.SET_NULL,
                related_name="held_assets",
                to="assets.rmarequest",
            ),
        ),
    ]
