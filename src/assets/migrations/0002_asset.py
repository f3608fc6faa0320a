"""Create Asset."""

import django.core.validators
import django.db.models.deletion
from django.conf import settings
from django.db import migrations, models


class Migration(migrations.Migration):

    dependencies = [
        ("assets", "0001_initial"),
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name="Asset",
            fields=[
                (
                    "id",
                    models.BigAutoField(
                        auto_created=True,
                        primary_key=True,
                        serialize=False,
                        verbose_name="ID",
                    ),
                ),
                (
                    "asset_code",
                    models.CharField(
                        blank=True,
                        help_text=(
                            "Stable identifier; never changes after creation"
                        ),
                        max_length=60,
                        unique=True,
                    ),
                ),
                (
                    "asset_type",
                    models.CharField(
                        choices=[
                            ("Camera", "Camera"),
                            ("NVR", "NVR"),
                            ("Switch", "Switch"),
                            ("Router", "Router"),
                            ("Server", "Server"),
                            ("Other", "Other"),
                        ],
                        max_length=20,
                    ),
                ),
                ("device_type", models.CharField(blank=True, max_length=100)),
                ("make", models.CharField(blank=True, max_length=100)),
                ("model", models.CharField(blank=True, max_length=100)),
                (
                    "serial_number",
                    models.CharField(blank=True, max_length=100),
                ),
                ("mac_address", models.CharField(blank=True, max_length=50)),
                ("ip_address", models.CharField(blank=True, max_length=50)),
                (
                    "location_description",
                    models.CharField(blank=True, max_length=255),
                ),
                (
                    "stock_location",
                    models.CharField(
                        blank=True,
                        help_text="Shelf or store room while held as spare",
                        max_length=100,
                    ),
                ),
                (
                    "criticality",
                    models.PositiveSmallIntegerField(
                        default=2,
                        help_text=(
                            "1 (low) to 3 (high); weights ticket priority"
                        ),
                        validators=[
                            django.core.validators.MinValueValidator(1),
                            django.core.validators.MaxValueValidator(3),
                        ],
                    ),
                ),
                (
                    "status",
                    models.CharField(
                        choices=[
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
                        ],
                        default="Operational",
                        max_length=20,
                    ),
                ),
                ("remark", models.CharField(blank=True, max_length=500)),
                ("is_active", models.BooleanField(default=True)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                (
                    "created_by",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        related_name="created_assets",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
                (
                    "site",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="assets",
                        to="assets.site",
                    ),
                ),
            ],
            options={
                "ordering": ["asset_code"],
                "indexes": [
                    models.Index(fields=["status"], name="idx_asset_status"),
                    models.Index(
                        fields=["site", "asset_type", "status"],
                        name="idx_asset_site_type_status",
                    ),
                    models.Index(
                        fields=["serial_number"], name="idx_asset_serial"
                    ),
                ],
            },
        ),
    ]
