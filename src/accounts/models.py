"""Custom user model and site-scoped rights for FieldOps."""

from django.conf import settings
from django.contrib.auth.models import AbstractUser
from django.db import models


class CustomUser(AbstractUser):
    """Field-service user with an operational role and site assignments."""

    ROLE_CHOICES = [
        ("Dispatcher", "Dispatcher"),
        ("L1Engineer", "L1 Engineer"),
        ("L2Engineer", "L2 Engineer"),
        ("Supervisor", "Supervisor"),
        ("Admin", "Admin"),
        ("ClientViewer", "Client Viewer"),
    ]

    # Roles that bypass per-site right checks
    ELEVATED_ROLES = ("Admin", "Supervisor")

    display_name = models.CharField(
        max_length=255,
        blank=True,
        help_text="Human-readable name shown in activity notes",
    )
    phone_number = models.CharField(max_length=20, blank=True)
    email = models.EmailField("email address", blank=False, unique=True)
    role = models.CharField(
        max_length=20,
        choices=ROLE_CHOICES,
        default="L1Engineer",
        db_index=True,
    )
    assigned_sites = models.ManyToManyField(
        "assets.Site",
        blank=True,
        related_name="assigned_users",
        help_text="Sites this user works at",
    )
    global_rights = models.JSONField(
        default=list,
        blank=True,
        help_text="Rights granted across every site, e.g. DIRECT_RMA_GENERATE",
    )

    class Meta:
        verbose_name = "user"
        verbose_name_plural = "users"

    @property
    def is_elevated(self):
        return self.is_superuser or self.role in self.ELEVATED_ROLES

    def get_display_name(self):
        """Return display_name if set, otherwise full name or username."""
        if self.display_name:
            return self.display_name
        full = self.get_full_name()
        return full if full else self.username

    def __str__(self):
        return self.get_display_name()


class SiteRight(models.Model):
    """Rights a user holds at one particular site."""

    RIGHT_CHOICES = [
        ("DIRECT_RMA_GENERATE", "Raise RMAs pre-approved"),
        ("MANAGE_SITE_STOCK", "Manage site stock"),
        ("APPROVE_REQUISITION", "Approve requisitions"),
    ]

    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="site_rights",
    )
    site = models.ForeignKey(
        "assets.Site",
        on_delete=models.CASCADE,
        related_name="user_rights",
    )
    rights = models.JSONField(default=list, blank=True)

    class Meta:
        constraints = [
            models.UniqueConstraint(
                fields=["user", "site"],
                name="unique_site_right_per_user",
            ),
        ]

    def __str__(self):
        return f"{self.user} @ {self.site}: {', '.join(self.rights)}"


class WorkLogEntry(models.Model):
    """One line in a user's daily work log."""

    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="work_log",
    )
    category = models.CharField(max_length=50)
    description = models.CharField(max_length=500)
    ref_type = models.CharField(max_length=50, blank=True)
    ref_id = models.PositiveBigIntegerField(null=True, blank=True)
    metadata = models.JSONField(default=dict, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ["-created_at"]
        verbose_name_plural = "work log entries"
        indexes = [
            models.Index(
                fields=["user", "created_at"],
                name="idx_worklog_user_created",
            ),
        ]

    def __str__(self):
        return f"{self.user}: {self.description}"
