"""Role and site-right checks used by the inventory workflows."""

from django.contrib.auth import get_user_model

from ..models import Site

User = get_user_model()

DIRECT_RMA_GENERATE = "DIRECT_RMA_GENERATE"
MANAGE_SITE_STOCK = "MANAGE_SITE_STOCK"
APPROVE_REQUISITION = "APPROVE_REQUISITION"

# Roles allowed to see full serial/MAC/IP values
IDENTITY_VIEWER_ROLES = ("Admin", "Supervisor", "L2Engineer")


def get_user_role(user: User) -> str:
    """Return the user's effective role.

    Superusers are treated as Admin whatever their stored role.
    """
    if user.is_superuser:
        return "Admin"
    return user.role


def has_site_right(user: User, right: str, site: Site | None) -> bool:
    """Check a right globally, then for ``site``.

    Admin and Supervisor hold every right at every site.
    """
    if not user or not user.is_authenticated:
        return False
    if user.is_elevated:
        return True
    if right in (user.global_rights or []):
        return True
    if site is None:
        return False
    grant = user.site_rights.filter(site=site).first()
    return bool(grant and right in (grant.rights or []))


def can_direct_generate_rma(user: User, site: Site | None) -> bool:
    return has_site_right(user, DIRECT_RMA_GENERATE, site)


def can_manage_site_stock(user: User, site: Site | None) -> bool:
    return has_site_right(user, MANAGE_SITE_STOCK, site)


def can_approve_requisition(user: User, site: Site | None) -> bool:
    return has_site_right(user, APPROVE_REQUISITION, site)


def can_view_network_identity(user: User) -> bool:
    return get_user_role(user) in IDENTITY_VIEWER_ROLES


def mask_value(value: str) -> str:
    """Hide all but the last four characters."""
    if not value:
        return value
    if len(value) <= 4:
        return "****"
    return f"****{value[-4:]}"


def assigned_site_ids(user: User) -> list | None:
    """Sites a user's listings are limited to; None means every site."""
    if user.is_elevated:
        return None
    return list(user.assigned_sites.values_list("pk", flat=True))
