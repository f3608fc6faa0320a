"""Asset state machine and conditional status writes.

Every status or site change made by the workflows goes through
``move_asset``: the write is a single UPDATE filtered on the status the
caller expects, so two callers racing for the same unit cannot both win.
The matching ledger entry is written in the same database transaction.
"""

import logging

from django.contrib.auth import get_user_model
from django.core.exceptions import ValidationError
from django.db import transaction as db_transaction
from django.utils import timezone

from ..exceptions import ConflictError, NotFoundError
from ..models import Asset, Site
from .ledger import log_movement

User = get_user_model()

logger = logging.getLogger(__name__)


def get_asset(asset_id, *, for_update=False) -> Asset:
    qs = Asset.objects.select_related("site")
    if for_update:
        qs = qs.select_for_update()
    try:
        return qs.get(pk=asset_id)
    except (Asset.DoesNotExist, ValueError, TypeError):
        raise NotFoundError("Asset not found.")


def validate_status_edge(from_status: str, new_status: str) -> None:
    """Raise if ``from_status -> new_status`` is not allowed.

    Unknown statuses are a ValidationError; a known but forbidden edge is
    a ConflictError.
    """
    if new_status not in dict(Asset.STATUS_CHOICES):
        raise ValidationError(f"'{new_status}' is not a valid status.")

    if not Asset.is_transition_allowed(from_status, new_status):
        allowed = Asset.VALID_TRANSITIONS.get(from_status)
        if allowed is None:
            hint = "Only Spare assets can be reserved or dispatched."
        else:
            hint = f"Allowed transitions: {', '.join(allowed) or 'none'}."
        raise ConflictError(
            f"Cannot move asset from '{from_status}' to "
            f"'{new_status}'. {hint}"
        )


def validate_transition(asset: Asset, new_status: str) -> None:
    """Validate and raise if the status transition is not allowed."""
    validate_status_edge(asset.status, new_status)


def move_asset(
    asset: Asset,
    new_status: str,
    performed_by: User | None,
    *,
    expected_status: str | None = None,
    movement_type: str = "StatusChange",
    to_site: Site | None = None,
    updates: dict | None = None,
    notes: str = "",
    conflict_message: str = "",
    **refs,
) -> Asset:
    """Conditionally change an asset's status and record it in the ledger.

    ``expected_status`` defaults to the status on the instance passed in.
    The UPDATE only matches while the row still holds that status; if it
    matches nothing the asset was changed by someone else and
    ``ConflictError`` is raised without touching anything.

    ``updates`` carries extra column values (identity fields, flags) that
    are written in the same statement. ``refs`` are forwarded to the
    ledger entry (rma, requisition, stock_transfer, ticket).

    Returns the asset refreshed from the database.
    """
    expected = expected_status or asset.status
    validate_status_edge(expected, new_status)

    fields = {"status": new_status, "updated_at": timezone.now()}
    if to_site is not None:
        fields["site"] = to_site
    if updates:
        fields.update(updates)

    from_site = asset.site
    with db_transaction.atomic():
        matched = Asset.objects.filter(pk=asset.pk, status=expected).update(
            **fields
        )
        if not matched:
            logger.warning(
                "Claim on %s rejected: expected %s",
                asset.asset_code,
                expected,
            )
            raise ConflictError(
                conflict_message
                or f"Asset {asset.asset_code} is no longer {expected}."
            )
        asset.refresh_from_db()
        log_movement(
            asset,
            movement_type,
            performed_by,
            from_site=from_site,
            to_site=asset.site,
            from_status=expected,
            to_status=new_status,
            notes=notes,
            **refs,
        )
    return asset


def claim_spare(
    asset: Asset,
    new_status: str,
    performed_by: User | None,
    **kwargs,
) -> Asset:
    """Take a Spare unit into use, reservation, transit or disposal."""
    kwargs.setdefault(
        "conflict_message",
        f"Asset {asset.asset_code} is not available (must be Spare status).",
    )
    return move_asset(
        asset,
        new_status,
        performed_by,
        expected_status="Spare",
        **kwargs,
    )


def set_status(
    asset: Asset,
    new_status: str,
    actor: User | None,
    reason: str = "",
) -> Asset:
    """Validate and perform a status transition with its ledger entry.

    A no-op transition (same status) writes nothing.
    """
    if new_status == asset.status:
        return asset
    return move_asset(asset, new_status, actor, notes=reason)
