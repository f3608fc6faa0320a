"""Stock movement ledger: the append-only history of every asset."""

import logging

from django.contrib.auth import get_user_model
from django.utils import timezone

from ..models import Asset, Site, StockMovementLog

User = get_user_model()

logger = logging.getLogger(__name__)


def log_movement(
    asset: Asset,
    movement_type: str,
    performed_by: User | None,
    *,
    from_site: Site | None = None,
    to_site: Site | None = None,
    from_status: str = "",
    to_status: str = "",
    notes: str = "",
    rma=None,
    requisition=None,
    stock_transfer=None,
    ticket=None,
) -> StockMovementLog:
    """Append one ledger entry for ``asset``.

    The snapshot is taken from the asset as passed in, so callers record
    the entry after the change it describes has been written.
    """
    entry = StockMovementLog.objects.create(
        asset=asset,
        movement_type=movement_type,
        from_site=from_site,
        to_site=to_site,
        from_status=from_status,
        to_status=to_status,
        performed_by=performed_by,
        rma=rma,
        requisition=requisition,
        stock_transfer=stock_transfer,
        ticket=ticket,
        notes=notes[:500],
        asset_snapshot=asset.snapshot(),
    )
    logger.debug(
        "Ledger: %s %s %s->%s",
        asset.asset_code,
        movement_type,
        from_status,
        to_status,
    )
    return entry


def log_bulk_movement(
    assets: list[Asset],
    movement_type: str,
    performed_by: User | None,
    *,
    from_status: str,
    to_status: str,
    from_site: Site | None = None,
    to_site: Site | None = None,
    notes: str = "",
    stock_transfer=None,
) -> int:
    """Append one ledger entry per asset in a single insert."""
    now = timezone.now()
    entries = [
        StockMovementLog(
            asset=asset,
            movement_type=movement_type,
            from_site=from_site,
            to_site=to_site,
            from_status=from_status,
            to_status=to_status,
            performed_by=performed_by,
            stock_transfer=stock_transfer,
            notes=notes[:500],
            asset_snapshot=asset.snapshot(),
            created_at=now,
        )
        for asset in assets
    ]
    StockMovementLog.objects.bulk_create(entries)
    return len(entries)


def asset_history(asset: Asset):
    """Ledger entries for an asset, oldest first."""
    return (
        StockMovementLog.objects.filter(asset=asset)
        .select_related("from_site", "to_site", "performed_by")
        .order_by("created_at", "id")
    )
