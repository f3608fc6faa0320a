"""Stock transfer workflow: moving spare units between sites in bulk."""

import logging

from django.contrib.auth import get_user_model
from django.core.exceptions import ValidationError
from django.db import transaction as db_transaction
from django.db.models import Q
from django.utils import timezone

from ..exceptions import ConflictError, NotFoundError
from ..models import Asset, Site, StockTransfer
from .ledger import log_bulk_movement
from .notifications import queue_work_log
from .permissions import assigned_site_ids

User = get_user_model()

logger = logging.getLogger(__name__)


def get_transfer(transfer_id, *, for_update=False) -> StockTransfer:
    qs = StockTransfer.objects.select_related(
        "source_site", "destination_site"
    )
    if for_update:
        qs = qs.select_for_update()
    try:
        return qs.get(pk=transfer_id)
    except (StockTransfer.DoesNotExist, ValueError, TypeError):
        raise NotFoundError("Stock transfer not found.")


def _get_site(site_id, label):
    try:
        return Site.objects.get(pk=site_id, is_active=True)
    except (Site.DoesNotExist, ValueError, TypeError):
        raise NotFoundError(f"{label} site not found.")


def _claim_status(transfer, allowed, new_status, **fields):
    """Advance the transfer row only if it is still in ``allowed``.

    Re-running a step that already happened matches nothing and raises
    ConflictError, so a step is never applied twice.
    """
    fields["status"] = new_status
    matched = StockTransfer.objects.filter(
        pk=transfer.pk, status__in=allowed
    ).update(**fields)
    if not matched:
        transfer.refresh_from_db(fields=["status"])
        raise ConflictError(
            f"Transfer {transfer} is already {transfer.status.lower()}."
        )
    for name, value in fields.items():
        setattr(transfer, name, value)


def initiate_transfer(
    source_site_id,
    destination_site_id,
    asset_ids,
    initiated_by: User,
    *,
    notes: str = "",
    transfer_name: str = "",
) -> StockTransfer:
    """Create a transfer for units that are all Spare at the source site.

    Partial transfers are not allowed: if any listed unit is missing, not
    Spare or at another site, nothing is created.
    """
    asset_ids = list(dict.fromkeys(asset_ids or []))
    if not asset_ids:
        raise ValidationError("At least one asset is required.")
    source = _get_site(source_site_id, "Source")
    destination = _get_site(destination_site_id, "Destination")
    if source.pk == destination.pk:
        raise ValidationError(
            "Source and destination sites must be different."
        )

    assets = list(
        Asset.objects.filter(
            pk__in=asset_ids, site=source, status="Spare", is_active=True
        )
    )
    if len(assets) != len(asset_ids):
        raise ValidationError("Some assets are not available for transfer.")

    with db_transaction.atomic():
        transfer = StockTransfer.objects.create(
            source_site=source,
            destination_site=destination,
            initiated_by=initiated_by,
            notes=notes,
            transfer_name=transfer_name,
        )
        transfer.assets.set(assets)
        queue_work_log(
            initiated_by,
            "StockTransfer",
            f"Initiated {transfer.transfer_name} ({len(assets)} assets)",
            ref_type="StockTransfer",
            ref_id=transfer.pk,
        )

    logger.info(
        "Transfer %s initiated with %d assets", transfer.pk, len(assets)
    )
    return transfer


def approve_transfer(transfer_id, approver: User) -> StockTransfer:
    with db_transaction.atomic():
        transfer = get_transfer(transfer_id)
        _claim_status(
            transfer,
            ["Pending"],
            "Approved",
            approved_by=approver,
            approved_at=timezone.now(),
        )
    logger.info("Transfer %s approved", transfer.pk)
    return transfer


def dispatch_transfer(
    transfer_id, dispatched_by: User, shipping_details: dict | None = None
) -> StockTransfer:
    """Send every unit on the transfer into transit.

    All units must still be Spare at the source site; if any was claimed
    since initiation the dispatch fails with ConflictError and nothing is
    written.
    """
    with db_transaction.atomic():
        transfer = get_transfer(transfer_id)
        details = {**transfer.shipping_details, **(shipping_details or {})}
        details.setdefault("dispatch_date", timezone.now().isoformat())
        _claim_status(
            transfer,
            ["Pending", "Approved"],
            "Dispatched",
            dispatched_by=dispatched_by,
            dispatched_at=timezone.now(),
            shipping_details=details,
        )

        asset_ids = list(transfer.assets.values_list("pk", flat=True))
        moved = Asset.objects.filter(
            pk__in=asset_ids,
            site=transfer.source_site,
            status="Spare",
        ).update(status="InTransit", updated_at=timezone.now())
        if moved != len(asset_ids):
            raise ConflictError(
                "Some assets on this transfer are no longer available."
            )

        log_bulk_movement(
            list(transfer.assets.all()),
            "Transfer",
            dispatched_by,
            from_status="Spare",
            to_status="InTransit",
            from_site=transfer.source_site,
            to_site=transfer.destination_site,
            notes=f"Dispatched on {transfer.transfer_name}",
            stock_transfer=transfer,
        )
        queue_work_log(
            dispatched_by,
            "StockTransfer",
            f"Dispatched {transfer.transfer_name}",
            ref_type="StockTransfer",
            ref_id=transfer.pk,
        )

    logger.info("Transfer %s dispatched (%d assets)", transfer.pk, moved)
    return transfer


def receive_transfer(transfer_id, received_by: User) -> StockTransfer:
    """Book the units in at the destination as Spare.

    The status and site change happen in one statement per transfer. A
    second receive on the same transfer raises ConflictError.
    """
    with db_transaction.atomic():
        transfer = get_transfer(transfer_id)
        _claim_status(
            transfer,
            ["InTransit", "Dispatched"],
            "Completed",
            received_by=received_by,
            received_at=timezone.now(),
        )

        asset_ids = list(transfer.assets.values_list("pk", flat=True))
        moved = Asset.objects.filter(
            pk__in=asset_ids, status="InTransit"
        ).update(
            status="Spare",
            site=transfer.destination_site,
            stock_location="",
            updated_at=timezone.now(),
        )
        if moved != len(asset_ids):
            raise ConflictError(
                "Some assets on this transfer are no longer in transit."
            )

        log_bulk_movement(
            list(transfer.assets.all()),
            "Transfer",
            received_by,
            from_status="InTransit",
            to_status="Spare",
            from_site=transfer.source_site,
            to_site=transfer.destination_site,
            notes=f"Received on {transfer.transfer_name}",
            stock_transfer=transfer,
        )
        queue_work_log(
            received_by,
            "StockTransfer",
            f"Received {transfer.transfer_name}",
            ref_type="StockTransfer",
            ref_id=transfer.pk,
        )

    logger.info("Transfer %s received (%d assets)", transfer.pk, moved)
    return transfer


def cancel_transfer(
    transfer_id, cancelled_by: User, reason: str = ""
) -> StockTransfer:
    """Cancel a transfer that has not been dispatched. Assets are untouched."""
    with db_transaction.atomic():
        transfer = get_transfer(transfer_id)
        _claim_status(
            transfer,
            ["Pending", "Approved"],
            "Cancelled",
            cancelled_by=cancelled_by,
            cancelled_at=timezone.now(),
            cancellation_reason=reason,
        )
    logger.info("Transfer %s cancelled", transfer.pk)
    return transfer


def list_transfers(user: User, *, status=None, site_id=None):
    """Transfers visible to ``user``, newest first.

    ``site_id`` matches either end of the transfer. Non-elevated users
    only see transfers touching one of their assigned sites.
    """
    qs = (
        StockTransfer.objects.select_related(
            "source_site", "destination_site", "initiated_by"
        )
        .prefetch_related("assets")
        .order_by("-created_at", "-id")
    )
    if status:
        qs = qs.filter(status=status)
    if site_id:
        qs = qs.filter(
            Q(source_site_id=site_id) | Q(destination_site_id=site_id)
        )
    site_ids = assigned_site_ids(user)
    if site_ids is not None:
        qs = qs.filter(
            Q(source_site_id__in=site_ids)
            | Q(destination_site_id__in=site_ids)
        )
    return qs
