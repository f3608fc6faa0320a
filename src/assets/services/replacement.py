"""Direct replacement of a defective asset with a site spare."""

import logging

from django.contrib.auth import get_user_model
from django.core.exceptions import ValidationError
from django.db import transaction as db_transaction
from django.utils import timezone

from tickets.services.activity import add_activity
from tickets.services.lifecycle import ensure_open_for_work, get_ticket

from ..models import Asset, RMARequest, StockReplacement
from .notifications import queue_work_log
from .state import claim_spare, get_asset, move_asset

User = get_user_model()

logger = logging.getLogger(__name__)


def perform_stock_replacement(
    ticket_id,
    asset_id,
    spare_asset_id,
    actor: User,
    *,
    new_ip: str = "",
    remarks: str = "",
) -> StockReplacement:
    """Swap the hardware behind ``asset_id`` for a spare.

    The defective asset keeps its code and takes the spare's serial, MAC,
    make and model (and ``new_ip`` when given), becoming Operational. The
    spare is consumed: Decommissioned and inactive, never deleted.
    """
    if str(asset_id) == str(spare_asset_id):
        raise ValidationError("An asset cannot replace itself.")

    with db_transaction.atomic():
        ticket = get_ticket(ticket_id, for_update=True)
        ensure_open_for_work(ticket)
        asset = get_asset(asset_id)
        spare = get_asset(spare_asset_id)

        old_details = asset.snapshot()
        spare = claim_spare(
            spare,
            "Decommissioned",
            actor,
            updates={
                "is_active": False,
                "remark": f"Consumed as replacement for {asset.asset_code}",
            },
            conflict_message="Selected item is not a spare.",
            notes=f"Consumed as replacement for {asset.asset_code}",
            ticket=ticket,
        )

        updates = {
            "serial_number": spare.serial_number,
            "mac_address": spare.mac_address,
            "make": spare.make,
            "model": spare.model,
        }
        if new_ip and new_ip.strip():
            updates["ip_address"] = new_ip.strip()
        asset = move_asset(
            asset,
            "Operational",
            actor,
            updates=updates,
            notes=f"Hardware replaced with spare {spare.asset_code}",
            ticket=ticket,
        )

        replacement = StockReplacement.objects.create(
            ticket=ticket,
            asset=asset,
            spare_asset=spare,
            old_details=old_details,
            new_details=asset.snapshot(),
            replaced_by=actor,
            replaced_at=timezone.now(),
            remarks=remarks[:500],
        )
        add_activity(
            ticket,
            actor,
            "Resolution",
            f"{asset.asset_code} replaced from stock with spare "
            f"{spare.asset_code} (serial {old_details['serial_number'] or '-'}"
            f" -> {asset.serial_number or '-'})."
            + (f" {remarks}" if remarks else ""),
        )
        queue_work_log(
            actor,
            "StockReplacement",
            f"Replaced {asset.asset_code} with spare {spare.asset_code}",
            ref_type="StockReplacement",
            ref_id=replacement.pk,
        )

    logger.info(
        "Asset %s replaced with spare %s on ticket %s",
        asset.asset_code,
        spare.asset_code,
        ticket.ticket_number,
    )
    return replacement


def replacement_candidates(asset: Asset):
    """Spares of the same type at the asset's site."""
    return Asset.objects.filter(
        site=asset.site,
        asset_type=asset.asset_type,
        status="Spare",
        is_active=True,
    ).exclude(pk=asset.pk)


def asset_replacement_history(asset: Asset) -> list[dict]:
    """Stock swaps and installed RMAs for an asset, newest first.

    Both kinds of replacement are flattened to the same shape so a
    caller can show one timeline of hardware changes.
    """
    history = [
        {
            "type": "Stock",
            "id": r.pk,
            "date": r.replaced_at,
            "ticket_number": r.ticket.ticket_number,
            "old_details": r.old_details,
            "new_details": r.new_details,
            "performed_by": (
                r.replaced_by.get_display_name() if r.replaced_by else ""
            ),
            "remarks": r.remarks or "Replaced from site stock",
        }
        for r in StockReplacement.objects.filter(asset=asset).select_related(
            "ticket", "replaced_by"
        )
    ]
    installed = RMARequest.objects.filter(
        original_asset=asset, status="Installed"
    ).select_related("ticket", "installed_by")
    history.extend(
        {
            "type": "RMA",
            "id": rma.pk,
            "date": rma.installed_at or rma.updated_at,
            "ticket_number": rma.ticket.ticket_number,
            "old_details": rma.original_snapshot,
            "new_details": rma.replacement_details,
            "performed_by": (
                rma.installed_by.get_display_name()
                if rma.installed_by
                else ""
            ),
            "remarks": rma.request_reason,
        }
        for rma in installed
    )
    history.sort(key=lambda item: item["date"], reverse=True)
    return history
