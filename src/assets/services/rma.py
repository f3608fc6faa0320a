"""RMA workflow: replacing a defective asset through the vendor.

Status moves are serialised per RMA by locking its row for the whole
read-modify-write, so two installers cannot both complete the same RMA.
"""

import logging

from django.conf import settings
from django.contrib.auth import get_user_model
from django.core.exceptions import ValidationError
from django.db import IntegrityError
from django.db import transaction as db_transaction
from django.utils import timezone

from tickets.services.activity import add_activity
from tickets.services.lifecycle import ensure_open_for_work, get_ticket
from tickets.services.numbering import next_rma_number

from ..exceptions import ConflictError, NotFoundError
from ..models import RMARequest, RMATimelineEntry
from .notifications import notify_rma_created, queue_work_log
from .permissions import can_direct_generate_rma
from .state import claim_spare, get_asset, move_asset

User = get_user_model()

logger = logging.getLogger(__name__)

REQUIRED_REPLACEMENT_FIELDS = (
    "serial_number",
    "ip_address",
    "mac_address",
    "model",
)


def get_rma(rma_id, *, for_update=False) -> RMARequest:
    qs = RMARequest.objects.select_related(
        "ticket", "site", "original_asset"
    )
    if for_update:
        qs = qs.select_for_update()
    try:
        return qs.get(pk=rma_id)
    except (RMARequest.DoesNotExist, ValueError, TypeError):
        raise NotFoundError("RMA request not found.")


def _append_timeline(rma, status, user, remarks):
    return RMATimelineEntry.objects.create(
        rma=rma,
        status=status,
        changed_by=user,
        changed_at=timezone.now(),
        remarks=remarks[:1000],
    )


def _clean_replacement_details(details) -> dict:
    details = {
        k: str(v).strip() for k, v in (details or {}).items() if v is not None
    }
    missing = [f for f in REQUIRED_REPLACEMENT_FIELDS if not details.get(f)]
    if missing:
        raise ValidationError(
            "Replacement details required for installation: "
            f"missing {', '.join(missing)}."
        )
    allowed = set(REQUIRED_REPLACEMENT_FIELDS) | {"make"}
    return {k: v for k, v in details.items() if k in allowed}


def _default_vendor_details(vendor_details):
    data = dict(vendor_details or {})
    if data:
        data.setdefault(
            "currency", getattr(settings, "DEFAULT_CURRENCY", "INR")
        )
    return data


def create_rma(
    ticket_id,
    requested_by: User,
    request_reason: str,
    *,
    shipping_details: dict | None = None,
    vendor_details: dict | None = None,
    reserved_asset_id=None,
) -> RMARequest:
    """Raise an RMA for the asset on a ticket.

    Actors holding the direct-generate right get an RMA that is already
    Approved with themselves as approver. When ``reserved_asset_id`` is
    given that Spare unit is held for the RMA until it is installed or
    rejected.
    """
    request_reason = (request_reason or "").strip()
    if not request_reason:
        raise ValidationError("Request reason is required.")
    if len(request_reason) > 1000:
        raise ValidationError(
            "Request reason must be at most 1000 characters."
        )

    with db_transaction.atomic():
        ticket = get_ticket(ticket_id, for_update=True)
        ensure_open_for_work(ticket)

        if (
            RMARequest.objects.filter(ticket=ticket)
            .exclude(status__in=RMARequest.TERMINAL_STATUSES)
            .exists()
        ):
            raise ConflictError(
                "Active RMA request already exists for this ticket."
            )

        if not ticket.asset_id:
            raise ValidationError("Ticket has no associated asset.")
        asset = ticket.asset

        site = ticket.site if ticket.site_id else None
        if site is None and asset.site_id:
            site = asset.site
        if site is None:
            raise ValidationError(
                "Unable to determine site for RMA. Ticket and asset "
                "have no site."
            )

        direct = can_direct_generate_rma(requested_by, site)
        now = timezone.now()
        rma = RMARequest(
            rma_number=next_rma_number(),
            ticket=ticket,
            site=site,
            original_asset=asset,
            original_snapshot=asset.snapshot(),
            request_reason=request_reason,
            status="Approved" if direct else "Requested",
            requested_by=requested_by,
            shipping_details=shipping_details or {},
            vendor_details=_default_vendor_details(vendor_details),
        )
        if direct:
            rma.approved_by = requested_by
            rma.approved_at = now
        try:
            with db_transaction.atomic():
                rma.save()
        except IntegrityError:
            raise ConflictError(
                "Active RMA request already exists for this ticket."
            )

        _append_timeline(
            rma,
            rma.status,
            requested_by,
            "Directly created and approved" if direct else request_reason,
        )

        if reserved_asset_id:
            spare = get_asset(reserved_asset_id)
            if spare.asset_type != asset.asset_type:
                raise ValidationError(
                    f"Reserved asset must be a {asset.asset_type}."
                )
            if spare.status == "Spare" and (
                spare.site_id != site.pk or not spare.is_active
            ):
                raise ValidationError(
                    f"Reserved asset must be in active stock at {site.name}."
                )
            claim_spare(
                spare,
                "Reserved",
                requested_by,
                movement_type="Reserved",
                updates={"reserved_by_rma": rma},
                notes=f"Held for {rma.rma_number}",
                rma=rma,
                ticket=ticket,
            )
            rma.reserved_asset = spare
            rma.save(update_fields=["reserved_asset"])

        verb = "created and approved" if direct else "requested"
        add_activity(
            ticket,
            requested_by,
            "RMA",
            f"RMA {rma.rma_number} {verb} for {asset.asset_code}. "
            f"Reason: {request_reason}",
        )
        notify_rma_created(rma)
        queue_work_log(
            requested_by,
            "RMA",
            f"Raised {rma.rma_number} on ticket {ticket.ticket_number}",
            ref_type="RMARequest",
            ref_id=rma.pk,
        )

    logger.info(
        "RMA %s created for ticket %s (%s)",
        rma.rma_number,
        ticket.ticket_number,
        rma.status,
    )
    return rma


def _install(rma, details, actor, now):
    rma.replacement_details = details
    rma.installed_by = actor
    rma.installed_at = now

    original = get_asset(rma.original_asset_id)
    updates = {f: details[f] for f in details}
    move_asset(
        original,
        "Operational",
        actor,
        movement_type="RMATransfer",
        updates=updates,
        notes=f"Replacement hardware installed via {rma.rma_number}",
        rma=rma,
        ticket=rma.ticket,
    )

    if rma.reserved_asset_id:
        spare = get_asset(rma.reserved_asset_id)
        if spare.status == "Reserved" and spare.reserved_by_rma_id == rma.pk:
            move_asset(
                spare,
                "Decommissioned",
                actor,
                expected_status="Reserved",
                movement_type="Disposed",
                updates={
                    "is_active": False,
                    "reserved_by_rma": None,
                    "remark": f"Consumed by {rma.rma_number}",
                },
                rma=rma,
                ticket=rma.ticket,
            )


def _release_reservation(rma, actor):
    if not rma.reserved_asset_id:
        return
    spare = get_asset(rma.reserved_asset_id)
    if spare.status != "Reserved" or spare.reserved_by_rma_id != rma.pk:
        return
    move_asset(
        spare,
        "Spare",
        actor,
        expected_status="Reserved",
        movement_type="Released",
        updates={"reserved_by_rma": None},
        notes=f"Released by rejection of {rma.rma_number}",
        rma=rma,
        ticket=rma.ticket,
    )


def update_rma_status(
    rma_id,
    new_status: str,
    actor: User,
    *,
    remarks: str = "",
    replacement_details: dict | None = None,
    shipping_details: dict | None = None,
    vendor_details: dict | None = None,
) -> RMARequest:
    """Move an RMA one step along its workflow.

    Installation needs the replacement's serial, IP, MAC and model; the
    original asset takes those details and becomes Operational while its
    code stays the same. The ticket status is left for a person to move.
    """
    if new_status not in dict(RMARequest.STATUS_CHOICES):
        raise ValidationError(f"'{new_status}' is not a valid RMA status.")
    details = None
    if new_status == "Installed":
        details = _clean_replacement_details(replacement_details)

    with db_transaction.atomic():
        rma = get_rma(rma_id, for_update=True)
        previous = rma.status
        if not rma.can_transition_to(new_status):
            raise ConflictError(
                f"Cannot move RMA {rma.rma_number} from '{previous}' "
                f"to '{new_status}'."
            )

        now = timezone.now()
        rma.status = new_status
        if shipping_details:
            rma.shipping_details = {**rma.shipping_details, **shipping_details}
        if vendor_details:
            rma.vendor_details = _default_vendor_details(
                {**rma.vendor_details, **vendor_details}
            )

        if new_status == "Approved":
            rma.approved_by = actor
            rma.approved_at = now
        elif new_status == "Installed":
            _install(rma, details, actor, now)
        elif new_status == "Rejected":
            _release_reservation(rma, actor)
        rma.save()

        _append_timeline(
            rma,
            new_status,
            actor,
            remarks or f"Status changed from {previous} to {new_status}",
        )
        note = f"RMA {rma.rma_number} status updated: {new_status}."
        if remarks:
            note = f"{note} {remarks}"
        add_activity(rma.ticket, actor, "RMA", note)
        queue_work_log(
            actor,
            "RMA",
            f"{rma.rma_number}: {previous} -> {new_status}",
            ref_type="RMARequest",
            ref_id=rma.pk,
        )

    logger.info("RMA %s: %s -> %s", rma.rma_number, previous, new_status)
    return rma


def approve_rma(rma_id, actor: User, remarks: str = "") -> RMARequest:
    return update_rma_status(rma_id, "Approved", actor, remarks=remarks)


def reject_rma(rma_id, actor: User, remarks: str = "") -> RMARequest:
    return update_rma_status(rma_id, "Rejected", actor, remarks=remarks)


def install_rma(
    rma_id, actor: User, replacement_details: dict, remarks: str = ""
) -> RMARequest:
    return update_rma_status(
        rma_id,
        "Installed",
        actor,
        remarks=remarks,
        replacement_details=replacement_details,
    )


def get_latest_rma_for_ticket(ticket_id) -> RMARequest:
    """The most recent RMA raised on a ticket, whatever its status."""
    ticket = get_ticket(ticket_id)
    rma = (
        RMARequest.objects.filter(ticket=ticket)
        .select_related("ticket", "site", "original_asset")
        .order_by("-created_at", "-id")
        .first()
    )
    if rma is None:
        raise NotFoundError("No RMA found for this ticket.")
    return rma


def rma_history_for_asset(asset_id):
    """Every RMA raised against an asset, newest first."""
    asset = get_asset(asset_id)
    return (
        RMARequest.objects.filter(original_asset=asset)
        .select_related("ticket", "requested_by")
        .order_by("-created_at", "-id")
    )
