"""Requisition workflow: pulling a spare from a source site onto a ticket."""

import logging

from django.contrib.auth import get_user_model
from django.core.exceptions import PermissionDenied, ValidationError
from django.db import transaction as db_transaction
from django.db.models import Q
from django.utils import timezone

from tickets.services.activity import add_activity
from tickets.services.lifecycle import ensure_open_for_work, get_ticket
from tickets.services.numbering import next_requisition_number

from ..exceptions import ConflictError, NotFoundError
from ..models import Asset, Requisition, RequisitionTimelineEntry, Site
from .notifications import queue_work_log
from .permissions import assigned_site_ids, can_approve_requisition
from .state import claim_spare, get_asset, move_asset
from .stock import available_stock

User = get_user_model()

logger = logging.getLogger(__name__)


def get_requisition(requisition_id, *, for_update=False) -> Requisition:
    qs = Requisition.objects.select_related("ticket", "site", "source_site")
    if for_update:
        qs = qs.select_for_update()
    try:
        return qs.get(pk=requisition_id)
    except (Requisition.DoesNotExist, ValueError, TypeError):
        raise NotFoundError("Requisition not found.")


def _append_timeline(requisition, status, user, remarks=""):
    return RequisitionTimelineEntry.objects.create(
        requisition=requisition,
        status=status,
        changed_by=user,
        changed_at=timezone.now(),
        remarks=remarks[:1000],
    )


def _ensure_transition(requisition, new_status, message=""):
    if not requisition.can_transition_to(new_status):
        raise ConflictError(
            message
            or f"Requisition {requisition.requisition_number} is "
            f"{requisition.status.lower()}."
        )


def create_requisition(
    ticket_id,
    requested_by: User,
    source_site_id,
    asset_type: str,
    quantity: int = 1,
    comments: str = "",
) -> Requisition:
    """Request spares of ``asset_type`` from a source site for a ticket.

    Stock is checked here but not held; fulfilment is where the unit is
    actually claimed.
    """
    if asset_type not in dict(Asset.TYPE_CHOICES):
        raise ValidationError(f"'{asset_type}' is not a valid asset type.")
    try:
        quantity = int(quantity)
    except (TypeError, ValueError):
        raise ValidationError("Quantity must be a whole number.")
    if quantity < 1:
        raise ValidationError("Quantity must be at least 1.")

    ticket = get_ticket(ticket_id)
    ensure_open_for_work(ticket)
    try:
        source_site = Site.objects.get(pk=source_site_id, is_active=True)
    except (Site.DoesNotExist, ValueError, TypeError):
        raise NotFoundError("Source site not found.")

    available = available_stock(source_site, asset_type)
    if available < quantity:
        raise ValidationError(
            f"Insufficient stock. Only {available} available."
        )

    with db_transaction.atomic():
        requisition = Requisition.objects.create(
            requisition_number=next_requisition_number(),
            ticket=ticket,
            site=ticket.site,
            source_site=source_site,
            asset_type=asset_type,
            quantity=quantity,
            requested_by=requested_by,
            comments=comments,
        )
        _append_timeline(requisition, "Pending", requested_by, comments)
        add_activity(
            ticket,
            requested_by,
            "RequisitionCreated",
            f"Requisition {requisition.requisition_number} raised for "
            f"{quantity} x {asset_type} from {source_site.name}.",
        )
        queue_work_log(
            requested_by,
            "Requisition",
            f"Raised {requisition.requisition_number} for "
            f"{quantity} x {asset_type}",
            ref_type="Requisition",
            ref_id=requisition.pk,
        )

    logger.info(
        "Requisition %s created for ticket %s",
        requisition.requisition_number,
        ticket.ticket_number,
    )
    return requisition


def approve_requisition(
    requisition_id, approver: User, remarks: str = ""
) -> Requisition:
    """Approve a pending requisition. Inventory is not touched."""
    with db_transaction.atomic():
        requisition = get_requisition(requisition_id, for_update=True)
        if not can_approve_requisition(approver, requisition.source_site):
            raise PermissionDenied(
                "You do not have permission to approve requisitions."
            )
        if requisition.status != "Pending":
            raise ConflictError("Requisition is not pending.")

        requisition.status = "Approved"
        requisition.approved_by = approver
        requisition.approved_at = timezone.now()
        requisition.save(
            update_fields=[
                "status",
                "approved_by",
                "approved_at",
                "updated_at",
            ]
        )
        _append_timeline(requisition, "Approved", approver, remarks)
        add_activity(
            requisition.ticket,
            approver,
            "RequisitionApproved",
            f"Requisition {requisition.requisition_number} approved.",
        )

    logger.info("Requisition %s approved", requisition.requisition_number)
    return requisition


def reject_requisition(
    requisition_id, approver: User, reason: str
) -> Requisition:
    if not reason or not reason.strip():
        raise ValidationError("A rejection reason is required.")

    with db_transaction.atomic():
        requisition = get_requisition(requisition_id, for_update=True)
        if not can_approve_requisition(approver, requisition.source_site):
            raise PermissionDenied(
                "You do not have permission to reject requisitions."
            )
        _ensure_transition(requisition, "Rejected")

        requisition.status = "Rejected"
        requisition.rejection_reason = reason.strip()
        requisition.approved_by = approver
        requisition.approved_at = timezone.now()
        requisition.save()
        _append_timeline(requisition, "Rejected", approver, reason)
        add_activity(
            requisition.ticket,
            approver,
            "RequisitionRejected",
            f"Requisition {requisition.requisition_number} rejected: "
            f"{reason.strip()}",
        )

    logger.info("Requisition %s rejected", requisition.requisition_number)
    return requisition


def cancel_requisition(
    requisition_id, actor: User, reason: str = ""
) -> Requisition:
    """Withdraw a requisition that has not been fulfilled."""
    with db_transaction.atomic():
        requisition = get_requisition(requisition_id, for_update=True)
        if (
            requisition.requested_by_id != actor.pk
            and not can_approve_requisition(actor, requisition.source_site)
        ):
            raise PermissionDenied(
                "Only the requester or an approver can cancel a requisition."
            )
        _ensure_transition(requisition, "Cancelled")

        requisition.status = "Cancelled"
        requisition.save(update_fields=["status", "updated_at"])
        _append_timeline(requisition, "Cancelled", actor, reason)
        add_activity(
            requisition.ticket,
            actor,
            "Note",
            f"Requisition {requisition.requisition_number} cancelled."
            + (f" {reason}" if reason else ""),
        )
    return requisition


def fulfill_requisition(
    requisition_id, asset_id, actor: User, remarks: str = ""
) -> Requisition:
    """Put a spare into service on the requisition's ticket.

    The spare is claimed with a conditional write, so if another
    fulfilment took it first this raises ConflictError and nothing
    changes. The caller should pick another unit from current stock.
    """
    with db_transaction.atomic():
        requisition = get_requisition(requisition_id, for_update=True)
        _ensure_transition(
            requisition,
            "Fulfilled",
            f"Requisition {requisition.requisition_number} cannot be "
            f"fulfilled from status {requisition.status}.",
        )
        asset = get_asset(asset_id)
        if asset.asset_type != requisition.asset_type:
            raise ValidationError(
                f"Asset {asset.asset_code} is a {asset.asset_type}, "
                f"not a {requisition.asset_type}."
            )
        # A unit that has already left Spare is reported by the claim below
        if asset.status == "Spare" and (
            asset.site_id != requisition.source_site_id or not asset.is_active
        ):
            raise ValidationError(
                f"Asset {asset.asset_code} is not in active stock at "
                f"{requisition.source_site.name}."
            )

        ticket = get_ticket(requisition.ticket_id, for_update=True)
        asset = claim_spare(
            asset,
            "Operational",
            actor,
            to_site=requisition.site,
            updates={"stock_location": ""},
            notes=f"Fulfils {requisition.requisition_number}",
            requisition=requisition,
            ticket=ticket,
        )

        previous_asset = None
        if ticket.asset_id and ticket.asset_id != asset.pk:
            previous_asset = get_asset(ticket.asset_id)
            move_asset(
                previous_asset,
                "Damaged",
                actor,
                movement_type="Disposed",
                notes=(
                    f"Replaced by {asset.asset_code} via "
                    f"{requisition.requisition_number}"
                ),
                requisition=requisition,
                ticket=ticket,
            )
        ticket.asset = asset
        ticket.save(update_fields=["asset", "updated_at"])

        now = timezone.now()
        if requisition.status == "Pending":
            requisition.approved_by = actor
            requisition.approved_at = now
        requisition.status = "Fulfilled"
        requisition.fulfilled_asset = asset
        requisition.fulfilled_at = now
        requisition.save()
        _append_timeline(requisition, "Fulfilled", actor, remarks)

        content = (
            f"Requisition {requisition.requisition_number} fulfilled with "
            f"{asset.asset_code}."
        )
        if previous_asset:
            content += f" {previous_asset.asset_code} marked Damaged."
        add_activity(ticket, actor, "RequisitionFulfilled", content)
        queue_work_log(
            actor,
            "Requisition",
            f"Fulfilled {requisition.requisition_number} with "
            f"{asset.asset_code}",
            ref_type="Requisition",
            ref_id=requisition.pk,
        )

    logger.info(
        "Requisition %s fulfilled with asset %s",
        requisition.requisition_number,
        asset.asset_code,
    )
    return requisition


def list_requisitions(
    user: User, *, status=None, site_id=None, ticket_id=None
):
    """Requisitions visible to ``user``, newest first.

    Non-elevated users see requisitions into or out of their assigned
    sites, plus any they raised themselves.
    """
    qs = Requisition.objects.select_related(
        "ticket", "site", "source_site", "requested_by"
    ).order_by("-created_at", "-id")
    if status:
        qs = qs.filter(status=status)
    if site_id:
        qs = qs.filter(site_id=site_id)
    if ticket_id:
        qs = qs.filter(ticket_id=ticket_id)
    site_ids = assigned_site_ids(user)
    if site_ids is not None:
        qs = qs.filter(
            Q(site_id__in=site_ids)
            | Q(source_site_id__in=site_ids)
            | Q(requested_by=user)
        )
    return qs
