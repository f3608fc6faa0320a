"""Ticket creation and status transitions."""

import logging

from django.contrib.auth import get_user_model
from django.core.exceptions import ValidationError
from django.db import transaction as db_transaction
from django.utils import timezone

from assets.exceptions import ConflictError, NotFoundError

from ..models import Ticket
from .activity import add_activity
from .numbering import next_ticket_number
from .priority import refresh_priority
from .sla import apply_sla

User = get_user_model()

logger = logging.getLogger(__name__)

ACTIVITY_TYPE_FOR_STATUS = {
    "Assigned": "Assignment",
    "Escalated": "Escalation",
    "Resolved": "Resolution",
}


def get_ticket(ticket_id, *, for_update=False) -> Ticket:
    qs = Ticket.objects.select_related("asset", "site", "created_by")
    if for_update:
        qs = qs.select_for_update()
    try:
        return qs.get(pk=ticket_id)
    except (Ticket.DoesNotExist, ValueError, TypeError):
        raise NotFoundError("Ticket not found.")


def ensure_open_for_work(ticket: Ticket) -> None:
    if not ticket.is_open_for_work:
        raise ConflictError(
            f"Ticket {ticket.ticket_number} is {ticket.status.lower()}."
        )


def _check_scale(name, value):
    try:
        value = int(value)
    except (TypeError, ValueError):
        raise ValidationError(f"{name} must be a number between 1 and 5.")
    if not 1 <= value <= 5:
        raise ValidationError(f"{name} must be between 1 and 5.")
    return value


def create_ticket(
    site,
    created_by: User,
    title: str,
    *,
    asset=None,
    category: str = "Hardware",
    description: str = "",
    impact: int = 3,
    urgency: int = 3,
    priority: str | None = None,
    source: str = "Manual",
) -> Ticket:
    """Open a ticket with its daily number, priority and SLA dues.

    Passing ``priority`` pins it; otherwise it is derived from impact,
    urgency and the asset's criticality.
    """
    if not title or not title.strip():
        raise ValidationError("Title is required.")
    impact = _check_scale("Impact", impact)
    urgency = _check_scale("Urgency", urgency)

    with db_transaction.atomic():
        ticket = Ticket(
            ticket_number=next_ticket_number(),
            site=site,
            asset=asset,
            title=title.strip(),
            description=description,
            category=category,
            source=source,
            impact=impact,
            urgency=urgency,
            created_by=created_by,
            created_at=timezone.now(),
        )
        if priority:
            ticket.priority = priority
            ticket.priority_pinned = True
        refresh_priority(ticket)
        apply_sla(ticket)
        ticket.full_clean()
        ticket.save()
        add_activity(
            ticket,
            created_by,
            "StatusChange",
            f"Ticket created with priority {ticket.priority}.",
        )

    logger.info(
        "Ticket %s created (priority %s, score %d)",
        ticket.ticket_number,
        ticket.priority,
        ticket.priority_score,
    )
    return ticket


def update_impact_urgency(
    ticket: Ticket,
    actor: User,
    *,
    impact: int | None = None,
    urgency: int | None = None,
) -> Ticket:
    """Change impact/urgency and recompute priority unless it is pinned.

    Works on a freshly locked row, so a stale ``ticket`` instance cannot
    overwrite a concurrent change to the other field.
    """
    if impact is not None:
        impact = _check_scale("Impact", impact)
    if urgency is not None:
        urgency = _check_scale("Urgency", urgency)

    with db_transaction.atomic():
        locked = get_ticket(ticket.pk, for_update=True)
        if impact is not None:
            locked.impact = impact
        if urgency is not None:
            locked.urgency = urgency

        previous = locked.priority
        changed = refresh_priority(locked)
        locked.save(
            update_fields=["impact", "urgency", "priority", "priority_score"]
        )
        if changed:
            add_activity(
                locked,
                actor,
                "StatusChange",
                f"Priority changed from {previous} to {locked.priority}.",
            )
    return locked


def pin_priority(ticket: Ticket, actor: User, priority: str) -> Ticket:
    if priority not in dict(Ticket._meta.get_field("priority").choices):
        raise ValidationError(f"'{priority}' is not a valid priority.")
    with db_transaction.atomic():
        locked = get_ticket(ticket.pk, for_update=True)
        previous = locked.priority
        locked.priority = priority
        locked.priority_pinned = True
        locked.save(update_fields=["priority", "priority_pinned"])
        add_activity(
            locked,
            actor,
            "StatusChange",
            f"Priority set to {priority} (was {previous}).",
        )
    return locked


def transition_ticket(
    ticket: Ticket,
    new_status: str,
    actor: User,
    *,
    notes: str = "",
    assigned_to: User | None = None,
    root_cause: str = "",
    resolution_summary: str = "",
) -> Ticket:
    """Move a ticket along its lifecycle, stamping the matching timestamp.

    Raises ValidationError for an unknown status or missing assignee and
    ConflictError when the current status does not allow the move.
    """
    if new_status not in dict(Ticket.STATUS_CHOICES):
        raise ValidationError(f"'{new_status}' is not a valid status.")
    if new_status == "Assigned" and assigned_to is None:
        raise ValidationError("An assignee is required.")

    with db_transaction.atomic():
        locked = get_ticket(ticket.pk, for_update=True)
        previous = locked.status
        if not locked.can_transition_to(new_status):
            raise ConflictError(
                f"Cannot move ticket {locked.ticket_number} from "
                f"'{previous}' to '{new_status}'."
            )

        now = timezone.now()
        locked.status = new_status
        if new_status == "Assigned":
            locked.assigned_to = assigned_to
            locked.assigned_at = now
        elif new_status == "Acknowledged":
            locked.acknowledged_at = now
        elif new_status == "InProgress":
            locked.started_at = locked.started_at or now
        elif new_status == "Escalated":
            locked.escalation_level = min(locked.escalation_level + 1, 3)
        elif new_status == "Resolved":
            locked.resolved_at = now
            if root_cause:
                locked.root_cause = root_cause
            if resolution_summary:
                locked.resolution_summary = resolution_summary
        elif new_status == "Verified":
            locked.verified_at = now
            locked.verified_by = actor
        elif new_status == "Closed":
            locked.closed_at = now
        elif new_status == "Open":
            locked.closed_at = None
            locked.resolved_at = None
        locked.save()

        content = f"Status changed from {previous} to {new_status}."
        if new_status == "Assigned":
            content = f"Assigned to {assigned_to}."
        elif new_status == "Escalated":
            content = f"Escalated to level {locked.escalation_level}."
        if notes:
            content = f"{content} {notes}"
        add_activity(
            locked,
            actor,
            ACTIVITY_TYPE_FOR_STATUS.get(new_status, "StatusChange"),
            content,
        )

    logger.info(
        "Ticket %s: %s -> %s", locked.ticket_number, previous, new_status
    )
    return locked
