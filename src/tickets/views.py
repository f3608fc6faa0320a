"""JSON endpoints for ticket creation and lifecycle moves."""

from django.contrib.auth import get_user_model

from assets.api import json_endpoint, ok, parse_body, require
from assets.exceptions import NotFoundError
from assets.models import Site
from assets.services.state import get_asset

from .services.lifecycle import (
    create_ticket,
    get_ticket,
    pin_priority,
    transition_ticket,
    update_impact_urgency,
)

User = get_user_model()


def ticket_to_dict(ticket) -> dict:
    return {
        "id": ticket.pk,
        "ticket_number": ticket.ticket_number,
        "site_id": ticket.site_id,
        "asset_id": ticket.asset_id,
        "title": ticket.title,
        "status": ticket.status,
        "priority": ticket.priority,
        "priority_score": ticket.priority_score,
        "impact": ticket.impact,
        "urgency": ticket.urgency,
        "escalation_level": ticket.escalation_level,
        "assigned_to": ticket.assigned_to_id,
        "sla_response_due": (
            ticket.sla_response_due.isoformat()
            if ticket.sla_response_due
            else None
        ),
        "sla_restore_due": (
            ticket.sla_restore_due.isoformat()
            if ticket.sla_restore_due
            else None
        ),
    }


@json_endpoint()
def ticket_create(request):
    data = parse_body(request)
    require(data, "site_id", "title")
    try:
        site = Site.objects.get(pk=data["site_id"], is_active=True)
    except (Site.DoesNotExist, ValueError, TypeError):
        raise NotFoundError("Site not found.")
    asset = get_asset(data["asset_id"]) if data.get("asset_id") else None
    ticket = create_ticket(
        site,
        request.user,
        data["title"],
        asset=asset,
        category=data.get("category", "Hardware"),
        description=data.get("description", ""),
        impact=data.get("impact", 3),
        urgency=data.get("urgency", 3),
        priority=data.get("priority") or None,
        source=data.get("source", "Manual"),
    )
    return ok(
        f"Ticket {ticket.ticket_number} created.",
        status=201,
        ticket=ticket_to_dict(ticket),
    )


@json_endpoint(methods=("GET",))
def ticket_detail(request, pk):
    return ok(ticket=ticket_to_dict(get_ticket(pk)))


@json_endpoint()
def ticket_transition(request, pk):
    data = parse_body(request)
    require(data, "status")
    assignee = None
    if data.get("assigned_to"):
        try:
            assignee = User.objects.get(
                pk=data["assigned_to"], is_active=True
            )
        except (User.DoesNotExist, ValueError, TypeError):
            raise NotFoundError("Assignee not found.")
    ticket = transition_ticket(
        get_ticket(pk),
        data["status"],
        request.user,
        notes=data.get("notes", ""),
        assigned_to=assignee,
        root_cause=data.get("root_cause", ""),
        resolution_summary=data.get("resolution_summary", ""),
    )
    return ok(
        f"Ticket {ticket.ticket_number} is now {ticket.status}.",
        ticket=ticket_to_dict(ticket),
    )


@json_endpoint()
def ticket_priority(request, pk):
    data = parse_body(request)
    ticket = get_ticket(pk)
    if data.get("priority"):
        ticket = pin_priority(ticket, request.user, data["priority"])
    else:
        ticket = update_impact_urgency(
            ticket,
            request.user,
            impact=data.get("impact"),
            urgency=data.get("urgency"),
        )
    return ok(
        f"Ticket {ticket.ticket_number} priority is {ticket.priority}.",
        ticket=ticket_to_dict(ticket),
    )
