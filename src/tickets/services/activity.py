"""Ticket activity stream."""

from ..models import Ticket, TicketActivity


def add_activity(
    ticket: Ticket, user, activity_type: str, content: str
) -> TicketActivity:
    return TicketActivity.objects.create(
        ticket=ticket,
        user=user,
        activity_type=activity_type,
        content=content,
    )
