"""SLA due-date computation."""

import logging
from datetime import timedelta

from ..models import SLAPolicy

logger = logging.getLogger(__name__)


def get_policy(priority: str) -> SLAPolicy | None:
    return SLAPolicy.objects.filter(priority=priority, is_active=True).first()


def apply_sla(ticket) -> bool:
    """Fill in SLA due dates from the active policy for the priority.

    Due dates that are already set are left alone. Returns True if
    anything was filled in.
    """
    if ticket.sla_response_due and ticket.sla_restore_due:
        return False

    policy = get_policy(ticket.priority)
    if policy is None:
        logger.info("No active SLA policy for %s", ticket.priority)
        return False

    ticket.sla_policy = policy
    if not ticket.sla_response_due:
        ticket.sla_response_due = ticket.created_at + timedelta(
            minutes=policy.response_time_minutes
        )
    if not ticket.sla_restore_due:
        ticket.sla_restore_due = ticket.created_at + timedelta(
            minutes=policy.restore_time_minutes
        )
    return True
