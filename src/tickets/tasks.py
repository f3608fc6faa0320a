"""Celery tasks for the tickets app."""

import logging

from celery import shared_task

from django.utils import timezone

logger = logging.getLogger(__name__)


@shared_task
def flag_sla_breaches() -> dict:
    """Flag open tickets whose SLA response or restore time has passed."""
    from .models import Ticket

    now = timezone.now()
    open_tickets = Ticket.objects.exclude(
        status__in=["Resolved", "Verified", "Closed", "Cancelled"]
    )
    response = (
        open_tickets.filter(
            is_sla_response_breached=False,
            sla_response_due__lt=now,
            acknowledged_at__isnull=True,
        ).update(is_sla_response_breached=True)
    )
    restore = open_tickets.filter(
        is_sla_restore_breached=False, sla_restore_due__lt=now
    ).update(is_sla_restore_breached=True)
    if response or restore:
        logger.info(
            "Flagged %d response and %d restore SLA breaches",
            response,
            restore,
        )
    return {"response": response, "restore": restore}
