"""Post-commit side effects: RMA notifications and work-log entries.

Both are queued with ``transaction.on_commit`` so nothing is sent for a
rolled-back operation, and a failure to queue is logged rather than
raised, leaving the workflow result untouched.
"""

import logging
from functools import partial

from django.conf import settings
from django.contrib.auth import get_user_model
from django.db import transaction as db_transaction

User = get_user_model()

logger = logging.getLogger(__name__)


def rma_recipients(rma) -> list[str]:
    """Active users in the notify roles plus the ticket creator."""
    roles = getattr(settings, "RMA_NOTIFY_ROLES", ["Admin", "Supervisor"])
    emails = list(
        User.objects.filter(is_active=True, role__in=roles)
        .exclude(email="")
        .order_by("pk")
        .values_list("email", flat=True)
    )
    creator = rma.ticket.created_by
    if creator and creator.is_active and creator.email:
        emails.append(creator.email)
    return list(dict.fromkeys(emails))


def build_rma_notification(rma) -> dict:
    """Payload describing a newly raised RMA."""
    snapshot = rma.original_snapshot or {}
    return {
        "recipients": rma_recipients(rma),
        "rma_id": rma.pk,
        "rma_number": rma.rma_number,
        "status": rma.status,
        "asset_code": snapshot.get("asset_code", ""),
        "asset_type": snapshot.get("asset_type", ""),
        "serial_number": snapshot.get("serial_number", ""),
        "reason": rma.request_reason,
        "ticket_number": rma.ticket.ticket_number,
        "site_name": rma.site.name,
        "requested_by": (
            rma.requested_by.get_display_name() if rma.requested_by else ""
        ),
    }


def _dispatch_rma_notification(payload: dict) -> None:
    from ..tasks import send_rma_notification

    try:
        send_rma_notification.delay(payload)
    except Exception:
        logger.exception(
            "Failed to queue notification for %s", payload.get("rma_number")
        )


def notify_rma_created(rma) -> dict:
    """Build the notification now and send it once the RMA commits."""
    payload = build_rma_notification(rma)
    if not payload["recipients"]:
        logger.info("No recipients for %s notification", rma.rma_number)
        return payload
    db_transaction.on_commit(partial(_dispatch_rma_notification, payload))
    return payload


def _dispatch_work_log(**kwargs) -> None:
    from accounts.tasks import record_work_log

    try:
        record_work_log.delay(**kwargs)
    except Exception:
        logger.exception(
            "Failed to queue work log for user %s", kwargs.get("user_id")
        )


def queue_work_log(
    user: User | None,
    category: str,
    description: str,
    *,
    ref_type: str = "",
    ref_id: int | None = None,
    metadata: dict | None = None,
) -> None:
    if user is None or user.pk is None:
        return
    db_transaction.on_commit(
        partial(
            _dispatch_work_log,
            user_id=user.pk,
            category=category,
            description=description,
            ref_type=ref_type,
            ref_id=ref_id,
            metadata=metadata or {},
        )
    )
