"""Celery tasks for the assets app."""

import logging

from celery import shared_task

from django.conf import settings
from django.core.mail import EmailMultiAlternatives
from django.utils.html import escape

logger = logging.getLogger(__name__)


def _render_rma_email(payload: dict) -> tuple[str, str, str]:
    subject = (
        f"[{settings.SITE_NAME}] RMA {payload['rma_number']} raised for "
        f"{payload['asset_code']}"
    )
    lines = [
        f"RMA number: {payload['rma_number']}",
        f"Status: {payload['status']}",
        f"Ticket: {payload['ticket_number']}",
        f"Site: {payload['site_name']}",
        f"Asset: {payload['asset_code']} ({payload['asset_type']})",
        f"Serial: {payload['serial_number'] or '-'}",
        f"Requested by: {payload['requested_by'] or '-'}",
        "",
        f"Reason: {payload['reason']}",
    ]
    text_body = "\n".join(lines)
    html_body = "<br>".join(escape(line) for line in lines)
    return subject, text_body, html_body


@shared_task(
    bind=True,
    max_retries=3,
    default_retry_delay=60,
    autoretry_for=(Exception,),
    retry_backoff=True,
)
def send_rma_notification(self, payload: dict) -> None:
    """Email the RMA-created notification to its recipients."""
    subject, text_body, html_body = _render_rma_email(payload)
    msg = EmailMultiAlternatives(
        subject=subject,
        body=text_body,
        from_email=settings.DEFAULT_FROM_EMAIL,
        to=payload["recipients"],
    )
    msg.attach_alternative(html_body, "text/html")
    msg.send()
    logger.info(
        "RMA notification sent: %s to %d recipient(s)",
        payload["rma_number"],
        len(payload["recipients"]),
    )
