"""Celery tasks for the accounts app."""

import logging

from celery import shared_task

logger = logging.getLogger(__name__)


@shared_task(
    bind=True,
    max_retries=3,
    default_retry_delay=30,
    autoretry_for=(Exception,),
    retry_backoff=True,
)
def record_work_log(
    self,
    user_id: int,
    category: str,
    description: str,
    ref_type: str = "",
    ref_id: int | None = None,
    metadata: dict | None = None,
) -> int | None:
    """Append an entry to a user's daily work log."""
    from accounts.models import CustomUser, WorkLogEntry

    if not CustomUser.objects.filter(pk=user_id).exists():
        logger.warning("Work log skipped: user %s no longer exists", user_id)
        return None

    entry = WorkLogEntry.objects.create(
        user_id=user_id,
        category=category,
        description=description[:500],
        ref_type=ref_type,
        ref_id=ref_id,
        metadata=metadata or {},
    )
    logger.info("Work log entry %d recorded for user %s", entry.pk, user_id)
    return entry.pk
