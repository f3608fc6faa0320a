"""Daily sequential numbers for tickets, RMAs and requisitions.

Numbers look like ``TKT-20260412-0007``. Each prefix has one counter row
per calendar day; allocation locks that row and increments it in the
database, so concurrent callers on the same day never see the same value.
"""

import logging
from datetime import date

from django.conf import settings
from django.db import IntegrityError
from django.db import transaction as db_transaction
from django.db.models import F
from django.utils import timezone

from ..models import DailySequence

logger = logging.getLogger(__name__)


def next_value(prefix: str, day: date | None = None) -> int:
    """Increment and return the counter for ``prefix`` on ``day``.

    The increment commits with the caller's transaction; if that
    transaction rolls back the value is handed out again.
    """
    day = day or timezone.localdate()
    with db_transaction.atomic():
        updated = DailySequence.objects.filter(prefix=prefix, day=day).update(
            last_value=F("last_value") + 1
        )
        if not updated:
            try:
                # Savepoint so a lost creation race leaves the outer
                # transaction usable.
                with db_transaction.atomic():
                    DailySequence.objects.create(
                        prefix=prefix, day=day, last_value=1
                    )
                logger.debug("Sequence %s started for %s", prefix, day)
                return 1
            except IntegrityError:
                logger.debug("Sequence %s creation race, retrying", prefix)
                DailySequence.objects.filter(prefix=prefix, day=day).update(
                    last_value=F("last_value") + 1
                )
        # The UPDATE holds the row lock until commit, so this read sees
        # our own increment.
        value = (
            DailySequence.objects.filter(prefix=prefix, day=day)
            .values_list("last_value", flat=True)
            .get()
        )
    logger.debug("Sequence %s allocated %d", prefix, value)
    return value


def format_number(prefix: str, day: date, value: int) -> str:
    return f"{prefix}-{day:%Y%m%d}-{value:04d}"


def allocate_number(prefix: str, day: date | None = None) -> str:
    day = day or timezone.localdate()
    return format_number(prefix, day, next_value(prefix, day))


def next_ticket_number(day: date | None = None) -> str:
    return allocate_number(
        getattr(settings, "TICKET_NUMBER_PREFIX", "TKT"), day
    )


def next_rma_number(day: date | None = None) -> str:
    return allocate_number(getattr(settings, "RMA_NUMBER_PREFIX", "RMA"), day)


def next_requisition_number(day: date | None = None) -> str:
    return allocate_number(
        getattr(settings, "REQUISITION_NUMBER_PREFIX", "REQ"), day
    )
