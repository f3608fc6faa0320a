"""Ticket priority scoring."""

from django.conf import settings

# Lowest score for each tier, checked in order
PRIORITY_THRESHOLDS = [
    (50, "P1"),
    (25, "P2"),
    (10, "P3"),
]


def compute_priority_score(impact: int, urgency: int, criticality: int) -> int:
    return int(impact) * int(urgency) * int(criticality)


def priority_for_score(score: int) -> str:
    for threshold, priority in PRIORITY_THRESHOLDS:
        if score >= threshold:
            return priority
    return "P4"


def derive_priority(ticket) -> tuple[int, str]:
    """Return ``(score, priority)`` for a ticket's impact and urgency.

    A ticket without an asset is weighted with the default criticality.
    """
    criticality = (
        ticket.asset.criticality
        if ticket.asset_id
        else getattr(settings, "DEFAULT_ASSET_CRITICALITY", 2)
    )
    score = compute_priority_score(ticket.impact, ticket.urgency, criticality)
    return score, priority_for_score(score)


def refresh_priority(ticket) -> bool:
    """Recompute the score and, unless pinned, the priority.

    Returns True if the priority tier changed.
    """
    score, priority = derive_priority(ticket)
    ticket.priority_score = score
    if ticket.priority_pinned or ticket.priority == priority:
        return False
    ticket.priority = priority
    return True
