"""
tickets/sla.py
==============
SLA due dates and breach detection. Breaches are flagged once; the
periodic check (`python manage.py check_sla_breaches`) never re-notifies
about a ticket it has already flagged.
"""

import logging
from datetime import timedelta

from django.db.models import F, Q
from django.utils import timezone

from .models import SlaPolicy, Ticket
from .notifications import NotificationService

logger = logging.getLogger(__name__)


def policy_for_priority(priority):
    """First active policy for *priority*, or None."""
    return SlaPolicy.objects.filter(is_active=True, priority=priority).order_by("id").first()


def apply_sla_policy(ticket, policy=None, now=None, overwrite=False):
    """
    Fill the ticket's due dates from *policy* (default: its own policy, else
    the active policy for its priority). Existing due dates are kept unless
    *overwrite* is set. Does not save.
    """
    policy = policy or ticket.sla_policy or policy_for_priority(ticket.priority)
    if policy is None:
        return None

    now = now or timezone.now()
    ticket.sla_policy = policy
    if overwrite or ticket.first_response_due_at is None:
        ticket.first_response_due_at = now + timedelta(minutes=policy.response_time)
    if overwrite or ticket.resolution_due_at is None:
        ticket.resolution_due_at = now + timedelta(minutes=policy.resolution_time)
    return policy


def _flag(ticket, breach_type, flag_field, due):
    setattr(ticket, flag_field, True)
    ticket.save(update_fields=[flag_field, "updated_at"])
    ticket.record_history(
        "sla_breached", field_name=flag_field, old_value=False, new_value=True,
        description=f"{breach_type.capitalize()} SLA breached (due {due:%Y-%m-%d %H:%M})",
    )
    try:
        NotificationService.notify_sla_breached(ticket, breach_type)
    except Exception:
        logger.exception("Failed to send SLA breach notification for ticket %s", ticket.pk)
    logger.info("[workflow] Ticket %s breached its %s SLA", ticket.ticket_number, breach_type)


def flag_late_response(ticket) -> bool:
    """Flag a response breach for a first response stamped after its due time."""
    if (
        ticket.response_sla_breached
        or ticket.first_response_at is None
        or ticket.first_response_due_at is None
        or ticket.first_response_at <= ticket.first_response_due_at
    ):
        return False
    _flag(ticket, "response", "response_sla_breached", ticket.first_response_due_at)
    return True


def check_sla_breaches(now=None) -> dict:
    """Flag newly breached tickets. Returns {"response": n, "resolution": n}."""
    now = now or timezone.now()
    counts = {"response": 0, "resolution": 0}
    open_tickets = Ticket.objects.open().select_related("assigned_team", "assigned_agent")

    # unanswered and overdue, or answered after the due time
    response_late = open_tickets.filter(
        Q(first_response_at__isnull=True) | Q(first_response_at__gt=F("first_response_due_at")),
        first_response_due_at__lt=now,
        response_sla_breached=False,
    )
    for ticket in response_late:
        _flag(ticket, "response", "response_sla_breached", ticket.first_response_due_at)
        counts["response"] += 1

    resolution_late = open_tickets.filter(
        resolution_due_at__lt=now,
        resolution_sla_breached=False,
    )
    for ticket in resolution_late:
        _flag(ticket, "resolution", "resolution_sla_breached", ticket.resolution_due_at)
        counts["resolution"] += 1

    logger.info(
        "SLA check completed: %d response, %d resolution breaches",
        counts["response"], counts["resolution"],
    )
    return counts
