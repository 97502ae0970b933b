"""
tickets/escalation.py
=====================
Periodic escalation scan. Run it from cron through
`python manage.py check_escalations`.

At most one EscalationRule (the first match in priority order) is applied
to a ticket per run.
"""

import logging

from django.utils import timezone

from .models import EscalationRule, Ticket, helpdesk_setting

logger = logging.getLogger(__name__)

# Tickets loaded per query during a scan.
BATCH_SIZE = 500


class EscalationService:

    @staticmethod
    def _rules():
        return list(EscalationRule.objects.active().ordered())

    @staticmethod
    def _apply_first_match(ticket, rules, now):
        for rule in rules:
            if rule.matches(ticket, now):
                rule.execute(ticket)
                ticket.refresh_from_db()
                return rule
        return None

    @classmethod
    def check_and_escalate(cls, now=None) -> int:
        """Escalate every open ticket a rule matches. Returns how many were escalated."""
        escalated = 0
        try:
            rules = cls._rules()
            if not rules:
                return 0

            now = now or timezone.now()
            # ids are read up front; escalating writes to the table being scanned
            ids = list(
                Ticket.objects.filter(status__in=helpdesk_setting("ESCALATION_STATUSES"))
                .order_by("pk").values_list("pk", flat=True)
            )
            checked = 0
            for start in range(0, len(ids), BATCH_SIZE):
                batch = ids[start:start + BATCH_SIZE]
                tickets = Ticket.objects.in_bulk(batch)
                for pk in batch:
                    ticket = tickets.get(pk)
                    if ticket is None:
                        continue
                    checked += 1
                    rule = cls._apply_first_match(ticket, rules, now)
                    if rule is None:
                        continue
                    escalated += 1
                    logger.info(
                        "[workflow] Ticket %s escalated by rule %s (%s)",
                        ticket.ticket_number, rule.pk, rule.name,
                    )

            logger.info(
                "[workflow] Escalation check completed: %d checked, %d escalated",
                checked, escalated,
            )
        except Exception:
            logger.exception("[workflow] Failed to check escalations")
        return escalated

    @classmethod
    def check_ticket(cls, ticket, now=None):
        """Apply the first matching rule to one ticket; return it or None."""
        return cls._apply_first_match(ticket, cls._rules(), now or timezone.now())
