"""
tickets/automation.py
=====================
Runs event-driven AutomationRules against a ticket.

Every matching rule runs, in priority order. The ticket is reloaded after
each rule so later rules see what earlier ones changed.
"""

import logging

from .models import AutomationRule

logger = logging.getLogger(__name__)


class AutomationService:

    @staticmethod
    def execute_rules(ticket, trigger_event="ticket_created") -> list:
        """Return the rules that executed. Errors are logged, never raised."""
        executed = []
        try:
            rules = AutomationRule.objects.active().for_trigger(trigger_event).ordered()
            for rule in rules:
                if not rule.matches(ticket):
                    continue
                rule.execute(ticket)
                ticket.refresh_from_db()
                executed.append(rule)
                logger.info(
                    "[workflow] Automation rule %s (%s) executed on ticket %s for %s",
                    rule.pk, rule.name, ticket.pk, trigger_event,
                )
        except Exception:
            logger.exception(
                "[workflow] Failed to execute automation rules for ticket %s (%s)",
                ticket.pk, trigger_event,
            )
        return executed

    @classmethod
    def on_ticket_created(cls, ticket):
        return cls.execute_rules(ticket, "ticket_created")

    @classmethod
    def on_ticket_updated(cls, ticket):
        return cls.execute_rules(ticket, "ticket_updated")

    @classmethod
    def on_ticket_status_changed(cls, ticket):
        return cls.execute_rules(ticket, "ticket_status_changed")
