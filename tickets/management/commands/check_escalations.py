"""
tickets/management/commands/check_escalations.py
================================================
Applies escalation rules to every open ticket. Meant to run from cron.

Usage:
    python manage.py check_escalations
"""

from django.core.management.base import BaseCommand

from tickets.escalation import EscalationService


class Command(BaseCommand):
    help = "Apply active escalation rules to open tickets."

    def handle(self, *args, **options):
        escalated = EscalationService.check_and_escalate()
        self.stdout.write(self.style.SUCCESS(f"  Escalated: {escalated} ticket(s)."))
