"""
tickets/management/commands/check_sla_breaches.py
=================================================
Flags open tickets whose response or resolution due time has passed.
Skipped when the "sla_check_enabled" setting is false.

Usage:
    python manage.py check_sla_breaches
    python manage.py check_sla_breaches --force   # ignore the setting
"""

from django.core.management.base import BaseCommand

from tickets.models import Setting
from tickets.sla import check_sla_breaches


class Command(BaseCommand):
    help = "Flag tickets that have breached their SLA and notify the people responsible."

    def add_arguments(self, parser):
        parser.add_argument(
            "--force",
            action="store_true",
            help="Run even when the sla_check_enabled setting is off.",
        )

    def handle(self, *args, **options):
        if not options["force"] and Setting.get_value("sla_check_enabled", True) is False:
            self.stdout.write(self.style.WARNING("SLA check disabled in settings; nothing done."))
            return

        counts = check_sla_breaches()
        self.stdout.write(self.style.SUCCESS(
            f"  Breaches:  {counts['response']} response, {counts['resolution']} resolution."
        ))
