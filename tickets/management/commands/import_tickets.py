"""
tickets/management/commands/import_tickets.py
=============================================
Creates tickets from a CSV file. Each row goes through the normal creation
workflow (SLA, automation rules, approvals, notifications).

Columns: subject, description, requester_email, category, priority,
source, team, estimated_cost, tags (names separated by ";").

Usage:
    python manage.py import_tickets tickets.csv
    python manage.py import_tickets tickets.csv --dry-run
    python manage.py import_tickets tickets.csv --actor EMP-0002
"""

from django.core.exceptions import PermissionDenied
from django.core.management.base import BaseCommand, CommandError

from tickets.exports import import_csv
from tickets.models import Employee


class Command(BaseCommand):
    help = "Import tickets from a CSV file."

    def add_arguments(self, parser):
        parser.add_argument("path", help="CSV file to read.")
        parser.add_argument(
            "--dry-run",
            action="store_true",
            help="Validate every row without creating tickets.",
        )
        parser.add_argument("--actor", help="Employee id recorded as the creator.")

    def handle(self, *args, **options):
        actor = None
        if options["actor"]:
            actor = Employee.objects.filter(employee_id=options["actor"]).first()
            if actor is None:
                raise CommandError(f"Unknown employee {options['actor']}.")

        try:
            with open(options["path"], newline="", encoding="utf-8-sig") as fh:
                result = import_csv(fh, actor=actor, dry_run=options["dry_run"])
        except OSError as exc:
            raise CommandError(f"Cannot read {options['path']}: {exc}") from exc
        except PermissionDenied as exc:
            raise CommandError(f"Import aborted: {exc}") from exc

        if options["dry_run"]:
            self.stdout.write(self.style.WARNING("Dry run: no tickets created."))
        else:
            for ticket in result.created:
                self.stdout.write(f"  {ticket.ticket_number}  {ticket.status:<10} {ticket.subject}")
            self.stdout.write(self.style.SUCCESS(f"  Imported {len(result.created)} ticket(s)."))

        if not result.ok:
            self.stdout.write(self.style.ERROR(f"  {len(result.errors)} row(s) rejected:"))
            self.stdout.write(result.error_report())
