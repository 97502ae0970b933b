"""
tickets/management/commands/export_tickets.py
=============================================
Exports tickets matching the given filters to CSV, Excel or PDF.

Usage:
    python manage.py export_tickets --format xlsx --output tickets.xlsx
    python manage.py export_tickets --status open --status in_progress --priority high
    python manage.py export_tickets --format pdf --sla-breached any --output late.pdf
    python manage.py export_tickets --as EMP-0003          # only what that employee sees
"""

import sys

from django.core.management.base import BaseCommand, CommandError

from tickets.exports import export_csv, export_pdf, export_xlsx
from tickets.models import Employee
from tickets.search import search_tickets


class Command(BaseCommand):
    help = "Export tickets to CSV, XLSX or PDF."

    def add_arguments(self, parser):
        parser.add_argument("--format", choices=["csv", "xlsx", "pdf"], default="csv")
        parser.add_argument("--output", help="File to write. CSV goes to stdout when omitted.")
        parser.add_argument("--q", help="Free-text search.")
        parser.add_argument("--status", action="append", help="Repeatable.")
        parser.add_argument("--priority", action="append", help="Repeatable.")
        parser.add_argument("--team", type=int, help="Assigned team (department id).")
        parser.add_argument("--category", type=int)
        parser.add_argument("--date-from", help="YYYY-MM-DD, inclusive.")
        parser.add_argument("--date-to", help="YYYY-MM-DD, inclusive.")
        parser.add_argument("--sla-breached", choices=["response", "resolution", "any"])
        parser.add_argument("--as", dest="as_employee",
                            help="Employee id whose visibility limits the export.")
        parser.add_argument("--title", default="Help Desk Ticket Export")

    def handle(self, *args, **options):
        user = None
        if options["as_employee"]:
            user = Employee.objects.filter(employee_id=options["as_employee"]).first()
            if user is None:
                raise CommandError(f"Unknown employee {options['as_employee']}.")

        filters = {
            "q":            options["q"],
            "status":       options["status"],
            "priority":     options["priority"],
            "team":         options["team"],
            "category":     options["category"],
            "date_from":    options["date_from"],
            "date_to":      options["date_to"],
            "sla_breached": options["sla_breached"],
        }
        tickets = search_tickets({k: v for k, v in filters.items() if v}, user=user)

        fmt, output = options["format"], options["output"]
        if fmt == "csv" and not output:
            export_csv(tickets, sys.stdout)
            return

        if fmt == "csv":
            with open(output, "w", newline="", encoding="utf-8") as fh:
                count = export_csv(tickets, fh)
        else:
            if not output:
                raise CommandError(f"--output is required for {fmt} exports.")
            data = export_xlsx(tickets, options["title"]) if fmt == "xlsx" \
                else export_pdf(tickets, options["title"])
            with open(output, "wb") as fh:
                fh.write(data)
            count = tickets.count()

        self.stdout.write(self.style.SUCCESS(f"  Exported {count} ticket(s) to {output}."))
