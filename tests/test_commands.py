import io

import pytest
from django.core.management import call_command
from django.core.management.base import CommandError
from openpyxl import load_workbook

from tickets.models import Department, Employee, Ticket, TicketApproval

pytestmark = pytest.mark.django_db


def run(*args):
    out = io.StringIO()
    call_command(*args, stdout=out)
    return out.getvalue()


def test_seed_is_idempotent():
    run("seed_helpdesk")
    counts = (Employee.objects.count(), Ticket.objects.count())
    output = run("seed_helpdesk")

    assert (Employee.objects.count(), Ticket.objects.count()) == counts
    assert "already present" in output
    assert Department.objects.get(code="IT-SD").manager.employee_id == "EMP-0002"


def test_seeded_tickets_go_through_the_workflow():
    run("seed_helpdesk")
    hardware = Ticket.objects.get(subject__startswith="Replacement workstation")
    assert hardware.status == "pending"
    assert hardware.tags.filter(name="hardware").exists()
    assert hardware.project.code == "HQ-MOVE"
    assert TicketApproval.objects.filter(ticket=hardware, approver__employee_id="EMP-0007").exists()

    wifi = Ticket.objects.get(subject__startswith="Laptop will not connect")
    assert (wifi.status, wifi.assigned_team.code) == ("assigned", "IT-SD")


def test_seed_reset_rebuilds():
    run("seed_helpdesk")
    output = run("seed_helpdesk", "--reset")
    assert "Cleared" in output
    assert Ticket.objects.count() == 4


def test_periodic_commands_report_counts(make_ticket):
    assert "Escalated: 0" in run("check_escalations")
    assert "0 response, 0 resolution" in run("check_sla_breaches")


def test_export_and_import_round_through_files(tmp_path, make_ticket, requester):
    make_ticket(subject="Projector bulb")
    xlsx = tmp_path / "tickets.xlsx"
    run("export_tickets", "--format", "xlsx", "--output", str(xlsx))
    assert load_workbook(xlsx)["Tickets"]["C3"].value == "Projector bulb"

    with pytest.raises(CommandError):
        run("export_tickets", "--format", "pdf")

    source = tmp_path / "import.csv"
    source.write_text(
        "subject,requester_email,priority\n"
        f"Desk phone dead,{requester.email},low\n"
        "Orphan,ghost@example.com,low\n",
        encoding="utf-8",
    )
    output = run("import_tickets", str(source))
    assert "Imported 1 ticket(s)" in output
    assert "Line 3" in output
    assert Ticket.objects.filter(subject="Desk phone dead").exists()


def test_import_with_unknown_actor_fails(tmp_path):
    source = tmp_path / "import.csv"
    source.write_text("subject,requester_email\n", encoding="utf-8")
    with pytest.raises(CommandError):
        run("import_tickets", str(source), "--actor", "EMP-9999")
