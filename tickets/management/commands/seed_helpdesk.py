"""
tickets/management/commands/seed_helpdesk.py
============================================
Populates the database with departments, staff in every workflow role,
categories, SLA policies, sample rules and a handful of tickets that go
through the real creation workflow.

Usage:
    python manage.py seed_helpdesk          # create if not exists
    python manage.py seed_helpdesk --reset  # wipe and recreate
"""

from decimal import Decimal

from django.core.management.base import BaseCommand
from django.db import transaction

from tickets.lifecycle import create_ticket
from tickets.models import (
    AutomationRule,
    Department,
    Employee,
    EscalationRule,
    Notification,
    Project,
    Setting,
    SlaPolicy,
    Tag,
    Ticket,
    TicketCategory,
)
from tickets.permissions import Role


DEPARTMENTS = [
    # (code, name, is_support_team)
    ("IT-SD", "IT Service Desk",    True),
    ("FIN",   "Finance",            True),
    ("HR",    "Human Resources",    True),
    ("FAC",   "Facilities",         True),
    ("OPS",   "Operations",         False),
]

EMPLOYEES = [
    # (employee_id, first, last, email, department code, role)
    ("EMP-0001", "Grace",   "Okafor",   "g.okafor@example.com",   "IT-SD", Role.SUPER_ADMIN),
    ("EMP-0002", "Samuel",  "Reyes",    "s.reyes@example.com",    "IT-SD", Role.IT_MANAGER),
    ("EMP-0003", "Priya",   "Nair",     "p.nair@example.com",     "IT-SD", Role.SENIOR_AGENT),
    ("EMP-0004", "Tomás",   "Silva",    "t.silva@example.com",    "IT-SD", Role.AGENT),
    ("EMP-0005", "Hannah",  "Berg",     "h.berg@example.com",     "FIN",   Role.HEAD_OF_DEPARTMENT),
    ("EMP-0006", "Omar",    "Haddad",   "o.haddad@example.com",   "FIN",   Role.AGENT),
    ("EMP-0007", "Leila",   "Karimi",   "l.karimi@example.com",   "OPS",   Role.LINE_MANAGER),
    ("EMP-0008", "Daniel",  "Mensah",   "d.mensah@example.com",   "OPS",   Role.REQUESTER),
    ("EMP-0009", "Yuki",    "Tanaka",   "y.tanaka@example.com",   "OPS",   Role.REQUESTER),
    ("EMP-0010", "Marta",   "Kowalska", "m.kowalska@example.com", "HR",    Role.HR_MANAGER),
    ("EMP-0011", "Ivan",    "Petrov",   "i.petrov@example.com",   "FAC",   Role.DIRECTOR),
    ("EMP-0012", "Chloe",   "Martin",   "c.martin@example.com",   "OPS",   Role.CONTRACTOR),
]

MANAGERS = {"IT-SD": "EMP-0002", "FIN": "EMP-0005", "OPS": "EMP-0007", "HR": "EMP-0010"}

CATEGORIES = [
    # (slug, name, team code, requires_approval, requires_hod, threshold, parent slug)
    ("it",          "IT Support",         "IT-SD", False, False, None,              None),
    ("it-access",   "Access Requests",    "IT-SD", True,  False, None,              "it"),
    ("it-hardware", "Hardware Purchase",  "IT-SD", True,  True,  Decimal("1000"),   "it"),
    ("finance",     "Finance",            "FIN",   True,  True,  None,              None),
    ("hr",          "HR Enquiries",       "HR",    False, False, None,              None),
    ("facilities",  "Facilities",         "FAC",   False, False, Decimal("5000"),   None),
]

SLA_POLICIES = [
    # (name, priority, response minutes, resolution minutes)
    ("Critical",  "critical",  15,   240),
    ("High",      "high",      60,   480),
    ("Standard",  "medium",    240,  1440),
    ("Low",       "low",       480,  4320),
]

TAGS = [("vip", "#b91c1c"), ("outage", "#dc2626"), ("hardware", "#2563eb"), ("access", "#059669")]

PROJECTS = [
    # (code, name, client)
    ("HQ-MOVE",  "Head office relocation", ""),
    ("ERP-2025", "ERP roll-out",           "Finance"),
]

SETTINGS = [
    # (key, value, type, group, description)
    ("ticket_number_prefix", "TKT",   "string",  "tickets", "Prefix for new ticket numbers"),
    ("default_priority",     "medium", "string", "tickets", "Priority used when none is given"),
    ("sla_check_enabled",    True,    "boolean", "sla",     "Run the periodic SLA breach check"),
]

SAMPLE_TICKETS = [
    {
        "emp_id": "EMP-0008", "category": "it",
        "subject": "Laptop will not connect to office Wi-Fi",
        "description": "Since this morning the laptop drops the connection every few minutes.",
        "priority": "medium", "source": "web",
    },
    {
        "emp_id": "EMP-0009", "category": "it-access",
        "subject": "Access to the finance reporting share",
        "description": "Need read access to the monthly reporting folder for the audit.",
        "priority": "low", "source": "email",
    },
    {
        "emp_id": "EMP-0008", "category": "it-hardware",
        "project": "HQ-MOVE",
        "subject": "Replacement workstation for CAD work",
        "description": "Current machine cannot run the new CAD release.",
        "priority": "high", "source": "web", "estimated_cost": Decimal("2400.00"),
    },
    {
        "emp_id": "EMP-0009", "category": "hr",
        "subject": "Question about parental leave policy",
        "description": "Looking for the updated policy document.",
        "priority": "low", "source": "phone",
    },
]


class Command(BaseCommand):
    help = "Seed the database with departments, staff, categories, rules and sample tickets."

    def add_arguments(self, parser):
        parser.add_argument(
            "--reset",
            action="store_true",
            help="Delete existing help desk data before seeding.",
        )

    @transaction.atomic
    def handle(self, *args, **options):
        if options["reset"]:
            Notification.objects.all().delete()
            Ticket.objects.all().delete()
            Project.objects.all().delete()
            AutomationRule.objects.all().delete()
            EscalationRule.objects.all().delete()
            TicketCategory.objects.all().delete()
            Department.objects.update(manager=None)
            Employee.objects.all().delete()
            Department.objects.all().delete()
            self.stdout.write(self.style.WARNING("Cleared existing help desk data."))

        # ── Departments & employees ──────────────────────────────────────
        depts = {}
        for code, name, support in DEPARTMENTS:
            depts[code], _ = Department.objects.get_or_create(
                code=code, defaults={"name": name, "is_support_team": support},
            )

        created_emps = 0
        emp_map = {}
        for emp_id, first, last, email, dept_code, role in EMPLOYEES:
            emp, created = Employee.objects.get_or_create(
                employee_id=emp_id,
                defaults={
                    "first_name": first,
                    "last_name":  last,
                    "email":      email,
                    "department": depts[dept_code],
                    "role":       role,
                },
            )
            created_emps += created
            emp_map[emp_id] = emp

        for dept_code, emp_id in MANAGERS.items():
            Department.objects.filter(pk=depts[dept_code].pk).update(manager=emp_map[emp_id])

        self.stdout.write(self.style.SUCCESS(
            f"  Employees:  {created_emps} created, {len(EMPLOYEES) - created_emps} already existed."
        ))

        # ── Reference data ───────────────────────────────────────────────
        categories = {}
        for slug, name, team, needs_lm, needs_hod, threshold, parent in CATEGORIES:
            categories[slug], _ = TicketCategory.objects.get_or_create(
                slug=slug,
                defaults={
                    "name": name,
                    "default_team": depts[team],
                    "requires_approval": needs_lm,
                    "requires_hod_approval": needs_hod,
                    "hod_approval_threshold": threshold,
                    "parent": categories.get(parent),
                },
            )

        for name, priority, response, resolution in SLA_POLICIES:
            SlaPolicy.objects.get_or_create(
                name=name,
                defaults={"priority": priority, "response_time": response,
                          "resolution_time": resolution},
            )

        tags = {}
        for name, color in TAGS:
            tags[name], _ = Tag.objects.get_or_create(name=name, defaults={"color": color})

        projects = {}
        for code, name, client in PROJECTS:
            projects[code], _ = Project.objects.get_or_create(
                code=code, defaults={"name": name, "client_name": client},
            )

        for key, value, type_, group, description in SETTINGS:
            if not Setting.objects.filter(key=key).exists():
                Setting.set_value(key, value, type_, group, description)

        # ── Rules ────────────────────────────────────────────────────────
        AutomationRule.objects.get_or_create(
            name="Tag hardware purchases",
            defaults={
                "trigger_event": "ticket_created",
                "conditions": [{"field": "category_id", "operator": "equals",
                                "value": categories["it-hardware"].pk}],
                "actions": [{"type": "add_tags", "value": [tags["hardware"].pk]}],
                "priority": 10,
            },
        )
        AutomationRule.objects.get_or_create(
            name="Critical tickets go to the IT manager",
            defaults={
                "trigger_event": "ticket_created",
                "conditions": [{"field": "priority", "operator": "equals", "value": "critical"}],
                "actions": [{"type": "assign_to_agent", "value": emp_map["EMP-0002"].pk}],
                "priority": 20,
            },
        )
        EscalationRule.objects.get_or_create(
            name="Unanswered high priority after 2 hours",
            defaults={
                "conditions": [{"field": "priority", "operator": "in",
                                "value": ["high", "critical"]},
                               {"field": "assigned_agent_id", "operator": "is_empty"}],
                "actions": [{"type": "change_priority", "value": "critical"},
                            {"type": "notify_manager"}],
                "time_trigger_type": "created_at",
                "time_trigger_minutes": 120,
                "priority": 10,
            },
        )
        EscalationRule.objects.get_or_create(
            name="Resolution overdue by a day",
            defaults={
                "conditions": [],
                "actions": [{"type": "notify_team", "value": depts["IT-SD"].pk}],
                "time_trigger_type": "resolution_due_at",
                "time_trigger_minutes": 1440,
            },
        )
        self.stdout.write(self.style.SUCCESS(
            f"  Reference:  {len(categories)} categories, {len(SLA_POLICIES)} SLA policies, "
            f"{len(tags)} tags, {len(projects)} projects, rules seeded."
        ))

        # ── Sample tickets ───────────────────────────────────────────────
        if Ticket.objects.exists():
            self.stdout.write("  Tickets:    already present, skipped.")
            return

        for t in SAMPLE_TICKETS:
            data = {k: v for k, v in t.items() if k not in ("emp_id", "category", "project")}
            data["category"] = categories[t["category"]]
            data["project"] = projects.get(t.get("project"))
            requester = emp_map[t["emp_id"]]
            data["requester"] = requester
            ticket = create_ticket(data, actor=requester)
            self.stdout.write(f"  {ticket.ticket_number}  {ticket.status:<10} {ticket.subject}")

        self.stdout.write(self.style.SUCCESS(f"  Tickets:    {len(SAMPLE_TICKETS)} created."))
        self.stdout.write("")
        self.stdout.write(self.style.SUCCESS("── Seed complete ──"))
        self.stdout.write("  Approvers:  Leila Karimi (Line Manager, OPS), Hannah Berg (HOD, FIN)")
