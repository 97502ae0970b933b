"""
Shared fixtures: a small organisation (IT service desk, Operations,
Finance), one employee per workflow role and a ticket factory that writes
rows directly, without running the creation workflow.
"""

import logging
from decimal import Decimal

import pytest
from django.utils import timezone

from tickets.models import Department, Employee, SlaPolicy, Ticket, TicketCategory
from tickets.permissions import Role


@pytest.fixture
def it_team(db):
    return Department.objects.create(name="IT Service Desk", code="IT-SD", is_support_team=True)


@pytest.fixture
def ops_dept(db):
    return Department.objects.create(name="Operations", code="OPS")


@pytest.fixture
def fin_team(db):
    return Department.objects.create(name="Finance", code="FIN", is_support_team=True)


@pytest.fixture
def make_employee(db):
    counter = {"n": 0}

    def _make(role=Role.REQUESTER, department=None, **kwargs):
        counter["n"] += 1
        n = counter["n"]
        defaults = {
            "employee_id": f"EMP-{n:04d}",
            "first_name":  f"First{n}",
            "last_name":   f"Last{n}",
            "email":       f"employee{n}@example.com",
        }
        defaults.update(kwargs)
        return Employee.objects.create(role=role, department=department, **defaults)

    return _make


@pytest.fixture
def requester(make_employee, ops_dept):
    return make_employee(Role.REQUESTER, ops_dept, first_name="Rita", last_name="Requester")


@pytest.fixture
def line_manager(make_employee, ops_dept):
    return make_employee(Role.LINE_MANAGER, ops_dept, first_name="Lena", last_name="Manager")


@pytest.fixture
def hod(make_employee, fin_team):
    return make_employee(Role.HEAD_OF_DEPARTMENT, fin_team, first_name="Hugo", last_name="Head")


@pytest.fixture
def agent(make_employee, it_team):
    return make_employee(Role.AGENT, it_team, first_name="Ada", last_name="Agent")


@pytest.fixture
def it_manager(make_employee, it_team):
    manager = make_employee(Role.IT_MANAGER, it_team, first_name="Ian", last_name="Boss")
    it_team.manager = manager
    it_team.save()
    return manager


@pytest.fixture
def no_approval_category(it_team):
    return TicketCategory.objects.create(
        name="IT Support", slug="it-support", default_team=it_team,
        requires_approval=False,
    )


@pytest.fixture
def approval_category(it_team):
    return TicketCategory.objects.create(
        name="Access Requests", slug="access", default_team=it_team,
        requires_approval=True,
    )


@pytest.fixture
def purchase_category(fin_team):
    return TicketCategory.objects.create(
        name="Purchases", slug="purchases", default_team=fin_team,
        requires_approval=False, requires_hod_approval=True,
        hod_approval_threshold=Decimal("1000.00"),
    )


@pytest.fixture
def medium_sla(db):
    return SlaPolicy.objects.create(
        name="Standard", priority="medium", response_time=60, resolution_time=480,
    )


@pytest.fixture
def make_ticket(requester):
    """Insert a ticket row; `age` backdates created_at/updated_at."""

    def _make(age=None, **kwargs):
        kwargs.setdefault("subject", "Printer on floor 2 is jammed")
        kwargs.setdefault("requester", requester)
        ticket = Ticket.objects.create(**kwargs)
        if age is not None:
            then = timezone.now() - age
            Ticket.objects.filter(pk=ticket.pk).update(created_at=then, updated_at=then)
            ticket.refresh_from_db()
        return ticket

    return _make


@pytest.fixture(autouse=True)
def propagate_ticket_logs(monkeypatch):
    # The LOGGING setting stops "tickets" at its own handler; caplog listens on root.
    monkeypatch.setattr(logging.getLogger("tickets"), "propagate", True)
