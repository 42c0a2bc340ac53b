"""
Tests for the HR services: employees, departments, leave and dashboard counts.
"""

import asyncio
from datetime import date

import pytest
from fastapi import HTTPException
from pydantic import ValidationError

from conftest import add_account
from hrms.core.rbac import Role
from hrms.models.hr import (
    DepartmentCreate,
    DepartmentUpdate,
    EmployeeCreate,
    EmployeeUpdate,
    LeaveRequestCreate,
    LeaveStatus,
    LeaveType,
)
from hrms.repositories.data_store import InMemoryRemoteStore, seed_demo_data
from hrms.services.dashboard_service import DashboardService
from hrms.services.department_service import DepartmentService
from hrms.services.employee_service import EmployeeService, next_birthday
from hrms.services.leave_service import CSV_HEADERS, LeaveService
from hrms.services.session_manager import SessionManager


async def signed_in(database, email: str, role: Role) -> SessionManager:
    add_account(database, email, "secret1", role)
    manager = SessionManager(InMemoryRemoteStore(database))
    await manager.initialize()
    await manager.sign_in(email, "secret1")
    while manager._tasks:
        await asyncio.gather(*list(manager._tasks))
    return manager


def _employee(department_id: str, first="Ada", last="Lovelace", **extra) -> EmployeeCreate:
    data = {
        "first_name": first,
        "last_name": last,
        "email": f"{first.lower()}@example.com",
        "department_id": department_id,
        "position": "Engineer",
        "hire_date": date(2024, 3, 1),
    }
    data.update(extra)
    return EmployeeCreate(**data)


class TestEmployeeService:
    @pytest.mark.asyncio
    async def test_create_update_delete(self, store):
        service = EmployeeService(store)
        created = await service.create_employee(_employee("dept-1"))

        updated = await service.update_employee(created.id, EmployeeUpdate(position="Lead Engineer"))
        assert updated.position == "Lead Engineer"
        assert updated.first_name == "Ada"

        await service.delete_employee(created.id)
        with pytest.raises(HTTPException) as excinfo:
            await service.get_employee(created.id)
        assert excinfo.value.status_code == 404

    @pytest.mark.asyncio
    async def test_birth_date_range_is_inclusive(self, store):
        service = EmployeeService(store)
        await service.create_employee(_employee("d", "Ann", "A", birth_date=date(1990, 5, 1)))
        await service.create_employee(_employee("d", "Bob", "B", birth_date=date(1990, 5, 31)))
        await service.create_employee(_employee("d", "Cy", "C", birth_date=date(1990, 6, 1)))
        await service.create_employee(_employee("d", "Di", "D"))

        found = await service.employees_by_birth_date_range(date(1990, 5, 1), date(1990, 5, 31))

        assert [e.first_name for e in found] == ["Ann", "Bob"]

    @pytest.mark.asyncio
    async def test_birth_date_range_rejects_inverted_bounds(self, store):
        with pytest.raises(HTTPException) as excinfo:
            await EmployeeService(store).employees_by_birth_date_range(date(2024, 2, 1), date(2024, 1, 1))
        assert excinfo.value.status_code == 400


class TestUpcomingBirthdays:
    """Birthdays match on month and day, whatever the birth year."""

    @pytest.mark.parametrize(
        "birth_date,today,expected",
        [
            (date(1990, 10, 20), date(2026, 10, 19), date(2026, 10, 20)),
            (date(1990, 10, 19), date(2026, 10, 19), date(2026, 10, 19)),
            (date(1985, 1, 5), date(2026, 12, 20), date(2027, 1, 5)),
            (date(1992, 2, 29), date(2027, 2, 1), date(2027, 2, 28)),
            (date(1992, 2, 29), date(2028, 2, 1), date(2028, 2, 29)),
        ],
    )
    def test_next_birthday(self, birth_date, today, expected):
        assert next_birthday(birth_date, today) == expected

    @pytest.mark.asyncio
    async def test_past_birth_years_within_window(self, store):
        service = EmployeeService(store)
        await service.create_employee(_employee("d", "Ann", "A", birth_date=date(1990, 10, 20)))
        await service.create_employee(_employee("d", "Bob", "B", birth_date=date(1975, 11, 18)))
        await service.create_employee(_employee("d", "Cy", "C", birth_date=date(1988, 11, 19)))
        await service.create_employee(_employee("d", "Di", "D", birth_date=date(2001, 10, 18)))
        await service.create_employee(_employee("d", "Ed", "E"))

        found = await service.upcoming_birthdays(today=date(2026, 10, 19))

        assert [e.first_name for e in found] == ["Ann", "Bob"]

    @pytest.mark.asyncio
    async def test_window_wraps_year_end(self, store):
        service = EmployeeService(store)
        await service.create_employee(_employee("d", "Jan", "J", birth_date=date(1985, 1, 5)))
        await service.create_employee(_employee("d", "Dec", "D", birth_date=date(1985, 12, 28)))
        await service.create_employee(_employee("d", "Feb", "F", birth_date=date(1985, 2, 10)))

        found = await service.upcoming_birthdays(today=date(2026, 12, 20))

        assert [e.first_name for e in found] == ["Dec", "Jan"]

    @pytest.mark.asyncio
    async def test_negative_window_rejected(self, store):
        with pytest.raises(HTTPException) as excinfo:
            await EmployeeService(store).upcoming_birthdays(today=date(2026, 1, 1), days=-1)
        assert excinfo.value.status_code == 400

    @pytest.mark.asyncio
    async def test_seeded_employees_have_past_birth_dates(self, database):
        seed_demo_data(database)
        store = InMemoryRemoteStore(database)
        today = date.today()

        employees = await EmployeeService(store).list_employees()
        upcoming = await EmployeeService(store).upcoming_birthdays(today)

        assert all(e.birth_date < today for e in employees)
        assert {e.first_name for e in upcoming} == {"Avery", "Alex"}


class TestDepartmentService:
    @pytest.mark.asyncio
    async def test_delete_blocked_while_employees_assigned(self, store):
        departments = DepartmentService(store)
        dept = await departments.create_department(DepartmentCreate(name="Engineering"))
        await EmployeeService(store).create_employee(_employee(dept.id))

        with pytest.raises(HTTPException) as excinfo:
            await departments.delete_department(dept.id)
        assert excinfo.value.status_code == 400
        assert len(await departments.list_departments()) == 1

    @pytest.mark.asyncio
    async def test_update_and_delete_empty_department(self, store):
        departments = DepartmentService(store)
        dept = await departments.create_department(DepartmentCreate(name="Finance"))

        renamed = await departments.update_department(dept.id, DepartmentUpdate(name="Finance & Ops"))
        assert renamed.name == "Finance & Ops"

        await departments.delete_department(dept.id)
        assert await departments.list_departments() == []

    @pytest.mark.asyncio
    async def test_delete_missing_department(self, store):
        with pytest.raises(HTTPException) as excinfo:
            await DepartmentService(store).delete_department("missing")
        assert excinfo.value.status_code == 404


class TestLeaveRequestValidation:
    def test_end_before_start_rejected(self):
        with pytest.raises(ValidationError):
            LeaveRequestCreate(start_date=date(2024, 5, 2), end_date=date(2024, 5, 1), reason="Trip")

    def test_single_day_allowed(self):
        request = LeaveRequestCreate(start_date=date(2024, 5, 1), end_date=date(2024, 5, 1), reason="Dentist")
        assert request.leave_type is LeaveType.ANNUAL


class TestLeaveService:
    @pytest.mark.asyncio
    async def test_employee_sees_only_own_requests(self, database):
        alice = LeaveService(await signed_in(database, "alice@example.com", Role.EMPLOYEE))
        bob = LeaveService(await signed_in(database, "bob@example.com", Role.EMPLOYEE))
        await alice.create_request(
            LeaveRequestCreate(start_date=date(2024, 5, 1), end_date=date(2024, 5, 3), reason="Holiday")
        )

        assert len(await alice.list_requests()) == 1
        assert await bob.list_requests() == []

    @pytest.mark.asyncio
    async def test_manager_decides_pending_request(self, database):
        employee = LeaveService(await signed_in(database, "alice@example.com", Role.EMPLOYEE))
        manager = LeaveService(await signed_in(database, "boss@example.com", Role.MANAGER))
        request = await employee.create_request(
            LeaveRequestCreate(start_date=date(2024, 5, 1), end_date=date(2024, 5, 3), reason="Holiday")
        )

        with pytest.raises(HTTPException) as excinfo:
            await employee.decide_request(request.id, approve=True)
        assert excinfo.value.status_code == 403

        decided = await manager.decide_request(request.id, approve=False)
        assert decided.status is LeaveStatus.REJECTED

        with pytest.raises(HTTPException) as excinfo:
            await manager.decide_request(request.id, approve=True)
        assert excinfo.value.status_code == 400

        pending = await manager.list_requests(LeaveStatus.PENDING)
        assert pending == []

    @pytest.mark.asyncio
    async def test_withdraw_rules(self, database):
        alice = LeaveService(await signed_in(database, "alice@example.com", Role.EMPLOYEE))
        bob = LeaveService(await signed_in(database, "bob@example.com", Role.EMPLOYEE))
        hr = LeaveService(await signed_in(database, "hr@example.com", Role.HR))
        request = await alice.create_request(
            LeaveRequestCreate(start_date=date(2024, 5, 1), end_date=date(2024, 5, 3), reason="Holiday")
        )

        with pytest.raises(HTTPException) as excinfo:
            await bob.delete_request(request.id)
        assert excinfo.value.status_code == 403

        await hr.decide_request(request.id, approve=True)
        with pytest.raises(HTTPException) as excinfo:
            await alice.delete_request(request.id)
        assert excinfo.value.status_code == 400

        await hr.delete_request(request.id)
        assert await hr.list_requests() == []

    @pytest.mark.asyncio
    async def test_export_csv(self, database):
        alice = LeaveService(await signed_in(database, "alice@example.com", Role.EMPLOYEE))
        hr = LeaveService(await signed_in(database, "hr@example.com", Role.HR))
        await alice.create_request(
            LeaveRequestCreate(
                leave_type=LeaveType.SICK,
                start_date=date(2024, 5, 1),
                end_date=date(2024, 5, 2),
                reason="Flu, resting",
            )
        )

        lines = (await hr.export_csv()).splitlines()

        assert lines[0] == ",".join(CSV_HEADERS)
        assert lines[1] == 'alice@example.com,sick,2024-05-01,2024-05-02,"Flu, resting",pending'
        assert len(lines) == 2


class TestDashboardService:
    @pytest.mark.asyncio
    async def test_counts(self, store):
        today = date(2024, 6, 1)
        departments = DepartmentService(store)
        dept = await departments.create_department(DepartmentCreate(name="Engineering"))
        employees = EmployeeService(store)
        await employees.create_employee(
            _employee(dept.id, "Ann", "A", hire_date=date(2024, 5, 20), birth_date=date(1990, 6, 10))
        )
        await employees.create_employee(_employee(dept.id, "Bob", "B", status="inactive"))

        stats = await DashboardService(store).get_stats(today=today)

        assert stats.employees == 2
        assert stats.active_employees == 1
        assert stats.departments == 1
        assert stats.recent_hires == 1
        assert stats.upcoming_birthdays == 1
        assert stats.pending_leave_requests == 0
        assert stats.documents == 0
