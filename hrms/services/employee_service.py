from __future__ import annotations

from datetime import date, timedelta
from typing import Optional

from fastapi import HTTPException

from hrms.models.hr import EmployeeCreate, EmployeeRecord, EmployeeUpdate
from hrms.repositories.remote_store import RemoteStore
from hrms.repositories.tables import Table, table_name


UPCOMING_BIRTHDAY_DAYS = 30


def _anniversary(birth_date: date, year: int) -> date:
    try:
        return birth_date.replace(year=year)
    except ValueError:
        # February 29 falls on February 28 in common years.
        return date(year, 2, 28)


def next_birthday(birth_date: date, today: date) -> date:
    """Return the first anniversary of ``birth_date`` on or after ``today``."""
    anniversary = _anniversary(birth_date, today.year)
    if anniversary < today:
        anniversary = _anniversary(birth_date, today.year + 1)
    return anniversary


class EmployeeService:
    def __init__(self, store: RemoteStore) -> None:
        self.store = store
        self.table = table_name(Table.EMPLOYEES)

    async def list_employees(self) -> list[EmployeeRecord]:
        result = await self.store.table(self.table).select("*").order("created_at", desc=True).execute()
        return [EmployeeRecord(**row) for row in result.data or []]

    async def get_employee(self, employee_id: str) -> EmployeeRecord:
        result = await self.store.table(self.table).select("*").eq("id", employee_id).execute()
        if not result.data:
            raise HTTPException(status_code=404, detail="Employee not found")
        return EmployeeRecord(**result.data[0])

    async def create_employee(self, payload: EmployeeCreate) -> EmployeeRecord:
        result = await (
            self.store.table(self.table)
            .insert(payload.model_dump(mode="json"))
            .select()
            .single()
            .execute()
        )
        return EmployeeRecord(**result.data)

    async def update_employee(self, employee_id: str, payload: EmployeeUpdate) -> EmployeeRecord:
        changes = payload.model_dump(mode="json", exclude_unset=True)
        if not changes:
            return await self.get_employee(employee_id)
        result = await (
            self.store.table(self.table).update(changes).eq("id", employee_id).select().execute()
        )
        if not result.data:
            raise HTTPException(status_code=404, detail="Employee not found")
        return EmployeeRecord(**result.data[0])

    async def delete_employee(self, employee_id: str) -> None:
        await self.get_employee(employee_id)
        await self.store.table(self.table).delete().eq("id", employee_id).execute()

    async def employees_by_birth_date_range(self, start: date, end: date) -> list[EmployeeRecord]:
        if end < start:
            raise HTTPException(status_code=400, detail="end must be on or after start")
        result = await (
            self.store.table(self.table)
            .select("*")
            .gte("birth_date", start)
            .lte("birth_date", end)
            .order("birth_date")
            .execute()
        )
        return [EmployeeRecord(**row) for row in result.data or []]

    async def upcoming_birthdays(
        self,
        today: Optional[date] = None,
        days: int = UPCOMING_BIRTHDAY_DAYS,
    ) -> list[EmployeeRecord]:
        """Employees whose birthday falls within ``days`` days from ``today``, soonest first."""
        if days < 0:
            raise HTTPException(status_code=400, detail="days must not be negative")
        today = today or date.today()
        horizon = today + timedelta(days=days)
        result = await self.store.table(self.table).select("*").execute()
        upcoming = []
        for row in result.data or []:
            employee = EmployeeRecord(**row)
            if employee.birth_date is None:
                continue
            anniversary = next_birthday(employee.birth_date, today)
            if anniversary <= horizon:
                upcoming.append((anniversary, employee))
        upcoming.sort(key=lambda item: (item[0], item[1].full_name))
        return [employee for _, employee in upcoming]
