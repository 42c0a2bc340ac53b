from __future__ import annotations

import asyncio
from datetime import date, timedelta
from typing import Optional

from hrms.models.hr import DashboardStats
from hrms.repositories.remote_store import RemoteStore, TableQuery
from hrms.repositories.tables import Table, table_name
from hrms.services.employee_service import EmployeeService

RECENT_WINDOW_DAYS = 30


class DashboardService:
    def __init__(self, store: RemoteStore) -> None:
        self.store = store

    def _count(self, table: Table) -> TableQuery:
        return self.store.table(table_name(table)).select("*", count="exact", head=True)

    async def get_stats(self, today: Optional[date] = None) -> DashboardStats:
        today = today or date.today()
        window_start = today - timedelta(days=RECENT_WINDOW_DAYS)

        results = await asyncio.gather(
            self._count(Table.EMPLOYEES).execute(),
            self._count(Table.EMPLOYEES).eq("status", "active").execute(),
            self._count(Table.DEPARTMENTS).execute(),
            self._count(Table.LEAVE_REQUESTS).execute(),
            self._count(Table.LEAVE_REQUESTS).eq("status", "pending").execute(),
            self._count(Table.DOCUMENTS).execute(),
            self._count(Table.EMPLOYEES).gte("hire_date", window_start).execute(),
            EmployeeService(self.store).upcoming_birthdays(today, RECENT_WINDOW_DAYS),
        )
        *count_results, birthdays = results
        counts = [r.count or 0 for r in count_results]
        return DashboardStats(
            employees=counts[0],
            active_employees=counts[1],
            departments=counts[2],
            leave_requests=counts[3],
            pending_leave_requests=counts[4],
            documents=counts[5],
            recent_hires=counts[6],
            upcoming_birthdays=len(birthdays),
        )
