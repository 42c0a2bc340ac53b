from __future__ import annotations

from fastapi import HTTPException

from hrms.models.hr import DepartmentCreate, DepartmentRecord, DepartmentUpdate
from hrms.repositories.remote_store import RemoteStore
from hrms.repositories.tables import Table, table_name


class DepartmentService:
    def __init__(self, store: RemoteStore) -> None:
        self.store = store
        self.table = table_name(Table.DEPARTMENTS)
        self.employees_table = table_name(Table.EMPLOYEES)

    async def list_departments(self) -> list[DepartmentRecord]:
        result = await self.store.table(self.table).select("*").order("created_at", desc=True).execute()
        return [DepartmentRecord(**row) for row in result.data or []]

    async def create_department(self, payload: DepartmentCreate) -> DepartmentRecord:
        result = await (
            self.store.table(self.table)
            .insert(payload.model_dump(mode="json"))
            .select()
            .single()
            .execute()
        )
        return DepartmentRecord(**result.data)

    async def update_department(self, department_id: str, payload: DepartmentUpdate) -> DepartmentRecord:
        changes = payload.model_dump(mode="json", exclude_unset=True)
        query = self.store.table(self.table)
        if changes:
            result = await query.update(changes).eq("id", department_id).select().execute()
        else:
            result = await query.select("*").eq("id", department_id).execute()
        if not result.data:
            raise HTTPException(status_code=404, detail="Department not found")
        return DepartmentRecord(**result.data[0])

    async def delete_department(self, department_id: str) -> None:
        members = await (
            self.store.table(self.employees_table)
            .select("id", count="exact", head=True)
            .eq("department_id", department_id)
            .execute()
        )
        if members.count:
            raise HTTPException(
                status_code=400,
                detail=f"Department still has {members.count} employee(s) assigned",
            )
        result = await self.store.table(self.table).delete().eq("id", department_id).select().execute()
        if not result.data:
            raise HTTPException(status_code=404, detail="Department not found")
