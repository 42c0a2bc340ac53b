from __future__ import annotations

import csv
import io
import logging
from typing import Optional

from fastapi import HTTPException, status

from hrms.core.rbac import Role
from hrms.models.auth import Identity
from hrms.models.hr import (
    LeaveRequestCreate,
    LeaveRequestRecord,
    LeaveStatus,
)
from hrms.services.permissions import PermissionEvaluator
from hrms.services.session_manager import SessionManager
from hrms.repositories.tables import Table, table_name


logger = logging.getLogger(__name__)

CSV_HEADERS = ["Employee", "Type", "Start Date", "End Date", "Reason", "Status"]


class LeaveService:
    """Leave requests as seen by the signed-in user of one session.

    Employees see and manage their own requests; managers and above see all
    requests and decide pending ones.
    """

    def __init__(self, session_manager: SessionManager) -> None:
        self.store = session_manager.store
        self.session_manager = session_manager
        self.permissions = PermissionEvaluator(session_manager)
        self.table = table_name(Table.LEAVE_REQUESTS)

    def _identity(self) -> Identity:
        identity = self.session_manager.session.identity
        if identity is None:
            raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Not authenticated")
        return identity

    async def _get(self, request_id: str) -> LeaveRequestRecord:
        result = await self.store.table(self.table).select("*").eq("id", request_id).execute()
        if not result.data:
            raise HTTPException(status_code=404, detail="Leave request not found")
        return LeaveRequestRecord(**result.data[0])

    async def list_requests(self, status_filter: Optional[LeaveStatus] = None) -> list[LeaveRequestRecord]:
        query = self.store.table(self.table).select("*")
        if not self.permissions.has_permission(Role.MANAGER):
            query = query.eq("employee_id", self._identity().id)
        if status_filter is not None:
            query = query.eq("status", status_filter.value)
        result = await query.order("created_at", desc=True).execute()
        return [LeaveRequestRecord(**row) for row in result.data or []]

    async def create_request(self, payload: LeaveRequestCreate) -> LeaveRequestRecord:
        identity = self._identity()
        row = {
            **payload.model_dump(mode="json"),
            "employee_id": identity.id,
            "status": LeaveStatus.PENDING.value,
        }
        result = await self.store.table(self.table).insert(row).select().single().execute()
        logger.info("Leave request %s filed by %s", result.data["id"], identity.id)
        return LeaveRequestRecord(**result.data)

    async def decide_request(self, request_id: str, approve: bool) -> LeaveRequestRecord:
        if not self.permissions.has_permission(Role.MANAGER):
            raise HTTPException(status_code=403, detail="Only managers and above can decide leave")
        current = await self._get(request_id)
        if current.status is not LeaveStatus.PENDING:
            raise HTTPException(status_code=400, detail="Leave request is not pending")

        decision = LeaveStatus.APPROVED if approve else LeaveStatus.REJECTED
        result = await (
            self.store.table(self.table)
            .update({"status": decision.value})
            .eq("id", request_id)
            .select()
            .single()
            .execute()
        )
        logger.info("Leave request %s %s by %s", request_id, decision.value, self._identity().id)
        return LeaveRequestRecord(**result.data)

    async def delete_request(self, request_id: str) -> None:
        current = await self._get(request_id)
        is_owner = current.employee_id == self._identity().id
        if not self.permissions.has_permission(Role.HR):
            if not is_owner:
                raise HTTPException(status_code=403, detail="Cannot delete another employee's leave")
            if current.status is not LeaveStatus.PENDING:
                raise HTTPException(status_code=400, detail="Only pending requests can be withdrawn")
        await self.store.table(self.table).delete().eq("id", request_id).execute()

    async def _employee_names(self) -> dict[str, str]:
        names: dict[str, str] = {}
        profiles = await self.store.table(table_name(Table.PROFILES)).select("id,email").execute()
        for row in profiles.data or []:
            names[row["id"]] = row.get("email") or ""
        employees = await (
            self.store.table(table_name(Table.EMPLOYEES)).select("id,first_name,last_name").execute()
        )
        for row in employees.data or []:
            names[row["id"]] = f"{row['first_name']} {row['last_name']}"
        return names

    async def export_csv(self, status_filter: Optional[LeaveStatus] = None) -> str:
        requests = await self.list_requests(status_filter)
        names = await self._employee_names()

        buffer = io.StringIO()
        writer = csv.writer(buffer, lineterminator="\n")
        writer.writerow(CSV_HEADERS)
        for request in requests:
            writer.writerow(
                [
                    names.get(request.employee_id, ""),
                    request.leave_type.value,
                    request.start_date.isoformat(),
                    request.end_date.isoformat(),
                    request.reason,
                    request.status.value,
                ]
            )
        return buffer.getvalue()
