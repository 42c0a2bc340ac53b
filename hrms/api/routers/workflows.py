from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, Response

from hrms.api.deps import get_dashboard_service, get_leave_service, require_route
from hrms.core.rbac import Role
from hrms.models.auth import SessionState
from hrms.models.hr import (
    DashboardStats,
    LeaveDecisionRequest,
    LeaveRequestCreate,
    LeaveRequestRecord,
    LeaveStatus,
)
from hrms.services.dashboard_service import DashboardService
from hrms.services.leave_service import LeaveService


router = APIRouter(prefix="/api", tags=["Leave & Dashboard"])


@router.post("/leave", response_model=LeaveRequestRecord, status_code=201)
async def create_leave_request(
    payload: LeaveRequestCreate,
    current_session: SessionState = Depends(require_route(Role.EMPLOYEE)),
    service: LeaveService = Depends(get_leave_service),
) -> LeaveRequestRecord:
    return await service.create_request(payload)


@router.get("/leave", response_model=list[LeaveRequestRecord])
async def list_leave_requests(
    status: Optional[LeaveStatus] = None,
    current_session: SessionState = Depends(require_route(Role.EMPLOYEE)),
    service: LeaveService = Depends(get_leave_service),
) -> list[LeaveRequestRecord]:
    return await service.list_requests(status)


@router.get("/leave/export")
async def export_leave_requests(
    status: Optional[LeaveStatus] = None,
    current_session: SessionState = Depends(require_route(Role.EMPLOYEE)),
    service: LeaveService = Depends(get_leave_service),
) -> Response:
    content = await service.export_csv(status)
    filename = f"leave-requests-{date.today().isoformat()}.csv"
    return Response(
        content=content,
        media_type="text/csv; charset=utf-8",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


@router.post("/leave/{request_id}/decision", response_model=LeaveRequestRecord)
async def decide_leave_request(
    request_id: str,
    payload: LeaveDecisionRequest,
    current_session: SessionState = Depends(require_route(Role.MANAGER)),
    service: LeaveService = Depends(get_leave_service),
) -> LeaveRequestRecord:
    return await service.decide_request(request_id, payload.approve)


@router.delete("/leave/{request_id}", status_code=204)
async def delete_leave_request(
    request_id: str,
    current_session: SessionState = Depends(require_route(Role.EMPLOYEE)),
    service: LeaveService = Depends(get_leave_service),
) -> Response:
    await service.delete_request(request_id)
    return Response(status_code=204)


@router.get("/dashboard/stats", response_model=DashboardStats)
async def dashboard_stats(
    current_session: SessionState = Depends(require_route(Role.EMPLOYEE)),
    service: DashboardService = Depends(get_dashboard_service),
) -> DashboardStats:
    return await service.get_stats()
