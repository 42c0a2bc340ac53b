from fastapi import APIRouter, Depends, Response

from hrms.api.deps import get_department_service, require_route
from hrms.core.rbac import Role
from hrms.models.auth import SessionState
from hrms.models.hr import DepartmentCreate, DepartmentRecord, DepartmentUpdate
from hrms.services.department_service import DepartmentService


router = APIRouter(prefix="/api/departments", tags=["Departments"])


@router.get("", response_model=list[DepartmentRecord])
async def list_departments(
    current_session: SessionState = Depends(require_route(Role.HR)),
    service: DepartmentService = Depends(get_department_service),
) -> list[DepartmentRecord]:
    return await service.list_departments()


@router.post("", response_model=DepartmentRecord, status_code=201)
async def create_department(
    payload: DepartmentCreate,
    current_session: SessionState = Depends(require_route(Role.HR)),
    service: DepartmentService = Depends(get_department_service),
) -> DepartmentRecord:
    return await service.create_department(payload)


@router.patch("/{department_id}", response_model=DepartmentRecord)
async def update_department(
    department_id: str,
    payload: DepartmentUpdate,
    current_session: SessionState = Depends(require_route(Role.HR)),
    service: DepartmentService = Depends(get_department_service),
) -> DepartmentRecord:
    return await service.update_department(department_id, payload)


@router.delete("/{department_id}", status_code=204)
async def delete_department(
    department_id: str,
    current_session: SessionState = Depends(require_route(Role.HR)),
    service: DepartmentService = Depends(get_department_service),
) -> Response:
    await service.delete_department(department_id)
    return Response(status_code=204)
