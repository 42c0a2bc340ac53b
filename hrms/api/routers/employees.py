from datetime import date

from fastapi import APIRouter, Depends, Query, Response

from hrms.api.deps import get_employee_service, require_route
from hrms.core.rbac import Role
from hrms.models.auth import SessionState
from hrms.models.hr import EmployeeCreate, EmployeeRecord, EmployeeUpdate
from hrms.services.employee_service import UPCOMING_BIRTHDAY_DAYS, EmployeeService


router = APIRouter(prefix="/api/employees", tags=["Employees"])


@router.get("", response_model=list[EmployeeRecord])
async def list_employees(
    current_session: SessionState = Depends(require_route(Role.HR)),
    service: EmployeeService = Depends(get_employee_service),
) -> list[EmployeeRecord]:
    return await service.list_employees()


@router.get("/birthdays", response_model=list[EmployeeRecord])
async def list_birthdays(
    start: date = Query(...),
    end: date = Query(...),
    current_session: SessionState = Depends(require_route(Role.EMPLOYEE)),
    service: EmployeeService = Depends(get_employee_service),
) -> list[EmployeeRecord]:
    return await service.employees_by_birth_date_range(start, end)


@router.get("/birthdays/upcoming", response_model=list[EmployeeRecord])
async def list_upcoming_birthdays(
    days: int = Query(UPCOMING_BIRTHDAY_DAYS, ge=0, le=366),
    current_session: SessionState = Depends(require_route(Role.EMPLOYEE)),
    service: EmployeeService = Depends(get_employee_service),
) -> list[EmployeeRecord]:
    return await service.upcoming_birthdays(days=days)


@router.get("/{employee_id}", response_model=EmployeeRecord)
async def get_employee(
    employee_id: str,
    current_session: SessionState = Depends(require_route(Role.HR)),
    service: EmployeeService = Depends(get_employee_service),
) -> EmployeeRecord:
    return await service.get_employee(employee_id)


@router.post("", response_model=EmployeeRecord, status_code=201)
async def create_employee(
    payload: EmployeeCreate,
    current_session: SessionState = Depends(require_route(Role.HR)),
    service: EmployeeService = Depends(get_employee_service),
) -> EmployeeRecord:
    return await service.create_employee(payload)


@router.patch("/{employee_id}", response_model=EmployeeRecord)
async def update_employee(
    employee_id: str,
    payload: EmployeeUpdate,
    current_session: SessionState = Depends(require_route(Role.HR)),
    service: EmployeeService = Depends(get_employee_service),
) -> EmployeeRecord:
    return await service.update_employee(employee_id, payload)


@router.delete("/{employee_id}", status_code=204)
async def delete_employee(
    employee_id: str,
    current_session: SessionState = Depends(require_route(Role.HR)),
    service: EmployeeService = Depends(get_employee_service),
) -> Response:
    await service.delete_employee(employee_id)
    return Response(status_code=204)
