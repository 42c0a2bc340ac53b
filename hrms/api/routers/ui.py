from datetime import date
from typing import Any, Optional

from fastapi import APIRouter, Depends, Form, Request
from fastapi.responses import HTMLResponse, RedirectResponse
from fastapi.templating import Jinja2Templates
from pydantic import ValidationError

from hrms.api.deps import (
    get_dashboard_service,
    get_department_service,
    get_employee_service,
    get_leave_service,
    get_permissions,
    get_session,
    require_route,
)
from hrms.core.config import settings
from hrms.core.rbac import Role, has_permission
from hrms.models.auth import SessionState
from hrms.models.hr import (
    DepartmentCreate,
    EmployeeCreate,
    LeaveRequestCreate,
    LeaveStatus,
    LeaveType,
)
from hrms.services.dashboard_service import DashboardService
from hrms.services.department_service import DepartmentService
from hrms.services.employee_service import UPCOMING_BIRTHDAY_DAYS, EmployeeService, next_birthday
from hrms.services.leave_service import LeaveService
from hrms.services.permissions import PermissionEvaluator


router = APIRouter(tags=["UI"])

templates = Jinja2Templates(directory=str(settings.template_dir))

MENU_ITEMS = [
    ("/", "Dashboard", Role.EMPLOYEE),
    ("/employees", "Employees", Role.HR),
    ("/departments", "Departments", Role.HR),
    ("/leave", "Leave Management", Role.EMPLOYEE),
    ("/birthdays", "Birthdays", Role.EMPLOYEE),
    ("/account", "Account", Role.EMPLOYEE),
    ("/settings", "Settings", Role.ADMIN),
]

QUICK_ACTIONS = [
    ("Add Employee", "/employees/new", Role.HR),
    ("Manage Leave", "/leave", Role.EMPLOYEE),
    ("Department Overview", "/departments", Role.HR),
]


def _can(session: SessionState, role: Role) -> bool:
    return session.profile is not None and not session.is_loading and has_permission(session.profile.role, role)


def render(
    request: Request,
    name: str,
    session: Optional[SessionState] = None,
    status_code: int = 200,
    **context: Any,
) -> HTMLResponse:
    menu = []
    if session is not None:
        menu = [
            {"path": path, "label": label, "active": request.url.path == path}
            for path, label, role in MENU_ITEMS
            if _can(session, role)
        ]
    return templates.TemplateResponse(
        request,
        name,
        {
            "app_title": settings.app_name,
            "session": session,
            "menu": menu,
            **context,
        },
        status_code=status_code,
    )


def _errors(exc: ValidationError) -> list[str]:
    return [f"{'.'.join(str(p) for p in e['loc'])}: {e['msg']}" for e in exc.errors()]


@router.get("/", response_class=HTMLResponse)
async def dashboard(
    request: Request,
    session: SessionState = Depends(require_route(Role.EMPLOYEE)),
    service: DashboardService = Depends(get_dashboard_service),
) -> HTMLResponse:
    stats = await service.get_stats()
    actions = [
        {"label": label, "path": path} for label, path, role in QUICK_ACTIONS if _can(session, role)
    ]
    return render(request, "dashboard.html", session, stats=stats, actions=actions)


@router.get("/employees", response_class=HTMLResponse)
async def employees_page(
    request: Request,
    session: SessionState = Depends(require_route(Role.HR)),
    service: EmployeeService = Depends(get_employee_service),
) -> HTMLResponse:
    employees = await service.list_employees()
    return render(request, "employees.html", session, employees=employees)


@router.get("/employees/new", response_class=HTMLResponse)
async def new_employee_page(
    request: Request,
    session: SessionState = Depends(require_route(Role.HR)),
    departments: DepartmentService = Depends(get_department_service),
) -> HTMLResponse:
    return render(
        request,
        "employee_form.html",
        session,
        departments=await departments.list_departments(),
        errors=[],
        form={},
    )


@router.post("/employees/new", response_class=HTMLResponse)
async def create_employee_form(
    request: Request,
    session: SessionState = Depends(require_route(Role.HR)),
    service: EmployeeService = Depends(get_employee_service),
    departments: DepartmentService = Depends(get_department_service),
):
    form = dict(await request.form())
    cleaned = {k: v for k, v in form.items() if v != ""}
    try:
        payload = EmployeeCreate(**cleaned)
    except ValidationError as exc:
        return render(
            request,
            "employee_form.html",
            session,
            status_code=400,
            departments=await departments.list_departments(),
            errors=_errors(exc),
            form=form,
        )
    await service.create_employee(payload)
    return RedirectResponse("/employees", status_code=303)


@router.post("/employees/{employee_id}/delete")
async def delete_employee_form(
    employee_id: str,
    session: SessionState = Depends(require_route(Role.HR)),
    service: EmployeeService = Depends(get_employee_service),
) -> RedirectResponse:
    await service.delete_employee(employee_id)
    return RedirectResponse("/employees", status_code=303)


@router.get("/departments", response_class=HTMLResponse)
async def departments_page(
    request: Request,
    session: SessionState = Depends(require_route(Role.HR)),
    service: DepartmentService = Depends(get_department_service),
) -> HTMLResponse:
    return render(request, "departments.html", session, departments=await service.list_departments(), errors=[])


@router.post("/departments", response_class=HTMLResponse)
async def create_department_form(
    request: Request,
    name: str = Form(...),
    description: str = Form(""),
    session: SessionState = Depends(require_route(Role.HR)),
    service: DepartmentService = Depends(get_department_service),
):
    try:
        payload = DepartmentCreate(name=name, description=description)
    except ValidationError as exc:
        return render(
            request,
            "departments.html",
            session,
            status_code=400,
            departments=await service.list_departments(),
            errors=_errors(exc),
        )
    await service.create_department(payload)
    return RedirectResponse("/departments", status_code=303)


@router.get("/leave", response_class=HTMLResponse)
async def leave_page(
    request: Request,
    status: Optional[LeaveStatus] = None,
    session: SessionState = Depends(require_route(Role.EMPLOYEE)),
    service: LeaveService = Depends(get_leave_service),
    permissions: PermissionEvaluator = Depends(get_permissions),
) -> HTMLResponse:
    return render(
        request,
        "leave.html",
        session,
        requests=await service.list_requests(status),
        status_filter=status.value if status else "all",
        leave_types=[t.value for t in LeaveType],
        can_decide=permissions.is_manager(),
        errors=[],
    )


@router.post("/leave", response_class=HTMLResponse)
async def create_leave_form(
    request: Request,
    session: SessionState = Depends(require_route(Role.EMPLOYEE)),
    service: LeaveService = Depends(get_leave_service),
):
    form = dict(await request.form())
    try:
        payload = LeaveRequestCreate(**form)
    except ValidationError as exc:
        return render(
            request,
            "leave.html",
            session,
            status_code=400,
            requests=await service.list_requests(),
            status_filter="all",
            leave_types=[t.value for t in LeaveType],
            can_decide=_can(session, Role.MANAGER),
            errors=_errors(exc),
        )
    await service.create_request(payload)
    return RedirectResponse("/leave", status_code=303)


@router.post("/leave/{request_id}/decision")
async def decide_leave_form(
    request_id: str,
    approve: bool = Form(...),
    session: SessionState = Depends(require_route(Role.MANAGER)),
    service: LeaveService = Depends(get_leave_service),
) -> RedirectResponse:
    await service.decide_request(request_id, approve)
    return RedirectResponse("/leave", status_code=303)


@router.get("/birthdays", response_class=HTMLResponse)
async def birthdays_page(
    request: Request,
    session: SessionState = Depends(require_route(Role.EMPLOYEE)),
    service: EmployeeService = Depends(get_employee_service),
) -> HTMLResponse:
    today = date.today()
    employees = await service.upcoming_birthdays(today)
    return render(
        request,
        "birthdays.html",
        session,
        birthdays=[(next_birthday(e.birth_date, today), e) for e in employees],
        days=UPCOMING_BIRTHDAY_DAYS,
    )


@router.get("/settings", response_class=HTMLResponse)
async def settings_page(
    request: Request,
    session: SessionState = Depends(require_route(Role.ADMIN)),
) -> HTMLResponse:
    return render(
        request,
        "settings.html",
        session,
        backend="Supabase" if settings.uses_supabase else "In-memory",
        failure_policy=settings.profile_failure_policy,
    )


@router.get("/unauthorized", response_class=HTMLResponse)
async def unauthorized_page(
    request: Request,
    session: SessionState = Depends(get_session),
) -> HTMLResponse:
    return render(request, "unauthorized.html", session, status_code=403)
