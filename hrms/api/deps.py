from collections.abc import Awaitable, Callable
from typing import Optional

from fastapi import Depends, Request

from hrms.core.config import settings
from hrms.core.rbac import Role
from hrms.models.auth import SessionState
from hrms.services.dashboard_service import DashboardService
from hrms.services.department_service import DepartmentService
from hrms.services.employee_service import EmployeeService
from hrms.services.leave_service import LeaveService
from hrms.services.permissions import PermissionEvaluator
from hrms.services.route_guard import RouteGuard
from hrms.services.session_manager import SessionManager
from hrms.services.session_registry import SessionRegistry


def get_registry(request: Request) -> SessionRegistry:
    return request.app.state.session_registry


async def get_session_manager(
    request: Request,
    registry: SessionRegistry = Depends(get_registry),
) -> SessionManager:
    manager = await registry.get(request.state.session_key)
    await manager.wait_until_ready(settings.session_ready_timeout)
    return manager


def get_session(manager: SessionManager = Depends(get_session_manager)) -> SessionState:
    return manager.session


def get_permissions(manager: SessionManager = Depends(get_session_manager)) -> PermissionEvaluator:
    return PermissionEvaluator(manager)


def requested_location(request: Request) -> str:
    path = request.url.path
    if request.url.query:
        path = f"{path}?{request.url.query}"
    return path


def require_route(
    required_role: Optional[Role] = None,
) -> Callable[..., Awaitable[SessionState]]:
    async def dependency(
        request: Request,
        manager: SessionManager = Depends(get_session_manager),
    ) -> SessionState:
        RouteGuard(manager, required_role).check(requested_location(request))
        return manager.session

    return dependency


def get_employee_service(manager: SessionManager = Depends(get_session_manager)) -> EmployeeService:
    return EmployeeService(manager.store)


def get_department_service(manager: SessionManager = Depends(get_session_manager)) -> DepartmentService:
    return DepartmentService(manager.store)


def get_leave_service(manager: SessionManager = Depends(get_session_manager)) -> LeaveService:
    return LeaveService(manager)


def get_dashboard_service(manager: SessionManager = Depends(get_session_manager)) -> DashboardService:
    return DashboardService(manager.store)
