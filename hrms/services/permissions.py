from typing import Optional

from hrms.core import rbac
from hrms.core.rbac import Role
from hrms.models.auth import Profile
from hrms.services.session_manager import SessionManager


class PermissionEvaluator:
    """Role checks against the live session of a ``SessionManager``.

    Nothing is cached: every call reads the manager's current snapshot.
    """

    def __init__(self, session_manager: SessionManager) -> None:
        self.session_manager = session_manager

    @property
    def is_loading(self) -> bool:
        return self.session_manager.session.is_loading

    @property
    def profile(self) -> Optional[Profile]:
        return self.session_manager.session.profile

    def has_permission(self, required_role: Role | str) -> bool:
        state = self.session_manager.session
        if state.is_loading or state.identity is None or state.profile is None:
            return False
        return rbac.has_permission(state.profile.role, required_role)

    def is_admin(self) -> bool:
        return self.has_permission(Role.ADMIN)

    def is_hr(self) -> bool:
        return self.has_permission(Role.HR)

    def is_manager(self) -> bool:
        return self.has_permission(Role.MANAGER)

    def is_employee(self) -> bool:
        return self.has_permission(Role.EMPLOYEE)
