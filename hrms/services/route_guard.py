from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Optional
from urllib.parse import urlencode, urlsplit

from hrms.core.errors import HRMSError
from hrms.core.rbac import Role
from hrms.services.permissions import PermissionEvaluator
from hrms.services.session_manager import SessionManager


LOGIN_PATH = "/login"
UNAUTHORIZED_PATH = "/unauthorized"


class GuardState(str, Enum):
    PENDING = "PENDING"
    DENIED_UNAUTHENTICATED = "DENIED_UNAUTHENTICATED"
    DENIED_FORBIDDEN = "DENIED_FORBIDDEN"
    ALLOWED = "ALLOWED"


@dataclass(frozen=True)
class GuardDecision:
    state: GuardState
    requested_path: str
    redirect_to: Optional[str] = None

    @property
    def allowed(self) -> bool:
        return self.state is GuardState.ALLOWED


class RouteDenied(HRMSError):
    def __init__(self, decision: GuardDecision) -> None:
        super().__init__(decision.state.value)
        self.decision = decision


def login_url(next_path: str) -> str:
    return f"{LOGIN_PATH}?{urlencode({'next': next_path})}"


def safe_next(target: Optional[str], default: str = "/") -> str:
    """Accept only local absolute paths as post-login destinations."""
    if not target or not target.startswith("/") or target.startswith("//"):
        return default
    parts = urlsplit(target)
    if parts.scheme or parts.netloc or "\\" in target:
        return default
    return target


class RouteGuard:
    def __init__(self, session_manager: SessionManager, required_role: Optional[Role] = None) -> None:
        self.session_manager = session_manager
        self.permissions = PermissionEvaluator(session_manager)
        self.required_role = required_role

    def evaluate(self, requested_path: str) -> GuardDecision:
        state = self.session_manager.session
        if state.is_loading or self.permissions.is_loading:
            return GuardDecision(GuardState.PENDING, requested_path)
        if state.identity is None:
            return GuardDecision(
                GuardState.DENIED_UNAUTHENTICATED,
                requested_path,
                redirect_to=login_url(requested_path),
            )
        if self.required_role is not None and not self.permissions.has_permission(self.required_role):
            return GuardDecision(GuardState.DENIED_FORBIDDEN, requested_path, redirect_to=UNAUTHORIZED_PATH)
        return GuardDecision(GuardState.ALLOWED, requested_path)

    def check(self, requested_path: str) -> GuardDecision:
        decision = self.evaluate(requested_path)
        if not decision.allowed:
            raise RouteDenied(decision)
        return decision
