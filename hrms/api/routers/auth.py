import logging
from typing import Optional

from fastapi import APIRouter, Depends, Form, Request
from fastapi.responses import HTMLResponse, RedirectResponse
from pydantic import ValidationError

from hrms.api.deps import get_registry, get_session, get_session_manager, require_route
from hrms.api.routers.ui import render
from hrms.core.config import settings
from hrms.core.errors import AuthError
from hrms.core.rbac import Role
from hrms.models.auth import SessionPublic, SessionState, SignUpForm
from hrms.services.route_guard import safe_next
from hrms.services.session_manager import SessionManager
from hrms.services.session_registry import SessionRegistry


logger = logging.getLogger(__name__)

router = APIRouter(tags=["Auth"])

RESET_NOTICE = "If an account exists for that address, a password reset link has been sent."


def _rotate_session_key(request: Request, registry: SessionRegistry) -> None:
    new_key = registry.new_key()
    registry.rekey(request.state.session_key, new_key)
    request.state.session_key = new_key
    request.state.rotate_session_cookie = True


@router.get("/login", response_class=HTMLResponse)
async def login_page(
    request: Request,
    next: Optional[str] = None,
    session: SessionState = Depends(get_session),
):
    if session.is_authenticated and not session.is_loading:
        return RedirectResponse(safe_next(next), status_code=303)
    return render(request, "login.html", next=safe_next(next), error=None, notice=None)


@router.post("/login", response_class=HTMLResponse)
async def login(
    request: Request,
    email: str = Form(...),
    password: str = Form(...),
    next: str = Form("/"),
    manager: SessionManager = Depends(get_session_manager),
    registry: SessionRegistry = Depends(get_registry),
):
    try:
        await manager.sign_in(email, password)
    except AuthError as exc:
        return render(
            request,
            "login.html",
            status_code=400,
            next=safe_next(next),
            error=str(exc),
            notice=None,
        )
    _rotate_session_key(request, registry)
    return RedirectResponse(safe_next(next), status_code=303)


@router.get("/register", response_class=HTMLResponse)
async def register_page(request: Request) -> HTMLResponse:
    return render(
        request,
        "register.html",
        roles=[r.value for r in Role] if settings.open_role_registration else [Role.EMPLOYEE.value],
        errors=[],
    )


@router.post("/register", response_class=HTMLResponse)
async def register(
    request: Request,
    email: str = Form(...),
    password: str = Form(...),
    role: str = Form(Role.EMPLOYEE.value),
    manager: SessionManager = Depends(get_session_manager),
    registry: SessionRegistry = Depends(get_registry),
):
    roles = [r.value for r in Role] if settings.open_role_registration else [Role.EMPLOYEE.value]
    if role not in roles:
        logger.warning("Refused self-registration of %s with role %s", email, role)
        return render(request, "register.html", status_code=400, roles=roles, errors=["role: not allowed"])
    try:
        form = SignUpForm(email=email, password=password, role=role)
    except ValidationError as exc:
        errors = [f"{'.'.join(str(p) for p in e['loc'])}: {e['msg']}" for e in exc.errors()]
        return render(request, "register.html", status_code=400, roles=roles, errors=errors)

    try:
        await manager.sign_up(form.email, form.password, form.role)
    except AuthError as exc:
        return render(request, "register.html", status_code=400, roles=roles, errors=[str(exc)])

    if manager.session.is_authenticated:
        _rotate_session_key(request, registry)
        return RedirectResponse("/", status_code=303)
    return render(
        request,
        "login.html",
        next="/",
        error=None,
        notice="Account created. Confirm your email address, then sign in.",
    )


@router.post("/logout")
async def logout(
    request: Request,
    manager: SessionManager = Depends(get_session_manager),
    registry: SessionRegistry = Depends(get_registry),
):
    try:
        await manager.sign_out()
    except AuthError as exc:
        return render(request, "error.html", manager.session, status_code=400, message=str(exc))
    await registry.discard(request.state.session_key)
    return RedirectResponse("/login", status_code=303)


@router.get("/forgot-password", response_class=HTMLResponse)
async def forgot_password_page(request: Request) -> HTMLResponse:
    return render(request, "forgot_password.html", notice=None, error=None)


@router.post("/forgot-password", response_class=HTMLResponse)
async def forgot_password(
    request: Request,
    email: str = Form(...),
    manager: SessionManager = Depends(get_session_manager),
) -> HTMLResponse:
    try:
        await manager.reset_password(email)
    except AuthError as exc:
        return render(request, "forgot_password.html", status_code=400, notice=None, error=str(exc))
    return render(request, "forgot_password.html", notice=RESET_NOTICE, error=None)


@router.get("/account", response_class=HTMLResponse)
async def account_page(
    request: Request,
    session: SessionState = Depends(require_route()),
) -> HTMLResponse:
    return render(request, "account.html", session, notice=None, error=None)


@router.post("/account/password", response_class=HTMLResponse)
async def update_password(
    request: Request,
    new_password: str = Form(...),
    confirm_password: str = Form(...),
    session: SessionState = Depends(require_route()),
    manager: SessionManager = Depends(get_session_manager),
) -> HTMLResponse:
    if new_password != confirm_password:
        return render(request, "account.html", session, status_code=400, notice=None, error="Passwords do not match")
    try:
        await manager.update_password(new_password)
    except AuthError as exc:
        return render(request, "account.html", session, status_code=400, notice=None, error=str(exc))
    return render(request, "account.html", manager.session, notice="Password updated", error=None)


@router.get("/api/session", response_model=SessionPublic, tags=["Session"])
def read_session(session: SessionState = Depends(get_session)) -> SessionPublic:
    return SessionPublic(
        authenticated=session.is_authenticated,
        loading=session.is_loading,
        user_id=session.identity.id if session.identity else None,
        email=session.identity.email if session.identity else None,
        role=session.profile.role if session.profile else None,
        degraded=session.degraded,
    )
