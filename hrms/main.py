import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse, RedirectResponse, Response

from hrms.api.middleware import session_cookie_middleware
from hrms.api.routers.auth import router as auth_router
from hrms.api.routers.departments import router as departments_router
from hrms.api.routers.employees import router as employees_router
from hrms.api.routers.ui import render
from hrms.api.routers.ui import router as ui_router
from hrms.api.routers.workflows import router as workflows_router
from hrms.core.config import settings
from hrms.core.errors import StoreError
from hrms.core.logging import configure_logging
from hrms.services.container import build_session_registry
from hrms.services.route_guard import GuardState, RouteDenied
from hrms.services.session_registry import SessionRegistry


logger = logging.getLogger(__name__)


def _is_api(request: Request) -> bool:
    return request.url.path.startswith("/api/")


async def route_denied_handler(request: Request, exc: RouteDenied) -> Response:
    decision = exc.decision
    if _is_api(request):
        if decision.state is GuardState.PENDING:
            return JSONResponse(
                status_code=503,
                content={"detail": "Session is still loading"},
                headers={"Retry-After": "1"},
            )
        if decision.state is GuardState.DENIED_UNAUTHENTICATED:
            return JSONResponse(
                status_code=401,
                content={"detail": "Not authenticated", "login": decision.redirect_to},
            )
        return JSONResponse(status_code=403, content={"detail": "Insufficient role permissions"})

    if decision.state is GuardState.PENDING:
        return render(request, "loading.html", next=decision.requested_path)
    return RedirectResponse(decision.redirect_to, status_code=303)


async def store_error_handler(request: Request, exc: StoreError) -> Response:
    logger.error("Remote store call failed on %s: %s", request.url.path, exc)
    if _is_api(request):
        return JSONResponse(status_code=502, content={"detail": str(exc)})
    return render(request, "error.html", status_code=502, message=str(exc))


def create_app(registry: Optional[SessionRegistry] = None) -> FastAPI:
    configure_logging()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        yield
        await app.state.session_registry.close_all()

    app = FastAPI(
        title=settings.app_name,
        version="1.0.0",
        description=(
            "Human-resources portal: employee records, departments, leave requests "
            "and role-based page access over a hosted backend."
        ),
        lifespan=lifespan,
    )
    app.state.session_registry = registry if registry is not None else build_session_registry()

    app.middleware("http")(session_cookie_middleware)
    app.add_exception_handler(RouteDenied, route_denied_handler)
    app.add_exception_handler(StoreError, store_error_handler)

    @app.get("/health")
    def health() -> dict[str, str]:
        return {"status": "ok", "service": settings.app_name}

    app.include_router(auth_router)
    app.include_router(ui_router)
    app.include_router(employees_router)
    app.include_router(departments_router)
    app.include_router(workflows_router)
    return app


app = create_app()
