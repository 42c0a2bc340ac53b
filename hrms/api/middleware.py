from collections.abc import Awaitable, Callable

from fastapi import Request, Response

from hrms.core.config import settings
from hrms.core.security import create_session_cookie, decode_session_cookie
from hrms.services.session_registry import SessionRegistry


async def session_cookie_middleware(
    request: Request,
    call_next: Callable[[Request], Awaitable[Response]],
) -> Response:
    """Attach a browser session key to every request, issuing one when absent."""
    issue_cookie = False
    raw = request.cookies.get(settings.session_cookie_name)
    try:
        session_key = decode_session_cookie(raw) if raw else None
    except ValueError:
        session_key = None
    if session_key is None:
        session_key = SessionRegistry.new_key()
        issue_cookie = True

    request.state.session_key = session_key
    response = await call_next(request)

    if issue_cookie or getattr(request.state, "rotate_session_cookie", False):
        token, expires_at = create_session_cookie(request.state.session_key)
        response.set_cookie(
            settings.session_cookie_name,
            token,
            expires=expires_at,
            httponly=True,
            samesite="lax",
        )
    return response
