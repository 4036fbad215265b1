"""Security middleware for FastAPI - resolves the session into an Actor."""

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import JSONResponse

from auth.session import SessionManager
from auth.exceptions import SessionExpiredError
from api.base import error_response, request_id_of, ErrorCodes
from utils.user_context import set_current_actor, clear_current_actor

SESSION_COOKIE = "session_token"


def _unauthorized(request: Request, code: str, message: str) -> JSONResponse:
    return JSONResponse(
        status_code=401,
        content=error_response(code, message, request_id_of(request)).model_dump(mode="json"),
    )


def extract_session_token(request: Request) -> str | None:
    """Session token from the cookie, or from a Bearer header for app clients."""
    token = request.cookies.get(SESSION_COOKIE)
    if token:
        return token

    scheme, _, credentials = request.headers.get("authorization", "").partition(" ")
    if scheme.lower() == "bearer" and credentials.strip():
        return credentials.strip()
    return None


class AuthMiddleware(BaseHTTPMiddleware):
    """Middleware that validates the session and sets the actor context.

    The identity provider stores sessions carrying user_id, role and, for
    barbers, the barber profile id. For every protected route the session
    is resolved into an Actor, placed on request.state.actor and in the
    actor contextvar that core services and the audit log read. The
    context is cleared once the response is produced.
    """

    PUBLIC_PATHS = frozenset({"/health", "/openapi.json"})
    PUBLIC_PREFIXES = ("/docs",)

    def __init__(self, app, session_manager: SessionManager):
        super().__init__(app)
        self._session_manager = session_manager

    def _is_public_path(self, path: str) -> bool:
        return path in self.PUBLIC_PATHS or path.startswith(self.PUBLIC_PREFIXES)

    async def dispatch(self, request: Request, call_next):
        if self._is_public_path(request.url.path):
            return await call_next(request)

        token = extract_session_token(request)
        if not token:
            return _unauthorized(request, ErrorCodes.NOT_AUTHENTICATED, "Authentication required")

        try:
            session = self._session_manager.validate_session(token)
        except SessionExpiredError:
            return _unauthorized(request, ErrorCodes.SESSION_EXPIRED, "Session has expired")

        actor = session.to_actor()
        request.state.actor = actor
        request.state.session = session
        set_current_actor(actor)
        try:
            return await call_next(request)
        finally:
            clear_current_actor()
