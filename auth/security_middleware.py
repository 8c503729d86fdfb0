"""Security middleware for FastAPI - bearer session validation and owner context."""

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import JSONResponse

from auth.session import SessionManager
from auth.exceptions import SessionExpiredError
from api.base import error_response, request_id_of, ErrorCodes
from utils.user_context import set_current_user_id, clear_current_user_id


def bearer_token(request: Request) -> str | None:
    """Token from `Authorization: Bearer <token>`, None if absent or malformed."""
    header = request.headers.get("Authorization", "")
    scheme, _, token = header.partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        return None
    return token.strip()


def _unauthorized(request: Request, code: str, message: str) -> JSONResponse:
    return JSONResponse(
        status_code=401,
        content=error_response(code, message, request_id_of(request)).model_dump(mode="json"),
    )


class AuthMiddleware(BaseHTTPMiddleware):
    """Validates the bearer session and sets the owner context.

    For protected routes:
    1. Reads the token from the Authorization header
    2. Validates it via SessionManager
    3. Sets user_id on request.state and in the user context
    4. Clears the context after the request completes

    Public paths bypass authentication entirely.
    """

    PUBLIC_PATHS = [
        "/auth/signup",
        "/auth/request-link",
        "/auth/verify",
        "/health",
        "/docs",
        "/openapi.json",
    ]

    def __init__(self, app, session_manager: SessionManager):
        super().__init__(app)
        self._session_manager = session_manager

    def _is_public_path(self, path: str) -> bool:
        return any(
            path == public_path or path.startswith(public_path + "/")
            for public_path in self.PUBLIC_PATHS
        )

    async def dispatch(self, request: Request, call_next):
        if self._is_public_path(request.url.path):
            return await call_next(request)

        token = bearer_token(request)
        if token is None:
            return _unauthorized(request, ErrorCodes.NOT_AUTHENTICATED, "Authentication required")

        try:
            session = self._session_manager.validate_session(token)
        except SessionExpiredError:
            return _unauthorized(request, ErrorCodes.SESSION_EXPIRED, "Session has expired")

        set_current_user_id(session.user_id)
        request.state.user_id = session.user_id
        request.state.session = session

        try:
            return await call_next(request)
        finally:
            clear_current_user_id()
