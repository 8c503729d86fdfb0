"""HTTP routes for authentication."""

import ipaddress

from fastapi import APIRouter, Request, Query
from fastapi.responses import JSONResponse

from api.base import success_response, error_response, request_id_of, ErrorCodes
from auth.exceptions import (
    InvalidTokenError,
    RateLimitedError,
    UserAlreadyExistsError,
    UserInactiveError,
)
from auth.security_middleware import bearer_token
from auth.service import AuthService
from auth.types import MagicLinkRequest, ProfileUpdate, SignupRequest, User


def _get_client_ip(request: Request) -> str | None:
    """Extract valid IP address from request, or None if invalid."""
    if not request.client:
        return None
    host = request.client.host
    try:
        ipaddress.ip_address(host)
        return host
    except ValueError:
        return None


def _error(request: Request, status_code: int, code: str, message: str, headers: dict | None = None):
    return JSONResponse(
        status_code=status_code,
        headers=headers,
        content=error_response(code, message, request_id_of(request)).model_dump(mode="json"),
    )


def _rate_limited(request: Request, e: RateLimitedError) -> JSONResponse:
    return _error(
        request,
        429,
        ErrorCodes.RATE_LIMITED,
        f"Too many requests. Please wait {e.retry_after_seconds} seconds.",
        headers={"Retry-After": str(e.retry_after_seconds)},
    )


def user_payload(user: User) -> dict:
    return user.model_dump(mode="json", include={
        "id", "email", "name", "plan", "invoice_count", "max_invoices",
    })


def create_auth_router(auth_service: AuthService) -> APIRouter:
    """Create auth router with injected service."""
    router = APIRouter(prefix="/auth", tags=["auth"])

    @router.post("/signup", status_code=201)
    async def signup(request: Request, body: SignupRequest):
        """Create an account and email its first login link."""
        try:
            user = auth_service.signup(
                email=body.email,
                name=body.name,
                ip_address=_get_client_ip(request),
                user_agent=request.headers.get("User-Agent"),
            )
        except UserAlreadyExistsError:
            return _error(request, 409, ErrorCodes.ALREADY_EXISTS, "An account with this email already exists")
        except RateLimitedError as e:
            return _rate_limited(request, e)

        return success_response({"user": user_payload(user), "sent": True}, request_id_of(request))

    @router.post("/request-link")
    async def request_magic_link(request: Request, body: MagicLinkRequest):
        """Request magic link email.

        Returns:
            - sent=True, needs_signup=False: Email sent to existing user
            - sent=False, needs_signup=True: No such account
        """
        try:
            result = auth_service.request_magic_link(
                email=body.email,
                ip_address=_get_client_ip(request),
                user_agent=request.headers.get("User-Agent"),
            )
        except RateLimitedError as e:
            return _rate_limited(request, e)

        return success_response(
            {"sent": result.sent, "needs_signup": result.needs_signup},
            request_id_of(request),
        )

    @router.get("/verify")
    async def verify_magic_link(request: Request, token: str | None = Query(None)):
        """Exchange a magic link token for a bearer session token."""
        if not token:
            return _error(request, 400, ErrorCodes.INVALID_REQUEST, "Token parameter is required")

        try:
            result = auth_service.verify_magic_link(
                token=token,
                ip_address=_get_client_ip(request),
                user_agent=request.headers.get("User-Agent"),
            )
        except InvalidTokenError:
            return _error(request, 401, ErrorCodes.INVALID_TOKEN, "Invalid or expired token")
        except UserInactiveError:
            return _error(request, 403, ErrorCodes.ACCOUNT_INACTIVE, "Account is deactivated")

        return success_response({
            "token": result.session.token,
            "token_type": "bearer",
            "expires_at": result.session.expires_at.isoformat(),
            "user": user_payload(result.user),
        }, request_id_of(request))

    @router.post("/logout")
    async def logout(request: Request):
        """Revoke the bearer session."""
        token = bearer_token(request)
        if token:
            auth_service.logout(session_token=token, ip_address=_get_client_ip(request))

        return success_response({"message": "Logged out successfully"}, request_id_of(request))

    @router.get("/me")
    async def get_current_user(request: Request):
        """Current account, including plan and invoice usage."""
        user_id = getattr(request.state, "user_id", None)
        user = auth_service.get_user(user_id) if user_id else None
        if user is None:
            return _error(request, 401, ErrorCodes.NOT_AUTHENTICATED, "Authentication required")

        return success_response({"user": user_payload(user)}, request_id_of(request))

    @router.put("/me")
    async def update_current_user(request: Request, body: ProfileUpdate):
        """Change the account's name and/or email."""
        user_id = getattr(request.state, "user_id", None)
        if not user_id:
            return _error(request, 401, ErrorCodes.NOT_AUTHENTICATED, "Authentication required")

        try:
            user = auth_service.update_profile(user_id, name=body.name, email=body.email)
        except UserAlreadyExistsError:
            return _error(request, 409, ErrorCodes.ALREADY_EXISTS, "Email is already used by another account")
        if user is None:
            return _error(request, 401, ErrorCodes.NOT_AUTHENTICATED, "Authentication required")

        return success_response({"user": user_payload(user)}, request_id_of(request))

    return router
