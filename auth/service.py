"""Authentication service - signup, magic link login and sessions."""

import logging
import secrets
from dataclasses import dataclass
from datetime import timedelta
from uuid import UUID

from auth.config import AuthConfig
from auth.database import AuthDatabase
from auth.session import SessionManager
from auth.rate_limiter import RateLimiter
from auth.security_logger import SecurityLogger, SecurityEvent
from auth.types import AuthenticatedUser, MagicLinkToken, Session, User
from auth.exceptions import (
    InvalidTokenError,
    RateLimitedError,
    SessionExpiredError,
    UserAlreadyExistsError,
    UserInactiveError,
)
from clients.email_client import EmailGatewayClient
from utils.timezone import now_utc

logger = logging.getLogger(__name__)


@dataclass
class MagicLinkResult:
    """Result of magic link request."""

    sent: bool
    needs_signup: bool


class AuthService:
    """Orchestrates passwordless authentication.

    Handles:
    - Signup (creates the account, then mails a link)
    - Magic link requests, with per-email and per-IP limits
    - Token verification into a session
    - Logout
    """

    def __init__(
        self,
        config: AuthConfig,
        auth_db: AuthDatabase,
        session_manager: SessionManager,
        email_limiter: RateLimiter,
        enumeration_limiter: RateLimiter,
        email_client: EmailGatewayClient,
        security_logger: SecurityLogger,
    ):
        self._config = config
        self._auth_db = auth_db
        self._session_manager = session_manager
        self._email_limiter = email_limiter
        self._enumeration_limiter = enumeration_limiter
        self._email_client = email_client
        self._security_logger = security_logger

    def _log_rate_limited(
        self,
        e: RateLimitedError,
        limit: str,
        email: str,
        ip_address: str | None,
        user_agent: str | None,
    ) -> None:
        self._security_logger.log(
            SecurityEvent.RATE_LIMITED,
            email=email,
            ip_address=ip_address,
            user_agent=user_agent,
            details={"limit": limit, "retry_after_seconds": e.retry_after_seconds},
        )

    def _send_link(self, user: User, ip_address: str | None, user_agent: str | None) -> None:
        """Issue, store and mail a fresh login token.

        Raises:
            RateLimitedError: If the email has asked for too many links.
            EmailGatewayError: If email send fails.
        """
        try:
            self._email_limiter.check_rate_limit(user.email)
        except RateLimitedError as e:
            self._log_rate_limited(e, "email", user.email, ip_address, user_agent)
            raise

        now = now_utc()
        token_value = secrets.token_urlsafe(32)
        self._auth_db.store_magic_link_token(MagicLinkToken(
            token=token_value,
            user_id=user.id,
            email=user.email,
            created_at=now,
            expires_at=now + timedelta(minutes=self._config.magic_link_expiry_minutes),
            used=False,
        ))

        self._security_logger.log(
            SecurityEvent.MAGIC_LINK_REQUESTED,
            email=user.email,
            user_id=user.id,
            ip_address=ip_address,
            user_agent=user_agent,
        )

        self._email_client.send_magic_link(
            email=user.email,
            token=token_value,
            app_url=self._config.app_base_url,
        )

        self._security_logger.log(
            SecurityEvent.MAGIC_LINK_SENT,
            email=user.email,
            user_id=user.id,
            ip_address=ip_address,
        )

    def signup(
        self,
        email: str,
        name: str,
        ip_address: str | None,
        user_agent: str | None,
    ) -> User:
        """Create a free-plan account and mail its first login link.

        Raises:
            UserAlreadyExistsError: If the email already has an account.
            RateLimitedError: If the email has asked for too many links.
        """
        email = email.lower().strip()

        if self._auth_db.get_user_by_email(email) is not None:
            raise UserAlreadyExistsError(f"Account for {email} already exists")

        user = self._auth_db.create_user(email, name)
        logger.info("Created account %s", user.id)

        self._security_logger.log(
            SecurityEvent.SIGNUP,
            email=user.email,
            user_id=user.id,
            ip_address=ip_address,
            user_agent=user_agent,
        )

        self._send_link(user, ip_address, user_agent)
        return user

    def request_magic_link(
        self,
        email: str,
        ip_address: str | None,
        user_agent: str | None,
    ) -> MagicLinkResult:
        """Request magic link for email.

        Unknown emails count against the caller's IP, so an address list
        can't be probed for accounts at speed.

        Raises:
            RateLimitedError: If rate limit or enumeration limit exceeded.
            EmailGatewayError: If email send fails.
        """
        email = email.lower().strip()
        client_key = ip_address or "unknown"

        try:
            self._enumeration_limiter.ensure_not_blocked(client_key)
        except RateLimitedError as e:
            self._log_rate_limited(e, "ip", email, ip_address, user_agent)
            raise

        user = self._auth_db.get_user_by_email(email)

        if user is None:
            self._enumeration_limiter.record_attempt(client_key)
            self._security_logger.log(
                SecurityEvent.MAGIC_LINK_FAILED,
                email=email,
                ip_address=ip_address,
                user_agent=user_agent,
                details={"reason": "user_not_found"},
            )
            return MagicLinkResult(sent=False, needs_signup=True)

        self._send_link(user, ip_address, user_agent)
        return MagicLinkResult(sent=True, needs_signup=False)

    def verify_magic_link(
        self,
        token: str,
        ip_address: str | None,
        user_agent: str | None,
    ) -> AuthenticatedUser:
        """Exchange a magic link token for a session.

        Raises:
            InvalidTokenError: If token invalid, expired, or already used.
            UserInactiveError: If user account is deactivated.
        """
        magic_token = self._auth_db.get_magic_link_token(token)

        if magic_token is None:
            self._security_logger.log(
                SecurityEvent.MAGIC_LINK_FAILED,
                ip_address=ip_address,
                user_agent=user_agent,
                details={"reason": "token_not_found"},
            )
            raise InvalidTokenError("Invalid or expired token")

        if magic_token.used:
            self._security_logger.log(
                SecurityEvent.MAGIC_LINK_ALREADY_USED,
                email=magic_token.email,
                user_id=magic_token.user_id,
                ip_address=ip_address,
                user_agent=user_agent,
            )
            raise InvalidTokenError("Token has already been used")

        if now_utc() > magic_token.expires_at:
            self._security_logger.log(
                SecurityEvent.MAGIC_LINK_EXPIRED,
                email=magic_token.email,
                user_id=magic_token.user_id,
                ip_address=ip_address,
                user_agent=user_agent,
            )
            raise InvalidTokenError("Token has expired")

        user = self._auth_db.get_user_by_id(magic_token.user_id)
        if user is None:
            raise InvalidTokenError("User not found")

        if not user.is_active:
            self._security_logger.log(
                SecurityEvent.MAGIC_LINK_FAILED,
                email=user.email,
                user_id=user.id,
                ip_address=ip_address,
                user_agent=user_agent,
                details={"reason": "user_inactive"},
            )
            raise UserInactiveError("User account is deactivated")

        self._auth_db.mark_token_used(token)
        pruned = self._auth_db.cleanup_expired_tokens()
        if pruned:
            logger.info("Pruned %d expired login tokens", pruned)

        self._security_logger.log(
            SecurityEvent.MAGIC_LINK_VERIFIED,
            email=user.email,
            user_id=user.id,
            ip_address=ip_address,
            user_agent=user_agent,
        )

        session = self._session_manager.create_session(user.id)
        self._auth_db.update_last_login(user.id)

        self._email_limiter.reset_rate_limit(user.email)
        if ip_address:
            self._enumeration_limiter.reset_rate_limit(ip_address)

        self._security_logger.log(
            SecurityEvent.SESSION_CREATED,
            email=user.email,
            user_id=user.id,
            ip_address=ip_address,
            user_agent=user_agent,
        )

        return AuthenticatedUser(user=user, session=session)

    def logout(self, session_token: str, ip_address: str | None) -> None:
        """Revoke session. Safe to call with invalid token."""
        try:
            user_id = self._session_manager.validate_session(session_token).user_id
        except SessionExpiredError:
            user_id = None

        self._session_manager.revoke_session(session_token)

        self._security_logger.log(
            SecurityEvent.SESSION_REVOKED,
            user_id=user_id,
            ip_address=ip_address,
        )

    def validate_session(self, token: str) -> Session:
        """Validate session token.

        Raises:
            SessionExpiredError: If session invalid or expired.
        """
        return self._session_manager.validate_session(token)

    def get_user(self, user_id: UUID) -> User | None:
        return self._auth_db.get_user_by_id(user_id)

    def update_profile(self, user_id: UUID, name: str | None, email: str | None) -> User | None:
        """Change the account's name and/or email.

        Returns:
            The updated user, or None if the account no longer exists.

        Raises:
            UserAlreadyExistsError: If another account already uses the email.
        """
        if email is not None:
            email = email.strip().lower()
            existing = self._auth_db.get_user_by_email(email)
            if existing is not None and existing.id != user_id:
                raise UserAlreadyExistsError(f"Account for {email} already exists")

        user = self._auth_db.update_profile(user_id, name=name, email=email)
        if user is not None:
            logger.info("Updated profile of user %s", user_id)
        return user
