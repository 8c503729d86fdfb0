"""Authentication configuration."""

from pydantic import BaseModel, Field


class AuthConfig(BaseModel):
    """
    Authentication configuration.

    Durations are in minutes for short-lived things and hours for sessions.
    """

    magic_link_expiry_minutes: int = Field(
        default=10,
        description="How long magic links remain valid",
        ge=5,
        le=60,
    )

    session_expiry_hours: int = Field(
        default=168,  # 7 days
        description="Session lifetime in hours, extended on activity",
        ge=1,
        le=2160,
    )

    rate_limit_attempts: int = Field(
        default=5,
        description="Max magic link requests per email per window",
        ge=1,
        le=20,
    )
    rate_limit_window_minutes: int = Field(
        default=15,
        description="Rate limit window duration",
        ge=5,
        le=60,
    )
    enumeration_limit: int = Field(
        default=3,
        description="Unknown-email link requests allowed per IP per window",
        ge=1,
        le=20,
    )

    app_base_url: str = Field(
        default="http://localhost:8000",
        description="Base URL for magic link generation",
    )
    app_name: str = Field(
        default="Invoicer",
        description="Application name for emails",
    )
