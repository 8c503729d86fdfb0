"""Rate limiting for magic link requests.

Each attempt restarts the window, so a client that keeps hammering keeps
itself locked out.
"""

from clients.valkey_client import ValkeyClient
from auth.config import AuthConfig
from auth.exceptions import RateLimitedError


class RateLimiter:
    """Per-key attempt counter in Valkey."""

    def __init__(self, valkey: ValkeyClient, key_prefix: str, attempts: int, window_seconds: int):
        self._valkey = valkey
        self._key_prefix = key_prefix
        self._attempts = attempts
        self._window_seconds = window_seconds

    @classmethod
    def for_magic_links(cls, valkey: ValkeyClient, config: AuthConfig) -> "RateLimiter":
        """Limit link requests per email address."""
        return cls(
            valkey,
            "ratelimit:magic_link:",
            config.rate_limit_attempts,
            config.rate_limit_window_minutes * 60,
        )

    @classmethod
    def for_enumeration(cls, valkey: ValkeyClient, config: AuthConfig) -> "RateLimiter":
        """Limit unknown-email probes per client IP."""
        return cls(
            valkey,
            "ratelimit:enumeration:",
            config.enumeration_limit,
            config.rate_limit_window_minutes * 60,
        )

    def _key(self, subject: str) -> str:
        return f"{self._key_prefix}{subject.lower()}"

    def _retry_after(self, key: str) -> int:
        return max(self._valkey.ttl(key), 1)

    def check_rate_limit(self, subject: str) -> None:
        """Count an attempt and reject it if the limit is exceeded.

        Raises:
            RateLimitedError: If rate limit exceeded.
        """
        key = self._key(subject)
        count = self._valkey.incr_window(key, self._window_seconds)

        if count > self._attempts:
            raise RateLimitedError(retry_after_seconds=self._retry_after(key))

    def ensure_not_blocked(self, subject: str) -> None:
        """Reject without counting if the limit is already reached.

        Raises:
            RateLimitedError: If the subject is currently blocked.
        """
        key = self._key(subject)
        current = self._valkey.get(key)

        if current is not None and int(current) >= self._attempts:
            raise RateLimitedError(retry_after_seconds=self._retry_after(key))

    def record_attempt(self, subject: str) -> None:
        """Count an attempt without checking it."""
        self._valkey.incr_window(self._key(subject), self._window_seconds)

    def reset_rate_limit(self, subject: str) -> None:
        """Reset after a successful login."""
        self._valkey.delete(self._key(subject))

    def get_remaining_attempts(self, subject: str) -> int:
        """Get remaining attempts before rate limit."""
        current = self._valkey.get(self._key(subject))

        if current is None:
            return self._attempts

        return max(self._attempts - int(current), 0)
