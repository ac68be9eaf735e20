"""Bearer token authentication for console and API callers."""

from __future__ import annotations

import secrets
from threading import RLock
from typing import Optional

from backend.utils.config import Settings, get_settings
from backend.utils.logger import get_logger


logger = get_logger(__name__)


class AuthenticationError(Exception):
    """Base authentication failure."""


class LoginNotConfiguredError(AuthenticationError):
    """Raised when LOGIN_SECRET is missing."""


class InvalidLoginSecretError(AuthenticationError):
    """Raised when the provided login secret is wrong."""


class InvalidTokenError(AuthenticationError):
    """Raised when a bearer token is unknown."""


class AuthService:
    """Issues session tokens and resolves bearer tokens to user emails."""

    def __init__(self, settings: Optional[Settings] = None) -> None:
        self._settings = settings or get_settings()
        self._sessions: dict[str, str] = {}
        self._lock = RLock()

    @property
    def trusts_bearer_email(self) -> bool:
        return self._settings.auth_trust_bearer_email

    def _expected_secret(self) -> str:
        if not self._settings.login_secret:
            raise LoginNotConfiguredError(
                "LOGIN_SECRET is not configured. Set LOGIN_SECRET in environment variables."
            )
        return self._settings.login_secret

    def login(self, email: str, provided_secret: str) -> str:
        expected = self._expected_secret()
        if not secrets.compare_digest(provided_secret, expected):
            raise InvalidLoginSecretError("Invalid login secret")
        token = secrets.token_urlsafe(32)
        with self._lock:
            self._sessions[token] = email.strip().lower()
        logger.info("Issued session token for %s", email)
        return token

    def logout(self, bearer_token: str) -> None:
        with self._lock:
            self._sessions.pop(bearer_token, None)

    def resolve_bearer_token(self, bearer_token: str) -> str:
        """Return the email the token belongs to."""
        token = bearer_token.strip()
        if not token:
            raise InvalidTokenError("Empty bearer token")
        with self._lock:
            for known_token, email in self._sessions.items():
                if secrets.compare_digest(known_token, token):
                    return email
        if self.trusts_bearer_email and "@" in token:
            return token.lower()
        raise InvalidTokenError("Invalid bearer token")
