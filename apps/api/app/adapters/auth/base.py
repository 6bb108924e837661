"""Bearer token verification interfaces."""

from abc import ABC, abstractmethod

from app.schemas.auth import AuthPrincipal


class AuthVerificationError(Exception):
    """Raised when a bearer token cannot be verified or lacks a user identity."""


class TokenVerifier(ABC):
    """Turns a client bearer token into the user that owns dreams, jobs and usage."""

    @abstractmethod
    def verify_token(self, token: str) -> AuthPrincipal:
        """Verify token and return normalized principal."""


__all__ = ["AuthVerificationError", "TokenVerifier"]
