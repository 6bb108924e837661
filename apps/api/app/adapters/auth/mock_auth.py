"""Mock bearer verifier for local development and tests."""

from app.adapters.auth.base import AuthVerificationError, TokenVerifier
from app.schemas.auth import AuthPrincipal

_TOKEN_PREFIX = "test:"


class MockTokenVerifier(TokenVerifier):
    """Accepts ``test:<user_id>`` tokens only."""

    def verify_token(self, token: str) -> AuthPrincipal:
        if not token.startswith(_TOKEN_PREFIX):
            raise AuthVerificationError("Invalid bearer token")

        user_id = token[len(_TOKEN_PREFIX):].strip()
        if not user_id or ":" in user_id:
            raise AuthVerificationError("Bearer token missing user identity")

        return AuthPrincipal(user_id=user_id, issuer="mock")


__all__ = ["MockTokenVerifier"]
