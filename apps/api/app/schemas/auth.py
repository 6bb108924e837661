"""Authentication schemas."""

from pydantic import BaseModel, Field


class AuthPrincipal(BaseModel):
    """Normalized authenticated user passed to business services."""

    user_id: str = Field(min_length=1)
    issuer: str = Field(default="mock", min_length=1)
