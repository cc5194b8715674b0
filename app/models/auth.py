"""
Authentication models for the PDF → ASYCUDA XML portal.
"""

from pydantic import BaseModel, ConfigDict, Field


class AuthUser(BaseModel):
    """User returned by the authentication provider."""

    model_config = ConfigDict(extra="ignore")

    id: str = Field(..., description="Provider user identifier")
    email: str | None = Field(default=None, description="User email address")


class AuthSession(BaseModel):
    """Session issued on sign-in."""

    model_config = ConfigDict(extra="ignore")

    access_token: str
    refresh_token: str | None = None
    expires_in: int | None = None
    user: AuthUser
