"""
Authentication provider client and session helpers.

The portal does not issue sessions itself: sign-in, token verification and
sign-out are delegated to the Supabase Auth REST API. The access token is
kept in an HTTP-only cookie and verified on every gated request.
"""

from typing import Any

import httpx
from fastapi import HTTPException, Request, status
from loguru import logger

from app.config import Settings, settings
from app.exceptions import AuthError
from app.models.auth import AuthSession, AuthUser


class SupabaseAuthProvider:
    """Thin client for the Supabase Auth (GoTrue) REST API."""

    def __init__(
        self,
        url: str,
        anon_key: str,
        timeout: float = 10.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.url = url.rstrip("/")
        self.anon_key = anon_key
        self.timeout = timeout
        self._transport = transport

    @classmethod
    def from_settings(cls, settings: Settings) -> "SupabaseAuthProvider":
        return cls(settings.SUPABASE_URL, settings.SUPABASE_ANON_KEY)

    @property
    def configured(self) -> bool:
        return bool(self.url and self.anon_key)

    def _client(self, access_token: str | None = None) -> httpx.AsyncClient:
        headers = {"apikey": self.anon_key}
        if access_token:
            headers["Authorization"] = f"Bearer {access_token}"
        return httpx.AsyncClient(
            base_url=f"{self.url}/auth/v1",
            timeout=self.timeout,
            headers=headers,
            transport=self._transport,
        )

    @staticmethod
    def _error_message(response: httpx.Response) -> str:
        try:
            body: Any = response.json()
        except ValueError:
            body = None
        if isinstance(body, dict):
            for key in ("error_description", "msg", "message", "error"):
                if body.get(key):
                    return str(body[key])
        return f"Authentication failed ({response.status_code})"

    async def sign_in(self, email: str, password: str) -> AuthSession:
        """
        Sign in with email and password.

        Raises:
            AuthError: If the provider is not configured or rejects the credentials
        """
        if not self.configured:
            raise AuthError("Authentication is not configured")
        try:
            async with self._client() as client:
                response = await client.post(
                    "/token",
                    params={"grant_type": "password"},
                    json={"email": email, "password": password},
                )
        except httpx.HTTPError as exc:
            logger.error(f"Authentication provider unreachable: {exc}")
            raise AuthError("Authentication service unavailable") from exc

        if not response.is_success:
            raise AuthError(self._error_message(response), response.status_code)
        return AuthSession.model_validate(response.json())

    async def get_user(self, access_token: str | None) -> AuthUser | None:
        """Return the user owning ``access_token``, or None if it is not valid."""
        if not access_token or not self.configured:
            return None
        try:
            async with self._client(access_token) as client:
                response = await client.get("/user")
        except httpx.HTTPError as exc:
            logger.error(f"Authentication provider unreachable: {exc}")
            return None
        if not response.is_success:
            logger.debug(f"Session rejected by provider ({response.status_code})")
            return None
        return AuthUser.model_validate(response.json())

    async def sign_out(self, access_token: str) -> None:
        """Revoke the session; failures are logged and ignored."""
        if not access_token or not self.configured:
            return
        try:
            async with self._client(access_token) as client:
                response = await client.post("/logout")
            if not response.is_success:
                logger.warning(f"Sign-out returned {response.status_code}")
        except httpx.HTTPError as exc:
            logger.warning(f"Sign-out failed: {exc}")


def session_token(request: Request) -> str | None:
    """Access token from the session cookie or a bearer ``Authorization`` header."""
    token = request.cookies.get(settings.SESSION_COOKIE_NAME)
    if token:
        return token
    header = request.headers.get("authorization", "")
    scheme, _, credentials = header.partition(" ")
    if scheme.lower() == "bearer" and credentials:
        return credentials.strip()
    return None


async def get_current_user(request: Request) -> AuthUser:
    """
    FastAPI dependency returning the authenticated user.

    Raises:
        HTTPException: 401 if the caller has no valid session
    """
    provider: SupabaseAuthProvider = request.app.state.auth_provider
    user = await provider.get_user(session_token(request))
    if user is None:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Not authenticated")
    return user
