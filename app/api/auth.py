"""
Login and logout pages.

Credentials are checked by the authentication provider; on success the
access token is stored in an HTTP-only session cookie.
"""

import re
from urllib.parse import quote

from fastapi import APIRouter, Form, Request
from fastapi.responses import HTMLResponse, RedirectResponse
from loguru import logger

from app.config import settings
from app.exceptions import AuthError
from app.services.auth import SupabaseAuthProvider, session_token
from app.templating import templates

router = APIRouter()

EMAIL_PATTERN = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")


def _login_error(message: str) -> RedirectResponse:
    return RedirectResponse(url=f"/login?error={quote(message)}", status_code=303)


@router.get("/login", response_class=HTMLResponse, include_in_schema=False)
async def login_page(request: Request, error: str | None = None):
    """Serve the sign-in form."""
    return templates.TemplateResponse(
        request,
        "login.html",
        {"error": error, "app_name": settings.APP_NAME},
    )


@router.post("/login", include_in_schema=False)
async def login(
    request: Request,
    email: str = Form(""),
    password: str = Form(""),
):
    """Sign in and open a session."""
    email = email.strip()
    if not email or not password:
        return _login_error("Email and password are required")
    if not EMAIL_PATTERN.match(email):
        return _login_error("Invalid email address")

    provider: SupabaseAuthProvider = request.app.state.auth_provider
    try:
        session = await provider.sign_in(email, password)
    except AuthError as exc:
        logger.info(f"Sign-in refused for {email}: {exc.message}")
        return _login_error(exc.message)

    logger.info(f"User {session.user.id} signed in")
    response = RedirectResponse(url="/", status_code=303)
    response.set_cookie(
        key=settings.SESSION_COOKIE_NAME,
        value=session.access_token,
        max_age=session.expires_in or settings.SESSION_MAX_AGE,
        httponly=True,
        samesite="lax",
        secure=settings.ENVIRONMENT == "production",
    )
    return response


@router.post("/logout", include_in_schema=False)
async def logout(request: Request):
    """Close the session and return to the sign-in form."""
    provider: SupabaseAuthProvider = request.app.state.auth_provider
    token = session_token(request)
    if token:
        # The user's server-side batch goes with the session
        user = await provider.get_user(token)
        if user is not None:
            request.app.state.batches.discard(user.id)
            logger.info(f"User {user.id} signed out")
        await provider.sign_out(token)

    response = RedirectResponse(url="/login", status_code=303)
    response.delete_cookie(settings.SESSION_COOKIE_NAME)
    return response
