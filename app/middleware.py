"""
Custom middleware for the PDF → ASYCUDA XML portal.

This module contains the request logging middleware and the session gate
protecting the HTML pages.
"""

import time
import uuid
from typing import Any

from fastapi import Request
from fastapi.responses import RedirectResponse
from loguru import logger

from app.services.auth import session_token

# Paths that are never redirected by the page gate. API routes enforce
# authentication themselves and answer 401.
PUBLIC_PREFIXES = ("/login", "/auth", "/static", "/api", "/docs", "/redoc", "/openapi.json")


class LoggingMiddleware:
    """
    Custom logging middleware for request/response logging.

    This middleware logs all incoming requests and outgoing responses
    with timing information and request IDs for better debugging.
    """

    def __init__(self, app: Any) -> None:
        self.app = app

    async def __call__(self, scope: dict[str, Any], receive: Any, send: Any) -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        request_id = str(uuid.uuid4())[:8]
        scope["request_id"] = request_id
        start_time = time.time()
        status_code = 500

        request = Request(scope, receive)
        logger.info(
            f"[{request_id}] {request.method} {request.url.path} - "
            f"Client: {request.client.host if request.client else 'unknown'}"
        )

        async def send_wrapper(message: dict[str, Any]) -> None:
            nonlocal status_code
            if message["type"] == "http.response.start":
                status_code = message["status"]
            await send(message)

        try:
            await self.app(scope, receive, send_wrapper)
        finally:
            process_time = time.time() - start_time
            logger.info(f"[{request_id}] {status_code} in {process_time:.3f}s")


class SessionGateMiddleware:
    """
    Redirect page requests to the sign-in form when there is no valid session.

    Signed-in users visiting ``/login`` are sent to the upload page.
    """

    def __init__(self, app: Any) -> None:
        self.app = app

    @staticmethod
    def _is_public(path: str) -> bool:
        return any(path == prefix or path.startswith(prefix.rstrip("/") + "/") for prefix in PUBLIC_PREFIXES)

    async def __call__(self, scope: dict[str, Any], receive: Any, send: Any) -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        path = scope.get("path", "")
        is_login = path == "/login"
        if self._is_public(path) and not is_login:
            await self.app(scope, receive, send)
            return

        request = Request(scope, receive)
        provider = scope["app"].state.auth_provider
        user = await provider.get_user(session_token(request))

        if is_login:
            # Only the form itself bounces signed-in users; POST /login proceeds
            if user is not None and request.method == "GET":
                response = RedirectResponse(url="/", status_code=303)
                await response(scope, receive, send)
                return
            await self.app(scope, receive, send)
            return

        if user is None:
            logger.debug(f"Anonymous request to {path}, redirecting to /login")
            response = RedirectResponse(url="/login", status_code=303)
            await response(scope, receive, send)
            return

        scope.setdefault("state", {})["user"] = user
        await self.app(scope, receive, send)
