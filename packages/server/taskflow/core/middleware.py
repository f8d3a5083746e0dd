"""
Security middleware: CSRF protection, security headers, input sanitization.
"""

from __future__ import annotations

import json
from typing import Any

import bleach
import structlog
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import JSONResponse, Response
from starlette.types import ASGIApp, Message, Receive, Scope, Send

from taskflow.core.auth import CSRF_COOKIE, SESSION_COOKIE

log = structlog.get_logger()

SAFE_METHODS = {"GET", "HEAD", "OPTIONS"}

# ---------------------------------------------------------------------------
# Security Headers
# ---------------------------------------------------------------------------

SECURITY_HEADERS = {
    "X-Content-Type-Options": "nosniff",
    "X-Frame-Options": "DENY",
    "X-XSS-Protection": "0",
    "Referrer-Policy": "strict-origin-when-cross-origin",
    "Permissions-Policy": "camera=(), microphone=(), geolocation=()",
    "Content-Security-Policy": "default-src 'self'; frame-ancestors 'none';",
    "Strict-Transport-Security": "max-age=63072000; includeSubDomains; preload",
}


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    """Attach security headers to every response."""

    async def dispatch(self, request: Request, call_next) -> Response:
        response = await call_next(request)
        for header, value in SECURITY_HEADERS.items():
            response.headers[header] = value
        return response


# ---------------------------------------------------------------------------
# CSRF Protection (Double-Submit Cookie)
# ---------------------------------------------------------------------------

class CSRFMiddleware(BaseHTTPMiddleware):
    """
    Double-submit cookie CSRF protection.

    Skipped for:
    - Safe HTTP methods (GET, HEAD, OPTIONS)
    - Requests with Authorization header (Bearer token, not cookie-based)
    - Requests without a session cookie
    """

    async def dispatch(self, request: Request, call_next) -> Response:
        if request.method in SAFE_METHODS:
            return await call_next(request)

        if request.headers.get("Authorization"):
            return await call_next(request)

        if SESSION_COOKIE not in request.cookies:
            return await call_next(request)

        cookie_token = request.cookies.get(CSRF_COOKIE)
        header_token = request.headers.get("X-CSRF-Token")

        if not cookie_token or not header_token or cookie_token != header_token:
            return JSONResponse(
                status_code=403,
                content={
                    "error": {
                        "code": "CSRF_VALIDATION_FAILED",
                        "message": "Invalid or missing CSRF token.",
                        "status": 403,
                    }
                },
            )

        return await call_next(request)


# ---------------------------------------------------------------------------
# Input sanitization
# ---------------------------------------------------------------------------

# Secrets are compared byte-for-byte and must reach the handler untouched.
UNSANITIZED_KEYS = {"password", "current_password", "new_password", "token"}


def sanitize_string(value: str) -> str:
    """Strip every HTML tag from a plain-text value."""
    if "<" not in value:
        return value
    return bleach.clean(value, tags=[], attributes={}, strip=True)


def sanitize_value(value: Any) -> Any:
    """Recursively sanitize string values in decoded JSON."""
    if isinstance(value, str):
        return sanitize_string(value)
    if isinstance(value, list):
        return [sanitize_value(item) for item in value]
    if isinstance(value, dict):
        return {
            key: item if key in UNSANITIZED_KEYS else sanitize_value(item)
            for key, item in value.items()
        }
    return value


class SanitizeInputMiddleware:
    """Rewrite JSON request bodies with HTML stripped from string fields.

    Pure ASGI so the rewritten body can be replayed to the app.
    """

    def __init__(self, app: ASGIApp):
        self.app = app

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http" or scope["method"] in SAFE_METHODS:
            await self.app(scope, receive, send)
            return

        headers = dict(scope.get("headers") or [])
        content_type = headers.get(b"content-type", b"").decode("latin-1")
        if not content_type.startswith("application/json"):
            await self.app(scope, receive, send)
            return

        chunks = []
        more_body = True
        while more_body:
            message = await receive()
            if message["type"] != "http.request":
                # Client went away mid-body; let the app see the disconnect.
                await self.app(scope, _replay([message]), send)
                return
            chunks.append(message.get("body", b""))
            more_body = message.get("more_body", False)
        body = b"".join(chunks)

        try:
            cleaned = json.dumps(sanitize_value(json.loads(body))).encode()
        except ValueError:
            # Malformed JSON is left for the framework to reject with 422.
            cleaned = body

        scope = dict(scope)
        scope["headers"] = [
            (k, str(len(cleaned)).encode() if k == b"content-length" else v)
            for k, v in scope.get("headers") or []
        ]
        await self.app(
            scope,
            _replay([{"type": "http.request", "body": cleaned, "more_body": False}], receive),
            send,
        )


def _replay(messages: list[Message], receive: Receive | None = None) -> Receive:
    pending = list(messages)

    async def _receive() -> Message:
        if pending:
            return pending.pop(0)
        if receive is not None:
            return await receive()
        return {"type": "http.disconnect"}

    return _receive
