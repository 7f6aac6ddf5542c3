"""Records server-side failures in error_logs.

Request bodies are never captured: the credit-check endpoints carry names
and mobile numbers.
"""

from __future__ import annotations

import logging
import time

from fastapi import HTTPException, Request, Response
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.responses import JSONResponse

from creditcheck.auth_utils import _user_id_from_token
from creditcheck.models.error_log import ErrorSeverity
from creditcheck.services.error_logger import log_error_standalone

logger = logging.getLogger("creditcheck.middleware")

# Bureau failures surface as 502 and are logged by the route with their transaction
ALREADY_RECORDED = {502}


class ErrorCaptureMiddleware(BaseHTTPMiddleware):
    """Turns unhandled exceptions into a bare 500 and persists them."""

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        started = time.perf_counter()
        try:
            response = await call_next(request)
        except HTTPException:
            raise
        except Exception as exc:
            logger.exception("Unhandled exception on %s %s", request.method, request.url.path)
            fatal = "database" in str(exc).lower()
            await self._record(
                request, exc, 500, started,
                ErrorSeverity.CRITICAL if fatal else ErrorSeverity.ERROR,
            )
            return JSONResponse(status_code=500, content={"detail": "Internal Server Error"})

        if response.status_code >= 500 and response.status_code not in ALREADY_RECORDED:
            failure = RuntimeError(f"{request.method} {request.url.path} answered {response.status_code}")
            await self._record(request, failure, response.status_code, started, ErrorSeverity.ERROR)
        return response

    @staticmethod
    async def _record(request, exc, status_code, started, severity):
        scheme, _, token = request.headers.get("authorization", "").partition(" ")
        await log_error_standalone(
            exc,
            severity=severity,
            source="middleware.error_capture",
            request_method=request.method,
            request_path=request.url.path,
            status_code=status_code,
            response_time_ms=round((time.perf_counter() - started) * 1000, 2),
            user_id=_user_id_from_token(token) if scheme.lower() == "bearer" and token else None,
            ip_address=request.client.host if request.client else None,
        )
