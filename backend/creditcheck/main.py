"""Credit-check backend - FastAPI Entry Point."""

import logging
import os
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, Response
from fastapi.middleware.cors import CORSMiddleware
from fastapi.staticfiles import StaticFiles
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint

from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded

from creditcheck import __version__
from creditcheck.config import settings
from creditcheck.database import engine, Base
from creditcheck.middleware.error_capture import ErrorCaptureMiddleware
from creditcheck.api import client, credit_report
from creditcheck.services.credit_bureau.adapter import get_credit_bureau

logging.basicConfig(
    level=getattr(logging, settings.log_level.upper(), logging.INFO),
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Create missing tables on startup, dispose the engine on shutdown."""
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    logger.info(
        "Credit-check API %s starting (environment=%s, bureau=%s)",
        __version__, settings.environment, settings.credit_bureau_provider,
    )
    yield
    await engine.dispose()


app = FastAPI(
    title="Credit Check API",
    description="Credit-bureau report acquisition for the consumer lending site",
    version=__version__,
    lifespan=lifespan,
)

app.state.limiter = credit_report.limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)


BASE_HEADERS = {
    "X-Content-Type-Options": "nosniff",
    "X-Frame-Options": "DENY",
    "Referrer-Policy": "no-referrer",
}


class ReportHeadersMiddleware(BaseHTTPMiddleware):
    """Hardening headers; report payloads carry PAN and account data and are never cached."""

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        response = await call_next(request)
        response.headers.update(BASE_HEADERS)
        if request.url.path.startswith("/api/credit-report"):
            response.headers["Cache-Control"] = "no-store"
        if settings.environment != "development":
            response.headers["Strict-Transport-Security"] = "max-age=31536000"
        return response


# Added last runs first, so error capture wraps everything below it
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origin_list,
    allow_credentials=True,
    allow_methods=["GET", "POST", "OPTIONS"],
    allow_headers=["Authorization", "Content-Type"],
)
app.add_middleware(ReportHeadersMiddleware)
app.add_middleware(ErrorCaptureMiddleware)

# Routers
app.include_router(credit_report.router, prefix="/api/credit-report", tags=["Credit Report"])
app.include_router(client.router, prefix="/api/client", tags=["Client"])

# Stored report PDFs
os.makedirs(settings.upload_dir, exist_ok=True)
app.mount("/files", StaticFiles(directory=settings.upload_dir), name="files")


@app.get("/api/health")
async def health_check():
    bureau = get_credit_bureau()
    return {
        "status": "healthy",
        "service": "creditcheck-api",
        "version": __version__,
        "bureau": {"provider": bureau.provider_name, "reachable": await bureau.check_health()},
    }
