"""Credit report endpoints: cache check, bureau session, fetch, read back."""

import logging

from fastapi import APIRouter, Depends, HTTPException, Request
from fastapi.responses import JSONResponse
from slowapi import Limiter
from slowapi.util import get_remote_address
from sqlalchemy.ext.asyncio import AsyncSession

from creditcheck.auth_utils import get_current_user
from creditcheck.config import settings
from creditcheck.database import get_db
from creditcheck.models.user import User
from creditcheck.schemas import (
    CacheCheckResponse,
    CreditReportResponse,
    FetchReportRequest,
    PdfLinkResponse,
    ProcessingResponse,
    ReportSummary,
    ScoreHistoryPoint,
    SessionStartRequest,
    SessionStartResponse,
)
from creditcheck.services import credit_report_service
from creditcheck.services.credit_bureau.adapter import (
    BureauError,
    ReportNotReadyError,
    get_credit_bureau,
)
from creditcheck.services.error_logger import log_error

logger = logging.getLogger(__name__)
router = APIRouter()
limiter = Limiter(key_func=get_remote_address)


@router.get("/check-cache", response_model=CacheCheckResponse)
async def check_cache(
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Tell the client whether a still-valid report exists for the caller."""
    report = await credit_report_service.check_cache(db, current_user.id)
    if report is None:
        return CacheCheckResponse(cached=False)
    return CacheCheckResponse(cached=True, report=ReportSummary.model_validate(report))


@router.post("/session", response_model=SessionStartResponse)
@limiter.limit(settings.session_start_rate_limit)
async def start_session(
    data: SessionStartRequest,
    request: Request,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Open a bureau verification session and hand back its redirect URL."""
    bureau = get_credit_bureau()
    try:
        session = await credit_report_service.start_session(
            current_user,
            first_name=data.first_name,
            mobile_number=data.mobile_number,
            bureau=bureau,
        )
    except BureauError as exc:
        await log_error(
            exc, db=db, source="credit_report.start_session",
            bureau_provider=bureau.provider_name, user_id=current_user.id,
        )
        raise HTTPException(status_code=502, detail="Failed to start verification. Please try again.")

    return SessionStartResponse(
        success=True,
        transaction_id=session.transaction_id,
        redirect_url=session.redirect_url,
    )


@router.post(
    "/fetch",
    response_model=ReportSummary,
    responses={202: {"model": ProcessingResponse}},
)
async def fetch_report(
    data: FetchReportRequest,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Pull the report for a bureau transaction; 202 while it is still being generated."""
    if not data.transaction_id:
        raise HTTPException(status_code=400, detail="Transaction ID is required")

    bureau = get_credit_bureau()
    try:
        report = await credit_report_service.fetch_and_save_report(
            db, current_user.id, data.transaction_id, bureau=bureau,
        )
    except ReportNotReadyError:
        logger.info("Report for transaction %s not ready yet", data.transaction_id)
        return JSONResponse(status_code=202, content=ProcessingResponse().model_dump())
    except BureauError as exc:
        await log_error(
            exc, db=db, source="credit_report.fetch",
            bureau_provider=bureau.provider_name,
            transaction_id=data.transaction_id, user_id=current_user.id,
        )
        raise HTTPException(status_code=502, detail="Failed to fetch credit report")

    return ReportSummary.model_validate(report)


@router.get("/my-report", response_model=CreditReportResponse)
async def get_my_report(
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    found = await credit_report_service.get_my_report(db, current_user.id)
    if found is None:
        raise HTTPException(status_code=404, detail="No active report found")
    report, history = found
    response = CreditReportResponse.model_validate(report)
    return response.model_copy(update={"history": [ScoreHistoryPoint(**h) for h in history]})


@router.get("/pdf", response_model=PdfLinkResponse)
async def get_my_pdf(
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    report = await credit_report_service.get_latest_pdf(db, current_user.id)
    if report is None:
        raise HTTPException(status_code=404, detail="Report not found")
    if report.pdf_spaces_url:
        return PdfLinkResponse(success=True, url=report.pdf_spaces_url)
    return PdfLinkResponse(success=False, status="PROCESSING", message="PDF is being generated")
