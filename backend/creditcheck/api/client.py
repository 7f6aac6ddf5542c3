"""Public marketing-site endpoints; only the credit-check lead lives here."""

from fastapi import APIRouter, Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from creditcheck.auth_utils import get_optional_user
from creditcheck.database import get_db
from creditcheck.models.user import User
from creditcheck.schemas import LeadCaptureRequest, LeadCaptureResponse
from creditcheck.services import credit_report_service

router = APIRouter()


def _client_ip(request: Request) -> str | None:
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        return forwarded.split(",")[0].strip()
    return request.client.host if request.client else None


@router.post("/credit-check", response_model=LeadCaptureResponse, status_code=201)
async def create_credit_check_inquiry(
    data: LeadCaptureRequest,
    request: Request,
    current_user: User | None = Depends(get_optional_user),
    db: AsyncSession = Depends(get_db),
):
    """Record a credit-check lead. Validation errors come back as 422."""
    inquiry = await credit_report_service.record_lead(
        db,
        first_name=data.first_name,
        mobile_number=data.mobile_number,
        consent=data.consent,
        user_id=current_user.id if current_user else None,
        ip_address=_client_ip(request),
        user_agent=request.headers.get("user-agent"),
    )
    return LeadCaptureResponse(id=inquiry.id)
