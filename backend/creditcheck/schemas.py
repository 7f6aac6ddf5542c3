"""Pydantic schemas for request/response validation."""

from datetime import datetime
from typing import Any, Optional, Literal
from pydantic import BaseModel, ConfigDict, Field, field_validator

from creditcheck.utils.validators import is_valid_mobile, is_valid_name, normalize_mobile


# ── Credit-check form ─────────────────────────────────

class SessionStartRequest(BaseModel):
    """Body of ``POST /credit-report/session``; falls back to the profile when blank."""
    model_config = ConfigDict(populate_by_name=True)

    first_name: Optional[str] = Field(None, alias="firstName", max_length=100)
    mobile_number: Optional[str] = Field(None, alias="mobileNumber", max_length=20)


class SessionStartResponse(BaseModel):
    success: bool
    transaction_id: Optional[str] = None
    redirect_url: Optional[str] = None
    message: Optional[str] = None


class LeadCaptureRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    first_name: str = Field(alias="firstName", min_length=1, max_length=100)
    mobile_number: str = Field(alias="mobileNumber", min_length=10, max_length=20)
    consent: bool = True

    @field_validator("first_name")
    @classmethod
    def _check_name(cls, v: str) -> str:
        if not is_valid_name(v):
            raise ValueError("Name should contain only letters")
        return v.strip()

    @field_validator("mobile_number")
    @classmethod
    def _check_mobile(cls, v: str) -> str:
        if not is_valid_mobile(v):
            raise ValueError("Invalid mobile number")
        return normalize_mobile(v)


class LeadCaptureResponse(BaseModel):
    success: bool = True
    id: int


# ── Credit report ─────────────────────────────────────

class FetchReportRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    transaction_id: Optional[str] = Field(None, alias="transactionId", max_length=100)


class ReportSummary(BaseModel):
    """Summary returned by the cache check and the fetch endpoint (no PII)."""
    model_config = ConfigDict(from_attributes=True)

    credit_score: int
    total_accounts: int
    active_accounts: int
    closed_accounts: int = 0
    total_balance: float
    total_overdue: float = 0
    total_sanction_amount: float = 0
    no_of_write_offs: int = 0
    oldest_account_date: Optional[str] = None
    newest_account_date: Optional[str] = None
    enquiry_count: int = 0
    enquiry_past_30_days: int = 0
    enquiry_past_12_months: int = 0
    fetched_at: Optional[datetime] = None
    expires_at: datetime
    pdf_spaces_url: Optional[str] = None


class CacheCheckResponse(BaseModel):
    cached: bool
    report: Optional[ReportSummary] = None


class ProcessingResponse(BaseModel):
    status: Literal["PROCESSING"] = "PROCESSING"
    message: str = "Report is being processed, please try again later"


class ScoreHistoryPoint(BaseModel):
    month: str
    score: int
    date: datetime


class CreditReportResponse(ReportSummary):
    id: int
    user_id: int
    provider: str
    transaction_id: Optional[str] = None
    total_monthly_payment: float = 0
    subject_name: Optional[str] = None
    subject_mobile: Optional[str] = None
    subject_pan: Optional[str] = None
    pdf_original_url: Optional[str] = None
    full_report: Optional[dict[str, Any]] = None
    history: list[ScoreHistoryPoint] = []


class PdfLinkResponse(BaseModel):
    success: bool
    url: Optional[str] = None
    status: Optional[Literal["PROCESSING"]] = None
    message: Optional[str] = None
