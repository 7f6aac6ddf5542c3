"""Credit report acquisition — cache lookup, bureau session, fetch-and-store.

The backend half of the credit-check handshake:

1. ``check_cache``: is there an unexpired report for this user?
2. ``start_session``: open a bureau verification session (user is redirected).
3. ``fetch_and_save_report``: after the bureau calls back with a transaction
   id, pull the report, summarise it, keep a PDF copy and persist it.
4. ``get_my_report`` / ``get_latest_pdf``: read the stored report back.
"""

import logging
from datetime import datetime, timedelta, timezone
from typing import Any, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from creditcheck.config import settings
from creditcheck.models.credit_report import CreditReport, as_utc
from creditcheck.models.inquiry import CreditCheckInquiry
from creditcheck.models.user import User
from creditcheck.services import pdf_storage
from creditcheck.services.credit_bureau.adapter import (
    BureauError,
    BureauSession,
    CreditBureauAdapter,
    get_credit_bureau,
)

logger = logging.getLogger(__name__)


class ReportDataMissingError(BureauError):
    """The bureau answered but the payload carries no CIR report data."""


# ── Payload helpers ─────────────────────────────────────────


def _to_int(value: Any) -> int:
    try:
        return int(float(value))
    except (TypeError, ValueError):
        return 0


def _to_float(value: Any) -> float:
    try:
        return float(value)
    except (TypeError, ValueError):
        return 0.0


def extract_cir_report_data(payload: dict | None) -> dict | None:
    """Return ``credit_report.CCRResponse.CIRReportDataLst[0].CIRReportData`` or None."""
    try:
        return payload["credit_report"]["CCRResponse"]["CIRReportDataLst"][0]["CIRReportData"] or None
    except (KeyError, IndexError, TypeError):
        return None


def summarise_report(payload: dict) -> dict:
    """Derive the summary columns stored alongside the raw payload."""
    cir = extract_cir_report_data(payload)
    if cir is None:
        raise ReportDataMissingError("Credit report data missing in response")

    summary = cir.get("RetailAccountsSummary") or {}
    enquiry = cir.get("EnquirySummary") or {}
    total_accounts = _to_int(summary.get("NoOfAccounts"))
    active_accounts = _to_int(summary.get("NoOfActiveAccounts"))

    return {
        "credit_score": _to_int(payload.get("credit_score")),
        "total_accounts": total_accounts,
        "active_accounts": active_accounts,
        "closed_accounts": max(total_accounts - active_accounts, 0),
        "total_balance": _to_float(summary.get("TotalBalanceAmount")),
        "total_overdue": _to_float(summary.get("TotalPastDue")),
        "total_sanction_amount": _to_float(summary.get("TotalSanctionAmount")),
        "total_monthly_payment": _to_float(summary.get("TotalMonthlyPaymentAmount")),
        "no_of_write_offs": _to_int(summary.get("NoOfWriteOffs")),
        "oldest_account_date": summary.get("OldestAccount") or None,
        "newest_account_date": summary.get("RecentAccount") or None,
        "enquiry_count": _to_int(enquiry.get("Total")),
        "enquiry_past_30_days": _to_int(enquiry.get("Past30Days")),
        "enquiry_past_12_months": _to_int(enquiry.get("Past12Months")),
    }


def _months_ago(now: datetime, months: int) -> datetime:
    year, month = now.year, now.month - months
    while month <= 0:
        month += 12
        year -= 1
    return now.replace(year=year, month=month, day=min(now.day, 28))


# ── Cache ───────────────────────────────────────────────────


async def check_cache(db: AsyncSession, user_id: int) -> Optional[CreditReport]:
    """Most recently fetched report for ``user_id`` that has not expired yet."""
    now = datetime.now(timezone.utc)
    result = await db.execute(
        select(CreditReport)
        .where(CreditReport.user_id == user_id, CreditReport.expires_at > now)
        .order_by(CreditReport.fetched_at.desc(), CreditReport.id.desc())
        .limit(1)
    )
    return result.scalar_one_or_none()


# ── Bureau session ──────────────────────────────────────────


async def start_session(
    user: User,
    first_name: Optional[str] = None,
    mobile_number: Optional[str] = None,
    bureau: Optional[CreditBureauAdapter] = None,
) -> BureauSession:
    """Open a verification session; form values win over the user's profile."""
    bureau = bureau or get_credit_bureau()
    name = first_name or user.first_name
    mobile = mobile_number or user.phone or ""
    session = await bureau.create_session(name, mobile)
    logger.info(
        "Bureau session started for user %s via %s (transaction %s)",
        user.id, bureau.provider_name, session.transaction_id or "pending",
    )
    return session


# ── Fetch and store ─────────────────────────────────────────


async def _copy_pdf(
    bureau: CreditBureauAdapter, pdf_url: str, user_id: int, pan: Optional[str]
) -> tuple[Optional[str], Optional[str]]:
    """Best effort: a failed copy leaves the report without a stored PDF."""
    try:
        content = await bureau.download_pdf(pdf_url)
        return pdf_storage.save_pdf(content, user_id, (pan or "XXXX")[-4:])
    except (BureauError, ValueError, OSError) as exc:
        logger.warning("Could not store credit report PDF for user %s: %s", user_id, exc)
        return None, None


async def _release_previous_pdf(db: AsyncSession, user_id: int) -> None:
    """Delete the stored PDF of the report about to be superseded; keep the row."""
    result = await db.execute(
        select(CreditReport)
        .where(CreditReport.user_id == user_id, CreditReport.pdf_spaces_path.is_not(None))
        .order_by(CreditReport.fetched_at.desc())
    )
    for previous in result.scalars().all():
        try:
            pdf_storage.delete_pdf(previous.pdf_spaces_path)
        except OSError as exc:
            logger.error("Failed to delete previous PDF for report %s: %s", previous.id, exc)
            continue
        previous.pdf_spaces_path = None
        previous.pdf_spaces_url = None
        logger.info("Deleted previous PDF for report %s", previous.id)


async def fetch_and_save_report(
    db: AsyncSession,
    user_id: int,
    transaction_id: str,
    bureau: Optional[CreditBureauAdapter] = None,
) -> CreditReport:
    """Pull the report for ``transaction_id`` and persist it.

    Returns the cached report instead when one is still valid. Raises
    ReportNotReadyError while the bureau is still generating the report and
    BureauError for any other bureau failure.
    """
    cached = await check_cache(db, user_id)
    if cached is not None:
        logger.info("Report for user %s already cached (report %s)", user_id, cached.id)
        return cached

    bureau = bureau or get_credit_bureau()
    payload = await bureau.fetch_report(transaction_id)
    if not payload:
        raise BureauError("Invalid response from credit bureau")
    summary = summarise_report(payload)

    pdf_path, pdf_url = None, None
    if payload.get("pdf_url"):
        pdf_path, pdf_url = await _copy_pdf(bureau, payload["pdf_url"], user_id, payload.get("pan"))

    await _release_previous_pdf(db, user_id)

    now = datetime.now(timezone.utc)
    report = CreditReport(
        user_id=user_id,
        provider=bureau.provider_name,
        transaction_id=transaction_id,
        subject_name=payload.get("name"),
        subject_mobile=payload.get("mobile"),
        subject_pan=payload.get("pan"),
        full_report=payload.get("raw_data") or {
            k: v for k, v in payload.items() if k != "raw_data"
        },
        pdf_original_url=payload.get("pdf_url"),
        pdf_spaces_path=pdf_path,
        pdf_spaces_url=pdf_url,
        fetched_at=now,
        expires_at=now + timedelta(days=settings.report_validity_days),
        **summary,
    )
    db.add(report)
    await db.flush()
    logger.info(
        "Stored credit report %s for user %s (score %s, expires %s)",
        report.id, user_id, report.credit_score, report.expires_at.isoformat(),
    )
    return report


# ── Read back ───────────────────────────────────────────────


async def get_score_history(db: AsyncSession, user_id: int) -> list[dict]:
    """Scores fetched within the last ``report_history_months`` months, oldest first."""
    since = _months_ago(datetime.now(timezone.utc), settings.report_history_months)
    result = await db.execute(
        select(CreditReport.fetched_at, CreditReport.credit_score)
        .where(CreditReport.user_id == user_id, CreditReport.fetched_at >= since)
        .order_by(CreditReport.fetched_at.asc())
    )
    return [
        {"month": as_utc(fetched_at).strftime("%b"), "score": score, "date": as_utc(fetched_at)}
        for fetched_at, score in result.all()
    ]


async def get_my_report(db: AsyncSession, user_id: int) -> Optional[tuple[CreditReport, list[dict]]]:
    """The cached report plus its score history, or None when nothing is valid."""
    report = await check_cache(db, user_id)
    if report is None:
        return None
    return report, await get_score_history(db, user_id)


async def get_latest_pdf(db: AsyncSession, user_id: int) -> Optional[CreditReport]:
    """Latest report regardless of expiry; its ``pdf_spaces_url`` may still be empty."""
    result = await db.execute(
        select(CreditReport)
        .where(CreditReport.user_id == user_id)
        .order_by(CreditReport.fetched_at.desc(), CreditReport.id.desc())
        .limit(1)
    )
    return result.scalar_one_or_none()


# ── Leads ───────────────────────────────────────────────────


async def record_lead(
    db: AsyncSession,
    *,
    first_name: str,
    mobile_number: str,
    consent: bool = True,
    user_id: Optional[int] = None,
    ip_address: Optional[str] = None,
    user_agent: Optional[str] = None,
) -> CreditCheckInquiry:
    inquiry = CreditCheckInquiry(
        user_id=user_id,
        first_name=first_name,
        mobile_number=mobile_number,
        consent=consent is not False,
        ip_address=ip_address,
        user_agent=(user_agent or "")[:500] or None,
    )
    db.add(inquiry)
    await db.flush()
    logger.info("Credit-check lead %s captured", inquiry.id)
    return inquiry
