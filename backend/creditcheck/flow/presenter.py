"""Projection of a stored credit report into what the report view shows.

Everything here is pure. The bureau payload is deeply nested and any level
of it may be missing, so every lookup goes through ``_dig`` and absent
values come out as ``NO_DATA`` rather than raising.
"""

import enum
from dataclasses import dataclass, field
from typing import Any, Optional

NO_DATA = "N/A"
HISTORY_MONTHS = 48


class PaymentBucket(str, enum.Enum):
    GOOD = "good"
    NEW = "new"
    CLOSED = "closed"
    DPD_1_30 = "dpd_1_30"
    DPD_31_60 = "dpd_31_60"
    DPD_61_PLUS = "dpd_61_plus"
    WRITTEN_OFF = "written_off"
    UNKNOWN = "unknown"


GOOD_STATUSES = frozenset({"000", "STD", "XXX"})
WRITTEN_OFF_STATUSES = frozenset({"SUB", "DBT", "LSS"})


def classify_payment_status(status: Optional[str]) -> PaymentBucket:
    if not status:
        return PaymentBucket.UNKNOWN
    status = status.strip()
    if status in GOOD_STATUSES:
        return PaymentBucket.GOOD
    if status == "NEW":
        return PaymentBucket.NEW
    if status == "CLSD":
        return PaymentBucket.CLOSED
    if status.isdigit():
        dpd = int(status)
        if dpd > 0:
            if dpd <= 30:
                return PaymentBucket.DPD_1_30
            if dpd <= 60:
                return PaymentBucket.DPD_31_60
            return PaymentBucket.DPD_61_PLUS
    if status in WRITTEN_OFF_STATUSES:
        return PaymentBucket.WRITTEN_OFF
    return PaymentBucket.UNKNOWN


@dataclass(frozen=True)
class PaymentCell:
    month: str
    status: str
    bucket: PaymentBucket


@dataclass
class AccountView:
    institution: str
    account_type: str
    masked_number: str
    category: str
    current_balance: str
    past_due: str
    date_opened: str
    date_closed: Optional[str]
    is_active: bool
    is_overdue: bool
    history: list[PaymentCell] = field(default_factory=list)


@dataclass
class PersonalInfoView:
    full_name: str
    date_of_birth: str
    gender: str
    pan: str
    mobile: str


@dataclass
class ReportView:
    credit_score: str
    personal_info: PersonalInfoView
    accounts: list[AccountView]
    score_history: list[tuple[str, int]]


# ── helpers ──────────────────────────────────────────────────


def _dig(data: Any, *path: Any) -> Any:
    """Follow ``path`` through nested dicts/lists, None on any gap."""
    current = data
    for step in path:
        if isinstance(step, int):
            if not isinstance(current, list) or len(current) <= step:
                return None
            current = current[step]
        else:
            if not isinstance(current, dict):
                return None
            current = current.get(step)
        if current is None:
            return None
    return current


def _text(value: Any) -> str:
    if value is None or value == "":
        return NO_DATA
    return str(value)


def _parse_amount(value: Any) -> Optional[int]:
    if value is None or isinstance(value, bool):
        return None
    try:
        return int(float(str(value).replace(",", "")))
    except (ValueError, OverflowError):
        return None


def format_amount(value: Any) -> str:
    """Rupee amount with thousands separators, or the placeholder."""
    amount = _parse_amount(value)
    if amount is None:
        return NO_DATA
    return f"₹{amount:,}"


def mask_account_number(number: Any) -> str:
    if not number:
        return NO_DATA
    number = str(number)
    return number[-4:].rjust(len(number), "*")


def account_category(account_type: Any) -> str:
    t = str(account_type or "").lower()
    if "home" in t or "housing" in t:
        return "home"
    if "auto" in t or "car" in t:
        return "auto"
    if "education" in t:
        return "education"
    if "business" in t:
        return "business"
    return "card_or_other"


def _history_grid(entries: Any) -> list[PaymentCell]:
    cells = []
    if isinstance(entries, list):
        for entry in entries[:HISTORY_MONTHS]:
            if isinstance(entry, dict):
                status = entry.get("PaymentStatus") or ""
                month = entry.get("key") or ""
            else:
                status, month = str(entry or ""), ""
            cells.append(PaymentCell(month or NO_DATA, status or NO_DATA, classify_payment_status(status)))
    while len(cells) < HISTORY_MONTHS:
        cells.append(PaymentCell(NO_DATA, NO_DATA, PaymentBucket.UNKNOWN))
    return cells


# ── projection ───────────────────────────────────────────────


def cir_report_data(report: dict) -> Optional[dict]:
    full = report.get("full_report") or report.get("fullReport") or report
    data = _dig(full, "credit_report", "CCRResponse", "CIRReportDataLst", 0, "CIRReportData")
    return data if isinstance(data, dict) else None


def present_account(account: dict) -> AccountView:
    past_due = _parse_amount(account.get("PastDueAmount"))
    date_closed = account.get("DateClosed") or None
    return AccountView(
        institution=_text(account.get("Institution")),
        account_type=_text(account.get("AccountType")),
        masked_number=mask_account_number(account.get("AccountNumber")),
        category=account_category(account.get("AccountType")),
        current_balance=format_amount(account.get("CurrentBalance")),
        past_due=format_amount(account.get("PastDueAmount")),
        date_opened=_text(account.get("DateOpened")),
        date_closed=date_closed,
        is_active=not date_closed and account.get("AccountStatus") != "Closed",
        is_overdue=bool(past_due and past_due > 0),
        history=_history_grid(account.get("History48Months")),
    )


def _credit_score(report: dict, cir: Optional[dict]) -> str:
    score = report.get("credit_score") or report.get("creditScore")
    if not score:
        score = _dig(cir, "ScoreDetails", 0, "Value")
    return _text(score or None)


def _personal_info(report: dict, cir: Optional[dict]) -> PersonalInfoView:
    personal = _dig(cir, "IDAndContactInfo", "PersonalInfo") or {}
    contact = _dig(cir, "IDAndContactInfo") or {}
    return PersonalInfoView(
        full_name=_text(_dig(personal, "Name", "FullName") or report.get("subject_name")),
        date_of_birth=_text(personal.get("DateOfBirth")),
        gender=_text(personal.get("Gender")),
        pan=_text(
            _dig(contact, "IdentityInfo", "PANId", 0, "IdNumber") or report.get("subject_pan")
        ),
        mobile=_text(_dig(contact, "PhoneInfo", 0, "Number") or report.get("subject_mobile")),
    )


def _score_history(report: dict) -> list[tuple[str, int]]:
    points = []
    for point in report.get("history") or []:
        if isinstance(point, dict) and point.get("score") is not None:
            points.append((str(point.get("month") or NO_DATA), int(point["score"])))
    return points


def present_report(report: Optional[dict]) -> ReportView:
    report = report if isinstance(report, dict) else {}
    cir = cir_report_data(report)
    accounts = _dig(cir, "RetailAccountDetails")
    return ReportView(
        credit_score=_credit_score(report, cir),
        personal_info=_personal_info(report, cir),
        accounts=[present_account(a) for a in accounts or [] if isinstance(a, dict)],
        score_history=_score_history(report),
    )
