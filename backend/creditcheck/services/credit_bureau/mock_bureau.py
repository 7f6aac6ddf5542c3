"""Mock credit bureau adapter for development and testing.

Generates realistic synthetic Equifax CIR data in the same nested shape the
DeepVue report endpoint returns, seeded from the transaction id so the same
transaction always yields the same report.

Sections generated:
 - ``CCRResponse.CIRReportDataLst[0].CIRReportData``
 - ``IDAndContactInfo.PersonalInfo`` (name, DOB, gender, age)
 - ``RetailAccountDetails`` with a 48-month ``History48Months`` per account
 - ``RetailAccountsSummary`` and ``EnquirySummary``
 - ``ScoreDetails``

Sessions are kept in-process; a session's report becomes available after
``not_ready_polls`` fetches have been answered with "not ready", mimicking
the bureau's asynchronous report generation.
"""

import hashlib
import random
import uuid
from datetime import date, timedelta
from typing import Dict, Any, List
from urllib.parse import urlencode

from creditcheck.config import settings
from creditcheck.services.credit_bureau.adapter import (
    BureauError,
    BureauSession,
    CreditBureauAdapter,
    ReportNotReadyError,
)

# ── Reference data ────────────────────────────────────

INSTITUTIONS = [
    "HDFC Bank",
    "ICICI Bank",
    "State Bank of India",
    "Axis Bank",
    "Kotak Mahindra Bank",
    "Bajaj Finance",
    "Tata Capital",
    "IDFC First Bank",
]

ACCOUNT_TYPES = [
    "Credit Card",
    "Personal Loan",
    "Auto Loan",
    "Housing Loan",
    "Education Loan",
    "Business Loan",
    "Consumer Loan",
]

CLEAN_STATUSES = ["000", "000", "000", "000", "STD"]
DELINQUENT_STATUSES = ["015", "030", "045", "060", "090", "SUB", "DBT"]

# transaction_id -> remaining "not ready" answers
_PENDING: Dict[str, int] = {}
# transaction_id -> name/mobile the session was opened with
_SUBJECTS: Dict[str, Dict[str, str]] = {}


def reset_mock_bureau() -> None:
    """Forget every mock session (test helper)."""
    _PENDING.clear()
    _SUBJECTS.clear()


def _month_key(today: date, months_back: int) -> str:
    year = today.year
    month = today.month - months_back
    while month <= 0:
        month += 12
        year -= 1
    return f"{month:02d}-{str(year)[-2:]}"


class MockBureauAdapter(CreditBureauAdapter):
    """Mock implementation that generates synthetic Equifax CIR payloads."""

    def __init__(self, not_ready_polls: int = 1):
        self.not_ready_polls = not_ready_polls

    @property
    def provider_name(self) -> str:
        return "mock_bureau"

    # ── helpers ───────────────────────────────────────

    def _gen_history(self, rng: random.Random, opened_months_ago: int, delinquent: bool) -> List[Dict[str, str]]:
        today = date.today()
        history = []
        for i in range(48):
            if i >= opened_months_ago:
                break
            if i == opened_months_ago - 1:
                status = "NEW"
            elif delinquent and rng.random() < 0.25:
                status = rng.choice(DELINQUENT_STATUSES)
            else:
                status = rng.choice(CLEAN_STATUSES)
            history.append({"key": _month_key(today, i), "PaymentStatus": status})
        return history

    def _gen_accounts(self, rng: random.Random, count: int, delinquent_chance: float) -> List[Dict[str, Any]]:
        today = date.today()
        accounts = []
        for seq in range(1, count + 1):
            opened_months_ago = rng.randint(6, 96)
            opened = today - timedelta(days=opened_months_ago * 30)
            closed = rng.random() < 0.3
            delinquent = rng.random() < delinquent_chance
            sanction = rng.randrange(25_000, 1_500_000, 5_000)
            balance = 0 if closed else rng.randrange(0, sanction, 1_000)
            past_due = rng.randrange(1_000, 40_000, 500) if delinquent and not closed else 0
            history = self._gen_history(rng, opened_months_ago, delinquent)
            if closed and history:
                history[0]["PaymentStatus"] = "CLSD"
            account = {
                "seq": str(seq),
                "AccountNumber": f"XXXX{rng.randint(100000, 999999)}",
                "Institution": rng.choice(INSTITUTIONS),
                "AccountType": rng.choice(ACCOUNT_TYPES),
                "OwnershipType": "Individual",
                "Balance": str(balance),
                "CurrentBalance": str(balance),
                "PastDueAmount": str(past_due),
                "SanctionAmount": str(sanction),
                "Open": "No" if closed else "Yes",
                "AccountStatus": "Closed" if closed else "Current Account",
                "DateOpened": opened.isoformat(),
                "DateReported": today.isoformat(),
                "InstallmentAmount": str(rng.randrange(1_000, 50_000, 500)),
                "History48Months": history,
            }
            if closed:
                account["DateClosed"] = (today - timedelta(days=rng.randint(30, 600))).isoformat()
            accounts.append(account)
        return accounts

    def _build_report(self, transaction_id: str) -> Dict[str, Any]:
        hash_val = int(hashlib.md5(transaction_id.encode()).hexdigest(), 16)
        rng = random.Random(hash_val)
        subject = _SUBJECTS.get(transaction_id, {})
        full_name = subject.get("first_name") or "Test Subject"
        mobile = subject.get("mobile_number") or f"9{rng.randint(100000000, 999999999)}"

        score = rng.randint(580, 860)
        delinquent_chance = 0.05 if score >= 750 else 0.3
        accounts = self._gen_accounts(rng, rng.randint(2, 7), delinquent_chance)
        active = [a for a in accounts if a["Open"] == "Yes"]
        opened_dates = sorted(a["DateOpened"] for a in accounts)
        dob = date(rng.randint(1965, 2002), rng.randint(1, 12), rng.randint(1, 28))
        pan = "".join(rng.choice("ABCDEFGHIJKLMNOPQRSTUVWXYZ") for _ in range(5))
        pan += f"{rng.randint(1000, 9999)}{rng.choice('ABCDEFGHIJKLMNOPQRSTUVWXYZ')}"
        enquiries_30 = rng.randint(0, 2)
        enquiries_12m = enquiries_30 + rng.randint(0, 5)

        cir_report_data = {
            "IDAndContactInfo": {
                "PersonalInfo": {
                    "Name": {"FullName": full_name},
                    "DateOfBirth": dob.isoformat(),
                    "Gender": rng.choice(["Male", "Female"]),
                    "Age": {"age": str(date.today().year - dob.year)},
                },
                "IdentityInfo": {"PANId": [{"seq": "1", "IdNumber": pan}]},
                "PhoneInfo": [{"seq": "1", "typeCode": "M", "Number": mobile}],
            },
            "RetailAccountDetails": accounts,
            "RetailAccountsSummary": {
                "NoOfAccounts": str(len(accounts)),
                "NoOfActiveAccounts": str(len(active)),
                "NoOfWriteOffs": str(sum(
                    1 for a in accounts
                    if any(h["PaymentStatus"] in ("SUB", "DBT", "LSS") for h in a["History48Months"])
                )),
                "TotalPastDue": str(sum(int(a["PastDueAmount"]) for a in accounts)),
                "TotalBalanceAmount": str(sum(int(a["CurrentBalance"]) for a in accounts)),
                "TotalSanctionAmount": str(sum(int(a["SanctionAmount"]) for a in accounts)),
                "TotalMonthlyPaymentAmount": str(sum(int(a["InstallmentAmount"]) for a in active)),
                "OldestAccount": opened_dates[0] if opened_dates else "",
                "RecentAccount": opened_dates[-1] if opened_dates else "",
            },
            "EnquirySummary": {
                "Purpose": "ALL",
                "Total": str(enquiries_12m + rng.randint(0, 4)),
                "Past30Days": str(enquiries_30),
                "Past12Months": str(enquiries_12m),
                "Past24Months": str(enquiries_12m + rng.randint(0, 3)),
            },
            "ScoreDetails": [{"Type": "ERS", "Version": "4.0", "Value": str(score)}],
        }

        return {
            "credit_score": str(score),
            "credit_report": {
                "CCRResponse": {
                    "Status": "1",
                    "CIRReportDataLst": [{"CIRReportData": cir_report_data}],
                },
            },
            "name": full_name,
            "mobile": mobile,
            "pan": pan,
            "pdf_url": None,
        }

    # ── public interface ──────────────────────────────

    async def create_session(self, first_name: str, mobile_number: str) -> BureauSession:
        transaction_id = f"mock-{uuid.uuid4().hex[:16]}"
        _PENDING[transaction_id] = self.not_ready_polls
        _SUBJECTS[transaction_id] = {"first_name": first_name, "mobile_number": mobile_number}
        # The mock "bureau" verifies instantly and bounces straight to the callback
        redirect_url = f"{settings.bureau_callback_url}?{urlencode({'transaction_id': transaction_id})}"
        return BureauSession(
            redirect_url=redirect_url,
            transaction_id=transaction_id,
            session_data={"redirect_url": redirect_url},
        )

    async def fetch_report(self, transaction_id: str) -> Dict[str, Any]:
        if transaction_id not in _PENDING:
            raise BureauError(f"Unknown transaction {transaction_id}", status_code=400)
        if _PENDING[transaction_id] > 0:
            _PENDING[transaction_id] -= 1
            raise ReportNotReadyError("Report is being processed, please try again later", status_code=404)
        return self._build_report(transaction_id)

    async def download_pdf(self, pdf_url: str) -> bytes:
        raise BureauError("The mock bureau does not host PDFs")

    async def check_health(self) -> bool:
        return True
