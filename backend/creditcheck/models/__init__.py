"""SQLAlchemy models for the credit-check backend."""

from creditcheck.models.user import User
from creditcheck.models.credit_report import CreditReport
from creditcheck.models.inquiry import CreditCheckInquiry
from creditcheck.models.error_log import ErrorLog, ErrorSeverity

__all__ = [
    "User",
    "CreditReport",
    "CreditCheckInquiry",
    # Error Monitoring
    "ErrorLog",
    "ErrorSeverity",
]
