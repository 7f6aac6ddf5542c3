"""Client-side credit-check flow, driven against the backend API."""

from creditcheck.flow.controller import CreditCheckPage
from creditcheck.flow.intent import CreditCheckRequest, decode_pending_intent, encode_pending_intent
from creditcheck.flow.page import BrowserNavigator, Location, MemoryStorage, NoticeLog
from creditcheck.flow.presenter import PaymentBucket, classify_payment_status, present_report
from creditcheck.flow.retrier import FetchState, ReportFetchRetrier

__all__ = [
    "BrowserNavigator",
    "CreditCheckPage",
    "CreditCheckRequest",
    "FetchState",
    "Location",
    "MemoryStorage",
    "NoticeLog",
    "PaymentBucket",
    "ReportFetchRetrier",
    "classify_payment_status",
    "decode_pending_intent",
    "encode_pending_intent",
    "present_report",
]
